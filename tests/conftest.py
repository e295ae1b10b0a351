"""
Shared fixtures for cypherql tests.

Provides:
- A movie schema exercising every directive
- FakeStore: an in-memory StoreAccess that records statements and
  answers with canned rows or errors
"""

from dataclasses import dataclass
from typing import Any, Mapping

import pytest

from cypherql import AccessMode, build_schema_model

MOVIE_SDL = """
type Movie {
  movieId: ID!
  title: String
  year: Int
  imdbRating: Float
  genres: [Genre] @relation(name: "IN_GENRE", direction: "OUT")
  director: Person @relation(name: "DIRECTED", direction: "IN")
  ratings: [Rated]
  similar(first: Int = 3): [Movie] @cypher(statement: "MATCH (this)-[:IN_GENRE]->(:Genre)<-[:IN_GENRE]-(o:Movie) RETURN o LIMIT {first}")
  scaleRating(scale: Int = 3): Float @cypher(statement: "RETURN {scale} * this.imdbRating")
  poster: String @neo4j_ignore
}

type Genre {
  name: String
  movies: [Movie] @relation(name: "IN_GENRE", direction: "IN")
}

type Person {
  personId: ID!
  name: String
  directed: [Movie] @relation(name: "DIRECTED", direction: "OUT")
}

type User {
  userId: ID!
  name: String
  ratings: [Rated]
}

type Rated @relation(name: "RATED") {
  from: User
  to: Movie
  rating: Float
  timestamp: Int
}

type Query {
  moviesBySubstring(substring: String): [Movie] @cypher(statement: "MATCH (m:Movie) WHERE m.title CONTAINS {substring} RETURN m")
}

type Mutation {
  rateMovie(userId: ID!, movieId: ID!, rating: Float!): Movie @cypher(statement: "MATCH (u:User {userId: {userId}}), (m:Movie {movieId: {movieId}}) MERGE (u)-[r:RATED]->(m) SET r.rating = {rating} RETURN m")
}
"""


@dataclass
class RecordedCall:
    statement: str
    parameters: dict[str, Any]
    mode: AccessMode


class FakeStore:
    """StoreAccess double.

    Responses are matched by a substring of the statement text; the
    first matching rule answers. Unmatched statements return no rows.
    """

    def __init__(self) -> None:
        self.calls: list[RecordedCall] = []
        self._rules: list[tuple[str, Any]] = []

    def respond(self, match: str, response: Any) -> None:
        """Answer statements containing ``match`` with rows or an exception."""
        self._rules.append((match, response))

    async def run(
        self,
        statement: str,
        parameters: Mapping[str, Any],
        mode: AccessMode,
    ) -> list[Mapping[str, Any]]:
        self.calls.append(RecordedCall(statement, dict(parameters), mode))
        for match, response in self._rules:
            if match in statement:
                if isinstance(response, Exception):
                    raise response
                return response
        return []


@pytest.fixture
def movie_sdl():
    """SDL of the movie schema."""
    return MOVIE_SDL


@pytest.fixture
def model():
    """Schema model of the movie schema."""
    return build_schema_model(MOVIE_SDL)


@pytest.fixture
def store():
    """Fresh fake store."""
    return FakeStore()

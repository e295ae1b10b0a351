"""Command-line tools for cypherql."""

"""
Schema CLI tool for cypherql.

Commands:
- augment: Print the augmented SDL of a set of declarations
- fingerprint: Print the schema model fingerprint
- validate: Build the model and augmented schema, report errors

Usage:
    cypherql-schema augment schema/ --config augment.yaml > augmented.graphql
    cypherql-schema fingerprint schema/
    cypherql-schema validate schema/ --config augment.yaml

Invariants:
    - Invalid declarations or config cause a non-zero exit code
    - Output is deterministic for the same input files

How to change safely:
    - Add new commands, don't modify existing ones
    - Keep output format stable for CI parsing
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Optional

from graphql import GraphQLError

from ..augment import AugmentationEngine
from ..config import AugmentationConfig
from ..errors import CypherQLError
from ..schema import SchemaModel, build_schema_model
from ..schema.loader import load_config, load_type_defs

logger = logging.getLogger(__name__)


class SchemaCLI:
    """CLI operations over a set of declaration files.

    Example:
        >>> cli = SchemaCLI()
        >>> model = cli.load_model(["schema/"])
        >>> print(cli.augment(model, AugmentationConfig()))
    """

    def load_model(self, paths: list[str]) -> SchemaModel:
        return build_schema_model(load_type_defs(paths))

    def augment(self, model: SchemaModel, config: AugmentationConfig) -> str:
        """Augmented SDL of ``model``."""
        text, _, _ = AugmentationEngine(model, config).render()
        return text

    def fingerprint(self, model: SchemaModel, as_json: bool = False) -> str:
        if not as_json:
            return model.fingerprint
        return json.dumps(
            {"fingerprint": model.fingerprint, "schema": model.to_dict()},
            indent=2,
            sort_keys=True,
        )

    def validate(self, paths: list[str], config: AugmentationConfig) -> list[str]:
        """Build the full augmented schema and collect errors.

        Returns:
            List of error messages (empty when valid)
        """
        try:
            model = self.load_model(paths)
            AugmentationEngine(model, config).build()
        except (CypherQLError, GraphQLError, FileNotFoundError, TypeError) as e:
            return [str(e)]
        return []


def _config(path: Optional[str], strict: bool) -> AugmentationConfig:
    config = load_config(path) if path else AugmentationConfig()
    if strict and not config.strict:
        config = AugmentationConfig(query=config.query, mutation=config.mutation, strict=True)
    return config


def main(argv: Optional[list[str]] = None) -> None:
    """CLI entry point for the schema tool."""
    parser = argparse.ArgumentParser(description="cypherql schema tool")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    augment_parser = subparsers.add_parser("augment", help="Print the augmented SDL")
    augment_parser.add_argument("paths", nargs="+", help="SDL files or directories")
    augment_parser.add_argument("--config", "-c", help="YAML/JSON augmentation config")
    augment_parser.add_argument("--output", "-o", help="Output file (default: stdout)")

    fingerprint_parser = subparsers.add_parser("fingerprint", help="Print the schema fingerprint")
    fingerprint_parser.add_argument("paths", nargs="+", help="SDL files or directories")
    fingerprint_parser.add_argument(
        "--json", action="store_true", help="Print the canonical model with the fingerprint"
    )

    validate_parser = subparsers.add_parser("validate", help="Validate declarations and config")
    validate_parser.add_argument("paths", nargs="+", help="SDL files or directories")
    validate_parser.add_argument("--config", "-c", help="YAML/JSON augmentation config")
    validate_parser.add_argument(
        "--strict", action="store_true", help="Fail on exclusions of undeclared types"
    )

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    cli = SchemaCLI()

    if args.command == "augment":
        try:
            output = cli.augment(cli.load_model(args.paths), _config(args.config, False))
        except (CypherQLError, GraphQLError) as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        if args.output:
            with open(args.output, "w") as f:
                f.write(output)
            print(f"Augmented schema written to {args.output}", file=sys.stderr)
        else:
            print(output)

    elif args.command == "fingerprint":
        try:
            model = cli.load_model(args.paths)
        except (CypherQLError, GraphQLError) as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        print(cli.fingerprint(model, args.json))

    elif args.command == "validate":
        try:
            config = _config(args.config, args.strict)
        except CypherQLError as e:
            print(f"Error: {e.message}", file=sys.stderr)
            sys.exit(1)
        errors = cli.validate(args.paths, config)
        if not errors:
            print("Schema is valid")
            sys.exit(0)
        print(f"Schema validation failed with {len(errors)} error(s):")
        for error in errors:
            print(f"  - {error}")
        sys.exit(1)


if __name__ == "__main__":
    main()

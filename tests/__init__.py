"""
cypherql Test Suite.

This package contains:
- unit/: Unit tests of the builder, augmentation and compilers
- integration/: GraphQL requests and the HTTP surface against a fake store
"""

"""
zkfss Test Suite
================

Test Organization
-----------------
- tests/unit/          : Fast unit tests against an in-memory ZooKeeper fake
- tests/integration/   : Integration tests with testcontainers (real ZooKeeper)

Testing Philosophy
------------------
- Unit tests: fast, isolated, cover precedence, caching and lifecycle rules
- Integration tests: slower, cover real watch delivery and client handling
- Use the `integration` marker to select or skip them (`-m "not integration"`)
- Follow AAA pattern: Arrange, Act, Assert
"""

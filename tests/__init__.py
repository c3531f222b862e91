"""
Projekt L Test Suite
====================

Test Organization
-----------------
- tests/unit/          : Pure formulas, validation, config and event bus
- tests/integration/   : Services against a real database (SQLite file by
                         default, PostgreSQL testcontainer on request)

Testing Philosophy
------------------
- Unit tests: fast, isolated, no database
- Integration tests: go through DatabaseService like production code
- Use pytest markers to categorize and selectively run tests
- Follow AAA pattern: Arrange, Act, Assert
"""

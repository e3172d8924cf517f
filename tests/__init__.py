"""
eventmesh Test Suite
====================

Test Organization
-----------------
- tests/unit/          : Fast unit tests (in-memory backend, mocks)
- tests/integration/   : Relational backend against SQLite, and PostgreSQL
                         via testcontainers when EVENTMESH_TEST_POSTGRES=1

Testing Philosophy
------------------
- Unit tests: fast, isolated, test event semantics
- Integration tests: slower, test real database interactions
- Use pytest markers to categorize and selectively run tests
- Follow AAA pattern: Arrange, Act, Assert
"""

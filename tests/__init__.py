"""
Capture Stats Test Suite
========================

Test Organization
-----------------
- tests/unit/          : Fast unit tests against in-memory fakes (no database)
- tests/integration/   : SQLite file databases, PostgreSQL via testcontainers
- tests/fakes.py       : FakeClock and InMemoryStatsStore

Testing Philosophy
------------------
- Unit tests: Fast, isolated, test cache and coordination logic
- Integration tests: Slower, test real SQL and transaction behaviour
- Use pytest markers to categorize and selectively run tests
- Follow AAA pattern: Arrange, Act, Assert
"""

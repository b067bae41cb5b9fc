"""
Progression Core Test Suite
===========================

Test Organization
-----------------
- tests/unit/          : Fast unit tests (pure domain objects, mocks)
- tests/integration/   : Services against in-memory SQLite

Testing Philosophy
------------------
- Unit tests: fast, isolated, test business rules
- Integration tests: real DatabaseService and EventBus
- Use pytest markers to categorize and selectively run tests
- Follow AAA pattern: Arrange, Act, Assert
"""

"""Meeting Minutes Test Suite.

Test Structure:
    tests/
    ├── conftest.py          # Shared fixtures and in-memory fakes
    ├── unit/                # Service-level tests against the fakes
    └── integration/         # HTTP tests through the FastAPI app

Run all tests:
    pytest

Run specific test categories:
    pytest -m unit
    pytest -m integration
"""

"""Integration tests for the HTTP API and the SQL repository.

API tests:
- Drive the FastAPI app through httpx ASGITransport
- Replace the service graph with fakes via dependency overrides
- Check status codes, error codes and camelCase bodies

Repository tests:
- Run ``SqlTranscriptionRepository`` against the PostgreSQL test database
- Skip when the database is not reachable

Markers:
- @pytest.mark.integration - All integration tests
"""

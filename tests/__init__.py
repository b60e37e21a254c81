"""
Portal Tests

Test Organization:
- Unit tests for keys, settings, cookies, the CAS client and repositories
- Integration tests against an in-memory SQLite database
- End-to-end tests through the FastAPI TestClient with the mock CAS

Running Tests:
    # Run all tests
    pytest tests/

    # Run a specific module
    pytest tests/test_auth_routes.py
"""

"""
Test Suite

Tests for the fund planning workflow backend.

Structure:
    tests/
    ├── conftest.py                   # Fixtures: mongomock db, engine, actors, factories
    ├── test_transition_resolver.py   # Status vocabulary and rule checks
    ├── test_permission_guard.py      # Role/scope authorization
    ├── test_workflow_engine.py       # Engine operations end to end
    ├── test_concurrency.py           # Optimistic version checks
    ├── test_withdrawal_config.py     # Policy model, storage, administration
    ├── test_withdrawal_requests.py   # Withdrawal request history from the audit trail
    └── test_api.py                   # HTTP layer via TestClient

To run tests:
    pytest
"""

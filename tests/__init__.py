"""
ReviewPilot Test Suite.

- unit/: ledger, coordinator, generator, scheduler, service, gateway,
  webhook and API tests
- conftest.py: Shared fixtures and test configuration

Run tests with: pytest
"""

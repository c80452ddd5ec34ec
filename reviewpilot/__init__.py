"""
ReviewPilot - automated replies to Google Business Profile reviews.

This package contains the core modules for the ReviewPilot service:
- automation: dedupe ledger, coordinator state machine, polling scheduler
- services: AI response drafting
- gateway: Google Business Profile review API adapters (mock and live)
- notifications: event fan-out to connected UI clients
- webhooks: inbound Google notification parsing and verification
- monitoring: Prometheus metrics
- api: FastAPI application and endpoints
- config: Pydantic settings
- models: Data models shared across modules
"""

__version__ = "0.1.0"

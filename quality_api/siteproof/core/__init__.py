"""
Core application utilities for settings, logging, errors and FastAPI dependencies.

This package provides:
- Application-level settings (separate from DB settings)
- Structured logging with request context
- The typed error taxonomy shared by services and routes
- Dependency helpers (inspector resolution, DB session)
"""

"""
Public Pydantic schemas used by FastAPI routes, services, gateways and tests.

Schemas are grouped by domain area (projects/lots, ITP templates and assignments,
conformance records, inspection read models) plus the common result envelope.
"""

from .common import ApiResult, MessageResponse  # noqa: F401

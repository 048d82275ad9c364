"""
API route modules for the inspection engine.

This package contains subrouters for:
- Projects: projects and their lots
- Templates: ITP template catalog
- Inspection: template assignment, conformance saving and the lot inspection state

Routers are included from siteproof.api.main (under the /api/v1 prefix).
"""

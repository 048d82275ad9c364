"""
Repository layer for data access.

Repositories encapsulate SQLAlchemy queries for each aggregate (lots, templates,
assignments, conformance records). Together they form the persistence collaborator
the inspection services depend on; the services own transactions.
"""

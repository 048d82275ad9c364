"""
ORM models for projects, lots, ITP templates/items, lot assignments and
conformance records.

Importing this package ensures model classes are registered with the Base
metadata for Alembic and runtime usage.
"""

from .projects import (  # noqa: F401
    Project,
    Lot,
)
from .itp import (  # noqa: F401
    ITPTemplate,
    ITPItem,
    LotITPAssignment,
)
from .conformance import (  # noqa: F401
    ConformanceRecord,
)

"""Services module for data access.

The persistence gateway is the only path from the scrape pipeline and the
API to the database.
"""

from kupon.services.persistence import (
    CouponFilters,
    PersistenceGateway,
    SQLAlchemyPersistenceGateway,
)

__all__ = [
    "CouponFilters",
    "PersistenceGateway",
    "SQLAlchemyPersistenceGateway",
]

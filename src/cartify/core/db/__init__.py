from .migrations import apply_migrations, connect_db
from .repository import MarketplaceRepository

__all__ = ["connect_db", "apply_migrations", "MarketplaceRepository"]

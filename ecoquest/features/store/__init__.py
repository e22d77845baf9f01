from ecoquest.features.store.base import Store
from ecoquest.features.store.sql import SqlStore

__all__ = ["Store", "SqlStore"]

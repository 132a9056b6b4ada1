from sessionstore.stores.base import Store
from sessionstore.stores.sql import SQLStore

__all__ = ["Store", "SQLStore"]

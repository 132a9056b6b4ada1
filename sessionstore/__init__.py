"""SQL-backed, time-expiring session storage."""

from sessionstore.core.serializers import Serializer, build_serializer, register_serializer
from sessionstore.stores.base import Store
from sessionstore.stores.sql import SQLStore

__all__ = ["SQLStore", "Serializer", "Store", "build_serializer", "register_serializer"]

__version__ = "1.0.0"

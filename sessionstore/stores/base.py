from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional


class Store(ABC):
    """
    Interface a session manager expects from a storage backend.

    Keys are supplied by the session manager. Values are structured session
    payloads; how they are stored is up to the backend.
    """

    @abstractmethod
    def set(self, key: str, value: Any, expires: int) -> None:
        """
        Store a value, replacing any live value under the same key.

        Args:
            key: Session key
            value: Session payload
            expires: Seconds from now until the value expires
        """

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """
        Get the live value for a key.

        Returns:
            The stored payload, or None if the key is unknown or expired
        """

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete a key. Unknown keys are ignored."""

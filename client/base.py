"""Fetcher interface consumed by the collector"""
from abc import ABC, abstractmethod
from typing import Any, Dict


class Fetcher(ABC):
    """Source of flattened broker statistics"""

    @abstractmethod
    def fetch(self) -> Dict[str, Any]:
        """Return ``{"<endpoint>_<key>": json_leaf}`` for one scrape.

        Raises a ``FetchError`` subclass when any endpoint fails.
        """
        pass

    def close(self) -> None:
        """Release any held resources"""
        pass

"""
Base data source interface.
"""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from pydantic import BaseModel

from hnreel.services.client import ServiceClient

T = TypeVar("T", bound=BaseModel)


class BaseDataSource(ABC, Generic[T]):
    """
    Abstract base class for all data sources.

    All data sources should:
    - Use ServiceClient for HTTP requests (hooks, retry, validation)
    - Cache through their own SWRCache instances
    - Return Pydantic models
    """

    def __init__(self, client: ServiceClient | None = None):
        from hnreel.services.client import get_service_client

        self.client = client or get_service_client()

    @property
    @abstractmethod
    def service_id(self) -> str:
        """Unique identifier for this data source."""
        ...

    @abstractmethod
    async def fetch(self) -> list[T]:
        """Fetch the source's default listing."""
        ...

    def is_configured(self) -> bool:
        """Public APIs need no credentials."""
        return True

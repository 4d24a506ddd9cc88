"""Base object store abstraction over the appliance's REST surface."""
from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from ..engine.schema import TransactionCommand
from ..errors import NotFoundError
from ..utils.retry import NO_RETRY, RetryPolicy

logger = logging.getLogger(__name__)


@dataclass
class ApplianceConfig:
    """Connection settings for a managed appliance."""
    name: str
    host: str
    port: int = 443
    username: str = "admin"
    password: Optional[str] = None
    password_env: str = "NETRECONCILE_PASSWORD"
    verify_ssl: bool = True
    timeout: float = 60

    def get_password(self) -> str:
        """Get password from config or environment variable."""
        if self.password:
            return self.password
        return os.environ.get(self.password_env, "")


class ObjectStore(ABC):
    """Abstract base class for appliance object stores.

    Public methods apply the given retry policy around the raw primitives
    that subclasses implement. Every primitive raises a StoreError subclass
    on failure; NotFoundError signals a 404.
    """

    def __init__(self, name: str = "appliance"):
        self.name = name

    # Raw primitives
    @abstractmethod
    async def _create(self, path: str, body: dict) -> Any:
        """POST a new object to a collection path."""
        pass

    @abstractmethod
    async def _modify(self, path: str, body: dict) -> Any:
        """PATCH an existing object at an item path."""
        pass

    @abstractmethod
    async def _create_or_modify(self, path: str, body: dict) -> Any:
        """Create the object in a collection, or modify it if it exists."""
        pass

    @abstractmethod
    async def _delete(self, path: str) -> Any:
        """DELETE an object at an item path."""
        pass

    @abstractmethod
    async def _list(self, path: str) -> Any:
        """GET a collection (list) or an item (dict)."""
        pass

    @abstractmethod
    async def _transaction(self, commands: list[TransactionCommand]) -> Any:
        """Apply commands atomically."""
        pass

    @abstractmethod
    async def _config_sync_ip(self, address: str) -> Any:
        """Set the local device's config sync address."""
        pass

    @abstractmethod
    async def _modify_local_device(self, body: dict) -> Any:
        """PATCH the cm device entry of the appliance itself."""
        pass

    # Retry-aware public API
    async def create(self, path: str, body: dict, retry: RetryPolicy = NO_RETRY) -> Any:
        logger.debug(f"create {path} {body.get('name', '')} ({retry.name})")
        return await retry.call(self._create, path, body)

    async def modify(self, path: str, body: dict, retry: RetryPolicy = NO_RETRY) -> Any:
        logger.debug(f"modify {path} ({retry.name})")
        return await retry.call(self._modify, path, body)

    async def create_or_modify(
        self, path: str, body: dict, retry: RetryPolicy = NO_RETRY
    ) -> Any:
        logger.debug(f"create_or_modify {path} {body.get('name', '')} ({retry.name})")
        return await retry.call(self._create_or_modify, path, body)

    async def delete(self, path: str, retry: RetryPolicy = NO_RETRY) -> Any:
        logger.debug(f"delete {path} ({retry.name})")
        return await retry.call(self._delete, path)

    async def list(self, path: str, retry: RetryPolicy = NO_RETRY) -> Any:
        logger.debug(f"list {path} ({retry.name})")
        return await retry.call(self._list, path)

    async def transaction(self, commands: list[TransactionCommand]) -> Any:
        """Apply commands atomically. Transactions are never retried."""
        logger.debug(f"transaction with {len(commands)} commands")
        return await NO_RETRY.call(self._transaction, list(commands))

    async def config_sync_ip(
        self, address: str, retry: RetryPolicy = NO_RETRY
    ) -> Any:
        logger.debug(f"config_sync_ip {address} ({retry.name})")
        return await retry.call(self._config_sync_ip, address)

    async def modify_local_device(
        self, body: dict, retry: RetryPolicy = NO_RETRY
    ) -> Any:
        logger.debug(f"modify_local_device {sorted(body)} ({retry.name})")
        return await retry.call(self._modify_local_device, body)

    async def list_items(self, path: str, retry: RetryPolicy = NO_RETRY) -> list[dict]:
        """List a collection, always returning a list."""
        items = await self.list(path, retry)
        return list(items) if isinstance(items, list) else []

    async def exists(self, path: str, retry: RetryPolicy = NO_RETRY) -> bool:
        """Probe an item path; 404 means absent, other errors propagate."""
        try:
            await self.list(path, retry)
        except NotFoundError:
            return False
        return True

    async def close(self) -> None:
        """Release any connection resources."""
        return None

    # Context manager support
    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"

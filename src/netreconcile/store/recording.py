"""In-memory object store that records every call.

Used for dry runs and as the appliance double in tests. Reads are served
from seeded objects; writes are recorded but do not change what reads
return.

Usage:
    store = RecordingObjectStore()
    store.seed_collection("/tm/net/self", [{"name": "s1", "partition": "Common", ...}])
    await engine.apply(declaration, current_config, diff)
    for op in store.mutations:
        print(op)
"""
from __future__ import annotations

import copy
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Optional

from ..constants import COMMON, LOCAL_ONLY, PATHS, item_path
from ..engine.schema import Operation, OperationMethod, TransactionCommand
from ..errors import NotFoundError, StoreError
from ..utils.retry import NO_RETRY, RetryPolicy
from .base import ObjectStore

logger = logging.getLogger(__name__)


@dataclass
class _Failure:
    method: Optional[OperationMethod]
    error: StoreError
    times: Optional[int]


class RecordingObjectStore(ObjectStore):
    """Object store double that records operations instead of applying them."""

    def __init__(self, objects: Optional[dict[str, Any]] = None, name: str = "dry-run"):
        super().__init__(name)
        self.objects: dict[str, Any] = dict(objects or {})
        self.operations: list[Operation] = []
        self.attempts: dict[tuple[OperationMethod, str], int] = defaultdict(int)
        self._failures: dict[str, list[_Failure]] = defaultdict(list)

    # === Seeding ===

    def seed(self, path: str, value: Any) -> None:
        """Serve ``value`` for reads of ``path``."""
        self.objects[path] = value

    def seed_collection(self, collection: str, items: list[dict]) -> None:
        """Seed a collection and an item path for each of its members."""
        self.objects[collection] = list(items)
        for item in items:
            partition = item.get("partition", COMMON)
            self.objects[item_path(collection, item["name"], partition)] = item

    def seed_current_config(self, current_config: dict[str, Any]) -> None:
        """Seed collections from a declaration-shaped current config.

        Every named Common object whose class has a known collection path is
        served from that collection and from its item path.
        """
        for object_class, objects in (current_config.get(COMMON) or {}).items():
            collection = PATHS.get(object_class)
            if collection is None or not isinstance(objects, dict):
                continue
            items = []
            for name, body in objects.items():
                if not isinstance(body, dict):
                    continue
                partition = LOCAL_ONLY if body.get("localOnly") else COMMON
                item = dict(body)
                item.setdefault("name", name)
                item.setdefault("partition", partition)
                item.setdefault("fullPath", f"/{partition}/{name}")
                items.append(item)
            if items:
                self.seed_collection(collection, items)

    def fail(
        self,
        path: str,
        error: StoreError,
        method: Optional[OperationMethod] = None,
        times: Optional[int] = None,
    ) -> None:
        """Make calls on ``path`` raise ``error``.

        Args:
            path: Path to fail on
            error: Error to raise
            method: Only fail this method (default: any)
            times: Fail this many attempts, then succeed (default: always)
        """
        self._failures[path].append(_Failure(method, error, times))

    # === Inspection ===

    @property
    def mutations(self) -> list[Operation]:
        """Recorded operations that change appliance state."""
        return [op for op in self.operations if op.is_mutation]

    def paths(self, method: OperationMethod) -> list[str]:
        """Paths of recorded operations of one method, in order."""
        return [op.path for op in self.operations if op.method == method]

    def clear(self) -> None:
        self.operations.clear()
        self.attempts.clear()

    # === Recording wrappers ===

    def _record(
        self,
        method: OperationMethod,
        path: str,
        body: Any = None,
        retry: Optional[RetryPolicy] = None,
    ) -> None:
        operation = Operation(method, path, copy.deepcopy(body), retry)
        logger.debug(f"[{self.name}] {operation}")
        self.operations.append(operation)

    async def create(self, path: str, body: dict, retry: RetryPolicy = NO_RETRY) -> Any:
        self._record(OperationMethod.CREATE, path, body, retry)
        return await super().create(path, body, retry)

    async def modify(self, path: str, body: dict, retry: RetryPolicy = NO_RETRY) -> Any:
        self._record(OperationMethod.MODIFY, path, body, retry)
        return await super().modify(path, body, retry)

    async def create_or_modify(
        self, path: str, body: dict, retry: RetryPolicy = NO_RETRY
    ) -> Any:
        self._record(OperationMethod.CREATE_OR_MODIFY, path, body, retry)
        return await super().create_or_modify(path, body, retry)

    async def delete(self, path: str, retry: RetryPolicy = NO_RETRY) -> Any:
        self._record(OperationMethod.DELETE, path, None, retry)
        return await super().delete(path, retry)

    async def list(self, path: str, retry: RetryPolicy = NO_RETRY) -> Any:
        self._record(OperationMethod.LIST, path, None, retry)
        return await super().list(path, retry)

    async def transaction(self, commands: list[TransactionCommand]) -> Any:
        self._record(OperationMethod.TRANSACTION, "/tm/transaction", list(commands))
        return await super().transaction(commands)

    async def config_sync_ip(self, address: str, retry: RetryPolicy = NO_RETRY) -> Any:
        self._record(OperationMethod.CONFIG_SYNC_IP, "/tm/cm/device", address, retry)
        return await super().config_sync_ip(address, retry)

    async def modify_local_device(self, body: dict, retry: RetryPolicy = NO_RETRY) -> Any:
        self._record(OperationMethod.MODIFY_LOCAL_DEVICE, "/tm/cm/device", body, retry)
        return await super().modify_local_device(body, retry)

    # === Primitives ===

    def _check_failure(self, method: OperationMethod, path: str) -> None:
        self.attempts[(method, path)] += 1
        for failure in self._failures.get(path, []):
            if failure.method is not None and failure.method != method:
                continue
            if failure.times is None:
                raise failure.error
            if failure.times > 0:
                failure.times -= 1
                raise failure.error

    async def _create(self, path: str, body: dict) -> Any:
        self._check_failure(OperationMethod.CREATE, path)
        return body

    async def _modify(self, path: str, body: dict) -> Any:
        self._check_failure(OperationMethod.MODIFY, path)
        return body

    async def _create_or_modify(self, path: str, body: dict) -> Any:
        self._check_failure(OperationMethod.CREATE_OR_MODIFY, path)
        return body

    async def _delete(self, path: str) -> Any:
        self._check_failure(OperationMethod.DELETE, path)
        return None

    async def _list(self, path: str) -> Any:
        self._check_failure(OperationMethod.LIST, path)
        if path in self.objects:
            return copy.deepcopy(self.objects[path])
        if "~" in path.rsplit("/", 1)[-1]:
            raise NotFoundError(f"Object not found: {path}", path=path)
        return []

    async def _transaction(self, commands: list[TransactionCommand]) -> Any:
        self._check_failure(OperationMethod.TRANSACTION, "/tm/transaction")
        return {"state": "COMPLETED", "commands": len(commands)}

    async def _config_sync_ip(self, address: str) -> Any:
        self._check_failure(OperationMethod.CONFIG_SYNC_IP, "/tm/cm/device")
        return {"configsyncIp": address}

    async def _modify_local_device(self, body: dict) -> Any:
        self._check_failure(OperationMethod.MODIFY_LOCAL_DEVICE, "/tm/cm/device")
        return body

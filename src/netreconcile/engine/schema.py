"""Schema definitions for the reconciliation engine.

Declarations and current configs are plain nested dicts:

    {tenant: {object_class: {object_name: body}}}

The dataclasses here wrap the parts the engine produces or passes around.
"""
import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Optional

from ..constants import COMMON
from ..utils.retry import RetryPolicy

Declaration = dict[str, Any]


class OperationMethod(str, Enum):
    """Kind of call made against the object store."""
    CREATE = "create"
    MODIFY = "modify"
    CREATE_OR_MODIFY = "create_or_modify"
    DELETE = "delete"
    LIST = "list"
    TRANSACTION = "transaction"
    CONFIG_SYNC_IP = "config_sync_ip"
    MODIFY_LOCAL_DEVICE = "modify_local_device"


MUTATING_METHODS = {
    OperationMethod.CREATE,
    OperationMethod.MODIFY,
    OperationMethod.CREATE_OR_MODIFY,
    OperationMethod.DELETE,
    OperationMethod.TRANSACTION,
    OperationMethod.CONFIG_SYNC_IP,
    OperationMethod.MODIFY_LOCAL_DEVICE,
}


@dataclass
class TransactionCommand:
    """One member of an atomic transaction."""
    method: OperationMethod
    path: str
    body: Optional[dict] = None

    def to_dict(self) -> dict:
        result: dict[str, Any] = {"method": self.method.value, "path": self.path}
        if self.body is not None:
            result["body"] = self.body
        return result


@dataclass
class Operation:
    """A single call made against the object store."""
    method: OperationMethod
    path: str
    body: Any = None
    retry: Optional[RetryPolicy] = None

    @property
    def is_mutation(self) -> bool:
        return self.method in MUTATING_METHODS

    def to_dict(self) -> dict:
        result: dict[str, Any] = {"method": self.method.value, "path": self.path}
        if self.method == OperationMethod.TRANSACTION:
            result["commands"] = [command.to_dict() for command in self.body]
        elif self.body is not None:
            result["body"] = self.body
        if self.retry is not None:
            result["retry"] = self.retry.name
        return result

    def __str__(self) -> str:
        return f"{self.method.value} {self.path}"


@dataclass
class Diff:
    """Objects to update and objects to delete, computed by the caller."""
    to_update: Declaration = field(default_factory=dict)
    to_delete: Declaration = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "Diff":
        return cls(
            to_update=data.get("toUpdate") or {},
            to_delete=data.get("toDelete") or {},
        )


@dataclass
class HandlerStatus:
    """Post-processing directives reported by a handler."""
    reboot_required: bool = False
    rollback_info: dict[str, Any] = field(default_factory=dict)


@dataclass
class ReconcileResult:
    """Aggregate of every handler status in a run."""
    statuses: list[HandlerStatus] = field(default_factory=list)
    reboot_required: bool = False
    rollback_info: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_statuses(cls, statuses: list[HandlerStatus]) -> "ReconcileResult":
        result = cls(statuses=list(statuses))
        for status in statuses:
            if status.reboot_required:
                result.reboot_required = True
            for key, value in status.rollback_info.items():
                result.rollback_info[key] = copy.deepcopy(value)
        return result

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "rebootRequired": self.reboot_required,
            "rollbackInfo": self.rollback_info,
        }


@dataclass
class ReconcileState:
    """Read-only context shared by all handlers in a run."""
    declaration: Declaration = field(default_factory=dict)
    current_config: Declaration = field(default_factory=dict)

    def current(self, object_class: str, tenant: str = COMMON) -> dict[str, Any]:
        """Current objects of a class, keyed by name (empty if none)."""
        return get_class_objects(self.current_config, object_class, tenant)

    def current_object(
        self, object_class: str, name: str, tenant: str = COMMON
    ) -> Optional[dict]:
        return self.current(object_class, tenant).get(name)


def get_class_objects(
    declaration: Declaration, object_class: str, tenant: str = COMMON
) -> dict[str, Any]:
    """Objects of one class in one tenant."""
    return (declaration.get(tenant) or {}).get(object_class) or {}


def for_each(
    declaration: Declaration, object_class: str
) -> Iterator[tuple[str, str, dict]]:
    """Yield (tenant, name, body) for every object of a class.

    The object name is the ``name`` property when set, else its key.
    """
    for tenant, classes in declaration.items():
        if not isinstance(classes, dict):
            continue
        objects = classes.get(object_class) or {}
        for key, body in objects.items():
            if not isinstance(body, dict):
                continue
            yield tenant, body.get("name") or key, body


def compact(body: dict) -> dict:
    """Drop keys whose value is None."""
    return {k: v for k, v in body.items() if v is not None}


def qualify(name: str, tenant: str) -> str:
    """Prefix a bare object reference with its tenant."""
    return name if name.startswith("/") else f"/{tenant}/{name}"

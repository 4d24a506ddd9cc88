"""Ordered deletion of obsolete objects.

Objects are removed in reverse dependency order, in three stages that run
strictly one after another:

1. GSLB data centers, prober pools and servers, in one transaction since
   they reference one another in any order.
2. Every other class, one class at a time in DELETABLE_CLASSES order;
   objects of the same class are deleted concurrently.
3. Authentication sub-objects, followed by the servers, certificates and
   keys that belong to them once the sub-object itself is gone.

The first failure aborts the whole phase. Nothing is retried.
"""
import asyncio
import logging
from typing import TYPE_CHECKING, Any, Awaitable

from ..constants import (
    AUTH_DELETABLE_TYPES,
    AUTH_SUBCLASSES_NAME,
    COMMON,
    DELETABLE_CLASSES,
    GSLB_LINKED_CLASSES,
    LDAP_CERTS,
    LDAP_KEYS,
    LOCAL_ONLY,
    PATHS,
    RADIUS_SERVERS,
    RETAINED_OBJECTS,
    VXLAN_PROFILE_SUFFIX,
    VXLAN_TUNNEL_TYPE,
    item_path,
)
from ..errors import annotate
from ..utils.logging_config import timed_section
from ..utils.retry import NO_RETRY
from .schema import (
    Declaration,
    OperationMethod,
    ReconcileState,
    TransactionCommand,
    get_class_objects,
)

if TYPE_CHECKING:
    from ..store.base import ObjectStore

logger = logging.getLogger(__name__)

PHASE = "delete"


def is_retained(object_class: str, name: str) -> bool:
    """Check whether an object is a built-in the appliance refuses to delete."""
    return name in RETAINED_OBJECTS.get(object_class, set())


def is_listed(items: list[dict], name: str) -> bool:
    return any(item.get("fullPath") == f"/{COMMON}/{name}" for item in items)


class DeleteOrderingEngine:
    """Delete the objects of a declaration-shaped delete set."""

    def __init__(self, store: "ObjectStore", state: ReconcileState):
        self.store = store
        self.state = state

    async def delete(self, to_delete: Declaration) -> None:
        """Run every delete stage over the Common objects in ``to_delete``."""
        logger.info("Processing deletes")
        try:
            await self._delete_gslb(to_delete)

            for object_class in DELETABLE_CLASSES:
                names = list(get_class_objects(to_delete, object_class).keys())
                if not names:
                    continue
                async with timed_section("delete_class", object_class=object_class,
                                         count=len(names)):
                    with annotate(PHASE, object_class):
                        await self._delete_class(object_class, names)

            with annotate(PHASE, "Authentication"):
                await self._delete_auth(to_delete)
        except Exception as e:
            logger.error(f"Error processing deletes: {e}")
            raise
        logger.info("Done processing deletes")

    # === GSLB ===

    async def _delete_gslb(self, to_delete: Declaration) -> None:
        commands = [
            TransactionCommand(OperationMethod.DELETE, item_path(PATHS[object_class], name))
            for object_class in GSLB_LINKED_CLASSES
            for name in get_class_objects(to_delete, object_class)
        ]
        if not commands:
            return
        with annotate(PHASE, "GSLB"):
            await self.store.transaction(commands)

    # === Per-class ===

    def delete_path(self, object_class: str, name: str) -> str:
        """The path an object of a deletable class is deleted at."""
        collection = PATHS[object_class]
        if object_class in ("Trunk", "RemoteAuthRole"):
            return f"{collection}/{name}"
        if object_class == "Route":
            current = self.state.current_object("Route", name) or {}
            return item_path(collection, name, LOCAL_ONLY if current.get("localOnly") else COMMON)
        if object_class == "GSLBMonitor":
            current = self.state.current_object("GSLBMonitor", name) or {}
            if not current.get("monitorType"):
                raise ValueError(f"Unknown monitor type for GSLB monitor {name}")
            return f"{collection}/{current['monitorType']}/~{COMMON}~{name}"
        return item_path(collection, name)

    async def _delete_class(self, object_class: str, names: list[str]) -> None:
        names = [name for name in names if not is_retained(object_class, name)]
        if not names:
            return

        if object_class == "RouteDomain":
            await self.store.transaction([
                TransactionCommand(OperationMethod.DELETE, self.delete_path(object_class, name))
                for name in names
            ])
            return

        tasks: list[Awaitable[Any]] = []
        for name in names:
            if object_class == "Tunnel":
                tasks.append(self._delete_tunnel(name))
            else:
                tasks.append(self.store.delete(self.delete_path(object_class, name), NO_RETRY))
        await asyncio.gather(*tasks)

    async def _delete_tunnel(self, name: str) -> None:
        await self.store.delete(self.delete_path("Tunnel", name), NO_RETRY)
        current = self.state.current_object("Tunnel", name) or {}
        if current.get("tunnelType") == VXLAN_TUNNEL_TYPE:
            profile = f"{name}{VXLAN_PROFILE_SUFFIX}"
            await self.store.delete(item_path(PATHS["VXLAN"], profile), NO_RETRY)

    # === Authentication ===

    async def _delete_auth(self, to_delete: Declaration) -> None:
        auth = (to_delete.get(COMMON) or {}).get("Authentication") or {}
        auth_types = [t for t in auth if t in AUTH_DELETABLE_TYPES]
        if not auth_types:
            return
        await asyncio.gather(*[self._delete_auth_type(t) for t in auth_types])

    async def _delete_auth_type(self, auth_type: str) -> None:
        """Delete one auth type's system-auth object, then what belonged to it.

        RADIUS servers and LDAP certificates and keys are only removed once
        the system-auth object they serve has been deleted.
        """
        path = f"/tm/auth/{auth_type}"
        if not await self._is_listed(path, AUTH_SUBCLASSES_NAME):
            return
        await self.store.delete(f"{path}/{AUTH_SUBCLASSES_NAME}", NO_RETRY)

        if auth_type == "radius":
            await self._delete_listed(PATHS["AuthRadiusServer"], RADIUS_SERVERS)
        elif auth_type == "ldap":
            current = ((self.state.current_config.get(COMMON) or {})
                       .get("Authentication") or {}).get("ldap") or {}
            certs = [name for prop, name in LDAP_CERTS.items() if current.get(prop)]
            keys = [name for prop, name in LDAP_KEYS.items() if current.get(prop)]
            await self._delete_listed(PATHS["SSLCert"], certs)
            await self._delete_listed(PATHS["SSLKey"], keys)

    async def _is_listed(self, path: str, name: str) -> bool:
        items = await self.store.list_items(path, NO_RETRY)
        return is_listed(items, name)

    async def _delete_listed(self, path: str, names: list[str]) -> None:
        """Delete the named Common objects that the appliance lists under ``path``."""
        if not names:
            return
        items = await self.store.list_items(path, NO_RETRY)
        await asyncio.gather(*[
            self.store.delete(item_path(path, name), NO_RETRY)
            for name in names
            if is_listed(items, name)
        ])

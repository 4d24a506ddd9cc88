"""Route domain migration for RouteMap and RoutingPrefixList.

``routeDomain`` can only be set when the object is created. Moving one of
these objects to another route domain means deleting and re-creating it
atomically, then adding its entries back in a second step because the
appliance validates entries against the route domain it had before the
transaction committed.
"""
import logging
from typing import TYPE_CHECKING, Any, Optional

from ..constants import COMMON, PATHS, item_path
from ..utils.retry import MEDIUM_RETRY
from .schema import OperationMethod, ReconcileState, TransactionCommand

if TYPE_CHECKING:
    from ..store.base import ObjectStore

logger = logging.getLogger(__name__)

MIGRATING_CLASSES = ("RouteMap", "RoutingPrefixList")


def entries_by_name(entries: Optional[list[dict]]) -> dict[str, dict]:
    """Convert a list of ``{name, ...}`` entries to the name-keyed mapping."""
    result: dict[str, dict] = {}
    for entry in entries or []:
        body = {k: v for k, v in entry.items() if k != "name"}
        result[str(entry["name"])] = body
    return result


def route_domain_changed(current: Optional[dict], body: dict) -> bool:
    if not current:
        return False
    return str(current.get("routeDomain")) != str(body.get("routeDomain"))


class RoutingObjectReconciler:
    """Apply RouteMap and RoutingPrefixList objects."""

    def __init__(self, store: "ObjectStore", state: ReconcileState):
        self.store = store
        self.state = state

    async def apply(self, object_class: str, body: dict, tenant: str = COMMON) -> Any:
        """Create or update one object, migrating its route domain if needed.

        Args:
            object_class: RouteMap or RoutingPrefixList
            body: Appliance-shaped body; ``entries`` is a name-keyed mapping
            tenant: Partition holding the object
        """
        if object_class not in MIGRATING_CLASSES:
            raise ValueError(f"Not a routing class with a route domain: {object_class}")

        collection = PATHS[object_class]
        name = body["name"]
        current = self.state.current_object(object_class, name, tenant)

        if not route_domain_changed(current, body):
            return await self.store.create_or_modify(collection, body, MEDIUM_RETRY)

        path = item_path(collection, name, tenant)
        logger.info(
            f"Moving {object_class} {name} from route domain "
            f"{current.get('routeDomain')} to {body.get('routeDomain')}"
        )
        bare = {k: v for k, v in body.items() if k != "entries"}
        await self.store.transaction([
            TransactionCommand(OperationMethod.DELETE, path),
            TransactionCommand(OperationMethod.CREATE, collection, bare),
        ])

        entries = body.get("entries")
        if not entries:
            return None
        return await self.store.modify(path, {"entries": entries}, MEDIUM_RETRY)

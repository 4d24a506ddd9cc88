"""GSLB handler: global settings, monitors, data centers, prober pools, servers."""
import asyncio
import logging
from typing import TYPE_CHECKING

from ..constants import COMMON, GSLB_LINKED_CLASSES, PATHS, item_path
from ..engine.schema import (
    Declaration,
    HandlerStatus,
    OperationMethod,
    ReconcileState,
    TransactionCommand,
    compact,
    for_each,
)
from ..errors import annotate
from ..utils.logging_config import timed
from ..utils.retry import MEDIUM_RETRY
from .base import Handler

if TYPE_CHECKING:
    from ..store.base import ObjectStore

logger = logging.getLogger(__name__)


def general_body(general: dict) -> dict:
    return compact({
        "synchronization": "yes" if general.get("synchronizationEnabled") else "no",
        "synchronizationGroupName": general.get("synchronizationGroupName"),
        "synchronizationTimeTolerance": general.get("synchronizationTimeTolerance"),
        "synchronizationTimeout": general.get("synchronizationTimeout"),
    })


def monitor_body(tenant: str, name: str, monitor: dict) -> dict:
    body = {k: v for k, v in monitor.items() if k not in ("class", "monitorType", "remark")}
    body.update({"name": name, "partition": tenant})
    if monitor.get("remark") is not None:
        body["description"] = monitor["remark"]
    return compact(body)


def data_center_body(tenant: str, name: str, data_center: dict) -> dict:
    return compact({
        "name": name,
        "partition": tenant,
        "contact": data_center.get("contact"),
        "enabled": data_center.get("enabled"),
        "location": data_center.get("location"),
        "proberFallback": data_center.get("proberFallback"),
        "proberPreference": data_center.get("proberPreferred"),
        "proberPool": data_center.get("proberPool"),
    })


def prober_pool_body(tenant: str, name: str, pool: dict) -> dict:
    members = [
        compact({
            "name": member["server"],
            "order": member.get("order"),
            "enabled": member.get("enabled"),
            "description": member.get("remark"),
        })
        for member in pool.get("members") or []
    ]
    return compact({
        "name": name,
        "partition": tenant,
        "description": pool.get("remark"),
        "enabled": pool.get("enabled"),
        "loadBalancingMode": pool.get("lbMode"),
        "members": members,
    })


def server_body(tenant: str, name: str, server: dict) -> dict:
    body = {k: v for k, v in server.items() if k not in ("class", "remark")}
    body.update({"name": name, "partition": tenant})
    if server.get("remark") is not None:
        body["description"] = server["remark"]
    return compact(body)


BODY_BUILDERS = {
    "GSLBProberPool": prober_pool_body,
    "GSLBServer": server_body,
    "GSLBDataCenter": data_center_body,
}


class GslbHandler(Handler):
    """Apply GSLB objects."""

    name = "gslb"

    @timed("gslb")
    async def process(
        self,
        declaration: Declaration,
        store: "ObjectStore",
        state: ReconcileState,
    ) -> HandlerStatus:
        if COMMON not in declaration:
            return HandlerStatus()

        logger.info("Processing GSLB declaration")
        with annotate(self.name, "GSLBGlobals"):
            await self._handle_globals(declaration, store)
        with annotate(self.name, "GSLBMonitor"):
            await self._handle_monitors(declaration, store)
        with annotate(self.name, "GSLB"):
            await self._handle_linked(declaration, store, state)
        return HandlerStatus()

    async def _handle_globals(self, declaration: Declaration, store: "ObjectStore") -> None:
        general = ((declaration.get(COMMON) or {}).get("GSLBGlobals") or {}).get("general")
        if general:
            await store.modify(PATHS["GSLBGeneral"], general_body(general), MEDIUM_RETRY)

    async def _handle_monitors(self, declaration: Declaration, store: "ObjectStore") -> None:
        await asyncio.gather(*[
            store.create_or_modify(
                f"{PATHS['GSLBMonitor']}/{monitor['monitorType']}",
                monitor_body(tenant, name, monitor),
                MEDIUM_RETRY,
            )
            for tenant, name, monitor in for_each(declaration, "GSLBMonitor")
        ])

    async def _handle_linked(
        self, declaration: Declaration, store: "ObjectStore", state: ReconcileState
    ) -> None:
        """Data centers, prober pools and servers reference one another, so
        they are applied together in a single transaction."""
        commands = []
        for object_class in GSLB_LINKED_CLASSES:
            build = BODY_BUILDERS[object_class]
            for tenant, name, obj in for_each(declaration, object_class):
                body = build(tenant, name, obj)
                if state.current_object(object_class, name, tenant) is not None:
                    commands.append(TransactionCommand(
                        OperationMethod.MODIFY,
                        item_path(PATHS[object_class], name, tenant),
                        body,
                    ))
                else:
                    commands.append(TransactionCommand(
                        OperationMethod.CREATE, PATHS[object_class], body
                    ))
        if commands:
            logger.info(f"Applying {len(commands)} GSLB objects in one transaction")
            await store.transaction(commands)

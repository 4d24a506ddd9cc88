"""Self IP replacement sequencing.

The appliance cannot modify a self IP in place, so every changed self IP is
deleted and re-created. Deleting one is rejected while something depends on
it:

- a static route whose gateway sits in its subnet,
- a floating self IP in the subnet of a non-floating one,
- the cluster's config sync address.

The reconciler first works out everything that has to move out of the way
(a SelfIpPlan), then deletes and re-creates in dependency order:

    delete: routes -> side-effect floaters -> floating targets -> non-floating targets
    create: non-floating targets -> floating targets -> side-effect floaters
            -> restore sync address -> routes
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from ..constants import COMMON, PATHS, SYNC_IP_NONE, is_floating, item_path
from ..utils.retry import MEDIUM_RETRY, SHORT_RETRY
from .schema import ReconcileState, compact
from .subnet import addresses_match, is_in_subnet, strip_cidr

if TYPE_CHECKING:
    from ..store.base import ObjectStore

logger = logging.getLogger(__name__)

SELF_IP_FIELDS = ("name", "partition", "vlan", "address", "trafficGroup", "allowService")
ROUTE_FIELDS = ("name", "partition", "gw", "network", "mtu")


def _key(body: dict) -> tuple[str, str]:
    return body.get("partition", COMMON), body["name"]


def _prior_body(item: dict, keys: tuple[str, ...]) -> dict:
    return compact({k: item.get(k) for k in keys})


@dataclass
class SelfIpPlan:
    """Everything that must be deleted and re-created to replace self IPs."""
    non_floating: list[dict] = field(default_factory=list)
    floating: list[dict] = field(default_factory=list)
    existing: list[dict] = field(default_factory=list)
    routes: list[dict] = field(default_factory=list)
    side_effect_floaters: list[dict] = field(default_factory=list)
    sync_ip: Optional[str] = None

    @property
    def clears_sync_ip(self) -> bool:
        return self.sync_ip is not None

    @property
    def existing_floating(self) -> list[dict]:
        return [b for b in self.existing if is_floating(b.get("trafficGroup", ""))]

    @property
    def existing_non_floating(self) -> list[dict]:
        return [b for b in self.existing if not is_floating(b.get("trafficGroup", ""))]


class SelfIpReconciler:
    """Plan and apply self IP replacement."""

    def __init__(self, store: "ObjectStore", state: ReconcileState):
        self.store = store
        self.state = state

    async def reconcile(self, self_ips: list[dict]) -> SelfIpPlan:
        """Replace the given self IPs, moving dependents out of the way."""
        plan = await self.plan(self_ips)
        await self.execute(plan)
        return plan

    async def plan(self, self_ips: list[dict]) -> SelfIpPlan:
        """Work out what has to be deleted and re-created."""
        plan = SelfIpPlan()
        for body in self_ips:
            if is_floating(body.get("trafficGroup", "")):
                plan.floating.append(body)
            else:
                plan.non_floating.append(body)

        if not self_ips:
            return plan

        probes = await asyncio.gather(*[
            self.store.exists(
                item_path(PATHS["SelfIp"], body["name"], body.get("partition", COMMON)),
                SHORT_RETRY,
            )
            for body in self_ips
        ])
        plan.existing = [body for body, exists in zip(self_ips, probes) if exists]
        if not plan.existing:
            return plan

        current_self_ips = await self.store.list_items(PATHS["SelfIp"], SHORT_RETRY)
        current_by_key = {_key(item): item for item in current_self_ips if "name" in item}

        # Addresses whose subnets are going away: the current one if the
        # appliance reported it, and the declared one.
        target_keys = {_key(body) for body in self_ips}
        subnets: list[tuple[dict, list[str]]] = []
        deleted_addresses: list[str] = []
        for body in plan.existing:
            current = current_by_key.get(_key(body), {})
            addresses = [a for a in (current.get("address"), body.get("address")) if a]
            subnets.append((body, addresses))
            deleted_addresses.append(current.get("address") or body.get("address", ""))

        plan.routes = await self._find_matching_routes(subnets)

        non_floating_subnets = [
            address
            for body, addresses in subnets
            if not is_floating(body.get("trafficGroup", ""))
            for address in addresses
        ]
        for item in current_self_ips:
            if not is_floating(item.get("trafficGroup", "")):
                continue
            if _key(item) in target_keys:
                continue
            if any(is_in_subnet(strip_cidr(item.get("address", "")), subnet)
                   for subnet in non_floating_subnets):
                plan.side_effect_floaters.append(_prior_body(item, SELF_IP_FIELDS))
                deleted_addresses.append(item.get("address", ""))

        sync_ip = self._current_sync_ip()
        if sync_ip and any(addresses_match(sync_ip, a) for a in deleted_addresses):
            plan.sync_ip = sync_ip

        logger.info(
            f"Self IP plan: {len(plan.existing)} to replace, "
            f"{len(plan.routes)} routes and {len(plan.side_effect_floaters)} "
            f"floating self IPs to move, sync address "
            f"{'cleared' if plan.clears_sync_ip else 'untouched'}"
        )
        return plan

    async def execute(self, plan: SelfIpPlan) -> None:
        """Delete and re-create in dependency order."""
        if plan.clears_sync_ip:
            logger.info(f"Clearing config sync address {plan.sync_ip} before self IP delete")
            await self.store.config_sync_ip(SYNC_IP_NONE, SHORT_RETRY)

        await self._delete_all(PATHS["Route"], plan.routes)
        await self._delete_all(PATHS["SelfIp"], plan.side_effect_floaters)
        await self._delete_all(PATHS["SelfIp"], plan.existing_floating)
        await self._delete_all(PATHS["SelfIp"], plan.existing_non_floating)

        await self._create_all(PATHS["SelfIp"], plan.non_floating)
        await self._create_all(PATHS["SelfIp"], plan.floating)
        await self._create_all(PATHS["SelfIp"], plan.side_effect_floaters)

        if plan.clears_sync_ip:
            logger.info(f"Restoring config sync address {plan.sync_ip}")
            await self.store.config_sync_ip(strip_cidr(plan.sync_ip), SHORT_RETRY)

        await self._create_all(PATHS["Route"], plan.routes)

    async def _find_matching_routes(
        self, subnets: list[tuple[dict, list[str]]]
    ) -> list[dict]:
        """Current routes whose gateway lies in a subnet being deleted."""
        routes = await self.store.list_items(PATHS["Route"], SHORT_RETRY)
        matching: dict[tuple[str, str], dict] = {}
        for route in routes:
            gateway = route.get("gw")
            if not gateway or "name" not in route:
                continue
            for _, addresses in subnets:
                if any(is_in_subnet(gateway, address) for address in addresses):
                    matching.setdefault(_key(route), _prior_body(route, ROUTE_FIELDS))
                    break
        return list(matching.values())

    def _current_sync_ip(self) -> Optional[str]:
        config_sync: Any = (self.state.current_config.get(COMMON) or {}).get("ConfigSync") or {}
        address = config_sync.get("configsyncIp")
        if not address or address == SYNC_IP_NONE:
            return None
        return address

    async def _delete_all(self, collection: str, bodies: list[dict]) -> None:
        await asyncio.gather(*[
            self.store.delete(
                item_path(collection, body["name"], body.get("partition", COMMON)),
                MEDIUM_RETRY,
            )
            for body in bodies
        ])

    async def _create_all(self, collection: str, bodies: list[dict]) -> None:
        await asyncio.gather(*[
            self.store.create(collection, body, MEDIUM_RETRY)
            for body in bodies
        ])

"""Network handler: trunks, VLANs, route domains, self IPs, routes, routing."""
import asyncio
import logging
from typing import TYPE_CHECKING, Any, Optional

from ..constants import (
    COMMON,
    LOCAL_ONLY,
    PATHS,
    ROUTING_DB_VARIABLE,
    item_path,
)
from ..engine.route_domain import RouteDomainReconciler
from ..engine.routing import RoutingObjectReconciler, entries_by_name
from ..engine.schema import (
    Declaration,
    HandlerStatus,
    ReconcileState,
    compact,
    for_each,
    get_class_objects,
    qualify,
)
from ..engine.self_ip import SelfIpReconciler
from ..engine.subnet import host_network
from ..errors import annotate
from ..utils.logging_config import timed
from ..utils.retry import MEDIUM_RETRY, NO_RETRY, SHORT_RETRY
from .base import Handler

if TYPE_CHECKING:
    from ..store.base import ObjectStore

logger = logging.getLogger(__name__)


def enabled(value: Any) -> Optional[str]:
    return None if value is None else ("enabled" if value else "disabled")


def yes_no(value: Any) -> str:
    return "yes" if value else "no"


# === Body builders ===

def trunk_body(name: str, trunk: dict) -> dict:
    return compact({
        "name": name,
        "distributionHash": trunk.get("distributionHash"),
        "interfaces": trunk.get("interfaces"),
        "lacp": "enabled" if trunk.get("lacpEnabled") else "disabled",
        "lacpMode": trunk.get("lacpMode"),
        "lacpTimeout": trunk.get("lacpTimeout"),
        "linkSelectPolicy": trunk.get("linkSelectPolicy"),
        "qinqEthertype": trunk.get("qinqEthertype"),
        "stp": "enabled" if trunk.get("spanningTreeEnabled") else "disabled",
    })


def vlan_body(tenant: str, name: str, vlan: dict) -> dict:
    tag = vlan.get("tag")
    interfaces = []
    for interface in vlan.get("interfaces") or []:
        tagged = interface.get("tagged")
        interfaces.append({
            "name": interface["name"],
            "tagged": bool(tag) if tagged is None else tagged,
        })
    return compact({
        "name": name,
        "partition": tenant,
        "interfaces": interfaces,
        "cmpHash": vlan.get("cmpHash"),
        "failsafe": "enabled" if vlan.get("failsafeEnabled") else "disabled",
        "failsafeAction": vlan.get("failsafeAction"),
        "failsafeTimeout": vlan.get("failsafeTimeout"),
        "mtu": vlan.get("mtu") or None,
        "tag": tag or None,
    })


def dns_resolver_body(tenant: str, name: str, resolver: dict) -> dict:
    forward_zones: Any = "none"
    if resolver.get("forwardZones"):
        forward_zones = [
            {
                "name": zone["name"],
                "nameservers": [
                    ns if isinstance(ns, dict) else {"name": ns}
                    for ns in zone.get("nameservers") or []
                ],
            }
            for zone in resolver["forwardZones"]
        ]
    return compact({
        "name": name,
        "partition": tenant,
        "answerDefaultZones": yes_no(resolver.get("answerDefaultZones")),
        "cacheSize": resolver.get("cacheSize"),
        "forwardZones": forward_zones,
        "randomizeQueryNameCase": yes_no(resolver.get("randomizeQueryNameCase")),
        "routeDomain": resolver.get("routeDomain"),
        "useIpv4": yes_no(resolver.get("useIpv4")),
        "useIpv6": yes_no(resolver.get("useIpv6")),
        "useTcp": yes_no(resolver.get("useTcp")),
        "useUdp": yes_no(resolver.get("useUdp")),
    })


def tunnel_body(tenant: str, name: str, tunnel: dict) -> dict:
    return compact({
        "name": name,
        "partition": tenant,
        "autoLasthop": tunnel.get("autoLastHop"),
        "mtu": tunnel.get("mtu"),
        "profile": f"/{COMMON}/{tunnel['tunnelType']}",
        "tos": tunnel.get("typeOfService"),
        "usePmtu": "enabled" if tunnel.get("usePmtu") else "disabled",
    })


def self_ip_body(tenant: str, name: str, self_ip: dict) -> dict:
    vlan = self_ip.get("vlan")
    return compact({
        "name": name,
        "partition": tenant,
        "vlan": qualify(vlan, tenant) if vlan else None,
        "address": self_ip.get("address"),
        "trafficGroup": self_ip.get("trafficGroup"),
        "allowService": self_ip.get("allowService"),
    })


def route_body(tenant: str, name: str, route: dict) -> dict:
    body = {
        "name": name,
        "partition": LOCAL_ONLY if route.get("localOnly") else tenant,
        "network": host_network(route["network"]),
        "mtu": route.get("mtu"),
    }
    if route.get("target"):
        body["interface"] = qualify(route["target"], tenant)
    else:
        body["gw"] = route.get("gw")
    return compact(body)


def route_map_body(tenant: str, name: str, route_map: dict) -> dict:
    return compact({
        "name": name,
        "partition": tenant,
        "routeDomain": route_map.get("routeDomain"),
        "entries": entries_by_name(route_map.get("entries")),
    })


def prefix_list_body(tenant: str, name: str, prefix_list: dict) -> dict:
    entries = [
        compact({
            "name": entry["name"],
            "action": entry.get("action"),
            "prefix": entry.get("prefix"),
            "prefixLenRange": entry.get("prefixLengthRange"),
        })
        for entry in prefix_list.get("entries") or []
    ]
    return compact({
        "name": name,
        "partition": tenant,
        "routeDomain": prefix_list.get("routeDomain"),
        "entries": entries_by_name(entries),
    })


def as_path_body(tenant: str, name: str, as_path: dict) -> dict:
    entries = [
        {"name": entry["name"], "action": "permit", "regex": entry.get("regex")}
        for entry in as_path.get("entries") or []
    ]
    return {"name": name, "partition": tenant, "entries": entries_by_name(entries)}


def access_list_body(tenant: str, name: str, access_list: dict) -> dict:
    entries = [
        compact({
            "name": entry["name"],
            "action": entry.get("action"),
            "destination": entry.get("destination"),
            "source": entry.get("source"),
            "exactMatch": enabled(entry.get("exactMatch")),
        })
        for entry in access_list.get("entries") or []
    ]
    return {"name": name, "partition": tenant, "entries": entries_by_name(entries)}


def management_route_body(tenant: str, name: str, route: dict) -> dict:
    return compact({
        "name": name,
        "partition": tenant,
        "gateway": route.get("gw"),
        "network": route.get("network"),
        "mtu": route.get("mtu"),
        "type": route.get("type"),
    })


class NetworkHandler(Handler):
    """Apply network objects in dependency order.

    Trunk -> VLAN -> RouteDomain -> DNS_Resolver -> Tunnel -> SelfIp -> Route
    -> RouteMap/RoutingPrefixList -> RoutingAsPath -> RoutingAccessList
    -> ManagementRoute
    """

    name = "network"

    def __init__(self):
        self._routing_enabled = False

    @timed("network")
    async def process(
        self,
        declaration: Declaration,
        store: "ObjectStore",
        state: ReconcileState,
    ) -> HandlerStatus:
        logger.info("Processing network declaration")
        self._routing_enabled = False

        steps = [
            ("Trunk", self._handle_trunks),
            ("VLAN", self._handle_vlans),
            ("RouteDomain", self._handle_route_domains),
            ("DNS_Resolver", self._handle_dns_resolvers),
            ("Tunnel", self._handle_tunnels),
            ("SelfIp", self._handle_self_ips),
            ("Route", self._handle_routes),
            ("RouteMap", self._handle_route_maps_and_prefix_lists),
            ("RoutingAsPath", self._handle_as_paths),
            ("RoutingAccessList", self._handle_access_lists),
            ("ManagementRoute", self._handle_management_routes),
        ]
        for object_class, step in steps:
            with annotate(self.name, object_class):
                await step(declaration, store, state)
        return HandlerStatus()

    async def _create_or_modify_all(
        self, store: "ObjectStore", collection: str, bodies: list[dict]
    ) -> None:
        await asyncio.gather(*[
            store.create_or_modify(collection, body, MEDIUM_RETRY) for body in bodies
        ])

    async def _handle_trunks(self, declaration, store, state) -> None:
        bodies = [trunk_body(name, t) for _, name, t in for_each(declaration, "Trunk")]
        await self._create_or_modify_all(store, PATHS["Trunk"], bodies)

    async def _handle_vlans(self, declaration, store, state) -> None:
        bodies = [vlan_body(tenant, name, v) for tenant, name, v in for_each(declaration, "VLAN")]
        await self._create_or_modify_all(store, PATHS["VLAN"], bodies)

    async def _handle_route_domains(self, declaration, store, state) -> None:
        if not (get_class_objects(state.declaration, "RouteDomain")
                or get_class_objects(declaration, "RouteDomain")):
            return
        reconciler = RouteDomainReconciler(store, state)
        fixed = reconciler.fix(state.declaration, state.current_config)
        selected = reconciler.select(fixed, declaration, state.declaration)
        if selected:
            await reconciler.apply(selected)

    async def _handle_dns_resolvers(self, declaration, store, state) -> None:
        bodies = [
            dns_resolver_body(tenant, name, r)
            for tenant, name, r in for_each(declaration, "DNS_Resolver")
        ]
        await self._create_or_modify_all(store, PATHS["DNS_Resolver"], bodies)

    async def _handle_tunnels(self, declaration, store, state) -> None:
        bodies = [
            tunnel_body(tenant, name, t)
            for tenant, name, t in for_each(declaration, "Tunnel")
            if t.get("tunnelType")
        ]
        await self._create_or_modify_all(store, PATHS["Tunnel"], bodies)

    async def _handle_self_ips(self, declaration, store, state) -> None:
        bodies = [
            self_ip_body(tenant, name, s)
            for tenant, name, s in for_each(declaration, "SelfIp")
        ]
        if bodies:
            await SelfIpReconciler(store, state).reconcile(bodies)

    async def _handle_routes(self, declaration, store, state) -> None:
        routes = list(for_each(declaration, "Route"))
        if not routes:
            return

        if any(route.get("localOnly") for _, _, route in routes):
            await store.create_or_modify(
                PATHS["Folder"], {"name": LOCAL_ONLY, "subPath": "/"}, MEDIUM_RETRY
            )

        async def apply_route(tenant: str, name: str, route: dict) -> None:
            body = route_body(tenant, name, route)
            current = state.current_object("Route", name)
            network = current.get("network") if current else None
            if network and host_network(network) != body["network"]:
                logger.info(f"Route {name} network changed, deleting before re-create")
                await store.delete(
                    item_path(PATHS["Route"], name, body["partition"]), NO_RETRY
                )
            await store.create_or_modify(PATHS["Route"], body, MEDIUM_RETRY)

        await asyncio.gather(*[apply_route(*route) for route in routes])

    async def _enable_routing(self, store: "ObjectStore") -> None:
        if self._routing_enabled:
            return
        self._routing_enabled = True
        logger.info("Enabling dynamic routing")
        await store.modify(
            f"{PATHS['DbVariable']}/{ROUTING_DB_VARIABLE}", {"value": "enable"}, SHORT_RETRY
        )

    async def _handle_route_maps_and_prefix_lists(self, declaration, store, state) -> None:
        builders = {"RouteMap": route_map_body, "RoutingPrefixList": prefix_list_body}
        objects = [
            (object_class, tenant, builders[object_class](tenant, name, body))
            for object_class in ("RoutingPrefixList", "RouteMap")
            for tenant, name, body in for_each(declaration, object_class)
        ]
        if not objects:
            return
        await self._enable_routing(store)
        reconciler = RoutingObjectReconciler(store, state)
        for object_class in ("RoutingPrefixList", "RouteMap"):
            await asyncio.gather(*[
                reconciler.apply(cls, body, tenant)
                for cls, tenant, body in objects
                if cls == object_class
            ])

    async def _handle_as_paths(self, declaration, store, state) -> None:
        bodies = [
            as_path_body(tenant, name, a)
            for tenant, name, a in for_each(declaration, "RoutingAsPath")
            if a.get("entries")
        ]
        if bodies:
            await self._enable_routing(store)
            await self._create_or_modify_all(store, PATHS["RoutingAsPath"], bodies)

    async def _handle_access_lists(self, declaration, store, state) -> None:
        bodies = [
            access_list_body(tenant, name, a)
            for tenant, name, a in for_each(declaration, "RoutingAccessList")
        ]
        if bodies:
            await self._enable_routing(store)
            await self._create_or_modify_all(store, PATHS["RoutingAccessList"], bodies)

    async def _handle_management_routes(self, declaration, store, state) -> None:
        bodies = [
            management_route_body(tenant, name, r)
            for tenant, name, r in for_each(declaration, "ManagementRoute")
        ]
        await self._create_or_modify_all(store, PATHS["ManagementRoute"], bodies)

"""Route domain handling.

Route domain 0 always exists on the appliance: it is never created or
deleted, only modified, and always addressed by the name "0" whatever key
the declaration used for it.

A route domain's ``vlans`` list is authoritative: leaving a VLAN out
detaches it. The fixes below make sure every declared VLAN ends up in some
route domain and that VLANs still attached on the appliance are not
silently dropped.
"""
import copy
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from ..constants import COMMON, DEFAULT_ROUTE_DOMAIN, PATHS, item_path
from ..utils.retry import MEDIUM_RETRY
from .schema import (
    Declaration,
    OperationMethod,
    ReconcileState,
    TransactionCommand,
    compact,
    get_class_objects,
)

if TYPE_CHECKING:
    from ..store.base import ObjectStore

logger = logging.getLogger(__name__)


@dataclass
class TmosName:
    """A parsed ``/partition/folder/name`` reference."""
    name: str
    partition: str = COMMON
    folder: str = ""

    @classmethod
    def parse(cls, value: str) -> "TmosName":
        if not value.startswith("/"):
            return cls(name=value)
        parts = value.split("/")
        if len(parts) > 3:
            return cls(name=parts[3], partition=parts[1], folder=parts[2])
        return cls(name=parts[2], partition=parts[1])

    @property
    def full_name(self) -> str:
        folder = f"{self.folder}/" if self.folder else ""
        return f"/{self.partition}/{folder}{self.name}"

    @property
    def is_common(self) -> bool:
        return self.partition == COMMON and not self.folder


def is_default(route_domain: dict) -> bool:
    return str(route_domain.get("id")) == DEFAULT_ROUTE_DOMAIN


def route_domain_body(name: str, route_domain: dict, tenant: str = COMMON) -> dict:
    """Map a declared route domain onto the appliance's property names."""
    strict = route_domain.get("strict")
    return compact({
        "name": name,
        "partition": tenant,
        "id": route_domain.get("id"),
        "parent": route_domain.get("parent"),
        "connectionLimit": route_domain.get("connectionLimit"),
        "bwcPolicy": route_domain.get("bandwidthControllerPolicy"),
        "flowEvictionPolicy": route_domain.get("flowEvictionPolicy"),
        "fwEnforcedPolicy": route_domain.get("enforcedFirewallPolicy"),
        "fwStagedPolicy": route_domain.get("stagedFirewallPolicy"),
        "ipIntelligencePolicy": route_domain.get("ipIntelligencePolicy"),
        "securityNatPolicy": route_domain.get("securityNatPolicy"),
        "servicePolicy": route_domain.get("servicePolicy"),
        "strict": None if strict is None else ("enabled" if strict else "disabled"),
        "routingProtocol": route_domain.get("routingProtocols"),
        "vlans": route_domain.get("vlans"),
    })


class RouteDomainReconciler:
    """Fix up declared route domains and apply them."""

    def __init__(self, store: "ObjectStore", state: ReconcileState):
        self.store = store
        self.state = state

    # === Declaration fixes ===

    def fix(self, declaration: Declaration, current_config: Declaration) -> dict[str, dict]:
        """Return a fixed copy of the declared Common route domains."""
        route_domains = copy.deepcopy(get_class_objects(declaration, "RouteDomain"))
        route_domains = self._fix_default(route_domains, current_config)
        if route_domains:
            self._fix_vlans(route_domains, declaration, current_config)
        return route_domains

    def _fix_default(
        self, route_domains: dict[str, dict], current_config: Declaration
    ) -> dict[str, dict]:
        """Rename the id 0 route domain to "0", or copy it from the appliance."""
        fixed: dict[str, dict] = {}
        for name, route_domain in route_domains.items():
            if is_default(route_domain):
                if DEFAULT_ROUTE_DOMAIN in fixed:
                    logger.warning(
                        f"Route domain '{name}' also declares id 0; it replaces the earlier one"
                    )
                route_domain["name"] = DEFAULT_ROUTE_DOMAIN
                fixed[DEFAULT_ROUTE_DOMAIN] = route_domain
            else:
                fixed[name] = route_domain

        current = get_class_objects(current_config, "RouteDomain")
        if fixed and DEFAULT_ROUTE_DOMAIN not in fixed and DEFAULT_ROUTE_DOMAIN in current:
            fixed[DEFAULT_ROUTE_DOMAIN] = copy.deepcopy(current[DEFAULT_ROUTE_DOMAIN])
        return fixed

    def _fix_vlans(
        self,
        route_domains: dict[str, dict],
        declaration: Declaration,
        current_config: Declaration,
    ) -> None:
        """Fold unassigned VLANs into route domain 0 and keep attached ones."""
        unassigned = list(get_class_objects(declaration, "VLAN").keys())

        # VLANs (Common, no folder) attached on the appliance but not declared
        attached: dict[str, str] = {}
        for current in get_class_objects(current_config, "RouteDomain").values():
            for vlan in current.get("vlans") or []:
                parsed = TmosName.parse(vlan)
                if parsed.is_common and parsed.name not in unassigned:
                    attached[parsed.full_name] = str(current.get("id"))

        by_id: dict[str, dict] = {}
        for route_domain in route_domains.values():
            by_id[str(route_domain.get("id"))] = route_domain
            if route_domain.get("vlans") is None:
                continue

            kept = []
            for vlan in route_domain["vlans"]:
                parsed = TmosName.parse(vlan)
                if parsed.is_common:
                    if parsed.name in unassigned:
                        unassigned.remove(parsed.name)
                    elif parsed.full_name in attached:
                        del attached[parsed.full_name]
                    else:
                        logger.debug(f"Dropping unknown VLAN {vlan} from route domain")
                        continue
                kept.append(vlan)
            route_domain["vlans"] = kept

        if unassigned and DEFAULT_ROUTE_DOMAIN in route_domains:
            default = route_domains[DEFAULT_ROUTE_DOMAIN]
            default["vlans"] = (default.get("vlans") or []) + unassigned

        # Omitting a VLAN detaches it, so put back the ones still attached
        for vlan, route_domain_id in attached.items():
            route_domain = by_id.get(route_domain_id)
            if route_domain is not None:
                route_domain["vlans"] = (route_domain.get("vlans") or []) + [vlan]

    # === Selection ===

    def select(
        self,
        fixed: dict[str, dict],
        to_update: Declaration,
        declaration: Declaration,
    ) -> dict[str, dict]:
        """Route domains to apply: those in the diff plus those the fix changed."""
        names = set()
        for name, route_domain in get_class_objects(to_update, "RouteDomain").items():
            names.add(DEFAULT_ROUTE_DOMAIN if is_default(route_domain) else name)

        declared = {
            (DEFAULT_ROUTE_DOMAIN if is_default(rd) else name): rd
            for name, rd in get_class_objects(declaration, "RouteDomain").items()
        }
        current = self.state.current("RouteDomain")
        for name, route_domain in fixed.items():
            vlans = route_domain.get("vlans")
            if vlans is None or name in names:
                continue
            changed_by_fix = vlans != (declared.get(name) or {}).get("vlans")
            current_vlans = (current.get(name) or {}).get("vlans") or []
            if changed_by_fix and sorted(vlans) != sorted(current_vlans):
                names.add(name)

        return {name: fixed[name] for name in fixed if name in names}

    # === Apply ===

    async def apply(self, route_domains: dict[str, dict]) -> Optional[dict]:
        """Apply route domains: "0" on its own, the rest in one transaction."""
        current = self.state.current("RouteDomain")

        default = route_domains.get(DEFAULT_ROUTE_DOMAIN)
        if default is not None:
            body = route_domain_body(DEFAULT_ROUTE_DOMAIN, default)
            for immutable in ("name", "partition", "id"):
                body.pop(immutable, None)
            logger.info("Modifying default route domain 0")
            await self.store.modify(
                item_path(PATHS["RouteDomain"], DEFAULT_ROUTE_DOMAIN), body, MEDIUM_RETRY
            )

        commands = []
        for name, route_domain in route_domains.items():
            if name == DEFAULT_ROUTE_DOMAIN:
                continue
            body = route_domain_body(name, route_domain)
            if name in current:
                commands.append(TransactionCommand(
                    OperationMethod.MODIFY, item_path(PATHS["RouteDomain"], name), body
                ))
            else:
                commands.append(TransactionCommand(
                    OperationMethod.CREATE, PATHS["RouteDomain"], body
                ))

        if not commands:
            return None
        logger.info(f"Applying {len(commands)} route domains in one transaction")
        return await self.store.transaction(commands)

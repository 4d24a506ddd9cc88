"""Device service clustering handler."""
import logging
from typing import TYPE_CHECKING, Any

from ..constants import COMMON, SYNC_IP_NONE
from ..engine.schema import Declaration, HandlerStatus, ReconcileState
from ..engine.subnet import strip_cidr
from ..errors import annotate
from ..utils.logging_config import timed
from ..utils.retry import MEDIUM_RETRY, SHORT_RETRY
from .base import Handler

if TYPE_CHECKING:
    from ..store.base import ObjectStore

logger = logging.getLogger(__name__)


def failover_unicast_body(failover_unicast: dict) -> dict[str, Any]:
    """Device body for the network failover unicast address.

    ``none`` clears the unicast address; anything else becomes a single
    ip/port entry with any CIDR suffix dropped.
    """
    address = failover_unicast.get("address") or SYNC_IP_NONE
    if address == SYNC_IP_NONE:
        return {"unicastAddress": SYNC_IP_NONE}
    return {
        "unicastAddress": [
            {"port": failover_unicast.get("port"), "ip": strip_cidr(address)},
        ],
    }


class DscHandler(Handler):
    """Set the local device's config sync and failover unicast addresses."""

    name = "dsc"

    @timed("dsc")
    async def process(
        self,
        declaration: Declaration,
        store: "ObjectStore",
        state: ReconcileState,
    ) -> HandlerStatus:
        common = declaration.get(COMMON) or {}

        config_sync = common.get("ConfigSync")
        if config_sync is not None:
            address = strip_cidr(config_sync.get("configsyncIp") or SYNC_IP_NONE)
            logger.info(f"Setting config sync address to {address}")
            with annotate(self.name, "ConfigSync"):
                await store.config_sync_ip(address, SHORT_RETRY)

        failover_unicast = common.get("FailoverUnicast")
        if failover_unicast is not None:
            body = failover_unicast_body(failover_unicast)
            logger.info(f"Setting failover unicast address: {body['unicastAddress']}")
            with annotate(self.name, "FailoverUnicast"):
                await store.modify_local_device(body, MEDIUM_RETRY)

        return HandlerStatus()

"""Module provisioning handlers.

Provisioning is split in two so that modules being turned off are
deprovisioned only after the objects they own have been deleted.
"""
import asyncio
import logging
from typing import TYPE_CHECKING

from ..constants import COMMON, PATHS, REBOOT_REQUIRED_MODULES
from ..engine.schema import Declaration, HandlerStatus, ReconcileState
from ..errors import annotate
from ..utils.logging_config import timed
from ..utils.retry import MEDIUM_RETRY
from .base import Handler

if TYPE_CHECKING:
    from ..store.base import ObjectStore

logger = logging.getLogger(__name__)

LEVEL_NONE = "none"


def provision_levels(declaration: Declaration) -> dict[str, str]:
    """Module -> level from a Common.Provision singleton."""
    provision = (declaration.get(COMMON) or {}).get("Provision") or {}
    return {
        module: level
        for module, level in provision.items()
        if module != "class" and isinstance(level, str)
    }


class ProvisionHandler(Handler):
    """Provision modules to any level other than ``none``."""

    name = "provision"
    rollback_key = "provisionHandler"

    def select(self, levels: dict[str, str], current: dict[str, str]) -> dict[str, str]:
        return {
            module: level for module, level in levels.items()
            if level != LEVEL_NONE and current.get(module) != level
        }

    @timed("provision")
    async def process(
        self,
        declaration: Declaration,
        store: "ObjectStore",
        state: ReconcileState,
    ) -> HandlerStatus:
        current = provision_levels(state.current_config)
        changes = self.select(provision_levels(declaration), current)
        if not changes:
            return HandlerStatus()

        logger.info(f"Provisioning modules: {changes}")
        with annotate(self.name, "Provision"):
            await asyncio.gather(*[
                store.modify(f"{PATHS['Provision']}/{module}", {"level": level}, MEDIUM_RETRY)
                for module, level in changes.items()
            ])

        reboot_required = bool(REBOOT_REQUIRED_MODULES & set(changes))
        if reboot_required:
            logger.warning(f"Provisioning {sorted(REBOOT_REQUIRED_MODULES & set(changes))} "
                           f"requires a reboot")
        return HandlerStatus(
            reboot_required=reboot_required,
            rollback_info={self.rollback_key: {"Provision": dict(current)}},
        )


class DeprovisionHandler(ProvisionHandler):
    """Set modules to ``none`` once their objects are gone."""

    name = "deprovision"

    def select(self, levels: dict[str, str], current: dict[str, str]) -> dict[str, str]:
        return {
            module: level for module, level in levels.items()
            if level == LEVEL_NONE and current.get(module, LEVEL_NONE) != LEVEL_NONE
        }

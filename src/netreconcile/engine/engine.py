"""Main reconcile engine - applies a diff to one appliance.

Provides a single entry point for:
1. Building the ordered handler list
2. Running the handlers against the appliance's object store
3. Aggregating reboot and rollback directives
"""
import copy
import logging
from typing import TYPE_CHECKING, Optional, Union

from ..handlers import (
    DeleteHandler,
    DeprovisionHandler,
    DscHandler,
    GslbHandler,
    NetworkHandler,
    ProvisionHandler,
)
from ..handlers.base import Handler
from ..utils.logging_config import timed_section
from .pipeline import HandlerPipeline
from .schema import Declaration, Diff, ReconcileResult, ReconcileState

if TYPE_CHECKING:
    from ..store.base import ObjectStore

logger = logging.getLogger(__name__)


def default_steps(diff: Diff) -> list[tuple[Handler, Declaration]]:
    """The standard handler order for a diff."""
    return [
        (ProvisionHandler(), diff.to_update),
        (NetworkHandler(), diff.to_update),
        (DscHandler(), diff.to_update),
        (GslbHandler(), diff.to_update),
        (DeleteHandler(), diff.to_delete),
        (DeprovisionHandler(), diff.to_update),
    ]


class ReconcileEngine:
    """
    Reconcile an appliance's live configuration toward a declaration.

    Usage:
        async with RestObjectStore(config) as store:
            engine = ReconcileEngine(store)
            result = await engine.apply(declaration, current_config, diff)
            if result.reboot_required:
                ...
    """

    def __init__(self, store: "ObjectStore"):
        self.store = store

    async def apply(
        self,
        declaration: Declaration,
        current_config: Declaration,
        diff: Union[Diff, dict],
        steps: Optional[list[tuple[Handler, Declaration]]] = None,
    ) -> ReconcileResult:
        """
        Apply a diff.

        Args:
            declaration: Full desired state
            current_config: Appliance state the diff was computed against
            diff: Diff, or a ``{"toUpdate": ..., "toDelete": ...}`` dict
            steps: Handler/declaration pairs to run instead of the default order

        Returns:
            ReconcileResult with the aggregated handler statuses

        Raises:
            ReconcileError: The first failure, annotated with where it happened
        """
        if isinstance(diff, dict):
            diff = Diff.from_dict(diff)
        diff = Diff(copy.deepcopy(diff.to_update), copy.deepcopy(diff.to_delete))

        state = ReconcileState(
            declaration=copy.deepcopy(declaration),
            current_config=copy.deepcopy(current_config),
        )
        if steps is None:
            steps = default_steps(diff)

        logger.info(f"Reconciling {self.store!r} with {len(steps)} handlers")
        async with timed_section("reconcile", appliance=self.store.name):
            statuses = await HandlerPipeline(self.store, state).process(steps)

        result = ReconcileResult.from_statuses(statuses)
        logger.info(
            f"Reconcile complete: reboot_required={result.reboot_required}, "
            f"rollback_info={sorted(result.rollback_info)}"
        )
        return result

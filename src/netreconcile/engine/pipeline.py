"""Sequential handler pipeline with fail-fast error handling."""
import logging
from typing import TYPE_CHECKING, Sequence

from ..errors import ReconcileError
from ..utils.logging_config import timed_section
from .schema import Declaration, HandlerStatus, ReconcileState

if TYPE_CHECKING:
    from ..handlers.base import Handler
    from ..store.base import ObjectStore

logger = logging.getLogger(__name__)


class HandlerPipeline:
    """
    Run handlers one after another against a single store.

    Each step is a ``(handler, declaration)`` pair. The first failure stops
    the pipeline; handlers that already ran are not undone.

    Usage:
        pipeline = HandlerPipeline(store, state)
        statuses = await pipeline.process([
            (NetworkHandler(), diff.to_update),
            (DeleteHandler(), diff.to_delete),
        ])
    """

    def __init__(self, store: "ObjectStore", state: ReconcileState):
        self.store = store
        self.state = state

    async def process(
        self, steps: Sequence[tuple["Handler", Declaration]]
    ) -> list[HandlerStatus]:
        """Run each handler in order and collect their statuses."""
        statuses: list[HandlerStatus] = []
        for handler, declaration in steps:
            logger.debug(f"Running {handler.name} handler")
            try:
                async with timed_section("handler", handler=handler.name):
                    status = await handler.process(declaration, self.store, self.state)
            except ReconcileError as e:
                logger.error(f"Handler {handler.name} failed: {e}")
                raise
            except Exception as e:
                logger.error(f"Handler {handler.name} failed: {e}")
                message = getattr(e, "message", None) or str(e)
                raise ReconcileError(message, handler.name) from e
            statuses.append(status or HandlerStatus())
        return statuses

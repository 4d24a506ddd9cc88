"""Delete handler."""
import logging
from typing import TYPE_CHECKING

from ..engine.delete import DeleteOrderingEngine
from ..engine.schema import Declaration, HandlerStatus, ReconcileState
from ..utils.logging_config import timed
from .base import Handler

if TYPE_CHECKING:
    from ..store.base import ObjectStore

logger = logging.getLogger(__name__)


class DeleteHandler(Handler):
    """Delete the objects in the ``toDelete`` half of a diff."""

    name = "delete"

    @timed("delete")
    async def process(
        self,
        declaration: Declaration,
        store: "ObjectStore",
        state: ReconcileState,
    ) -> HandlerStatus:
        if not declaration:
            logger.debug("Nothing to delete")
            return HandlerStatus()
        await DeleteOrderingEngine(store, state).delete(declaration)
        return HandlerStatus()

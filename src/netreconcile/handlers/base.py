"""Base handler abstraction."""
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

from ..engine.schema import Declaration, HandlerStatus, ReconcileState

if TYPE_CHECKING:
    from ..store.base import ObjectStore

logger = logging.getLogger(__name__)


class Handler(ABC):
    """Abstract base class for per-concern reconciliation handlers.

    A handler applies one slice of a declaration (network objects, GSLB,
    provisioning, deletes...) and reports what the caller must do next.
    Handlers keep no state between runs; build a new one per run.
    """

    name: str = "handler"

    @abstractmethod
    async def process(
        self,
        declaration: Declaration,
        store: "ObjectStore",
        state: ReconcileState,
    ) -> Optional[HandlerStatus]:
        """Apply the declaration slice.

        Args:
            declaration: Objects this handler should act on
            store: Object store for the target appliance
            state: Full declaration and current config for lookups

        Returns:
            HandlerStatus, or None when there is nothing to report
        """
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"

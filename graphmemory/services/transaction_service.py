# graphmemory/services/transaction_service.py
import inspect
import logging
from contextlib import asynccontextmanager
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable

from graphmemory.core.exceptions import TransactionStateException
from graphmemory.db.repositories.graph_store import GraphStore
from graphmemory.models.graph import Graph

logger = logging.getLogger(__name__)

RollbackAction = Callable[[], Awaitable[None] | None]


class TransactionState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    COMMITTING = "committing"
    ROLLING_BACK = "rolling_back"


class TransactionCoordinator:
    """
    Tracks one logical transaction at a time.

    Managers write through to the store immediately, so a transaction gives
    compensation, not isolation: every applied step must register its inverse
    with `add_rollback_action`, and `rollback` replays those inverses newest
    first. A failing inverse is logged and the remaining ones still run.
    """

    def __init__(self, store: GraphStore):
        self.store = store
        self.state = TransactionState.IDLE
        self._graph = Graph()
        self._rollback_actions: list[tuple[RollbackAction, str]] = []

    async def begin(self) -> None:
        if self.state is not TransactionState.IDLE:
            raise TransactionStateException("Transaction already in progress")

        # Claimed before the load so a concurrent begin fails instead of racing.
        self.state = TransactionState.ACTIVE
        try:
            self._graph = await self.store.load()
        except Exception:
            self.state = TransactionState.IDLE
            raise
        self._rollback_actions = []
        logger.debug("Transaction started")

    def add_rollback_action(self, action: RollbackAction, description: str) -> None:
        self._require_active("No transaction in progress")
        self._rollback_actions.append((action, description))

    async def commit(self) -> None:
        self._require_active("No transaction to commit")
        self.state = TransactionState.COMMITTING
        self._finish()
        logger.debug("Transaction committed")

    async def rollback(self) -> None:
        self._require_active("No transaction to rollback")
        self.state = TransactionState.ROLLING_BACK
        actions = list(reversed(self._rollback_actions))
        try:
            for action, description in actions:
                try:
                    result = action()
                    if inspect.isawaitable(result):
                        await result
                except Exception:
                    logger.exception("Rollback action failed (%s)", description)
        finally:
            self._finish()
        logger.debug("Transaction rolled back (%d actions)", len(actions))

    def is_in_transaction(self) -> bool:
        return self.state is not TransactionState.IDLE

    def get_current_graph(self) -> Graph:
        """The graph as it was when the active transaction began."""
        return self._graph

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["TransactionCoordinator"]:
        await self.begin()
        try:
            yield self
        except BaseException:
            # Cancellation included: applied steps are on disk either way.
            await self.rollback()
            raise
        await self.commit()

    def _require_active(self, message: str) -> None:
        if self.state is not TransactionState.ACTIVE:
            raise TransactionStateException(message)

    def _finish(self) -> None:
        self._rollback_actions = []
        self._graph = Graph()
        self.state = TransactionState.IDLE

"""
Historical diagnostic tasks keyed by viewer context

Each viewer (a student on their dashboard, a mentor looking at one student)
has at most one request in flight. Scheduling a new request cancels the
previous one, and a result is applied only if its request id is still the
active one for that viewer.
"""
import asyncio
import logging
import uuid
from typing import Callable, Dict

from oab_prep.schemas.analytics import DiagnosticState
from oab_prep.schemas.exam import Diagnostic

logger = logging.getLogger(__name__)


class DiagnosticTaskRegistry:
    """Request-id bookkeeping for asynchronous diagnostics"""

    def __init__(self):
        self._active: Dict[str, str] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._states: Dict[str, DiagnosticState] = {}
        self._history_sizes: Dict[str, int] = {}

    def schedule(
        self,
        context: str,
        target_user_id: str,
        history_size: int,
        compute: Callable[[], Diagnostic]
    ) -> str:
        """
        Start computing a diagnostic in a worker thread

        Must be called from within the running event loop.

        Returns:
            The request id now active for the context
        """
        self._cancel(context)

        request_id = str(uuid.uuid4())
        previous = self._states.get(context)
        keep = previous.diagnostic if previous and previous.target_user_id == target_user_id else None

        self._active[context] = request_id
        self._history_sizes[context] = history_size
        self._states[context] = DiagnosticState(
            status="pending",
            request_id=request_id,
            target_user_id=target_user_id,
            diagnostic=keep
        )
        self._tasks[context] = asyncio.get_running_loop().create_task(
            self._run(context, request_id, compute)
        )
        logger.debug(f"Diagnostic {request_id} scheduled for {context} -> {target_user_id}")
        return request_id

    def ensure_fresh(
        self,
        context: str,
        target_user_id: str,
        history_size: int,
        compute: Callable[[], Diagnostic]
    ) -> DiagnosticState:
        """Schedule a new request when the target or its history size changed"""
        state = self._states.get(context)
        if (
            state is None
            or state.target_user_id != target_user_id
            or self._history_sizes.get(context) != history_size
        ):
            self.schedule(context, target_user_id, history_size, compute)
        return self.state(context)

    def apply(self, context: str, request_id: str, diagnostic: Diagnostic) -> bool:
        """Store a finished diagnostic unless a newer request superseded it"""
        if self._active.get(context) != request_id:
            logger.debug(f"Discarding late diagnostic {request_id} for {context}")
            return False

        current = self._states[context]
        self._states[context] = current.model_copy(update={"status": "ready", "diagnostic": diagnostic})
        self._tasks.pop(context, None)
        return True

    def state(self, context: str) -> DiagnosticState:
        return self._states.get(context) or DiagnosticState(status="idle")

    def clear(self, context: str) -> None:
        """Viewer left; anything still in flight will be discarded"""
        self._cancel(context)
        self._active.pop(context, None)
        self._states.pop(context, None)
        self._history_sizes.pop(context, None)

    def _cancel(self, context: str) -> None:
        task = self._tasks.pop(context, None)
        if task is not None and not task.done():
            task.cancel()

    async def _run(self, context: str, request_id: str, compute: Callable[[], Diagnostic]) -> None:
        diagnostic = await asyncio.to_thread(compute)
        self.apply(context, request_id, diagnostic)


# Global instance
diagnostic_tasks = DiagnosticTaskRegistry()

"""Dispatcher routing validated tool calls to their implementations"""

import asyncio
import logging
import time
from typing import Any, Dict, Optional, Set

from ..models.tool import CallRequest, CallResult, Failure, Success, ToolDescriptor
from ..tools.base import call_details
from .error_handler import (
    OUTCOME_NO_SIDE_EFFECTS,
    OUTCOME_UNKNOWN,
    ErrorHandler,
    InvalidInput,
    Timeout,
    ToolError,
    UnknownTool,
    UpstreamFailure,
    ValidationError,
)
from .registry import RegisteredTool, ToolRegistry
from .validator import validate

logger = logging.getLogger(__name__)


def _annotated(error: ToolError, details: Dict[str, Any]) -> ToolError:
    """Add what the call recorded about itself, keeping the error's own details."""
    for key, value in details.items():
        error.details.setdefault(key, value)
    return error


class Dispatcher:
    """Validates, invokes and normalizes tool calls.

    Every call path ends in a ``CallResult``; nothing raised by a tool
    implementation escapes ``dispatch``. Calls are never retried here, since a
    state-changing tool must not be re-run without the client knowing.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        error_handler: Optional[ErrorHandler] = None,
        default_timeout: float = 30.0,
        timeout_overrides: Optional[Dict[str, float]] = None,
    ):
        self.registry = registry
        self.error_handler = error_handler or ErrorHandler()
        self.default_timeout = default_timeout
        self.timeout_overrides = dict(timeout_overrides or {})
        # Detached state-changing calls still running after their timeout
        self._detached: Set[asyncio.Task] = set()

    async def dispatch(
        self, tool_name: str, raw_args: Any, timeout: Optional[float] = None
    ) -> CallResult:
        """Dispatch a single tool call.

        Args:
            tool_name: Name of the registered tool
            raw_args: Unvalidated arguments from the client
            timeout: Optional per-call timeout override in seconds

        Returns:
            Success with the tool result, or Failure with a typed ToolError
        """
        started = time.perf_counter()

        entry = self.registry.lookup(tool_name)
        if entry is None:
            return self._fail(tool_name, UnknownTool(tool_name), started)

        try:
            args = validate(raw_args if raw_args is not None else {}, entry.descriptor.input_schema)
        except ValidationError as e:
            return self._fail(tool_name, InvalidInput(e, tool_name), started)

        budget = self.resolve_timeout(entry.descriptor, timeout)
        try:
            result = await self._invoke(entry, args, budget)
        except ToolError as e:
            return self._fail(tool_name, e, started)

        elapsed = time.perf_counter() - started
        logger.info(f"Tool {tool_name} succeeded in {elapsed:.3f}s")
        return Success(result)

    async def dispatch_request(self, request: CallRequest) -> CallResult:
        return await self.dispatch(request.tool_name, request.arguments, request.timeout)

    def resolve_timeout(self, descriptor: ToolDescriptor, timeout: Optional[float] = None) -> float:
        """Per-call override, then configured override, then the tool default."""
        if timeout is not None and timeout > 0:
            return timeout
        if descriptor.name in self.timeout_overrides:
            return self.timeout_overrides[descriptor.name]
        if descriptor.timeout is not None:
            return descriptor.timeout
        return self.default_timeout

    async def _invoke(self, entry: RegisteredTool, args: Dict[str, Any], budget: float) -> Any:
        """Run the implementation under ``budget`` seconds, raising ToolError on failure."""
        descriptor = entry.descriptor
        loop = asyncio.get_running_loop()
        deadline = loop.time() + budget

        # The task copies the current context, so it shares this dict with the dispatcher
        details: Dict[str, Any] = {}
        token = call_details.set(details)
        try:
            task = asyncio.create_task(
                entry.implementation.invoke(args, deadline), name=f"tool:{descriptor.name}"
            )
        finally:
            call_details.reset(token)
        try:
            done, _ = await asyncio.wait({task}, timeout=budget)
        except asyncio.CancelledError:
            task.cancel()
            raise

        if not done:
            if descriptor.state_changing:
                # Let the submission finish on its own; its outcome is only logged
                self._detach(descriptor.name, task, details)
                raise _annotated(Timeout(descriptor.name, budget, OUTCOME_UNKNOWN), details)
            task.cancel()
            raise _annotated(Timeout(descriptor.name, budget, OUTCOME_NO_SIDE_EFFECTS), details)

        try:
            return task.result()
        except UpstreamFailure as e:
            if e.outcome is None:
                e.set_outcome(OUTCOME_UNKNOWN if descriptor.state_changing else OUTCOME_NO_SIDE_EFFECTS)
            raise _annotated(e, details)
        except ToolError as e:
            raise _annotated(e, details)
        except asyncio.CancelledError:
            error = UpstreamFailure(
                f"Tool '{descriptor.name}' was cancelled",
                outcome=OUTCOME_UNKNOWN if descriptor.state_changing else OUTCOME_NO_SIDE_EFFECTS,
            )
            raise _annotated(error, details)
        except Exception as e:  # noqa: BLE001 - boundary wrapper for tool failures
            logger.exception(f"Tool {descriptor.name} raised an unexpected error")
            error = UpstreamFailure(
                f"Tool '{descriptor.name}' failed: {type(e).__name__}: {e}",
                outcome=OUTCOME_UNKNOWN if descriptor.state_changing else OUTCOME_NO_SIDE_EFFECTS,
                error_type=type(e).__name__,
            )
            raise _annotated(error, details) from e

    def _detach(self, tool_name: str, task: asyncio.Task, details: Optional[Dict[str, Any]] = None) -> None:
        self._detached.add(task)
        if details:
            logger.warning(f"Detached call to {tool_name} after timeout: {details}")

        def _report(finished: asyncio.Task) -> None:
            self._detached.discard(finished)
            if finished.cancelled():
                logger.warning(f"Detached call to {tool_name} was cancelled")
            elif finished.exception() is not None:
                logger.warning(f"Detached call to {tool_name} failed after timeout: {finished.exception()}")
            else:
                logger.warning(f"Detached call to {tool_name} completed after timeout: {finished.result()}")

        task.add_done_callback(_report)

    @property
    def detached_calls(self) -> int:
        return len(self._detached)

    async def drain(self, timeout: float = 5.0) -> None:
        """Wait briefly for detached calls at shutdown, then cancel the rest."""
        if not self._detached:
            return
        pending = set(self._detached)
        logger.info(f"Waiting for {len(pending)} detached tool calls to finish...")
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)

    def _fail(self, tool_name: str, error: ToolError, started: float) -> Failure:
        elapsed = time.perf_counter() - started
        self.error_handler.handle_error(tool_name, error, context=f"dispatch ({elapsed:.3f}s)")
        return Failure(error)

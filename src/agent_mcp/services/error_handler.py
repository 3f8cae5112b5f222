"""Error taxonomy and error bookkeeping for tool dispatch."""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

# What is known about side effects when a call fails
OUTCOME_NO_SIDE_EFFECTS = "no_side_effects"
OUTCOME_NOT_EXECUTED = "not_executed"
OUTCOME_UNKNOWN = "unknown"
OUTCOME_REVERTED = "reverted"

RETRY_SAFE_OUTCOMES = {OUTCOME_NO_SIDE_EFFECTS, OUTCOME_NOT_EXECUTED}

# Error tracking key shared by all calls to unregistered tools
UNKNOWN_TOOL_KEY = "<unknown>"


class MCPError(Exception):
    """Base exception class for agent MCP errors."""
    def __init__(self, message: str, error_code: str = "MCP_ERROR", details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class DuplicateToolName(MCPError):
    """Raised when a tool name is registered twice."""
    def __init__(self, name: str):
        super().__init__(f"Tool '{name}' is already registered", "DUPLICATE_TOOL_NAME", {"tool": name})


class RegistryFrozen(MCPError):
    """Raised when registering after the registry started serving."""
    def __init__(self, name: str):
        super().__init__(
            f"Cannot register '{name}': registry is frozen", "REGISTRY_FROZEN", {"tool": name}
        )


# Validation failures, raised by the validator and wrapped in InvalidInput


class ValidationError(MCPError):
    """Base class for argument validation failures."""

    reason = "invalid"

    def __init__(self, path: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.path = path
        payload = {"reason": self.reason, "path": path}
        payload.update(details or {})
        super().__init__(f"{path}: {message}", "VALIDATION_ERROR", payload)


class MissingField(ValidationError):
    reason = "missing_field"

    def __init__(self, path: str):
        super().__init__(path, "required field is missing")


class TypeMismatch(ValidationError):
    reason = "type_mismatch"

    def __init__(self, path: str, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(
            path, f"expected {expected}, got {actual}", {"expected": expected, "actual": actual}
        )


class ConstraintViolation(ValidationError):
    reason = "constraint_violation"

    def __init__(self, path: str, violation: str):
        self.violation = violation
        super().__init__(path, violation)


# Tool errors, the only failures that ever reach a session


class ToolError(MCPError):
    """A failed tool call, serialized to the client as an error envelope."""

    kind = "ToolError"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, self.kind, details)

    def to_wire(self) -> Dict[str, Any]:
        return {
            "status": "error",
            "kind": self.kind,
            "message": self.message,
            "details": self.details,
        }


class UnknownTool(ToolError):
    kind = "UnknownTool"

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"Unknown tool: {tool_name}", {"tool": tool_name})


class InvalidInput(ToolError):
    kind = "InvalidInput"

    def __init__(self, error: ValidationError, tool_name: Optional[str] = None):
        self.error = error
        details = dict(error.details)
        if tool_name:
            details["tool"] = tool_name
        super().__init__(f"Invalid input: {error.message}", details)


class Timeout(ToolError):
    kind = "Timeout"

    def __init__(self, tool_name: str, timeout: float, outcome: str = OUTCOME_NO_SIDE_EFFECTS):
        self.tool_name = tool_name
        self.timeout = timeout
        self.outcome = outcome
        message = f"Tool '{tool_name}' did not complete within {timeout:g}s"
        if outcome == OUTCOME_UNKNOWN:
            message += "; the operation may still complete, verify state before retrying"
        super().__init__(
            message,
            {
                "tool": tool_name,
                "timeout": timeout,
                "outcome": outcome,
                "retry_safe": outcome in RETRY_SAFE_OUTCOMES,
            },
        )


class UpstreamFailure(ToolError):
    """Raised by tool implementations when their upstream reports a failure.

    ``outcome`` says what is known about side effects. Tools that fail before
    submitting anything pass ``OUTCOME_NOT_EXECUTED``; when left unset the
    dispatcher fills it in from the tool's descriptor.
    """

    kind = "UpstreamFailure"

    def __init__(
        self,
        message: str,
        *,
        upstream: Optional[str] = None,
        outcome: Optional[str] = None,
        **details: Any,
    ):
        self.upstream = upstream
        self.outcome = outcome
        payload: Dict[str, Any] = {k: v for k, v in details.items() if v is not None}
        if upstream:
            payload["upstream"] = upstream
        super().__init__(message, payload)
        if outcome is not None:
            self.set_outcome(outcome)

    def set_outcome(self, outcome: str) -> None:
        self.outcome = outcome
        self.details["outcome"] = outcome
        self.details["retry_safe"] = outcome in RETRY_SAFE_OUTCOMES


class ErrorHandler:
    """Records tool failures and logs them at a level matching their kind."""

    def __init__(self, error_window: timedelta = timedelta(minutes=1)):
        self.error_counts: Dict[str, Dict[str, int]] = {}
        self.error_timestamps: Dict[str, List[datetime]] = {}
        self.error_window = error_window

    def handle_error(self, tool_name: str, error: ToolError, context: str = "") -> Dict[str, Any]:
        """Log and track a tool failure, returning its error information."""
        error_info = self._log_error(tool_name, error, context)
        self._track_error(tool_name, error)
        return error_info

    def _log_error(self, tool_name: str, error: ToolError, context: str) -> Dict[str, Any]:
        error_info = {
            "tool_name": tool_name,
            "kind": error.kind,
            "error_message": error.message,
            "context": context,
            "timestamp": datetime.now().isoformat(),
        }

        if isinstance(error, (UnknownTool, InvalidInput)):
            logger.info(f"Tool {tool_name} - {error.kind}: {error.message}")
        elif isinstance(error, (Timeout, UpstreamFailure)):
            logger.warning(f"Tool {tool_name} - {error.kind}: {error.message}")
        else:
            logger.error(f"Tool {tool_name} - Unexpected error: {error.message}")

        return error_info

    def _track_error(self, tool_name: str, error: ToolError) -> None:
        """Track error occurrences per tool and kind, keeping a recent window."""
        if isinstance(error, UnknownTool):
            # Client-chosen names are only logged, never used as keys
            tool_name = UNKNOWN_TOOL_KEY
        counts = self.error_counts.setdefault(tool_name, {})
        counts[error.kind] = counts.get(error.kind, 0) + 1

        now = datetime.now()
        cutoff_time = now - self.error_window
        recent = [ts for ts in self.error_timestamps.get(tool_name, []) if ts > cutoff_time]
        recent.append(now)
        self.error_timestamps[tool_name] = recent

    def get_tool_error_stats(self, tool_name: str) -> Dict[str, Any]:
        """Get error statistics for a specific tool."""
        counts = self.error_counts.get(tool_name, {})
        cutoff_time = datetime.now() - self.error_window
        return {
            "total_errors": sum(counts.values()),
            "errors_by_kind": dict(counts),
            "recent_errors": len(
                [ts for ts in self.error_timestamps.get(tool_name, []) if ts > cutoff_time]
            ),
        }

    def reset_error_tracking(self, tool_name: str) -> None:
        """Reset error tracking for a specific tool."""
        self.error_counts.pop(tool_name, None)
        self.error_timestamps.pop(tool_name, None)
        logger.info(f"Reset error tracking for tool {tool_name}")

    def get_error_summary(self) -> Dict[str, Any]:
        """Get a summary of all errors across tools."""
        return {
            "total_tools_with_errors": len(self.error_counts),
            "error_counts": {name: dict(counts) for name, counts in self.error_counts.items()},
            "recent_errors_by_tool": {
                name: self.get_tool_error_stats(name)["recent_errors"]
                for name in self.error_timestamps
            },
        }

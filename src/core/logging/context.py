"""Log context propagated through contextvars (safe across asyncio tasks)."""

from contextvars import ContextVar
from typing import Dict, Optional

_scaled_object: ContextVar[Optional[str]] = ContextVar("scaled_object", default=None)
_namespace: ContextVar[Optional[str]] = ContextVar("namespace", default=None)
_cycle_id: ContextVar[Optional[str]] = ContextVar("cycle_id", default=None)


def set_log_context(
    scaled_object: Optional[str] = None,
    namespace: Optional[str] = None,
    cycle_id: Optional[str] = None,
) -> None:
    """
    Set context fields injected into every log record.

    Only the fields passed are updated; others keep their current value.
    """
    if scaled_object is not None:
        _scaled_object.set(scaled_object)
    if namespace is not None:
        _namespace.set(namespace)
    if cycle_id is not None:
        _cycle_id.set(cycle_id)


def get_log_context() -> Dict[str, Optional[str]]:
    """Return the current log context."""
    return {
        "scaled_object": _scaled_object.get(),
        "namespace": _namespace.get(),
        "cycle_id": _cycle_id.get(),
    }


def clear_log_context() -> None:
    """Reset all context fields."""
    _scaled_object.set(None)
    _namespace.set(None)
    _cycle_id.set(None)

"""Run ID generation and context propagation for log correlation.

Every event-study run gets a run ID so that all log lines emitted while
normalizing, aligning, computing and comparing a single run can be grouped
together, even when several runs execute in the same process.

Run IDs are UUIDv4 strings held in a context variable, so they survive
``await`` boundaries in the (external) async fetch layer.

Example:
    >>> from libs.common.logging.context import generate_run_id, get_run_id
    >>> run_id = generate_run_id()
    >>> set_run_id(run_id)
    >>> get_run_id() == run_id
    True
"""

import contextvars
import uuid
from types import TracebackType

_run_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar("run_id", default=None)


def generate_run_id() -> str:
    """Generate a new unique run ID (UUID v4 string)."""
    return str(uuid.uuid4())


def get_run_id() -> str | None:
    """Get the current run ID from context, or None if unset."""
    return _run_id_var.get()


def set_run_id(run_id: str) -> None:
    """Set the run ID for the current context.

    Raises:
        ValueError: If run_id is empty
    """
    if not run_id:
        raise ValueError("Run ID cannot be empty")
    _run_id_var.set(run_id)


def clear_run_id() -> None:
    """Clear the run ID from the current context."""
    _run_id_var.set(None)


class RunContext:
    """Context manager for scoped run ID management.

    Sets a run ID for a block of code and restores the previous value
    when done.

    Example:
        >>> with RunContext("run-123") as run_id:
        ...     print(get_run_id())
        run-123
    """

    def __init__(self, run_id: str | None = None) -> None:
        self.run_id = run_id or generate_run_id()
        self.previous_run_id: str | None = None

    def __enter__(self) -> str:
        self.previous_run_id = get_run_id()
        set_run_id(self.run_id)
        return self.run_id

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self.previous_run_id is not None:
            set_run_id(self.previous_run_id)
        else:
            clear_run_id()

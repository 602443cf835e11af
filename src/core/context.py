"""Settlement run context management for log correlation."""

import uuid
from contextvars import ContextVar

# Context variable for storing the settlement run ID across async boundaries
_run_id_var: ContextVar[str | None] = ContextVar("settlement_run_id", default=None)


class SettlementContext:
    """Manages settlement run context using contextvars for async-safe storage.

    Every settlement computation gets its own run ID so that the log lines of
    concurrent settlements (different companies or weeks) can be told apart.
    """

    @staticmethod
    def set_run_id(run_id: str) -> None:
        """Set the run ID for the current context.

        Args:
            run_id: The settlement run ID to store in the context.
        """
        _run_id_var.set(run_id)

    @staticmethod
    def get_run_id() -> str | None:
        """Get the run ID from the current context.

        Returns:
            str | None: The run ID if set, None otherwise.
        """
        return _run_id_var.get()

    @staticmethod
    def clear() -> None:
        """Clear all context variables."""
        _run_id_var.set(None)


def generate_run_id() -> str:
    """Generate a unique ID for one settlement computation.

    Returns:
        str: A prefixed UUID4 string in format 'stl-<uuid4>'.

    Examples:
        >>> run_id = generate_run_id()
        >>> run_id.startswith('stl-')
        True
        >>> len(run_id)
        40
    """
    return f"stl-{uuid.uuid4()}"

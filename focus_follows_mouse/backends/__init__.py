"""Window-system backends."""

from ..errors import ErrorCode, FfmError
from .base import Backend, EventSource

BACKENDS = ("sway", "i3")


def create_backend(name: str = "sway") -> Backend:
    """Create a backend by name.

    Raises:
        FfmError: If the backend name is unknown
    """
    if name in ("sway", "i3"):
        from .sway import SwayBackend

        return SwayBackend()

    raise FfmError(
        code=ErrorCode.UNKNOWN_BACKEND,
        message=f"Unknown backend: {name}",
        suggestion=f"Use one of: {', '.join(BACKENDS)}",
        context={"backend": name},
    )


__all__ = ["Backend", "EventSource", "BACKENDS", "create_backend"]

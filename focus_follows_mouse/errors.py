"""
Error handling for the focus-follows-mouse daemon.

Most runtime failures in the coordinator are not errors at all (a stale window,
no candidate on an output) and are reported as ``False``/``None`` results. The
exceptions below cover configuration that fails validation, a window manager
that cannot be reached, and IPC commands the window manager refuses.
"""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorCode(Enum):
    """
    Error codes for the focus-follows-mouse daemon.

    Custom codes:
    - 1100-1199: Configuration errors
    - 1400-1499: Backend (window manager IPC) errors
    """

    # Configuration errors (1100-1199)
    CONFIG_LOAD_FAILED = 1100

    # Backend errors (1400-1499)
    BACKEND_UNAVAILABLE = 1400
    BACKEND_COMMAND_FAILED = 1401
    UNKNOWN_BACKEND = 1402


class FfmError(Exception):
    """Base exception for focus-follows-mouse errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize error.

        Args:
            code: Error code from ErrorCode enum
            message: Human-readable error message
            suggestion: Suggested recovery action
            context: Additional context for debugging
        """
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert error to dictionary for structured logging and CLI output.

        Returns:
            Error dictionary with code, message, suggestion, and context
        """
        result = {
            "code": self.code.value,
            "message": self.message
        }

        if self.suggestion:
            result["suggestion"] = self.suggestion

        if self.context:
            result["context"] = self.context

        return result


class ConfigLoadError(FfmError):
    """Configuration loading error."""

    def __init__(self, file_path: str, reason: str):
        """
        Initialize configuration load error.

        Args:
            file_path: Path to configuration file
            reason: Reason for load failure
        """
        super().__init__(
            code=ErrorCode.CONFIG_LOAD_FAILED,
            message=f"Failed to load configuration from {file_path}: {reason}",
            suggestion="Check file syntax and value ranges (ffm check-config)",
            context={"file_path": file_path, "reason": reason}
        )


class BackendError(FfmError):
    """Window manager IPC command failed or was refused."""

    def __init__(self, operation: str, reason: str):
        """
        Initialize backend error.

        Args:
            operation: IPC operation that failed
            reason: Reason for failure
        """
        super().__init__(
            code=ErrorCode.BACKEND_COMMAND_FAILED,
            message=f"Window manager {operation} failed: {reason}",
            suggestion="Ensure i3/Sway is running and the IPC socket is accessible",
            context={"operation": operation, "reason": reason}
        )


class BackendUnavailableError(FfmError):
    """Raised when the window manager cannot be reached after retries."""

    def __init__(self, attempts: int, reason: str):
        super().__init__(
            code=ErrorCode.BACKEND_UNAVAILABLE,
            message=f"Failed to connect to window manager after {attempts} attempts: {reason}",
            suggestion="Check I3SOCK/SWAYSOCK and that the session is running",
            context={"attempts": attempts, "reason": reason}
        )

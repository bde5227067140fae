"""Custom exceptions for Live session services."""


class LiveServiceError(Exception):
    """Base exception for Live session errors."""

    pass


class LiveConfigurationError(LiveServiceError):
    """Raised when the Live API credential is missing."""

    def __init__(self, setting: str = "GEMINI_API_KEY") -> None:
        super().__init__(f"{setting} is missing in server environment.")
        self.setting = setting


class NoActiveSessionError(LiveServiceError):
    """Raised when a session operation is attempted before connect."""

    def __init__(self) -> None:
        super().__init__("No active Live session. Send session.connect first.")


class LiveUpstreamError(LiveServiceError):
    """Raised (or reported) when the upstream Live session fails."""

    pass


class LiveSessionClosedError(LiveUpstreamError):
    """Raised when sending on a session handle that is already closed."""

    def __init__(self) -> None:
        super().__init__("Live session is closed.")

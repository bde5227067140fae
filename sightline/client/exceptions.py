"""Custom exceptions for the live client."""


class ClientError(Exception):
    """Base exception for client-side media errors."""

    pass


class PlaybackDecodeError(ClientError):
    """Raised when an agent audio chunk cannot be decoded."""

    def __init__(self, mime_type: str, reason: str) -> None:
        super().__init__(f"Could not decode {mime_type or 'audio'} chunk: {reason}")
        self.mime_type = mime_type


class CaptureError(ClientError):
    """Raised when a microphone or camera cannot be opened or read."""

    pass

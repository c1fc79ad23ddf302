class ChatClientError(Exception):
    """Base class for errors raised by the chat client."""


class StreamTransportError(ChatClientError):
    """The chat stream could not be opened, or a read failed mid-stream."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class EventParseError(ChatClientError):
    """A single stream line could not be turned into an event."""

    def __init__(self, message: str, line: str):
        super().__init__(message)
        self.line = line


class StoreError(ChatClientError):
    """A call to the remote conversation store was rejected or unreachable."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RenameNotAllowedError(ChatClientError):
    """Renaming requires a conversation the store has already assigned an identity to."""

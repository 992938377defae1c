class ChatInstanceError(Exception):
    """Base class for every error the chat client reports to the user."""


class ValidationError(ChatInstanceError):
    """Input line was empty or whitespace-only."""


class UnknownCommandError(ChatInstanceError):
    def __init__(self, command: str):
        super().__init__(f"Unknown command: /{command}")
        self.command = command


class StreamDecodeError(ChatInstanceError):
    """A single stream record could not be parsed. The stream itself continues."""


class TransportError(ChatInstanceError):
    pass


class CallError(TransportError):
    """The remote call failed before a usable response was received."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class StreamTransportError(TransportError):
    """The response stream broke after it was opened."""


class FatalInputError(ChatInstanceError):
    """The input source was closed or interrupted. Ends the session."""

from __future__ import annotations


class StrangerChatError(Exception):
    """Base exception for the stranger-chat-client package."""


class StrangerChatTransportError(StrangerChatError):
    """Raised when the underlying HTTP transport fails."""


class ChallengeTokenError(StrangerChatTransportError):
    """Raised when the one-time challenge token cannot be obtained."""


class StrangerChatProtocolError(StrangerChatError):
    """Raised when the server answers with a body the protocol does not allow."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        """Create a protocol error.

        Args:
            message: Human-readable description.
            status_code: Optional HTTP status of the offending response.
            body: Optional raw response body.
        """
        super().__init__(message)
        self.status_code = status_code
        self.body = body

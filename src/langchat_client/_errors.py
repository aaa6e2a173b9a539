from __future__ import annotations
from dataclasses import dataclass
from typing import Any


class LangchatError(RuntimeError):
    """Base error of the library."""


@dataclass(slots=True)
class LangchatTransportError(LangchatError):
    """
    Non-success HTTP status returned by the langchat backend.

    The backend reports failures with a JSON envelope:
    {
        "error": "message is required",
        "message": "..."          # optional
    }

    When the body matches it, `message` is taken from the envelope; otherwise the
    raw body text is used. Transport errors are never retried by this library.
    """
    status_code: int
    message: str
    body: str | None = None

    def __str__(self) -> str:
        parts = [f"LangchatTransportError(status_code={self.status_code}"]
        parts.append(f", message={self.message!r}")
        if self.body:
            parts.append(f", body={len(self.body)} chars")
        parts.append(")")
        return "".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert the error to a dict for structured logging."""
        return {
            "status_code": self.status_code,
            "message": self.message,
            "body": self.body,
        }

    @property
    def is_client_error(self) -> bool:
        """True for 4xx responses."""
        return 400 <= self.status_code < 500

    @property
    def is_server_error(self) -> bool:
        """True for 5xx responses."""
        return 500 <= self.status_code < 600


class LangchatStreamError(LangchatError):
    """`error` event received on a chat stream consumed through the LangChain adapter."""

    def __init__(self, message: str | None) -> None:
        self.message = message or "stream error"
        super().__init__(self.message)

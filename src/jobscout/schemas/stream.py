"""Server-Sent-Events message schema.

Every frame on an agent stream carries one ``SSEMessage``. The server
emits them in the order::

    progress* -> (chunk | error) -> done

and always ends with exactly one ``done``.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SSEEventType(str, Enum):
    """Discriminator for stream frames."""

    PROGRESS = "progress"
    CHUNK = "chunk"
    ERROR = "error"
    DONE = "done"


class SSEMessage(BaseModel):
    """A single event on an agent stream.

    Attributes:
        type: Event discriminator
        data: Payload for ``chunk`` events
        message: Human-readable text for ``progress`` and ``error`` events
    """

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    type: SSEEventType
    data: Any | None = Field(default=None, description="Chunk payload")
    message: str | None = Field(default=None, description="Progress or error text")

    @classmethod
    def progress(cls, message: str | None = None) -> "SSEMessage":
        return cls(type=SSEEventType.PROGRESS, message=message)

    @classmethod
    def chunk(cls, data: Any) -> "SSEMessage":
        return cls(type=SSEEventType.CHUNK, data=data)

    @classmethod
    def error(cls, message: str) -> "SSEMessage":
        return cls(type=SSEEventType.ERROR, message=message)

    @classmethod
    def done(cls) -> "SSEMessage":
        return cls(type=SSEEventType.DONE)

    def to_wire(self) -> dict[str, Any]:
        """JSON body of the frame; absent fields are omitted."""
        return self.model_dump(mode="json", exclude_none=True)

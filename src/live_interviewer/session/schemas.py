"""
Pydantic schemas for the session engine.

Defines the transcript message, the context snapshot handed to the
interviewer, the per-session configuration and the connection states
observed by the UI.
"""

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Literal, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator


def _now_utc() -> datetime:
    """Get current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def new_message_id() -> str:
    """Return a fresh, collision-free message identifier."""
    return uuid4().hex


class Role(str, Enum):
    """Speaker of a transcript message."""

    USER = "user"
    AI = "ai"


class ConnectionState(str, Enum):
    """Connection indicator exposed to the UI."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class Provider(str, Enum):
    """Backend style a session talks to."""

    REALTIME_VOICE = "realtime_voice"
    STREAMING_TEXT = "streaming_text"


class InterviewMode(str, Enum):
    """Flavour of interview the AI conducts."""

    TECH = "tech"
    MODULE = "module"


class OutputMode(str, Enum):
    """How AI replies are rendered."""

    VOICE = "voice"
    TEXT = "text"


class Message(BaseModel):
    """
    One transcript entry.

    `id` never changes once created. `content` grows while the message is the
    currently streaming AI turn.
    """

    id: str = Field(default_factory=new_message_id, description="Immutable message identifier")
    role: Role = Field(..., description="Who produced the message")
    content: str = Field(default="", description="Message text")
    timestamp: datetime = Field(default_factory=_now_utc, description="Creation time (UTC)")


class NoContext(BaseModel):
    """No extra context for the interviewer."""

    model_config = ConfigDict(frozen=True)

    type: Literal["none"] = "none"


class UrlContext(BaseModel):
    """A project URL (typically a GitHub repository)."""

    model_config = ConfigDict(frozen=True)

    type: Literal["url"] = "url"
    value: str = Field(..., description="URL supplied by the candidate")


class FileContext(BaseModel):
    """A single file (e.g. a zip archive) supplied by the candidate."""

    model_config = ConfigDict(frozen=True)

    type: Literal["file"] = "file"
    path: Path = Field(..., description="Location of the file")
    name: str = Field(default="", description="Display name; defaults to the file name")

    @model_validator(mode="before")
    @classmethod
    def _default_name(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("name") and data.get("path"):
            data = {**data, "name": Path(data["path"]).name}
        return data


class FolderContext(BaseModel):
    """A project folder, captured as its list of files."""

    model_config = ConfigDict(frozen=True)

    type: Literal["folder"] = "folder"
    paths: tuple[Path, ...] = Field(default=(), description="Files inside the folder")
    name: str = Field(default="", description="Display label for the folder")

    @model_validator(mode="before")
    @classmethod
    def _default_name(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("name"):
            data = {**data, "name": f"{len(data.get('paths') or ())} files selected"}
        return data


ContextSource = Annotated[
    Union[NoContext, UrlContext, FileContext, FolderContext],
    Field(discriminator="type"),
]


class SessionConfig(BaseModel):
    """Caller-supplied configuration, immutable for the session's lifetime."""

    model_config = ConfigDict(frozen=True)

    provider: Provider = Field(default=Provider.REALTIME_VOICE, description="Backend style")
    api_key: str = Field(default="", description="Credential for the chosen backend")
    endpoint: str | None = Field(default=None, description="Override of the backend endpoint")
    model: str | None = Field(default=None, description="Override of the backend model id")
    interview_mode: InterviewMode = Field(default=InterviewMode.TECH, description="Interview flavour")
    output_mode: OutputMode = Field(default=OutputMode.VOICE, description="Reply rendering")

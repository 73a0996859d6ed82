"""
Defines the core Pydantic data models for the application.

A conversation is a tree of `Message` nodes keyed by id. `History` holds the
mapping and a pointer to the active leaf; the visible conversation is the
root-to-leaf path through that pointer.
"""

import uuid
from datetime import datetime, timezone
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

# --- Constants ---
USER_ROLE = "user"
ASSISTANT_ROLE = "assistant"
SYSTEM_ROLE = "system"
Role = Literal[USER_ROLE, ASSISTANT_ROLE, SYSTEM_ROLE]

NO_MODEL = ""


# --- Models ---
class FileRef(BaseModel):
    """A reference to a file attached to a user message."""

    name: str
    type: Optional[str] = None
    size: Optional[int] = None
    url: Optional[str] = None


class MessageError(BaseModel):
    """Terminal error payload attached to a failed assistant message."""

    content: str


class Message(BaseModel):
    """A single node of the conversation tree."""

    model_config = ConfigDict(protected_namespaces=())

    role: Role
    content: str = ""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    parent_id: Optional[str] = None
    children_ids: List[str] = Field(default_factory=list)
    model: Optional[str] = None
    model_name: Optional[str] = None
    models: Optional[List[str]] = None
    done: bool = False
    error: Optional[MessageError] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    files: Optional[List[FileRef]] = None

    def to_payload(self) -> Dict[str, str]:
        """The `{role, content}` pair sent to a completion backend."""
        return {"role": self.role, "content": self.content}


class History(BaseModel):
    """The conversation: every message by id, plus the active leaf."""

    messages: Dict[str, Message] = Field(default_factory=dict)
    active_id: Optional[str] = None

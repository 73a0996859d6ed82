"""Exception hierarchy for chatbranch."""

from typing import Optional

from .models import MessageError


class ChatbranchError(Exception):
    """Base class for all chatbranch errors."""


# --- Submission validation ---
class ValidationError(ChatbranchError, ValueError):
    """A submission was rejected before anything was added to the tree."""


class EmptyInputError(ValidationError):
    def __init__(self, message: str = "Please enter a prompt"):
        super().__init__(message)


class NoModelSelectedError(ValidationError):
    def __init__(self, message: str = "Model not selected"):
        super().__init__(message)


# --- Tree structure ---
class TreeIntegrityError(ChatbranchError):
    """The message tree violates one of its structural invariants."""


class InvalidParentError(TreeIntegrityError):
    def __init__(self, parent_id: str):
        self.parent_id = parent_id
        super().__init__(f"Parent message not found: {parent_id}")


class UnknownMessageError(TreeIntegrityError):
    def __init__(self, message_id: str):
        self.message_id = message_id
        super().__init__(f"Message not found: {message_id}")


class DanglingPathError(TreeIntegrityError):
    """Walking parent pointers hit a missing message or never reached a root."""


# --- Streaming ---
class StreamError(ChatbranchError):
    """A completion stream failed mid-flight.

    Parameters
    ----------
    message : str
        Human-readable description, shown to the user.
    model : str, optional
        The model whose stream failed.
    """

    def __init__(self, message: str, model: Optional[str] = None):
        self.model = model
        super().__init__(message)

    def to_payload(self) -> MessageError:
        return MessageError(content=str(self))

"""The message tree and the path linearizer.

`MessageTree` is the only writer to a `History`. Every operation completes
without awaiting, so on a single event loop no reader ever observes a
half-applied mutation.
"""

import logging
from typing import Any, Dict, List, Optional

from .errors import (
    DanglingPathError,
    InvalidParentError,
    TreeIntegrityError,
    UnknownMessageError,
)
from .models import (
    ASSISTANT_ROLE,
    SYSTEM_ROLE,
    History,
    Message,
    MessageError,
    Role,
)

logger = logging.getLogger("chatbranch.tree")

# Owned by the tree, never set by callers.
STRUCTURAL_FIELDS = frozenset({"children_ids", "done", "error"})


def linearize(history: History, from_id: Optional[str]) -> List[Message]:
    """Return the root-first path ending at `from_id`.

    Parameters
    ----------
    history : History
        The conversation to walk.
    from_id : str, optional
        The leaf to start from. ``None`` yields an empty path.

    Raises
    ------
    DanglingPathError
        If a message on the chain is missing, or the chain is longer than the
        number of messages (a cycle).
    """
    path: List[Message] = []
    current_id = from_id
    limit = len(history.messages)
    while current_id is not None:
        if len(path) >= limit:
            raise DanglingPathError(
                f"Parent chain from {from_id} exceeds {limit} messages; cycle suspected"
            )
        message = history.messages.get(current_id)
        if message is None:
            raise DanglingPathError(
                f"Message {current_id} on path from {from_id} is missing"
            )
        path.append(message)
        current_id = message.parent_id
    path.reverse()
    return path


def build_payload(
    messages: List[Message], system_prompt: Optional[str] = None
) -> List[Dict[str, str]]:
    """Convert a linearized path into the `{role, content}` list for an LLM."""
    payload = []
    if system_prompt:
        payload.append({"role": SYSTEM_ROLE, "content": system_prompt})
    payload.extend(message.to_payload() for message in messages)
    return payload


class MessageTree:
    """Id-indexed, in-place mutable conversation tree."""

    def __init__(self, history: Optional[History] = None):
        self._history = history if history is not None else History()

    @property
    def history(self) -> History:
        return self._history

    @property
    def active_id(self) -> Optional[str]:
        return self._history.active_id

    def __len__(self) -> int:
        return len(self._history.messages)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._history.messages

    def get(self, message_id: str) -> Optional[Message]:
        return self._history.messages.get(message_id)

    def children(self, message_id: str) -> List[Message]:
        message = self._history.messages.get(message_id)
        if message is None:
            raise UnknownMessageError(message_id)
        return [self._history.messages[child_id] for child_id in message.children_ids]

    def path(self, from_id: Optional[str] = None) -> List[Message]:
        """The linearized path to `from_id`, or to the active leaf."""
        if from_id is None:
            from_id = self.active_id
        return linearize(self._history, from_id)

    # --- Mutations ---
    def create_root_message(
        self,
        role: Role,
        content: str,
        parent_id: Optional[str] = None,
        **extra: Any,
    ) -> Message:
        """Insert a new message and make it the active leaf.

        Despite the name, a non-null `parent_id` attaches the message under an
        existing node; the name reflects that this is the general entry point.
        Assistant messages start unfinished; every other role is created done.
        """
        reserved = STRUCTURAL_FIELDS.intersection(extra)
        if reserved:
            raise TreeIntegrityError(
                f"Cannot set {', '.join(sorted(reserved))} on a new message"
            )
        if parent_id is not None and parent_id not in self._history.messages:
            raise InvalidParentError(parent_id)
        message = Message(
            role=role,
            content=content,
            parent_id=parent_id,
            done=role != ASSISTANT_ROLE,
            **extra,
        )
        if message.id in self._history.messages:
            raise TreeIntegrityError(f"Message id already in use: {message.id}")
        self._history.messages[message.id] = message
        if parent_id is not None:
            self._history.messages[parent_id].children_ids.append(message.id)
        self._history.active_id = message.id
        return message

    def append_child(self, parent_id: str, **partial: Any) -> Message:
        """Insert an assistant placeholder under `parent_id`."""
        if parent_id is None:
            raise InvalidParentError(parent_id)
        role = partial.pop("role", ASSISTANT_ROLE)
        content = partial.pop("content", "")
        return self.create_root_message(role, content, parent_id=parent_id, **partial)

    def mutate_content(self, message_id: str, fragment: str) -> None:
        message = self._history.messages.get(message_id)
        if message is None:
            # The stream may outlive a conversation that was reset.
            logger.debug("Dropping fragment for unknown message %s", message_id)
            return
        if message.done:
            return
        message.content += fragment

    def mark_done(self, message_id: str, error: Optional[MessageError] = None) -> None:
        message = self._history.messages.get(message_id)
        if message is None or message.done:
            return
        message.done = True
        if error is not None:
            message.error = error

    def set_active(self, message_id: str) -> None:
        if message_id not in self._history.messages:
            raise UnknownMessageError(message_id)
        self._history.active_id = message_id

    def reset(self) -> History:
        """Start over with an empty history. Returns the new history."""
        self._history = History()
        return self._history

    # --- Diagnostics ---
    def check_integrity(self) -> None:
        """Raise `TreeIntegrityError` if any structural invariant is violated."""
        messages = self._history.messages
        for message_id, message in messages.items():
            if message.id != message_id:
                raise TreeIntegrityError(
                    f"Message keyed {message_id} has id {message.id}"
                )
            if message.parent_id is not None:
                parent = messages.get(message.parent_id)
                if parent is None:
                    raise TreeIntegrityError(
                        f"Message {message_id} references missing parent "
                        f"{message.parent_id}"
                    )
                if parent.children_ids.count(message_id) != 1:
                    raise TreeIntegrityError(
                        f"Message {message_id} is not listed exactly once by its parent"
                    )
            for child_id in message.children_ids:
                child = messages.get(child_id)
                if child is None or child.parent_id != message_id:
                    raise TreeIntegrityError(
                        f"Message {message_id} lists {child_id} which is not its child"
                    )
            linearize(self._history, message_id)
        active_id = self._history.active_id
        if active_id is not None and active_id not in messages:
            raise TreeIntegrityError(f"Active message {active_id} does not exist")

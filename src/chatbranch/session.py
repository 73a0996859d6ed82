"""The chat session: the state a single UI instance reads and drives."""

import logging
from collections import deque
from typing import Deque, List, Literal, Optional, Union

from pydantic import BaseModel

from .catalog import Catalog
from .config import Settings
from .errors import ValidationError
from .llm import LLM
from .models import FileRef, History, Message, MessageError
from .orchestrator import StreamOrchestrator, Submission
from .tree import MessageTree
from .url import Navigator

logger = logging.getLogger("chatbranch.session")


class Notification(BaseModel):
    """A toast-style message for the user."""

    level: Literal["error", "warning", "info", "success"] = "error"
    message: str


class ChatSession:
    """Owns one conversation tree and the streams writing into it.

    All methods must run on the event loop thread; other threads go through
    `LoopThread.call`.
    """

    def __init__(
        self,
        llm: LLM,
        catalog: Optional[Catalog] = None,
        settings: Optional[Settings] = None,
        navigator: Optional[Navigator] = None,
        history: Optional[History] = None,
    ):
        self.settings = settings if settings is not None else Settings()
        self.llm = llm
        if catalog is None:
            catalog = Catalog.from_ids(self.settings.default_model_list or [llm.model])
        self.catalog = catalog
        self.navigator = navigator if navigator is not None else Navigator()

        self.tree = MessageTree(history)
        self.orchestrator = StreamOrchestrator(
            self.tree,
            llm,
            catalog=self.catalog,
            system_prompt=self.settings.system_prompt,
            on_update=self._on_update,
            on_error=self._on_error,
        )
        self.notifications: Deque[Notification] = deque()
        self.version = 0
        self.title = ""
        self.prompt = ""
        self.files: List[FileRef] = []
        self.selected_models = self.default_models()

    # --- Read access ---
    @property
    def history(self) -> History:
        return self.tree.history

    @property
    def active_id(self) -> Optional[str]:
        return self.tree.active_id

    @property
    def messages(self) -> List[Message]:
        """The active path, root first."""
        return self.tree.path()

    @property
    def generating(self) -> bool:
        return self.orchestrator.generating

    def snapshot(self) -> List[Message]:
        """Deep copies of the active path, safe to hand to another thread."""
        return [message.model_copy(deep=True) for message in self.messages]

    def page_title(self) -> str:
        app_name = self.settings.app_name
        if not self.title:
            return app_name
        limit = self.settings.title_max_length
        title = f"{self.title[:limit]}..." if len(self.title) > limit else self.title
        return f"{title} • {app_name}"

    # --- Conversation lifecycle ---
    def default_models(
        self,
        folder_models: Optional[List[str]] = None,
        settings_models: Optional[List[str]] = None,
    ) -> List[str]:
        return self.catalog.default_selection(
            folder_models=folder_models,
            settings_models=settings_models,
            config_default=self.settings.default_models,
        )

    def new_chat(self, folder_models: Optional[List[str]] = None) -> None:
        """Drop the current conversation and start an empty one."""
        self.orchestrator.stop_all()
        self.tree.reset()
        self.title = ""
        self.prompt = ""
        self.files = []
        self.selected_models = self.default_models(folder_models=folder_models)
        self.navigator.leave_chat()
        self._bump()
        logger.info("Started a new chat with models %s", self.selected_models)

    def attach(self, file: Union[FileRef, dict]) -> FileRef:
        ref = file if isinstance(file, FileRef) else FileRef(**file)
        self.files.append(ref)
        self._bump()
        return ref

    def submit(
        self,
        text: str,
        files: Optional[List[Union[FileRef, dict]]] = None,
        model_ids: Optional[List[str]] = None,
    ) -> Optional[Submission]:
        """Submit a user turn. Invalid input is reported, not raised.

        Returns None when the submission was rejected, in which case the
        history is left untouched.
        """
        files = list(self.files if files is None else files)
        model_ids = list(self.selected_models if model_ids is None else model_ids)
        try:
            submission = self.orchestrator.submit(text, files, model_ids)
        except ValidationError as exc:
            self.notify(str(exc))
            return None

        self.prompt = ""
        self.files = []
        self.selected_models = model_ids
        user_message = submission.user_message
        if not self.title:
            self.title = (text or "").strip() or user_message.files[0].name
        if user_message.parent_id is None:
            # The first turn's id names the chat.
            self.navigator.open_chat(user_message.id)
        self._bump()
        return submission

    def send(
        self,
        text: str,
        files: Optional[List[Union[FileRef, dict]]] = None,
        model_ids: Optional[List[str]] = None,
    ) -> Optional[Submission]:
        """Submit-button semantics: while streaming, the button stops instead."""
        if self.generating:
            self.stop_all()
            return None
        return self.submit(text, files, model_ids)

    def select_suggestion(self, text: str) -> Optional[Submission]:
        self.prompt = text
        if self.settings.insert_suggestion_prompt:
            self._bump()
            return None
        return self.submit(text)

    def stop(self, message_id: str) -> bool:
        return self.orchestrator.stop(message_id)

    def stop_all(self) -> int:
        return self.orchestrator.stop_all()

    # --- Notifications ---
    def notify(self, message: str, level: str = "error") -> None:
        self.notifications.append(Notification(level=level, message=message))
        self._bump()

    def drain_notifications(self) -> List[Notification]:
        drained = list(self.notifications)
        self.notifications.clear()
        return drained

    # --- Hooks ---
    def _on_update(self, message: Message) -> None:
        self._bump()

    def _on_error(self, message: Message, error: MessageError) -> None:
        self.notify(error.content)

    def _bump(self) -> None:
        self.version += 1

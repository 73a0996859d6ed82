"""URL strategies and the navigation context handed to the UI layer."""

from abc import ABC, abstractmethod
from typing import Callable, Optional
from urllib.parse import quote, unquote

from pydantic import BaseModel


class URLParts(BaseModel):
    """Application state parsed from a URL."""

    chat_id: Optional[str] = None


class URL(ABC):
    """Interface for mapping between URLs and chats."""

    @abstractmethod
    def parse(self, pathname: Optional[str], search: Optional[str] = None) -> URLParts:
        """Extracts the chat id, if any, from a pathname."""
        pass

    @abstractmethod
    def build_conversation_path(self, chat_id: str) -> str:
        """Builds the path that opens an existing chat."""
        pass

    @abstractmethod
    def build_new_chat_path(self) -> str:
        """Builds the path of a fresh, empty chat."""
        pass


class PathBased(URL):
    """Chats live under ``/c/<chat_id>``; the root is a new chat."""

    prefix = "/c/"

    def parse(self, pathname, search=None):
        if not pathname or not pathname.startswith(self.prefix):
            return URLParts()
        chat_id = pathname[len(self.prefix) :].strip("/")
        return URLParts(chat_id=unquote(chat_id) or None)

    def build_conversation_path(self, chat_id: str) -> str:
        return f"{self.prefix}{quote(str(chat_id), safe='')}"

    def build_new_chat_path(self) -> str:
        return "/"


class Navigator:
    """Navigation context injected into the session and the UI callbacks.

    Parameters
    ----------
    url : URL, optional
        Strategy for building paths. Defaults to `PathBased`.
    on_navigate : callable, optional
        Invoked with every new path, e.g. to push it to the browser.
    """

    def __init__(
        self,
        url: Optional[URL] = None,
        on_navigate: Optional[Callable[[str], None]] = None,
        pathname: str = "/",
    ):
        self.url = url if url is not None else PathBased()
        self.on_navigate = on_navigate
        self.pathname = pathname

    @property
    def chat_id(self) -> Optional[str]:
        return self.url.parse(self.pathname).chat_id

    def sync(self, pathname: str) -> None:
        """Record the path the browser is already showing."""
        self.pathname = pathname

    def goto(self, path: str) -> None:
        self.pathname = path
        if self.on_navigate is not None:
            self.on_navigate(path)

    def open_chat(self, chat_id: str) -> None:
        self.goto(self.url.build_conversation_path(chat_id))

    def leave_chat(self) -> None:
        """Return to the new-chat path if a chat is currently open."""
        if self.chat_id is not None:
            self.goto(self.url.build_new_chat_path())

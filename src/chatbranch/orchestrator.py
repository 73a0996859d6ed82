"""Fan one user turn out to many streaming model responses.

Every assistant placeholder gets its own asyncio task and its own
`CancellationToken`, keyed by the placeholder's message id. All tree
mutations happen on the event loop that runs the tasks.
"""

import asyncio
import logging
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional, Union

from .cancellation import CancellationToken
from .catalog import Catalog
from .errors import EmptyInputError, NoModelSelectedError, StreamError
from .llm import LLM
from .models import USER_ROLE, FileRef, History, Message, MessageError
from .tree import MessageTree, build_payload

logger = logging.getLogger("chatbranch.orchestrator")

UpdateHook = Callable[[Message], None]
ErrorHook = Callable[[Message, MessageError], None]


class Submission(NamedTuple):
    """The outcome of a successful `StreamOrchestrator.submit` call."""

    history: History
    user_message: Message
    tasks: Dict[str, "asyncio.Task[Optional[MessageError]]"]


class StreamOrchestrator:
    """Turns user submissions into concurrent, independently stoppable streams.

    Parameters
    ----------
    tree : MessageTree
        The conversation to write into.
    llm : LLM
        Completion client used for every model.
    catalog : Catalog, optional
        Used to resolve display names for assistant messages.
    system_prompt : str, optional
        Prepended as a system turn to every outgoing message list.
    on_update : callable, optional
        Called with the message after each content change or terminal update.
    on_error : callable, optional
        Called with the message and its error payload when a stream fails.
    """

    def __init__(
        self,
        tree: MessageTree,
        llm: LLM,
        catalog: Optional[Catalog] = None,
        system_prompt: Optional[str] = None,
        on_update: Optional[UpdateHook] = None,
        on_error: Optional[ErrorHook] = None,
    ):
        self.tree = tree
        self.llm = llm
        self.catalog = catalog
        self.system_prompt = system_prompt
        self.on_update = on_update
        self.on_error = on_error
        self._tokens: Dict[str, CancellationToken] = {}
        self._tasks: Dict[str, asyncio.Task] = {}

    @property
    def generating(self) -> bool:
        return bool(self._tasks)

    @property
    def running_ids(self) -> List[str]:
        return list(self._tasks)

    def token_for(self, message_id: str) -> Optional[CancellationToken]:
        return self._tokens.get(message_id)

    def submit(
        self,
        text: str,
        files: Optional[Iterable[Union[FileRef, dict]]] = None,
        model_ids: Optional[Iterable[str]] = None,
    ) -> Submission:
        """Add a user turn plus one streaming assistant reply per model.

        Must be called from the thread running the event loop.

        Raises
        ------
        EmptyInputError
            If `text` is blank and no files are attached.
        NoModelSelectedError
            If no model is given, or any model id is empty.
        """
        text = text or ""
        files = list(files or [])
        model_ids = list(model_ids or [])
        if not text.strip() and not files:
            raise EmptyInputError()
        if not model_ids or any(not model_id for model_id in model_ids):
            raise NoModelSelectedError()

        loop = asyncio.get_running_loop()

        previous_path = self.tree.path()
        payload = build_payload(previous_path, self.system_prompt)
        payload.append({"role": USER_ROLE, "content": text})

        user_message = self.tree.create_root_message(
            USER_ROLE,
            text,
            parent_id=self.tree.active_id,
            files=files or None,
            models=model_ids,
        )

        tasks = {}
        for model_id in model_ids:
            placeholder = self.tree.append_child(
                user_message.id, model=model_id, model_name=self._display_name(model_id)
            )
            tasks[placeholder.id] = self._start(loop, placeholder.id, model_id, payload)

        logger.info(
            "Submitted message %s to %d model(s): %s",
            user_message.id,
            len(model_ids),
            ", ".join(model_ids),
        )
        return Submission(self.tree.history, user_message, tasks)

    def stop(self, message_id: str) -> bool:
        """Cancel the stream writing into `message_id`.

        Returns False when no running stream targets that message.
        """
        token = self._tokens.get(message_id)
        if token is None:
            return False
        stopped = token.cancel()
        if stopped:
            logger.info("Stopped stream for message %s", message_id)
        return stopped

    def stop_all(self) -> int:
        """Cancel every running stream. Returns how many were stopped."""
        return sum(self.stop(message_id) for message_id in list(self._tokens))

    async def wait(self) -> None:
        """Wait until every currently running stream has terminated."""
        tasks = list(self._tasks.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # --- Internals ---
    def _display_name(self, model_id: str) -> str:
        if self.catalog is None:
            return model_id
        return self.catalog.display_name(model_id)

    def _start(
        self,
        loop: asyncio.AbstractEventLoop,
        message_id: str,
        model_id: str,
        payload: List[Dict[str, str]],
    ) -> asyncio.Task:
        token = CancellationToken()
        task = loop.create_task(
            self._run(message_id, model_id, list(payload), token),
            name=f"chatbranch-stream-{message_id}",
        )
        task.add_done_callback(lambda t: self._finish(message_id, t))

        def interrupt() -> None:
            if not loop.is_closed():
                loop.call_soon_threadsafe(task.cancel)

        token.add_callback(interrupt)
        self._tokens[message_id] = token
        self._tasks[message_id] = task
        return task

    async def _run(
        self,
        message_id: str,
        model_id: str,
        payload: List[Dict[str, str]],
        token: CancellationToken,
    ) -> Optional[MessageError]:
        logger.info("Streaming %s into message %s", model_id, message_id)
        try:
            async for fragment in self.llm.stream(payload, model_id, token):
                if token.cancelled:
                    break
                self.tree.mutate_content(message_id, fragment)
                self._notify_update(message_id)
        except StreamError as exc:
            logger.warning("Stream for %s failed: %s", model_id, exc)
            return exc.to_payload()
        except Exception as exc:
            logger.exception("Unexpected failure streaming %s", model_id)
            return MessageError(content=str(exc) or type(exc).__name__)
        return None

    def _finish(self, message_id: str, task: asyncio.Task) -> None:
        self._tasks.pop(message_id, None)
        self._tokens.pop(message_id, None)

        error = None
        if not task.cancelled():
            error = task.result()

        self.tree.mark_done(message_id, error)
        self._notify_update(message_id)

        if error is not None:
            message = self.tree.get(message_id)
            if message is not None and self.on_error is not None:
                self.on_error(message, error)
        logger.info(
            "Stream for message %s finished%s",
            message_id,
            " with error" if error else "",
        )

    def _notify_update(self, message_id: str) -> None:
        if self.on_update is None:
            return
        message = self.tree.get(message_id)
        if message is not None:
            self.on_update(message)

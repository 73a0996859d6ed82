"""Concrete implementations for streaming LLM providers."""

import asyncio
import inspect
import logging
import os
import re
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, List, Optional

from .cancellation import CancellationToken
from .errors import StreamError
from .models import ASSISTANT_ROLE, SYSTEM_ROLE

logger = logging.getLogger("chatbranch.llm")


class LLM(ABC):
    """Abstract Base Class for all streaming LLM providers."""

    model: str = ""

    @abstractmethod
    async def open_stream(
        self, messages: List[Dict[str, Any]], model: str, **kwargs: Any
    ) -> Any:
        """Opens a streaming generation with the provider.

        This method should return the provider's native async stream object
        directly from their SDK.

        Parameters
        ----------
        messages : List[Dict[str, Any]]
            Ordered `{role, content}` dictionaries, oldest first.
        model : str
            The specific model to use for the generation.
        **kwargs : Any
            Provider-specific parameters (e.g., temperature) to be passed
            directly to the SDK.

        Returns
        -------
        Any
            An async iterable of the provider's native chunk objects.
        """
        pass

    @abstractmethod
    def extract_fragment(self, chunk: Any) -> Optional[str]:
        """Extracts the text delta from one native chunk, if it carries any."""
        pass

    async def stream(
        self,
        messages: List[Dict[str, Any]],
        model: Optional[str] = None,
        token: Optional[CancellationToken] = None,
        **kwargs: Any,
    ) -> AsyncIterator[str]:
        """Yields text fragments in generation order.

        Stops before the next fragment once `token` is cancelled. Any provider
        failure surfaces as `StreamError`; task cancellation propagates as is.
        """
        model = model or self.model
        try:
            response = await self.open_stream(messages, model, **kwargs)
        except StreamError:
            raise
        except Exception as exc:
            raise StreamError(_describe(exc), model=model) from exc

        try:
            async for chunk in response:
                if token is not None and token.cancelled:
                    break
                fragment = self.extract_fragment(chunk)
                if fragment:
                    yield fragment
        except StreamError:
            raise
        except Exception as exc:
            raise StreamError(_describe(exc), model=model) from exc
        finally:
            await _close(response)


def _describe(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


async def _close(response: Any) -> None:
    for name in ("aclose", "close"):
        closer = getattr(response, name, None)
        if not callable(closer):
            continue
        try:
            result = closer()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.debug("Failed to close provider stream", exc_info=True)
        return


def _split_system(messages: List[Dict[str, Any]]):
    system = [m["content"] for m in messages if m["role"] == SYSTEM_ROLE]
    turns = [m for m in messages if m["role"] != SYSTEM_ROLE]
    return "\n\n".join(system), turns


class OpenAI(LLM):
    def __init__(self, default_model: str = "gpt-4o", **client_kwargs: Any):
        from openai import AsyncOpenAI

        self.client = AsyncOpenAI(**client_kwargs)
        self.model = default_model

    async def open_stream(self, messages, model, **kwargs):
        return await self.client.chat.completions.create(
            messages=messages, model=model, stream=True, **kwargs
        )

    def extract_fragment(self, chunk: Any) -> Optional[str]:
        if not chunk.choices:
            return None
        return chunk.choices[0].delta.content


class OpenRouter(OpenAI):
    def __init__(self, default_model: str = "openai/gpt-4o-mini"):
        super().__init__(
            default_model,
            base_url="https://openrouter.ai/api/v1",
            api_key=os.environ["OPENROUTER_API_KEY"],
        )

    async def open_stream(self, messages, model, **kwargs):
        kwargs.setdefault(
            "extra_headers",
            {"HTTP-Referer": "chatbranch", "X-Title": "chatbranch"},
        )
        return await super().open_stream(messages, model, **kwargs)


class DeepSeek(OpenAI):
    def __init__(self, default_model: str = "deepseek/deepseek-chat"):
        super().__init__(
            default_model,
            base_url="https://openrouter.ai/api/v1",
            api_key=os.environ["OPENROUTER_API_KEY"],
        )


class Anthropic(LLM):
    def __init__(self, default_model: str = "claude-3-5-sonnet-20241022"):
        from anthropic import AsyncAnthropic

        self.client = AsyncAnthropic(api_key=os.environ["ANTHROPIC_API_KEY"])
        self.model = default_model

    async def open_stream(self, messages, model, **kwargs):
        if "max_tokens" not in kwargs:
            kwargs["max_tokens"] = 4096
        system, turns = _split_system(messages)
        if system and "system" not in kwargs:
            kwargs["system"] = system
        return await self.client.messages.create(
            model=model, messages=turns, stream=True, **kwargs
        )

    def extract_fragment(self, chunk: Any) -> Optional[str]:
        if getattr(chunk, "type", None) != "content_block_delta":
            return None
        if getattr(chunk.delta, "type", None) != "text_delta":
            return None
        return chunk.delta.text


class Gemini(LLM):
    def __init__(self, default_model: str = "gemini-1.5-flash"):
        from google import genai

        self.client = genai.Client(api_key=os.environ["GEMINI_API_KEY"])
        self.model = default_model

    async def open_stream(self, messages, model, **kwargs):
        from google.genai import types

        system, turns = _split_system(messages)
        contents = [
            types.Content(
                role="model" if m["role"] == ASSISTANT_ROLE else "user",
                parts=[types.Part(text=m["content"])],
            )
            for m in turns
        ]
        config = types.GenerateContentConfig(
            system_instruction=system or None, **kwargs
        )
        return await self.client.aio.models.generate_content_stream(
            model=model, contents=contents, config=config
        )

    def extract_fragment(self, chunk: Any) -> Optional[str]:
        return chunk.text


class Ollama(LLM):
    def __init__(self, default_model: str = "llama3.1"):
        from ollama import AsyncClient

        self.client = AsyncClient()
        self.model = default_model

    async def open_stream(self, messages, model, **kwargs):
        return await self.client.chat(
            model=model, messages=messages, stream=True, **kwargs
        )

    def extract_fragment(self, chunk: Any) -> Optional[str]:
        return chunk["message"]["content"]


class Echo(LLM):
    """Offline provider that streams the prompt back word by word."""

    def __init__(self, default_model: str = "echo-v1", delay: float = 0.05):
        self.model = default_model
        self.delay = delay

    async def open_stream(self, messages, model, **kwargs):
        user_prompt = messages[-1]["content"] if messages else "No message provided"
        content = f"**Echo LLM - static response for testing**\n\n_Your prompt:_\n\n{user_prompt}"
        return self._fragments(content)

    async def _fragments(self, content: str) -> AsyncIterator[str]:
        for piece in re.findall(r"\s*\S+", content):
            await asyncio.sleep(self.delay)
            yield piece

    def extract_fragment(self, chunk: Any) -> Optional[str]:
        return chunk


class Router(LLM):
    """Dispatches each stream to the provider registered for its model id.

    Parameters
    ----------
    routes : Dict[str, LLM]
        Model id to provider.
    default : LLM, optional
        Provider used for model ids with no explicit route. Without one,
        unknown model ids fail with `StreamError`.
    """

    def __init__(self, routes: Dict[str, LLM], default: Optional[LLM] = None):
        self.routes = dict(routes)
        self.default = default
        if self.routes:
            self.model = next(iter(self.routes))
        elif default is not None:
            self.model = default.model

    def resolve(self, model: str) -> LLM:
        llm = self.routes.get(model, self.default)
        if llm is None:
            raise StreamError(f"Model not found: {model}", model=model)
        return llm

    async def open_stream(self, messages, model, **kwargs):
        return self.resolve(model).stream(messages, model, **kwargs)

    def extract_fragment(self, chunk: Any) -> Optional[str]:
        return chunk

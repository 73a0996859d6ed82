"""Prompt suggestions, filtered by what the user has typed so far."""

import random
from difflib import SequenceMatcher
from typing import Iterable, List, Optional, Tuple

from pydantic import BaseModel


class SuggestionPrompt(BaseModel):
    content: str
    id: Optional[str] = None
    title: Optional[Tuple[str, str]] = None

    def search_keys(self) -> List[str]:
        keys = [self.content]
        if self.title:
            keys.extend(part for part in self.title if part)
        return keys


def similarity(query: str, text: str) -> float:
    """Best match of `query` against any same-length window of `text`, 0 to 1."""
    query = query.lower()
    text = text.lower()
    if not query or not text:
        return 0.0
    if query in text:
        return 1.0
    if len(text) <= len(query):
        return SequenceMatcher(None, query, text).ratio()

    best = 0.0
    width = len(query)
    for start in range(len(text) - width + 1):
        ratio = SequenceMatcher(None, query, text[start : start + width]).ratio()
        if ratio > best:
            best = ratio
    return best


class Suggestions:
    """A session-stable, shuffled list of prompts with fuzzy filtering.

    Parameters
    ----------
    prompts : Iterable[SuggestionPrompt]
        Candidate prompts.
    threshold : float, default=0.5
        Maximum accepted distance (``1 - similarity``) for a match.
    max_query_length : int, default=500
        Queries longer than this are not matched at all.
    seed : int, optional
        Seed for the one-time shuffle.
    """

    def __init__(
        self,
        prompts: Iterable[SuggestionPrompt] = (),
        threshold: float = 0.5,
        max_query_length: int = 500,
        seed: Optional[int] = None,
    ):
        self.threshold = threshold
        self.max_query_length = max_query_length
        self._prompts = list(prompts)
        random.Random(seed).shuffle(self._prompts)

    @property
    def prompts(self) -> List[SuggestionPrompt]:
        return list(self._prompts)

    def filter(self, query: Optional[str]) -> List[SuggestionPrompt]:
        query = query or ""
        if len(query) > self.max_query_length:
            return []
        query = query.strip()
        if not query:
            return self.prompts

        scored = []
        for position, prompt in enumerate(self._prompts):
            score = max(similarity(query, key) for key in prompt.search_keys())
            if 1.0 - score <= self.threshold:
                scored.append((-score, position, prompt))
        scored.sort(key=lambda item: (item[0], item[1]))
        return [prompt for _, _, prompt in scored]

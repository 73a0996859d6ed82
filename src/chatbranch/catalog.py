"""The catalog of models a user can pick from."""

from typing import Dict, Iterable, List, Literal, Optional

from pydantic import BaseModel

from .models import NO_MODEL


class ModelInfo(BaseModel):
    """A model the completion backend can stream from."""

    id: str
    name: Optional[str] = None
    owned_by: Literal[
        "openai", "ollama", "arena", "anthropic", "google", "local"
    ] = "openai"
    hidden: bool = False
    description: Optional[str] = None


class Catalog:
    """Ordered collection of `ModelInfo` keyed by model id."""

    def __init__(self, models: Iterable[ModelInfo] = ()):
        self._models: Dict[str, ModelInfo] = {}
        for model in models:
            self._models[model.id] = model

    @classmethod
    def from_ids(cls, model_ids: Iterable[str], owned_by: str = "openai") -> "Catalog":
        return cls(
            ModelInfo(id=model_id, owned_by=owned_by)
            for model_id in model_ids
            if model_id
        )

    def __len__(self) -> int:
        return len(self._models)

    def __contains__(self, model_id: object) -> bool:
        return model_id in self._models

    def __iter__(self):
        return iter(self._models.values())

    def get(self, model_id: str) -> Optional[ModelInfo]:
        return self._models.get(model_id)

    def available_ids(self) -> List[str]:
        """Ids of every model not marked hidden, in catalog order."""
        return [model.id for model in self._models.values() if not model.hidden]

    def display_name(self, model_id: str) -> str:
        model = self._models.get(model_id)
        if model is None or not model.name:
            return model_id
        return model.name

    def default_selection(
        self,
        folder_models: Optional[List[str]] = None,
        settings_models: Optional[List[str]] = None,
        config_default: Optional[str] = None,
    ) -> List[str]:
        """Pick the models preselected for a new chat.

        The first non-empty source wins: the folder's models, then the user's
        settings, then the comma-separated config default. The choice is
        filtered down to available models. When nothing survives, the first
        available model is selected, or the unset sentinel if there is none.
        """
        available = self.available_ids()

        selected: List[str] = []
        if folder_models:
            selected = list(folder_models)
        elif settings_models:
            selected = list(settings_models)
        elif config_default:
            selected = [part.strip() for part in config_default.split(",")]

        selected = [model_id for model_id in selected if model_id in available]

        if not selected:
            selected = [available[0]] if available else [NO_MODEL]
        return selected

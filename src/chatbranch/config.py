"""Application settings, read from the environment."""

from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CHATBRANCH_", extra="ignore")

    app_name: str = "chatbranch"

    # Models
    default_models: str = ""  # Comma-separated model ids
    system_prompt: Optional[str] = None

    # Suggestions
    insert_suggestion_prompt: bool = False  # Insert into the input instead of sending
    suggestion_threshold: float = 0.5
    suggestion_max_query_length: int = 500

    # UI
    refresh_interval_ms: int = 250
    title_max_length: int = 30

    # Echo provider
    echo_delay: float = 0.05

    @property
    def default_model_list(self) -> List[str]:
        return [m.strip() for m in self.default_models.split(",") if m.strip()]

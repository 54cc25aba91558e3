from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    app_name: str = "Business Circle Insights"
    debug: bool = False

    # Persistence
    database_url: str = "sqlite:///data/business_circle.db"

    # Extraction service (via gen_ai_hub proxy)
    openai_model: str = "gpt-4o"
    temperature: float = 0.0

    # SAP GenAI SDK
    aicore_auth_url: str = ""
    aicore_client_id: str = ""
    aicore_client_secret: str = ""
    aicore_base_url: str = ""
    aicore_resource_group: str = ""

    # Processing Configuration
    batch_size: int = 500  # Messages per extraction call
    group_ids: List[str] = []  # Empty: every group found in the message store
    max_concurrent_groups: int = 4
    user_import_batch_size: int = 50

    model_config = ConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()

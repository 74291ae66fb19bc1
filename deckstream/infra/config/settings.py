"""
Application configuration settings.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=[".env", "../.env"], case_sensitive=False, extra="ignore"
    )

    # Application
    app_name: str = Field("deckstream", alias="APP_NAME")
    environment: str = Field("development", alias="ENVIRONMENT")

    # LLM backend
    api_url: str = Field("https://api.openai.com/v1", alias="API_URL")
    api_key: str = Field("", alias="API_KEY")
    api_type: Optional[str] = Field(None, alias="API_TYPE")  # openai | ollama | gemini
    model: str = Field("", alias="MODEL")
    temperature: float = Field(0.0, alias="TEMPERATURE")
    max_tokens: int = Field(65535, alias="MAX_TOKENS")

    # Per-backend defaults
    default_model_openai: str = Field("gpt-4o-mini", alias="DEFAULT_MODEL_OPENAI")
    default_model_ollama: str = Field("llama3.2", alias="DEFAULT_MODEL_OLLAMA")
    default_model_gemini: str = Field("gemini-2.5-flash", alias="DEFAULT_MODEL_GEMINI")
    default_endpoint_openai: str = Field(
        "https://api.openai.com/v1", alias="DEFAULT_ENDPOINT_OPENAI"
    )
    default_endpoint_ollama: str = Field(
        "http://127.0.0.1:11434", alias="DEFAULT_ENDPOINT_OLLAMA"
    )
    default_endpoint_gemini: str = Field(
        "https://generativelanguage.googleapis.com", alias="DEFAULT_ENDPOINT_GEMINI"
    )

    # Conversation context management
    history_window: int = Field(10, alias="HISTORY_WINDOW")
    compaction_threshold: int = Field(20, alias="COMPACTION_THRESHOLD")
    max_prompt_chars: int = Field(50000, alias="MAX_PROMPT_CHARS")
    retrieval_rounds: int = Field(1, alias="RETRIEVAL_ROUNDS")

    # Transport (the engine itself enforces no timeout)
    request_timeout: Optional[float] = Field(None, alias="REQUEST_TIMEOUT")

    # Logging
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_format: str = Field("json", alias="LOG_FORMAT")

    def default_model_for(self, backend: str) -> str:
        """Default model name for a backend type."""
        return {
            "ollama": self.default_model_ollama,
            "gemini": self.default_model_gemini,
        }.get(backend, self.default_model_openai)

    def default_endpoint_for(self, backend: str) -> str:
        """Default base URL for a backend type."""
        return {
            "ollama": self.default_endpoint_ollama,
            "gemini": self.default_endpoint_gemini,
        }.get(backend, self.default_endpoint_openai)


_settings = None


def get_settings() -> Settings:
    """Get settings instance (useful for dependency injection)."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings

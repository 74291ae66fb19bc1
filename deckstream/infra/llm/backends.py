"""
Backend resolution - endpoint, auth headers and default model per API family.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from deckstream.infra.config.settings import Settings, get_settings


class BackendType(str, Enum):
    OPENAI = "openai"  # SSE chat completions
    OLLAMA = "ollama"  # JSON object per line
    GEMINI = "gemini"  # single JSON body, not streamed


@dataclass(frozen=True)
class BackendConfig:
    type: BackendType
    endpoint: str
    model: str
    headers: Dict[str, str]

    @property
    def streams(self) -> bool:
        return self.type != BackendType.GEMINI


def detect_backend(api_url: str) -> BackendType:
    """Guess the API family from its URL."""
    url = (api_url or "").lower()
    if "11434" in url or "ollama" in url:
        return BackendType.OLLAMA
    if "generativelanguage" in url:
        return BackendType.GEMINI
    return BackendType.OPENAI


def build_endpoint(backend: BackendType, api_url: str, model: str) -> str:
    base = api_url.strip().rstrip("/")
    if backend == BackendType.OLLAMA:
        base = re.sub(r"/api(/chat)?$", "", base)
        return f"{base}/api/chat"
    if backend == BackendType.GEMINI:
        base = re.sub(r"/v\d+(beta)?(/models.*)?$", "", base)
        return f"{base}/v1beta/models/{model}"
    base = re.sub(r"/chat/completions$", "", base)
    return f"{base}/chat/completions"


def build_headers(backend: BackendType, api_key: str) -> Dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if not api_key:
        return headers
    if backend == BackendType.OPENAI:
        headers["Authorization"] = f"Bearer {api_key}"
    elif backend == BackendType.GEMINI:
        headers["x-goog-api-key"] = api_key
    return headers


def resolve_backend(
    api_url: Optional[str] = None,
    api_key: Optional[str] = None,
    model: Optional[str] = None,
    api_type: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> BackendConfig:
    """
    Resolve a backend from explicit values, falling back to settings.

    The API family is taken from ``api_type`` when given, otherwise detected
    from the URL. An empty URL or model falls back to the family default.
    """
    settings = settings or get_settings()
    api_url = api_url if api_url is not None else settings.api_url
    api_key = api_key if api_key is not None else settings.api_key
    api_type = api_type or settings.api_type

    backend = BackendType(api_type.lower()) if api_type else detect_backend(api_url)
    model = model or settings.model or settings.default_model_for(backend.value)
    api_url = api_url or settings.default_endpoint_for(backend.value)

    return BackendConfig(
        type=backend,
        endpoint=build_endpoint(backend, api_url, model),
        model=model,
        headers=build_headers(backend, api_key),
    )

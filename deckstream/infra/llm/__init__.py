"""LLM backend adapters: backend resolution, request shapes, httpx transport."""

from .backends import BackendConfig, BackendType, detect_backend, resolve_backend
from .httpx_transport import HttpxTransport
from .request_builder import build_request

__all__ = [
    "BackendConfig",
    "BackendType",
    "detect_backend",
    "resolve_backend",
    "HttpxTransport",
    "build_request",
]

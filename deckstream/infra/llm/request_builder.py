"""
Request builder - the single place where backend request shapes diverge.

Gemini gets ``contents`` with the system prompt folded into the first user
turn and is called without streaming. OpenAI-compatible and Ollama backends
get a ``messages`` list.
"""

from typing import Any, Dict, List

from deckstream.application.models import ChatRequest, PreparedRequest
from deckstream.infra.llm.backends import BackendConfig, BackendType


def build_request(backend: BackendConfig, request: ChatRequest) -> PreparedRequest:
    if backend.type == BackendType.GEMINI:
        return PreparedRequest(
            url=f"{backend.endpoint}:generateContent",
            headers=dict(backend.headers),
            body=_gemini_body(request),
            stream=False,
        )
    return PreparedRequest(
        url=backend.endpoint,
        headers=dict(backend.headers),
        body=_chat_body(backend, request),
        stream=request.stream,
    )


def _gemini_body(request: ChatRequest) -> Dict[str, Any]:
    system_part = {"text": f'"""\nSYSTEM PROMPT: {request.system_prompt}\n"""'}
    last_user_parts: List[Dict[str, Any]] = []
    if request.prompt:
        last_user_parts.append({"text": request.prompt})
    for image in request.images:
        last_user_parts.append(
            {"inline_data": {"mime_type": image.mime_type, "data": image.base64}}
        )

    contents: List[Dict[str, Any]] = []
    for index, message in enumerate(request.history):
        parts = [{"text": message.content}]
        if index == 0 and message.role == "user":
            parts.insert(0, system_part)
        contents.append(
            {"role": "model" if message.role == "assistant" else "user", "parts": parts}
        )

    if not contents:
        contents.append({"role": "user", "parts": [system_part, *last_user_parts]})
    else:
        if contents[0]["role"] != "user":
            contents.insert(0, {"role": "user", "parts": [system_part]})
        if last_user_parts:
            contents.append({"role": "user", "parts": last_user_parts})

    return {
        "contents": contents,
        "generationConfig": {
            "temperature": request.temperature,
            "maxOutputTokens": request.max_tokens,
        },
    }


def _chat_body(backend: BackendConfig, request: ChatRequest) -> Dict[str, Any]:
    messages: List[Dict[str, Any]] = [
        {"role": "system", "content": request.system_prompt}
    ]
    messages.extend({"role": m.role, "content": m.content} for m in request.history)

    # Retrieval rounds send no new user input
    if request.prompt or request.images:
        messages.append(_last_user_message(backend, request))

    return {
        "model": backend.model,
        "messages": dedupe_consecutive_user_messages(messages),
        "temperature": request.temperature,
        "stream": request.stream,
        "max_tokens": request.max_tokens,
    }


def _last_user_message(backend: BackendConfig, request: ChatRequest) -> Dict[str, Any]:
    if not request.images:
        return {"role": "user", "content": request.prompt}
    if backend.type == BackendType.OLLAMA:
        return {
            "role": "user",
            "content": request.prompt,
            "images": [image.base64 for image in request.images],
        }
    return {
        "role": "user",
        "content": [
            {"type": "text", "text": request.prompt},
            *(
                {
                    "type": "image_url",
                    "image_url": {"url": f"data:{image.mime_type};base64,{image.base64}"},
                }
                for image in request.images
            ),
        ],
    }


def dedupe_consecutive_user_messages(
    messages: List[Dict[str, Any]]
) -> List[Dict[str, Any]]:
    """Collapse two adjacent user messages with the same text, keeping the later."""
    result: List[Dict[str, Any]] = []
    for message in messages:
        previous = result[-1] if result else None
        if (
            previous is not None
            and previous["role"] == "user"
            and message["role"] == "user"
            and _text_of(previous) == _text_of(message)
        ):
            result[-1] = message
        else:
            result.append(message)
    return result


def _text_of(message: Dict[str, Any]) -> str:
    content = message.get("content")
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        for part in content:
            if isinstance(part, dict) and part.get("type") == "text":
                return str(part.get("text", ""))
    return ""

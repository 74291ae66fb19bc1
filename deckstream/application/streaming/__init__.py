"""Streaming codecs: chunk decoding, reasoning split, partial payload parsing."""

from .chunk_decoder import ChunkResult, decode_chunk, decode_response_body
from .completion import SalvageResult, extract_completion_message, salvage
from .partial_parser import parse_partial_response, repair_slide_array
from .thinking_splitter import is_inside_think_tag, separate_thinking

__all__ = [
    "ChunkResult",
    "decode_chunk",
    "decode_response_body",
    "SalvageResult",
    "extract_completion_message",
    "salvage",
    "parse_partial_response",
    "repair_slide_array",
    "is_inside_think_tag",
    "separate_thinking",
]

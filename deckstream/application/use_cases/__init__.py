from .stream_generation import StreamGenerationUseCase

__all__ = ["StreamGenerationUseCase"]

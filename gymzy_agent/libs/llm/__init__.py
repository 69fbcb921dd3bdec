from .generator import (
    BaseGenerator,
    GenerationChunk,
    GenerationResult,
    GeneratorError,
    ToolCall,
)

__all__ = [
    "BaseGenerator",
    "GenerationChunk",
    "GenerationResult",
    "GeneratorError",
    "ToolCall",
]

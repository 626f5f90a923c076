"""
Question generation: constraint resolution, synthesis and validation.
"""

from .constraints import GenerationConstraints, resolve_constraints
from .service import GenerationConstraintService, GenerationResult, GenerationSource
from .synthesizer import ContentSynthesizer, GeminiSynthesizer, SynthesisError, SynthesisRequest
from .validator import build_response_schema, validate_question_data

__all__ = [
    "ContentSynthesizer",
    "GeminiSynthesizer",
    "GenerationConstraintService",
    "GenerationConstraints",
    "GenerationResult",
    "GenerationSource",
    "SynthesisError",
    "SynthesisRequest",
    "build_response_schema",
    "resolve_constraints",
    "validate_question_data",
]

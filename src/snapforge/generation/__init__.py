"""Code generation loop: tool-calling exchange that emits candidate extractors."""

from snapforge.generation.loop import CodeGenerator, GenerationState, extract_code, validate_syntax
from snapforge.generation.prompts import NUDGE_PROMPT, SYSTEM_PROMPT, build_task_prompt

__all__ = [
    "CodeGenerator",
    "GenerationState",
    "extract_code",
    "validate_syntax",
    "NUDGE_PROMPT",
    "SYSTEM_PROMPT",
    "build_task_prompt",
]

"""Prompt validation for 3D generation.

Validates text prompts before they are submitted to the generation service.
"""

DEFAULT_MAX_PROMPT_LENGTH = 600


def validate_prompt(prompt: str, max_length: int = DEFAULT_MAX_PROMPT_LENGTH) -> str:
    """Validate prompt text for 3D generation.

    Args:
        prompt: Text description of the asset
        max_length: Maximum accepted length after trimming

    Returns:
        Prompt with surrounding whitespace removed

    Raises:
        ValueError: If prompt is not a string, is blank, or exceeds max_length
    """
    if not isinstance(prompt, str):
        raise ValueError(f"Prompt must be a string, got {type(prompt).__name__}")

    prompt = prompt.strip()
    if not prompt:
        raise ValueError("Prompt cannot be empty")

    if len(prompt) > max_length:
        raise ValueError(
            f"Prompt exceeds maximum length of {max_length} characters (got {len(prompt)})"
        )

    return prompt

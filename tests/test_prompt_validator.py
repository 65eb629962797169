"""Prompt validation tests."""

import pytest

from meshforge.services.generation.prompt_validator import validate_prompt


def test_strips_surrounding_whitespace():
    assert validate_prompt("  red ceramic vase \n") == "red ceramic vase"


@pytest.mark.parametrize("prompt", ["", "   ", "\t\n"])
def test_blank_prompt_rejected(prompt):
    with pytest.raises(ValueError, match="empty"):
        validate_prompt(prompt)


def test_length_limit():
    assert validate_prompt("x" * 10, max_length=10) == "x" * 10

    with pytest.raises(ValueError, match="maximum length of 10"):
        validate_prompt("x" * 11, max_length=10)


def test_non_string_rejected():
    with pytest.raises(ValueError, match="string"):
        validate_prompt(None)  # type: ignore[arg-type]

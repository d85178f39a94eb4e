"""
Tokenizer shared by the lexical index and its tests.

Lowercases the text, replaces every character that is not a Unicode letter,
digit or whitespace with a space, and splits on whitespace runs.
"""

from typing import List


def _keep(ch: str) -> bool:
    return ch.isalnum() or ch.isspace()


def tokenize(text: str) -> List[str]:
    """Split text into normalized lowercase tokens.

    Args:
        text: Arbitrary input text. None and "" yield an empty list.

    Returns:
        List of tokens in order of appearance.
    """
    if not text:
        return []
    cleaned = "".join(ch if _keep(ch) else " " for ch in text.lower())
    return cleaned.split()

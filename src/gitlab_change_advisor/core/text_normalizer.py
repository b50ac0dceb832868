"""Tokenization of issue titles and descriptions.

Tokens keep their original order; order proximity scoring depends on it.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

STOP_WORDS = frozenset(["a", "the", "and", "or", "but", "in", "on", "at", "to", "for", "is", "are"])

MIN_TOKEN_LENGTH = 3

_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize(text: str | None) -> list[str]:
    """Split free text into lower-cased significant tokens.

    Punctuation becomes whitespace, tokens shorter than three characters
    and stop words are dropped. Never raises; empty or missing input yields
    an empty list.

    Args:
        text: Title or description, possibly None

    Returns:
        Tokens in their original order

    Example:
        >>> normalize("The Grid View!!")
        ['grid', 'view']
    """
    if not text:
        return []

    processed = _NON_WORD.sub(" ", text.lower())
    processed = _WHITESPACE.sub(" ", processed).strip()
    if not processed:
        return []

    return [
        word
        for word in processed.split(" ")
        if len(word) >= MIN_TOKEN_LENGTH and word not in STOP_WORDS
    ]


def significant_terms(text: str | None, limit: int) -> list[str]:
    """Return the most significant distinct tokens of a text.

    Longer tokens rank higher; ties keep first-occurrence order.

    Args:
        text: Text to extract terms from
        limit: Maximum number of terms

    Returns:
        Up to ``limit`` distinct tokens
    """
    unique = list(dict.fromkeys(normalize(text)))
    ranked = sorted(unique, key=len, reverse=True)
    return ranked[:limit]


def find_keywords(text: str | None, keywords: Sequence[str]) -> list[str]:
    """Return the domain keywords mentioned in a text.

    Matching is case-insensitive and bounded so that ``grid`` does not
    match inside ``gridlock``.
    """
    if not text:
        return []

    found: list[str] = []
    for keyword in keywords:
        pattern = rf"(?<![\w:]){re.escape(keyword)}(?![\w:])"
        if re.search(pattern, text, re.IGNORECASE) and keyword not in found:
            found.append(keyword)
    return found

# backend/app/utils/profanity.py
"""
Profanity masking for chat content and conversation names.

Matching is whole-word and case-insensitive over the configured word list
(``PROFANITY_WORDS``). Masking keeps the word length so message layout does
not shift.
"""

from functools import lru_cache
import re
from typing import Optional, Sequence, Tuple

from ..core.config import settings


@lru_cache(maxsize=8)
def _compile(words: Tuple[str, ...]) -> Optional["re.Pattern[str]"]:
    if not words:
        return None
    alternation = "|".join(re.escape(word) for word in sorted(words, key=len, reverse=True))
    return re.compile(rf"\b(?:{alternation})\b", re.IGNORECASE)


def _pattern(words: Optional[Sequence[str]]) -> Optional["re.Pattern[str]"]:
    source = settings.profanity_words if words is None else words
    return _compile(tuple(w.lower() for w in source if w))


def mask_profanity(
    text: str, words: Optional[Sequence[str]] = None, mask_char: Optional[str] = None
) -> str:
    """
    Replace every listed word in ``text`` with mask characters.

    >>> mask_profanity("well damn", words=["damn"])
    'well ****'
    """
    if not text:
        return text
    pattern = _pattern(words)
    if pattern is None:
        return text
    char = mask_char or settings.profanity_mask_char or "*"
    return pattern.sub(lambda match: char * len(match.group(0)), text)


def contains_profanity(text: str, words: Optional[Sequence[str]] = None) -> bool:
    if not text:
        return False
    pattern = _pattern(words)
    return bool(pattern and pattern.search(text))

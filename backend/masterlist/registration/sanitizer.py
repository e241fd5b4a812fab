"""Profanity masking for the free-text fields of a registration."""

import re
from collections.abc import Iterable

DEFAULT_BANNED_WORDS: frozenset[str] = frozenset(
    {
        "arse",
        "arsehole",
        "asshole",
        "bastard",
        "bitch",
        "bollocks",
        "cock",
        "crap",
        "cunt",
        "damn",
        "dick",
        "fuck",
        "fucker",
        "fucking",
        "motherfucker",
        "piss",
        "prick",
        "shit",
        "slut",
        "twat",
        "wanker",
        "whore",
    },
)


class ProfanitySanitizer:
    """Replace each banned word with asterisks of the same length.

    Matching is case-insensitive and whole-word, so "Scunthorpe" survives.
    DEFAULT_BANNED_WORDS is kept deliberately minimal. Deployments extend it
    with extra_words, which the app fills from MASTER_EXTRA_BANNED_WORDS.
    """

    def __init__(self, extra_words: Iterable[str] = ()) -> None:
        words = DEFAULT_BANNED_WORDS | {w.strip().lower() for w in extra_words if w.strip()}
        # longest first so "fucking" wins over "fuck"
        alternation = "|".join(re.escape(w) for w in sorted(words, key=len, reverse=True))
        self._pattern = re.compile(rf"\b(?:{alternation})\b", re.IGNORECASE)

    def clean(self, text: str) -> str:
        return self._pattern.sub(lambda m: "*" * len(m.group(0)), text)

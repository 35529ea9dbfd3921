"""
Moderation policy for confessions.

This is the single, versioned content policy used everywhere a message is
screened: the HTTP route, the SQL backend and the Lambda resolver. The
banned-term list is server-side only and is never returned to clients.

Screening layers, in order:
1. Message validation (required, trimmed, max 500 characters)
2. Banned-term match on normalized text (case, leetspeak, repeated,
   spaced-out and split-up letters, compound words)
3. Sentiment check through an external analyzer, rejecting strongly
   negative content
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

from confessions.errors import (
    MessageRequiredError,
    MessageTooLongError,
    ProfanityDetectedError,
    SentimentServiceError,
    ToxicContentError,
)

logger = logging.getLogger(__name__)

POLICY_VERSION = "1.1.0"

# Only approved confessions are ever stored
APPROVED = "approved"

MAX_MESSAGE_LENGTH = 500
DEFAULT_NEGATIVE_THRESHOLD = 0.8


# =============================================================================
# Banned Terms
# =============================================================================

HINDI_BANNED_TERMS = (
    "बहनचोद", "भोसडी", "मादरचोद", "चूतिया", "गांड", "लौड़ा", "लंड", "भड़वा",
    "रंडी", "हरामी", "कमीना", "कुत्ता", "सूअर", "उल्लू", "गधा", "बकचोद",
    "चूस", "लौड़े", "भोसड़ी", "झाटू", "टट्टी", "मूत", "हग", "फुद्दी",
    "बेवकूफ", "नालायक", "निकम्मा", "बदतमीज़", "बदमाश",
)

TRANSLITERATED_BANNED_TERMS = (
    "bhenchod", "behenchod", "bhosdike", "madarchod", "madarjaat", "chutiya",
    "gaand", "gandu", "lauda", "lavde", "lund", "bhadwa", "randi", "harami",
    "kamina", "kutta", "suar", "bakchod", "chod", "choos", "jhatu", "jhant",
    "tatti", "tatte", "moot", "fuddi", "chut", "bc", "mc", "bsdk",
)

ENGLISH_BANNED_TERMS = (
    "motherfucker", "fucker", "fuck", "bullshit", "shit", "asshole", "dumbass",
    "jackass", "badass", "smartass", "ass", "bitch", "bastard", "damn", "crap",
    "dick", "cock", "pussy", "whore", "slut", "cunt", "nigger", "faggot", "fag",
    "retard", "idiot", "stupid", "dumb", "hate", "kill", "die", "suicide",
    "murder", "rape", "porn", "sex", "nude", "naked", "xxx", "wtf", "stfu",
    "gtfo", "lmao", "piss", "wanker",
)

BANNED_TERMS = HINDI_BANNED_TERMS + TRANSLITERATED_BANNED_TERMS + ENGLISH_BANNED_TERMS

# Terms that occur inside ordinary words ("class", "chutney", "diet") only
# match as whole words.
WHOLE_WORD_TERMS = frozenset({
    "ass", "bc", "mc", "chut", "die", "suar", "lund",
    "हग", "गधा",
})

# Terms that only match at the start of a word, so "dickhead", "sexy" and
# "hateful" are caught while "scrap", "grape" and "whatever" are not.
WORD_START_TERMS = frozenset({
    "bsdk", "chod", "moot", "randi", "damn", "crap", "dick", "cock", "fag",
    "dumb", "hate", "kill", "rape", "sex", "nude", "xxx", "piss",
    "मूत", "चूस", "लंड",
})

# Ordinary words that begin with a word-start term
ALLOWED_WORDS = frozenset({
    "cockpit", "cockpits", "cockroach", "cockroaches", "cocktail", "cocktails",
    "cockatoo", "dickens", "dumbbell", "dumbbells", "sextet", "sexton",
    "rapeseed",
})


# =============================================================================
# Normalization
# =============================================================================

LEETSPEAK_MAP = {
    "4": "a", "@": "a", "3": "e", "1": "i", "!": "i",
    "0": "o", "5": "s", "$": "s", "7": "t", "+": "t",
}
_LEETSPEAK_TABLE = str.maketrans(LEETSPEAK_MAP)

_REPEATED_CHARS = re.compile(r"(.)\1{2,}")
_SEPARATORS = r"[\s.*_\-]+"
# Three or more single letters separated by spaces or punctuation: "f u c k"
_SPACED_LETTERS = re.compile(r"(?<!\w)\w(?:" + _SEPARATORS + r"\w(?!\w)){2,}")

# Devanagari vowel signs are not \w, so the whole block counts as a word character
_WORD_CHAR = r"[\w\u0900-\u097F]"


def normalize_text(text: str) -> str:
    """
    Normalize text for banned-term matching.

    Lowercases, converts leetspeak, collapses runs of three or more identical
    characters to two ("fuuuuck" -> "fuuck") and joins spaced-out letters
    ("f u c k" -> "fuck").
    """
    normalized = text.lower().translate(_LEETSPEAK_TABLE)
    normalized = _REPEATED_CHARS.sub(r"\1\1", normalized)
    return _SPACED_LETTERS.sub(
        lambda m: re.sub(_SEPARATORS, "", m.group()), normalized
    )


def _term_body(term: str) -> str:
    # Each letter may repeat in the text; runs in the term keep their
    # minimum length, capped at the two characters normalization keeps.
    parts = []
    for match in re.finditer(r"(.)\1*", term):
        char, run = re.escape(match.group(1)), len(match.group())
        parts.append(f"{char}+" if run == 1 else f"{char}{{2,}}")
    return "".join(parts)


def _term_pattern(term: str) -> "re.Pattern[str]":
    body = _term_body(term)
    if term in WHOLE_WORD_TERMS:
        body = f"(?<!{_WORD_CHAR}){body}(?!{_WORD_CHAR})"
    elif term in WORD_START_TERMS:
        # Take the rest of the word so it can be checked against ALLOWED_WORDS
        body = f"(?<!{_WORD_CHAR}){body}{_WORD_CHAR}*"
    return re.compile(body)


def _split_term_pattern(term: str) -> "re.Pattern[str]":
    # Matched against pieces joined back together ("fu ck" -> "fuck"), so
    # substring terms may run on to the end of the last piece ("sh itty").
    body = _term_body(term)
    if term not in WORD_START_TERMS:
        body = f"{body}{_WORD_CHAR}*"
    return re.compile(body)


_TERM_PATTERNS = [(term, _term_pattern(term)) for term in BANNED_TERMS]

# Short whole-word terms are left out: joining "b c" or "a ss" would also
# join ordinary pairs of words.
_SPLIT_TERM_PATTERNS = [
    (term, _split_term_pattern(term)) for term in BANNED_TERMS if term not in WHOLE_WORD_TERMS
]
_ANY_SPLIT_TERM = re.compile("|".join(f"(?:{p.pattern})" for _, p in _SPLIT_TERM_PATTERNS))

# Most pieces a split-up term is looked for across
MAX_SPLIT_PIECES = 4


def _find_split_term(normalized: str) -> Optional[str]:
    """
    Find a term broken up by spaces or punctuation ("fu ck", "sh.it").

    Joined pieces must start at a piece boundary and match a term in full,
    so "push it" does not match "shit".
    """
    pieces = [piece for piece in re.split(_SEPARATORS, normalized) if piece]
    for start in range(len(pieces)):
        for end in range(start + 2, min(start + MAX_SPLIT_PIECES, len(pieces)) + 1):
            joined = "".join(pieces[start:end])
            if not _ANY_SPLIT_TERM.fullmatch(joined):
                continue
            for term, pattern in _SPLIT_TERM_PATTERNS:
                if pattern.fullmatch(joined):
                    return term
    return None


def find_banned_term(text: str) -> Optional[str]:
    """
    Find the first banned term in a message.

    Returns:
        The matched term from the list, or None if the text is clean
    """
    normalized = normalize_text(text)
    for term, pattern in _TERM_PATTERNS:
        for match in pattern.finditer(normalized):
            if match.group() not in ALLOWED_WORDS:
                return term
    return _find_split_term(normalized)



# =============================================================================
# Screening
# =============================================================================

@dataclass
class ModerationOutcome:
    """Result of a message that passed every screening layer."""

    message: str
    sentiment: Optional[str]
    policy_version: str = POLICY_VERSION


def validate_message(message: Any) -> str:
    """
    Validate and trim a submitted message.

    Raises:
        MessageRequiredError: missing, non-string or blank message
        MessageTooLongError: more than MAX_MESSAGE_LENGTH characters after trimming
    """
    if not isinstance(message, str) or not message.strip():
        raise MessageRequiredError()

    trimmed = message.strip()
    if len(trimmed) > MAX_MESSAGE_LENGTH:
        raise MessageTooLongError()
    return trimmed


def check_banned_terms(message: str) -> None:
    """Raise ProfanityDetectedError if the message contains a banned term."""
    term = find_banned_term(message)
    if term is not None:
        logger.info("Banned term detected", extra={"policy_version": POLICY_VERSION})
        logger.debug(f"Detected term: {term}")
        raise ProfanityDetectedError()


def check_sentiment(
    message: str,
    analyzer,
    threshold: float = DEFAULT_NEGATIVE_THRESHOLD,
    fail_open: bool = True,
) -> Optional[str]:
    """
    Screen a message with the sentiment analyzer.

    Args:
        message: Validated message text
        analyzer: Object with analyze(text) -> SentimentAssessment, or None to skip
        threshold: Negative score above which NEGATIVE content is rejected
        fail_open: Allow the message when the analyzer fails instead of raising

    Returns:
        The sentiment label, or None when no assessment was made

    Raises:
        ToxicContentError: strongly negative sentiment
        SentimentServiceError: analyzer failure with fail_open disabled
    """
    if analyzer is None:
        return None

    try:
        assessment = analyzer.analyze(message)
    except SentimentServiceError as e:
        if not fail_open:
            raise
        logger.warning(f"Sentiment check failed, allowing message (fail-open): {e.message}")
        return None

    if assessment.label == "NEGATIVE" and assessment.negative > threshold:
        logger.info(f"Toxic sentiment detected: negative={assessment.negative:.3f}")
        raise ToxicContentError()

    return assessment.label


def moderate(
    message: Any,
    analyzer=None,
    threshold: float = DEFAULT_NEGATIVE_THRESHOLD,
    fail_open: bool = True,
) -> ModerationOutcome:
    """Run every screening layer and return the approved message."""
    trimmed = validate_message(message)
    check_banned_terms(trimmed)
    sentiment = check_sentiment(trimmed, analyzer, threshold=threshold, fail_open=fail_open)
    return ModerationOutcome(message=trimmed, sentiment=sentiment)

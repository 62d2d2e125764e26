"""
shared/utils/content_guard.py
Word-list filter for harmful language in English and Tagalog.

Matching is case-insensitive and whole-word: "class" does not trip "ass",
"hello" does not trip "hell". Multi-word terms tolerate any run of
whitespace between words. The filter is advisory; it will miss some
abuse and block some innocent text.
"""

import re
from dataclasses import dataclass, field
from typing import Mapping, Optional

from shared.errors import ValidationError

ENGLISH_TERMS = (
    # Profanity
    "fuck", "fucking", "fucker", "motherfucker", "shit", "shitty",
    "bitch", "bitches", "asshole", "bastard", "damn", "hell",
    "crap", "piss", "dick", "cock", "cocksucker", "pussy",
    "whore", "slut", "hoe", "jackass", "dumbass",
    # Obfuscations
    "fck", "fuk", "fuq", "f*ck", "f**k", "sh*t", "sht",
    "b*tch", "biatch", "a$$", "a$$hole", "@ss", "@sshole",
    "pu$$y", "p*ssy", "d1ck", "c0ck",
    # Sexual
    "sex", "sexual", "porn", "porno", "pornhub", "nude", "naked",
    "boobs", "tits", "tit", "ass", "butt", "booty",
    "anal", "oral", "blowjob", "handjob", "rimjob",
    "masturbate", "masturbation", "jerk off", "cum", "cumming",
    "horny", "sexy", "seduce", "seduction", "orgasm",
    "rape", "rapist", "molest", "molestation",
    # Slurs
    "nigger", "nigga", "faggot", "fag", "retard", "retarded",
    "tranny", "chink", "spic", "kike", "cracker",
    # Violence
    "kill", "killing", "murder", "die", "death", "dead",
    "suicide", "self harm", "harm", "hurt", "attack",
    "beat", "stab", "shoot", "bomb", "terrorist",
    # Drugs
    "cocaine", "coke", "heroin", "meth", "shabu", "weed",
    "marijuana", "pot", "drug", "drugs", "dealer",
    "get high", "stoned",
    # Scams
    "send money", "send cash", "cash app", "venmo me", "paypal me",
    "gcash me", "paymaya me", "buy nudes", "selling nudes",
    "sugar daddy", "sugar baby", "scam", "fraud", "hack",
)

TAGALOG_TERMS = (
    # Profanity
    "putang ina", "putangina", "puta", "gago", "gaga", "tanga",
    "tangina", "tarantado", "ulol", "bobo", "gunggong",
    "hayop", "hinayupak", "kingina", "peste", "animal",
    "punyeta", "leche", "yawa", "pakyu", "lintik",
    "bwisit", "badtrip", "sira ulo", "buang", "loko",
    # Obfuscations
    "p u t a", "p*ta", "p*tang ina", "g@go", "t@nga",
    "put@ng in@", "tang ina", "puking ina", "put@", "g@g0",
    "t@ngina", "pu+ang ina",
    # Sexual
    "kantot", "kantutan", "tamod", "titi", "puke", "bilat",
    "jakol", "chupa", "tsupa", "libog", "malibog",
    "tite", "oten", "burat", "bayag", "iyot", "iyutan",
    "kadyot", "kadyotan", "kantotero", "kantotera",
    # Insults
    "walang hiya", "walang kwenta", "basura", "demonyo",
    "unggoy", "baboy", "aso", "kampon ni satanas",
    "salot", "perwisyo", "pabigat", "palamunin",
    # Violence
    "patayin", "papatayin", "saksak", "barilin", "bugbugin",
    "patay", "mamamatay", "sunugin", "gulpi", "sakalin",
    # Drugs
    "droga", "adik", "adik sa droga", "pusher",
    "tulak", "bangag", "sabog",
    # Scams
    "padala ng pera", "send gcash", "send paymaya",
    "magpadala ng pera", "hingi pera", "utang", "budol",
    "scammer", "modus",
)

BLOCKED_TERMS = tuple(dict.fromkeys(t.lower() for t in ENGLISH_TERMS + TAGALOG_TERMS))


def _term_pattern(term: str) -> str:
    return r"\s+".join(re.escape(word) for word in term.split())


# Longest first so "putang ina" wins over "puta" at the same offset.
_PATTERN = re.compile(
    r"(?<!\w)(?:"
    + "|".join(_term_pattern(t) for t in sorted(BLOCKED_TERMS, key=len, reverse=True))
    + r")(?!\w)",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class ContentCheck:
    is_clean: bool
    matched_terms: list[str] = field(default_factory=list)


def check_content(text: Optional[str]) -> ContentCheck:
    if not text:
        return ContentCheck(is_clean=True)
    found: list[str] = []
    for match in _PATTERN.finditer(text):
        term = " ".join(match.group(0).lower().split())
        if term not in found:
            found.append(term)
    return ContentCheck(is_clean=not found, matched_terms=found)


def validate_text(text: Optional[str], field_name: str = "Text") -> Optional[str]:
    if check_content(text).is_clean:
        return None
    return f"{field_name} contains inappropriate language. Please keep your content respectful."


def validate_fields(fields: Mapping[str, Optional[str]]) -> Optional[str]:
    """Return the message for the first offending field, or None if all pass."""
    for field_name, text in fields.items():
        error = validate_text(text, field_name)
        if error:
            return error
    return None


def ensure_clean(fields: Mapping[str, Optional[str]]) -> None:
    """Raise ValidationError naming the first offending field."""
    for field_name, text in fields.items():
        error = validate_text(text, field_name)
        if error:
            raise ValidationError(error, field=field_name)

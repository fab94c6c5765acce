"""
Content Moderation

A static word-boundary blocklist for slurs, dehumanizing language and calls
to violence. Every pattern is anchored on word boundaries, so ordinary words
that merely contain a listed sequence are not flagged.

Before matching, text is NFKD-normalized with diacritics stripped, and runs
of "_", "-" and "." become spaces, so joined phrases like "death_to" and
accented look-alikes still match.
"""

import re
import unicodedata


BLACKLISTED_PATTERNS = [
    # Racial / ethnic slurs
    re.compile(r"\bn+[i1!]+[gq]+(?:[e3]+r|[a@]+[h]?)\b", re.IGNORECASE),
    re.compile(r"\bk+[i1!]+k+[e3]+[s$]?\b", re.IGNORECASE),
    re.compile(r"\bch+[i1!]+n+k+[s$]?\b", re.IGNORECASE),
    re.compile(r"\bsp+[i1!]+c+[s$]?\b", re.IGNORECASE),
    re.compile(r"\bw+[e3]+tb+[a@]+ck+[s$]?\b", re.IGNORECASE),
    re.compile(r"\bg+[o0]+[o0]+k+[s$]?\b", re.IGNORECASE),
    re.compile(r"\bcoon+[s$]?\b", re.IGNORECASE),
    re.compile(r"\bdarki+e+[s$]?\b", re.IGNORECASE),
    re.compile(r"\btowel\s*head[s]?\b", re.IGNORECASE),
    re.compile(r"\brag\s*head[s]?\b", re.IGNORECASE),
    re.compile(r"\bbeaner[s]?\b", re.IGNORECASE),
    re.compile(r"\bgringo[s]?\b", re.IGNORECASE),

    # Anti-LGBTQ slurs
    re.compile(r"\bf+[a@]+g+[s$]?\b", re.IGNORECASE),
    re.compile(r"\bf+[a@]+g+[o0]+t+[s$]?\b", re.IGNORECASE),
    re.compile(r"\bd+[y]+k+[e3]+[s$]?\b", re.IGNORECASE),
    re.compile(r"\btr+[a@]+nn+[yie]+[s$]?\b", re.IGNORECASE),

    # Misogynistic slurs
    re.compile(r"\bc+[u]+n+t+[s$]?\b", re.IGNORECASE),

    # Antisemitic
    re.compile(r"\bheil\s+hitler\b", re.IGNORECASE),
    re.compile(r"\bsieg\s+heil\b", re.IGNORECASE),
    re.compile(r"\bgas\s+the\b", re.IGNORECASE),

    # Dehumanizing phrases
    re.compile(r"\bsub\s*human[s]?\b", re.IGNORECASE),
    re.compile(r"\bvermin\b", re.IGNORECASE),
    re.compile(r"\bcockroach(?:es)?\b", re.IGNORECASE),

    # Calls to violence against groups
    re.compile(r"\bkill\s+all\b", re.IGNORECASE),
    re.compile(r"\bdeath\s+to\b", re.IGNORECASE),
    re.compile(r"\bgenocide\b", re.IGNORECASE),
    re.compile(r"\bethnic\s+cleansing\b", re.IGNORECASE),

    # White supremacy phrases
    re.compile(r"\bwhite\s+power\b", re.IGNORECASE),
    re.compile(r"\bwhite\s+suprema", re.IGNORECASE),
    re.compile(r"\b14\s*88\b"),
    re.compile(r"\brace\s+war\b", re.IGNORECASE),
]


def normalize_for_matching(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return re.sub(r"[_\-.]+", " ", stripped)


def contains_hate_speech(text: str) -> bool:
    """
    Check text against the blocklist.

    Examples:
        >>> contains_hate_speech("a quiet evening")
        False
        >>> contains_hate_speech("KILL ALL of them")
        True
    """
    normalized = normalize_for_matching(text)
    return any(pattern.search(normalized) for pattern in BLACKLISTED_PATTERNS)

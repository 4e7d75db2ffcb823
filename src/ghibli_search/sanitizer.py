"""Turn a free-form language-model answer into a short search phrase.

The rewrite model is asked for a bare 4-8 word phrase but regularly answers
with markdown, quotes, labels such as ``Output:`` or a whole sentence about
"the image". ``sanitize_query`` strips all of that deterministically.
"""

import re

MAX_WORDS = 8
FALLBACK_MAX_WORDS = 6

# Words that must never end a phrase
DANGLING_WORDS = frozenset(
    {
        "a", "an", "the", "of", "with", "in", "on", "at", "to", "for", "by",
        "from", "as", "and", "or", "but", "is", "are", "was", "were", "that",
        "which", "who", "being", "this", "its",
    }
)
# Articles may start a phrase
START_DANGLING_WORDS = DANGLING_WORDS - {"a", "an", "the"}

_FALLBACK_STOP_WORDS = frozenset({"image", "picture", "photo", "shows", "depicts"})

# (pattern, replacement) pairs applied in order
_CLEANUP_STEPS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"```[\s\S]*?```"), ""),  # fenced code blocks
    (re.compile(r"```\w*\s*"), ""),  # unclosed fence markers
    (re.compile(r"\*\*([^*]+)\*\*"), r"\1"),  # bold
    (re.compile(r"\*([^*]+)\*"), r"\1"),  # italic
    (re.compile(r"^#+\s*", re.MULTILINE), ""),  # headings
    (re.compile(r"^[-*]\s+", re.MULTILINE), ""),  # list bullets
    (re.compile(r"\[([^\]]+)\]\([^)]+\)"), r"\1"),  # links keep their text
    (re.compile(r"^[\"']|[\"']\Z"), ""),  # surrounding quotes
    (re.compile(r"^(Search query|Output|Query|Search|Keywords|Result):\s*", re.IGNORECASE), ""),
    (re.compile(r"\n"), " "),
    (re.compile(r"[^\w\s'-]"), " "),  # punctuation except hyphens and apostrophes
    (re.compile(r"\b(image|picture|photo|screenshot|photograph|description)\b", re.IGNORECASE), ""),
    (
        re.compile(
            r"\b(shows?|depicts?|displays?|features?|presents?|contains?|illustrates?)\b",
            re.IGNORECASE,
        ),
        "",
    ),
    (re.compile(r"\s+"), " "),
]

_ALL_PUNCTUATION_RE = re.compile(r"[^\w\s]")


def _trim_trailing(words: list[str]) -> list[str]:
    while words and words[-1] in DANGLING_WORDS:
        words.pop()
    return words


def _trim_leading(words: list[str]) -> list[str]:
    start = 0
    while start < len(words) and words[start] in START_DANGLING_WORDS:
        start += 1
    return words[start:]


def _fallback_phrase(raw: str) -> str:
    """Keyword phrase built straight from the raw text."""
    words = [
        w
        for w in _ALL_PUNCTUATION_RE.sub(" ", raw).lower().split()
        if len(w) > 2 and w not in DANGLING_WORDS and w not in _FALLBACK_STOP_WORDS
    ]
    return " ".join(_trim_trailing(words[:FALLBACK_MAX_WORDS]))


def sanitize_query(text: str, fallback_source: str | None = None) -> str:
    """Clean ``text`` into a search phrase of at most 8 words.

    If the cleaned phrase is empty or shorter than 3 characters, a keyword
    phrase is rebuilt from ``fallback_source`` (defaults to ``text``).

    Example:
        >>> sanitize_query('**Output:** "Witch girl flying through clouds with a"')
        'witch girl flying through clouds'
    """
    cleaned = text
    for pattern, replacement in _CLEANUP_STEPS:
        cleaned = pattern.sub(replacement, cleaned)
    cleaned = cleaned.lower().strip()

    words = _trim_leading(_trim_trailing(cleaned.split()))
    if len(words) > MAX_WORDS:
        words = _trim_trailing(words[:MAX_WORDS])
    candidate = " ".join(words)

    if len(candidate) < 3:
        return _fallback_phrase(fallback_source if fallback_source is not None else text) or candidate
    return candidate

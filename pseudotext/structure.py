"""
CV Structure
============
Decompose words into alternating consonant/vowel clusters (CV-tokens).

    >>> tokenize_structure("Strength")
    [CVToken(kind='C', content='str'), CVToken(kind='V', content='e'), CVToken(kind='C', content='ngth')]

The token count is the word's structural length; together with the class of
the first token it forms the word's shape.
"""

from typing import List, NamedTuple, Optional

from pseudotext.config import AnalysisConfig

CONSONANT = 'C'
VOWEL = 'V'

DEFAULT_VOWELS = frozenset('aeiouyæøåäöüé')


class CVToken(NamedTuple):
    kind: str
    content: str


def other_kind(kind: str) -> str:
    return VOWEL if kind == CONSONANT else CONSONANT


def clean_word(word: str) -> str:
    """Letters only, lowercased."""
    return ''.join(ch for ch in word if ch.isalpha()).lower()


def tokenize_structure(word: str, vowels: frozenset = DEFAULT_VOWELS) -> List[CVToken]:
    """Run-length encode a word into CV-tokens.

    Non-letters are stripped first. Returns an empty list when nothing is
    left, which callers treat as "drop this word".
    """
    tokens: List[CVToken] = []
    kind = None
    run = []
    for ch in clean_word(word):
        ch_kind = VOWEL if ch in vowels else CONSONANT
        if kind is not None and ch_kind != kind:
            tokens.append(CVToken(kind, ''.join(run)))
            run = []
        kind = ch_kind
        run.append(ch)
    if run:
        tokens.append(CVToken(kind, ''.join(run)))
    return tokens


def structural_length(word: str, vowels: frozenset = DEFAULT_VOWELS) -> int:
    return len(tokenize_structure(word, vowels))


def effective_length(length: int, cap: int = 8) -> int:
    """Token count capped at ``cap`` so long words share one bucket."""
    return min(length, cap)


def is_plausible_word(word: str, config: Optional[AnalysisConfig] = None) -> bool:
    """Sanity gate keeping numbers, initialisms and OCR noise out of the model."""
    config = config or AnalysisConfig()
    cleaned = clean_word(word)
    if not cleaned or len(cleaned) > config.max_word_length:
        return False
    tokens = tokenize_structure(cleaned, config.vowel_set)
    if config.require_vowel and not any(t.kind == VOWEL for t in tokens):
        return False
    longest_run = max((len(t.content) for t in tokens if t.kind == CONSONANT), default=0)
    return longest_run <= config.max_consonant_run

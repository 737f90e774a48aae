#!/usr/bin/env python3
"""
Structural N-gram Model
=======================
Counts of CV-token content keyed by position, word length and context.

For every accepted word the model records:
- the word shape (length, start type)
- the start token, keyed by (effective length, start type)
- each later token keyed by (effective length, previous token type),
  split into inner and last buckets
- the same token keyed by the previous token's content (bigram),
  split into start, inner and last buckets
- from index 2 on, keyed by the two previous contents (trigram),
  split into inner and last buckets

Counts stay mutable until ``compile_model`` turns every leaf into a
WeightedSelector; compiled models are never updated in place.

Usage:
    from pseudotext.model import StatModel, compile_model

    stats = StatModel()
    stats.record_word(tokenize_structure("pattern"))
    compiled = compile_model(stats)
"""

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, NamedTuple, Optional, Sequence, Set, Tuple

from pseudotext.errors import ModelValidationError
from pseudotext.selector import WeightedSelector
from pseudotext.structure import CONSONANT, VOWEL, CVToken, clean_word, effective_length, other_kind

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1

TABLES = (
    'start', 'inner', 'last',
    'bigram_start', 'bigram_inner', 'bigram_last',
    'trigram_inner', 'trigram_last',
)


class Shape(NamedTuple):
    """Fused (length, start type) key of the top-level word distribution."""
    length: int
    start_type: str


class ContextKey(NamedTuple):
    """Lookup key for a token table: effective length plus its context."""
    eff_len: int
    context: Tuple[str, ...]


def _table():
    return defaultdict(Counter)


# =============================================================================
# Counting model
# =============================================================================

@dataclass
class StatModel:
    """Word-structure counts gathered during analysis."""
    max_effective_length: int = 8
    shapes: Counter = field(default_factory=Counter)
    start: Dict[ContextKey, Counter] = field(default_factory=_table)
    inner: Dict[ContextKey, Counter] = field(default_factory=_table)
    last: Dict[ContextKey, Counter] = field(default_factory=_table)
    bigram_start: Dict[ContextKey, Counter] = field(default_factory=_table)
    bigram_inner: Dict[ContextKey, Counter] = field(default_factory=_table)
    bigram_last: Dict[ContextKey, Counter] = field(default_factory=_table)
    trigram_inner: Dict[ContextKey, Counter] = field(default_factory=_table)
    trigram_last: Dict[ContextKey, Counter] = field(default_factory=_table)
    vocabulary: Set[str] = field(default_factory=set)
    has_vocabulary: bool = True
    words_recorded: int = 0

    def effective_length(self, length: int) -> int:
        return effective_length(length, self.max_effective_length)

    def record_word(self, tokens: Sequence[CVToken]):
        """Add one tokenized word to every table."""
        if not tokens:
            return
        length = len(tokens)
        eff = self.effective_length(length)
        start_type = tokens[0].kind
        self.shapes[Shape(length, start_type)] += 1
        self.start[ContextKey(eff, (start_type,))][tokens[0].content] += 1

        for i in range(1, length):
            content = tokens[i].content
            prev = tokens[i - 1]
            is_last = i == length - 1

            base = self.last if is_last else self.inner
            base[ContextKey(eff, (prev.kind,))][content] += 1

            if is_last:
                bigram = self.bigram_last
            elif i == 1:
                bigram = self.bigram_start
            else:
                bigram = self.bigram_inner
            bigram[ContextKey(eff, (prev.content,))][content] += 1

            if i >= 2:
                trigram = self.trigram_last if is_last else self.trigram_inner
                trigram[ContextKey(eff, (tokens[i - 2].content, prev.content))][content] += 1

        self.words_recorded += 1

    def add_vocabulary(self, word: str):
        cleaned = clean_word(word)
        if cleaned:
            self.vocabulary.add(cleaned)

    def tables(self):
        """(name, table) pairs for every token table."""
        return [(name, getattr(self, name)) for name in TABLES]

    def prune(self, min_tokens: int) -> int:
        """Drop every shape with length <= ``min_tokens``; returns how many went.

        Raises ModelValidationError instead of leaving the model empty.
        """
        if min_tokens <= 0:
            return 0
        keep = Counter({s: n for s, n in self.shapes.items() if s.length > min_tokens})
        if not keep:
            raise ModelValidationError([
                f"Pruning at {min_tokens} tokens would remove all {len(self.shapes)} word shapes"
            ])
        removed = len(self.shapes) - len(keep)
        self.shapes = keep
        logger.debug(f"Pruned {removed} word shapes at <= {min_tokens} tokens")
        return removed

    def merge(self, other: 'StatModel') -> 'StatModel':
        """Add another model's counts into this one."""
        if other.max_effective_length != self.max_effective_length:
            raise ValueError("Cannot merge models with different effective length caps")
        self.shapes.update(other.shapes)
        for name, table in self.tables():
            for key, counts in getattr(other, name).items():
                table[key].update(counts)
        self.vocabulary |= other.vocabulary
        self.words_recorded += other.words_recorded
        return self

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self, include_vocabulary: bool = True) -> dict:
        """Serialize to plain lists; composite keys are kept as separate fields."""
        data = {
            'format': FORMAT_VERSION,
            'max_effective_length': self.max_effective_length,
            'vocabulary': sorted(self.vocabulary) if include_vocabulary else None,
            'shapes': [[s.length, s.start_type, n] for s, n in sorted(self.shapes.items())],
        }
        for name, table in self.tables():
            data[name] = [
                [key.eff_len, list(key.context), dict(counts)]
                for key, counts in sorted(table.items())
            ]
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'StatModel':
        model = cls(max_effective_length=int(data.get('max_effective_length', 8)))
        model.shapes = Counter({
            Shape(int(length), start_type): int(n) for length, start_type, n in data.get('shapes', [])
        })
        for name, table in model.tables():
            for eff_len, context, counts in data.get(name, []):
                table[ContextKey(int(eff_len), tuple(context))].update(counts)
        vocabulary = data.get('vocabulary')
        if vocabulary is not None:
            model.vocabulary = set(vocabulary)
        model.has_vocabulary = vocabulary is not None
        return model


# =============================================================================
# Compiled model
# =============================================================================

@dataclass(frozen=True)
class CompiledModel:
    """Read-only selectors built from a StatModel."""
    max_effective_length: int
    shapes: WeightedSelector
    start_types: Dict[int, WeightedSelector]
    selectors: Dict[str, Dict[ContextKey, WeightedSelector]]
    vocabulary: Optional[FrozenSet[str]] = None

    def effective_length(self, length: int) -> int:
        return effective_length(length, self.max_effective_length)

    def selector(self, table: str, eff_len: int, context: Tuple[str, ...]) -> Optional[WeightedSelector]:
        sel = self.selectors[table].get(ContextKey(eff_len, context))
        if sel is None or sel.is_empty():
            return None
        return sel

    def lengths(self) -> List[int]:
        return sorted(self.start_types)


def compile_model(stats: StatModel, use_vocabulary: bool = True) -> CompiledModel:
    """Turn every count map into a WeightedSelector."""
    by_length: Dict[int, Counter] = defaultdict(Counter)
    for shape, n in stats.shapes.items():
        by_length[shape.length][shape.start_type] += n

    selectors = {
        name: {key: WeightedSelector(counts) for key, counts in table.items()}
        for name, table in stats.tables()
    }
    vocabulary = None
    if use_vocabulary and stats.vocabulary:
        vocabulary = frozenset(stats.vocabulary)

    return CompiledModel(
        max_effective_length=stats.max_effective_length,
        shapes=WeightedSelector(stats.shapes),
        start_types={length: WeightedSelector(c) for length, c in by_length.items()},
        selectors=selectors,
        vocabulary=vocabulary,
    )


# =============================================================================
# Validation
# =============================================================================

def last_prev_type(length: int, start_type: str) -> str:
    """Class of the token before the last one in a word of ``length`` tokens."""
    return start_type if length % 2 == 0 else other_kind(start_type)


def validate_word_model(model: CompiledModel) -> CompiledModel:
    """Check every word shape can be completed from unigram data alone.

    Collects all problems and raises one ModelValidationError.
    """
    problems: List[str] = []
    if model.shapes.is_empty():
        raise ModelValidationError(["No word statistics (the corpus produced no usable words)"])

    for shape in sorted(model.shapes.keys):
        length, start_type = shape
        eff = model.effective_length(length)
        if model.selector('start', eff, (start_type,)) is None:
            problems.append(f"No start tokens for length {length} starting with {start_type}")
        if length > 1:
            prev = last_prev_type(length, start_type)
            if model.selector('last', eff, (prev,)) is None:
                problems.append(f"No last tokens for length {length} after {prev}")
        if length > 2:
            needed = {start_type} if length == 3 else {CONSONANT, VOWEL}
            for prev in sorted(needed):
                if model.selector('inner', eff, (prev,)) is None:
                    problems.append(f"No inner tokens for length {length} after {prev}")

    if problems:
        raise ModelValidationError(problems)
    return model

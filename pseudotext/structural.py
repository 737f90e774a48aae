#!/usr/bin/env python3
"""
Structure Chains
================
A Markov chain over the entity stream of each segment type, used to grow
new sentence trees instead of replaying stored templates.

Each segment is read as a stream of entities in reading order:

    WORD:SHORT  WORD:MED  PAUSE:,  WORD:SHORT  SEGMENT:QUOTE

Words are binned by CV length, pauses keep their mark and nested segments
keep their type. Per segment type the model counts which entity follows
the previous ``context_depth`` entities (padded with START, closed by END),
how streams open, how many entities a segment holds and which punctuation
delimits it.

Usage:
    from pseudotext.structural import StructureBuilder, compile_structure

    builder = StructureBuilder(compile_structure(rhythm.structure), rng, max_depth=4)
    tree = builder.sentence(attempts=10)
"""

import logging
import random
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from pseudotext.segments import Segment, SegmentBuilder, SegmentType, template_problem
from pseudotext.selector import WeightedSelector
from pseudotext.settings import get_setting

logger = logging.getLogger(__name__)

WORD = "WORD"
PAUSE = "PAUSE"
SEGMENT = "SEGMENT"
START = "START"
END = "END"

SEGMENT_TYPES = {t.value: t for t in SegmentType}

ChainKey = Tuple[str, Tuple[str, ...]]


def word_bin(length: int) -> str:
    """Name of the word-length bin a word of ``length`` CV-tokens falls in."""
    for upper, label in get_setting("rhythm.structure.word_bins", []):
        if length <= upper:
            return label
    return get_setting("rhythm.structure.overflow_word_bin", "LONG")


def entity_stream(segment: Segment) -> List[str]:
    """Words, pauses and nested segments of ``segment`` in reading order."""
    stream = []
    children = sorted(segment.children, key=lambda c: c[0])
    ci = 0
    for i in range(len(segment.word_lengths) + 1):
        while ci < len(children) and children[ci][0] <= i:
            child = children[ci][1]
            if child.is_pause:
                stream.append(f"{PAUSE}:{child.terminator}")
            else:
                stream.append(f"{SEGMENT}:{child.type.value}")
            ci += 1
        if i < len(segment.word_lengths):
            stream.append(f"{WORD}:{word_bin(segment.word_lengths[i])}")
    return stream


def chain_context(stream: Sequence[str], end: int, depth: int) -> Tuple[str, ...]:
    """The ``depth`` entities before index ``end``, START-padded on the left."""
    window = list(stream[max(0, end - depth):end])
    return tuple([START] * (depth - len(window)) + window)


# =============================================================================
# Counting model
# =============================================================================

@dataclass
class StructureModel:
    """Entity-chain counts per segment type."""
    context_depth: Optional[int] = None
    chains: Dict[ChainKey, Counter] = field(default_factory=lambda: defaultdict(Counter))
    starts: Dict[str, Counter] = field(default_factory=lambda: defaultdict(Counter))
    entity_counts: Dict[str, List[int]] = field(default_factory=lambda: defaultdict(list))
    delimiters: Dict[str, Counter] = field(default_factory=lambda: defaultdict(Counter))
    word_lengths: Dict[str, Counter] = field(default_factory=lambda: defaultdict(Counter))

    def __post_init__(self):
        if self.context_depth is None:
            self.context_depth = int(get_setting("rhythm.structure.context_depth", 3))

    def add_segment(self, segment: Segment):
        """Count ``segment`` and every nested non-pause segment below it."""
        for child in segment.structural_children():
            self.add_segment(child)

        seg_type = segment.type.value
        stream = entity_stream(segment)
        if not stream:
            return
        for length in segment.word_lengths:
            self.word_lengths[word_bin(length)][length] += 1
        self.delimiters[seg_type][(segment.open_punct, segment.close_punct, segment.terminator)] += 1
        self.entity_counts[seg_type].append(len(stream))
        self.starts[seg_type][tuple(stream[:self.context_depth])] += 1
        for i, entity in enumerate(stream):
            self.chains[(seg_type, chain_context(stream, i, self.context_depth))][entity] += 1
        self.chains[(seg_type, chain_context(stream, len(stream), self.context_depth))][END] += 1

    @property
    def contexts(self) -> int:
        return len(self.chains)

    def merge(self, other: 'StructureModel') -> 'StructureModel':
        if other.context_depth != self.context_depth:
            raise ValueError("Cannot merge structure chains with different context depths")
        for key, counts in other.chains.items():
            self.chains[key].update(counts)
        for seg_type, counts in other.starts.items():
            self.starts[seg_type].update(counts)
        for seg_type, counts in other.entity_counts.items():
            self.entity_counts[seg_type].extend(counts)
        for seg_type, counts in other.delimiters.items():
            self.delimiters[seg_type].update(counts)
        for name, counts in other.word_lengths.items():
            self.word_lengths[name].update(counts)
        return self

    def to_dict(self) -> dict:
        return {
            'context_depth': self.context_depth,
            'chains': [
                [seg_type, list(context), dict(counts)]
                for (seg_type, context), counts in sorted(self.chains.items())
            ],
            'starts': {
                seg_type: [[list(context), n] for context, n in counts.items()]
                for seg_type, counts in self.starts.items()
            },
            'entity_counts': {seg_type: list(counts) for seg_type, counts in self.entity_counts.items()},
            'delimiters': {
                seg_type: [[open_punct, close_punct, terminator, n]
                           for (open_punct, close_punct, terminator), n in counts.items()]
                for seg_type, counts in self.delimiters.items()
            },
            'word_lengths': {
                name: {str(length): n for length, n in sorted(counts.items())}
                for name, counts in self.word_lengths.items()
            },
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'StructureModel':
        """Load a record; a missing record gives an empty model."""
        data = data or {}
        depth = data.get('context_depth')
        model = cls(context_depth=int(depth) if depth is not None else None)
        for seg_type, context, counts in data.get('chains', []):
            model.chains[(seg_type, tuple(context))].update(counts)
        for seg_type, entries in data.get('starts', {}).items():
            for context, n in entries:
                model.starts[seg_type][tuple(context)] += int(n)
        for seg_type, counts in data.get('entity_counts', {}).items():
            model.entity_counts[seg_type].extend(int(n) for n in counts)
        for seg_type, entries in data.get('delimiters', {}).items():
            for open_punct, close_punct, terminator, n in entries:
                model.delimiters[seg_type][(open_punct, close_punct, terminator)] += int(n)
        for name, counts in data.get('word_lengths', {}).items():
            model.word_lengths[name].update({int(length): int(n) for length, n in counts.items()})
        return model


# =============================================================================
# Compiled chains
# =============================================================================

@dataclass(frozen=True)
class CompiledStructure:
    """Read-only selectors built from a StructureModel."""
    context_depth: int
    chains: Dict[ChainKey, WeightedSelector]
    starts: Dict[str, WeightedSelector]
    entity_counts: Dict[str, Tuple[int, ...]]
    delimiters: Dict[str, WeightedSelector]
    word_lengths: Dict[str, WeightedSelector]

    def is_empty(self) -> bool:
        sel = self.starts.get(SegmentType.SENTENCE.value)
        return sel is None or sel.is_empty()


def compile_structure(model: StructureModel) -> CompiledStructure:
    return CompiledStructure(
        context_depth=model.context_depth,
        chains={key: WeightedSelector(counts) for key, counts in model.chains.items()},
        starts={seg_type: WeightedSelector(counts) for seg_type, counts in model.starts.items()},
        entity_counts={seg_type: tuple(counts) for seg_type, counts in model.entity_counts.items() if counts},
        delimiters={seg_type: WeightedSelector(counts) for seg_type, counts in model.delimiters.items()},
        word_lengths={name: WeightedSelector(counts) for name, counts in model.word_lengths.items()},
    )


# =============================================================================
# Building trees
# =============================================================================

class StructureBuilder:
    """Walks the chains to grow fresh segment trees."""

    def __init__(self, structure: CompiledStructure, rng: random.Random, max_depth: int):
        self.structure = structure
        self.rng = rng
        self.max_depth = max_depth
        self.max_entities = int(get_setting("rhythm.structure.max_entities", 100))
        self.overrun = float(get_setting("rhythm.structure.overrun_factor", 1.5))

    def build(self, seg_type: SegmentType, depth: int = 0) -> Segment:
        """One segment of ``seg_type``; empty when the type was never seen."""
        name = seg_type.value
        builder = SegmentBuilder(seg_type)
        counts = self.structure.entity_counts.get(name)
        starts = self.structure.starts.get(name)
        if not counts or starts is None or starts.is_empty():
            return builder.build()

        target = self.rng.choice(counts)
        stream = list(starts.select(self.rng))
        for entity in stream:
            self._apply(builder, entity, depth)

        while len(stream) < self.max_entities:
            context = chain_context(stream, len(stream), self.structure.context_depth)
            sel = self.structure.chains.get((name, context))
            if sel is None or sel.is_empty():
                break
            entity = sel.select(self.rng)
            if len(stream) >= target * self.overrun:
                if END in sel:
                    entity = END
                elif not entity.startswith(WORD):
                    break
            if entity == END:
                break
            if entity.startswith(PAUSE) and stream[-1].startswith(PAUSE):
                break
            self._apply(builder, entity, depth)
            stream.append(entity)

        delimiters = self.structure.delimiters.get(name)
        if delimiters is not None and not delimiters.is_empty():
            builder.open_punct, builder.close_punct, builder.terminator = delimiters.select(self.rng)
        return builder.build()

    def _apply(self, builder: SegmentBuilder, entity: str, depth: int):
        kind, _, value = entity.partition(':')
        if kind == WORD:
            lengths = self.structure.word_lengths.get(value)
            if lengths is not None and not lengths.is_empty():
                builder.add_word(lengths.select(self.rng))
        elif kind == PAUSE:
            builder.add_pause(value)
        elif kind == SEGMENT and depth < self.max_depth:
            child_type = SEGMENT_TYPES.get(value)
            if child_type is None:
                return
            child = self.build(child_type, depth + 1)
            if not child.is_empty:
                builder.children.append((builder.cursor, child))

    def sentence(self, attempts: int) -> Optional[Segment]:
        """A well-formed SENTENCE tree, or None after ``attempts`` misses."""
        for _ in range(attempts):
            tree = self.build(SegmentType.SENTENCE)
            problem = template_problem(tree)
            if problem is None:
                return tree
            logger.debug(f"Discarded built structure: {problem}")
        return None

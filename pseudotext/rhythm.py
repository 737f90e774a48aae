#!/usr/bin/env python3
"""
Sentence Rhythm
===============
Sentence-level statistics derived from parsed templates.

- templates: the SENTENCE trees themselves, sampled uniformly
- transitions: which mark ends a clause, keyed by the state before the
  clause ("START" or the pause that opened it) and optionally by a
  clause-length bucket
- clause_lengths: observed clause lengths per state
- nesting: parent segment type -> child segment type -> count
- sentence_lengths: words per sentence
- structure: entity chains per segment type (see structural.py)
"""

import logging
import random
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from pseudotext.config import segment_bucket
from pseudotext.errors import ModelValidationError
from pseudotext.model import FORMAT_VERSION
from pseudotext.punctuation import TERMINATORS
from pseudotext.segments import Segment, filter_templates
from pseudotext.selector import WeightedSelector
from pseudotext.structural import CompiledStructure, StructureModel, compile_structure

logger = logging.getLogger(__name__)

START = "START"

TransitionKey = Tuple[str, Optional[str]]


def flatten_clauses(template: Segment) -> List[Tuple[str, int, str]]:
    """Read a template as a run of clauses: (state, length, closing mark).

    Nested segments contribute their words in place; pauses anywhere in the
    tree split clauses. Empty clauses between two marks are skipped, and a
    pause left without words before the final stop is replaced by the stop.
    """
    marks: List[Optional[str]] = []

    def walk(seg: Segment):
        children = sorted(seg.children, key=lambda c: c[0])
        ci = 0
        for i in range(len(seg.word_lengths) + 1):
            while ci < len(children) and children[ci][0] <= i:
                child = children[ci][1]
                if child.is_pause:
                    marks.append(child.terminator)
                else:
                    walk(child)
                ci += 1
            if i < len(seg.word_lengths):
                marks.append(None)

    walk(template)
    marks.append(template.terminator or '.')

    clauses = []
    state = START
    run = 0
    for item in marks:
        if item is None:
            run += 1
            continue
        if run == 0:
            if clauses and state != START and item[-1] in TERMINATORS:
                # "word, ." : the stop replaces the dangling pause
                prev_state, length, _ = clauses[-1]
                clauses[-1] = (prev_state, length, item)
                state = START
            continue
        clauses.append((state, run, item))
        run = 0
        state = START if item[-1] in TERMINATORS else item
    return clauses


@dataclass
class RhythmModel:
    """Counts and templates describing sentence structure."""
    templates: List[Segment] = field(default_factory=list)
    transitions: Dict[TransitionKey, Counter] = field(default_factory=lambda: defaultdict(Counter))
    clause_lengths: Dict[str, List[int]] = field(default_factory=lambda: defaultdict(list))
    nesting: Dict[str, Counter] = field(default_factory=lambda: defaultdict(Counter))
    sentence_lengths: List[int] = field(default_factory=list)
    structure: StructureModel = field(default_factory=StructureModel)
    rejected_templates: int = 0

    def add_template(self, template: Segment):
        self.templates.append(template)
        self.sentence_lengths.append(template.total_words())
        for node in template.walk():
            for child in node.structural_children():
                self.nesting[node.type.value][child.type.value] += 1
        for state, length, mark in flatten_clauses(template):
            self.clause_lengths[state].append(length)
            self.transitions[(state, segment_bucket(length))][mark] += 1
            self.transitions[(state, None)][mark] += 1
        self.structure.add_segment(template)

    @classmethod
    def from_templates(cls, templates: Sequence[Segment]) -> 'RhythmModel':
        valid, rejected = filter_templates(templates)
        model = cls(rejected_templates=rejected)
        for template in valid:
            model.add_template(template)
        return model

    def merge(self, other: 'RhythmModel') -> 'RhythmModel':
        self.templates.extend(other.templates)
        for key, counts in other.transitions.items():
            self.transitions[key].update(counts)
        for state, lengths in other.clause_lengths.items():
            self.clause_lengths[state].extend(lengths)
        for parent, counts in other.nesting.items():
            self.nesting[parent].update(counts)
        self.sentence_lengths.extend(other.sentence_lengths)
        self.structure.merge(other.structure)
        self.rejected_templates += other.rejected_templates
        return self

    def terminators(self) -> Counter:
        return Counter(t.terminator for t in self.templates if t.terminator)

    def to_dict(self) -> dict:
        return {
            'format': FORMAT_VERSION,
            'templates': [t.to_dict() for t in self.templates],
            'transitions': [
                [state, bucket, dict(counts)]
                for (state, bucket), counts in sorted(self.transitions.items(), key=lambda kv: (kv[0][0], kv[0][1] or ''))
            ],
            'nesting': {parent: dict(counts) for parent, counts in self.nesting.items()},
            'clause_lengths': {state: list(lengths) for state, lengths in self.clause_lengths.items()},
            'sentence_lengths': list(self.sentence_lengths),
            'structure': self.structure.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'RhythmModel':
        """Load a record; malformed templates are dropped and counted."""
        templates = [Segment.from_dict(t) for t in data.get('templates', [])]
        valid, rejected = filter_templates(templates)
        model = cls(templates=valid, rejected_templates=rejected)
        for state, bucket, counts in data.get('transitions', []):
            model.transitions[(state, bucket)].update(counts)
        for parent, counts in data.get('nesting', {}).items():
            model.nesting[parent].update(counts)
        for state, lengths in data.get('clause_lengths', {}).items():
            model.clause_lengths[state].extend(int(n) for n in lengths)
        model.sentence_lengths = [int(n) for n in data.get('sentence_lengths', [])]
        model.structure = StructureModel.from_dict(data.get('structure'))
        if rejected:
            logger.warning(f"Ignored {rejected} malformed sentence templates")
        return model


@dataclass(frozen=True)
class CompiledRhythm:
    """Selectors for sentence generation."""
    templates: Tuple[Segment, ...]
    transitions: Dict[TransitionKey, WeightedSelector]
    clause_lengths: Dict[str, Tuple[int, ...]]
    structure: Optional[CompiledStructure] = None

    def pick_template(self, rng: random.Random) -> Segment:
        return rng.choice(self.templates)

    def transition(self, state: str, length: int) -> Optional[WeightedSelector]:
        for key in ((state, segment_bucket(length)), (state, None)):
            sel = self.transitions.get(key)
            if sel is not None and not sel.is_empty():
                return sel
        return None


def compile_rhythm(model: RhythmModel) -> CompiledRhythm:
    return CompiledRhythm(
        templates=tuple(model.templates),
        transitions={key: WeightedSelector(counts) for key, counts in model.transitions.items()},
        clause_lengths={state: tuple(lengths) for state, lengths in model.clause_lengths.items() if lengths},
        structure=compile_structure(model.structure),
    )


def validate_rhythm(model: RhythmModel, flat: bool = False, structural: bool = False) -> RhythmModel:
    """Check the sentence record can drive generation in the chosen style."""
    problems = []
    if not flat and not model.templates:
        problems.append("No usable sentence templates")
    if flat:
        if not model.clause_lengths:
            problems.append("No clause length data found (corpus may lack punctuation)")
        if not model.transitions:
            problems.append("No transition data found (corpus may lack punctuation)")
        for state in sorted(model.clause_lengths):
            counts = model.transitions.get((state, None))
            if not counts or sum(counts.values()) <= 0:
                problems.append(f"State '{state}' has clause lengths but no transition data")
        if START not in model.clause_lengths:
            problems.append("No clause data for sentence starts")
    if structural and not model.structure.starts.get("SENTENCE"):
        problems.append("No structure chain data for sentences (re-run analyze)")
    if problems:
        raise ModelValidationError(problems)
    return model

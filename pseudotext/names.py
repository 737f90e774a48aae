#!/usr/bin/env python3
"""
Pseudo-names
============
Learns first, middle and last name structure separately from a list of
names (one per line or sentence) and generates new names in the same
arrangements.

Role assignment per name:
    1 word   -> LAST
    2 words  -> FIRST LAST
    3+ words -> FIRST, then the inner words (extra FIRSTs first, MIDDLEs
                taking the larger half), then LAST

Hyphenated parts train the role's model separately.
"""

import logging
import math
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from pseudotext.config import AnalysisConfig, GenerationConfig
from pseudotext.errors import ModelValidationError
from pseudotext.generator import GenerationContext, generate_unique_word, smart_caps
from pseudotext.model import CompiledModel, StatModel, compile_model, validate_word_model
from pseudotext.selector import WeightedSelector
from pseudotext.structure import tokenize_structure

logger = logging.getLogger(__name__)

FIRST = "FIRST"
MIDDLE = "MIDDLE"
LAST = "LAST"
ROLES = (FIRST, MIDDLE, LAST)

_NAME_SPLIT = re.compile(r"[.\n!?]+")


def assign_roles(words: List[str]) -> List[Tuple[str, str]]:
    """Pair each word of a name with its role."""
    if not words:
        return []
    if len(words) == 1:
        return [(LAST, words[0])]
    if len(words) == 2:
        return [(FIRST, words[0]), (LAST, words[1])]
    inner = words[1:-1]
    middle_count = math.ceil(len(inner) / 2)
    extra_first = len(inner) - middle_count
    roles = [(FIRST, words[0])]
    roles += [(FIRST, w) for w in inner[:extra_first]]
    roles += [(MIDDLE, w) for w in inner[extra_first:]]
    roles.append((LAST, words[-1]))
    return roles


@dataclass
class NameModel:
    """Per-role word statistics plus observed role arrangements."""
    max_effective_length: int = 8
    roles: Dict[str, StatModel] = field(default_factory=dict)
    structures: Counter = field(default_factory=Counter)

    def __post_init__(self):
        for role in ROLES:
            self.roles.setdefault(role, StatModel(max_effective_length=self.max_effective_length))

    def add_name(self, words: List[str], vowels: frozenset):
        assigned = assign_roles(words)
        if not assigned:
            return
        for role, word in assigned:
            for part in word.split('-'):
                tokens = tokenize_structure(part, vowels)
                if tokens:
                    self.roles[role].record_word(tokens)
                    self.roles[role].add_vocabulary(part)
        self.structures[tuple(role for role, _ in assigned)] += 1

    @classmethod
    def train(cls, text: str, config: Optional[AnalysisConfig] = None) -> 'NameModel':
        config = config or AnalysisConfig()
        model = cls(max_effective_length=config.max_effective_length)
        for raw in _NAME_SPLIT.split(text):
            words = raw.split()
            if words:
                model.add_name(words, config.vowel_set)
        logger.debug(f"Learned {sum(model.structures.values())} names")
        return model

    @property
    def names_seen(self) -> int:
        return sum(self.structures.values())


@dataclass(frozen=True)
class CompiledNames:
    roles: Dict[str, CompiledModel]
    structures: WeightedSelector


def compile_names(model: NameModel) -> CompiledNames:
    """Compile and validate every role a structure uses."""
    if not model.structures:
        raise ModelValidationError(["No names found in input"])
    used = {role for structure in model.structures for role in structure}
    roles = {}
    for role in sorted(used):
        roles[role] = validate_word_model(compile_model(model.roles[role]))
    return CompiledNames(roles=roles, structures=WeightedSelector(model.structures))


def generate_names(names: CompiledNames, count: int, config: Optional[GenerationConfig] = None,
                   seed: Optional[int] = None) -> List[str]:
    """Generate ``count`` capitalized pseudo-names."""
    config = config or GenerationConfig()
    contexts = {}
    rng = None
    for role, compiled in names.roles.items():
        ctx = GenerationContext(compiled, config, seed=seed, rng=rng)
        rng = ctx.rng
        contexts[role] = ctx

    results = []
    for _ in range(count):
        structure = names.structures.select(rng)
        parts = [smart_caps(generate_unique_word(contexts[role]).word) for role in structure]
        results.append(' '.join(parts))
    return results

#!/usr/bin/env python3
"""
Pseudo-word & Sentence Generator
================================
Samples words from a compiled structural model and renders sentence
templates into prose.

Word generation picks a shape (length, start type), samples the start token
and then walks the remaining positions with alternating C/V classes, trying
tiers in order:

    trigram (two previous contents)   skipped with probability chaos_factor
    bigram  (previous content)
    unigram (previous class)
    default character                 'a' for a vowel slot, 'b' for a consonant

Everything random flows through the ``random.Random`` held by the
GenerationContext, so a seeded context reproduces its output exactly.

Usage:
    from pseudotext.generator import GenerationContext, generate_words

    ctx = GenerationContext(compiled_model, seed=42)
    words, stats = generate_words(ctx, 10)
"""

import logging
import random
from dataclasses import dataclass, field
from typing import List, NamedTuple, Optional, Tuple

from pseudotext.config import GenerationConfig
from pseudotext.errors import GenerationError, TokenExhaustedError
from pseudotext.model import CompiledModel
from pseudotext.punctuation import TERMINATORS
from pseudotext.rhythm import START, CompiledRhythm
from pseudotext.segments import (
    ENCLOSING_TYPES,
    QUOTE_TYPES,
    Segment,
    SegmentType,
    ends_with_own_stop,
)
from pseudotext.settings import get_setting
from pseudotext.structural import StructureBuilder
from pseudotext.structure import CONSONANT, VOWEL, clean_word, other_kind

logger = logging.getLogger(__name__)

DEFAULT_CHAR = {VOWEL: 'a', CONSONANT: 'b'}
MAX_CLAUSES = 40
DASH_TYPES = frozenset({SegmentType.DASH_ASIDE, SegmentType.ATTRIBUTION})


# =============================================================================
# Context & results
# =============================================================================

@dataclass
class GenerationContext:
    """Everything a generation call reads: model, settings and randomness."""
    model: CompiledModel
    config: GenerationConfig = field(default_factory=GenerationConfig)
    seed: Optional[int] = None
    rng: random.Random = None

    def __post_init__(self):
        if self.rng is None:
            self.rng = random.Random(self.seed)


class WordResult(NamedTuple):
    """Outcome of one word generation."""
    word: str
    attempts: int = 0       # candidates rejected as real words
    forced: bool = False    # retry ceiling reached, duplicate accepted
    mode: int = 3           # n-gram depth that produced the word
    fallbacks: int = 0      # tokens synthesized from the default character

    def __str__(self):
        return self.word


@dataclass
class GenerationStats:
    """Aggregated counters for a generation run."""
    words: int = 0
    sentences: int = 0
    filtered: int = 0
    forced: int = 0
    downgraded: int = 0
    fallback_tokens: int = 0
    rejected_templates: int = 0

    def add(self, result: WordResult, start_mode: int):
        self.words += 1
        self.filtered += result.attempts
        self.forced += int(result.forced)
        self.downgraded += int(result.mode < start_mode)
        self.fallback_tokens += result.fallbacks


# =============================================================================
# Words
# =============================================================================

def _default_token(ctx: GenerationContext, eff_len: int, position: int, kind: str) -> str:
    if ctx.config.strict:
        raise TokenExhaustedError(eff_len, position, other_kind(kind))
    logger.debug(f"No token data at position {position} (eff {eff_len}), using default")
    return DEFAULT_CHAR[kind]


def _choose_shape(ctx: GenerationContext, target_length: Optional[int]) -> Tuple[int, str]:
    model = ctx.model
    if target_length:
        type_sel = model.start_types.get(target_length)
        if type_sel is not None and not type_sel.is_empty():
            return target_length, type_sel.select(ctx.rng)
    shape = model.shapes.select(ctx.rng)
    if shape is None:
        raise GenerationError("No word shapes available (empty word model)")
    if target_length:
        logger.debug(f"No words of length {target_length}, using {shape.length}")
    return shape.length, shape.start_type


def generate_word(ctx: GenerationContext, target_length: Optional[int] = None,
                  ngram_mode: Optional[int] = None) -> WordResult:
    """Generate one pseudo-word with ``target_length`` CV-tokens.

    When the model has no words of that length a shape is drawn from the
    overall distribution instead. ``ngram_mode`` caps the tiers used:
    1 = unigram only, 2 = up to bigram, 3 = up to trigram.
    """
    model = ctx.model
    rng = ctx.rng
    mode = ngram_mode or ctx.config.ngram_mode
    chaos = ctx.config.chaos_factor

    length, start_type = _choose_shape(ctx, target_length)
    eff = model.effective_length(length)
    fallbacks = 0

    sel = model.selector('start', eff, (start_type,))
    if sel is not None:
        tokens = [sel.select(rng)]
    else:
        tokens = [_default_token(ctx, eff, 0, start_type)]
        fallbacks += 1

    prev_type = start_type
    for i in range(1, length):
        is_last = i == length - 1
        kind = other_kind(prev_type)
        token = None

        if mode >= 3 and len(tokens) >= 2:
            tri = model.selector('trigram_last' if is_last else 'trigram_inner',
                                 eff, (tokens[-2], tokens[-1]))
            if tri is not None and rng.random() >= chaos:
                token = tri.select(rng)

        if token is None and mode >= 2:
            if is_last:
                table = 'bigram_last'
            elif i == 1:
                table = 'bigram_start'
            else:
                table = 'bigram_inner'
            bi = model.selector(table, eff, (tokens[-1],))
            if bi is not None:
                token = bi.select(rng)

        if token is None:
            uni = model.selector('last' if is_last else 'inner', eff, (prev_type,))
            if uni is not None:
                token = uni.select(rng)

        if token is None:
            token = _default_token(ctx, eff, i, kind)
            fallbacks += 1

        tokens.append(token)
        prev_type = kind

    return WordResult(''.join(tokens), mode=mode, fallbacks=fallbacks)


def generate_unique_word(ctx: GenerationContext, target_length: Optional[int] = None,
                         ngram_mode: Optional[int] = None) -> WordResult:
    """Generate a word, retrying while it matches the source vocabulary.

    The n-gram depth steps down to bigram and then unigram at the configured
    retry thresholds. At the retry ceiling the last candidate is returned
    with ``forced`` set. Without uniqueness mode this is ``generate_word``.
    """
    cfg = ctx.config
    start_mode = ngram_mode or cfg.ngram_mode
    result = generate_word(ctx, target_length, start_mode)
    vocabulary = ctx.model.vocabulary
    if not cfg.unique or not vocabulary:
        return result

    retries = 0
    fallbacks = result.fallbacks
    mode = start_mode
    while clean_word(result.word) in vocabulary:
        retries += 1
        if retries >= cfg.max_retries:
            logger.debug(f"Accepting real word '{result.word}' after {retries} retries")
            return result._replace(attempts=retries, forced=True, mode=mode, fallbacks=fallbacks)
        mode = min(start_mode, cfg.mode_for_attempt(retries))
        result = generate_word(ctx, target_length, mode)
        fallbacks += result.fallbacks
    return result._replace(attempts=retries, mode=mode, fallbacks=fallbacks)


def format_word(result: WordResult, start_mode: int, marking: bool = False) -> str:
    """Sentence-mode rendering of a word result.

    Forced duplicates are always bracketed ``[w]``. With marking on, words
    that needed a weaker tier show it: ``<w>`` for bigram after a trigram
    start, ``{w}`` for unigram.
    """
    word = result.word
    if result.forced:
        return f"[{word}]"
    if marking and result.mode < start_mode:
        if result.mode == 1:
            return f"{{{word}}}"
        return f"<{word}>"
    return word


def smart_caps(text: str) -> str:
    """Uppercase the first letter, skipping leading punctuation and markers."""
    for i, ch in enumerate(text):
        if ch.isalpha():
            return text[:i] + ch.upper() + text[i + 1:]
    return text


# =============================================================================
# Segments
# =============================================================================

class _Renderer:
    """Renders one template; holds the per-call mode and tally."""

    def __init__(self, ctx: GenerationContext, mode: int, tally: Optional[GenerationStats]):
        self.ctx = ctx
        self.mode = mode
        self.tally = tally

    def word(self, length: Optional[int]) -> str:
        result = generate_unique_word(self.ctx, length, self.mode)
        if self.tally is not None:
            self.tally.add(result, self.mode)
        return format_word(result, self.mode, self.ctx.config.mark_fallbacks)

    def render(self, seg: Segment, depth: int = 0) -> str:
        dashed = seg.type in DASH_TYPES
        out = seg.open_punct + (' ' if dashed and seg.open_punct else '')
        children = sorted(seg.children, key=lambda c: c[0])
        ci = 0
        capitalize = seg.type in QUOTE_TYPES

        for i, length in enumerate(seg.word_lengths):
            while ci < len(children) and children[ci][0] <= i:
                child = children[ci][1]
                if child.is_pause:
                    out = out.rstrip(' ') + child.terminator + ' '
                    capitalize = capitalize or child.terminator[-1] in TERMINATORS
                else:
                    out = self._attach(out, child, depth)
                ci += 1
            word = self.word(length)
            if capitalize:
                word = smart_caps(word)
                capitalize = False
            out += word + ' '

        trailing = children[ci:]
        for j, (_, child) in enumerate(trailing):
            if child.is_pause:
                followed = any(not c.is_pause for _, c in trailing[j + 1:])
                if followed or (seg.close_punct and not seg.terminator):
                    out = out.rstrip(' ') + child.terminator + ' '
                continue
            out = self._attach(out, child, depth)

        out = out.rstrip()
        if seg.type is SegmentType.SENTENCE:
            if seg.terminator and not ends_with_own_stop(seg):
                out += seg.terminator
        elif seg.type in QUOTE_TYPES or seg.type in ENCLOSING_TYPES:
            out += seg.terminator + seg.close_punct
        elif seg.close_punct:
            out += (' ' if dashed else '') + seg.close_punct
        return out

    def _attach(self, out: str, child: Segment, depth: int) -> str:
        if depth >= self.ctx.config.max_depth:
            return out
        text = self.render(child, depth + 1)
        if not text:
            return out
        return out + text + ' '


def render_segment(ctx: GenerationContext, template: Segment, ngram_mode: Optional[int] = None,
                   tally: Optional[GenerationStats] = None) -> str:
    """Render a sentence template with fresh words.

    The template is only read. Word statistics are added to ``tally`` when
    one is given.
    """
    mode = ngram_mode or ctx.config.ngram_mode
    return smart_caps(_Renderer(ctx, mode, tally).render(template))


# =============================================================================
# Batch generation
# =============================================================================

def generate_words(ctx: GenerationContext, count: int) -> Tuple[List[str], GenerationStats]:
    """Word-list mode: forced duplicates are accepted unmarked but counted."""
    stats = GenerationStats()
    words = []
    for _ in range(count):
        result = generate_unique_word(ctx)
        stats.add(result, ctx.config.ngram_mode)
        words.append(result.word)
    if stats.forced:
        logger.warning(f"Accepted {stats.forced} real words after exhausting retries")
    return words, stats


def generate_flat_sentence(ctx: GenerationContext, rhythm: CompiledRhythm,
                           tally: Optional[GenerationStats] = None) -> str:
    """Clause-by-clause sentence from clause lengths and transition tables."""
    renderer = _Renderer(ctx, ctx.config.ngram_mode, tally)
    parts = []
    state = START
    for _ in range(MAX_CLAUSES):
        lengths = rhythm.clause_lengths.get(state)
        if not lengths:
            raise GenerationError(f"No clause length data for state '{state}'")
        length = max(1, ctx.rng.choice(lengths))
        sel = rhythm.transition(state, length)
        if sel is None:
            raise GenerationError(f"No transition data for state '{state}'")
        mark = sel.select(ctx.rng)
        words = [renderer.word(None) for _ in range(length)]
        parts.append(' '.join(words) + mark)
        if mark[-1] in TERMINATORS:
            break
        state = mark
    else:
        parts[-1] = parts[-1][:-len(mark)] + '.'
    return smart_caps(' '.join(parts))


def generate_structural_sentence(ctx: GenerationContext, rhythm: CompiledRhythm,
                                 tally: Optional[GenerationStats] = None) -> str:
    """Render a sentence tree grown from the structure chains.

    When no well-formed tree comes out within the configured attempts a
    stored template is rendered instead.
    """
    if rhythm.structure is None or rhythm.structure.is_empty():
        raise GenerationError("No structure chain data for sentences")
    builder = StructureBuilder(rhythm.structure, ctx.rng, ctx.config.max_depth)
    tree = builder.sentence(int(get_setting("rhythm.structure.attempts", 10)))
    if tree is None:
        if not rhythm.templates:
            raise GenerationError("Could not build a well-formed sentence structure")
        logger.debug("No well-formed structure built, rendering a stored template")
        tree = rhythm.pick_template(ctx.rng)
    return render_segment(ctx, tree, tally=tally)


def generate_sentences(ctx: GenerationContext, rhythm: CompiledRhythm, count: int,
                       flat: bool = False, structural: bool = False) -> Tuple[List[str], GenerationStats]:
    """Generate ``count`` sentences from templates.

    ``flat`` switches to clause rhythm, ``structural`` to trees grown from
    the structure chains.
    """
    stats = GenerationStats()
    sentences = []
    for _ in range(count):
        if flat:
            sentence = generate_flat_sentence(ctx, rhythm, stats)
        elif structural:
            sentence = generate_structural_sentence(ctx, rhythm, stats)
        else:
            sentence = render_segment(ctx, rhythm.pick_template(ctx.rng), tally=stats)
        sentences.append(sentence)
        stats.sentences += 1
    if stats.forced:
        logger.warning(f"Marked {stats.forced} real words after exhausting retries")
    return sentences, stats

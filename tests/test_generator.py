"""
Tests for Word & Sentence Generation
====================================
Tests for pseudotext/generator.py: word sampling, fallback policy,
uniqueness filtering, template rendering and flat rhythm sentences.
"""

import re
import sys
from pathlib import Path

import pytest

# Ensure repo root is on path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from pseudotext.analyzer import analyze
from pseudotext.config import GenerationConfig
from pseudotext.errors import GenerationError, TokenExhaustedError
from pseudotext.generator import (
    GenerationContext,
    GenerationStats,
    WordResult,
    format_word,
    generate_sentences,
    generate_structural_sentence,
    generate_unique_word,
    generate_word,
    generate_words,
    render_segment,
    smart_caps,
)
from pseudotext.model import ContextKey, Shape, StatModel, compile_model, validate_word_model
from pseudotext.punctuation import prepare_tokens
from pseudotext.rhythm import RhythmModel, compile_rhythm
from pseudotext.segments import Segment, SegmentType, parse_segments
from pseudotext.structure import structural_length, tokenize_structure

CORPUS = (
    'She said, "Stop." Then she left. The cat sat on the mat, and the dog ran home. '
    '"Stop!" he said. We left (quietly) at dawn. He ran — fast — home. '
    'Birds sing at dawn; dogs bark at night. He left (finally.)'
)


def template(text):
    return parse_segments(prepare_tokens(text))[0]


@pytest.fixture(scope="module")
def result():
    return analyze(CORPUS)


@pytest.fixture(scope="module")
def model(result):
    return validate_word_model(compile_model(result.stats))


@pytest.fixture
def ctx(model):
    return GenerationContext(model, GenerationConfig(), seed=42)


def single_word_model(word="cat"):
    stats = StatModel()
    stats.record_word(tokenize_structure(word))
    stats.add_vocabulary(word)
    return compile_model(stats)


class TestGenerateWord:
    """Tests for generate_word."""

    def test_returns_word_result(self, ctx):
        """generate_word returns a WordResult."""
        result = generate_word(ctx)
        assert isinstance(result, WordResult)
        assert result.word
        assert result.fallbacks == 0

    def test_length_matches_target(self, ctx, model):
        """Words have the requested CV length."""
        for length in model.lengths():
            for _ in range(20):
                word = generate_word(ctx, length).word
                assert structural_length(word) == length, word

    def test_missing_length_falls_back(self, ctx, model):
        """An unseen length falls back to a learned shape."""
        word = generate_word(ctx, 50).word
        assert structural_length(word) in model.lengths()

    @pytest.mark.parametrize("mode", [1, 2, 3])
    def test_every_mode_respects_length(self, ctx, mode):
        """Every n-gram depth keeps the requested length."""
        for _ in range(20):
            assert structural_length(generate_word(ctx, 3, mode).word) == 3

    def test_classes_alternate(self, ctx):
        """Consonant and vowel tokens alternate."""
        for _ in range(50):
            tokens = tokenize_structure(generate_word(ctx).word)
            kinds = [t.kind for t in tokens]
            assert all(a != b for a, b in zip(kinds, kinds[1:]))

    def test_seed_reproducible(self, model):
        """The same seed gives the same words."""
        first = GenerationContext(model, seed=7)
        second = GenerationContext(model, seed=7)
        assert [generate_word(first).word for _ in range(30)] == \
               [generate_word(second).word for _ in range(30)]

    def test_empty_model(self):
        """A model without shapes cannot generate."""
        ctx = GenerationContext(compile_model(StatModel()))
        with pytest.raises(GenerationError):
            generate_word(ctx)


class TestFallbackPolicy:
    """Tests for the default-character fallback."""

    @pytest.fixture
    def thin_model(self):
        stats = StatModel()
        stats.shapes[Shape(3, 'C')] = 1
        stats.start[ContextKey(3, ('C',))]['b'] = 1
        return compile_model(stats)

    def test_lenient_synthesizes(self, thin_model):
        """Missing tokens are filled with the default characters."""
        ctx = GenerationContext(thin_model, GenerationConfig(strict=False), seed=1)
        result = generate_word(ctx)
        assert result.word == 'bab'
        assert result.fallbacks == 2

    def test_strict_raises(self, thin_model):
        """Strict mode raises at the first missing token."""
        ctx = GenerationContext(thin_model, GenerationConfig(strict=True), seed=1)
        with pytest.raises(TokenExhaustedError) as exc:
            generate_word(ctx)
        assert exc.value.position == 1
        assert isinstance(exc.value, GenerationError)

    def test_fallbacks_counted(self, thin_model):
        """Synthesized tokens are counted in the run stats."""
        ctx = GenerationContext(thin_model, GenerationConfig(strict=False), seed=1)
        _, stats = generate_words(ctx, 4)
        assert stats.fallback_tokens == 8


def tiered_model(trigram=True, bigram=True):
    """A C-V-C model where each tier names a different final consonant."""
    stats = StatModel()
    stats.shapes[Shape(3, 'C')] = 1
    stats.start[ContextKey(3, ('C',))]['b'] = 1
    stats.inner[ContextKey(3, ('C',))]['o'] = 1
    stats.last[ContextKey(3, ('V',))]['g'] = 1
    if bigram:
        stats.bigram_start[ContextKey(3, ('b',))]['a'] = 1
        stats.bigram_last[ContextKey(3, ('a',))]['d'] = 1
    if trigram:
        stats.trigram_last[ContextKey(3, ('b', 'a'))]['t'] = 1
    return compile_model(stats)


class TestNgramTiers:
    """Tests for the trigram/bigram/unigram walk and the chaos factor."""

    def test_no_chaos_uses_trigram(self):
        """With chaos off the single trigram continuation always wins."""
        ctx = GenerationContext(tiered_model(), GenerationConfig(chaos_factor=0.0), seed=5)
        words = {generate_word(ctx, 3, 3).word for _ in range(50)}
        assert words == {'bat'}

    def test_full_chaos_skips_trigram(self):
        """With chaos at 1.0 the trigram tier is never consulted."""
        ctx = GenerationContext(tiered_model(), GenerationConfig(chaos_factor=1.0), seed=5)
        words = {generate_word(ctx, 3, 3).word for _ in range(50)}
        assert words == {'bad'}

    def test_partial_chaos_mixes_tiers(self):
        """A middling chaos factor produces both trigram and bigram endings."""
        ctx = GenerationContext(tiered_model(), GenerationConfig(chaos_factor=0.5), seed=5)
        words = {generate_word(ctx, 3, 3).word for _ in range(200)}
        assert words == {'bat', 'bad'}

    def test_bigram_mode_ignores_trigram(self):
        """ngram_mode 2 stops at the bigram tier even without chaos."""
        ctx = GenerationContext(tiered_model(), GenerationConfig(chaos_factor=0.0), seed=5)
        assert generate_word(ctx, 3, 2).word == 'bad'

    def test_unigram_mode(self):
        """ngram_mode 1 reads only the class-keyed tables."""
        ctx = GenerationContext(tiered_model(), GenerationConfig(chaos_factor=0.0), seed=5)
        assert generate_word(ctx, 3, 1).word == 'bog'

    def test_missing_contexts_fall_through_to_unigram(self):
        """Without trigram and bigram data the word completes from unigram tables."""
        model = tiered_model(trigram=False, bigram=False)
        ctx = GenerationContext(model, GenerationConfig(chaos_factor=0.0), seed=5)
        result = generate_word(ctx, 3, 3)
        assert result.word == 'bog'
        assert result.fallbacks == 0
        assert result.mode == 3

    def test_missing_trigram_falls_back_to_bigram(self):
        """A missing trigram context drops to the bigram tier."""
        model = tiered_model(trigram=False)
        ctx = GenerationContext(model, GenerationConfig(chaos_factor=0.0), seed=5)
        assert generate_word(ctx, 3, 3).word == 'bad'


class TestUniqueness:
    """Tests for generate_unique_word."""

    def test_accepted_words_are_new(self, model):
        """Unique mode only accepts unseen words."""
        ctx = GenerationContext(model, GenerationConfig(unique=True), seed=3)
        for _ in range(200):
            result = generate_unique_word(ctx)
            if not result.forced:
                assert result.word not in model.vocabulary

    def test_forced_after_ceiling(self):
        """The retry ceiling forces a real word through."""
        cfg = GenerationConfig(unique=True, bigram_after=2, unigram_after=3, max_retries=5)
        ctx = GenerationContext(single_word_model("cat"), cfg, seed=1)
        result = generate_unique_word(ctx)
        assert result.word == 'cat'
        assert result.forced
        assert result.attempts == 5
        assert result.mode == 1

    def test_off_means_no_retries(self):
        """Without unique mode nothing is retried."""
        ctx = GenerationContext(single_word_model("cat"), GenerationConfig(unique=False), seed=1)
        result = generate_unique_word(ctx)
        assert result.attempts == 0
        assert not result.forced

    def test_word_list_counts_forced(self):
        """Forced words and rejected candidates are counted."""
        cfg = GenerationConfig(unique=True, bigram_after=1, unigram_after=1, max_retries=2)
        ctx = GenerationContext(single_word_model("cat"), cfg, seed=1)
        words, stats = generate_words(ctx, 3)
        assert words == ['cat', 'cat', 'cat']
        assert stats.forced == 3
        assert stats.filtered == 6


class TestFormatting:
    """Tests for format_word and smart_caps."""

    def test_forced_always_bracketed(self):
        """Forced words are always bracketed."""
        assert format_word(WordResult('cat', forced=True), 3) == '[cat]'

    def test_marking(self):
        """Marking shows which weaker tier a word needed."""
        assert format_word(WordResult('cat', mode=2), 3, marking=True) == '<cat>'
        assert format_word(WordResult('cat', mode=1), 3, marking=True) == '{cat}'
        assert format_word(WordResult('cat', mode=3), 3, marking=True) == 'cat'

    def test_no_marking(self):
        """Without marking words are left bare."""
        assert format_word(WordResult('cat', mode=1), 3) == 'cat'

    def test_smart_caps(self):
        """Capitalization skips leading punctuation."""
        assert smart_caps('"hello') == '"Hello'
        assert smart_caps('[abc]') == '[Abc]'
        assert smart_caps('...') == '...'


class TestRenderSegment:
    """Tests for render_segment."""

    def test_no_doubled_stop_after_quote(self, ctx):
        """A final stopped quote suppresses the root stop."""
        text = render_segment(ctx, template('She said, "Stop."'))
        assert re.fullmatch(r'[A-Z][a-z]* [a-z]+, "[A-Z][a-z]*\."', text), text

    def test_quote_keeps_its_terminator(self, ctx):
        """A quote renders its own terminator."""
        text = render_segment(ctx, template('"Stop!" he said.'))
        assert re.fullmatch(r'"[A-Z][a-z]*!" [a-z]+ [a-z]+\.', text), text

    def test_parenthesis(self, ctx):
        """Parentheses render around their words."""
        text = render_segment(ctx, template("We left (quietly) at dawn."))
        assert re.fullmatch(r'[A-Z][a-z]* [a-z]+ \([a-z]+\) [a-z]+ [a-z]+\.', text), text

    def test_stop_inside_bracket(self, ctx):
        """A stop inside a bracket renders before the close."""
        text = render_segment(ctx, template("He left (finally.)"))
        assert re.fullmatch(r'[A-Z][a-z]* [a-z]+ \([a-z]+\.\)', text), text

    def test_dash_aside(self, ctx):
        """Dash asides render with spaced dashes."""
        text = render_segment(ctx, template("He ran — fast — home."))
        assert re.fullmatch(r'[A-Z][a-z]* [a-z]+ — [a-z]+ — [a-z]+\.', text), text

    def test_pause(self, ctx):
        """Pauses attach to the preceding word."""
        text = render_segment(ctx, template("Birds sing at dawn; dogs bark at night."))
        assert re.fullmatch(r'[A-Z][a-z]*( [a-z]+){3}; [a-z]+( [a-z]+){3}\.', text), text

    def test_tally(self, ctx):
        """Rendering tallies every word."""
        tmpl = template('She said, "Stop."')
        tally = GenerationStats()
        render_segment(ctx, tmpl, tally=tally)
        assert tally.words == tmpl.total_words()

    def test_depth_limit(self, model):
        """Children beyond max_depth are skipped."""
        ctx = GenerationContext(model, GenerationConfig(max_depth=0), seed=1)
        text = render_segment(ctx, template("We left (quietly) at dawn."))
        assert '(' not in text
        assert re.fullmatch(r'[A-Z][a-z]*( [a-z]+){3}\.', text), text

    def test_forced_word_marked(self):
        """Forced words are bracketed in sentences."""
        cfg = GenerationConfig(unique=True, bigram_after=1, unigram_after=1, max_retries=2)
        ctx = GenerationContext(single_word_model("cat"), cfg, seed=1)
        tmpl = Segment(SegmentType.SENTENCE, (3,), terminator='.')
        assert render_segment(ctx, tmpl) == '[Cat].'


class TestGenerateSentences:
    """Tests for batch sentence generation."""

    def test_template_sentences(self, ctx, result):
        """Template mode renders capitalized, terminated sentences."""
        rhythm = compile_rhythm(result.rhythm)
        sentences, stats = generate_sentences(ctx, rhythm, 6)
        assert len(sentences) == 6
        assert stats.sentences == 6
        assert stats.words > 0
        for sentence in sentences:
            assert sentence[-1] in '.!?…")'
            assert sentence.lstrip('"(“')[0].isupper()

    def test_flat_sentences(self, ctx, result):
        """Flat mode renders plain clause-built sentences."""
        rhythm = compile_rhythm(result.rhythm)
        sentences, stats = generate_sentences(ctx, rhythm, 6, flat=True)
        assert len(sentences) == 6
        for sentence in sentences:
            assert sentence[-1] in '.!?…'
            assert sentence[0].isupper()
            assert '"' not in sentence

    def test_seed_reproducible(self, model, result):
        """The same seed gives the same sentences."""
        rhythm = compile_rhythm(result.rhythm)
        first, _ = generate_sentences(GenerationContext(model, seed=11), rhythm, 4)
        second, _ = generate_sentences(GenerationContext(model, seed=11), rhythm, 4)
        assert first == second

    def test_structural_sentences(self, ctx, result):
        """Structural mode renders trees grown from the chains."""
        rhythm = compile_rhythm(result.rhythm)
        sentences, stats = generate_sentences(ctx, rhythm, 8, structural=True)
        assert len(sentences) == 8
        assert stats.sentences == 8
        for sentence in sentences:
            assert sentence[-1] in '.!?…")'
            assert sentence.lstrip('"(“—').lstrip()[0].isupper()
            assert '..' not in sentence

    def test_structural_seed_reproducible(self, model, result):
        """Seeded contexts grow the same structures."""
        rhythm = compile_rhythm(result.rhythm)
        first, _ = generate_sentences(GenerationContext(model, seed=4), rhythm, 5, structural=True)
        second, _ = generate_sentences(GenerationContext(model, seed=4), rhythm, 5, structural=True)
        assert first == second

    def test_structural_without_chains(self, ctx):
        """An empty chain record is a generation error."""
        with pytest.raises(GenerationError):
            generate_structural_sentence(ctx, compile_rhythm(RhythmModel()))

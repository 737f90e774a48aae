"""
Tests for Punctuation Handling
==============================
Tests for normalization, tokenization, quote classification and the
per-sentence balancer in pseudotext/punctuation.py.
"""

import random
import sys
from pathlib import Path

import pytest

# Ensure repo root is on path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from pseudotext.punctuation import (
    Context,
    Token,
    TokenKind,
    balance_sentence,
    classify_quote,
    normalize_punctuation,
    prepare_tokens,
    resolve_unknown,
    split_sentences,
    tokenize,
)


def texts(tokens):
    return [t.text for t in tokens]


def kinds(tokens):
    return [t.kind for t in tokens]


class TestNormalize:
    """Tests for normalize_punctuation."""

    def test_dots_become_ellipsis(self):
        """Three dots become an ellipsis."""
        assert normalize_punctuation("Wait... what") == "Wait… what"

    def test_ellipsis_gets_space(self):
        """An ellipsis is followed by a space."""
        assert normalize_punctuation("Wait...what") == "Wait… what"

    def test_double_hyphen_becomes_dash(self):
        """A double hyphen becomes a spaced em dash."""
        assert normalize_punctuation("yes--no") == "yes — no"

    def test_smart_single_quotes(self):
        """Curly single quotes become straight ones."""
        assert normalize_punctuation("it’s ‘fine’") == "it's 'fine'"

    def test_collapses_spaces(self):
        """Whitespace runs collapse."""
        assert normalize_punctuation("  a   b\t c ") == "a b c"


class TestTokenize:
    """Tests for the character scanner."""

    def test_quoted_speech(self):
        """Quoted speech yields open, words, stop and close."""
        tokens = tokenize('He said, "Stop."')
        assert kinds(tokens) == [
            TokenKind.WORD, TokenKind.WORD, TokenKind.PAUSE,
            TokenKind.OPEN, TokenKind.WORD, TokenKind.TERM, TokenKind.CLOSE,
        ]
        assert tokens[3].context is Context.QUOTE

    def test_word_lengths(self):
        """Word tokens carry their CV length."""
        tokens = tokenize("Cats sit")
        assert [t.word_length for t in tokens] == [3, 3]

    def test_apostrophe_stays_in_word(self):
        """Apostrophes stay inside words."""
        assert texts(tokenize("don't stop")) == ["don't", "stop"]

    def test_numbers_keep_separators(self):
        """Decimal and time separators stay inside numbers."""
        tokens = tokenize("3.14 and 1,000 at 10:30.")
        assert texts(tokens) == ["3.14", "and", "1,000", "at", "10:30", "."]
        assert tokens[-1].kind is TokenKind.TERM

    def test_hyphenated_word(self):
        """An intra-word hyphen does not split the word."""
        assert texts(tokenize("well-known")) == ["well-known"]

    def test_free_hyphen_is_link(self):
        """A free-standing hyphen is a link."""
        tokens = tokenize("a - b")
        assert tokens[1].kind is TokenKind.LINK
        assert tokens[1].context is Context.HYPHEN

    def test_dash_is_link(self):
        """An em dash is a link in the dash context."""
        tokens = tokenize("a — b")
        assert tokens[1].context is Context.DASH

    def test_terminator_run_is_one_token(self):
        """Stacked stop marks form one token."""
        tokens = tokenize("Wait!?")
        assert texts(tokens) == ["Wait", "!?"]
        assert tokens[1].context is Context.SENTENCE

    def test_ellipsis_context(self):
        """The ellipsis has its own context."""
        assert tokenize("Wait…")[1].context is Context.ELLIPSIS

    def test_brackets(self):
        """Each bracket kind opens its own context."""
        tokens = tokenize("(a) [b] {c}")
        contexts = [t.context for t in tokens if t.kind is TokenKind.OPEN]
        assert contexts == [Context.PAREN, Context.BRACKET, Context.BRACE]

    def test_curly_double_quotes_directional(self):
        """Curly double quotes keep their direction."""
        tokens = tokenize("“Hi”")
        assert kinds(tokens) == [TokenKind.OPEN, TokenKind.WORD, TokenKind.CLOSE]


class TestClassifyQuote:
    """Tests for the straight-quote heuristic."""

    def test_opening(self):
        """A quote before a word opens."""
        assert classify_quote('"', ' ', 'S') is TokenKind.OPEN
        assert classify_quote('"', '', 'S') is TokenKind.OPEN

    def test_closing(self):
        """A quote after a word or stop closes."""
        assert classify_quote('"', 'p', ' ') is TokenKind.CLOSE
        assert classify_quote('"', '.', '') is TokenKind.CLOSE

    def test_apostrophe(self):
        """Apostrophes inside words or before digits are not quotes."""
        assert classify_quote("'", 'n', 't') is None
        assert classify_quote("'", ' ', '9') is None

    def test_unknown(self):
        """A quote between spaces is ambiguous."""
        assert classify_quote('"', ' ', ' ') is TokenKind.UNKNOWN


class TestSentences:
    """Tests for sentence splitting and unknown-quote resolution."""

    def test_split_keeps_closing_marks(self):
        """Closing marks after a stop stay with their sentence."""
        sentences = split_sentences(tokenize('Go. "Run." Stop.'))
        assert len(sentences) == 3
        assert sentences[1][-1].kind is TokenKind.CLOSE

    def test_unsplit_remainder(self):
        """Text after the last stop forms a final sentence."""
        sentences = split_sentences(tokenize("One. two"))
        assert texts(sentences[-1]) == ["two"]

    def test_unknown_before_words_opens(self):
        """An ambiguous quote with words only after it opens."""
        sentence = [
            Token(TokenKind.UNKNOWN, '"', Context.QUOTE),
            Token(TokenKind.WORD, 'hi', word_length=2),
            Token(TokenKind.TERM, '.', Context.SENTENCE),
        ]
        resolve_unknown(sentence)
        assert sentence[0].kind is TokenKind.OPEN

    def test_unknown_after_words_closes(self):
        """An ambiguous quote with words only before it closes."""
        sentence = [
            Token(TokenKind.WORD, 'hi', word_length=2),
            Token(TokenKind.UNKNOWN, '"', Context.QUOTE),
            Token(TokenKind.TERM, '.', Context.SENTENCE),
        ]
        resolve_unknown(sentence)
        assert sentence[1].kind is TokenKind.CLOSE

    def test_unknown_between_words_uses_depth(self):
        """Between words an ambiguous quote closes an open quote."""
        sentence = [
            Token(TokenKind.OPEN, '"', Context.QUOTE),
            Token(TokenKind.WORD, 'hi', word_length=2),
            Token(TokenKind.UNKNOWN, '"', Context.QUOTE),
            Token(TokenKind.WORD, 'there', word_length=3),
        ]
        resolve_unknown(sentence)
        assert sentence[2].kind is TokenKind.CLOSE

    def test_unknown_without_words_discarded(self):
        """An ambiguous quote with no words around it is dropped."""
        sentence = [
            Token(TokenKind.UNKNOWN, '"', Context.QUOTE),
            Token(TokenKind.TERM, '.', Context.SENTENCE),
        ]
        resolve_unknown(sentence)
        assert not sentence[0].valid


class TestBalancer:
    """Tests for bracket and quote repair."""

    def test_unmatched_close_dropped(self):
        """A close with no opener is dropped."""
        assert texts(prepare_tokens("This is it) now.")) == ["This", "is", "it", "now", "."]

    def test_unmatched_open_with_more_content_after(self):
        """Only the opener goes when most of the sentence follows it."""
        assert texts(prepare_tokens("(this is the whole thing.")) == [
            "this", "is", "the", "whole", "thing", ".",
        ]

    def test_unmatched_open_late_discards_tail(self):
        """A late unmatched opener takes the rest of the sentence with it."""
        assert texts(prepare_tokens("We went home and then (it rained.")) == [
            "We", "went", "home", "and", "then", ".",
        ]

    def test_unmatched_quote(self):
        """An unclosed quote takes the rest of the sentence with it."""
        assert texts(prepare_tokens('He said "stop now.')) == ["He", "said", "."]

    def test_balanced_untouched(self):
        """Balanced brackets pass through."""
        tokens = prepare_tokens("We left (quietly) at dawn.")
        assert TokenKind.OPEN in kinds(tokens)
        assert TokenKind.CLOSE in kinds(tokens)
        assert len(tokens) == 8

    def test_repair_is_per_sentence(self):
        """Brackets are never matched across sentences."""
        tokens = prepare_tokens("One (two. Three) four.")
        assert TokenKind.OPEN not in kinds(tokens)
        assert TokenKind.CLOSE not in kinds(tokens)

    @pytest.mark.parametrize("seed", range(25))
    def test_random_brackets_always_balanced(self, seed):
        """Whatever the mix of opens and closes, the output is balanced."""
        rng = random.Random(seed)
        parts = [rng.choice(['(', ')', 'cat', 'dog']) for _ in range(14)]
        sentence = tokenize(' '.join(parts) + ' .')
        kept = balance_sentence(sentence)
        depth = 0
        for tok in kept:
            if tok.kind is TokenKind.OPEN:
                depth += 1
            elif tok.kind is TokenKind.CLOSE:
                depth -= 1
            assert depth >= 0
        assert depth == 0

#!/usr/bin/env python3
"""
Punctuation Classification & Balancing
======================================
Turns raw text into a flat stream of word and punctuation tokens, then
repairs the stream one sentence at a time so every surviving bracket or
quote has a partner.

Pipeline:
    normalize_punctuation()   ...  -> …, -- -> —, respacing
    tokenize()                character scan, quote/apostrophe heuristic
    split_sentences()         TERM plus any CLOSE marks glued to it
    resolve_unknown()         straight quotes the scan could not place
    balance_sentence()        per-context stack repair

Usage:
    from pseudotext.punctuation import prepare_tokens

    for tok in prepare_tokens('He said, "Stop." Then he left.'):
        print(tok.kind, tok.text)
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List

from pseudotext.structure import DEFAULT_VOWELS, tokenize_structure

logger = logging.getLogger(__name__)


class TokenKind(Enum):
    WORD = "word"
    TERM = "term"
    PAUSE = "pause"
    LINK = "link"
    OPEN = "open"
    CLOSE = "close"
    UNKNOWN = "unknown"


class Context(Enum):
    SENTENCE = "sentence"
    ELLIPSIS = "ellipsis"
    CLAUSE = "clause"
    INTRO = "intro"
    DASH = "dash"
    HYPHEN = "hyphen"
    PAREN = "paren"
    BRACKET = "bracket"
    BRACE = "brace"
    QUOTE = "quote"
    SQUOTE = "squote"


BRACKET_CONTEXTS = (Context.QUOTE, Context.SQUOTE, Context.PAREN, Context.BRACKET, Context.BRACE)

TERMINATORS = frozenset('.!?…')
PAUSES = {',': Context.CLAUSE, ';': Context.CLAUSE, ':': Context.INTRO}
DASHES = frozenset('—–')
PAIRED = {
    '(': (TokenKind.OPEN, Context.PAREN),
    ')': (TokenKind.CLOSE, Context.PAREN),
    '[': (TokenKind.OPEN, Context.BRACKET),
    ']': (TokenKind.CLOSE, Context.BRACKET),
    '{': (TokenKind.OPEN, Context.BRACE),
    '}': (TokenKind.CLOSE, Context.BRACE),
    '“': (TokenKind.OPEN, Context.QUOTE),
    '”': (TokenKind.CLOSE, Context.QUOTE),
    '«': (TokenKind.OPEN, Context.QUOTE),
    '»': (TokenKind.CLOSE, Context.QUOTE),
}
AMBIGUOUS = {'"': Context.QUOTE, "'": Context.SQUOTE}

# Characters that may precede an opening quote / follow a closing one
_OPENING_NEIGHBOURS = frozenset('([{“«') | DASHES
_CLOSING_NEIGHBOURS = frozenset(')]}”»') | DASHES | TERMINATORS | frozenset(PAUSES)


@dataclass
class Token:
    kind: TokenKind
    text: str = ''
    context: Context = None
    word_length: int = 0
    valid: bool = True

    @property
    def is_word(self) -> bool:
        return self.kind is TokenKind.WORD


# =============================================================================
# Normalization
# =============================================================================

_SMART_SINGLE = re.compile(r"[‘’‛]")
_DOTS = re.compile(r"\.{3,}")
_HYPHENS = re.compile(r"-{2,}")
_DASH_SPACING = re.compile(r"\s*([—–])\s*")
_ELLIPSIS_SPACING = re.compile(r"…(?=[^\s.!?…\"'”’)\]}])")
_SPACES = re.compile(r"[ \t\f\v]+")


def normalize_punctuation(text: str) -> str:
    """Collapse dot and hyphen runs into single glyphs and respace them.

    Curly single quotes become straight apostrophes so the apostrophe
    heuristic sees one character; curly double quotes keep their direction.
    """
    text = _SMART_SINGLE.sub("'", text)
    text = _DOTS.sub('…', text)
    text = _ELLIPSIS_SPACING.sub('… ', text)
    text = _HYPHENS.sub('—', text)
    text = _DASH_SPACING.sub(r' \1 ', text)
    return _SPACES.sub(' ', text).strip()


# =============================================================================
# Tokenizer
# =============================================================================

def _word_char(ch: str) -> bool:
    return bool(ch) and ch.isalnum()


def classify_quote(mark: str, prev: str, nxt: str) -> TokenKind:
    """Decide what a straight quote is from its neighbours.

    Returns None for an apostrophe (the mark stays inside the word),
    OPEN or CLOSE when the spacing is unambiguous, UNKNOWN otherwise.
    """
    if mark == "'" and ((_word_char(prev) and _word_char(nxt)) or nxt.isdigit()):
        return None
    opens = not prev or prev.isspace() or prev in _OPENING_NEIGHBOURS or prev in AMBIGUOUS
    closes = _word_char(prev) or prev in TERMINATORS or prev in PAUSES or prev in AMBIGUOUS
    if opens and _word_char(nxt):
        return TokenKind.OPEN
    if closes and (not nxt or nxt.isspace() or nxt in _CLOSING_NEIGHBOURS):
        return TokenKind.CLOSE
    return TokenKind.UNKNOWN


def tokenize(text: str, vowels: frozenset = DEFAULT_VOWELS) -> List[Token]:
    """Scan normalized text into WORD and punctuation tokens."""
    tokens: List[Token] = []
    buf: List[str] = []
    n = len(text)

    def flush():
        if buf:
            word = ''.join(buf)
            length = len(tokenize_structure(word, vowels))
            tokens.append(Token(TokenKind.WORD, word, word_length=length))
            buf.clear()

    i = 0
    while i < n:
        ch = text[i]
        prev = text[i - 1] if i > 0 else ''
        nxt = text[i + 1] if i + 1 < n else ''

        if ch.isspace():
            flush()
        elif ch in TERMINATORS:
            if ch == '.' and prev.isdigit() and nxt.isdigit():
                buf.append(ch)
            else:
                j = i
                while j < n and text[j] in TERMINATORS:
                    j += 1
                flush()
                run = text[i:j]
                context = Context.ELLIPSIS if '…' in run else Context.SENTENCE
                tokens.append(Token(TokenKind.TERM, run, context))
                i = j
                continue
        elif ch in PAUSES:
            if ch in ',:' and prev.isdigit() and nxt.isdigit():
                buf.append(ch)
            else:
                flush()
                tokens.append(Token(TokenKind.PAUSE, ch, PAUSES[ch]))
        elif ch in DASHES:
            flush()
            tokens.append(Token(TokenKind.LINK, ch, Context.DASH))
        elif ch == '-':
            if _word_char(prev) and _word_char(nxt):
                buf.append(ch)
            else:
                flush()
                tokens.append(Token(TokenKind.LINK, ch, Context.HYPHEN))
        elif ch in PAIRED:
            flush()
            kind, context = PAIRED[ch]
            tokens.append(Token(kind, ch, context))
        elif ch in AMBIGUOUS:
            kind = classify_quote(ch, prev, nxt)
            if kind is None:
                buf.append(ch)
            else:
                flush()
                tokens.append(Token(kind, ch, AMBIGUOUS[ch]))
        else:
            buf.append(ch)
        i += 1

    flush()
    return tokens


# =============================================================================
# Sentence-level repair
# =============================================================================

def split_sentences(tokens: List[Token]) -> List[List[Token]]:
    """Group tokens into sentences.

    A sentence ends at a TERM token and keeps any CLOSE tokens that follow
    it directly, so ``stop."`` stays together.
    """
    sentences: List[List[Token]] = []
    current: List[Token] = []
    i = 0
    while i < len(tokens):
        tok = tokens[i]
        current.append(tok)
        i += 1
        if tok.kind is TokenKind.TERM:
            while i < len(tokens) and tokens[i].kind is TokenKind.CLOSE:
                current.append(tokens[i])
                i += 1
            sentences.append(current)
            current = []
    if current:
        sentences.append(current)
    return sentences


def _live_words(tokens: Iterable[Token]) -> int:
    return sum(1 for t in tokens if t.valid and t.is_word)


def resolve_unknown(sentence: List[Token]) -> None:
    """Give every UNKNOWN quote in the sentence a direction, or discard it.

    Words only after it -> OPEN; words only before -> CLOSE; words on both
    sides -> CLOSE if a same-context quote is still open, else OPEN; no
    words anywhere -> discarded.
    """
    open_depth = {ctx: 0 for ctx in BRACKET_CONTEXTS}
    for idx, tok in enumerate(sentence):
        if not tok.valid or tok.context not in open_depth:
            continue
        if tok.kind is TokenKind.UNKNOWN:
            before = _live_words(sentence[:idx])
            after = _live_words(sentence[idx + 1:])
            if after and not before:
                tok.kind = TokenKind.OPEN
            elif before and not after:
                tok.kind = TokenKind.CLOSE
            elif before and after:
                tok.kind = TokenKind.CLOSE if open_depth[tok.context] > 0 else TokenKind.OPEN
            else:
                tok.valid = False
                continue
        if tok.kind is TokenKind.OPEN:
            open_depth[tok.context] += 1
        elif tok.kind is TokenKind.CLOSE and open_depth[tok.context] > 0:
            open_depth[tok.context] -= 1


def _balance_context(sentence: List[Token], context: Context) -> bool:
    """One stack pass for a single bracket context. Returns True on change."""
    changed = False
    stack: List[int] = []
    for idx, tok in enumerate(sentence):
        if not tok.valid or tok.context is not context:
            continue
        if tok.kind is TokenKind.OPEN:
            stack.append(idx)
        elif tok.kind is TokenKind.CLOSE:
            if stack:
                stack.pop()
            else:
                tok.valid = False
                changed = True

    for idx in stack:
        opener = sentence[idx]
        if not opener.valid:
            continue
        before = _live_words(sentence[:idx])
        after = _live_words(sentence[idx + 1:])
        opener.valid = False
        changed = True
        if after > before:
            continue
        # Unterminated structure taints the rest of the sentence
        for tok in sentence[idx + 1:]:
            if tok.kind is not TokenKind.TERM:
                tok.valid = False
    return changed


def balance_sentence(sentence: List[Token]) -> List[Token]:
    """Drop unmatched brackets and quotes until every context is stable."""
    while True:
        changed = False
        for context in BRACKET_CONTEXTS:
            if _balance_context(sentence, context):
                changed = True
        if not changed:
            break
    return [t for t in sentence if t.valid]


def prepare_tokens(text: str, vowels: frozenset = DEFAULT_VOWELS) -> List[Token]:
    """Normalize, tokenize and balance ``text`` into a clean token stream."""
    tokens = tokenize(normalize_punctuation(text), vowels)
    stream: List[Token] = []
    dropped = 0
    for sentence in split_sentences(tokens):
        resolve_unknown(sentence)
        kept = balance_sentence(sentence)
        dropped += len(sentence) - len(kept)
        stream.extend(kept)
    if dropped:
        logger.debug(f"Balancer discarded {dropped} tokens")
    return stream

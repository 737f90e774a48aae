#!/usr/bin/env python3
"""
Segment Trees
=============
Parse a balanced token stream into sentence templates.

A template keeps only the shape of a sentence: the CV-token length of each
word, where nested quotes, parentheses, dash asides and pauses were
inserted, and which punctuation closed each part.

    She said, "Stop."

    SENTENCE [2, 3]  terminator "."
      @2 PAUSE ","
      @2 QUOTE [3]  '"' ... '"'  terminator "."

Templates are immutable once built; generation samples and renders them
without touching the stored tree.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from pseudotext.punctuation import Context, Token, TokenKind, TERMINATORS

logger = logging.getLogger(__name__)


class SegmentType(Enum):
    SENTENCE = "SENTENCE"
    PAUSE = "PAUSE"
    QUOTE = "QUOTE"
    SQUOTE = "SQUOTE"
    PAREN = "PAREN"
    BRACKET = "BRACKET"
    BRACE = "BRACE"
    DASH_ASIDE = "DASH_ASIDE"
    ATTRIBUTION = "ATTRIBUTION"


QUOTE_TYPES = frozenset({SegmentType.QUOTE, SegmentType.SQUOTE})
ENCLOSING_TYPES = frozenset({SegmentType.PAREN, SegmentType.BRACKET, SegmentType.BRACE})

CONTEXT_TO_TYPE = {
    Context.QUOTE: SegmentType.QUOTE,
    Context.SQUOTE: SegmentType.SQUOTE,
    Context.PAREN: SegmentType.PAREN,
    Context.BRACKET: SegmentType.BRACKET,
    Context.BRACE: SegmentType.BRACE,
}

DEFAULT_TERMINATOR = '.'


@dataclass(frozen=True)
class Segment:
    """One node of a sentence template."""
    type: SegmentType
    word_lengths: Tuple[int, ...] = ()
    children: Tuple[Tuple[int, 'Segment'], ...] = ()
    open_punct: str = ''
    close_punct: str = ''
    terminator: str = ''

    @property
    def is_empty(self) -> bool:
        return not self.word_lengths and not self.children

    @property
    def is_pause(self) -> bool:
        return self.type is SegmentType.PAUSE

    def structural_children(self) -> List['Segment']:
        return [child for _, child in self.children if not child.is_pause]

    def walk(self):
        """Yield this segment and every descendant, depth first."""
        yield self
        for _, child in self.children:
            yield from child.walk()

    def total_words(self) -> int:
        return sum(len(seg.word_lengths) for seg in self.walk())

    def to_dict(self) -> dict:
        data = {'type': self.type.value, 'words': list(self.word_lengths)}
        if self.children:
            data['children'] = [[pos, child.to_dict()] for pos, child in self.children]
        if self.open_punct:
            data['open'] = self.open_punct
        if self.close_punct:
            data['close'] = self.close_punct
        if self.terminator:
            data['terminator'] = self.terminator
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'Segment':
        return cls(
            type=SegmentType(data['type']),
            word_lengths=tuple(int(n) for n in data.get('words', [])),
            children=tuple((int(pos), cls.from_dict(child)) for pos, child in data.get('children', [])),
            open_punct=data.get('open', ''),
            close_punct=data.get('close', ''),
            terminator=data.get('terminator', ''),
        )


def pause(mark: str) -> Segment:
    return Segment(SegmentType.PAUSE, terminator=mark)


# =============================================================================
# Parser
# =============================================================================

@dataclass
class SegmentBuilder:
    """Mutable segment under construction; frozen when popped."""
    type: SegmentType
    position: int = 0
    open_punct: str = ''
    word_lengths: List[int] = field(default_factory=list)
    children: List[Tuple[int, Segment]] = field(default_factory=list)
    close_punct: str = ''
    terminator: str = ''

    @property
    def cursor(self) -> int:
        return len(self.word_lengths)

    def add_word(self, length: int):
        if self.terminator and self.type in QUOTE_TYPES:
            # An earlier stop inside the quote becomes internal punctuation
            self.children.append((self.cursor, pause(self.terminator)))
            self.terminator = ''
        self.word_lengths.append(length)

    def add_pause(self, mark: str):
        if not self.word_lengths:
            return
        if self.children and self.children[-1][1].is_pause and self.children[-1][0] == self.cursor:
            return
        self.children.append((self.cursor, pause(mark)))

    def build(self) -> Segment:
        return Segment(
            type=self.type,
            word_lengths=tuple(self.word_lengths),
            children=tuple(self.children),
            open_punct=self.open_punct,
            close_punct=self.close_punct,
            terminator=self.terminator,
        )


class SegmentParser:
    """Stack machine turning a balanced token stream into templates."""

    def __init__(self, default_terminator: str = DEFAULT_TERMINATOR):
        self.default_terminator = default_terminator
        self.templates: List[Segment] = []
        self.stack: List[SegmentBuilder] = []
        self._tokens: Sequence[Token] = ()
        self._index = 0
        self._handlers = {
            TokenKind.WORD: self._on_word,
            TokenKind.OPEN: self._on_open,
            TokenKind.CLOSE: self._on_close,
            TokenKind.TERM: self._on_term,
            TokenKind.PAUSE: self._on_pause,
            TokenKind.LINK: self._on_link,
        }
        self._reset()

    def _reset(self):
        self.stack = [SegmentBuilder(SegmentType.SENTENCE)]
        self.last_closed: Optional[SegmentType] = None
        self.pending_stop: str = ''

    @property
    def top(self) -> SegmentBuilder:
        return self.stack[-1]

    # -- stack operations ---------------------------------------------------

    def _push(self, seg_type: SegmentType, open_punct: str = ''):
        parent = self.top
        self.stack.append(SegmentBuilder(seg_type, parent.cursor, open_punct))

    def _pop(self) -> Segment:
        builder = self.stack.pop()
        segment = builder.build()
        if not segment.is_empty:
            self.top.children.append((builder.position, segment))
        self.last_closed = segment.type
        return segment

    def _pop_to(self, index: int):
        while len(self.stack) > index:
            self._pop()

    def _find(self, *types: SegmentType) -> int:
        for i in range(len(self.stack) - 1, 0, -1):
            if self.stack[i].type in types:
                return i
        return -1

    def _finish_sentence(self, terminator: str):
        self._pop_to(1)
        root = self.top
        if root.word_lengths or root.children:
            root.terminator = terminator
            self.templates.append(root.build())
        self._reset()

    # -- token handlers -----------------------------------------------------

    def feed(self, tok: Token):
        if self.pending_stop:
            stop = self.pending_stop
            self.pending_stop = ''
            if tok.is_word and _starts_sentence(tok.text):
                self._finish_sentence(stop)
            elif tok.kind is TokenKind.OPEN and CONTEXT_TO_TYPE.get(tok.context) in QUOTE_TYPES:
                # back-to-back dialogue lines are separate sentences
                self._finish_sentence(stop)

        handler = self._handlers.get(tok.kind)
        if handler is not None:
            handler(tok)

    def _on_word(self, tok: Token):
        if tok.word_length > 0:
            self.top.add_word(tok.word_length)
            self.last_closed = None

    def _on_open(self, tok: Token):
        seg_type = CONTEXT_TO_TYPE.get(tok.context)
        if seg_type is None:
            return
        if seg_type in QUOTE_TYPES and self.top.type is SegmentType.ATTRIBUTION:
            self._pop()
        self._push(seg_type, tok.text)
        self.last_closed = None

    def _on_close(self, tok: Token):
        seg_type = CONTEXT_TO_TYPE.get(tok.context)
        index = self._find(seg_type)
        if index < 0:
            return
        self._pop_to(index + 1)
        self.top.close_punct = tok.text
        closed = self._pop()
        if closed.terminator and len(self.stack) == 1:
            self.pending_stop = closed.terminator

    def _on_term(self, tok: Token):
        top = self.top
        if top.type in QUOTE_TYPES:
            top.terminator = tok.text
            return
        if top.type in ENCLOSING_TYPES and self._next_closes(top.type):
            top.terminator = tok.text
            return
        self._finish_sentence(tok.text)

    def _on_pause(self, tok: Token):
        self.top.add_pause(tok.text)

    def _on_link(self, tok: Token):
        if tok.context is not Context.DASH:
            return
        if self.last_closed in QUOTE_TYPES:
            self._push(SegmentType.ATTRIBUTION, tok.text)
            self.last_closed = None
            return
        index = self._find(SegmentType.DASH_ASIDE)
        if index < 0:
            self._push(SegmentType.DASH_ASIDE, tok.text)
        else:
            self._pop_to(index + 1)
            self.top.close_punct = tok.text
            self._pop()

    # -- lookahead ---------------------------------------------------------

    def _next_closes(self, seg_type: SegmentType) -> bool:
        nxt = self._index + 1
        if nxt >= len(self._tokens):
            return False
        tok = self._tokens[nxt]
        return tok.kind is TokenKind.CLOSE and CONTEXT_TO_TYPE.get(tok.context) is seg_type

    def parse(self, tokens: Sequence[Token]) -> List[Segment]:
        self._tokens = tokens
        for index, tok in enumerate(tokens):
            self._index = index
            if tok.valid:
                self.feed(tok)
        self._finish_input()
        return self.templates

    def _finish_input(self):
        if len(self.stack) == 1 and not self.top.word_lengths and not self.top.children:
            return
        ends_in_attribution = self._find(SegmentType.ATTRIBUTION) > 0 or (
            self.last_closed is SegmentType.ATTRIBUTION
        )
        stop = self.pending_stop
        if not stop and not ends_in_attribution:
            stop = self.default_terminator
        self._finish_sentence(stop)


def _starts_sentence(word: str) -> bool:
    """Capitalized word after a closed quote starts a new sentence ("I" excepted)."""
    letters = [ch for ch in word if ch.isalpha()]
    if not letters or not letters[0].isupper():
        return False
    return word.split("'")[0] != 'I'


def parse_segments(tokens: Sequence[Token], default_terminator: str = DEFAULT_TERMINATOR) -> List[Segment]:
    """Parse a balanced token stream into SENTENCE-rooted templates."""
    return SegmentParser(default_terminator).parse(tokens)


# =============================================================================
# Template checks
# =============================================================================

def _quote_problems(segment: Segment) -> Optional[str]:
    for node in segment.walk():
        seen_quote_positions = set()
        for pos, child in node.children:
            if child.type not in QUOTE_TYPES:
                continue
            if child.is_empty:
                return "empty quote"
            if not child.open_punct or not child.close_punct:
                return "unbalanced quote"
            if pos in seen_quote_positions:
                return "adjacent quotes"
            seen_quote_positions.add(pos)
        if node.type in QUOTE_TYPES and (not node.open_punct or not node.close_punct):
            return "unbalanced quote"
        for pos, _ in node.children:
            if not 0 <= pos <= len(node.word_lengths):
                return "child position out of range"
    return None


def template_problem(template: Segment) -> Optional[str]:
    """Reason a template is unusable, or None when it is fine."""
    if template.type is not SegmentType.SENTENCE:
        return "root is not a sentence"
    if template.total_words() == 0:
        return "no words"
    return _quote_problems(template)


def filter_templates(templates: Sequence[Segment]) -> Tuple[List[Segment], int]:
    """Split templates into usable ones and a count of rejected ones."""
    valid: List[Segment] = []
    reasons: Dict[str, int] = {}
    for template in templates:
        problem = template_problem(template)
        if problem is None:
            valid.append(template)
        else:
            reasons[problem] = reasons.get(problem, 0) + 1
    rejected = len(templates) - len(valid)
    if rejected:
        logger.debug(f"Rejected {rejected} templates: {reasons}")
    return valid, rejected


def ends_with_own_stop(segment: Segment) -> bool:
    """True when the last thing in ``segment`` is a quote or bracket carrying its own stop."""
    if not segment.children:
        return False
    trailing = [child for pos, child in segment.children
                if pos >= len(segment.word_lengths) and not child.is_pause]
    if not trailing:
        return False
    last = trailing[-1]
    return last.type in (QUOTE_TYPES | ENCLOSING_TYPES) and bool(last.terminator) and last.terminator[-1] in TERMINATORS

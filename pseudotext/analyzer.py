#!/usr/bin/env python3
"""
Corpus Analysis
===============
One pass over a text: balanced tokens feed the word model (per word) and
the segment parser (per sentence).

Usage:
    from pseudotext.analyzer import analyze

    result = analyze(text)
    result.stats        # StatModel with counts and vocabulary
    result.templates    # usable sentence templates
    result.rhythm       # RhythmModel built from those templates

Several files can be analysed independently and combined; counts add up,
so merging per-file results is the same as analysing the concatenation
(apart from sentences that would straddle a file boundary).
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Union

from pseudotext.config import AnalysisConfig, CorpusConfig
from pseudotext.corpus import read_corpora
from pseudotext.model import StatModel
from pseudotext.punctuation import prepare_tokens
from pseudotext.rhythm import RhythmModel
from pseudotext.segments import DEFAULT_TERMINATOR, Segment, parse_segments
from pseudotext.settings import get_setting
from pseudotext.structure import is_plausible_word, tokenize_structure

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    """Word statistics plus sentence structure learned from a corpus."""
    stats: StatModel
    rhythm: RhythmModel
    words_seen: int = 0
    words_rejected: int = 0
    sources: List[str] = field(default_factory=list)

    @property
    def templates(self) -> List[Segment]:
        return self.rhythm.templates

    @property
    def vocabulary(self):
        return self.stats.vocabulary

    def merge(self, other: 'AnalysisResult') -> 'AnalysisResult':
        self.stats.merge(other.stats)
        self.rhythm.merge(other.rhythm)
        self.words_seen += other.words_seen
        self.words_rejected += other.words_rejected
        self.sources.extend(other.sources)
        return self


def analyze(text: str, config: Optional[AnalysisConfig] = None) -> AnalysisResult:
    """Analyse already-normalized text."""
    config = config or AnalysisConfig()
    vowels = config.vowel_set
    tokens = prepare_tokens(text, vowels)

    stats = StatModel(max_effective_length=config.max_effective_length)
    seen = rejected = 0
    for tok in tokens:
        if not tok.is_word or tok.word_length == 0:
            continue
        seen += 1
        stats.add_vocabulary(tok.text)
        if not is_plausible_word(tok.text, config):
            rejected += 1
            continue
        stats.record_word(tokenize_structure(tok.text, vowels))

    stop = get_setting("rhythm.default_terminator", DEFAULT_TERMINATOR)
    rhythm = RhythmModel.from_templates(parse_segments(tokens, stop))
    logger.debug(
        f"Analysed {seen} words ({rejected} rejected), "
        f"{len(rhythm.templates)} templates ({rhythm.rejected_templates} rejected)"
    )
    return AnalysisResult(stats=stats, rhythm=rhythm, words_seen=seen, words_rejected=rejected)


def analyze_texts(texts: Iterable[str], config: Optional[AnalysisConfig] = None) -> AnalysisResult:
    """Analyse each text on its own and add the results together."""
    config = config or AnalysisConfig()
    combined = None
    for text in texts:
        result = analyze(text, config)
        combined = result if combined is None else combined.merge(result)
    if combined is None:
        combined = analyze("", config)
    return combined


def analyze_files(paths: List[Union[str, Path]], config: Optional[AnalysisConfig] = None,
                  corpus_config: Optional[CorpusConfig] = None) -> AnalysisResult:
    """Read, normalize and analyse corpus files, merging their counts."""
    result = analyze_texts(read_corpora(paths, corpus_config), config)
    result.sources = [str(p) for p in paths]
    return result

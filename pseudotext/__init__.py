#!/usr/bin/env python3
"""
PseudoText - Structural Pseudo-word & Sentence Generator
========================================================

Learns how the words of a corpus are built (alternating consonant and
vowel clusters) and how its sentences are shaped (clauses, quotes,
brackets, dash asides), then generates new words and sentences that
follow the same patterns.

Quick Start
-----------
    from pseudotext import analyze, compile_model, GenerationContext, generate_word

    result = analyze(open("corpus.txt").read())
    model = compile_model(result.stats)

    ctx = GenerationContext(model, seed=42)
    print(generate_word(ctx).word)

    # Sentences from the parsed templates
    from pseudotext import compile_rhythm, render_segment
    rhythm = compile_rhythm(result.rhythm)
    print(render_segment(ctx, rhythm.pick_template(ctx.rng)))

Modules
-------
    pseudotext.structure    - CV-token decomposition
    pseudotext.punctuation  - Punctuation tokenizer and balancer
    pseudotext.segments     - Sentence template parser
    pseudotext.model        - N-gram counts and compiled selectors
    pseudotext.rhythm       - Clause and transition statistics
    pseudotext.structural   - Segment entity chains for new sentence trees
    pseudotext.generator    - Word and sentence generation
    pseudotext.names        - Pseudo-names by role

CLI Usage
---------
    python -m pseudotext analyze corpus.txt -w words.json -s sentences.json -u
    python -m pseudotext generate -w words.json -s sentences.json -c 5 -u
"""

__version__ = "0.4.0"

from .analyzer import AnalysisResult, analyze, analyze_files, analyze_texts
from .errors import (
    ConfigurationError,
    GenerationError,
    ModelValidationError,
    PseudoTextError,
    TokenExhaustedError,
)
from .generator import (
    GenerationContext,
    GenerationStats,
    WordResult,
    generate_sentences,
    generate_structural_sentence,
    generate_unique_word,
    generate_word,
    generate_words,
    render_segment,
)
from .model import CompiledModel, StatModel, compile_model, validate_word_model
from .rhythm import CompiledRhythm, RhythmModel, compile_rhythm, validate_rhythm
from .segments import Segment, SegmentType, parse_segments
from .selector import WeightedSelector
from .structural import StructureBuilder, StructureModel
from .structure import CVToken, tokenize_structure

__all__ = [
    # Analysis
    'analyze',
    'analyze_texts',
    'analyze_files',
    'AnalysisResult',
    'tokenize_structure',
    'CVToken',
    'parse_segments',
    'Segment',
    'SegmentType',
    # Models
    'StatModel',
    'CompiledModel',
    'compile_model',
    'validate_word_model',
    'RhythmModel',
    'CompiledRhythm',
    'compile_rhythm',
    'validate_rhythm',
    'StructureModel',
    'StructureBuilder',
    'WeightedSelector',
    # Generation
    'GenerationContext',
    'GenerationStats',
    'WordResult',
    'generate_word',
    'generate_unique_word',
    'generate_words',
    'generate_sentences',
    'generate_structural_sentence',
    'render_segment',
    # Errors
    'PseudoTextError',
    'ConfigurationError',
    'ModelValidationError',
    'GenerationError',
    'TokenExhaustedError',
]

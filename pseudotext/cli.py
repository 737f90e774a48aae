#!/usr/bin/env python3
"""
PseudoText CLI
==============
Command-line interface for corpus analysis and pseudo-text generation.

Usage:
    pseudotext analyze corpus.txt -w words.json -s sentences.json -u
    pseudotext generate -w words.json -s sentences.json -c 5 -u -m
    pseudotext quick corpus.txt --words 20
    pseudotext names names.txt -c 10
    pseudotext stats -w words.json -s sentences.json
"""

import argparse
import logging
import sys
import textwrap

from rich.console import Console
from rich.logging import RichHandler

from pseudotext import __version__
from pseudotext.analyzer import analyze_files
from pseudotext.config import AnalysisConfig, CorpusConfig, GenerationConfig
from pseudotext.corpus import read_raw
from pseudotext.errors import ConfigurationError, ModelValidationError, PseudoTextError
from pseudotext.generator import GenerationContext, generate_sentences, generate_words
from pseudotext.model import StatModel, compile_model, validate_word_model
from pseudotext.names import NameModel, compile_names, generate_names
from pseudotext.persistence import load_rhythm, load_word_stats, save_rhythm, save_word_stats
from pseudotext.report import render_generation, render_rhythm, render_word_stats
from pseudotext.rhythm import compile_rhythm, validate_rhythm
from pseudotext.settings import get_setting, resolve_path

logger = logging.getLogger(__name__)

NGRAM_MODES = [1, 2, 3]

# =============================================================================
# Utilities
# =============================================================================

class Output:
    """Handles CLI output with quiet mode support.

    Generated text goes to stdout; summaries and messages go to stderr so
    the text can be piped.
    """

    def __init__(self, quiet: bool = False):
        self.quiet = quiet
        self.console = Console()
        self.err_console = Console(stderr=True)

    def print(self, *args, **kwargs):
        if not self.quiet:
            print(*args, **kwargs)

    def error(self, msg: str):
        print(f"Error: {msg}", file=sys.stderr)

    def success(self, msg: str):
        if not self.quiet:
            print(f"OK: {msg}", file=sys.stderr)

    def render(self, renderable, stderr: bool = False):
        """Print a rich renderable (table, panel)."""
        if self.quiet:
            return
        (self.err_console if stderr else self.console).print(renderable)

    def lines(self, lines: list, destination: str = None, wrap: int = 0):
        """Write generated lines to ``destination`` or stdout."""
        text = textwrap.fill(' '.join(lines), width=wrap) if wrap else '\n'.join(lines)
        if destination:
            path = resolve_path(destination)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text + '\n', encoding='utf-8')
            self.success(f"Wrote {len(lines)} items to {path}")
        else:
            print(text)


def setup_logging(verbose: bool = False, quiet: bool = False):
    """Route log records through rich on stderr."""
    level = get_setting("logging.level", "INFO")
    if verbose:
        level = "DEBUG"
    elif quiet:
        level = "ERROR"
    logging.basicConfig(
        level=level,
        format=get_setting("logging.format", "%(message)s"),
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def generation_config(args) -> GenerationConfig:
    """Build a validated GenerationConfig; unset flags fall back to app.yaml."""
    cfg = GenerationConfig(
        ngram_mode=getattr(args, 'ngram', None),
        unique=True if getattr(args, 'unique', False) else None,
        mark_fallbacks=True if getattr(args, 'mark', False) else None,
        strict=True if getattr(args, 'strict', False) else None,
        prune_min_tokens=getattr(args, 'prune', None),
        count=getattr(args, 'count', None),
    )
    return cfg.validate()


def run_generation(stats: StatModel, rhythm, cfg: GenerationConfig, args, out: Output,
                   sentences: bool):
    """Prune, compile, validate and generate; shared by ``generate`` and ``quick``."""
    flat = getattr(args, 'flat', False)
    structural = getattr(args, 'structural', False)
    if flat and rhythm is None:
        raise ConfigurationError("--flat needs sentence statistics (-s)")
    if structural and rhythm is None:
        raise ConfigurationError("--structural needs sentence statistics (-s)")
    if cfg.unique and not stats.vocabulary:
        raise ConfigurationError(
            "Uniqueness filtering needs the source vocabulary (re-run analyze with -u)"
        )

    stats.prune(cfg.prune_min_tokens)
    model = validate_word_model(compile_model(stats, use_vocabulary=cfg.unique))
    ctx = GenerationContext(model, cfg, seed=args.seed)

    if sentences:
        if rhythm is None:
            raise ConfigurationError("Sentence generation needs sentence statistics (-s)")
        validate_rhythm(rhythm, flat=flat, structural=structural)
        lines, run = generate_sentences(ctx, compile_rhythm(rhythm), cfg.count,
                                        flat=flat, structural=structural)
        run.rejected_templates = rhythm.rejected_templates
    else:
        lines, run = generate_words(ctx, cfg.count)

    out.lines(lines, args.output, wrap=cfg.wrap_width if flat else 0)
    out.render(render_generation(run, cfg.unique, run.rejected_templates), stderr=True)
    return 0


# =============================================================================
# Commands
# =============================================================================

def cmd_analyze(args, out: Output):
    """Analyze corpus files and save the word (and sentence) statistics."""
    result = analyze_files(args.files, AnalysisConfig(), CorpusConfig())
    if not result.stats.words_recorded:
        raise ModelValidationError(["No usable words found in input"])

    save_word_stats(result.stats, resolve_path(args.words), include_vocabulary=args.unique)
    out.success(
        f"{result.stats.words_recorded} words analysed "
        f"({result.words_rejected} rejected) -> {args.words}"
    )
    if args.sentences:
        save_rhythm(result.rhythm, resolve_path(args.sentences))
        out.success(f"{len(result.templates)} sentence templates -> {args.sentences}")
        if result.rhythm.rejected_templates:
            out.print(f"  ({result.rhythm.rejected_templates} malformed templates skipped)",
                      file=sys.stderr)
    return 0


def cmd_generate(args, out: Output):
    """Generate words or sentences from saved statistics."""
    cfg = generation_config(args)
    stats = load_word_stats(resolve_path(args.words))
    rhythm = load_rhythm(resolve_path(args.sentences)) if args.sentences else None
    return run_generation(stats, rhythm, cfg, args, out, sentences=rhythm is not None)


def cmd_quick(args, out: Output):
    """Analyze and generate in one run without saving anything."""
    args.count = args.sentences if args.sentences is not None else args.words
    cfg = generation_config(args)
    result = analyze_files(args.files, AnalysisConfig(), CorpusConfig())
    sentences = args.sentences is not None
    return run_generation(result.stats, result.rhythm if sentences else None, cfg, args, out,
                          sentences=sentences)


def cmd_names(args, out: Output):
    """Learn name structure from a list of names and generate new ones."""
    cfg = generation_config(args)
    model = NameModel.train(read_raw(args.file, CorpusConfig()), AnalysisConfig())
    logger.debug(f"Trained on {model.names_seen} names")
    names = generate_names(compile_names(model), cfg.count, cfg, seed=args.seed)
    out.lines(names, args.output)
    return 0


def cmd_stats(args, out: Output):
    """Show reports for saved statistics."""
    out.render(render_word_stats(load_word_stats(resolve_path(args.words))))
    if args.sentences:
        out.render(render_rhythm(load_rhythm(resolve_path(args.sentences))))
    return 0


# =============================================================================
# Main
# =============================================================================

def _add_style_options(p):
    style = p.add_mutually_exclusive_group()
    style.add_argument('--flat', action='store_true',
                       help='Clause-by-clause sentences instead of templates')
    style.add_argument('--structural', action='store_true',
                       help='Grow new sentence structures from the learned chains')


def _add_generation_options(p, count_flag: bool = True):
    if count_flag:
        p.add_argument('-c', '--count', type=int, help='Number of items (default: from app.yaml)')
    p.add_argument('-n', '--ngram', type=int, choices=NGRAM_MODES,
                   help='N-gram depth: 1 unigram, 2 bigram, 3 trigram (default: 3)')
    p.add_argument('-u', '--unique', action='store_true',
                   help='Reject words that exist in the source text')
    p.add_argument('-m', '--mark', action='store_true',
                   help='Mark words that needed a weaker n-gram tier')
    p.add_argument('-p', '--prune', type=int, metavar='N',
                   help='Drop word lengths of N tokens or fewer')
    p.add_argument('--strict', action='store_true',
                   help='Fail instead of synthesizing missing tokens')
    p.add_argument('--seed', type=int, help='Random seed for reproducible output')
    p.add_argument('-o', '--output', help='Write output to a file instead of stdout')


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog='pseudotext',
        description='PseudoText - Structural Pseudo-word & Sentence Generator',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s analyze corpus.txt -w words.json -s sentences.json -u
  %(prog)s generate -w words.json -c 20 -u
  %(prog)s generate -w words.json -s sentences.json -c 5 -m
  %(prog)s generate -w words.json -s sentences.json -c 10 --flat
  %(prog)s generate -w words.json -s sentences.json -c 10 --structural
  %(prog)s quick corpus.txt --sentences 5 --seed 7
  %(prog)s names names.txt -c 10
  %(prog)s stats -w words.json -s sentences.json
"""
    )

    parser.add_argument('--version', '-V', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('--quiet', '-q', action='store_true', help='Suppress non-essential output')
    parser.add_argument('--verbose', '-v', action='store_true', help='Show debug logging')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # --- analyze ---
    p = subparsers.add_parser('analyze', aliases=['a'], help='Analyze corpus files')
    p.add_argument('files', nargs='+', help='Corpus text files')
    p.add_argument('-w', '--words', required=True, help='Word statistics output (JSON)')
    p.add_argument('-s', '--sentences', help='Sentence statistics output (JSON)')
    p.add_argument('-u', '--unique', action='store_true',
                   help='Store the vocabulary for uniqueness filtering')

    # --- generate ---
    p = subparsers.add_parser('generate', aliases=['gen', 'g'], help='Generate from statistics')
    p.add_argument('-w', '--words', required=True, help='Word statistics (JSON)')
    p.add_argument('-s', '--sentences', help='Sentence statistics (JSON); enables sentence mode')
    _add_style_options(p)
    _add_generation_options(p)

    # --- quick ---
    p = subparsers.add_parser('quick', aliases=['q'], help='Analyze and generate in one step')
    p.add_argument('files', nargs='+', help='Corpus text files')
    group = p.add_mutually_exclusive_group(required=True)
    group.add_argument('--sentences', type=int, metavar='N', help='Generate N sentences')
    group.add_argument('--words', type=int, metavar='N', help='Generate N words')
    _add_style_options(p)
    _add_generation_options(p, count_flag=False)

    # --- names ---
    p = subparsers.add_parser('names', help='Generate pseudo-names from a list of names')
    p.add_argument('file', help='Names, one per line')
    p.add_argument('-c', '--count', type=int, help='Number of names (default: from app.yaml)')
    p.add_argument('-u', '--unique', action='store_true', help='Reject names from the input')
    p.add_argument('--seed', type=int, help='Random seed for reproducible output')
    p.add_argument('-o', '--output', help='Write output to a file instead of stdout')

    # --- stats ---
    p = subparsers.add_parser('stats', aliases=['s'], help='Show statistics reports')
    p.add_argument('-w', '--words', required=True, help='Word statistics (JSON)')
    p.add_argument('-s', '--sentences', help='Sentence statistics (JSON)')

    # Parse
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    # Handle aliases
    cmd_map = {
        'a': 'analyze',
        'gen': 'generate', 'g': 'generate',
        'q': 'quick',
        's': 'stats',
    }
    command = cmd_map.get(args.command, args.command)

    setup_logging(args.verbose, args.quiet)
    out = Output(quiet=args.quiet)

    # Dispatch
    commands = {
        'analyze': cmd_analyze,
        'generate': cmd_generate,
        'quick': cmd_quick,
        'names': cmd_names,
        'stats': cmd_stats,
    }

    handler = commands.get(command)
    if handler:
        try:
            return handler(args, out)
        except KeyboardInterrupt:
            out.print("\nCancelled.", file=sys.stderr)
            return 130
        except PseudoTextError as e:
            out.error(str(e))
            return e.exit_code
        except Exception as e:
            out.error(str(e))
            if args.verbose:
                import traceback
                traceback.print_exc()
            return 1

    parser.print_help()
    return 0


if __name__ == '__main__':
    sys.exit(main())

#!/usr/bin/env python3
"""
Console Reports
===============
Rich tables summarizing learned models and generation runs.

Usage:
    from rich.console import Console
    from pseudotext.report import render_word_stats

    Console().print(render_word_stats(stats))
"""

from collections import Counter, defaultdict
from statistics import mean, median
from typing import List, Optional

from rich import box
from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from pseudotext.generator import GenerationStats
from pseudotext.model import StatModel
from pseudotext.rhythm import START, RhythmModel
from pseudotext.structure import CONSONANT, VOWEL


def _pct(part: int, total: int) -> str:
    return f"{(part / total) * 100:.1f}%" if total else "-"


def render_word_stats(stats: StatModel) -> Panel:
    """Word shape distribution by effective length and start type."""
    buckets = defaultdict(Counter)
    for shape, n in stats.shapes.items():
        buckets[stats.effective_length(shape.length)][shape.start_type] += n
    total = sum(stats.shapes.values())

    table = Table(box=box.SIMPLE, show_header=True, header_style="bold")
    table.add_column("Length", justify="right")
    table.add_column("C-start", justify="right")
    table.add_column("V-start", justify="right")
    table.add_column("Share", justify="right")
    for eff in sorted(buckets):
        c = buckets[eff][CONSONANT]
        v = buckets[eff][VOWEL]
        label = f"{eff}+" if eff == stats.max_effective_length else str(eff)
        table.add_row(label, str(c), str(v), _pct(c + v, total))

    summary = Text.assemble(
        ("Words: ", "dim"), (str(stats.words_recorded), "bold"),
        ("   Shapes: ", "dim"), (str(len(stats.shapes)), "bold"),
        ("   Vocabulary: ", "dim"), (str(len(stats.vocabulary)), "bold"),
    )
    return Panel(Group(summary, table), title="[bold]Word structure[/bold]",
                 border_style="cyan", box=box.ROUNDED)


def render_rhythm(rhythm: RhythmModel) -> Panel:
    """Sentence lengths, clause lengths, transitions and nesting."""
    parts: List = []

    lengths = rhythm.sentence_lengths
    if lengths:
        parts.append(Text.assemble(
            ("Templates: ", "dim"), (str(len(rhythm.templates)), "bold"),
            ("   Rejected: ", "dim"), (str(rhythm.rejected_templates), "bold"),
            ("   Words/sentence: ", "dim"),
            (f"mean {mean(lengths):.1f}, median {median(lengths):g}, max {max(lengths)}", "bold"),
            ("   Structure contexts: ", "dim"), (str(rhythm.structure.contexts), "bold"),
        ))

    clauses = Table(title="Clause lengths", box=box.SIMPLE, header_style="bold")
    clauses.add_column("After")
    clauses.add_column("Clauses", justify="right")
    clauses.add_column("Mean", justify="right")
    for state in sorted(rhythm.clause_lengths, key=lambda s: (s != START, s)):
        values = rhythm.clause_lengths[state]
        clauses.add_row(state, str(len(values)), f"{mean(values):.1f}")
    parts.append(clauses)

    transitions = Table(title="Transitions", box=box.SIMPLE, header_style="bold")
    transitions.add_column("State")
    transitions.add_column("Clause", justify="right")
    transitions.add_column("Next mark")
    transitions.add_column("n", justify="right")
    keys = sorted(rhythm.transitions, key=lambda k: (k[0] != START, k[0], k[1] is not None, k[1] or ''))
    for state, bucket in keys:
        counts = rhythm.transitions[(state, bucket)]
        total = sum(counts.values())
        probs = ", ".join(f"{mark!r} {_pct(n, total)}" for mark, n in counts.most_common())
        transitions.add_row(state, bucket or "any", probs, str(total))
    parts.append(transitions)

    if rhythm.nesting:
        nesting = Table(title="Nesting", box=box.SIMPLE, header_style="bold")
        nesting.add_column("Parent")
        nesting.add_column("Children")
        for parent in sorted(rhythm.nesting):
            counts = rhythm.nesting[parent]
            nesting.add_row(parent, ", ".join(f"{child} x{n}" for child, n in counts.most_common()))
        parts.append(nesting)

    return Panel(Group(*parts), title="[bold]Sentence rhythm[/bold]",
                 border_style="yellow", box=box.ROUNDED)


def render_generation(stats: GenerationStats, unique: bool = False,
                      rejected_templates: Optional[int] = None) -> Table:
    """Summary of a generation run."""
    table = Table(box=None, show_header=False, padding=(0, 1))
    table.add_column("Metric", style="dim")
    table.add_column("Value", justify="right", style="bold")
    if stats.sentences:
        table.add_row("Sentences", str(stats.sentences))
    table.add_row("Words", str(stats.words))
    if unique:
        table.add_row("Filtered duplicates", str(stats.filtered))
        table.add_row("Weaker n-gram tier", str(stats.downgraded))
        forced_style = "bold yellow" if stats.forced else "bold"
        table.add_row("Forced real words", Text(str(stats.forced), style=forced_style))
    if stats.fallback_tokens:
        table.add_row("Default tokens", Text(str(stats.fallback_tokens), style="bold yellow"))
    if rejected_templates:
        table.add_row("Rejected templates", str(rejected_templates))
    return table

#!/usr/bin/env python3
"""
Run Configuration
=================
Typed configuration objects for analysis and generation.

Fields left as ``None`` are filled from ``configs/app.yaml`` in
``__post_init__``; explicit values (usually from CLI flags) win.

Usage:
    from pseudotext.config import GenerationConfig

    cfg = GenerationConfig(ngram_mode=2, unique=True)
    cfg.validate()
"""

from dataclasses import dataclass
from typing import Optional

from pseudotext.errors import ConfigurationError
from pseudotext.settings import get_setting


def _require(cfg: dict, key: str, section: str):
    value = cfg.get(key)
    if value is None:
        raise ConfigurationError(f"{section}.{key} must be set in app.yaml")
    return value


# =============================================================================
# Analysis
# =============================================================================

@dataclass
class AnalysisConfig:
    """Settings for turning a corpus into statistics."""
    max_effective_length: Optional[int] = None
    max_consonant_run: Optional[int] = None
    max_word_length: Optional[int] = None
    require_vowel: Optional[bool] = None
    vowels: Optional[str] = None

    def __post_init__(self):
        cfg = get_setting("analysis", {}) or {}
        if self.max_effective_length is None:
            self.max_effective_length = _require(cfg, "max_effective_length", "analysis")
        if self.max_consonant_run is None:
            self.max_consonant_run = _require(cfg, "max_consonant_run", "analysis")
        if self.max_word_length is None:
            self.max_word_length = _require(cfg, "max_word_length", "analysis")
        if self.require_vowel is None:
            self.require_vowel = bool(cfg.get("require_vowel", True))
        if self.vowels is None:
            self.vowels = _require(cfg, "vowels", "analysis")

        if self.max_effective_length < 1:
            raise ConfigurationError("analysis.max_effective_length must be positive")

    @property
    def vowel_set(self) -> frozenset:
        return frozenset(self.vowels)


@dataclass
class CorpusConfig:
    """Encoding policy for reading source text."""
    encoding: Optional[str] = None
    fallback_encoding: Optional[str] = None

    def __post_init__(self):
        cfg = get_setting("corpus", {}) or {}
        if self.encoding is None:
            self.encoding = _require(cfg, "encoding", "corpus")
        if self.fallback_encoding is None:
            self.fallback_encoding = _require(cfg, "fallback_encoding", "corpus")


# =============================================================================
# Generation
# =============================================================================

@dataclass
class GenerationConfig:
    """Settings for sampling words and sentences."""
    ngram_mode: Optional[int] = None
    chaos_factor: Optional[float] = None
    unique: Optional[bool] = None
    mark_fallbacks: Optional[bool] = None
    strict: Optional[bool] = None
    prune_min_tokens: Optional[int] = None
    count: Optional[int] = None
    wrap_width: Optional[int] = None
    max_depth: Optional[int] = None

    # Uniqueness retry thresholds
    bigram_after: Optional[int] = None
    unigram_after: Optional[int] = None
    max_retries: Optional[int] = None

    def __post_init__(self):
        cfg = get_setting("generation", {}) or {}
        retries = cfg.get("unique_retries", {}) or {}
        if self.ngram_mode is None:
            self.ngram_mode = _require(cfg, "ngram_mode", "generation")
        if self.chaos_factor is None:
            self.chaos_factor = float(_require(cfg, "chaos_factor", "generation"))
        if self.unique is None:
            self.unique = bool(cfg.get("unique", False))
        if self.mark_fallbacks is None:
            self.mark_fallbacks = bool(cfg.get("mark_fallbacks", False))
        if self.strict is None:
            self.strict = bool(cfg.get("strict", False))
        if self.prune_min_tokens is None:
            self.prune_min_tokens = int(cfg.get("prune_min_tokens", 0))
        if self.count is None:
            self.count = _require(cfg, "count", "generation")
        if self.wrap_width is None:
            self.wrap_width = int(cfg.get("wrap_width", 0))
        if self.max_depth is None:
            self.max_depth = _require(cfg, "max_depth", "generation")
        if self.bigram_after is None:
            self.bigram_after = _require(retries, "bigram_after", "generation.unique_retries")
        if self.unigram_after is None:
            self.unigram_after = _require(retries, "unigram_after", "generation.unique_retries")
        if self.max_retries is None:
            self.max_retries = _require(retries, "max_retries", "generation.unique_retries")

    def validate(self):
        """Raise ConfigurationError for out-of-range values."""
        if self.ngram_mode not in (1, 2, 3):
            raise ConfigurationError(f"ngram_mode must be 1, 2 or 3 (got {self.ngram_mode})")
        if self.count is None or self.count <= 0:
            raise ConfigurationError(f"count must be positive (got {self.count})")
        if not 0.0 <= self.chaos_factor <= 1.0:
            raise ConfigurationError(f"chaos_factor must be within [0, 1] (got {self.chaos_factor})")
        if self.prune_min_tokens < 0:
            raise ConfigurationError("prune_min_tokens cannot be negative")
        if not 0 < self.bigram_after <= self.unigram_after <= self.max_retries:
            raise ConfigurationError(
                "unique_retries must satisfy 0 < bigram_after <= unigram_after <= max_retries"
            )
        return self

    def mode_for_attempt(self, retries: int) -> int:
        """N-gram depth to use after ``retries`` rejected candidates."""
        mode = self.ngram_mode
        if retries >= self.bigram_after:
            mode = min(mode, 2)
        if retries >= self.unigram_after:
            mode = 1
        return mode


def segment_bucket(length: int) -> str:
    """Name of the clause-length bucket a clause of ``length`` words falls in."""
    buckets = get_setting("rhythm.segment_buckets", [])
    for upper, label in buckets:
        if length <= upper:
            return label
    return get_setting("rhythm.overflow_bucket", "9+")

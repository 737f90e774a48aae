#!/usr/bin/env python3
"""
Model Persistence
=================
JSON files for the two learned records:

- word statistics (StatModel.to_dict), optionally with the vocabulary
- sentence rhythm (RhythmModel.to_dict): templates, transitions, nesting
  and the structure chains

Malformed templates in a sentence file are dropped on load and counted in
``RhythmModel.rejected_templates``.
"""

import json
import logging
from pathlib import Path
from typing import Union

from pseudotext.errors import ConfigurationError, ModelValidationError
from pseudotext.model import FORMAT_VERSION, StatModel
from pseudotext.rhythm import RhythmModel

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _write_json(data: dict, filepath: PathLike):
    path = Path(filepath)
    if path.parent and not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")


def _read_json(filepath: PathLike) -> dict:
    path = Path(filepath)
    if not path.is_file():
        raise ConfigurationError(f"Model file not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ModelValidationError([f"{path} is not valid JSON: {e}"]) from e
    if not isinstance(data, dict):
        raise ModelValidationError([f"{path} does not contain a model record"])
    version = data.get('format')
    if version != FORMAT_VERSION:
        raise ModelValidationError([f"{path} has unsupported format {version!r}"])
    return data


def save_word_stats(stats: StatModel, filepath: PathLike, include_vocabulary: bool = False):
    """Save word statistics; the vocabulary is only written when asked for."""
    _write_json(stats.to_dict(include_vocabulary=include_vocabulary), filepath)
    logger.info(f"Word stats -> {filepath}")


def load_word_stats(filepath: PathLike) -> StatModel:
    data = _read_json(filepath)
    try:
        return StatModel.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        raise ModelValidationError([f"{filepath}: malformed word record ({e})"]) from e


def save_rhythm(rhythm: RhythmModel, filepath: PathLike):
    _write_json(rhythm.to_dict(), filepath)
    logger.info(f"Sentence stats -> {filepath}")


def load_rhythm(filepath: PathLike) -> RhythmModel:
    data = _read_json(filepath)
    try:
        return RhythmModel.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        raise ModelValidationError([f"{filepath}: malformed sentence record ({e})"]) from e

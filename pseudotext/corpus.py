"""
Corpus Reading
==============
Source-text provider: decoding with a fallback encoding, byte-order-mark
removal and newline/whitespace normalization.

Paragraph breaks end a sentence. A paragraph that stops without terminal
punctuation (headings, verse lines) gets an explicit " . " so its words do
not run into the next paragraph's first sentence.
"""

import logging
import re
from pathlib import Path
from typing import List, Optional, Union

from pseudotext.config import CorpusConfig
from pseudotext.errors import ConfigurationError

logger = logging.getLogger(__name__)

_PARAGRAPH_BREAK = re.compile(r"\n[ \t]*\n+")
_ENDS_SENTENCE = re.compile(r"[.!?…][\"'”’)\]}]*$")
_WHITESPACE = re.compile(r"\s+")
_SMART_DOUBLE = re.compile(r"[„‟]")


def normalize_text(raw: str) -> str:
    """Strip BOM, normalize newlines and collapse whitespace to single spaces."""
    text = raw.replace("\r\n", "\n").replace("\r", "\n")
    text = text.replace("\ufeff", "")
    text = _SMART_DOUBLE.sub('"', text)

    paragraphs = []
    for para in _PARAGRAPH_BREAK.split(text):
        para = _WHITESPACE.sub(" ", para).strip()
        if not para:
            continue
        if not _ENDS_SENTENCE.search(para):
            para += " ."
        paragraphs.append(para)
    return " ".join(paragraphs)


def decode_bytes(data: bytes, config: Optional[CorpusConfig] = None) -> str:
    """Decode with the primary encoding, falling back to the legacy one."""
    config = config or CorpusConfig()
    try:
        return data.decode(config.encoding)
    except UnicodeDecodeError:
        logger.warning(
            f"Input is not valid {config.encoding}, falling back to {config.fallback_encoding}"
        )
        return data.decode(config.fallback_encoding, errors="replace")


def read_raw(path: Union[str, Path], config: Optional[CorpusConfig] = None) -> str:
    """Decode a file keeping its line structure (BOM removed, newlines unified)."""
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"Input file not found: {path}")
    text = decode_bytes(path.read_bytes(), config)
    return text.replace("\r\n", "\n").replace("\r", "\n").replace("\ufeff", "")


def read_corpus(path: Union[str, Path], config: Optional[CorpusConfig] = None) -> str:
    """Read and normalize one corpus file."""
    text = normalize_text(read_raw(path, config))
    logger.debug(f"Read {len(text)} characters from {path}")
    return text


def read_corpora(paths: List[Union[str, Path]], config: Optional[CorpusConfig] = None) -> List[str]:
    """Read several corpus files, checking they all exist first."""
    missing = [str(p) for p in paths if not Path(p).is_file()]
    if missing:
        raise ConfigurationError(f"Input file(s) not found: {', '.join(missing)}")
    return [read_corpus(p, config) for p in paths]

"""Decode raw page bytes into text, correcting misdetected Cyrillic encodings."""

import codecs
import logging
import re
from typing import Iterator, Optional

from charset_normalizer import from_bytes

from harvester.ingest.errors import EncodingFailure

logger = logging.getLogger(__name__)

# Legacy single-byte Cyrillic encoding used when the sniffed charset is wrong
FALLBACK_ENCODING = "cp1251"

REPLACEMENT_CHAR = "\ufffd"

# How far into the document a <meta> charset declaration is searched for
META_SNIFF_BYTES = 4096

_HEADER_CHARSET_RE = re.compile(r"charset\s*=\s*[\"']?([\w.:-]+)", re.IGNORECASE)
_META_CHARSET_RE = re.compile(
    rb"<meta[^>]+charset\s*=\s*[\"']?\s*([\w.:-]+)", re.IGNORECASE
)

_BOMS = (
    (codecs.BOM_UTF8, "utf-8-sig"),
    (codecs.BOM_UTF32_LE, "utf-32"),
    (codecs.BOM_UTF32_BE, "utf-32"),
    (codecs.BOM_UTF16_LE, "utf-16"),
    (codecs.BOM_UTF16_BE, "utf-16"),
)


def _known(encoding: Optional[str]) -> Optional[str]:
    if not encoding:
        return None
    try:
        return codecs.lookup(encoding).name
    except LookupError:
        logger.debug(f"Ignoring unknown charset {encoding!r}")
        return None


def _candidates(raw: bytes, content_type: Optional[str]) -> Iterator[str]:
    """Yield charset guesses in priority order."""
    for bom, name in _BOMS:
        if raw.startswith(bom):
            yield name
            return

    if content_type:
        match = _HEADER_CHARSET_RE.search(content_type)
        if match:
            yield match.group(1)

    match = _META_CHARSET_RE.search(raw[:META_SNIFF_BYTES])
    if match:
        yield match.group(1).decode("ascii", errors="ignore")

    best = from_bytes(raw).best()
    if best is not None:
        yield best.encoding


def sniff_encoding(raw: bytes, content_type: Optional[str] = None) -> str:
    """Return the first recognised charset for the given bytes, else utf-8."""
    for guess in _candidates(raw, content_type):
        name = _known(guess)
        if name:
            return name
    return "utf-8"


def normalize(raw: bytes, content_type: Optional[str] = None, url: str = "") -> str:
    """
    Decode page bytes to text.

    The sniffed charset is tried first. When decoding with it fails or
    produces replacement characters, the guess is treated as wrong and the
    bytes are decoded as windows-1251 instead. Pages in encodings outside
    that pair may still come out partially corrupted.

    Args:
        raw: Response body
        content_type: Optional Content-Type header value
        url: Source URL, for error context only

    Returns:
        Decoded text

    Raises:
        EncodingFailure: If neither the sniffed nor the fallback charset decodes
    """
    if not raw:
        return ""

    encoding = sniff_encoding(raw, content_type)
    try:
        text = raw.decode(encoding)
    except UnicodeDecodeError:
        text = None

    if text is not None and REPLACEMENT_CHAR not in text:
        return text

    logger.debug(f"Charset {encoding} looks wrong for {url or 'page'}, using {FALLBACK_ENCODING}")
    try:
        return raw.decode(FALLBACK_ENCODING)
    except UnicodeDecodeError as e:
        raise EncodingFailure(url, f"undecodable as {encoding} or {FALLBACK_ENCODING}: {e}") from e

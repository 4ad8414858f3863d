"""Filename sanitising and Content-Disposition headers for downloads."""

import re
import unicodedata
from urllib.parse import quote

DEFAULT_NAME = "document.pdf"
FALLBACK_NAME = "download.pdf"

_WHITESPACE = re.compile(r"\s+")


def sanitize_original_name(name: str | None) -> str:
    """Reduce a client-supplied name to a bare filename.

    Both separators are stripped regardless of platform, so
    ``C:\\scans\\a.pdf`` and ``../a.pdf`` both become ``a.pdf``.
    """
    if not name:
        return DEFAULT_NAME
    base = name.replace("\\", "/").rsplit("/", 1)[-1]
    base = base.replace("\x00", "").strip()
    if base in ("", ".", ".."):
        return DEFAULT_NAME
    return base


def ascii_fallback(name: str) -> str:
    """ASCII-only, quote-free version of ``name`` for the plain ``filename=``.

    Diacritics are decomposed and dropped (``Étude`` -> ``Etude``); anything
    else outside printable ASCII is removed.
    """
    decomposed = unicodedata.normalize("NFKD", name)
    chars = []
    for ch in decomposed:
        if unicodedata.combining(ch):
            continue
        if ch in ('"', "\\"):
            continue
        if " " <= ch <= "~":
            chars.append(ch)
        elif ch.isspace():
            chars.append(" ")
    cleaned = _WHITESPACE.sub(" ", "".join(chars)).strip()
    stem = cleaned.rsplit(".", 1)[0]
    if not stem.strip(" ._-"):
        return FALLBACK_NAME
    return cleaned


def content_disposition(name: str) -> str:
    """``attachment`` header carrying both the ASCII and RFC 5987 forms."""
    return (
        f'attachment; filename="{ascii_fallback(name)}"; '
        f"filename*=UTF-8''{quote(name, safe='')}"
    )

# core/render.py
'''
Copyright 2025 Aaron Vose (avose@aaronvose.net)
Licensed under the LGPL v2.1; see the file 'LICENSE' for details.
'''

from __future__ import annotations

import html
import re
from typing import Union

import markdown2

from vaultnote.core.errors import InvalidEncoding

__all__ = ["render", "MARKDOWN_EXTRAS"]

MARKDOWN_EXTRAS = ["fenced-code-blocks", "tables", "strike", "cuddled-lists"]
SAFE_SCHEMES = ("http", "https", "ftp", "mailto", "tel")

# href/src of the tags markdown2 emits; raw HTML from the input is already escaped.
_URL_ATTR_RE = re.compile(r'(<(?:a|img)\b[^>]*?\s(?:href|src)=")([^"]*)(")')
_SCHEME_RE = re.compile(r"^([a-z][a-z0-9+.\-]*):")


class _NoteMarkdown(markdown2.Markdown):
    """
    markdown2 converter with raw HTML escaped.

    Email autolinks are written as plain `mailto:` links; stock markdown2
    obfuscates them with randomly chosen entities, so the same input would
    render differently on every call.
    """

    def __init__(self):
        super().__init__(safe_mode="escape", extras=MARKDOWN_EXTRAS)

    def _encode_email_address(self, addr):
        addr = html.escape(addr, quote=True)
        return f'<a href="mailto:{addr}">{addr}</a>'


def _as_text(text: Union[str, bytes]) -> str:
    if isinstance(text, (bytes, bytearray)):
        try:
            return bytes(text).decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidEncoding("Markdown input is not valid UTF-8", cause=e) from e
    if not isinstance(text, str):
        raise TypeError(f"render() expects str or bytes, got {type(text).__name__}")
    try:
        # Lone surrogates survive in str but cannot be displayed or stored.
        text.encode("utf-8")
    except UnicodeEncodeError as e:
        raise InvalidEncoding("Markdown input contains invalid characters", cause=e) from e
    return text


def _is_safe_url(url: str) -> bool:
    # Browsers decode entities and drop whitespace/control chars before
    # reading the scheme, so "javascript&#58;" must be judged as "javascript:".
    decoded = html.unescape(url)
    cleaned = "".join(ch for ch in decoded if ch > " " and ch != "\x7f").lower()
    match = _SCHEME_RE.match(cleaned)
    return match is None or match.group(1) in SAFE_SCHEMES


def _neutralize_urls(markup: str) -> str:
    """Replace every link or image target with an unsafe scheme by '#'."""
    def sub(match):
        if _is_safe_url(match.group(2)):
            return match.group(0)
        return f"{match.group(1)}#{match.group(3)}"
    return _URL_ATTR_RE.sub(sub, markup)


def render(text: Union[str, bytes]) -> str:
    """
    Render markdown to sanitized HTML.

    Raw HTML in the input is escaped, never passed through, and link or image
    targets whose scheme is not http(s), ftp, mailto or tel become '#', also
    when the scheme is hidden behind character references. A fresh converter
    is used per call, so this is safe to run from any thread.

    Raises InvalidEncoding for undecodable input, and TypeError when `text`
    is neither str nor bytes (callers validate the type first; the
    dispatcher reports it as InvalidInput).
    """
    source = _as_text(text)
    return _neutralize_urls(str(_NoteMarkdown().convert(source)))

"""Percent-escaping for query strings, form bodies and signature base strings.

Only the RFC 3986 unreserved set ``A-Z a-z 0-9 - _ . ~`` passes through;
every other byte becomes ``%XX`` with uppercase hex digits. Text input is
encoded as UTF-8 first.

Escaping is not idempotent and callers rely on that: the OAuth base string
escapes the already-escaped parameter string a second time.
"""

from __future__ import annotations

from typing import Iterable
from urllib.parse import quote


def escape(value: str | bytes) -> str:
    """Percent-escape *value* for a URL or a signature base string.

    >>> escape("a b")
    'a%20b'
    >>> escape("a&b=c")
    'a%26b%3Dc'
    """
    # quote() always keeps "_.-~" and alphanumerics; safe="" drops "/".
    return quote(value, safe="")


def serialize_pairs(
    pairs: Iterable[tuple[str, str]],
    unescaped_keys: frozenset[str] = frozenset(),
) -> str:
    """Join pairs as ``key=escaped(value)`` separated by ``&``.

    Used for query strings and form bodies. Keys listed in *unescaped_keys*
    keep their value verbatim (the legacy scheme passes ``method`` through
    untouched).
    """
    parts = []
    for key, value in pairs:
        if key in unescaped_keys:
            parts.append(f"{key}={value}")
        else:
            parts.append(f"{key}={escape(value)}")
    return "&".join(parts)

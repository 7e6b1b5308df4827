"""Placeholder normalisation for SQLAlchemy ``text()``.

Callers may bind parameters positionally (``?``) or by name (``:name``).
SQLAlchemy's ``text()`` only understands named binds, so positional markers
are rewritten to ``:p0``, ``:p1`` ... and the sequence becomes a mapping.

The rewrite skips quoted regions (``'...'``, ``"..."``, backticks) and SQL
comments, so a ``?`` inside a string literal stays a literal. Colons inside
quoted regions are escaped (``\\:``) so ``text()`` does not mistake
``'10 :30'`` for a bind parameter.

MySQL also accepts backslash escapes inside literals (``'it\\'s ?'``). Pass
``backslash_escapes=True`` for MySQL so the escaped quote does not end the
literal early; other engines treat a backslash as an ordinary character.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

Params = Mapping[str, Any] | Sequence[Any] | None

_QUOTES = ("'", '"', "`")


def normalize(
    sql: str,
    params: Params = None,
    *,
    prefix: str = "p",
    escape: bool = True,
    backslash_escapes: bool = False,
) -> tuple[str, dict[str, Any]]:
    """Return ``(sql, mapping)`` ready for ``connection.execute(text(sql), mapping)``.

    Args:
        sql: SQL text using ``?`` and/or ``:name`` placeholders.
        params: Mapping for named binds, sequence for positional binds, or None.
        prefix: Name prefix for rewritten positional binds.
        escape: Escape colons inside quoted regions. Disable when the result
            is a fragment that will be normalized again as part of a larger
            statement.
        backslash_escapes: Treat ``\\`` inside a quoted region as escaping
            the next character (MySQL string literals).

    Raises:
        TypeError: If ``params`` is neither a mapping nor a non-string sequence.
    """
    rewritten = _rewrite(sql, prefix, escape, backslash_escapes)

    if params is None:
        return rewritten, {}
    if isinstance(params, Mapping):
        return rewritten, {str(k).lstrip(":"): v for k, v in params.items()}
    if isinstance(params, (str, bytes)) or not isinstance(params, Sequence):
        raise TypeError(
            f"params must be a mapping or a sequence, not {type(params).__name__}"
        )
    return rewritten, {f"{prefix}{i}": value for i, value in enumerate(params)}


def _rewrite(sql: str, prefix: str, escape: bool, backslash_escapes: bool) -> str:
    out: list[str] = []
    index = 0
    i = 0
    n = len(sql)
    quote: str | None = None

    while i < n:
        ch = sql[i]

        if quote is not None:
            if ch == "\\" and backslash_escapes:
                out.append(sql[i:i + 2])
                i += 2
                continue
            if ch == quote:
                quote = None
            elif ch == ":" and escape:
                out.append("\\")
            out.append(ch)
            i += 1
            continue

        if ch in _QUOTES:
            quote = ch
            out.append(ch)
            i += 1
            continue

        # -- line comment
        if ch == "-" and sql.startswith("--", i):
            end = sql.find("\n", i)
            end = n if end == -1 else end
            out.append(sql[i:end])
            i = end
            continue

        # /* block comment */
        if ch == "/" and sql.startswith("/*", i):
            end = sql.find("*/", i + 2)
            end = n if end == -1 else end + 2
            out.append(sql[i:end])
            i = end
            continue

        if ch == "?":
            out.append(f":{prefix}{index}")
            index += 1
        else:
            out.append(ch)
        i += 1

    return "".join(out)


__all__ = ["Params", "normalize"]

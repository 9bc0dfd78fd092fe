import fnmatch
import functools
import re
from typing import Callable, Iterable, List, Optional, Sequence, TypeVar, Union

T = TypeVar("T")

Comparator = Callable[[str, str], int]
OrderSpec = Union[Sequence[str], Comparator, None]


@functools.lru_cache(maxsize=512)
def _compile(pattern: str) -> "re.Pattern[str]":
    """Translate a path glob into a regex.

    ``*`` and ``?`` stay inside one path segment, ``**`` spans segments;
    ``**/`` and a trailing ``/**`` may also match zero segments.
    """
    out = []
    i, n = 0, len(pattern)
    while i < n:
        c = pattern[i]
        if c == "/" and pattern[i:] == "/**":
            out.append("(?:/.*)?")
            break
        if c == "*":
            if pattern.startswith("**", i):
                if pattern.startswith("**/", i):
                    out.append("(?:.*/)?")
                    i += 3
                else:
                    out.append(".*")
                    i += 2
                continue
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            end = pattern.find("]", i + 1)
            if end == -1:
                out.append(re.escape(c))
            else:
                body = pattern[i + 1 : end]
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append(f"[{body}]")
                i = end
        else:
            out.append(re.escape(c))
        i += 1
    return re.compile("".join(out) + r"\Z")


def matches(path: str, pattern: str) -> bool:
    """Glob match with base-name fallback for patterns without a ``/``."""
    normalized = path.replace("\\", "/")
    if _compile(pattern).match(normalized):
        return True
    if "/" not in pattern:
        basename = normalized.rstrip("/").rsplit("/", 1)[-1]
        return fnmatch.fnmatchcase(basename, pattern)
    return False


def matches_any(path: str, patterns: Iterable[str]) -> bool:
    return any(matches(path, pattern) for pattern in patterns)


def filter_include(
    items: Sequence[T], patterns: Optional[Sequence[str]], key: Callable[[T], str] = str
) -> List[T]:
    """Keep items matching at least one pattern; everything when no patterns."""
    if not patterns:
        return list(items)
    return [item for item in items if matches_any(key(item), patterns)]


def filter_exclude(
    items: Sequence[T], patterns: Optional[Sequence[str]], key: Callable[[T], str] = str
) -> List[T]:
    """Drop items matching any pattern."""
    if not patterns:
        return list(items)
    return [item for item in items if not matches_any(key(item), patterns)]


def apply_order(
    items: Sequence[T],
    order: OrderSpec,
    include_unmatched: bool = False,
    key: Callable[[T], str] = str,
) -> List[T]:
    """Order items by a pattern whitelist or a two-argument comparator.

    With a pattern list, each pattern claims its not-yet-claimed matches in
    input order. Unclaimed items are appended only when ``include_unmatched``
    is set; otherwise they are dropped.
    """
    if not order:
        return list(items)

    if callable(order):
        return sorted(
            items, key=functools.cmp_to_key(lambda a, b: order(key(a), key(b)))
        )

    ordered: List[T] = []
    claimed = set()
    for pattern in order:
        for idx, item in enumerate(items):
            if idx in claimed:
                continue
            if matches(key(item), pattern):
                ordered.append(item)
                claimed.add(idx)

    if include_unmatched:
        ordered.extend(item for idx, item in enumerate(items) if idx not in claimed)
    return ordered


def filter_and_order(items: Sequence[T], patterns, key: Callable[[T], str] = str) -> List[T]:
    """Run include, ignore and order patterns of a ``PatternConfiguration``."""
    if patterns is None:
        return list(items)
    selected = filter_include(items, patterns.include_patterns, key=key)
    selected = filter_exclude(selected, patterns.ignore_patterns, key=key)
    return apply_order(
        selected,
        patterns.order_patterns,
        include_unmatched=patterns.include_unmatched,
        key=key,
    )

"""
Path whitelist matching for relaygate.

A whitelist is an ordered list of glob patterns over '/'-separated paths:

    *    any run of characters inside one path segment
    ?    one character inside a path segment
    **   zero or more whole segments (a segment of its own)

A path is permitted iff at least one pattern matches it.
"""

import functools
import re
from typing import Iterable, Iterator, List, Pattern

NOT_ALLOWED = "Path not allowed: {path}"


@functools.lru_cache(maxsize=256)
def compile_pattern(pattern: str) -> Pattern[str]:
    """Convert a whitelist glob to a compiled, anchored regex (cached)."""
    segments = pattern.strip('/').split('/')
    regex_parts: List[str] = []
    last = len(segments) - 1

    for i, segment in enumerate(segments):
        if segment == '**':
            if i == last:
                # Trailing ** takes whatever remains, including nothing
                regex_parts.append('(?:[^/]+(?:/[^/]+)*)?')
            else:
                regex_parts.append('(?:[^/]+/)*')
            continue

        regex_parts.append(_segment_regex(segment))
        if i != last:
            regex_parts.append('/')

    return re.compile('^' + ''.join(regex_parts) + '$')


def _segment_regex(segment: str) -> str:
    out = []
    for char in segment:
        if char == '*':
            out.append('[^/]*')
        elif char == '?':
            out.append('[^/]')
        else:
            out.append(re.escape(char))
    return ''.join(out)


def glob_match(pattern: str, path: str) -> bool:
    """True if ``path`` matches the whitelist glob ``pattern``."""
    return compile_pattern(pattern).match(path) is not None


class PathPolicy:
    """
    Ordered whitelist of path globs.

    Example:
        policy = PathPolicy(["data/**/meta.yaml", ".relay/**"])
        policy.allows("data/2026/x/meta.yaml")   # True
        policy.allows("README.md")               # False
    """

    def __init__(self, patterns: Iterable[str]):
        self.patterns = tuple(patterns)

    def allows(self, path: str) -> bool:
        return any(glob_match(pattern, path) for pattern in self.patterns)

    def violations(self, paths: Iterable[str]) -> Iterator[str]:
        """Yield one violation line for every path outside the whitelist."""
        for path in paths:
            if not self.allows(path):
                yield NOT_ALLOWED.format(path=path)

    def __repr__(self) -> str:
        return f"PathPolicy({list(self.patterns)!r})"

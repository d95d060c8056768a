"""
Query the metadata index.

Filters are plain equality on entry fields, plus ``$text``: a
case-insensitive substring search across every string field. Pages are
zero-based.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..domain.index_entry import BRANCH_FIELD
from ..infra.file_store import FileStore

logger = logging.getLogger(__name__)

ALL_BRANCHES = 'all'
TEXT_KEY = '$text'
DEFAULT_PAGE_SIZE = 25


@dataclass
class QueryResult:
    """One page of index entries."""
    items: List[Dict[str, Any]]
    total: int
    page: int
    page_size: int
    branch: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'items': self.items,
            'total': self.total,
            'page': self.page,
            'page_size': self.page_size,
            'branch': self.branch,
        }


def matches(item: Dict[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
    """True if ``item`` satisfies every filter."""
    for key, expected in (filters or {}).items():
        if key == TEXT_KEY and isinstance(expected, str):
            needle = expected.lower()
            if not any(isinstance(v, str) and needle in v.lower() for v in item.values()):
                return False
        elif item.get(key) != expected:
            return False
    return True


def query_index(
    items: List[Dict[str, Any]],
    branch: str = 'main',
    filters: Optional[Dict[str, Any]] = None,
    page: int = 0,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> QueryResult:
    """
    Select one page of entries.

    Args:
        items: Index entries, in stored order
        branch: Branch to restrict to, or ``all``
        filters: Field equality filters; ``$text`` searches string fields
        page: Zero-based page number
        page_size: Entries per page

    Raises:
        ValueError: for a negative page or a non-positive page size
    """
    if page < 0:
        raise ValueError(f"page must be zero or greater (got {page})")
    if page_size <= 0:
        raise ValueError(f"page size must be positive (got {page_size})")

    selected = [item for item in items if isinstance(item, dict)]
    if branch != ALL_BRANCHES:
        selected = [item for item in selected if item.get(BRANCH_FIELD) == branch]
    if filters:
        selected = [item for item in selected if matches(item, filters)]

    start = page * page_size
    return QueryResult(
        items=selected[start:start + page_size],
        total=len(selected),
        page=page,
        page_size=page_size,
        branch=branch,
    )


def load_index_items(path: Path) -> List[Dict[str, Any]]:
    """Entries of the index file at ``path``; empty when missing or corrupt."""
    items = FileStore(path, default={'items': []}).read().get('items')
    if not isinstance(items, list):
        return []
    return items


def parse_filter(expression: str) -> tuple:
    """
    Parse a ``key=value`` filter expression.

    The value is read as JSON when it parses (numbers, booleans, lists),
    otherwise it is taken as a string.

    Raises:
        ValueError: if there is no ``=`` or the key is empty
    """
    key, sep, raw = expression.partition('=')
    key = key.strip()
    if not sep or not key:
        raise ValueError(f"filter must look like key=value (got {expression!r})")
    try:
        value = json.loads(raw)
    except ValueError:
        value = raw
    return key, value

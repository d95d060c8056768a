"""
Metadata document schema checks for relaygate.

Pure functions, safe to call from inside the validation sandbox. Each
field check takes a parsed document and a path label and returns either
None (valid) or a violation message naming the path.

Reference schema:
    title          non-empty string (after trimming)
    release_date   string matching YYYY-MM-DD; the calendar date itself
                   is not checked, so 2024-02-30 passes
    genre          list of strings, possibly empty

Documents are parsed by ``parse_document``: strict JSON first, then a
line-oriented ``key: value`` reader for the simple YAML subset metadata
files use.
"""

import json
import posixpath
import re
from typing import Any, Dict, Iterable, List, Optional

DATE_PATTERN = re.compile(r'\d{4}-\d{2}-\d{2}')
LINE_PATTERN = re.compile(r'^([A-Za-z0-9_]+):\s*(.*)$')
INTEGER_PATTERN = re.compile(r'^\d+$')

METADATA_FILENAMES = ('meta.yaml', 'meta.yml')


def parse_document(data) -> Optional[Dict[str, Any]]:
    """
    Parse metadata file contents into a dict.

    Args:
        data: File contents as bytes or str

    Returns:
        The parsed mapping, or None if the contents are not UTF-8 or do
        not describe a mapping
    """
    if data is None:
        return None
    if isinstance(data, (bytes, bytearray)):
        try:
            text = bytes(data).decode('utf-8')
        except UnicodeDecodeError:
            return None
    else:
        text = str(data)

    try:
        parsed = json.loads(text)
    except ValueError:
        return parse_key_values(text)

    if isinstance(parsed, dict):
        return parsed
    return None


def parse_key_values(text: str) -> Dict[str, Any]:
    """
    Read ``key: value`` lines.

    ``true``/``false`` become booleans and bare digits become integers;
    everything else stays a string. Lines that are not ``key: value``
    pairs are ignored.
    """
    doc: Dict[str, Any] = {}
    for line in text.splitlines():
        match = LINE_PATTERN.match(line)
        if not match:
            continue
        key, value = match.group(1), match.group(2)
        if value == 'true':
            doc[key] = True
        elif value == 'false':
            doc[key] = False
        elif INTEGER_PATTERN.match(value):
            doc[key] = int(value)
        else:
            doc[key] = value
    return doc


def check_title(doc: Dict[str, Any], path: str) -> Optional[str]:
    title = doc.get('title')
    if not isinstance(title, str) or not title.strip():
        return f"{path}: missing or invalid title (string)"
    return None


def check_release_date(doc: Dict[str, Any], path: str) -> Optional[str]:
    release_date = doc.get('release_date')
    if not isinstance(release_date, str) or not DATE_PATTERN.fullmatch(release_date):
        return f"{path}: invalid release_date (YYYY-MM-DD)"
    return None


def check_genre(doc: Dict[str, Any], path: str) -> Optional[str]:
    genre = doc.get('genre')
    if not isinstance(genre, list) or not all(isinstance(g, str) for g in genre):
        return f"{path}: invalid genre (array of strings)"
    return None


FIELD_CHECKS = (check_title, check_release_date, check_genre)


def check_metadata(doc: Any, path: str) -> List[str]:
    """Run every field check; returns all violations for this document."""
    if not isinstance(doc, dict):
        return [f"{path} is not valid YAML/JSON"]
    violations = []
    for check in FIELD_CHECKS:
        message = check(doc, path)
        if message:
            violations.append(message)
    return violations


def is_metadata_path(path: str, filenames: Iterable[str] = METADATA_FILENAMES) -> bool:
    """True if the final segment of ``path`` is a recognized metadata filename."""
    return posixpath.basename(path) in tuple(filenames)

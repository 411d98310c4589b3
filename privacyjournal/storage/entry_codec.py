"""
Entry <-> "frontmatter + body" file format.

    ---
    title: Morning pages
    createdAt: 2024-05-01T10:20:30.123Z
    updatedAt: 2024-05-01T10:20:30.123Z
    folderId: 3f1c2a9e-5b7d-4e21-9a0c-7d2b8e6f4a10
    ---

    <body text verbatim>

The metadata block is YAML, one key per line. Values are written plain when
they read back unchanged and as double-quoted YAML scalars otherwise. Values
are always read as strings, so timestamps are never turned into datetimes.
"""

import logging
import re
from typing import Dict, List, Optional

import yaml

from ..models import Entry, utc_now_iso
from ..utils.logging import log_event
from .exceptions import FormatError

DELIMITER = "---"
DEFAULT_TITLE = "Untitled"

_HEADING_PREFIX = re.compile(r"^#+\s*")
_STRING_KEYS = ("title", "createdAt", "updatedAt", "folderId")


def _plain_round_trips(key: str, value: str) -> bool:
    if "\n" in value or "\r" in value:
        return False
    try:
        loaded = yaml.load(f"{key}: {value}", Loader=yaml.BaseLoader)
    except yaml.YAMLError:
        return False
    return loaded == {key: value}


def _metadata_line(key: str, value: str) -> str:
    if _plain_round_trips(key, value):
        return f"{key}: {value}"
    quoted = yaml.safe_dump(
        value, default_style='"', allow_unicode=True, width=float("inf")
    ).rstrip("\n")
    return f"{key}: {quoted}"


def encode(entry: Entry) -> bytes:
    """Serialize an entry to UTF-8 file content."""
    lines = [
        DELIMITER,
        _metadata_line("title", entry.title),
        _metadata_line("createdAt", entry.created_at),
        _metadata_line("updatedAt", entry.updated_at),
    ]
    if entry.folder_id is not None:
        lines.append(_metadata_line("folderId", entry.folder_id))
    lines.extend([DELIMITER, "", entry.content])
    return "\n".join(lines).encode("utf-8")


def _parse_unquoted_lines(header_lines: List[str], entry_id: str) -> Dict[str, str]:
    # Other clients write values such as "title: Trip: Lisbon" unquoted
    metadata: Dict[str, str] = {}
    for line in header_lines:
        if not line.strip():
            continue
        key, sep, raw = line.partition(":")
        if not sep or not key.strip():
            raise FormatError(f"Metadata line without key/value: {line[:50]!r}", entry_id)
        metadata[key.strip()] = raw[1:] if raw.startswith(" ") else raw
    return metadata


def _parse_metadata(header_lines: List[str], entry_id: str) -> Dict[str, str]:
    try:
        loaded = yaml.load("\n".join(header_lines), Loader=yaml.BaseLoader)
    except yaml.YAMLError as e:
        log_event(
            "entry_metadata_not_yaml",
            {"entry_id": entry_id, "error": str(e).splitlines()[0][:200]},
            level=logging.DEBUG,
        )
        return _parse_unquoted_lines(header_lines, entry_id)

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise FormatError("Metadata block is not a key/value mapping", entry_id)

    metadata: Dict[str, str] = {}
    for key in _STRING_KEYS:
        if key not in loaded:
            continue
        if not isinstance(loaded[key], str):
            raise FormatError(f"Metadata value for {key!r} is not a string", entry_id)
        metadata[key] = loaded[key]
    return metadata


def _title_from_heading(text: str) -> Optional[str]:
    first_line = text.split("\n", 1)[0].strip()
    if first_line.startswith("#"):
        return _HEADING_PREFIX.sub("", first_line) or None
    return None


def decode(data: bytes, entry_id: str) -> Entry:
    """
    Parse file content into an entry.

    Args:
        data: Raw file bytes
        entry_id: ID to assign; it is not stored in the file

    Raises:
        FormatError: Invalid UTF-8, an unterminated metadata block, or a
            metadata block that is neither a YAML mapping nor ``key: value``
            lines
    """
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise FormatError(f"Entry is not valid UTF-8: {e}", entry_id) from e

    lines = text.split("\n")
    if lines[0] != DELIMITER:
        now = utc_now_iso()
        return Entry(
            id=entry_id,
            title=_title_from_heading(text) or entry_id,
            content=text,
            created_at=now,
            updated_at=now,
        )

    try:
        closing = lines.index(DELIMITER, 1)
    except ValueError:
        raise FormatError("Unterminated metadata block", entry_id) from None

    metadata = _parse_metadata(lines[1:closing], entry_id)

    body_lines = lines[closing + 1 :]
    if body_lines and body_lines[0] == "":
        body_lines = body_lines[1:]
    content = "\n".join(body_lines)

    now = utc_now_iso()
    return Entry(
        id=entry_id,
        title=metadata.get("title", DEFAULT_TITLE),
        content=content,
        created_at=metadata.get("createdAt", now),
        updated_at=metadata.get("updatedAt", now),
        folder_id=metadata.get("folderId"),
    )

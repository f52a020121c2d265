"""Marker parsing: `[iics:<type>](<ref>[ "<label>"])` to `Tag` values.

Capture groups of `MARKER_PATTERN`:

- `type`: keyword looked up case-insensitively in `TYPE_KEYWORDS`.
- `ref`: `<file>` or `<file>#<fragment>`; never contains `)` or `"`.
- `label`: optional quoted label, separated from `ref` by whitespace.

The fragment decides the reference kind: `L?<n>-L?<n>` is a line range (each
bound takes the `L` prefix independently), a leading `//` is an XPath, any
other non-empty text is an element id. Only the first `#` splits.
"""

from __future__ import annotations

import re
import secrets
import string
from datetime import datetime, timezone

from ..core.context import RunContext
from ..core.logging import log_event
from .model import (
    ElementIdReference,
    FileReference,
    LineRangeReference,
    Tag,
    TagReference,
    TagStatus,
    TagType,
    TaggedDocument,
    XPathReference,
)

MARKER_PATTERN = re.compile(r'\[iics:(?P<type>\w+)\]\((?P<ref>[^)"]+?)(?:\s+"(?P<label>[^"]*)")?\s*\)')
LINE_RANGE_PATTERN = re.compile(r"L?(?P<start>\d+)-L?(?P<end>\d+)")

TYPE_KEYWORDS: dict[str, TagType] = {
    "file": TagType.FILE_REFERENCE,
    "lines": TagType.LINE_REFERENCE,
    "line": TagType.LINE_REFERENCE,
    "xpath": TagType.XPATH_REFERENCE,
    "snippet": TagType.CODE_SNIPPET,
    "element": TagType.CONNECTION_REF,
    "elem": TagType.CONNECTION_REF,
    "connection": TagType.CONNECTION_REF,
    "conn": TagType.CONNECTION_REF,
    "transformation": TagType.TRANSFORMATION_REF,
    "trans": TagType.TRANSFORMATION_REF,
    "dataflow": TagType.DATA_FLOW_REF,
    "flow": TagType.DATA_FLOW_REF,
}

_ID_ALPHABET = string.digits + string.ascii_uppercase + string.ascii_lowercase
_ID_SUFFIX_LENGTH = 16


def parse_tag_type(keyword: str) -> TagType:
    return TYPE_KEYWORDS.get(keyword.lower(), TagType.CUSTOM)


def parse_reference(raw: str) -> TagReference:
    """Build the reference for `raw`; raises `ValueError` when it is malformed."""
    file_path, _, fragment = raw.strip().partition("#")
    file_path = file_path.strip()
    fragment = fragment.strip()
    if not fragment:
        return FileReference(file_path)
    line_range = LINE_RANGE_PATTERN.fullmatch(fragment)
    if line_range:
        return LineRangeReference(file_path, int(line_range.group("start")), int(line_range.group("end")))
    if fragment.startswith("//"):
        return XPathReference(file_path, fragment)
    return ElementIdReference(file_path, fragment)


def generate_tag_id(tag_type: TagType, prefix: str = "tag") -> str:
    date = datetime.now(timezone.utc).strftime("%Y%m%d")
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(_ID_SUFFIX_LENGTH))
    return f"{prefix}_{tag_type.value}_{date}_{suffix}"


def extract_tag_positions(content: str) -> dict[str, int]:
    """Map each distinct marker text to the offset of its first occurrence."""
    positions: dict[str, int] = {}
    for match in MARKER_PATTERN.finditer(content):
        positions.setdefault(match.group(0), match.start())
    return positions


class TagParser:
    def __init__(self, ctx: RunContext | None = None) -> None:
        self._ctx = ctx or RunContext.default()

    def parse(self, document_id: str, content: str) -> TaggedDocument:
        log_event(self._ctx, "debug", "parser", "parse-start", document=document_id, chars=len(content))
        document = TaggedDocument(document_id=document_id, content=content)
        for match in MARKER_PATTERN.finditer(content):
            try:
                document.add_tag(self._tag_from_match(match))
            except ValueError as exc:
                log_event(
                    self._ctx,
                    "warn",
                    "parser",
                    "skip-marker",
                    document=document_id,
                    marker=match.group(0),
                    offset=match.start(),
                    reason=str(exc),
                )
        log_event(self._ctx, "info", "parser", "parse-done", document=document_id, tags=len(document.tags))
        return document

    def _tag_from_match(self, match: re.Match[str]) -> Tag:
        tag_type = parse_tag_type(match.group("type"))
        reference = parse_reference(match.group("ref"))
        label = match.group("label")
        return Tag(
            id=generate_tag_id(tag_type),
            type=tag_type,
            reference=reference,
            label=label if label else None,
            status=TagStatus.NOT_VERIFIED,
            marker=match.group(0),
            span=match.span(),
        )

"""Documentation tags: parse markers, verify them against sources, render results."""

from .model import (
    ElementIdReference,
    FileReference,
    LineRangeReference,
    ReferenceKind,
    Tag,
    TagReference,
    TagStatus,
    TagType,
    TagVerificationResult,
    TaggedDocument,
    XPathReference,
)
from .parser import MARKER_PATTERN, TagParser, extract_tag_positions
from .renderer import STATUS_ICONS, TagRenderer
from .service import TagManagementService
from .verifier import TagVerifier

__all__ = [
    "MARKER_PATTERN",
    "STATUS_ICONS",
    "ElementIdReference",
    "FileReference",
    "LineRangeReference",
    "ReferenceKind",
    "Tag",
    "TagManagementService",
    "TagParser",
    "TagReference",
    "TagRenderer",
    "TagStatus",
    "TagType",
    "TagVerificationResult",
    "TagVerifier",
    "TaggedDocument",
    "XPathReference",
    "extract_tag_positions",
]

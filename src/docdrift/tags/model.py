"""Value types for documentation tags and their verification state."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Union


class TagType(str, Enum):
    FILE_REFERENCE = "FILE_REFERENCE"
    LINE_REFERENCE = "LINE_REFERENCE"
    XPATH_REFERENCE = "XPATH_REFERENCE"
    CODE_SNIPPET = "CODE_SNIPPET"
    CONNECTION_REF = "CONNECTION_REF"
    TRANSFORMATION_REF = "TRANSFORMATION_REF"
    DATA_FLOW_REF = "DATA_FLOW_REF"
    CUSTOM = "CUSTOM"


class TagStatus(str, Enum):
    NOT_VERIFIED = "NOT_VERIFIED"
    VALID = "VALID"
    OUTDATED = "OUTDATED"
    MISSING = "MISSING"
    ERROR = "ERROR"


class ReferenceKind(str, Enum):
    FILE = "file"
    LINE_RANGE = "line_range"
    XPATH = "xpath"
    ELEMENT_ID = "element_id"


def _require_path(file_path: str) -> str:
    value = str(file_path).strip()
    if not value:
        raise ValueError("reference file path cannot be empty")
    return value


@dataclass(frozen=True)
class FileReference:
    file_path: str
    content_hash: str | None = None

    kind = ReferenceKind.FILE

    def __post_init__(self) -> None:
        object.__setattr__(self, "file_path", _require_path(self.file_path))

    @property
    def fragment(self) -> str | None:
        return None


@dataclass(frozen=True)
class LineRangeReference:
    file_path: str
    start_line: int
    end_line: int

    kind = ReferenceKind.LINE_RANGE

    def __post_init__(self) -> None:
        object.__setattr__(self, "file_path", _require_path(self.file_path))
        if self.start_line < 1:
            raise ValueError(f"invalid line range {self.start_line}-{self.end_line}: lines are 1-indexed")
        if self.start_line > self.end_line:
            raise ValueError(f"invalid line range {self.start_line}-{self.end_line}: start is after end")

    @property
    def fragment(self) -> str:
        return f"L{self.start_line}-L{self.end_line}"


@dataclass(frozen=True)
class XPathReference:
    file_path: str
    xpath: str

    kind = ReferenceKind.XPATH

    def __post_init__(self) -> None:
        object.__setattr__(self, "file_path", _require_path(self.file_path))
        if not self.xpath.strip():
            raise ValueError("xpath expression cannot be empty")

    @property
    def fragment(self) -> str:
        return self.xpath


@dataclass(frozen=True)
class ElementIdReference:
    file_path: str
    element_id: str

    kind = ReferenceKind.ELEMENT_ID

    def __post_init__(self) -> None:
        object.__setattr__(self, "file_path", _require_path(self.file_path))
        if not self.element_id.strip():
            raise ValueError("element id cannot be empty")

    @property
    def fragment(self) -> str:
        return self.element_id


TagReference = Union[FileReference, LineRangeReference, XPathReference, ElementIdReference]


@dataclass
class Tag:
    id: str
    type: TagType
    reference: TagReference
    label: str | None = None
    status: TagStatus = TagStatus.NOT_VERIFIED
    expected_content: str | None = None
    actual_content: str | None = None
    description: str | None = None
    last_verified: datetime | None = None
    marker: str | None = None
    span: tuple[int, int] | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return self.status is TagStatus.VALID

    @property
    def needs_attention(self) -> bool:
        return self.status in {TagStatus.OUTDATED, TagStatus.MISSING, TagStatus.ERROR}

    @property
    def display_name(self) -> str:
        return self.label or self.id


@dataclass
class TagVerificationResult:
    total_tags: int = 0
    valid_tags: int = 0
    outdated_tags: int = 0
    missing_tags: int = 0
    error_tags: int = 0
    problematic_tags: list[Tag] = field(default_factory=list)

    @property
    def status_counts(self) -> dict[TagStatus, int]:
        return {
            TagStatus.VALID: self.valid_tags,
            TagStatus.OUTDATED: self.outdated_tags,
            TagStatus.MISSING: self.missing_tags,
            TagStatus.ERROR: self.error_tags,
        }

    @property
    def all_valid(self) -> bool:
        return self.total_tags > 0 and self.valid_tags == self.total_tags

    @property
    def success_rate(self) -> float:
        if self.total_tags == 0:
            return 0.0
        return self.valid_tags / self.total_tags


@dataclass
class TaggedDocument:
    document_id: str
    content: str
    tags: list[Tag] = field(default_factory=list)
    verification_result: TagVerificationResult | None = None

    def add_tag(self, tag: Tag) -> None:
        self.tags.append(tag)

    def problematic_tags(self) -> list[Tag]:
        return [tag for tag in self.tags if tag.needs_attention]

    def all_tags_valid(self) -> bool:
        return all(tag.is_valid for tag in self.tags)

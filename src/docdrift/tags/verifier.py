"""Tag verification: compare live source content with captured baselines.

The first successful check of a tag captures the observed content (or file
hash) as its baseline; later checks compare against it. A pass never raises:
`check_tag` turns any failure into an `ERROR` status on that tag and the
batch moves on.
"""

from __future__ import annotations

import dataclasses
from pathlib import Path
from typing import Callable

from lxml import etree

from ..core.clock import utc_now
from ..core.context import RunContext
from ..core.logging import log_event
from ..core.result import Err, Ok, Result
from ..hashing import FileHashCache, HashAlgorithm, file_hash
from .model import (
    ElementIdReference,
    FileReference,
    LineRangeReference,
    Tag,
    TagStatus,
    TagType,
    TagVerificationResult,
    TaggedDocument,
    XPathReference,
)
from .xml_source import evaluate_string, find_element_by_id, load_tree

_Handler = Callable[["TagVerifier", Tag, Path, "FileHashCache | None"], None]

CONTENT_HASH_KEY = "content_hash"


class TagVerifier:
    def __init__(self, ctx: RunContext | None = None) -> None:
        self._ctx = ctx or RunContext.default()
        self.algorithm = HashAlgorithm.parse(self._ctx.settings.hash_algorithm)

    def verify(self, document: TaggedDocument) -> TagVerificationResult:
        log_event(self._ctx, "info", "verifier", "verify-start", document=document.document_id, tags=len(document.tags))
        cache = FileHashCache(self.algorithm)
        result = TagVerificationResult(total_tags=len(document.tags))
        for tag in document.tags:
            self.check_tag(tag, cache)
            if tag.status is TagStatus.VALID:
                result.valid_tags += 1
                continue
            if tag.status is TagStatus.OUTDATED:
                result.outdated_tags += 1
            elif tag.status is TagStatus.MISSING:
                result.missing_tags += 1
            else:
                tag.status = TagStatus.ERROR
                result.error_tags += 1
            result.problematic_tags.append(tag)
        document.verification_result = result
        log_event(
            self._ctx,
            "info",
            "verifier",
            "verify-done",
            document=document.document_id,
            valid=result.valid_tags,
            total=result.total_tags,
        )
        return result

    def check_tag(self, tag: Tag, cache: FileHashCache | None = None) -> Result[TagStatus, str]:
        try:
            self.verify_tag(tag, cache)
        except Exception as exc:
            tag.status = TagStatus.ERROR
            tag.description = f"Verification failed: {type(exc).__name__}: {exc}"
            tag.last_verified = utc_now()
            log_event(self._ctx, "error", "verifier", "tag-error", tag=tag.id, path=tag.reference.file_path, error=repr(exc))
            return Err(tag.description)
        return Ok(tag.status)

    def verify_tag(self, tag: Tag, cache: FileHashCache | None = None) -> None:
        """Set the tag's status from the current state of its source file.

        Raises on unexpected I/O errors; `check_tag` is the non-raising form.
        """
        path = self._ctx.resolve(tag.reference.file_path)
        tag.actual_content = None
        try:
            if not path.exists():
                tag.status = TagStatus.MISSING
                tag.description = f"Referenced file not found: {tag.reference.file_path}"
                return
            handler = _HANDLERS.get(tag.type)
            if handler is None:
                _accept(tag)
                return
            handler(self, tag, path, cache)
        finally:
            tag.last_verified = utc_now()
            log_event(self._ctx, "debug", "verifier", "tag-verified", tag=tag.id, type=tag.type.value, status=tag.status.value)

    def file_hash(self, path: Path, cache: FileHashCache | None = None) -> str:
        if cache is not None:
            return cache.get(path)
        return file_hash(path, self.algorithm)

    def _verify_file(self, tag: Tag, path: Path, cache: FileHashCache | None) -> None:
        # A fragment on a file tag is ignored: the whole file is hashed.
        current = self.file_hash(path, cache)
        baseline = _baseline_hash(tag)
        if baseline is None:
            _store_baseline_hash(tag, current)
            _accept(tag)
        elif current == baseline:
            _accept(tag)
        else:
            tag.status = TagStatus.OUTDATED
            tag.description = "File content has changed since last verification"

    def _verify_lines(self, tag: Tag, path: Path, cache: FileHashCache | None) -> None:
        ref = tag.reference
        if not isinstance(ref, LineRangeReference):
            _reject(tag, f"Line reference is missing line bounds: {ref.file_path}")
            return
        selected: list[str] = []
        line_count = 0
        with path.open("r", encoding="utf-8") as handle:
            for line_count, line in enumerate(handle, start=1):
                if line_count > ref.end_line:
                    break
                if line_count >= ref.start_line:
                    selected.append(line.rstrip("\r\n"))
        if line_count < ref.end_line:
            _reject(tag, f"Lines {ref.start_line}-{ref.end_line} are out of range: {ref.file_path} has {line_count} lines")
            return
        _compare(tag, "\n".join(selected).rstrip(), f"Lines {ref.start_line}-{ref.end_line} have changed since last verification")

    def _verify_xpath(self, tag: Tag, path: Path, cache: FileHashCache | None) -> None:
        ref = tag.reference
        if not isinstance(ref, XPathReference):
            _reject(tag, f"XPath reference is missing an XPath expression: {ref.file_path}")
            return
        try:
            value = evaluate_string(load_tree(path), ref.xpath, self._ctx.settings.xml_namespaces)
        except etree.XMLSyntaxError as exc:
            _reject(tag, f"Unable to parse XML in {ref.file_path}: {exc}")
            return
        except etree.XPathError as exc:
            _reject(tag, f"Invalid XPath expression `{ref.xpath}`: {exc}")
            return
        if not value:
            tag.status = TagStatus.MISSING
            tag.description = f"XPath query returned no results: {ref.xpath}"
            return
        _compare(tag, value, "XPath query result has changed")

    def _verify_element(self, tag: Tag, path: Path, cache: FileHashCache | None) -> None:
        ref = tag.reference
        if not isinstance(ref, ElementIdReference):
            _reject(tag, f"Element reference is missing an element id: {ref.file_path}")
            return
        try:
            element = find_element_by_id(load_tree(path), ref.element_id)
        except etree.XMLSyntaxError as exc:
            _reject(tag, f"Unable to parse XML in {ref.file_path}: {exc}")
            return
        if element is None:
            tag.status = TagStatus.MISSING
            tag.description = f"Element not found: {ref.element_id}"
            return
        _accept(tag)


def _accept(tag: Tag) -> None:
    tag.status = TagStatus.VALID
    tag.description = None


def _reject(tag: Tag, description: str) -> None:
    tag.status = TagStatus.ERROR
    tag.description = description


def _baseline_hash(tag: Tag) -> str | None:
    if isinstance(tag.reference, FileReference):
        return tag.reference.content_hash
    return tag.metadata.get(CONTENT_HASH_KEY)


def _store_baseline_hash(tag: Tag, digest: str) -> None:
    if isinstance(tag.reference, FileReference):
        tag.reference = dataclasses.replace(tag.reference, content_hash=digest)
    else:
        tag.metadata[CONTENT_HASH_KEY] = digest


def _compare(tag: Tag, actual: str, drift_description: str) -> None:
    tag.actual_content = actual
    if tag.expected_content is None:
        tag.expected_content = actual
        _accept(tag)
    elif actual == tag.expected_content:
        _accept(tag)
    else:
        tag.status = TagStatus.OUTDATED
        tag.description = drift_description


_HANDLERS: dict[TagType, _Handler] = {
    TagType.FILE_REFERENCE: TagVerifier._verify_file,
    TagType.LINE_REFERENCE: TagVerifier._verify_lines,
    TagType.CODE_SNIPPET: TagVerifier._verify_lines,
    TagType.XPATH_REFERENCE: TagVerifier._verify_xpath,
    TagType.CONNECTION_REF: TagVerifier._verify_element,
    TagType.TRANSFORMATION_REF: TagVerifier._verify_element,
}

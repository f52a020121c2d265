"""Parse, verify, render and report on tagged documents."""

from __future__ import annotations

import difflib
from typing import Any

from ..contracts.ids import VERIFICATION_RESULT
from ..contracts.validate import validate
from ..core.context import RunContext
from ..core.logging import log_event
from ..core.result import Err
from .model import Tag, TagStatus, TagVerificationResult, TaggedDocument
from .parser import TagParser
from .renderer import STATUS_ICONS, TagRenderer
from .verifier import TagVerifier


class TagManagementService:
    def __init__(
        self,
        ctx: RunContext | None = None,
        parser: TagParser | None = None,
        verifier: TagVerifier | None = None,
        renderer: TagRenderer | None = None,
    ) -> None:
        self._ctx = ctx or RunContext.default()
        self.parser = parser or TagParser(self._ctx)
        self.verifier = verifier or TagVerifier(self._ctx)
        self.renderer = renderer or TagRenderer(self._ctx)

    def process_document(self, document_id: str, content: str) -> TaggedDocument:
        log_event(self._ctx, "info", "service", "process-document", document=document_id)
        document = self.parser.parse(document_id, content)
        self.verifier.verify(document)
        return document

    def verify_and_update_document(self, content: str, document_id: str = "temp") -> str:
        document = self.process_document(document_id, content)
        return self.renderer.replace_tags_with_rendered(document.content, document.tags)

    @staticmethod
    def get_outdated_tags(document: TaggedDocument) -> list[Tag]:
        return [tag for tag in document.tags if tag.status is TagStatus.OUTDATED]

    def update_tag_content(self, tag: Tag) -> None:
        outcome = self.verifier.check_tag(tag)
        if isinstance(outcome, Err):
            log_event(self._ctx, "error", "service", "update-tag-failed", tag=tag.id, error=outcome.error)

    def generate_report(self, result: TagVerificationResult) -> str:
        lines = [
            "# Tag Verification Report",
            "",
            "## Summary",
            "",
            f"- Total tags: {result.total_tags}",
            f"- {STATUS_ICONS[TagStatus.VALID]} Valid: {result.valid_tags}",
            f"- {STATUS_ICONS[TagStatus.OUTDATED]} Outdated: {result.outdated_tags}",
            f"- {STATUS_ICONS[TagStatus.MISSING]} Missing: {result.missing_tags}",
            f"- {STATUS_ICONS[TagStatus.ERROR]} Error: {result.error_tags}",
            f"- **Success Rate**: {result.success_rate * 100:.1f}%",
            "",
        ]
        if result.problematic_tags:
            lines.extend(["## Issues", ""])
            for tag in result.problematic_tags:
                lines.extend(_issue_lines(tag))
        return "\n".join(lines) + "\n"

    def result_payload(self, document: TaggedDocument) -> dict[str, Any]:
        result = document.verification_result or TagVerificationResult(total_tags=len(document.tags))
        payload: dict[str, Any] = {
            "schema_name": VERIFICATION_RESULT,
            "schema_version": 1,
            "tool": "docdrift",
            "run_id": self._ctx.run_id,
            "document_id": document.document_id,
            "status": "pass" if not result.problematic_tags else "fail",
            "summary": {
                "total": result.total_tags,
                "valid": result.valid_tags,
                "outdated": result.outdated_tags,
                "missing": result.missing_tags,
                "error": result.error_tags,
                "success_rate": round(result.success_rate, 4),
            },
            "tags": [_tag_row(tag) for tag in document.tags],
        }
        validate(VERIFICATION_RESULT, payload)
        return payload


def _issue_lines(tag: Tag) -> list[str]:
    ref = tag.reference
    target = ref.file_path if ref.fragment is None else f"{ref.file_path}#{ref.fragment}"
    lines = [
        f"### {tag.status.value}: {tag.display_name}",
        "",
        f"- **Reference**: `{target}`",
        f"- **Type**: {tag.type.value}",
        f"- **Description**: {tag.description or 'n/a'}",
        "",
    ]
    if tag.expected_content is not None and tag.actual_content is not None:
        lines.extend(["**Expected**:", "```", tag.expected_content, "```", ""])
        lines.extend(["**Actual**:", "```", tag.actual_content, "```", ""])
        diff = list(
            difflib.unified_diff(
                tag.expected_content.splitlines(),
                tag.actual_content.splitlines(),
                fromfile="expected",
                tofile="actual",
                lineterm="",
            )
        )
        if diff:
            lines.extend(["**Diff**:", "```diff", *diff, "```", ""])
    return lines


def _tag_row(tag: Tag) -> dict[str, Any]:
    return {
        "id": tag.id,
        "type": tag.type.value,
        "kind": tag.reference.kind.value,
        "file_path": tag.reference.file_path,
        "fragment": tag.reference.fragment,
        "label": tag.label,
        "status": tag.status.value,
        "description": tag.description,
        "expected_content": tag.expected_content,
        "actual_content": tag.actual_content,
        "last_verified": tag.last_verified.isoformat(timespec="seconds") if tag.last_verified else None,
    }

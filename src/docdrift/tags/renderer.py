from __future__ import annotations

from typing import Callable

from ..core.context import RunContext
from ..core.logging import log_event
from .model import LineRangeReference, Tag, TagStatus, TagType, XPathReference

STATUS_ICONS: dict[TagStatus, str] = {
    TagStatus.VALID: "✅",
    TagStatus.OUTDATED: "⚠️",
    TagStatus.MISSING: "❌",
    TagStatus.ERROR: "❌",
    TagStatus.NOT_VERIFIED: "❓",
}


class TagRenderer:
    def __init__(self, ctx: RunContext | None = None) -> None:
        self._ctx = ctx or RunContext.default()
        self._bodies: dict[TagType, Callable[[Tag], list[str]]] = {
            TagType.LINE_REFERENCE: self._snippet_body,
            TagType.CODE_SNIPPET: self._snippet_body,
            TagType.XPATH_REFERENCE: self._xpath_body,
            TagType.FILE_REFERENCE: self._file_body,
        }

    def render_tag(self, tag: Tag) -> str:
        parts: list[str] = []
        if tag.label:
            parts.append(f"**{tag.label}**\n\n")
        parts.append("<details>\n")
        parts.append(f"<summary>Referenced from: {tag.reference.file_path}</summary>\n\n")
        body = self._bodies.get(tag.type)
        if body is None:
            parts.extend(self._generic_body(tag))
        else:
            parts.extend(body(tag))
            if tag.description and tag.status is not TagStatus.VALID:
                parts.append(f"> {tag.description}\n\n")
        parts.append(status_line(tag))
        parts.append("</details>\n\n")
        return "".join(parts)

    def replace_tags_with_rendered(self, content: str, tags: list[Tag]) -> str:
        """Substitute each tag's marker with its rendered block.

        Markers are located by the span recorded at parse time; when the span
        no longer holds the marker text, the first unclaimed occurrence of
        that exact text is used instead.
        """
        claimed: list[tuple[int, int, str]] = []
        for tag in tags:
            span = self._locate(content, tag, claimed)
            if span is None:
                log_event(self._ctx, "warn", "renderer", "marker-not-found", tag=tag.id, marker=tag.marker)
                continue
            claimed.append((span[0], span[1], self.render_tag(tag)))
        out: list[str] = []
        cursor = 0
        for start, end, rendered in sorted(claimed):
            out.append(content[cursor:start])
            out.append(rendered)
            cursor = end
        out.append(content[cursor:])
        return "".join(out)

    @staticmethod
    def _locate(content: str, tag: Tag, claimed: list[tuple[int, int, str]]) -> tuple[int, int] | None:
        if not tag.marker:
            return None

        def _free(start: int, end: int) -> bool:
            return all(end <= c_start or start >= c_end for c_start, c_end, _ in claimed)

        if tag.span is not None:
            start, end = tag.span
            if content[start:end] == tag.marker and _free(start, end):
                return start, end
        start = content.find(tag.marker)
        while start != -1:
            end = start + len(tag.marker)
            if _free(start, end):
                return start, end
            start = content.find(tag.marker, start + 1)
        return None

    def _snippet_body(self, tag: Tag) -> list[str]:
        if tag.actual_content is None:
            return []
        lines = [f"```{self._ctx.settings.snippet_language}\n", tag.actual_content, "\n```\n\n"]
        ref = tag.reference
        if isinstance(ref, LineRangeReference):
            lines.append(f"*Lines {ref.start_line}-{ref.end_line}*\n\n")
        return lines

    @staticmethod
    def _xpath_body(tag: Tag) -> list[str]:
        lines: list[str] = []
        if isinstance(tag.reference, XPathReference):
            lines.append(f"**XPath**: `{tag.reference.xpath}`\n\n")
        if tag.actual_content is not None:
            lines.append(f"**Result**: `{tag.actual_content}`\n\n")
        return lines

    def _file_body(self, tag: Tag) -> list[str]:
        try:
            size = self._ctx.resolve(tag.reference.file_path).stat().st_size
        except OSError:
            return []
        return [f"**File Size**: {size} bytes\n\n"]

    @staticmethod
    def _generic_body(tag: Tag) -> list[str]:
        return [f"{tag.description}\n\n"] if tag.description else []


def status_line(tag: Tag) -> str:
    line = f"*Status: {STATUS_ICONS[tag.status]} {tag.status.value}*"
    if tag.last_verified is not None:
        line += f" (Last verified: {tag.last_verified.isoformat(timespec='seconds')})"
    return line + "\n"

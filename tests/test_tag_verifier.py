from __future__ import annotations

from pathlib import Path

import pytest

from helpers import write_lines

from docdrift.core.context import RunContext
from docdrift.core.config import Settings
from docdrift.core.result import Err, Ok
from docdrift.hashing import file_hash
from docdrift.tags.model import (
    ElementIdReference,
    FileReference,
    LineRangeReference,
    Tag,
    TagStatus,
    TagType,
    XPathReference,
)
from docdrift.tags.parser import TagParser
from docdrift.tags.verifier import CONTENT_HASH_KEY, TagVerifier


@pytest.fixture
def verifier(ctx: RunContext) -> TagVerifier:
    return TagVerifier(ctx)


def _tag(tag_type: TagType, reference: object) -> Tag:
    return Tag(id="t1", type=tag_type, reference=reference)  # type: ignore[arg-type]


def test_scenario_line_range_capture_then_drift(tmp_path: Path, ctx: RunContext, verifier: TagVerifier) -> None:
    write_lines(tmp_path / "data.xml", ["<root>", "<cfg>", "<a/>", "<b/>", "<c/>", "</cfg>", "</root>"])
    doc = TagParser(ctx).parse("doc", '[iics:lines](data.xml#L3-L5 "Config Block")')
    result = verifier.verify(doc)
    tag = doc.tags[0]
    assert tag.status is TagStatus.VALID
    assert tag.expected_content == "<a/>\n<b/>\n<c/>"
    assert result.valid_tags == 1

    write_lines(tmp_path / "data.xml", ["<root>", "<cfg>", "<a/>", "<bb/>", "<c/>", "</cfg>", "</root>"])
    result = verifier.verify(doc)
    assert tag.status is TagStatus.OUTDATED
    assert tag.actual_content == "<a/>\n<bb/>\n<c/>"
    assert tag.expected_content == "<a/>\n<b/>\n<c/>"
    assert result.problematic_tags == [tag]
    assert "Lines 3-5" in (tag.description or "")


def test_line_extraction_returns_exact_physical_lines(tmp_path: Path, verifier: TagVerifier) -> None:
    write_lines(tmp_path / "ten.txt", [f"line {n}" for n in range(1, 11)])
    tag = _tag(TagType.LINE_REFERENCE, LineRangeReference("ten.txt", 3, 5))
    verifier.verify_tag(tag)
    assert tag.actual_content == "line 3\nline 4\nline 5"


def test_line_extraction_trims_trailing_whitespace_only(tmp_path: Path, verifier: TagVerifier) -> None:
    (tmp_path / "ws.txt").write_text("  first\n  second   \n\n", encoding="utf-8")
    tag = _tag(TagType.CODE_SNIPPET, LineRangeReference("ws.txt", 1, 3))
    verifier.verify_tag(tag)
    assert tag.actual_content == "  first\n  second"
    assert tag.status is TagStatus.VALID


def test_line_range_beyond_file_length_is_error(tmp_path: Path, verifier: TagVerifier) -> None:
    write_lines(tmp_path / "short.txt", ["one", "two"])
    tag = _tag(TagType.LINE_REFERENCE, LineRangeReference("short.txt", 2, 4))
    verifier.verify_tag(tag)
    assert tag.status is TagStatus.ERROR
    assert "out of range" in (tag.description or "")
    assert tag.last_verified is not None


def test_line_type_without_bounds_is_error(tmp_path: Path, verifier: TagVerifier) -> None:
    write_lines(tmp_path / "a.txt", ["x"])
    tag = _tag(TagType.LINE_REFERENCE, FileReference("a.txt"))
    verifier.verify_tag(tag)
    assert tag.status is TagStatus.ERROR
    assert "missing line bounds" in (tag.description or "")


def test_scenario_xpath_capture_then_drift(tmp_path: Path, ctx: RunContext, verifier: TagVerifier) -> None:
    config = tmp_path / "config.xml"
    config.write_text("<config><settings><timeout>30</timeout></settings></config>", encoding="utf-8")
    doc = TagParser(ctx).parse("doc", "[iics:xpath](config.xml#//settings/timeout)")
    verifier.verify(doc)
    tag = doc.tags[0]
    assert tag.status is TagStatus.VALID
    assert tag.actual_content == "30"

    config.write_text("<config><settings><timeout>45</timeout></settings></config>", encoding="utf-8")
    verifier.verify(doc)
    assert tag.status is TagStatus.OUTDATED
    assert tag.actual_content == "45"
    assert tag.expected_content == "30"


def test_xpath_attribute_and_function_results(tmp_path: Path, verifier: TagVerifier) -> None:
    (tmp_path / "p.xml").write_text('<process name="Load"><step/><step/></process>', encoding="utf-8")
    attr = _tag(TagType.XPATH_REFERENCE, XPathReference("p.xml", "//process/@name"))
    count = _tag(TagType.XPATH_REFERENCE, XPathReference("p.xml", "count(//step)"))
    verifier.verify_tag(attr)
    verifier.verify_tag(count)
    assert attr.actual_content == "Load"
    assert count.actual_content == "2"


def test_xpath_with_configured_namespace(tmp_path: Path) -> None:
    (tmp_path / "ns.xml").write_text('<m:root xmlns:m="urn:mapping"><m:name>orders</m:name></m:root>', encoding="utf-8")
    ctx = RunContext(
        run_id="pytest-run",
        base_dir=tmp_path,
        quiet=True,
        settings=Settings(xml_namespaces={"m": "urn:mapping"}),
    )
    tag = _tag(TagType.XPATH_REFERENCE, XPathReference("ns.xml", "//m:root/m:name"))
    TagVerifier(ctx).verify_tag(tag)
    assert tag.status is TagStatus.VALID
    assert tag.actual_content == "orders"


def test_xpath_without_result_is_missing(tmp_path: Path, verifier: TagVerifier) -> None:
    (tmp_path / "c.xml").write_text("<config/>", encoding="utf-8")
    tag = _tag(TagType.XPATH_REFERENCE, XPathReference("c.xml", "//settings/timeout"))
    verifier.verify_tag(tag)
    assert tag.status is TagStatus.MISSING
    assert tag.description == "XPath query returned no results: //settings/timeout"


def test_malformed_xml_and_xpath_are_errors(tmp_path: Path, verifier: TagVerifier) -> None:
    (tmp_path / "bad.xml").write_text("<config>", encoding="utf-8")
    (tmp_path / "good.xml").write_text("<config/>", encoding="utf-8")
    bad_xml = _tag(TagType.XPATH_REFERENCE, XPathReference("bad.xml", "//config"))
    bad_expr = _tag(TagType.XPATH_REFERENCE, XPathReference("good.xml", "//config[["))
    verifier.verify_tag(bad_xml)
    verifier.verify_tag(bad_expr)
    assert bad_xml.status is TagStatus.ERROR
    assert "Unable to parse XML" in (bad_xml.description or "")
    assert bad_expr.status is TagStatus.ERROR
    assert "Invalid XPath" in (bad_expr.description or "")


def test_element_reference_found_and_missing(tmp_path: Path, verifier: TagVerifier) -> None:
    (tmp_path / "m.xml").write_text('<mapping><connection id="conn1"/><transform id="t1"/></mapping>', encoding="utf-8")
    found = _tag(TagType.CONNECTION_REF, ElementIdReference("m.xml", "conn1"))
    transform = _tag(TagType.TRANSFORMATION_REF, ElementIdReference("m.xml", "t1"))
    missing = _tag(TagType.CONNECTION_REF, ElementIdReference("m.xml", "conn2"))
    quoted = _tag(TagType.CONNECTION_REF, ElementIdReference("m.xml", "it's"))
    for tag in (found, transform, missing, quoted):
        verifier.verify_tag(tag)
    assert found.status is TagStatus.VALID
    assert transform.status is TagStatus.VALID
    assert missing.status is TagStatus.MISSING
    assert missing.description == "Element not found: conn2"
    assert quoted.status is TagStatus.MISSING


def test_scenario_file_truncation_is_outdated_not_missing(tmp_path: Path, ctx: RunContext, verifier: TagVerifier) -> None:
    report = tmp_path / "report.csv"
    report.write_text("a,b\n1,2\n", encoding="utf-8")
    doc = TagParser(ctx).parse("doc", '[iics:file](report.csv "Full Report")')
    verifier.verify(doc)
    tag = doc.tags[0]
    assert tag.status is TagStatus.VALID
    assert isinstance(tag.reference, FileReference)
    assert tag.reference.content_hash == file_hash(report)

    report.write_bytes(b"")
    verifier.verify(doc)
    assert tag.status is TagStatus.OUTDATED


def test_single_byte_mutation_is_detected_and_sticky(tmp_path: Path, verifier: TagVerifier) -> None:
    target = tmp_path / "f.bin"
    target.write_bytes(b"hello")
    tag = _tag(TagType.FILE_REFERENCE, FileReference("f.bin"))
    verifier.verify_tag(tag)
    baseline = tag.reference
    target.write_bytes(b"jello")
    verifier.verify_tag(tag)
    assert tag.status is TagStatus.OUTDATED
    verifier.verify_tag(tag)
    assert tag.status is TagStatus.OUTDATED
    assert tag.reference == baseline


def test_file_tag_with_fragment_hashes_whole_file(tmp_path: Path, ctx: RunContext, verifier: TagVerifier) -> None:
    source = tmp_path / "data.xml"
    write_lines(source, ["<root>", '<a id="c1"/>', "<b/>", "</root>"])
    doc = TagParser(ctx).parse("doc", "[iics:file](data.xml#L1-L2) [iics:file](data.xml#c1)")
    verifier.verify(doc)
    for tag in doc.tags:
        assert tag.status is TagStatus.VALID
        assert tag.description is None
        assert tag.metadata[CONTENT_HASH_KEY] == file_hash(source)

    write_lines(source, ["<root>", '<a id="c1"/>', "<b/>", "<c/>", "</root>"])
    verifier.verify(doc)
    assert [tag.status for tag in doc.tags] == [TagStatus.OUTDATED, TagStatus.OUTDATED]


def test_scenario_missing_file(ctx: RunContext, verifier: TagVerifier) -> None:
    doc = TagParser(ctx).parse("doc", "[iics:file](missing.txt)")
    result = verifier.verify(doc)
    tag = doc.tags[0]
    assert tag.status is TagStatus.MISSING
    assert tag.description == "Referenced file not found: missing.txt"
    assert tag.last_verified is not None
    assert result.problematic_tags == [tag]
    assert result.missing_tags == 1


@pytest.mark.parametrize(
    "marker",
    [
        "[iics:file](gone.xml)",
        "[iics:lines](gone.xml#L1-L2)",
        "[iics:xpath](gone.xml#//a)",
        "[iics:conn](gone.xml#c1)",
        "[iics:flow](gone.xml)",
        "[iics:note](gone.xml)",
    ],
)
def test_deleted_file_is_missing_for_every_kind(tmp_path: Path, ctx: RunContext, verifier: TagVerifier, marker: str) -> None:
    source = tmp_path / "gone.xml"
    write_lines(source, ['<r><a id="c1">x</a>', "</r>"])
    doc = TagParser(ctx).parse("doc", marker)
    verifier.verify(doc)
    assert doc.tags[0].status is TagStatus.VALID
    source.unlink()
    verifier.verify(doc)
    assert doc.tags[0].status is TagStatus.MISSING


def test_repeated_verification_is_idempotent(tmp_path: Path, ctx: RunContext, verifier: TagVerifier) -> None:
    write_lines(tmp_path / "s.xml", ["<a>", "<b>1</b>", "</a>"])
    doc = TagParser(ctx).parse("doc", "[iics:lines](s.xml#L1-L2) [iics:xpath](s.xml#//b) [iics:file](s.xml)")
    verifier.verify(doc)
    expected = [tag.expected_content for tag in doc.tags]
    result = verifier.verify(doc)
    assert all(tag.status is TagStatus.VALID for tag in doc.tags)
    assert [tag.expected_content for tag in doc.tags] == expected
    assert result.valid_tags == result.total_tags == 3


def test_untyped_categories_are_valid_when_file_exists(tmp_path: Path, verifier: TagVerifier) -> None:
    (tmp_path / "x.txt").write_text("x", encoding="utf-8")
    flow = _tag(TagType.DATA_FLOW_REF, FileReference("x.txt"))
    custom = _tag(TagType.CUSTOM, ElementIdReference("x.txt", "anything"))
    verifier.verify_tag(flow)
    verifier.verify_tag(custom)
    assert flow.status is TagStatus.VALID
    assert custom.status is TagStatus.VALID


def test_unexpected_failure_isolated_to_one_tag(tmp_path: Path, ctx: RunContext, verifier: TagVerifier) -> None:
    (tmp_path / "ok.txt").write_text("fine\n", encoding="utf-8")
    (tmp_path / "latin.txt").write_bytes(b"caf\xe9\n")
    doc = TagParser(ctx).parse("doc", "[iics:lines](latin.txt#L1-L1) [iics:file](ok.txt)")
    result = verifier.verify(doc)
    broken, fine = doc.tags
    assert broken.status is TagStatus.ERROR
    assert broken.description is not None and "UnicodeDecodeError" in broken.description
    assert broken.last_verified is not None
    assert fine.status is TagStatus.VALID
    assert result.error_tags == 1
    assert result.problematic_tags == [broken]


def test_check_tag_returns_result_values(tmp_path: Path, verifier: TagVerifier) -> None:
    (tmp_path / "dir").mkdir()
    (tmp_path / "x.txt").write_text("x", encoding="utf-8")
    ok = verifier.check_tag(_tag(TagType.FILE_REFERENCE, FileReference("x.txt")))
    err = verifier.check_tag(_tag(TagType.FILE_REFERENCE, FileReference("dir")))
    assert ok == Ok(TagStatus.VALID)
    assert isinstance(err, Err)
    assert "Verification failed" in err.error


def test_absolute_paths_bypass_base_dir(tmp_path: Path) -> None:
    target = tmp_path / "abs.txt"
    target.write_text("abs", encoding="utf-8")
    verifier = TagVerifier(RunContext(run_id="r", base_dir=tmp_path / "elsewhere", quiet=True))
    tag = _tag(TagType.FILE_REFERENCE, FileReference(str(target)))
    verifier.verify_tag(tag)
    assert tag.status is TagStatus.VALID


def test_counts_always_sum_to_total(tmp_path: Path, ctx: RunContext, verifier: TagVerifier) -> None:
    write_lines(tmp_path / "a.xml", ['<r><x id="k">1</x></r>'])
    content = " ".join(
        [
            "[iics:file](a.xml)",
            "[iics:file](nope.xml)",
            "[iics:lines](a.xml#L1-L9)",
            "[iics:xpath](a.xml#//x)",
            "[iics:xpath](a.xml#//y)",
            "[iics:conn](a.xml#k)",
            "[iics:custom](a.xml)",
        ]
    )
    doc = TagParser(ctx).parse("doc", content)
    result = verifier.verify(doc)
    assert result.total_tags == 7
    assert sum(result.status_counts.values()) == result.total_tags
    assert all(tag.status is not TagStatus.VALID for tag in result.problematic_tags)
    assert len(result.problematic_tags) == result.total_tags - result.valid_tags
    assert doc.verification_result is result


def test_stale_actual_content_cleared_when_source_disappears(tmp_path: Path, ctx: RunContext, verifier: TagVerifier) -> None:
    source = tmp_path / "data.xml"
    write_lines(source, ["<a/>", "<b/>", "<c/>"])
    doc = TagParser(ctx).parse("doc", "[iics:lines](data.xml#L1-L2) [iics:lines](data.xml#L2-L3)")
    verifier.verify(doc)
    assert [tag.actual_content for tag in doc.tags] == ["<a/>\n<b/>", "<b/>\n<c/>"]

    write_lines(source, ["<a/>", "<b/>"])
    verifier.verify(doc)
    in_range, out_of_range = doc.tags
    assert out_of_range.status is TagStatus.ERROR
    assert out_of_range.actual_content is None
    assert in_range.actual_content == "<a/>\n<b/>"

    source.unlink()
    verifier.verify(doc)
    assert all(tag.status is TagStatus.MISSING for tag in doc.tags)
    assert all(tag.actual_content is None for tag in doc.tags)
    assert all(tag.expected_content is not None for tag in doc.tags)

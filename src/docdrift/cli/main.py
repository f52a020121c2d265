from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .. import __version__
from ..core.context import RunContext
from ..core.errors import DriftError
from ..core.exit_codes import ERR_CONFIG, ERR_DRIFT, ERR_INTERNAL, ERR_USER, OK
from ..core.logging import log_event
from ..hashing import HashAlgorithm, file_hash, file_hash_base64, file_hashes, verify_file_hash
from ..tags.model import TagStatus, TagVerificationResult, TaggedDocument
from ..tags.service import TagManagementService
from .output import build_base_payload, emit, render_error, resolve_output_format

DOCUMENT_COMMANDS = ("verify", "report", "render", "outdated")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="docdrift", description="verify source references embedded in documentation")
    p.add_argument("--version", action="version", version=f"docdrift {__version__}")
    p.add_argument("--json", action="store_true", help="emit JSON output")
    p.add_argument("--format", choices=["text", "json"], default=None, help="output format")
    p.add_argument("--config", help="settings file (.toml, pyproject.toml or .yaml)")
    p.add_argument("--base-dir", help="directory that reference paths are resolved against (default: document directory)")
    p.add_argument("--run-id", help="run identifier used in logs and payloads")
    p.add_argument("--log-json", action="store_true", help="emit structured log lines as JSON")
    vg = p.add_mutually_exclusive_group()
    vg.add_argument("--verbose", action="store_true", help="enable debug diagnostics")
    vg.add_argument("--quiet", action="store_true", help="only emit warnings and errors")
    sub = p.add_subparsers(dest="cmd", required=True)

    verify_p = sub.add_parser("verify", help="verify every tag in a document")
    verify_p.add_argument("document")
    report_p = sub.add_parser("report", help="write a markdown verification report")
    report_p.add_argument("document")
    report_p.add_argument("--out", help="optional output path for the report")
    render_p = sub.add_parser("render", help="replace tag markers with rendered verification blocks")
    render_p.add_argument("document")
    render_p.add_argument("--out", help="optional output path for the rendered document")
    outdated_p = sub.add_parser("outdated", help="list tags whose source content changed")
    outdated_p.add_argument("document")

    hash_p = sub.add_parser("hash", help="print the content hash of a file")
    hash_p.add_argument("file")
    hash_p.add_argument("--algorithm", choices=[alg.value for alg in HashAlgorithm], default=None)
    hash_mode = hash_p.add_mutually_exclusive_group()
    hash_mode.add_argument("--base64", action="store_true", help="print the digest base64-encoded instead of hex")
    hash_mode.add_argument("--all", action="store_true", help="print the digest for every supported algorithm")
    hash_mode.add_argument("--verify", metavar="DIGEST", help="compare against a hex digest; exit 3 on mismatch")

    sub.add_parser("version", help="print version and effective settings")
    return p


def _read_document(path: Path) -> str:
    if not path.is_file():
        raise DriftError(f"document not found: {path}", ERR_USER, kind="missing_document")
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise DriftError(f"unable to read document {path}: {exc}", ERR_USER, kind="unreadable_document") from exc


def _write_out(path_str: str, text: str) -> Path:
    out = Path(path_str)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(text, encoding="utf-8")
    return out


def _build_context(ns: argparse.Namespace, fmt: str) -> RunContext:
    base_dir = ns.base_dir
    if base_dir is None and getattr(ns, "document", None):
        base_dir = Path(ns.document).resolve().parent
    return RunContext.from_args(
        ns.run_id,
        base_dir,
        ns.config,
        output_format="json" if fmt == "json" else "text",
        verbose=ns.verbose,
        quiet=ns.quiet,
        log_json=ns.log_json,
    )


def _verification_result(document: TaggedDocument) -> TagVerificationResult:
    if document.verification_result is None:
        raise DriftError(f"document {document.document_id} was not verified", ERR_INTERNAL, kind="internal_error")
    return document.verification_result


def _summary_text(document: TaggedDocument) -> str:
    result = _verification_result(document)
    lines = [
        f"{document.document_id}: {result.valid_tags}/{result.total_tags} valid "
        f"(outdated={result.outdated_tags} missing={result.missing_tags} error={result.error_tags})"
    ]
    for tag in result.problematic_tags:
        lines.append(f"  {tag.status.value} {tag.reference.file_path} [{tag.type.value}] {tag.description or ''}".rstrip())
    return "\n".join(lines)


def _run_hash(ctx: RunContext, ns: argparse.Namespace, as_json: bool) -> int:
    path = Path(ns.file)
    if not path.is_file():
        raise DriftError(f"file not found: {path}", ERR_USER, kind="missing_file")
    algorithm = HashAlgorithm.parse(ns.algorithm or ctx.settings.hash_algorithm)
    payload = {**build_base_payload(ctx), "file": str(path), "algorithm": algorithm.value}
    if ns.all:
        digests = {alg.value: digest for alg, digest in file_hashes(path, *HashAlgorithm).items()}
        if as_json:
            emit({**payload, "hashes": digests}, as_json)
        else:
            for name, digest in digests.items():
                print(f"{name} {digest}")
        return OK
    if ns.verify:
        matched = verify_file_hash(path, ns.verify, algorithm)
        if as_json:
            emit({**payload, "status": "ok" if matched else "mismatch", "expected": ns.verify}, as_json)
        else:
            print("ok" if matched else f"mismatch: {path} does not hash to {ns.verify}")
        return OK if matched else ERR_DRIFT
    digest = file_hash_base64(path, algorithm) if ns.base64 else file_hash(path, algorithm)
    if as_json:
        emit({**payload, "encoding": "base64" if ns.base64 else "hex", "hash": digest}, as_json)
    else:
        print(digest)
    return OK


def _run_document_command(ctx: RunContext, ns: argparse.Namespace, as_json: bool) -> int:
    doc_path = Path(ns.document)
    content = _read_document(doc_path)
    service = TagManagementService(ctx)
    document_id = doc_path.name

    if ns.cmd == "render":
        rendered = service.verify_and_update_document(content, document_id=document_id)
        if ns.out:
            out = _write_out(ns.out, rendered)
            log_event(ctx, "info", "cli", "write", path=str(out))
        else:
            sys.stdout.write(rendered)
        return OK

    document = service.process_document(document_id, content)
    result = _verification_result(document)
    drift_code = OK if not result.problematic_tags else ERR_DRIFT

    if ns.cmd == "verify":
        if as_json:
            emit(service.result_payload(document), as_json)
        else:
            print(_summary_text(document))
        return drift_code
    if ns.cmd == "report":
        report = service.generate_report(result)
        if ns.out:
            out = _write_out(ns.out, report)
            log_event(ctx, "info", "cli", "write", path=str(out))
        else:
            sys.stdout.write(report)
        return drift_code

    outdated = service.get_outdated_tags(document)
    if as_json:
        payload = build_base_payload(ctx)
        payload["document_id"] = document_id
        payload["outdated"] = [
            {"id": tag.id, "file_path": tag.reference.file_path, "label": tag.label, "description": tag.description}
            for tag in outdated
        ]
        emit(payload, as_json)
    else:
        for tag in outdated:
            print(f"{TagStatus.OUTDATED.value} {tag.reference.file_path} {tag.display_name}")
    return OK if not outdated else ERR_DRIFT


def main(argv: list[str] | None = None) -> int:
    raw_argv = argv if argv is not None else sys.argv[1:]
    p = build_parser()
    ns = p.parse_args(raw_argv)
    as_json = False
    try:
        if ns.format and ns.json and ns.format != "json":
            raise DriftError("conflicting output flags: use either --format json or --json", ERR_CONFIG, kind="conflicting_flags")
        fmt = resolve_output_format(cli_json=ns.json, cli_format=ns.format)
        as_json = fmt == "json"
        ctx = _build_context(ns, fmt)
        log_event(ctx, "debug", "cli", "start", cmd=ns.cmd, fmt=ctx.output_format)
        if ns.cmd == "version":
            emit(build_base_payload(ctx), as_json)
            return OK
        if ns.cmd == "hash":
            return _run_hash(ctx, ns, as_json)
        if ns.cmd in DOCUMENT_COMMANDS:
            return _run_document_command(ctx, ns, as_json)
        raise DriftError(f"unknown command: {ns.cmd}", ERR_USER)
    except DriftError as exc:
        print(render_error(exc, as_json=as_json), file=sys.stderr)
        return exc.code
    except Exception as exc:  # pragma: no cover
        internal = DriftError(f"internal error: {exc}", ERR_INTERNAL, kind="internal_error")
        print(render_error(internal, as_json=as_json), file=sys.stderr)
        return ERR_INTERNAL


def entrypoint() -> None:
    sys.exit(main())


if __name__ == "__main__":
    entrypoint()

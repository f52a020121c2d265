from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]


def run_docdrift(*args: str, cwd: Path | None = None) -> subprocess.CompletedProcess[str]:
    env = os.environ.copy()
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(ROOT / "src"), env.get("PYTHONPATH", "")]))
    env["RUN_ID"] = "pytest-run"
    for name in ("DOCDRIFT_CONFIG", "DOCDRIFT_HASH_ALGORITHM", "DOCDRIFT_LOG_JSON"):
        env.pop(name, None)
    return subprocess.run(
        [sys.executable, "-m", "docdrift.cli", *args],
        cwd=(cwd or ROOT),
        env=env,
        text=True,
        capture_output=True,
        check=False,
    )


def write_lines(path: Path, lines: list[str]) -> Path:
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path

from __future__ import annotations  # 型注釈の前方参照を許可するため

"""
Diagnostics helpers for structured outputs.
"""

from dataclasses import asdict
from datetime import datetime, timezone  # タイムスタンプ生成に使うため
import hashlib  # 設定ハッシュ生成に使うため
import json  # 構造化出力のため
from pathlib import Path  # ファイルパスを扱うため
import platform  # 実行環境情報を記録するため
import sys  # Python実行情報を記録するため
from typing import Any, Sequence  # 型注釈に使うため

from .engine import ProjectionReport  # 結果の型を使うため
from .validation import ValidationIssue  # 検証結果を記録するため


def _config_hash(config: dict) -> str:  # 設定内容のハッシュを作る
    payload = json.dumps(config, sort_keys=True, ensure_ascii=True, default=str)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def _file_digest(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {"path": str(path), "exists": False}

    hasher = hashlib.sha256()
    size_bytes = 0
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1024 * 1024), b""):
            size_bytes += len(chunk)
            hasher.update(chunk)
    return {
        "path": str(path),
        "exists": True,
        "size_bytes": size_bytes,
        "sha256": hasher.hexdigest(),
    }


def build_execution_context(
    base_dir: Path,
    input_paths: Sequence[Path] = (),
    config_path: Path | None = None,
    command: str | None = None,
    argv: Sequence[str] | None = None,
) -> dict[str, Any]:
    deduped: dict[str, Path] = {}
    for path in input_paths:
        deduped[str(path)] = path
    return {
        "command": command,
        "argv": list(argv) if argv is not None else [],
        "cwd": str(Path.cwd().resolve()),
        "base_dir": str(base_dir.resolve()),
        "config_path": str(config_path.resolve()) if config_path is not None else None,
        "python_version": sys.version.split()[0],
        "platform": platform.platform(),
        "input_files": [_file_digest(path) for path in deduped.values()],
    }


def build_run_summary(
    config: dict,
    report: ProjectionReport,
    source: str,
    issues: Sequence[ValidationIssue] = (),
    execution_context: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Build a JSON-serialisable summary of one projection run.

    None values mean "not computable" and are kept as null.
    """
    result = report.result
    summary = asdict(result.summary)  # break_evenもdictに展開される
    return {
        "meta": {
            "source": source,
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "config_hash": _config_hash(config),
            "execution_context": execution_context,
        },
        "sections": report.sections,
        "summary": summary,
        "rate_table": report.tables.get("rate_table"),
        "row_count": len(result.rows),
        "validation": [asdict(issue) for issue in issues],
    }

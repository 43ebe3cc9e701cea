from __future__ import annotations  # 型注釈の前方参照を許可し、循環参照を避けるため

"""
Output helpers for projection results.
"""

from dataclasses import fields
from pathlib import Path  # パスの操作をOS非依存で行うため
import json  # JSON出力に使うため
from typing import Any, Sequence

from openpyxl import Workbook  # Excelファイル出力に使うため

from .diagnostics import build_run_summary  # 診断サマリ出力に使うため
from .engine import ProjectionReport, ProjectionRow  # 結果の型を参照するため
from .validation import ValidationIssue, format_validation_issues


def _format_value(value: object) -> str:  # ログ用に値を整形する
    if value is None:
        return "n/a"  # 計算できない値は明示する
    if isinstance(value, float):
        return f"{value:.6f}".rstrip("0").rstrip(".") or "0"
    return str(value)


def _write_rows_sheet(ws, rows: Sequence[ProjectionRow]) -> None:  # 年次推移をExcelに書く
    headers = [item.name for item in fields(ProjectionRow)]  # 列名はデータクラス順で固定する
    for col_idx, name in enumerate(headers, start=1):
        ws.cell(row=1, column=col_idx, value=name)  # 1行目に列名を配置する

    for row_idx, row in enumerate(rows, start=2):  # 各年の値を書き込む
        for col_idx, name in enumerate(headers, start=1):
            ws.cell(row=row_idx, column=col_idx, value=getattr(row, name))  # Noneは空セルになる


def _write_brackets_sheet(ws, rate_table: dict[str, Any] | None) -> None:  # 料率区分表をExcelに書く
    headers = ["index", "name", "range", "rate_per_thousand", "monthly_cutoff", "active"]
    for col_idx, name in enumerate(headers, start=1):
        ws.cell(row=1, column=col_idx, value=name)
    if not rate_table or not rate_table.get("brackets"):  # 年齢行が無い場合はヘッダーのみ
        return
    active_index = rate_table.get("active_bracket_index")
    for offset, bracket in enumerate(rate_table["brackets"]):
        values = [
            offset,
            bracket["name"],
            bracket["range"],
            bracket["rate_per_thousand"],
            bracket["monthly_cutoff"],
            offset == active_index,
        ]
        for col_idx, value in enumerate(values, start=1):
            ws.cell(row=offset + 2, column=col_idx, value=value)


def write_projection_excel(path: Path, report: ProjectionReport) -> Path:  # 推計結果をExcelに書き出す
    """
    Write the summary, the yearly rows and the rate brackets to a workbook.
    """
    path.parent.mkdir(parents=True, exist_ok=True)  # 出力先ディレクトリを作成する
    wb = Workbook()
    ws = wb.active
    ws.title = "summary"

    summary = report.summary
    labels = [
        ("Final balance", summary.final_balance),
        ("Final balance (inflation adjusted)", summary.final_balance_inflation_adjusted),
        ("Account income", summary.account_income),
        ("Final year growth", summary.final_year_growth),
        ("Total contributed", summary.total_contributed),
        ("Total contributed (inflation adjusted)", summary.total_contributed_inflation_adjusted),
        ("Total market gain", summary.total_market_gain),
        ("Total term cost", summary.total_term_cost),
        ("Break-even year", summary.break_even.year if summary.break_even else None),
        ("Break-even age", summary.break_even.age if summary.break_even else None),
        ("Degenerate horizon", summary.degenerate_horizon),
        ("Mortality likelihood", summary.mortality_likelihood),
    ]
    for row_idx, (label, value) in enumerate(labels, start=1):
        ws.cell(row=row_idx, column=1, value=label)
        ws.cell(row=row_idx, column=2, value=value)

    _write_rows_sheet(wb.create_sheet(title="projection"), report.rows)
    _write_brackets_sheet(wb.create_sheet(title="rate_brackets"), report.tables.get("rate_table"))

    wb.save(path)
    return path


def format_projection_lines(report: ProjectionReport) -> list[str]:  # 推計結果を人が読める行に整形する
    lines = ["projection"]
    for section_name, section in report.sections.items():
        lines.append(section_name)  # セクション見出し
        for key, value in section.items():
            lines.append(f"{key}: {_format_value(value)}")

    summary = report.summary
    lines.append("results")
    lines.extend(
        [
            f"final_balance: {_format_value(summary.final_balance)}",
            f"final_balance_inflation_adjusted: {_format_value(summary.final_balance_inflation_adjusted)}",
            f"account_income: {_format_value(summary.account_income)}",
            f"final_year_growth: {_format_value(summary.final_year_growth)}",
            f"total_contributed: {_format_value(summary.total_contributed)}",
            f"total_contributed_inflation_adjusted: {_format_value(summary.total_contributed_inflation_adjusted)}",
            f"total_market_gain: {_format_value(summary.total_market_gain)}",
            f"total_term_cost: {_format_value(summary.total_term_cost)}",
        ]
    )
    if summary.break_even is None:
        lines.append("break_even: never")
    else:
        lines.append(f"break_even: year={summary.break_even.year} age={summary.break_even.age}")
    if summary.degenerate_horizon:  # 推計期間が無い場合は警告する
        lines.append("warning: non_positive_horizon only the inception year was projected")

    rate_table = report.tables.get("rate_table") or {}
    if rate_table.get("brackets") is None:
        lines.append(f"warning: missing_rate_row age={rate_table.get('age')}")
    else:
        lines.append(f"active_bracket_index: {_format_value(rate_table.get('active_bracket_index'))}")
    return lines


def write_projection_log(  # 推計ログをテキストで出力する
    path: Path,
    report: ProjectionReport,
    issues: Sequence[ValidationIssue] = (),
) -> Path:
    """
    Write a plain-text log with the echoed assumptions and the results.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = format_projection_lines(report)
    lines.extend(format_validation_issues(issues))
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def write_run_summary_json(
    path: Path,
    config: dict,
    report: ProjectionReport,
    source: str,
    issues: Sequence[ValidationIssue] = (),
    execution_context: dict[str, Any] | None = None,
) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = build_run_summary(
        config,
        report,
        source=source,
        issues=issues,
        execution_context=execution_context,
    )
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=True, default=str), encoding="utf-8")
    return path

from __future__ import annotations  # 型注釈の前方参照を許可して循環参照を避けるため

"""
CLI entrypoint for account projections.
"""

import argparse  # CLI引数を扱うため
from dataclasses import replace
import logging
from pathlib import Path  # パスをOSに依存せず扱うため
import sys

import yaml  # YAML設定を読み込むため

from .config import (  # 設定値の解釈に使うため
    read_assumptions,
    read_engine_options,
    read_reference_data_settings,
    reference_data_dir,
)
from .diagnostics import build_execution_context  # 構造化診断に使うため
from .engine import run_projection
from .market import annualized_rate, growth_distribution, percentile_growth
from .outputs import (  # 出力ファイル生成に使うため
    format_projection_lines,
    write_projection_excel,
    write_projection_log,
    write_run_summary_json,
)
from .paths import resolve_base_dir_from_config, resolve_output_path, resolve_path
from .rate_brackets import build_rate_brackets, find_age_row, select_active_bracket
from .reference_data import ReferenceDataLoader, parse_market_history, parse_rate_rows
from .validation import format_validation_issues, has_validation_errors, validate_config

EXIT_PRECONDITION = 2


def _load_config(path: Path) -> dict:  # YAMLを読み込んで辞書に変換する補助関数
    payload = yaml.safe_load(path.read_text(encoding="utf-8"))
    return payload if isinstance(payload, dict) else {}


def _build_loader(config: dict, base_dir: Path) -> ReferenceDataLoader:  # 参照データの読み込み器を作る
    data_dir = resolve_path(base_dir, reference_data_dir(config))
    return ReferenceDataLoader(data_dir, read_reference_data_settings(config))


def run_from_config(config_path: Path) -> int:  # YAML設定を使って推計を実行する
    """
    Project the configured assumption set and write outputs.
    """
    config_path = config_path.expanduser().resolve()
    config = _load_config(config_path)
    issues = validate_config(config)  # 設定の妥当性を先に確認する
    for line in format_validation_issues(issues):
        print(line, file=sys.stderr)
    if has_validation_errors(issues):
        return EXIT_PRECONDITION

    base_dir = resolve_base_dir_from_config(config_path)
    try:
        loader = _build_loader(config, base_dir)
        assumptions = read_assumptions(config)
        options = read_engine_options(config)
        reference_data = loader.load_all()
        report = run_projection(assumptions, reference_data, options)
    except ValueError as exc:  # MissingRequiredInputError / ReferenceDataError / 設定値の型不正
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_PRECONDITION

    outputs_cfg = config.get("outputs", {}) or {}
    excel_path = resolve_output_path(base_dir, outputs_cfg.get("excel_path"), "out/projection.xlsx")
    log_path = resolve_output_path(base_dir, outputs_cfg.get("log_path"), "out/projection.log")
    summary_path = resolve_output_path(base_dir, outputs_cfg.get("run_summary_path"), "out/run_summary.json")
    write_projection_excel(excel_path, report)
    write_projection_log(log_path, report, issues)
    execution_context = build_execution_context(
        base_dir=base_dir,
        input_paths=loader.input_paths(),
        config_path=config_path,
        command="projection.cli run",
        argv=[str(config_path)],
    )
    write_run_summary_json(
        summary_path,
        config,
        report,
        source="run",
        issues=issues,
        execution_context=execution_context,
    )
    print("\n".join(format_projection_lines(report)))  # 標準出力にも結果を表示する
    return 0


def brackets_from_config(config_path: Path, age: int | None, sex: str | None) -> int:  # 料率区分表を表示する
    config_path = config_path.expanduser().resolve()
    config = _load_config(config_path)
    try:
        assumptions = read_assumptions(config)
    except ValueError as exc:  # 数値でない設定値
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_PRECONDITION
    if age is not None:
        assumptions = replace(assumptions, age=age)
    if sex is not None:
        assumptions = replace(assumptions, sex=sex.strip().lower())
    if assumptions.age is None or assumptions.sex is None:
        print("error: Age and sex are required", file=sys.stderr)
        return EXIT_PRECONDITION

    base_dir = resolve_base_dir_from_config(config_path)
    try:
        loader = _build_loader(config, base_dir)
        settings = loader.settings
        rate_rows = parse_rate_rows(
            loader.load_sheet(settings.rate_table_path, settings.rate_table_sheet),
            header_rows=settings.rate_table_header_rows,
        )
        brackets = build_rate_brackets(assumptions.age, assumptions.sex, find_age_row(rate_rows, assumptions.age))
    except ValueError as exc:  # ReferenceDataErrorや未対応の性別をまとめて扱う
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_PRECONDITION

    print(f"rate_brackets age={assumptions.age} sex={assumptions.sex}")
    if brackets is None:
        print("warning: missing_rate_row")
        return 0
    active = select_active_bracket(brackets, assumptions.policy_size, assumptions.monthly_budget)
    for index, bracket in enumerate(brackets):
        marker = "*" if index == active else " "
        print(
            f"{marker} {index} {bracket.name} {bracket.range} "
            f"rate={bracket.rate_per_thousand} cutoff={bracket.monthly_cutoff}"
        )
    return 0


def market_percentile_from_config(  # 市場成長率のパーセンタイルを表示する
    config_path: Path,
    years: int,
    percentile: float,
) -> int:
    config_path = config_path.expanduser().resolve()
    config = _load_config(config_path)
    base_dir = resolve_base_dir_from_config(config_path)
    try:
        options = read_engine_options(config)
        loader = _build_loader(config, base_dir)
        settings = loader.settings
        history = parse_market_history(  # 市場履歴シートだけを読む
            loader.load_sheet(settings.market_history_path, settings.market_history_sheet),
            rows=settings.market_history_rows,
        )
    except ValueError as exc:  # ReferenceDataErrorや不正なpercentile_index_basis
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_PRECONDITION

    growth = percentile_growth(history, years, percentile, index_basis=options.percentile_index_basis)
    rate = annualized_rate(growth, years)
    print("market_percentile")
    print(f"years: {years}")
    print(f"percentile: {percentile}")
    print(f"observations: {len(growth_distribution(history, years))}")
    print(f"growth_factor: {'unknown' if growth is None else growth}")
    print(f"cagr: {'unknown' if rate is None else f'{rate:.6f}'}")
    return 0


def main(argv: list[str] | None = None) -> int:  # CLIのエントリーポイント
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    parser = argparse.ArgumentParser(description="Account projection CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run a projection from config.")
    run_parser.add_argument("config", type=str, help="Path to config YAML.")

    brackets_parser = subparsers.add_parser("brackets", help="Show the rate brackets for an age/sex.")
    brackets_parser.add_argument("config", type=str, help="Path to config YAML.")
    brackets_parser.add_argument("--age", type=int, default=None, help="Override assumptions.age.")
    brackets_parser.add_argument(
        "--sex",
        type=str,
        choices=("male", "female"),
        default=None,
        help="Override assumptions.sex.",
    )

    market_parser = subparsers.add_parser(
        "market-percentile",
        help="Look up a historical growth percentile and its annualized rate.",
    )
    market_parser.add_argument("config", type=str, help="Path to config YAML.")
    market_parser.add_argument("--years", type=int, required=True)
    market_parser.add_argument("--percentile", type=float, default=50.0)

    args = parser.parse_args(argv)  # CLI引数を解析する
    if args.command == "run":
        return run_from_config(Path(args.config))
    if args.command == "brackets":
        return brackets_from_config(Path(args.config), age=args.age, sex=args.sex)
    if args.command == "market-percentile":
        return market_percentile_from_config(
            Path(args.config),
            years=int(args.years),
            percentile=float(args.percentile),
        )
    return 1  # 未知のコマンドは異常終了として扱う


if __name__ == "__main__":  # 直接実行された場合のみCLIを起動する
    raise SystemExit(main())

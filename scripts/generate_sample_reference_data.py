from __future__ import annotations  # 型注釈の前方参照を許可し、循環参照を避けるため

import argparse  # CLI引数を扱うため
from pathlib import Path  # パスをOS非依存で扱うため

from projection.sample_data import SampleDataSpec, write_sample_workbooks  # サンプル参照データ生成に使うため


def main() -> int:  # スクリプトのメイン処理をまとめる
    parser = argparse.ArgumentParser()
    parser.add_argument("--out-dir", default="data")  # 出力先ディレクトリの指定
    parser.add_argument("--seed", type=int, default=12345)  # 乱数シードの指定
    parser.add_argument("--start-year", type=int, default=1950)  # 市場履歴の開始年
    parser.add_argument("--history-years", type=int, default=70)  # 市場履歴の年数
    args = parser.parse_args()

    spec = SampleDataSpec(start_year=args.start_year, history_years=args.history_years)
    workbooks = write_sample_workbooks(Path(args.out_dir), seed=args.seed, spec=spec)
    settings = workbooks.settings
    print(f"Wrote: {workbooks.rate_table_path}")
    print(f"Wrote: {workbooks.mortality_path}")
    print(f"Wrote: {workbooks.market_history_path}")
    print(
        "mortality rows: "
        f"male=[{settings.mortality_male_rows.start}, {settings.mortality_male_rows.stop}] "
        f"female=[{settings.mortality_female_rows.start}, {settings.mortality_female_rows.stop}]"
    )
    print(f"market rows: [{settings.market_history_rows.start}, {settings.market_history_rows.stop}]")
    return 0


if __name__ == "__main__":  # 直接実行時のみmainを呼ぶ
    raise SystemExit(main())

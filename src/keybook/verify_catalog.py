from __future__ import annotations

import argparse
from pathlib import Path
from typing import List, Optional

import pandas as pd

from src.utils.config import get_pipeline_paths, get_target_makes, load_yaml

from .export import CATALOG_JSON, OUTPUT_COLUMNS, distinct_makes, load_catalog


def die(msg: str) -> "NoReturn":
    print(f"ERROR: {msg}")
    raise SystemExit(1)


def check_catalog(df: pd.DataFrame) -> List[str]:
    """Rule violations, empty when the catalog is sound."""
    problems: List[str] = []

    for c in OUTPUT_COLUMNS:
        if c not in df.columns:
            problems.append(f"catalog missing column: {c}")
    if problems or df.empty:
        return problems

    for c in ["make", "model", "fccId"]:
        blank = df[c].isna() | (df[c].astype(str).str.strip() == "")
        if blank.any():
            problems.append(f"catalog has {int(blank.sum())} blank {c} values")

    ys = pd.to_numeric(df["yearStart"], errors="coerce")
    ye = pd.to_numeric(df["yearEnd"], errors="coerce")
    if ys.isna().any() or ye.isna().any():
        problems.append("catalog has non-numeric yearStart/yearEnd")
    bad = int((ys > ye).sum())
    if bad:
        problems.append(f"catalog has {bad} rows with yearStart > yearEnd")

    return problems


def target_coverage(df: pd.DataFrame, targets: List[str]) -> List[tuple]:
    makes = [m.upper() for m in distinct_makes(df)] if not df.empty else []
    return [(t, any(t in m for m in makes)) for t in targets]


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Deterministic QA gate for the extracted key book catalog (offline).")
    ap.add_argument("--pipeline", required=True, help="configs/pipeline.yaml")
    ap.add_argument("--catalog", default="", help="Override catalog path (.json or .csv)")
    args = ap.parse_args(argv)

    pipeline_cfg = load_yaml(args.pipeline)
    paths = get_pipeline_paths(pipeline_cfg)
    catalog_path = Path(args.catalog) if args.catalog else Path(paths["processed_dir"]) / CATALOG_JSON
    if not catalog_path.exists():
        die(f"Missing {catalog_path}")

    df = load_catalog(catalog_path)
    print(f"Total Entries: {len(df)}")

    for p in check_catalog(df):
        die(p)

    makes = sorted(distinct_makes(df))
    print(f"Unique Makes Found ({len(makes)}):")
    for m in makes:
        print(f" - {m}")

    targets = get_target_makes(pipeline_cfg)
    if targets:
        print("Target Check:")
        for t, found in target_coverage(df, targets):
            print(f" - {t}: {'FOUND' if found else 'MISSING'}")
    else:
        print("SKIP: verify.target_makes not set (no target check).")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())

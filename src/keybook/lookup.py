from __future__ import annotations

import argparse
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from src.utils.config import get_pipeline_paths, load_yaml

from .export import CATALOG_JSON, load_catalog


def _norm(s: Any) -> str:
    return str(s or "").strip().lower()


def _loose_contains(a: str, b: str) -> bool:
    return bool(a) and bool(b) and (a in b or b in a)


def model_matches(entry_model: str, wanted: str) -> bool:
    e = _norm(entry_model)
    w = _norm(wanted)
    if _loose_contains(e, w):
        return True
    # "Silverado1500" vs "Silverado 1500"
    return _loose_contains(re.sub(r"\s+", "", e), re.sub(r"\s+", "", w))


def search_fcc_id(catalog: pd.DataFrame, year: int, make: str, model: str) -> List[Dict[str, Any]]:
    """
    Fuzzy make/model containment plus year-in-range. One row per FCC ID, catalog order.
    """
    if catalog.empty:
        return []

    y = int(year)
    want_make = _norm(make)
    out: List[Dict[str, Any]] = []
    seen = set()

    for _, r in catalog.iterrows():
        if not _loose_contains(_norm(r["make"]), want_make):
            continue
        if not model_matches(r["model"], model):
            continue
        try:
            ys, ye = int(r["yearStart"]), int(r["yearEnd"])
        except (TypeError, ValueError):
            continue
        if not (ys <= y <= ye):
            continue
        fcc = str(r["fccId"])
        if fcc in seen:
            continue
        seen.add(fcc)
        freq = r["freq"] if isinstance(r["freq"], str) and r["freq"].strip() else None
        out.append(
            {
                "make": str(r["make"]),
                "model": str(r["model"]),
                "yearStart": ys,
                "yearEnd": ye,
                "fccId": fcc,
                "freq": freq,
            }
        )
    return out


def get_by_make(catalog: pd.DataFrame, make: str) -> pd.DataFrame:
    want = _norm(make)
    if catalog.empty or not want:
        return catalog.iloc[0:0].copy()
    mask = catalog["make"].fillna("").astype(str).str.lower().str.contains(want, regex=False)
    return catalog[mask].copy()


def format_results(results: List[Dict[str, Any]]) -> str:
    if not results:
        return "No FCC ID found in the key book catalog."
    return "\n".join(
        f"FCC: {r['fccId']} | Freq: {r.get('freq') or 'Unknown'} | Years: {r['yearStart']}-{r['yearEnd']}"
        for r in results
    )


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Look up FCC IDs in the extracted key book catalog.")
    ap.add_argument("--pipeline", required=True, help="configs/pipeline.yaml")
    ap.add_argument("--year", type=int, required=True)
    ap.add_argument("--make", required=True)
    ap.add_argument("--model", required=True)
    args = ap.parse_args(argv)

    paths = get_pipeline_paths(load_yaml(args.pipeline))
    catalog = load_catalog(Path(paths["processed_dir"]) / CATALOG_JSON)

    results = search_fcc_id(catalog, args.year, args.make, args.model)
    print(format_results(results))
    return 0 if results else 1


if __name__ == "__main__":
    raise SystemExit(main())

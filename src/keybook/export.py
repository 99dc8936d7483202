from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Tuple

import pandas as pd

from .emitter import (
    UNATTRIBUTED_COMPONENT,
    UNATTRIBUTED_FREQUENCY,
    UNRECOGNIZED_HEADER,
    BRAND_SWITCH,
    MALFORMED_YEAR_SPAN,
    ParseResult,
    VehicleComponentRecord,
)

# =============================================================================
# Catalog export
#
# Writes:
#   <processed_dir>\keybook_components.json   handoff contract (downstream lookup / persistence)
#   <processed_dir>\keybook_components.csv    same rows + audit columns
#
# Stable output columns (JSON keys, in order):
#   make        str
#   model       str
#   yearStart   int
#   yearEnd     int   (>= yearStart)
#   fccId       str
#   freq        str (nullable, "<value> MHz")
# =============================================================================

OUTPUT_COLUMNS: List[str] = ["make", "model", "yearStart", "yearEnd", "fccId", "freq"]
AUDIT_COLUMNS: List[str] = OUTPUT_COLUMNS + ["source_book", "line_no"]
KEY_COLUMNS: List[str] = ["make", "model", "yearStart", "yearEnd", "fccId"]

CATALOG_JSON = "keybook_components.json"
CATALOG_CSV = "keybook_components.csv"


class OutputWriteError(RuntimeError):
    """The catalog could not be written. The in-memory records are still valid."""


def records_to_frame(records: Iterable[VehicleComponentRecord]) -> pd.DataFrame:
    rows = [
        {
            "make": r.make,
            "model": r.model,
            "yearStart": r.year_start,
            "yearEnd": r.year_end,
            "fccId": r.fcc_id,
            "freq": r.freq,
            "source_book": r.source_book,
            "line_no": r.line_no,
        }
        for r in records
    ]
    df = pd.DataFrame(rows, columns=AUDIT_COLUMNS)
    if not df.empty:
        df["yearStart"] = df["yearStart"].astype(int)
        df["yearEnd"] = df["yearEnd"].astype(int)
        df["line_no"] = df["line_no"].astype(int)
    return df


def normalize_records(records: Iterable[VehicleComponentRecord], dedupe: bool = True) -> Tuple[pd.DataFrame, int]:
    """
    Trim make/model and (optionally) drop exact duplicates on KEY_COLUMNS, keeping the first
    occurrence so emission order is preserved.
    Returns: (frame, duplicates_dropped)
    """
    df = records_to_frame(records)
    if df.empty:
        return df, 0

    df["make"] = df["make"].astype(str).str.strip()
    df["model"] = df["model"].astype(str).str.strip()
    df["fccId"] = df["fccId"].astype(str).str.strip()

    before = len(df)
    if dedupe:
        df = df.drop_duplicates(subset=KEY_COLUMNS, keep="first").copy()
    df = df.reset_index(drop=True)
    return df, before - len(df)


def distinct_makes(df: pd.DataFrame) -> List[str]:
    if df.empty:
        return []
    return list(dict.fromkeys(df["make"].tolist()))


def summarize(df: pd.DataFrame, result: ParseResult, duplicates_dropped: int = 0) -> Dict[str, Any]:
    counts = result.counts()
    makes = distinct_makes(df)
    return {
        "total_records": int(len(df)),
        "distinct_makes": len(makes),
        "makes": makes,
        "brand_switches": counts[BRAND_SWITCH],
        "rejected_headers": counts[UNRECOGNIZED_HEADER],
        "unattributed_ids": counts[UNATTRIBUTED_COMPONENT],
        "unattributed_frequencies": counts[UNATTRIBUTED_FREQUENCY],
        "malformed_year_spans": counts[MALFORMED_YEAR_SPAN],
        "duplicates_dropped": int(duplicates_dropped),
    }


def catalog_rows(df: pd.DataFrame) -> List[Dict[str, Any]]:
    rows: List[Dict[str, Any]] = []
    for r in df[OUTPUT_COLUMNS].itertuples(index=False):
        freq = r.freq if isinstance(r.freq, str) and r.freq.strip() else None
        rows.append(
            {
                "make": str(r.make),
                "model": str(r.model),
                "yearStart": int(r.yearStart),
                "yearEnd": int(r.yearEnd),
                "fccId": str(r.fccId),
                "freq": freq,
            }
        )
    return rows


def write_catalog(df: pd.DataFrame, out_dir: str | Path) -> Dict[str, str]:
    out = Path(out_dir)
    json_path = out / CATALOG_JSON
    csv_path = out / CATALOG_CSV

    work = df.copy()
    for c in AUDIT_COLUMNS:
        if c not in work.columns:
            work[c] = None

    try:
        out.mkdir(parents=True, exist_ok=True)
        with json_path.open("w", encoding="utf-8") as f:
            json.dump(catalog_rows(work), f, ensure_ascii=False, indent=2)
            f.write("\n")
        work[AUDIT_COLUMNS].to_csv(csv_path, index=False, encoding="utf-8")
    except OSError as e:
        raise OutputWriteError(f"Failed to write catalog to {out}: {e}") from e

    return {"json": str(json_path), "csv": str(csv_path)}


def load_catalog(path: str | Path) -> pd.DataFrame:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Missing catalog: {p}")
    if p.suffix.lower() == ".csv":
        df = pd.read_csv(p, dtype={"make": str, "model": str, "fccId": str, "freq": str})
    else:
        data = json.loads(p.read_text(encoding="utf-8") or "[]")
        if not isinstance(data, list):
            raise ValueError(f"Catalog root must be a list: {p}")
        df = pd.DataFrame(data)
    for c in OUTPUT_COLUMNS:
        if c not in df.columns:
            df[c] = None
    return df

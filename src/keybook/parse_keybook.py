# src\keybook\parse_keybook.py
from __future__ import annotations

import argparse
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from src.utils.config import DEFAULT_FREQ_UNIT, KeybookSettings, get_keybook_settings, get_pipeline_paths, load_yaml
from src.utils.snapshot import append_manifest_jsonl, load_text_snapshot, utc_now_iso

from .brands import BrandResolver
from .classify import MALFORMED_YEAR_SPAN, HeaderVariant, Skip, classify
from .context import ParseContext, apply_header, initial_context
from .emitter import ParseResult, emit
from .export import OutputWriteError, normalize_records, summarize, write_catalog

# =============================================================================
# Remote-entry reference book extractor (deterministic, single pass)
#
# Reads one or more OCR'd key books (plain UTF-8 text) and folds every line through:
#   classify -> apply_header (make/model/year context) -> emit (records)
#
# Writes:
#   <processed_dir>\keybook_components.json
#   <processed_dir>\keybook_components.csv
#   <processed_dir>\keybook_run_log.jsonl       one line per diagnostic, tagged with run_at_utc
#   <processed_dir>\keybook_run_manifest.jsonl  one line per run
#
# Books are parsed one after another, each with a fresh context/result pair.
# =============================================================================

RUN_LOG = "keybook_run_log.jsonl"
RUN_MANIFEST = "keybook_run_manifest.jsonl"


class InputError(FileNotFoundError):
    """The input book is missing, unreadable or not valid text. Nothing was parsed."""


State = Tuple[ParseContext, ParseResult]


def split_lines(text: str) -> List[Tuple[int, str]]:
    """(line_no, trimmed line) pairs, 1-based."""
    return [(i, raw.strip()) for i, raw in enumerate((text or "").splitlines(), start=1)]


def step(state: State, line_no: int, line: str, resolver: BrandResolver) -> State:
    ctx, result = state
    variant = classify(line)

    if isinstance(variant, Skip):
        if variant.reason == MALFORMED_YEAR_SPAN:
            result.note(MALFORMED_YEAR_SPAN, line_no, line)
        return ctx, result

    if isinstance(variant, HeaderVariant):
        return apply_header(variant, ctx, resolver, result, line_no=line_no, line=line), result

    return ctx, emit(variant, ctx, result, line_no=line_no, line=line)


def parse_lines(
    lines: Iterable[Tuple[int, str]],
    default_make: str,
    resolver: Optional[BrandResolver] = None,
    source_book: str = "",
    freq_unit: str = DEFAULT_FREQ_UNIT,
) -> ParseResult:
    resolver = resolver or BrandResolver()
    state: State = (initial_context(default_make), ParseResult(source_book=source_book, freq_unit=freq_unit))
    for line_no, line in lines:
        state = step(state, line_no, line, resolver)
    return state[1]


def parse_text(
    text: str,
    default_make: str,
    resolver: Optional[BrandResolver] = None,
    source_book: str = "",
    freq_unit: str = DEFAULT_FREQ_UNIT,
) -> ParseResult:
    return parse_lines(split_lines(text), default_make, resolver=resolver, source_book=source_book, freq_unit=freq_unit)


def read_book(path: str | Path) -> Tuple[str, dict]:
    try:
        text, rec = load_text_snapshot(path)
    except (FileNotFoundError, RuntimeError) as e:
        raise InputError(str(e)) from e
    return text, asdict(rec)


def parse_book(path: str | Path, default_make: str, settings: Optional[KeybookSettings] = None) -> Tuple[ParseResult, dict]:
    settings = settings or KeybookSettings(default_make=default_make)
    text, snapshot = read_book(path)
    result = parse_text(
        text,
        default_make,
        resolver=BrandResolver.from_settings(settings),
        source_book=Path(path).name,
        freq_unit=settings.freq_unit,
    )
    return result, snapshot


def write_run_log(path: Path, result: ParseResult, run_at_utc: str) -> None:
    """Appends one line per diagnostic, tagged with the run it came from."""
    for d in result.diagnostics:
        append_manifest_jsonl(path, {"run_at_utc": run_at_utc, **asdict(d)})


def print_diagnostics(result: ParseResult) -> None:
    for d in result.diagnostics:
        where = f"{d.source_book}:{d.line_no}" if d.source_book else f"line {d.line_no}"
        detail = f" -> {d.detail}" if d.detail else ""
        print(f"[{d.kind}] {where} | {d.line}{detail}")


# ----------------------------
# Main
# ----------------------------

def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Extract make/model/year/FCC ID/frequency records from key reference books.")
    ap.add_argument("--pipeline", required=True, help="Path to configs\\pipeline.yaml")
    ap.add_argument("--input", default="", help="Parse this one book instead of keybook.books")
    ap.add_argument("--default-make", default="", help="Make used until the first confirmed brand header")
    ap.add_argument("--verbose", action="store_true", help="Print every diagnostic")
    args = ap.parse_args(argv)

    run_at = utc_now_iso()
    pipeline_cfg = load_yaml(args.pipeline)
    paths = get_pipeline_paths(pipeline_cfg)
    settings = get_keybook_settings(pipeline_cfg)

    raw_books_dir = Path(paths["raw_books_dir"])
    processed_dir = Path(paths["processed_dir"])

    default_make = (args.default_make or settings.default_make).strip()
    if args.input:
        books = [(Path(args.input), default_make)]
    else:
        books = [(raw_books_dir / b.file, b.default_make) for b in settings.books]
        if args.default_make:
            books = [(p, default_make) for p, _ in books]
    if not books:
        print("No books configured (keybook.books is empty and no --input given). Nothing to parse.")
        return 2

    combined = ParseResult(freq_unit=settings.freq_unit)
    snapshots = []
    for book_path, book_make in books:
        try:
            result, snapshot = parse_book(book_path, book_make, settings=settings)
        except InputError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1
        if args.verbose:
            print_diagnostics(result)
        print(f"Parsed: {book_path} | records={len(result.records)} | diagnostics={len(result.diagnostics)}")
        combined.extend(result)
        snapshots.append(snapshot)

    df, dropped = normalize_records(combined.records, dedupe=settings.dedupe)
    summary = summarize(df, combined, duplicates_dropped=dropped)

    try:
        out = write_catalog(df, processed_dir)
    except OutputWriteError as e:
        print(f"ERROR: output not written ({len(df)} records kept in memory): {e}", file=sys.stderr)
        return 3

    try:
        write_run_log(processed_dir / RUN_LOG, combined, run_at)
        append_manifest_jsonl(
            processed_dir / RUN_MANIFEST,
            {"run_at_utc": run_at, "inputs": snapshots, **summary},
        )
    except OSError as e:
        print(f"ERROR: run log not written (catalog saved: {out['json']}): {e}", file=sys.stderr)
        return 4

    print(
        f"Saved: {out['json']} | rows={summary['total_records']} | makes={summary['distinct_makes']} "
        f"| brand_switches={summary['brand_switches']} | rejected_headers={summary['rejected_headers']} "
        f"| unattributed_ids={summary['unattributed_ids']} | unattributed_freqs={summary['unattributed_frequencies']} "
        f"| malformed_years={summary['malformed_year_spans']} | duplicates_dropped={summary['duplicates_dropped']}"
    )
    print(f"Saved: {out['csv']}")
    print(f"Run log: {processed_dir / RUN_LOG}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

import json

import pytest

from src.keybook.brands import BrandResolver
from src.keybook.classify import FccId, classify
from src.keybook.context import ParseContext, initial_context
from src.keybook.emitter import (
    BRAND_SWITCH,
    MALFORMED_YEAR_SPAN,
    UNATTRIBUTED_COMPONENT,
    UNRECOGNIZED_HEADER,
    ParseResult,
)
from src.keybook.parse_keybook import InputError, main, parse_book, parse_text, split_lines, step


def _rows(result):
    return [(r.make, r.model, r.year_start, r.year_end, r.fcc_id, r.freq) for r in result.records]


def _parse(lines, default_make="Chevrolet"):
    return parse_text("\n".join(lines), default_make)


SAMPLE_BOOK = """\
ÍNDICE CHEVROLET
Avalanche 2007-2013
Remote Keyless Entry
FCC ID: OUC60270
Freq: 315 MHz
FCC ID: OUC60221
Freq: 315 MHz
12
Blazer 1997
FCC ID: ABO1502T
Camaro 2015-2010
ÍNDICE XYZCORP
ÍNDICE GMC
FCC ID: ORPHAN01
Sierra 1500 2014-19
FCC ID: HYQ1AA
Frequency 315.00 MHz
FCC ID: HYQ1AA
INDICE FORD LINCOLN MERCURY
Explorer 2011-2015
FCC ID: KR55WK48801
Freq: 315 MHz
F-150 2009-14
FCC ID: CWTWB1U793
Ranger 1998
FCC ID: KOBUT1BT
"""


# ----------------------------
# Scenarios
# ----------------------------

def test_scenario_a_brand_model_id_freq():
    res = _parse(["INDICE FORD", "Explorer 2011-2015", "FCC ID: ABC123", "Freq: 315.00 MHz"])
    assert _rows(res) == [("FORD", "Explorer", 2011, 2015, "ABC123", "315.00 MHz")]


def test_scenario_b_default_make_single_year():
    res = _parse(["Blazer 1997", "FCC ID: XYZ999"])
    assert _rows(res) == [("Chevrolet", "Blazer", 1997, 1997, "XYZ999", None)]


def test_scenario_c_id_without_model():
    res = _parse(["FCC ID: NOPE000"])
    assert res.records == []
    assert res.counts()[UNATTRIBUTED_COMPONENT] == 1


def test_scenario_d_frequency_goes_to_last_id():
    res = _parse(["RANDOM NOISE", "Camaro 2010-2015", "FCC ID: AAA111", "FCC ID: BBB222", "Freq: 433.92 MHz"])
    assert _rows(res) == [
        ("Chevrolet", "Camaro", 2010, 2015, "AAA111", None),
        ("Chevrolet", "Camaro", 2010, 2015, "BBB222", "433.92 MHz"),
    ]


def test_scenario_e_unknown_brand_header():
    resolver = BrandResolver()
    ctx0 = initial_context("Chevrolet")
    ctx, res = step((ctx0, ParseResult()), 1, "ÍNDICE XYZCORP", resolver)
    assert ctx == ctx0
    assert res.counts()[UNRECOGNIZED_HEADER] == 1
    assert res.records == []


def test_short_brand_header_with_suffix_switches_make():
    res = parse_text("INDICE NISSAN\nINDICE KIA MOTORS\nRio 2012-2017\nFCC ID: TQ8RKE3F\n", "Chevrolet")
    assert [r.make for r in res.records] == ["KIA MOTORS"]
    assert res.counts()[BRAND_SWITCH] == 2

    res = parse_text("INDICE RAM HEAVY DUTY TRUCKS AND VANS\nRam 2500 2010-2018\nFCC ID: GQ4-53T\n", "Dodge")
    assert _rows(res) == [("RAM HEAVY DUTY TRUCKS AND VANS", "Ram 2500", 2010, 2018, "GQ4-53T", None)]


# ----------------------------
# Properties
# ----------------------------

def test_sample_book_records():
    res = parse_text(SAMPLE_BOOK, "Chevrolet", source_book="sample.txt")
    assert _rows(res) == [
        ("CHEVROLET", "Avalanche", 2007, 2013, "OUC60270", "315 MHz"),
        ("CHEVROLET", "Avalanche", 2007, 2013, "OUC60221", "315 MHz"),
        ("CHEVROLET", "Blazer", 1997, 1997, "ABO1502T", None),
        ("GMC", "Sierra 1500", 2014, 2019, "HYQ1AA", "315.00 MHz"),
        ("GMC", "Sierra 1500", 2014, 2019, "HYQ1AA", None),
        ("FORD LINCOLN MERCURY", "Explorer", 2011, 2015, "KR55WK48801", "315 MHz"),
        ("FORD LINCOLN MERCURY", "F-150", 2009, 2014, "CWTWB1U793", None),
        ("FORD LINCOLN MERCURY", "Ranger", 1998, 1998, "KOBUT1BT", None),
    ]
    counts = res.counts()
    assert counts[BRAND_SWITCH] == 3
    assert counts[UNRECOGNIZED_HEADER] == 1
    assert counts[UNATTRIBUTED_COMPONENT] == 1
    assert counts[MALFORMED_YEAR_SPAN] == 1
    assert all(r.source_book == "sample.txt" for r in res.records)


def test_brand_switch_diagnostics_carry_line_numbers():
    res = parse_text(SAMPLE_BOOK, "Chevrolet")
    switches = [(d.line_no, d.detail) for d in res.diagnostics if d.kind == BRAND_SWITCH]
    assert switches == [(1, "CHEVROLET"), (13, "GMC"), (19, "FORD LINCOLN MERCURY")]


def test_record_count_bounded_by_id_lines():
    ids = sum(1 for _, line in split_lines(SAMPLE_BOOK) if isinstance(classify(line), FccId))
    res = parse_text(SAMPLE_BOOK, "Chevrolet")
    assert len(res.records) <= ids


def test_year_span_ordered_for_every_record():
    res = parse_text(SAMPLE_BOOK, "Chevrolet")
    assert all(r.year_start <= r.year_end for r in res.records)


def test_parsing_is_deterministic():
    assert parse_text(SAMPLE_BOOK, "Chevrolet") == parse_text(SAMPLE_BOOK, "Chevrolet")


def test_brand_persists_across_model_headers():
    res = _parse(
        ["INDICE NISSAN", "Altima 2007-2012", "FCC ID: KR55WK48903", "Rogue 2008-2013", "FCC ID: CWTWB1U751", "INDICE KIA"]
    )
    assert [r.make for r in res.records] == ["NISSAN", "NISSAN"]


def test_brand_switch_requires_new_model_header():
    res = _parse(["Explorer 2011-2015", "INDICE NISSAN", "FCC ID: STALE01"])
    assert res.records == []
    assert res.counts()[UNATTRIBUTED_COMPONENT] == 1


def test_frequency_amends_last_record_across_brand_change():
    res = _parse(["INDICE FORD", "Explorer 2011-2015", "FCC ID: A1", "INDICE NISSAN", "Freq: 315 MHz"])
    assert _rows(res) == [("FORD", "Explorer", 2011, 2015, "A1", "315 MHz")]


def test_split_lines_numbers_from_one_and_trims():
    assert split_lines("  a \n\nb") == [(1, "a"), (2, ""), (3, "b")]


def test_parse_state_is_not_shared_between_runs():
    first = _parse(["INDICE FORD", "Explorer 2011-2015", "FCC ID: A1"])
    second = _parse(["FCC ID: B2"])
    assert len(first.records) == 1
    assert second.records == []
    assert first.diagnostics != second.diagnostics


# ----------------------------
# Input / CLI
# ----------------------------

def test_parse_book_missing_file_is_input_error(tmp_path):
    with pytest.raises(InputError):
        parse_book(tmp_path / "missing.txt", "Chevrolet")


def test_parse_book_reads_file(tmp_path):
    p = tmp_path / "gm.txt"
    p.write_text("Blazer 1997\nFCC ID: XYZ999\n", encoding="utf-8")
    res, snapshot = parse_book(p, "Chevrolet")
    assert _rows(res) == [("Chevrolet", "Blazer", 1997, 1997, "XYZ999", None)]
    assert snapshot["bytes"] == len(p.read_bytes())
    assert res.records[0].source_book == "gm.txt"


def _write_pipeline(tmp_path, processed_dir, books):
    raw = tmp_path / "raw"
    raw.mkdir(exist_ok=True)
    lines = [
        "storage:",
        f"  raw_books_dir: '{raw.as_posix()}'",
        f"  processed_dir: '{processed_dir.as_posix()}'",
        "keybook:",
        "  default_make: Chevrolet",
        "  books:",
    ]
    for name, text, make in books:
        (raw / name).write_text(text, encoding="utf-8")
        lines.append(f"    - file: {name}")
        lines.append(f"      default_make: {make}")
    cfg = tmp_path / "pipeline.yaml"
    cfg.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return cfg


def test_main_writes_catalog_and_run_log(tmp_path, capsys):
    out_dir = tmp_path / "processed"
    cfg = _write_pipeline(
        tmp_path,
        out_dir,
        [
            ("gm.txt", SAMPLE_BOOK, "Chevrolet"),
            ("honda.txt", "Accord 2008-12\nFCC ID: KR55WK49308\nFreq: 313.8 MHz\nFCC ID: NOPE\n", "Honda"),
        ],
    )

    assert main(["--pipeline", str(cfg)]) == 0

    data = json.loads((out_dir / "keybook_components.json").read_text(encoding="utf-8"))
    assert list(data[0].keys()) == ["make", "model", "yearStart", "yearEnd", "fccId", "freq"]
    # the repeated Sierra HYQ1AA row is deduplicated
    assert len(data) == 9
    assert data[-2] == {
        "make": "Honda",
        "model": "Accord",
        "yearStart": 2008,
        "yearEnd": 2012,
        "fccId": "KR55WK49308",
        "freq": "313.8 MHz",
    }
    assert data[2]["freq"] is None

    log = [json.loads(x) for x in (out_dir / "keybook_run_log.jsonl").read_text(encoding="utf-8").splitlines()]
    assert sum(1 for d in log if d["kind"] == BRAND_SWITCH) == 3
    assert {d["source_book"] for d in log} == {"gm.txt"}

    manifest = json.loads((out_dir / "keybook_run_manifest.jsonl").read_text(encoding="utf-8").splitlines()[-1])
    assert manifest["total_records"] == 9
    assert manifest["duplicates_dropped"] == 1
    assert len(manifest["inputs"]) == 2

    out = capsys.readouterr().out
    assert "Saved:" in out
    assert "rows=9" in out


def test_main_input_override_and_default_make(tmp_path):
    out_dir = tmp_path / "processed"
    cfg = _write_pipeline(tmp_path, out_dir, [])
    book = tmp_path / "single.txt"
    book.write_text("Blazer 1997\nFCC ID: XYZ999\n", encoding="utf-8")

    assert main(["--pipeline", str(cfg), "--input", str(book), "--default-make", "GMC"]) == 0
    data = json.loads((out_dir / "keybook_components.json").read_text(encoding="utf-8"))
    assert data == [
        {"make": "GMC", "model": "Blazer", "yearStart": 1997, "yearEnd": 1997, "fccId": "XYZ999", "freq": None}
    ]


def test_main_missing_input_is_fatal(tmp_path, capsys):
    out_dir = tmp_path / "processed"
    cfg = _write_pipeline(tmp_path, out_dir, [])
    assert main(["--pipeline", str(cfg), "--input", str(tmp_path / "nope.txt")]) == 1
    assert "ERROR:" in capsys.readouterr().err
    assert not out_dir.exists()


def test_main_without_books_has_nothing_to_do(tmp_path):
    cfg = _write_pipeline(tmp_path, tmp_path / "processed", [])
    assert main(["--pipeline", str(cfg)]) == 2


def test_main_reports_output_write_error(tmp_path, capsys):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    cfg = _write_pipeline(tmp_path, blocker / "processed", [("gm.txt", SAMPLE_BOOK, "Chevrolet")])

    assert main(["--pipeline", str(cfg)]) == 3
    assert "output not written" in capsys.readouterr().err


def test_run_log_lines_are_tagged_per_run(tmp_path, monkeypatch):
    out_dir = tmp_path / "processed"
    cfg = _write_pipeline(tmp_path, out_dir, [("gm.txt", SAMPLE_BOOK, "Chevrolet")])

    stamps = iter(["2026-01-01T00:00:00+00:00", "2026-01-02T00:00:00+00:00"])
    monkeypatch.setattr("src.keybook.parse_keybook.utc_now_iso", lambda: next(stamps))
    assert main(["--pipeline", str(cfg)]) == 0
    assert main(["--pipeline", str(cfg)]) == 0

    log = [json.loads(x) for x in (out_dir / "keybook_run_log.jsonl").read_text(encoding="utf-8").splitlines()]
    per_run = len(parse_text(SAMPLE_BOOK, "Chevrolet").diagnostics)
    assert [d["run_at_utc"] for d in log] == ["2026-01-01T00:00:00+00:00"] * per_run + ["2026-01-02T00:00:00+00:00"] * per_run

    manifest = [json.loads(x) for x in (out_dir / "keybook_run_manifest.jsonl").read_text(encoding="utf-8").splitlines()]
    assert [m["run_at_utc"] for m in manifest] == ["2026-01-01T00:00:00+00:00", "2026-01-02T00:00:00+00:00"]


def test_main_reports_run_log_failure_separately(tmp_path, capsys):
    out_dir = tmp_path / "processed"
    (out_dir / "keybook_run_log.jsonl").mkdir(parents=True)
    cfg = _write_pipeline(tmp_path, out_dir, [("gm.txt", SAMPLE_BOOK, "Chevrolet")])

    assert main(["--pipeline", str(cfg)]) == 4
    err = capsys.readouterr().err
    assert "run log not written" in err
    assert "output not written" not in err
    assert len(json.loads((out_dir / "keybook_components.json").read_text(encoding="utf-8"))) == 7

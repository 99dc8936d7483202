from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

import yaml


DEFAULT_MAKE = "Chevrolet"
DEFAULT_SHORT_LINE_MAX = 20
DEFAULT_MIN_SUBSTRING_LEN = 4
DEFAULT_FREQ_UNIT = "MHz"


def load_yaml(path: str | Path) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p}")
    with p.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ValueError(f"YAML root must be a mapping/dict: {p}")
    return data


def get_pipeline_paths(pipeline_cfg: Dict[str, Any]) -> Dict[str, str]:
    storage = pipeline_cfg.get("storage", {}) or {}
    raw_books_dir = storage.get("raw_books_dir")
    processed_dir = storage.get("processed_dir")
    if not raw_books_dir or not processed_dir:
        raise ValueError("pipeline.yaml missing storage.raw_books_dir/processed_dir")
    return {
        "raw_books_dir": str(raw_books_dir),
        "processed_dir": str(processed_dir),
    }


@dataclass
class BookEntry:
    file: str
    default_make: str


@dataclass
class KeybookSettings:
    default_make: str = DEFAULT_MAKE
    short_line_max: int = DEFAULT_SHORT_LINE_MAX
    min_substring_len: int = DEFAULT_MIN_SUBSTRING_LEN
    freq_unit: str = DEFAULT_FREQ_UNIT
    dedupe: bool = True
    brands: List[str] = field(default_factory=list)
    books: List[BookEntry] = field(default_factory=list)


def get_keybook_settings(pipeline_cfg: Dict[str, Any]) -> KeybookSettings:
    kb = pipeline_cfg.get("keybook", {}) or {}
    if not isinstance(kb, dict):
        raise ValueError("pipeline.yaml keybook section must be a mapping/dict")

    default_make = str(kb.get("default_make") or DEFAULT_MAKE).strip()
    if not default_make:
        raise ValueError("keybook.default_make must not be empty")

    books: List[BookEntry] = []
    for b in kb.get("books", []) or []:
        if not isinstance(b, dict) or not b.get("file"):
            raise ValueError(f"keybook.books entries need a 'file' key: {b!r}")
        books.append(BookEntry(file=str(b["file"]), default_make=str(b.get("default_make") or default_make).strip()))

    return KeybookSettings(
        default_make=default_make,
        short_line_max=int(kb.get("short_line_max", DEFAULT_SHORT_LINE_MAX)),
        min_substring_len=int(kb.get("min_substring_len", DEFAULT_MIN_SUBSTRING_LEN)),
        freq_unit=str(kb.get("freq_unit") or DEFAULT_FREQ_UNIT),
        dedupe=bool(kb.get("dedupe", True)),
        brands=[str(x) for x in (kb.get("brands", []) or [])],
        books=books,
    )


def get_target_makes(pipeline_cfg: Dict[str, Any]) -> List[str]:
    verify = pipeline_cfg.get("verify", {}) or {}
    return [str(t).strip().upper() for t in (verify.get("target_makes", []) or []) if str(t).strip()]

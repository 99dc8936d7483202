from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Tuple

from .hashing import sha256_bytes


@dataclass
class SnapshotRecord:
    read_at_utc: str
    path: str
    sha256: str
    bytes: int
    encoding: str


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def load_text_snapshot(path: str | Path, encoding: str = "utf-8") -> Tuple[str, SnapshotRecord]:
    """
    Read a whole text document into memory and fingerprint it.
    Returns: (text, record)
    Raises FileNotFoundError if missing, RuntimeError if unreadable or not decodable.
    """
    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(f"Input not found: {p}")

    try:
        data = p.read_bytes()
    except OSError as e:
        raise RuntimeError(f"Input unreadable: {p}: {e}")

    try:
        # utf-8-sig strips a leading BOM left behind by some extractors
        text = data.decode("utf-8-sig" if encoding.lower() == "utf-8" else encoding)
    except UnicodeDecodeError as e:
        raise RuntimeError(f"Input is not valid {encoding}: {p}: {e}")

    rec = SnapshotRecord(
        read_at_utc=utc_now_iso(),
        path=str(p).replace("\\", "/"),
        sha256=sha256_bytes(data),
        bytes=len(data),
        encoding=encoding,
    )
    return text, rec


def append_manifest_jsonl(manifest_path: str | Path, record: Any) -> None:
    p = Path(manifest_path)
    p.parent.mkdir(parents=True, exist_ok=True)
    obj: Dict[str, Any] = asdict(record) if hasattr(record, "__dataclass_fields__") else dict(record)
    line = json.dumps(obj, ensure_ascii=False)
    with p.open("a", encoding="utf-8") as f:
        f.write(line + "\n")

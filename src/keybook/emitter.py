from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional

from src.utils.config import DEFAULT_FREQ_UNIT

from .classify import MALFORMED_YEAR_SPAN, FccId, Frequency, Variant

if TYPE_CHECKING:
    from .context import ParseContext

# Diagnostic kinds (run log)
BRAND_SWITCH = "BRAND_SWITCH"
UNRECOGNIZED_HEADER = "UNRECOGNIZED_HEADER"
UNATTRIBUTED_COMPONENT = "UNATTRIBUTED_COMPONENT"
UNATTRIBUTED_FREQUENCY = "UNATTRIBUTED_FREQUENCY"

DIAGNOSTIC_KINDS = (
    BRAND_SWITCH,
    UNRECOGNIZED_HEADER,
    UNATTRIBUTED_COMPONENT,
    UNATTRIBUTED_FREQUENCY,
    MALFORMED_YEAR_SPAN,
)


@dataclass
class VehicleComponentRecord:
    make: str
    model: str
    year_start: int
    year_end: int
    fcc_id: str
    freq: Optional[str] = None
    line_no: int = 0
    source_book: str = ""


@dataclass
class Diagnostic:
    kind: str
    line_no: int
    line: str
    detail: str = ""
    source_book: str = ""


@dataclass
class ParseResult:
    """Single-writer accumulator for one document pass."""

    records: List[VehicleComponentRecord] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    source_book: str = ""
    freq_unit: str = DEFAULT_FREQ_UNIT

    def note(self, kind: str, line_no: int, line: str, detail: str = "") -> None:
        self.diagnostics.append(
            Diagnostic(kind=kind, line_no=line_no, line=line, detail=detail, source_book=self.source_book)
        )

    def counts(self) -> Dict[str, int]:
        out = {k: 0 for k in DIAGNOSTIC_KINDS}
        for d in self.diagnostics:
            out[d.kind] = out.get(d.kind, 0) + 1
        return out

    def extend(self, other: "ParseResult") -> None:
        self.records.extend(other.records)
        self.diagnostics.extend(other.diagnostics)


def format_freq(value_mhz: str, unit: str = DEFAULT_FREQ_UNIT) -> str:
    return f"{value_mhz.strip()} {unit}"


def emit(variant: Variant, ctx: "ParseContext", result: ParseResult, line_no: int = 0, line: str = "") -> ParseResult:
    """
    Id lines open a new record from the current context; frequency lines patch the most
    recently opened record, whatever model it belongs to. The source layout is
    "header, then (id, frequency) pairs" with no pair delimiter, so this is best effort.
    """
    if isinstance(variant, FccId):
        if ctx.current_model is None:
            result.note(UNATTRIBUTED_COMPONENT, line_no, line, detail=variant.code)
            return result
        result.records.append(
            VehicleComponentRecord(
                make=ctx.current_make,
                model=ctx.current_model,
                year_start=ctx.year_start,
                year_end=ctx.year_end,
                fcc_id=variant.code,
                freq=None,
                line_no=line_no,
                source_book=result.source_book,
            )
        )
        return result

    if isinstance(variant, Frequency):
        if not result.records:
            result.note(UNATTRIBUTED_FREQUENCY, line_no, line, detail=variant.value_mhz)
            return result
        result.records[-1].freq = format_freq(variant.value_mhz, result.freq_unit)
        return result

    return result

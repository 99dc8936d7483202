from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Tuple, Union

# =============================================================================
# Line classifier for OCR'd remote-entry reference books (pure, stateless)
#
# Every line maps to exactly one variant. First matching rule wins:
#   1) blank / page number                         -> Skip
#   2) INDICE|ÍNDICE|INDEX <text>                  -> BrandHeaderCandidate
#   3) <model> YYYY-YYYY | <model> YYYY-YY         -> ModelYearHeader
#   4) short line, <model> YYYY (one year, no id)  -> SingleYearHeader
#   5) ... FCC ID: <code> ...                      -> FccId
#   6) ... Freq: <n.nn> MHz ...                    -> Frequency
#   7) anything else                               -> Skip
#
# Year spans that do not make sense (end before start, outside 1900..2100)
# come back as Skip(reason=MALFORMED_YEAR_SPAN) so the driver can log them.
# =============================================================================


MIN_YEAR = 1900
MAX_YEAR = 2100
SINGLE_YEAR_MAX_LINE = 50

MALFORMED_YEAR_SPAN = "MALFORMED_YEAR_SPAN"


@dataclass(frozen=True)
class BrandHeaderCandidate:
    text: str


@dataclass(frozen=True)
class ModelYearHeader:
    model: str
    year_start: int
    year_end: int


@dataclass(frozen=True)
class SingleYearHeader:
    model: str
    year: int


@dataclass(frozen=True)
class FccId:
    code: str


@dataclass(frozen=True)
class Frequency:
    value_mhz: str


@dataclass(frozen=True)
class Skip:
    reason: str = ""


Variant = Union[BrandHeaderCandidate, ModelYearHeader, SingleYearHeader, FccId, Frequency, Skip]
HeaderVariant = (BrandHeaderCandidate, ModelYearHeader, SingleYearHeader)


# ----------------------------
# Text handling
# ----------------------------

def clean_line(line: str) -> str:
    t = (line or "").replace("\u00a0", " ").replace("\ufeff", "")
    t = (
        t.replace("\u2013", "-")
         .replace("\u2014", "-")
         .replace("\u2212", "-")
         .replace("â€“", "-")
         .replace("â€”", "-")
         .replace("ΓÇô", "-")
    )
    return re.sub(r"\s+", " ", t).strip()


def parse_year(token: str) -> Optional[int]:
    ss = (token or "").strip()
    if not re.fullmatch(r"[0-9]+", ss):
        return None
    return int(ss)


def expand_year_span(start_token: str, end_token: str) -> Optional[Tuple[int, int]]:
    """
    Returns (year_start, year_end) or None when the span is malformed.
    A 2-digit end takes the start's century, rolling over when it would precede the start
    ("1998-02" -> 1998..2002).
    """
    start = parse_year(start_token)
    end = parse_year(end_token)
    if start is None or end is None:
        return None
    if len(end_token.strip()) == 2:
        end = (start // 100) * 100 + end
        if end < start:
            end += 100
    if not (MIN_YEAR <= start <= MAX_YEAR and MIN_YEAR <= end <= MAX_YEAR):
        return None
    if end < start:
        return None
    return start, end


# ----------------------------
# Patterns
# ----------------------------

INDEX_MARKER_RX = re.compile(r"^(?:[IÍ]NDICE|INDEX)\b\s*[:.\-]?\s*(?P<text>\S.*)$", flags=re.IGNORECASE)

# Accepted header character set: letters, digits, spaces, ( ) / -
_MODEL = r"(?P<model>[^\W_](?:[^\W_]|[ ()/\-])*?)"

_YEAR = r"(?:19|20)[0-9]{2}"

MODEL_YEAR_RX = re.compile(_MODEL + r"\s+(?P<y1>" + _YEAR + r")\s*-\s*(?P<y2>" + _YEAR + r"|[0-9]{2})(?![0-9])")
SINGLE_YEAR_RX = re.compile(_MODEL + r"\s+(?P<year>" + _YEAR + r")$")
FOUR_DIGITS_RX = re.compile(r"(?<![0-9])[0-9]{4}(?![0-9])")

FCC_ID_RX = re.compile(r"\bFCC\s*ID\s*:\s*(?P<code>[A-Za-z0-9][A-Za-z0-9_\-]*)", flags=re.IGNORECASE)
FREQ_RX = re.compile(r"\bFreq(?:uency)?[.:]*\s*(?P<value>[0-9]+(?:\.[0-9]+)?)\s*MHz\b", flags=re.IGNORECASE)


def _has_letter(s: str) -> bool:
    return any(ch.isalpha() for ch in s)


def _model_text(raw: str) -> str:
    return re.sub(r"\s+", " ", raw).strip(" -/")


def classify(line: str) -> Variant:
    text = clean_line(line)

    # 1) blank lines and page numbers
    if not text or text.isdigit():
        return Skip()

    # 2) index / table-of-contents brand marker
    m = INDEX_MARKER_RX.match(text)
    if m:
        return BrandHeaderCandidate(text=m.group("text").strip())

    # 3) model + year span
    m = MODEL_YEAR_RX.match(text)
    if m and _has_letter(m.group("model")):
        span = expand_year_span(m.group("y1"), m.group("y2"))
        if span is None:
            return Skip(reason=MALFORMED_YEAR_SPAN)
        return ModelYearHeader(model=_model_text(m.group("model")), year_start=span[0], year_end=span[1])

    has_id = FCC_ID_RX.search(text) is not None

    # 4) short model line with a single trailing year
    if len(text) < SINGLE_YEAR_MAX_LINE and not has_id:
        m = SINGLE_YEAR_RX.match(text)
        if m and _has_letter(m.group("model")):
            # "Sierra 2500" is a model name, "Silverado 1500 1999" still has one year
            years = [y for y in FOUR_DIGITS_RX.findall(text) if MIN_YEAR <= int(y) <= MAX_YEAR]
            year = parse_year(m.group("year"))
            if len(years) == 1 and year is not None and MIN_YEAR <= year <= MAX_YEAR:
                return SingleYearHeader(model=_model_text(m.group("model")), year=year)

    # 5) transmitter id
    if has_id:
        m = FCC_ID_RX.search(text)
        return FccId(code=m.group("code").strip())

    # 6) frequency
    m = FREQ_RX.search(text)
    if m:
        return Frequency(value_mhz=m.group("value"))

    return Skip()

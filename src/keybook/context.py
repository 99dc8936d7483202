from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

from .brands import BrandResolver
from .classify import BrandHeaderCandidate, ModelYearHeader, SingleYearHeader, Variant
from .emitter import BRAND_SWITCH, UNRECOGNIZED_HEADER, ParseResult


@dataclass(frozen=True)
class ParseContext:
    current_make: str
    current_model: Optional[str] = None
    year_start: Optional[int] = None
    year_end: Optional[int] = None

    def __post_init__(self) -> None:
        if not (self.current_make or "").strip():
            raise ValueError("current_make must not be empty")

    @property
    def has_model(self) -> bool:
        return self.current_model is not None


def initial_context(default_make: str) -> ParseContext:
    return ParseContext(current_make=default_make.strip())


def apply_header(
    variant: Variant,
    ctx: ParseContext,
    resolver: BrandResolver,
    result: ParseResult,
    line_no: int = 0,
    line: str = "",
) -> ParseContext:
    if isinstance(variant, BrandHeaderCandidate):
        confirmed, brand = resolver.resolve(variant.text)
        if not confirmed:
            result.note(UNRECOGNIZED_HEADER, line_no, line, detail=variant.text)
            return ctx
        result.note(BRAND_SWITCH, line_no, line, detail=brand)
        # a brand boundary drops the model so nothing is emitted under a stale one
        return ParseContext(current_make=brand)

    if isinstance(variant, ModelYearHeader):
        return replace(ctx, current_model=variant.model, year_start=variant.year_start, year_end=variant.year_end)

    if isinstance(variant, SingleYearHeader):
        return replace(ctx, current_model=variant.model, year_start=variant.year, year_end=variant.year)

    return ctx

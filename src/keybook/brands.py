from __future__ import annotations

import re
from typing import FrozenSet, Iterable, Optional, Pattern, Tuple

from src.utils.config import DEFAULT_MIN_SUBSTRING_LEN, DEFAULT_SHORT_LINE_MAX, KeybookSettings

# Canonical uppercase manufacturer names seen in the key reference books.
DEFAULT_BRANDS: FrozenSet[str] = frozenset(
    {
        "ACURA",
        "ALFA ROMEO",
        "AUDI",
        "BMW",
        "BUICK",
        "CADILLAC",
        "CHEVROLET",
        "CHRYSLER",
        "DODGE",
        "FIAT",
        "FORD",
        "GMC",
        "HONDA",
        "HUMMER",
        "HYUNDAI",
        "INFINITI",
        "JAGUAR",
        "JEEP",
        "KIA",
        "LAND ROVER",
        "LEXUS",
        "LINCOLN",
        "MAZDA",
        "MERCEDES",
        "MERCEDES-BENZ",
        "MERCURY",
        "MINI",
        "MITSUBISHI",
        "NISSAN",
        "OLDSMOBILE",
        "PEUGEOT",
        "PONTIAC",
        "PORSCHE",
        "RAM",
        "RENAULT",
        "SATURN",
        "SCION",
        "SUBARU",
        "SUZUKI",
        "TOYOTA",
        "VOLKSWAGEN",
        "VOLVO",
        "VW",
    }
)


class BrandResolver:
    """
    Confirms brand-header candidates against a fixed manufacturer lexicon.

    A candidate is confirmed when:
      - it is short (< short_line_max chars) and equals a lexicon entry, case-insensitively, or
      - its upper-cased text contains any lexicon entry as a substring. Entries shorter than
        min_substring_len ("VW", "KIA", "RAM", ...) must stand as a whole word, so
        "KIA MOTORS" confirms while "RAM" does not fire inside "PROGRAMACION".

    The confirmed brand is the candidate text itself (trimmed), so composite headers such as
    "FORD LINCOLN MERCURY" survive verbatim.
    """

    def __init__(
        self,
        brands: Optional[Iterable[str]] = None,
        short_line_max: int = DEFAULT_SHORT_LINE_MAX,
        min_substring_len: int = DEFAULT_MIN_SUBSTRING_LEN,
    ) -> None:
        lex = {str(b).strip().upper() for b in (brands if brands else DEFAULT_BRANDS)}
        lex.discard("")
        if not lex:
            raise ValueError("brand lexicon must not be empty")
        self.lexicon: FrozenSet[str] = frozenset(lex)
        self.short_line_max = int(short_line_max)
        self.min_substring_len = int(min_substring_len)
        # longest first so substring hits are reported deterministically
        self._substring_entries: Tuple[Tuple[str, Pattern[str]], ...] = tuple(
            (b, self._entry_pattern(b)) for b in sorted(self.lexicon, key=lambda b: (-len(b), b))
        )

    def _entry_pattern(self, entry: str) -> Pattern[str]:
        if len(entry) < self.min_substring_len:
            return re.compile(r"\b" + re.escape(entry) + r"\b")
        return re.compile(re.escape(entry))

    @classmethod
    def from_settings(cls, settings: KeybookSettings) -> "BrandResolver":
        return cls(
            brands=settings.brands or None,
            short_line_max=settings.short_line_max,
            min_substring_len=settings.min_substring_len,
        )

    def matched_entry(self, candidate: str) -> Optional[str]:
        text = (candidate or "").strip()
        if not text:
            return None
        upper = text.upper()

        if len(text) < self.short_line_max and upper in self.lexicon:
            return upper

        for entry, rx in self._substring_entries:
            if rx.search(upper):
                return entry
        return None

    def resolve(self, candidate: str) -> Tuple[bool, str]:
        text = (candidate or "").strip()
        if self.matched_entry(text) is None:
            return False, ""
        return True, text

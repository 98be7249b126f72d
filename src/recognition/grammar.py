"""
Plate grammar and character confusion tables.

A grammar is a string of slot types, "L" for a letter and "D" for a digit.
The default "LLLDLDD" is the 7-character Mercosul layout (e.g. ABC1D23).
The confusion tables are static data: they list the only substitutions the
normalizer is allowed to make.
"""

from __future__ import annotations

import re
import string
from dataclasses import dataclass
from typing import Mapping, Optional, Pattern

LETTER_SLOT = "L"
DIGIT_SLOT = "D"

MERCOSUL_PATTERN = "LLLDLDD"

# Digit read where a letter belongs
DIGIT_TO_LETTER: Mapping[str, str] = {
    "0": "O",
    "1": "I",
    "4": "A",
    "5": "S",
    "6": "G",
    "8": "B",
}

# Letter read where a digit belongs
LETTER_TO_DIGIT: Mapping[str, str] = {
    "O": "0",
    "Q": "0",
    "I": "1",
    "L": "1",
    "A": "4",
    "S": "5",
    "G": "6",
    "B": "8",
}

# Plate borders and bolts tend to come back as one of these in front of the code
LEADING_ARTIFACTS = frozenset("I1LJT")


@dataclass(frozen=True)
class PlateGrammar:
    """
    Fixed-length letter/digit layout a canonical code must follow.

    Attributes:
        pattern: Slot types, one "L" or "D" per character.
        letters: Characters allowed in letter slots.
        digits: Characters allowed in digit slots.
    """
    pattern: str = MERCOSUL_PATTERN
    letters: str = string.ascii_uppercase
    digits: str = string.digits

    def __post_init__(self):
        if not self.pattern:
            raise ValueError("Grammar pattern must not be empty")
        bad = set(self.pattern) - {LETTER_SLOT, DIGIT_SLOT}
        if bad:
            raise ValueError(f"Grammar pattern may only contain 'L' and 'D', got {sorted(bad)}")

    @property
    def length(self) -> int:
        return len(self.pattern)

    @property
    def alphabet(self) -> str:
        return self.letters + self.digits

    def is_letter_slot(self, position: int) -> bool:
        return self.pattern[position] == LETTER_SLOT

    def is_digit_slot(self, position: int) -> bool:
        return self.pattern[position] == DIGIT_SLOT

    @property
    def regex(self) -> Pattern[str]:
        letter_class = f"[{re.escape(self.letters)}]"
        digit_class = f"[{re.escape(self.digits)}]"
        body = "".join(letter_class if slot == LETTER_SLOT else digit_class for slot in self.pattern)
        return re.compile(f"^{body}$")

    def matches(self, code: str) -> bool:
        return bool(code) and self.regex.match(code) is not None

    @property
    def shift_check_offset(self) -> Optional[int]:
        """
        Index to inspect in an over-long read when deciding whether to drop
        a leading artifact: one past the last letter slot that is followed
        by a digit slot. None when the grammar has no such pair.
        """
        for pos in range(self.length - 2, -1, -1):
            if self.pattern[pos] == LETTER_SLOT and self.pattern[pos + 1] == DIGIT_SLOT:
                return pos + 1
        return None

"""
Normalization of raw recognizer text into canonical plate codes.

Steps, in order:
1. Uppercase and drop anything outside the grammar alphabet.
2. Fit to the grammar length (optionally dropping one leading artifact).
3. Swap letters/digits that sit in the wrong slot type, using the static
   confusion tables only.
4. Validate against the grammar; anything that still fails is rejected.
"""

from __future__ import annotations

import logging
import time
from typing import Iterable, Mapping, Optional

from models.recognition import RecognitionResult
from .grammar import DIGIT_TO_LETTER, LEADING_ARTIFACTS, LETTER_TO_DIGIT, PlateGrammar


class CodeNormalizer:
    """
    Repairs common misreads into the plate grammar, or rejects the read.

    The output is either "" or a string that fully matches the grammar;
    a partially corrected code is never returned.

    Example:
        normalizer = CodeNormalizer()
        normalizer.normalize("p0x-4g21").processed_text  # "POX4G21"
    """

    def __init__(
        self,
        grammar: Optional[PlateGrammar] = None,
        digit_to_letter: Mapping[str, str] = DIGIT_TO_LETTER,
        letter_to_digit: Mapping[str, str] = LETTER_TO_DIGIT,
        leading_artifacts: Iterable[str] = LEADING_ARTIFACTS,
        shift_heuristic: bool = True,
    ):
        self.grammar = grammar or PlateGrammar()
        self.digit_to_letter = dict(digit_to_letter)
        self.letter_to_digit = dict(letter_to_digit)
        self.leading_artifacts = frozenset(leading_artifacts)
        self.shift_heuristic = shift_heuristic
        self._allowed = frozenset(self.grammar.alphabet)

    def clean(self, raw_text: str) -> str:
        """Uppercase and strip every character outside the alphabet."""
        return "".join(c for c in (raw_text or "").upper() if c in self._allowed)

    def fit_length(self, cleaned: str) -> Optional[str]:
        """
        Cut an over-long read down to the grammar length.

        Returns:
            A string of exactly grammar.length characters, or None when the
            read is too short to be a plate.
        """
        length = self.grammar.length
        if len(cleaned) < length:
            return None
        if len(cleaned) > length and self.shift_heuristic and self._looks_shifted(cleaned):
            cleaned = cleaned[1:]
        return cleaned[:length]

    def _looks_shifted(self, cleaned: str) -> bool:
        check = self.grammar.shift_check_offset
        if check is None or check + 1 >= len(cleaned):
            return False
        return (
            cleaned[0] in self.leading_artifacts
            and cleaned[check] in self.grammar.letters
            and cleaned[check + 1] in self.grammar.digits
        )

    def correct(self, code: str) -> str:
        """Apply the confusion tables slot by slot; unknown characters stay as they are."""
        chars = list(code)
        for i, c in enumerate(chars):
            if self.grammar.is_letter_slot(i) and c in self.grammar.digits:
                chars[i] = self.digit_to_letter.get(c, c)
            elif self.grammar.is_digit_slot(i) and c in self.grammar.letters:
                chars[i] = self.letter_to_digit.get(c, c)
        return "".join(chars)

    def normalize_text(self, raw_text: str) -> str:
        """Canonical code for raw_text, or "" when it cannot be repaired."""
        fitted = self.fit_length(self.clean(raw_text))
        if fitted is None:
            return ""
        corrected = self.correct(fitted)
        if not self.grammar.matches(corrected):
            logging.debug(f"Normalizer rejected '{raw_text}' (corrected to '{corrected}')")
            return ""
        return corrected

    def normalize(self, raw_text: str, confidence: float = 0.0, started: Optional[float] = None) -> RecognitionResult:
        """
        Build the RecognitionResult for one recognizer read.

        Args:
            raw_text: Text returned by the recognizer.
            confidence: Recognizer confidence (0-1).
            started: perf_counter() value from before recognition, used to
                     report the total processing time.
        """
        if started is None:
            started = time.perf_counter()
        processed = self.normalize_text(raw_text)
        return RecognitionResult(
            raw_text=raw_text or "",
            processed_text=processed,
            confidence=confidence,
            is_valid=bool(processed),
            processing_time=time.perf_counter() - started,
        )

    def is_canonical(self, code: str) -> bool:
        return self.grammar.matches(code)

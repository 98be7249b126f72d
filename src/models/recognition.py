"""
RecognitionResult model for one read of a plate region.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RecognitionResult:
    """
    Outcome of recognizing and normalizing one plate crop.

    Attributes:
        raw_text: Text exactly as the recognizer returned it.
        processed_text: Canonical code, or "" when the read was rejected.
        confidence: Recognizer confidence (0-1).
        is_valid: True only when processed_text matches the plate grammar.
        processing_time: Seconds spent in recognition + normalization.
    """
    raw_text: str
    processed_text: str
    confidence: float = 0.0
    is_valid: bool = False
    processing_time: float = 0.0

    def __str__(self) -> str:
        return f"OCR: '{self.processed_text}' (raw: '{self.raw_text}', conf: {self.confidence:.1%})"

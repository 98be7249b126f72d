"""
Recognizer interface.

A recognizer reads the text off a cropped plate region. It knows nothing about
plate grammars; canonicalization happens in the normalizer.
"""

from __future__ import annotations

from typing import Protocol, Tuple

import numpy as np


class Recognizer(Protocol):
    def read(self, region_image: np.ndarray) -> Tuple[str, float]:
        """Return (raw_text, confidence) with confidence in 0-1."""
        ...

    def close(self) -> None:
        ...

"""
Recognition module.

Reads plate text from cropped regions and canonicalizes it against the plate
grammar.
"""

from .base import Recognizer
from .grammar import DIGIT_TO_LETTER, LETTER_TO_DIGIT, PlateGrammar
from .normalizer import CodeNormalizer

__all__ = [
    "Recognizer",
    "PlateGrammar",
    "CodeNormalizer",
    "DIGIT_TO_LETTER",
    "LETTER_TO_DIGIT",
]

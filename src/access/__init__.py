"""
Access module.

Registry matching, edit distance and decision cooldown.
"""

from .cooldown import CooldownLedger
from .distance import levenshtein
from .resolver import AccessResolver, VehicleRegistry

__all__ = ["AccessResolver", "CooldownLedger", "VehicleRegistry", "levenshtein"]

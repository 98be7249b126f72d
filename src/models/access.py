"""
Registry and access decision models.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

# Reason strings carried by every AccessDecision
REASON_REGISTERED = "registered"
REASON_APPROXIMATE = "registered (approximate match)"
REASON_UNREGISTERED = "unregistered"
REASON_LOOKUP_FAILED = "lookup failed"

UNKNOWN_VEHICLE_INFO = "unknown"


@dataclass(frozen=True)
class RegistryEntry:
    """
    A vehicle registered for access.

    Attributes:
        entry_id: Registry primary key (also the fuzzy-match tie-breaker).
        code: Canonical plate code.
        owner_name: Name of the vehicle owner.
        vehicle_model: Vehicle model description.
        vehicle_color: Optional colour.
        active: Inactive entries never authorize access.
        registered_at: Unix timestamp of registration.
    """
    entry_id: int
    code: str
    owner_name: str
    vehicle_model: str = ""
    vehicle_color: Optional[str] = None
    active: bool = True
    registered_at: Optional[float] = None

    @property
    def info(self) -> str:
        """Human-readable owner/vehicle summary, e.g. "Carlos - Civic"."""
        if self.vehicle_model:
            return f"{self.owner_name} - {self.vehicle_model}"
        return self.owner_name


@dataclass(frozen=True)
class AccessDecision:
    """
    Final authorize/deny outcome for one recognized plate.

    Attributes:
        code: Normalized plate code that was resolved.
        authorized: Whether access is granted.
        info: Owner/vehicle summary, "unknown" or the lookup error.
        reason: One of the REASON_* strings.
        timestamp: Unix timestamp of the decision.
        matched_code: Registry code the plate resolved to, if any.
        distance: Edit distance to matched_code (0 for exact matches).
        match_confidence: 100 for exact, lower for approximate, 0 for none.
    """
    code: str
    authorized: bool
    info: str
    reason: str
    timestamp: float
    matched_code: Optional[str] = None
    distance: Optional[int] = None
    match_confidence: int = 0

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "code": self.code,
            "authorized": self.authorized,
            "info": self.info,
            "reason": self.reason,
            "timestamp": self.timestamp,
            "matched_code": self.matched_code,
            "distance": self.distance,
            "match_confidence": self.match_confidence,
        }

    def __str__(self) -> str:
        status = "AUTHORIZED" if self.authorized else "DENIED"
        return f"{status} - plate: {self.code}, reason: {self.reason}, info: {self.info}"

"""
Access resolver: maps a normalized plate code to an access decision.

Lookup order is exact match, then closest approximate match within the edit
distance budget, then deny. Every decision passes through the cooldown ledger
before it is returned.
"""

from __future__ import annotations

import logging
import time
from typing import List, Optional, Protocol, Tuple

from models.access import (
    REASON_APPROXIMATE,
    REASON_LOOKUP_FAILED,
    REASON_REGISTERED,
    REASON_UNREGISTERED,
    UNKNOWN_VEHICLE_INFO,
    AccessDecision,
    RegistryEntry,
)
from .cooldown import CooldownLedger
from .distance import levenshtein


class VehicleRegistry(Protocol):
    def find_exact(self, code: str) -> Optional[RegistryEntry]:
        ...

    def find_all_active(self) -> List[RegistryEntry]:
        ...

    def log_decision(self, decision: AccessDecision) -> bool:
        ...


class AccessResolver:
    """
    Decides whether a plate is authorized.

    resolve() never raises: a registry failure becomes an unauthorized
    "lookup failed" decision.

    Example:
        resolver = AccessResolver(registry, CooldownLedger(15.0, 60.0))
        decision = resolver.resolve("POX4G21")
        if decision is None:
            ...  # suppressed by cooldown
    """

    def __init__(
        self,
        registry: VehicleRegistry,
        cooldown: Optional[CooldownLedger] = None,
        max_edit_distance: int = 3,
    ):
        self.registry = registry
        self.cooldown = cooldown if cooldown is not None else CooldownLedger()
        self.max_edit_distance = max_edit_distance
        self.suppressed_count = 0

    def resolve(self, code: str, now: Optional[float] = None) -> Optional[AccessDecision]:
        """
        Resolve a normalized code.

        Args:
            code: Canonical plate code.
            now: Decision time (defaults to time.time()).

        Returns:
            The decision, or None when the plate is still in cooldown.
        """
        now = time.time() if now is None else now
        decision = self.lookup(code, now)

        key = decision.matched_code or decision.code
        if not self.cooldown.try_acquire(key, now):
            self.suppressed_count += 1
            logging.debug(f"Decision for {key} suppressed (cooldown {self.cooldown.window}s)")
            return None
        return decision

    def lookup(self, code: str, now: float) -> AccessDecision:
        """Registry lookup without cooldown."""
        try:
            entry = self.registry.find_exact(code)
            if entry is not None and entry.active:
                return AccessDecision(
                    code=code,
                    authorized=True,
                    info=entry.info,
                    reason=REASON_REGISTERED,
                    timestamp=now,
                    matched_code=entry.code,
                    distance=0,
                    match_confidence=100,
                )

            best = self.closest_match(code, self.registry.find_all_active())
        except Exception as e:
            logging.warning(f"Registry lookup failed for {code}: {e}")
            return AccessDecision(
                code=code,
                authorized=False,
                info=str(e),
                reason=REASON_LOOKUP_FAILED,
                timestamp=now,
            )

        if best is not None:
            entry, distance = best
            return AccessDecision(
                code=code,
                authorized=True,
                info=entry.info,
                reason=REASON_APPROXIMATE,
                timestamp=now,
                matched_code=entry.code,
                distance=distance,
                match_confidence=self._confidence(code, distance),
            )

        return AccessDecision(
            code=code,
            authorized=False,
            info=UNKNOWN_VEHICLE_INFO,
            reason=REASON_UNREGISTERED,
            timestamp=now,
        )

    def closest_match(self, code: str, entries: List[RegistryEntry]) -> Optional[Tuple[RegistryEntry, int]]:
        """
        Nearest active entry within max_edit_distance.

        Ties on distance go to the lowest registry id.
        """
        best: Optional[Tuple[RegistryEntry, int]] = None
        for entry in entries:
            if not entry.active:
                continue
            d = levenshtein(code, entry.code)
            if d > self.max_edit_distance:
                continue
            if best is None or (d, entry.entry_id) < (best[1], best[0].entry_id):
                best = (entry, d)
        return best

    @staticmethod
    def _confidence(code: str, distance: int) -> int:
        if not code:
            return 0
        return max(0, int(round(100 * (1 - distance / len(code)))))

    def prune(self, now: Optional[float] = None) -> int:
        """Drop cooldown records past their retention."""
        return self.cooldown.prune(now)

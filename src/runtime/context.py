from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

from models.config import Config


@dataclass
class RuntimeContext:
    """Holds the external collaborators the engine uses; avoids global singletons."""

    config: Config
    db: Any
    detector: Any
    recognizer: Any
    source: Any = None
    channel: Any = None

    # Release failures from the last teardown, as (resource, error text)
    release_errors: List[Tuple[str, str]] = field(default_factory=list)

    def release_all(self) -> List[Tuple[str, str]]:
        """
        Release the channel, source, detector, recognizer and registry.

        Each release is attempted even if an earlier one failed. Failures are
        logged and returned, never raised.
        """
        self.release_errors = []
        # Channel first so observers drain while the rest is still open
        for name, resource in (
            ("channel", self.channel),
            ("source", self.source),
            ("detector", self.detector),
            ("recognizer", self.recognizer),
            ("registry", self.db),
        ):
            error = _release(name, resource)
            if error is not None:
                self.release_errors.append((name, error))
        return list(self.release_errors)


def _release(name: str, resource: Any) -> Optional[str]:
    if resource is None:
        return None
    close = getattr(resource, "close", None)
    if close is None:
        return None
    try:
        close()
    except Exception as e:
        logging.warning(f"Error releasing {name}: {e}")
        return str(e)
    logging.debug(f"Released {name}")
    return None

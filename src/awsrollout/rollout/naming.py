"""Collision-resistant deployment names."""

import re
import threading
from typing import Dict, Optional

from .models import Target

MAX_NAME_LENGTH = 128
_INVALID_CHARS = re.compile(r"[^A-Za-z0-9-]+")


def sanitize_name(name: str, max_length: int = MAX_NAME_LENGTH) -> str:
    """Make a name valid for CloudFormation: a leading letter, [A-Za-z0-9-] only."""
    cleaned = _INVALID_CHARS.sub("-", name).strip("-")
    cleaned = re.sub(r"-{2,}", "-", cleaned)
    if not cleaned or not cleaned[0].isalpha():
        cleaned = f"r-{cleaned}".rstrip("-")
    return cleaned[:max_length]


class UniqueNameGenerator:
    """Derives deployment names per target.

    The first name for a target is its deterministic base name
    ``{prefix}-{account_id}-{region}``, so a re-run finds and updates the
    same deployment. Each further call for the same target appends a
    monotonically increasing suffix. Account and region are part of every
    name, so two targets can never be given the same name.
    """

    def __init__(self, prefix: str = "rollout", run_stamp: Optional[str] = None):
        """Initialize the generator.

        Args:
            prefix: Leading part of every name
            run_stamp: Optional stamp (timestamp or counter) included in base names
        """
        self.prefix = prefix
        self.run_stamp = run_stamp
        self._counters: Dict[Target, int] = {}
        self._lock = threading.Lock()

    def base_name(self, target: Target) -> str:
        """Get the deterministic base name for a target."""
        parts = [self.prefix, target.account_id, target.region]
        if self.run_stamp:
            parts.append(self.run_stamp)
        return sanitize_name("-".join(parts))

    def next_name(self, target: Target) -> str:
        """Get the next name for a target.

        Args:
            target: Target to name

        Returns:
            The base name on the first call, then base name plus ``-2``, ``-3`` ...
        """
        with self._lock:
            count = self._counters.get(target, 0) + 1
            self._counters[target] = count

        base = self.base_name(target)
        if count == 1:
            return base

        suffix = f"-{count}"
        return base[: MAX_NAME_LENGTH - len(suffix)] + suffix

    def reset(self, target: Optional[Target] = None) -> None:
        """Forget issued names for one target, or for all targets."""
        with self._lock:
            if target is None:
                self._counters.clear()
            else:
                self._counters.pop(target, None)

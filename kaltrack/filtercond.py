"""Filter conditions deciding whether a site is accepted by the Kalman filter."""

from __future__ import annotations

from typing import Any


class FilterCondition:
    """Default filter condition: every site is accepted.

    Subclasses override is_accepted to impose their own cuts.
    """

    def is_accepted(self, site: Any) -> bool:
        """Return True if the site is acceptable."""
        return True
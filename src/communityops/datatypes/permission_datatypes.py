"""
Permission tiers used to gate every staff command.

The tiers form a total order, most privileged first. Their values are the
human-readable labels used both in configuration files and as the literal
role names the resolver falls back to when no role id is configured.
"""

from __future__ import annotations

from enum import Enum


class PermissionLevel(Enum):
    """Ordered staff hierarchy; index 0 is the most privileged tier."""

    HEAD_ADMINISTRATION = "Head Administration"
    SENIOR_ADMINISTRATION = "Senior Administration"
    ADMINISTRATION = "Administration"
    JUNIOR_ADMINISTRATION = "Junior Administration"
    SENIOR_STAFF = "Senior Staff"
    STAFF = "Staff"
    STAFF_IN_TRAINING = "Staff In Training"
    MEMBER = "Member"

    def __str__(self) -> str:
        return self.value

    @property
    def rank(self) -> int:
        """Position in the hierarchy, 0 being the most privileged."""
        return ROLE_HIERARCHY.index(self)

    def at_least(self, required: PermissionLevel) -> bool:
        """Return True when this level is as privileged as ``required`` or more."""
        return self.rank <= required.rank

    @classmethod
    def from_label(cls, label: str) -> PermissionLevel | None:
        """Look up a level by its label or enum name, ignoring case and separators.

        ``"Senior Staff"``, ``"SENIOR_STAFF"`` and ``"seniorstaff"`` all map to
        :attr:`SENIOR_STAFF`. Unknown labels return ``None``.
        """
        needle = _normalise(label)
        for level in cls:
            if needle in (_normalise(level.value), _normalise(level.name)):
                return level
        return None


def _normalise(label: str) -> str:
    return "".join(ch for ch in label.lower() if ch.isalnum())


ROLE_HIERARCHY: tuple[PermissionLevel, ...] = tuple(PermissionLevel)

"""
Data structures for Internal Affairs (IA) cases.

An IA case suspends a user's roles in every guild while an investigation runs
in a private channel. The role snapshot captured when the case is opened is
the only source used to restore roles when it is closed.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from communityops.datatypes.action_datatypes import CrossGuildOutcome


class IACaseStatus(Enum):
    """Lifecycle state of a case. ``CLOSED`` is terminal."""

    OPEN = "open"
    CLOSED = "closed"

    def __str__(self) -> str:
        return self.value


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class IACase:
    """A single IA case record.

    Attributes:
        user_id: Target of the case
        opened_by: Staff member who opened the case
        opened_at: When the case was opened (UTC)
        reason: Free-text reason given on open
        channel_id: Private case channel, ``None`` if creating it failed
        guild_roles: Guild id -> role ids stripped in that guild on open
        status: ``open`` or ``closed``
        closed_by / closed_at / close_reason: Filled in once, on close
        case_id: Store-assigned identifier, ``None`` until persisted
    """
    user_id: int
    opened_by: int
    opened_at: datetime
    reason: str
    channel_id: Optional[int]
    guild_roles: Dict[int, List[int]] = field(default_factory=dict)
    status: IACaseStatus = IACaseStatus.OPEN
    closed_by: Optional[int] = None
    closed_at: Optional[datetime] = None
    close_reason: Optional[str] = None
    case_id: Optional[int] = None

    @property
    def is_open(self) -> bool:
        return self.status is IACaseStatus.OPEN

    def closed(self, closed_by: int, closed_at: datetime, close_reason: str) -> IACase:
        """Return the closed copy of this case."""
        if not self.is_open:
            raise ValueError("A closed IA case cannot be closed again.")
        return replace(
            self,
            status=IACaseStatus.CLOSED,
            closed_by=closed_by,
            closed_at=closed_at,
            close_reason=close_reason,
        )


@dataclass(frozen=True, slots=True)
class CaseClosureUpdate:
    """Fields written to a case when it is closed."""
    closed_by: int
    closed_at: datetime
    close_reason: str


@dataclass(slots=True)
class GuildRoleRestore:
    """Per-guild accounting of a role restoration.

    Every role id from the snapshot ends up in exactly one of the three lists.
    """
    guild_id: int
    restored: List[int] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)


@dataclass(slots=True)
class IACaseOpenResult:
    """Summary returned by ``IACaseManager.open_case``."""
    case: IACase
    affected_guilds: int
    errors: int
    outcomes: List[CrossGuildOutcome] = field(default_factory=list)
    channel_error: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.errors > 0 or self.channel_error is not None


@dataclass(slots=True)
class IACaseCloseResult:
    """Summary returned by ``IACaseManager.close_case``."""
    case: IACase
    restored_guilds: int
    errors: int
    restores: List[GuildRoleRestore] = field(default_factory=list)
    outcomes: List[CrossGuildOutcome] = field(default_factory=list)
    channel_error: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.errors > 0 or self.channel_error is not None

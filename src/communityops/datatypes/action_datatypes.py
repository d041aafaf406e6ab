"""
Action types and result records for cross-guild moderation.

This module defines the GuildActionType enum, the GuildAction descriptor handed
to the coordinator, and the per-guild CrossGuildOutcome records it returns.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

DEFAULT_REASON = "No reason provided"
MAX_NICKNAME_LENGTH = 32


class GuildActionType(Enum):
    """Enumeration of actions that can be fanned out across guilds."""

    BAN = "ban"
    UNBAN = "unban"
    KICK = "kick"
    SET_NICKNAME = "set_nickname"

    def __str__(self) -> str:
        return self.value

    @property
    def requires_membership(self) -> bool:
        """Kick and nickname changes act on a member; bans act on a bare user id."""
        return self in (GuildActionType.KICK, GuildActionType.SET_NICKNAME)


@dataclass(frozen=True, slots=True)
class GuildAction:
    """Descriptor of one logical action to apply in every guild.

    Attributes:
        action: Type of action to perform
        reason: Audit-log reason attached to every guild's request
        nickname: New nickname, only meaningful for SET_NICKNAME
    """
    action: GuildActionType
    reason: str = DEFAULT_REASON
    nickname: Optional[str] = None

    def __post_init__(self) -> None:
        if self.action is GuildActionType.SET_NICKNAME:
            if self.nickname is None or not 1 <= len(self.nickname) <= MAX_NICKNAME_LENGTH:
                raise ValueError(
                    f"Nickname must be between 1 and {MAX_NICKNAME_LENGTH} characters."
                )


@dataclass(frozen=True, slots=True)
class CrossGuildOutcome:
    """Result of one guild's attempt at a fanned-out action."""
    guild_id: int
    ok: bool
    message: Optional[str] = None

    @classmethod
    def success(cls, guild_id: int) -> CrossGuildOutcome:
        return cls(guild_id=guild_id, ok=True)

    @classmethod
    def failure(cls, guild_id: int, message: str) -> CrossGuildOutcome:
        return cls(guild_id=guild_id, ok=False, message=message or "Unknown error")


@dataclass(frozen=True, slots=True)
class OutcomeSummary:
    """Success/failure counts derived from a list of outcomes."""
    succeeded: int
    failed: int

    @classmethod
    def from_outcomes(cls, outcomes: Iterable[CrossGuildOutcome]) -> OutcomeSummary:
        outcomes = list(outcomes)
        succeeded = sum(1 for outcome in outcomes if outcome.ok)
        return cls(succeeded=succeeded, failed=len(outcomes) - succeeded)

    @property
    def total(self) -> int:
        return self.succeeded + self.failed

    def describe(self) -> str:
        return f"Operation complete. Success: {self.succeeded}. Failed: {self.failed}."

"""
Allocation review protocol.

An allocation request lives entirely in a review message: an embed with the
applicant's profile fields and two buttons whose custom ids carry the decision
and the applicant's user id (``alloc:approve:<id>`` / ``alloc:deny:<id>``).
A Senior Staff (or higher) reviewer moves the request from pending to approved
or denied exactly once; the front end then freezes the message by removing
its buttons.

Approving grants the configured recruit role to the applicant and sends them
a direct message. A failed direct message is reported but does not undo the
approval.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

import discord

from communityops.configuration.bot_settings import BotSettings
from communityops.datatypes.permission_datatypes import PermissionLevel
from communityops.moderation.exceptions import AllocationReviewError, PermissionDeniedError
from communityops.permissions.permission_resolver import PermissionResolver
from communityops.util.discord_utils import describe_exception, fetch_member_or_none
from communityops.util.logger import get_logger

logger = get_logger("allocation_review")

CUSTOM_ID_PREFIX = "alloc"
REVIEWER_LEVEL = PermissionLevel.SENIOR_STAFF

# Embed field names, shared by the review embed, the approval DM and /rec-onboard
FIELD_APPLICANT = "Applicant"
FIELD_NAME = "Name"
FIELD_ONBOARDER = "Onboarder"
FIELD_REQUESTED_DATE = "Requested Date"
FIELD_TS3 = "Teamspeak UID"
FIELD_WEBSITE_ID = "Website ID"
FIELD_STEAM_HEX = "Steam Hex"


class AllocationDecision(Enum):
    APPROVE = "approve"
    DENY = "deny"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class AllocationReviewKey:
    """Decision and applicant encoded in a review button's custom id."""
    decision: AllocationDecision
    applicant_id: int

    def to_custom_id(self) -> str:
        return f"{CUSTOM_ID_PREFIX}:{self.decision.value}:{self.applicant_id}"

    @classmethod
    def parse(cls, custom_id: Optional[str]) -> Optional[AllocationReviewKey]:
        """Decode a custom id; anything that is not a review button yields None."""
        if not custom_id:
            return None
        parts = custom_id.split(":")
        if len(parts) != 3 or parts[0] != CUSTOM_ID_PREFIX:
            return None
        try:
            decision = AllocationDecision(parts[1])
            applicant_id = int(parts[2])
        except ValueError:
            return None
        return cls(decision=decision, applicant_id=applicant_id)


@dataclass(frozen=True, slots=True)
class AllocationRequest:
    """Profile submitted with ``/allocation-request``."""
    applicant_id: int
    name: str
    onboarder_id: int
    requested_date: str
    ts3_uid: str
    website_id: str
    steam_hex: str

    def review_keys(self) -> tuple[AllocationReviewKey, AllocationReviewKey]:
        return (
            AllocationReviewKey(AllocationDecision.APPROVE, self.applicant_id),
            AllocationReviewKey(AllocationDecision.DENY, self.applicant_id),
        )


@dataclass(slots=True)
class AllocationReviewResult:
    decision: AllocationDecision
    applicant_id: int
    reviewer_id: int
    role_granted: bool = False
    applicant_notified: bool = False
    notification_error: Optional[str] = None


def embed_field_lookup(embed: Optional[discord.Embed]) -> dict[str, str]:
    """Map lower-cased field names of an embed to their stripped values."""
    if embed is None:
        return {}
    return {
        (field.name or "").strip().lower(): (field.value or "").strip()
        for field in embed.fields
    }


def field_value(fields: Mapping[str, str], name: str, default: str = "N/A") -> str:
    return fields.get(name.lower()) or default


class AllocationReviewService:
    """Apply reviewer decisions to allocation requests."""

    def __init__(self, settings: BotSettings, resolver: PermissionResolver) -> None:
        self._settings = settings
        self._resolver = resolver

    def ensure_reviewer(self, reviewer: Optional[discord.Member]) -> None:
        if reviewer is None or not self._resolver.satisfies(reviewer, REVIEWER_LEVEL):
            raise PermissionDeniedError("Senior Staff or higher is required to review allocation requests.")

    async def decide(
        self,
        guild: discord.Guild,
        reviewer: Optional[discord.Member],
        key: AllocationReviewKey,
        approval_dm: Optional[discord.Embed] = None,
    ) -> AllocationReviewResult:
        """Apply one decision.

        Parameters
        ----------
        guild:
            Guild the review message lives in.
        reviewer:
            Member who pressed the button.
        key:
            Decision and applicant decoded from the button.
        approval_dm:
            Embed sent to the applicant on approval.

        Raises
        ------
        PermissionDeniedError
            The reviewer is below Senior Staff.
        ConfigurationError
            Approving without a configured recruit role.
        AllocationReviewError
            The applicant left the guild or the role could not be granted.
        """
        self.ensure_reviewer(reviewer)
        result = AllocationReviewResult(
            decision=key.decision,
            applicant_id=key.applicant_id,
            reviewer_id=reviewer.id,
        )

        if key.decision is AllocationDecision.DENY:
            logger.info("[ALLOCATION] Request of %s denied by %s", key.applicant_id, reviewer.id)
            return result

        recruit_role_id = self._settings.require_recruit_role_id()

        applicant = await fetch_member_or_none(guild, key.applicant_id)
        if applicant is None:
            raise AllocationReviewError("Not Found", "The applicant is not present in this server.")

        try:
            await applicant.add_roles(
                discord.Object(id=recruit_role_id),
                reason=f"Allocation approved by {reviewer}",
            )
        except Exception as exc:
            logger.warning(
                "[ALLOCATION] Could not grant recruit role to %s in guild %s: %s",
                key.applicant_id,
                guild.id,
                describe_exception(exc),
            )
            raise AllocationReviewError(
                "Role Assignment Failed",
                "Unable to assign the recruit role. Verify role hierarchy and permissions.",
            ) from exc
        result.role_granted = True

        if approval_dm is not None:
            try:
                await applicant.send(embed=approval_dm)
                result.applicant_notified = True
            except Exception as exc:
                result.notification_error = describe_exception(exc)
                logger.info("[ALLOCATION] Could not DM applicant %s: %s", key.applicant_id, result.notification_error)

        logger.info("[ALLOCATION] Request of %s approved by %s", key.applicant_id, reviewer.id)
        return result

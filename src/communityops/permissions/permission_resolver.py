"""
Permission resolution from role membership.

A member's permission level is found by walking the hierarchy from the most to
the least privileged tier and, for each tier, checking three layered sources:

1. the per-guild override table (guild id -> level -> role id),
2. the global default table (level -> role id),
3. a role literally named after the level (e.g. "Senior Staff").

Each source is scanned across the whole hierarchy before the next source is
consulted: the first source with any match decides the level, and within that
source the most privileged matching tier wins.
Resolution is pure: it only looks at the role ids and names passed in.
"""

from __future__ import annotations

from typing import AbstractSet, Iterable, Mapping, Optional, Protocol

from communityops.configuration.bot_settings import BotSettings
from communityops.datatypes.permission_datatypes import ROLE_HIERARCHY, PermissionLevel


class _RoleLike(Protocol):
    id: int
    name: str


def _first_level_by_id(
    level_roles: Mapping[PermissionLevel, int],
    role_ids: AbstractSet[int],
) -> Optional[PermissionLevel]:
    for level in ROLE_HIERARCHY:
        role_id = level_roles.get(level)
        if role_id is not None and role_id in role_ids:
            return level
    return None


def resolve_level_from_roles(
    guild_id: int,
    role_ids: Iterable[int],
    role_names: Iterable[str],
    guild_overrides: Mapping[int, Mapping[PermissionLevel, int]],
    default_role_ids: Mapping[PermissionLevel, int],
) -> Optional[PermissionLevel]:
    """Resolve the highest permission level for a set of roles in one guild.

    Returns ``None`` when none of the three sources match.
    """
    held_ids = frozenset(role_ids)

    overrides = guild_overrides.get(guild_id)
    if overrides:
        level = _first_level_by_id(overrides, held_ids)
        if level is not None:
            return level

    if default_role_ids:
        level = _first_level_by_id(default_role_ids, held_ids)
        if level is not None:
            return level

    held_names = frozenset(role_names)
    for level in ROLE_HIERARCHY:
        if level.value in held_names:
            return level
    return None


class PermissionResolver:
    """Resolve member permission levels using the configured role tables."""

    def __init__(self, settings: BotSettings) -> None:
        self._overrides = settings.permission_role_ids
        self._defaults = settings.default_role_ids

    def resolve_level(self, member) -> Optional[PermissionLevel]:
        """Return the member's highest permission level, or ``None``.

        Parameters
        ----------
        member:
            A guild member; only ``member.guild.id`` and ``member.roles``
            (objects with ``id`` and ``name``) are read.
        """
        roles: list[_RoleLike] = list(getattr(member, "roles", None) or [])
        return resolve_level_from_roles(
            guild_id=member.guild.id,
            role_ids=(role.id for role in roles),
            role_names=(role.name for role in roles),
            guild_overrides=self._overrides,
            default_role_ids=self._defaults,
        )

    def satisfies(self, member, required: PermissionLevel) -> bool:
        """Return True when the member's level is at least ``required``.

        A member with no resolvable level never satisfies any requirement.
        """
        if member is None:
            return False
        level = self.resolve_level(member)
        if level is None:
            return False
        return level.at_least(required)

"""
Static table of every slash command the bot exposes.

The table is built once at import time and shared by the command gate (main
guild restriction and permission level) and by ``/help``. Cogs are loaded from
an explicit list in :func:`communityops.main.load_cogs`.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Iterable, List, Mapping, Optional

from communityops.datatypes.permission_datatypes import PermissionLevel


@dataclass(frozen=True, slots=True)
class CommandSpec:
    """Routing metadata of one command.

    Attributes:
        name: Slash command name without the leading slash
        description: Text shown in Discord's command picker
        required_level: Minimum level to run the command; None means everyone
        allow_all_guilds: Whether the command works outside the main guild
    """
    name: str
    description: str
    required_level: Optional[PermissionLevel] = None
    allow_all_guilds: bool = False


_SPECS: tuple[CommandSpec, ...] = (
    CommandSpec("gban", "Globally bans a user from all guilds the bot is in.", PermissionLevel.ADMINISTRATION),
    CommandSpec("guban", "Globally unbans a user from all guilds the bot is in.", PermissionLevel.JUNIOR_ADMINISTRATION),
    CommandSpec("gkick", "Globally kicks a user from all guilds the bot is in.", PermissionLevel.SENIOR_STAFF),
    CommandSpec("mnick", "Updates a nickname across all Magonila Project guilds.", PermissionLevel.MEMBER),
    CommandSpec("ia", "Open or close an Internal Affairs case.", PermissionLevel.SENIOR_STAFF),
    CommandSpec("allocation-request", "Submits an allocation request for review by Senior Staff+."),
    CommandSpec("rec-onboard", "Assign the Recruit role to a user (Staff+).", PermissionLevel.STAFF),
    CommandSpec(
        "onboard",
        "Onboard a Recruit into the community (sets nickname, removes Recruit, assigns department).",
        PermissionLevel.STAFF,
    ),
    CommandSpec(
        "lockchannel",
        "Lock or unlock the current channel for @everyone (Staff In Training+).",
        PermissionLevel.STAFF_IN_TRAINING,
    ),
    CommandSpec(
        "purge",
        "Bulk delete a number of recent messages in this channel (<= 100, < 14 days).",
        PermissionLevel.STAFF_IN_TRAINING,
    ),
    CommandSpec("help", "Show commands available to you based on your permission level.", allow_all_guilds=True),
)


class CommandRegistry:
    """Read-only lookup of :class:`CommandSpec` by command name."""

    def __init__(self, specs: Iterable[CommandSpec] = _SPECS) -> None:
        table = {}
        for spec in specs:
            if spec.name in table:
                raise ValueError(f"Duplicate command name: {spec.name}")
            table[spec.name] = spec
        self._specs: Mapping[str, CommandSpec] = MappingProxyType(table)

    def __len__(self) -> int:
        return len(self._specs)

    def __contains__(self, name: object) -> bool:
        return name in self._specs

    def get(self, name: str) -> CommandSpec:
        return self._specs[name]

    def all(self) -> List[CommandSpec]:
        return list(self._specs.values())

    def available(self, in_main_guild: bool) -> List[CommandSpec]:
        return [spec for spec in self._specs.values() if in_main_guild or spec.allow_all_guilds]

    def everyone_commands(self, in_main_guild: bool) -> List[str]:
        """Names of commands with no level requirement, sorted."""
        return sorted(spec.name for spec in self.available(in_main_guild) if spec.required_level is None)

    def accessible_commands(
        self,
        in_main_guild: bool,
        allows: Callable[[PermissionLevel], bool],
    ) -> List[str]:
        """Names of commands the caller may run, sorted.

        ``allows`` answers whether the caller satisfies a given level.
        """
        return sorted(
            spec.name
            for spec in self.available(in_main_guild)
            if spec.required_level is None or allows(spec.required_level)
        )


COMMAND_REGISTRY = CommandRegistry()

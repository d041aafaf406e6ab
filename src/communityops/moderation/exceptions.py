"""Typed failures raised by the moderation core.

Per-guild failures are never raised; they are recorded as outcomes. The
exceptions below are preconditions or configuration problems detected before
any guild is touched.
"""


class CommunityOpsError(Exception):
    """Base class for every error the core reports to the front end."""

    title = "Error"


class ConfigurationError(CommunityOpsError):
    """A required setting (role, channel, guild) is not configured."""

    title = "Configuration Error"


class InvalidTargetError(CommunityOpsError):
    """The target of an action is the invoking user or the bot itself."""

    title = "Invalid Target"


class PermissionDeniedError(CommunityOpsError):
    """The acting member does not hold the required permission level."""

    title = "Insufficient Permission"


class CommandUnavailableError(CommunityOpsError):
    """The command cannot run in this context (wrong guild, DMs, channel type)."""

    title = "Unavailable"

    def __init__(self, message: str, title: str = "Unavailable") -> None:
        super().__init__(message)
        self.title = title


class CaseExistsError(CommunityOpsError):
    """An open IA case already exists for the target user."""

    title = "Case Exists"

    def __init__(self, user_id: int) -> None:
        super().__init__("There is already an active IA case for this user.")
        self.user_id = user_id


class NoActiveCaseError(CommunityOpsError):
    """No open IA case exists for the target user."""

    title = "No Active Case"

    def __init__(self, user_id: int) -> None:
        super().__init__("There is no active IA case for this user.")
        self.user_id = user_id


class AllocationReviewError(CommunityOpsError):
    """An allocation decision could not be applied."""

    def __init__(self, title: str, message: str) -> None:
        super().__init__(message)
        self.title = title

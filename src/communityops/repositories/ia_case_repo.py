"""
Persistent storage for IA case records.

Timestamps are stored as ISO-8601 strings in UTC. The role snapshot is stored
as a JSON object mapping guild ids (as strings) to lists of role ids.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Dict, List, Optional

import aiosqlite

from communityops.datatypes.ia_case_datatypes import CaseClosureUpdate, IACase, IACaseStatus
from communityops.util.logger import get_logger

logger = get_logger("ia_case_repo")

_COLUMNS = (
    "id, user_id, opened_by, opened_at, reason, channel_id, guild_roles, "
    "status, closed_by, closed_at, close_reason"
)


def encode_guild_roles(guild_roles: Dict[int, List[int]]) -> str:
    return json.dumps({str(guild_id): [int(r) for r in role_ids] for guild_id, role_ids in guild_roles.items()})


def decode_guild_roles(raw: Optional[str]) -> Dict[int, List[int]]:
    try:
        parsed = json.loads(raw or "{}")
    except json.JSONDecodeError:
        logger.error("[IA CASE REPO] Unreadable role snapshot %r; treating it as empty", raw)
        return {}
    if not isinstance(parsed, dict):
        return {}
    return {int(guild_id): [int(r) for r in role_ids] for guild_id, role_ids in parsed.items()}


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def row_to_case(row) -> IACase:
    return IACase(
        case_id=row[0],
        user_id=int(row[1]),
        opened_by=int(row[2]),
        opened_at=datetime.fromisoformat(row[3]),
        reason=row[4],
        channel_id=int(row[5]) if row[5] is not None else None,
        guild_roles=decode_guild_roles(row[6]),
        status=IACaseStatus(row[7]),
        closed_by=int(row[8]) if row[8] is not None else None,
        closed_at=_parse_timestamp(row[9]),
        close_reason=row[10],
    )


class IACaseRepo:
    """Low-level CRUD for the ``ia_cases`` table."""

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    async def insert(conn: aiosqlite.Connection, case: IACase) -> int:
        """Insert a case row and return its generated id."""
        cursor = await conn.execute(
            """
            INSERT INTO ia_cases (
                user_id, opened_by, opened_at, reason, channel_id, guild_roles,
                status, closed_by, closed_at, close_reason
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                case.user_id,
                case.opened_by,
                case.opened_at.isoformat(),
                case.reason,
                case.channel_id,
                encode_guild_roles(case.guild_roles),
                case.status.value,
                case.closed_by,
                case.closed_at.isoformat() if case.closed_at else None,
                case.close_reason,
            ),
        )
        return int(cursor.lastrowid)

    @staticmethod
    async def mark_closed(
        conn: aiosqlite.Connection,
        case_id: int,
        update: CaseClosureUpdate,
    ) -> bool:
        """Close an open row. Returns False if the row was not open anymore."""
        cursor = await conn.execute(
            """
            UPDATE ia_cases
               SET status = ?, closed_by = ?, closed_at = ?, close_reason = ?
             WHERE id = ? AND status = ?
            """,
            (
                IACaseStatus.CLOSED.value,
                update.closed_by,
                update.closed_at.isoformat(),
                update.close_reason,
                case_id,
                IACaseStatus.OPEN.value,
            ),
        )
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    async def find_open(conn: aiosqlite.Connection, user_id: int) -> Optional[IACase]:
        """Return the oldest open case for a user, if any."""
        cursor = await conn.execute(
            f"SELECT {_COLUMNS} FROM ia_cases WHERE user_id = ? AND status = ? ORDER BY id LIMIT 1",
            (user_id, IACaseStatus.OPEN.value),
        )
        row = await cursor.fetchone()
        return row_to_case(row) if row else None

    @staticmethod
    async def find_by_id(conn: aiosqlite.Connection, case_id: int) -> Optional[IACase]:
        cursor = await conn.execute(f"SELECT {_COLUMNS} FROM ia_cases WHERE id = ?", (case_id,))
        row = await cursor.fetchone()
        return row_to_case(row) if row else None

    @staticmethod
    async def list_for_user(conn: aiosqlite.Connection, user_id: int) -> List[IACase]:
        """Return every case for a user, newest first."""
        cursor = await conn.execute(
            f"SELECT {_COLUMNS} FROM ia_cases WHERE user_id = ? ORDER BY id DESC",
            (user_id,),
        )
        rows = await cursor.fetchall()
        return [row_to_case(row) for row in rows]

"""
Durable store for IA cases.

Exposes the contract the lifecycle manager depends on: look up the open case
for a user, create a case, and close the open case for a user. The store does
not enforce "one open case per user"; the lifecycle manager checks before it
creates.
"""

from __future__ import annotations

from dataclasses import replace
from typing import List, Optional

from communityops.database.db_connection import ConnectionManager, db_connection
from communityops.database.db_schema import SchemaManager
from communityops.datatypes.ia_case_datatypes import CaseClosureUpdate, IACase
from communityops.repositories.ia_case_repo import IACaseRepo
from communityops.util.logger import get_logger

logger = get_logger("ia_case_store")


class IACaseStore:
    """Case persistence backed by the shared SQLite connection."""

    def __init__(self, connection: ConnectionManager = db_connection) -> None:
        self._connection = connection

    async def initialize(self) -> None:
        """Create the schema; the connection must already be open."""
        async with self._connection.transaction() as conn:
            await SchemaManager.initialize_schema(conn)

    async def get_open_case(self, user_id: int) -> Optional[IACase]:
        async with self._connection.read() as conn:
            return await IACaseRepo.find_open(conn, user_id)

    async def create_case(self, case: IACase) -> IACase:
        """Persist a new case and return it with its store-assigned id."""
        async with self._connection.transaction() as conn:
            case_id = await IACaseRepo.insert(conn, case)
        logger.info("[IA CASE STORE] Created case %d for user %s", case_id, case.user_id)
        return replace(case, case_id=case_id)

    async def close_case(self, user_id: int, update: CaseClosureUpdate) -> Optional[IACase]:
        """Close the open case for ``user_id``.

        Returns the updated record, or ``None`` if the user has no open case.
        """
        async with self._connection.transaction() as conn:
            current = await IACaseRepo.find_open(conn, user_id)
            if current is None or current.case_id is None:
                return None
            if not await IACaseRepo.mark_closed(conn, current.case_id, update):
                return None
        logger.info("[IA CASE STORE] Closed case %d for user %s", current.case_id, user_id)
        return current.closed(update.closed_by, update.closed_at, update.close_reason)

    async def list_cases(self, user_id: int) -> List[IACase]:
        """Return every case recorded for a user, newest first."""
        async with self._connection.read() as conn:
            return await IACaseRepo.list_for_user(conn, user_id)

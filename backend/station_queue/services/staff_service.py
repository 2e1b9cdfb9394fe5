"""
Staff directory backed by the staff table.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from station_queue.models.staff import Staff
from station_queue.services.interfaces.staff_directory import StaffDirectory

UNKNOWN_STAFF = "Agent"


class DatabaseStaffDirectory(StaffDirectory):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def display_name(self, staff_id: Optional[str]) -> str:
        if not staff_id:
            return UNKNOWN_STAFF
        async with self._session_factory() as db:
            staff = await db.get(Staff, staff_id)
        if staff is None:
            return UNKNOWN_STAFF
        return staff.display_name or UNKNOWN_STAFF

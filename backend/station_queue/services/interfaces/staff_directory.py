"""
Staff directory interface.
Authentication lives elsewhere; the queue only needs a name for tickets.
"""

from abc import ABC, abstractmethod
from typing import Optional


class StaffDirectory(ABC):

    @abstractmethod
    async def display_name(self, staff_id: Optional[str]) -> str:
        """
        Resolve a staff id to the name printed on tickets.
        Unknown or missing ids resolve to a placeholder, never raise.
        """
        pass

"""
FastAPI dependencies shared by the route modules.
"""

from functools import lru_cache
from typing import Optional

from fastapi import Header

from station_queue.core.config import get_settings
from station_queue.db.session import AsyncSessionLocal
from station_queue.services.engine import QueueEngine, build_queue_engine


@lru_cache()
def get_queue_engine() -> QueueEngine:
    """Process-wide engine; tests swap it through ``app.dependency_overrides``."""
    return build_queue_engine(get_settings(), AsyncSessionLocal)


async def get_staff_id(x_staff_id: Optional[str] = Header(default=None, alias="X-Staff-Id")) -> Optional[str]:
    return x_staff_id or None

import asyncio
import logging
from typing import Callable, Optional, Union

from pymongo import DESCENDING

from ..configs import StoreSettings
from ..models import AvailabilityGate, CONVERSATION_INFO_TYPE
from ..schemas import StoreStats
from ..utils import now_iso

logger = logging.getLogger(__name__)

ERROR_MARKER = "error"

# Stats field -> filter counted across the whole collection
COUNT_QUERIES = {
    "totalDocuments": {},
    "conversations": {"documentType": CONVERSATION_INFO_TYPE},
    "userMessages": {"messageType": "user"},
    "botMessages": {"messageType": "bot"},
    "systemMessages": {"messageType": "system"},
}


def _as_count(value) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return 0


class StatsService:

    def __init__(self, gate: AvailabilityGate, settings: StoreSettings, clock: Optional[Callable[[], str]] = None):
        self.gate = gate
        self.settings = settings
        self.clock = clock or (lambda: now_iso(settings.timezone))

    async def _count(self, field: str, filters: dict) -> Union[int, str]:
        try:
            return await self.gate.store.count_items(filters)
        except Exception as e:
            logger.warning(f"Stats query for {field} failed: {e}")
            return ERROR_MARKER

    async def _recent_activity(self) -> Optional[str]:
        try:
            docs = await self.gate.store.query_items(
                {"messageType": {"$exists": True, "$ne": None}},
                fields=["timestamp"],
                sort=[("timestamp", DESCENDING)],
                limit=1,
            )
        except Exception as e:
            logger.warning(f"Stats query for recentActivity failed: {e}")
            return None
        return docs[0].get("timestamp") if docs else None

    async def get_stats(self) -> StoreStats:
        """
        Document counts per kind. Each count is its own query; a failed query marks
        its field with "error" and the rest are still reported.
        """
        info = self.gate.config_info()
        if not self.gate.is_available():
            return StoreStats(
                available=False,
                initialized=info["initialized"],
                database=info["database"],
                container=info["container"],
                partitionKey=info["partitionKey"],
                error=info["error"],
                timestamp=self.clock(),
            )

        fields = list(COUNT_QUERIES)
        *counts, recent_activity = await asyncio.gather(
            *(self._count(field, COUNT_QUERIES[field]) for field in fields),
            self._recent_activity(),
        )
        values = dict(zip(fields, counts))
        total_messages = sum(
            _as_count(values[field]) for field in ("userMessages", "botMessages", "systemMessages")
        )

        return StoreStats(
            available=True,
            initialized=info["initialized"],
            database=info["database"],
            container=info["container"],
            partitionKey=info["partitionKey"],
            totalMessages=total_messages,
            recentActivity=recent_activity,
            timestamp=self.clock(),
            **values,
        )

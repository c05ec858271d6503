import copy
import json
from datetime import datetime, timezone
from typing import Dict, List, Optional

from repository import MemberRepository, SeasonalStatsRepository

class InMemoryMemberRepository(MemberRepository):
    """
    MemberRepository backed by a plain list.
    Handy for rosters exported to JSON and for tests.
    """

    def __init__(self, members: Optional[List[dict]] = None):
        self._members: List[dict] = list(members or [])

    @classmethod
    def from_json(cls, path: str) -> "InMemoryMemberRepository":
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        # Accept either a bare list or {"members": [...]}
        if isinstance(data, dict):
            data = data.get("members", [])
        return cls(data)

    def get_all_members(self) -> List[dict]:
        return list(self._members)

    def find_member(self, name: str, server: str) -> Optional[dict]:
        name, server = name.lower(), server.lower()
        for member in self._members:
            if str(member.get("name", "")).lower() == name and str(member.get("server", "")).lower() == server:
                return member
        return None

class InMemorySeasonalStatsRepository(SeasonalStatsRepository):
    """SeasonalStatsRepository backed by a dict keyed by season."""

    def __init__(self):
        self._records: Dict[int, dict] = {}

    def save(self, stats: dict) -> dict:
        now = datetime.now(timezone.utc).isoformat()
        existing = self._records.get(stats["season"])
        created_at = existing["createdAt"] if existing else stats.get("createdAt", now)

        document = {**copy.deepcopy(stats), "lastUpdated": now, "createdAt": created_at}
        self._records[stats["season"]] = document
        return copy.deepcopy(document)

    def get(self, season: Optional[int] = None) -> Optional[dict]:
        if not self._records:
            return None
        if season is None:
            season = max(self._records)
        record = self._records.get(season)
        return copy.deepcopy(record) if record else None

    def get_all(self) -> List[dict]:
        return [copy.deepcopy(self._records[s]) for s in sorted(self._records, reverse=True)]

    def delete(self, season: int) -> bool:
        return self._records.pop(season, None) is not None

    def has(self, season: int) -> bool:
        return season in self._records

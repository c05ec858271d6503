from abc import ABC, abstractmethod
from typing import List, Optional

class MemberRepository(ABC):
    """Abstract repository for guild member documents."""

    @abstractmethod
    def get_all_members(self) -> List[dict]:
        """Get every stored member document."""
        pass

    @abstractmethod
    def find_member(self, name: str, server: str) -> Optional[dict]:
        """Get one member by name and server, compared case-insensitively."""
        pass

    def close(self):
        pass

class SeasonalStatsRepository(ABC):
    """Abstract repository for persisted guild season records, keyed by season number."""

    @abstractmethod
    def save(self, stats: dict) -> dict:
        """
        Upsert a season record.
        Stamps lastUpdated, keeps the first createdAt, returns the stored document.
        """
        pass

    @abstractmethod
    def get(self, season: Optional[int] = None) -> Optional[dict]:
        """Get the record for season, or the highest season when season is None."""
        pass

    @abstractmethod
    def get_all(self) -> List[dict]:
        """Get all records, newest season first."""
        pass

    @abstractmethod
    def delete(self, season: int) -> bool:
        pass

    @abstractmethod
    def has(self, season: int) -> bool:
        pass

    def close(self):
        pass

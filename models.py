from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

UNKNOWN = "Unknown"
DEFAULT_KEY_LEVEL = 0
DEFAULT_RATING = 0
DEFAULT_DURATION = 0

TOP_MEMBERS_LIMIT = 10
TOP_PLAYERS_LIMIT = 10

def _dig(data, *path, default=None):
    """Walk nested dicts, returning default when any step is missing or not a dict."""
    for step in path:
        if not isinstance(data, dict):
            return default
        data = data.get(step)
    return default if data is None else data

def _number(value, default):
    """Numeric field or default; bools and numeric strings are not accepted."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return value

def _text(value, default: str = UNKNOWN) -> str:
    return value if isinstance(value, str) and value else default

def _list(value) -> list:
    return value if isinstance(value, list) else []

def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator > 0 else 0

def character_key(name: str, server: str) -> str:
    return f"{name}-{server}"

@dataclass(frozen=True)
class PartyMember:
    """A character that took part in a run."""
    name: str
    server: str
    spec: str

    @property
    def key(self) -> str:
        return character_key(self.name, self.server)

    @classmethod
    def from_api(cls, raw: dict) -> "PartyMember":
        return cls(
            name=_text(_dig(raw, "character", "name")),
            server=_text(_dig(raw, "character", "realm", "slug")),
            spec=_text(_dig(raw, "specialization", "name")),
        )

@dataclass(frozen=True)
class DungeonRun:
    """Represents one keystone run from a character's best runs."""
    keystone_level: int
    is_timed: bool
    rating: float
    duration: float
    dungeon: str
    affixes: Tuple[str, ...] = ()
    members: Tuple[PartyMember, ...] = ()

    @classmethod
    def from_api(cls, raw: dict) -> "DungeonRun":
        affixes = _list(raw.get("keystone_affixes"))
        members = _list(raw.get("members"))
        return cls(
            keystone_level=_number(raw.get("keystone_level"), DEFAULT_KEY_LEVEL),
            is_timed=raw.get("is_completed_within_time") is True,
            rating=_number(_dig(raw, "mythic_rating", "rating"), DEFAULT_RATING),
            duration=_number(raw.get("duration"), DEFAULT_DURATION),
            dungeon=_text(_dig(raw, "dungeon", "name")),
            affixes=tuple(_text(a.get("name")) for a in affixes if isinstance(a, dict)),
            members=tuple(PartyMember.from_api(m) for m in members if isinstance(m, dict)),
        )

@dataclass(frozen=True)
class CharacterRecord:
    """
    A guild member as stored by the roster fetcher.
    runs is None when the document carries no usable seasonal data.
    """
    name: str
    server: str
    spec: str = UNKNOWN
    character_class: str = UNKNOWN
    current_rating: float = 0
    runs: Optional[Tuple[DungeonRun, ...]] = None

    @property
    def key(self) -> str:
        return character_key(self.name, self.server)

    @classmethod
    def from_document(cls, doc: dict) -> "CharacterRecord":
        if not isinstance(doc, dict):
            doc = {}

        season = doc.get("currentSeason")
        best_runs = None
        if isinstance(season, dict):
            best_runs = season.get("best_runs")
            if not isinstance(best_runs, list):
                best_runs = season.get("bestRuns")

        runs = None
        if isinstance(best_runs, list):
            runs = tuple(DungeonRun.from_api(r) for r in best_runs if isinstance(r, dict))

        current_rating = (
            _number(_dig(doc, "processedStats", "mythicPlusScore"), 0)
            or _number(_dig(doc, "raw_mplus", "current_mythic_rating", "rating"), 0)
        )

        return cls(
            name=_text(doc.get("name")),
            server=_text(doc.get("server")),
            spec=_text(_dig(doc, "metaData", "spec")),
            character_class=_text(_dig(doc, "metaData", "class")),
            current_rating=current_rating,
            runs=runs,
        )

@dataclass
class RunTally:
    """Running totals for one group of runs (a dungeon, an affix or a spec)."""
    total_runs: int = 0
    timed_runs: int = 0
    total_rating: float = 0
    highest_key: int = 0

    def record(self, run: DungeonRun):
        self.total_runs += 1
        self.total_rating += run.rating
        if run.is_timed:
            self.timed_runs += 1
        if run.keystone_level > self.highest_key:
            self.highest_key = run.keystone_level

    def merge(self, other: "RunTally"):
        self.total_runs += other.total_runs
        self.timed_runs += other.timed_runs
        self.total_rating += other.total_rating
        if other.highest_key > self.highest_key:
            self.highest_key = other.highest_key

    @property
    def average_rating(self) -> float:
        return _ratio(self.total_rating, self.total_runs)

    @property
    def completion_rate(self) -> float:
        return _ratio(self.timed_runs * 100, self.total_runs)

    def to_dict(self, with_highest_key: bool = False, with_completion_rate: bool = False) -> dict:
        data = {"totalRuns": self.total_runs, "timedRuns": self.timed_runs}
        if with_highest_key:
            data["highestKey"] = self.highest_key
        data["averageRating"] = self.average_rating
        data["totalRating"] = self.total_rating
        if with_completion_rate:
            data["completionRate"] = self.completion_rate
        return data

@dataclass(frozen=True)
class TeammateCount:
    name: str
    server: str
    spec: str
    count: int

    def to_dict(self) -> dict:
        return {"name": self.name, "server": self.server, "spec": self.spec, "count": self.count}

@dataclass
class CharacterSeasonalStats:
    highest_timed_key: int = 0
    highest_key_overall: int = 0
    total_runs: int = 0
    completed_runs: int = 0
    average_rating: float = 0
    completion_rate: float = 0
    total_playtime_seconds: float = 0
    dungeon_stats: Dict[str, RunTally] = field(default_factory=dict)
    affix_stats: Dict[str, RunTally] = field(default_factory=dict)
    role_stats: Dict[str, RunTally] = field(default_factory=dict)
    top_played_members: List[TeammateCount] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "highestTimedKey": self.highest_timed_key,
            "highestKeyOverall": self.highest_key_overall,
            "totalRuns": self.total_runs,
            "completedRuns": self.completed_runs,
            "averageRating": self.average_rating,
            "completionRate": self.completion_rate,
            "totalPlaytimeSeconds": self.total_playtime_seconds,
            "dungeonStats": {k: v.to_dict(with_highest_key=True) for k, v in self.dungeon_stats.items()},
            "affixStats": {k: v.to_dict() for k, v in self.affix_stats.items()},
            "roleStats": {k: v.to_dict() for k, v in self.role_stats.items()},
            "topPlayedMembers": [m.to_dict() for m in self.top_played_members],
        }

@dataclass(frozen=True)
class PlayerSummary:
    """One row of the guild's top players list."""
    name: str
    server: str
    spec: str
    character_class: str
    rating: float
    highest_timed_key: int
    highest_key_overall: int
    total_runs: int
    completion_rate: float
    average_rating: float

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "server": self.server,
            "spec": self.spec,
            "class": self.character_class,
            "rating": self.rating,
            "highestTimedKey": self.highest_timed_key,
            "highestKeyOverall": self.highest_key_overall,
            "totalRuns": self.total_runs,
            "completionRate": self.completion_rate,
            "averageRating": self.average_rating,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PlayerSummary":
        return cls(
            name=data["name"],
            server=data["server"],
            spec=data["spec"],
            character_class=data["class"],
            rating=data["rating"],
            highest_timed_key=data["highestTimedKey"],
            highest_key_overall=data["highestKeyOverall"],
            total_runs=data["totalRuns"],
            completion_rate=data["completionRate"],
            average_rating=data["averageRating"],
        )

@dataclass
class MemberNetwork:
    """Co-play adjacency for one teammate, keyed by character key in the guild stats."""
    name: str
    server: str
    spec: str
    total_runs: int = 0
    played_with: List[str] = field(default_factory=list)

    def add_partner(self, key: str):
        if key not in self.played_with:
            self.played_with.append(key)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "server": self.server,
            "spec": self.spec,
            "totalRuns": self.total_runs,
            "playedWithCount": len(self.played_with),
            "playedWith": list(self.played_with),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MemberNetwork":
        return cls(
            name=data["name"],
            server=data["server"],
            spec=data["spec"],
            total_runs=data["totalRuns"],
            played_with=list(data["playedWith"]),
        )

@dataclass
class DungeonLeaderboardEntry:
    tally: RunTally
    player_count: int = 0

    def to_dict(self) -> dict:
        data = self.tally.to_dict(with_highest_key=True, with_completion_rate=True)
        data["playerCount"] = self.player_count
        return data

def _tally_from_dict(data: dict) -> RunTally:
    return RunTally(
        total_runs=data["totalRuns"],
        timed_runs=data["timedRuns"],
        total_rating=data["totalRating"],
        highest_key=data.get("highestKey", 0),
    )

@dataclass
class GuildSeasonalStats:
    season: int
    last_updated: datetime
    total_characters: int = 0
    characters_with_runs: int = 0
    total_runs: int = 0
    total_timed_runs: int = 0
    highest_key_overall: int = 0
    highest_timed_key: int = 0
    average_rating: float = 0
    top_players: List[PlayerSummary] = field(default_factory=list)
    dungeon_leaderboard: Dict[str, DungeonLeaderboardEntry] = field(default_factory=dict)
    affix_stats: Dict[str, RunTally] = field(default_factory=dict)
    role_stats: Dict[str, RunTally] = field(default_factory=dict)
    member_networks: Dict[str, MemberNetwork] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "season": self.season,
            "lastUpdated": self.last_updated.isoformat(),
            "totalCharacters": self.total_characters,
            "charactersWithRuns": self.characters_with_runs,
            "totalRuns": self.total_runs,
            "totalTimedRuns": self.total_timed_runs,
            "highestKeyOverall": self.highest_key_overall,
            "highestTimedKey": self.highest_timed_key,
            "averageRating": self.average_rating,
            "topPlayers": [p.to_dict() for p in self.top_players],
            "dungeonLeaderboard": {k: v.to_dict() for k, v in self.dungeon_leaderboard.items()},
            "affixStats": {k: v.to_dict(with_completion_rate=True) for k, v in self.affix_stats.items()},
            "roleStats": {k: v.to_dict(with_completion_rate=True) for k, v in self.role_stats.items()},
            "memberNetworks": {k: v.to_dict() for k, v in self.member_networks.items()},
        }

    @classmethod
    def from_dict(cls, data: dict) -> "GuildSeasonalStats":
        """Rebuild stats from a persisted document. Storage-only keys are ignored."""
        return cls(
            season=data["season"],
            last_updated=datetime.fromisoformat(data["lastUpdated"]),
            total_characters=data["totalCharacters"],
            characters_with_runs=data["charactersWithRuns"],
            total_runs=data["totalRuns"],
            total_timed_runs=data["totalTimedRuns"],
            highest_key_overall=data["highestKeyOverall"],
            highest_timed_key=data["highestTimedKey"],
            average_rating=data["averageRating"],
            top_players=[PlayerSummary.from_dict(p) for p in data["topPlayers"]],
            dungeon_leaderboard={
                k: DungeonLeaderboardEntry(_tally_from_dict(v), v["playerCount"])
                for k, v in data["dungeonLeaderboard"].items()
            },
            affix_stats={k: _tally_from_dict(v) for k, v in data["affixStats"].items()},
            role_stats={k: _tally_from_dict(v) for k, v in data["roleStats"].items()},
            member_networks={k: MemberNetwork.from_dict(v) for k, v in data["memberNetworks"].items()},
        )

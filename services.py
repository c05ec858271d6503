from collections import defaultdict
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Set, Union

from tqdm import tqdm

from models import (
    TOP_MEMBERS_LIMIT,
    TOP_PLAYERS_LIMIT,
    CharacterRecord,
    CharacterSeasonalStats,
    DungeonLeaderboardEntry,
    GuildSeasonalStats,
    MemberNetwork,
    PlayerSummary,
    RunTally,
    TeammateCount,
    character_key,
)

CharacterInput = Union[CharacterRecord, dict]

def _as_record(character: CharacterInput) -> CharacterRecord:
    if isinstance(character, CharacterRecord):
        return character
    return CharacterRecord.from_document(character)

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

class CharacterStatsAggregator:
    """Service for folding one character's best runs into seasonal statistics."""

    def __init__(self, top_members_limit: int = TOP_MEMBERS_LIMIT):
        self.top_members_limit = top_members_limit

    def aggregate(self, character: CharacterInput) -> CharacterSeasonalStats:
        """
        Build seasonal stats for a character.
        Characters without a usable run list get the all-zero default.
        """
        record = _as_record(character)
        if not record.runs:
            return CharacterSeasonalStats()

        stats = CharacterSeasonalStats(total_runs=len(record.runs))
        dungeon_stats: Dict[str, RunTally] = defaultdict(RunTally)
        affix_stats: Dict[str, RunTally] = defaultdict(RunTally)
        role_stats: Dict[str, RunTally] = defaultdict(RunTally)
        # member key -> [name, server, spec, count]
        play_counts: Dict[str, list] = {}
        total_rating = 0

        for run in record.runs:
            if run.keystone_level > stats.highest_key_overall:
                stats.highest_key_overall = run.keystone_level
            if run.is_timed:
                stats.completed_runs += 1
                if run.keystone_level > stats.highest_timed_key:
                    stats.highest_timed_key = run.keystone_level

            total_rating += run.rating
            stats.total_playtime_seconds += run.duration

            dungeon_stats[run.dungeon].record(run)
            for affix in run.affixes:
                affix_stats[affix].record(run)

            for member in run.members:
                role_stats[member.spec].record(run)
                entry = play_counts.setdefault(member.key, [member.name, member.server, member.spec, 0])
                entry[3] += 1

        stats.average_rating = total_rating / stats.total_runs
        stats.completion_rate = stats.completed_runs * 100 / stats.total_runs
        stats.dungeon_stats = dict(dungeon_stats)
        stats.affix_stats = dict(affix_stats)
        stats.role_stats = dict(role_stats)

        # sorted() is stable, so equal counts keep first-seen order
        ranked = sorted(play_counts.values(), key=lambda e: e[3], reverse=True)
        stats.top_played_members = [
            TeammateCount(name=n, server=s, spec=sp, count=c)
            for n, s, sp, c in ranked[:self.top_members_limit]
        ]
        return stats

class GuildStatsAggregator:
    """
    Service for folding every roster character into one guild season record.

    Characters are folded sequentially: the dungeon, affix, role and network
    accumulators are shared maps keyed by name.
    """

    def __init__(self, character_aggregator: Optional[CharacterStatsAggregator] = None,
                 clock: Callable[[], datetime] = _utcnow, show_progress: bool = False,
                 symmetric_networks: bool = False, top_players_limit: int = TOP_PLAYERS_LIMIT):
        self.character_aggregator = character_aggregator or CharacterStatsAggregator()
        self.clock = clock
        self.show_progress = show_progress
        self.symmetric_networks = symmetric_networks
        self.top_players_limit = top_players_limit

    def aggregate(self, characters: Iterable[CharacterInput], season: int) -> GuildSeasonalStats:
        guild = GuildSeasonalStats(season=season, last_updated=self.clock())
        summaries: List[PlayerSummary] = []
        dungeon_runs: Dict[str, RunTally] = defaultdict(RunTally)
        dungeon_players: Dict[str, Set[str]] = defaultdict(set)
        affix_runs: Dict[str, RunTally] = defaultdict(RunTally)
        role_runs: Dict[str, RunTally] = defaultdict(RunTally)
        networks: Dict[str, MemberNetwork] = {}
        rating_sum = 0

        records = [_as_record(c) for c in characters]
        for record in tqdm(records, desc="Aggregating characters", disable=not self.show_progress):
            guild.total_characters += 1
            stats = self.character_aggregator.aggregate(record)
            if stats.total_runs == 0:
                continue

            guild.characters_with_runs += 1
            guild.total_runs += stats.total_runs
            guild.total_timed_runs += stats.completed_runs
            if stats.highest_key_overall > guild.highest_key_overall:
                guild.highest_key_overall = stats.highest_key_overall
            if stats.highest_timed_key > guild.highest_timed_key:
                guild.highest_timed_key = stats.highest_timed_key

            rating_sum += record.current_rating
            summaries.append(PlayerSummary(
                name=record.name,
                server=record.server,
                spec=record.spec,
                character_class=record.character_class,
                rating=record.current_rating,
                highest_timed_key=stats.highest_timed_key,
                highest_key_overall=stats.highest_key_overall,
                total_runs=stats.total_runs,
                completion_rate=stats.completion_rate,
                average_rating=stats.average_rating,
            ))

            for dungeon, tally in stats.dungeon_stats.items():
                dungeon_runs[dungeon].merge(tally)
                dungeon_players[dungeon].add(record.key)
            for affix, tally in stats.affix_stats.items():
                affix_runs[affix].merge(tally)
            for role, tally in stats.role_stats.items():
                role_runs[role].merge(tally)

            self._fold_network(networks, record, stats)

        if guild.characters_with_runs > 0:
            guild.average_rating = rating_sum / guild.characters_with_runs

        guild.top_players = sorted(summaries, key=lambda p: p.rating, reverse=True)[:self.top_players_limit]
        guild.dungeon_leaderboard = {
            dungeon: DungeonLeaderboardEntry(tally, len(dungeon_players[dungeon]))
            for dungeon, tally in dungeon_runs.items()
        }
        guild.affix_stats = dict(affix_runs)
        guild.role_stats = dict(role_runs)
        guild.member_networks = networks
        return guild

    def _fold_network(self, networks: Dict[str, MemberNetwork], record: CharacterRecord,
                      stats: CharacterSeasonalStats):
        """Record that record's character played with each of its top teammates."""
        for member in stats.top_played_members:
            member_key = character_key(member.name, member.server)
            network = networks.get(member_key)
            if network is None:
                network = networks[member_key] = MemberNetwork(member.name, member.server, member.spec)
            network.total_runs += member.count
            network.add_partner(record.key)

            if self.symmetric_networks and member_key != record.key:
                own = networks.get(record.key)
                if own is None:
                    own = networks[record.key] = MemberNetwork(record.name, record.server, record.spec)
                own.add_partner(member_key)

class AchievementExtractor:
    """Derives the headline records shown on the season summary."""

    @staticmethod
    def _first_max(items, metric):
        """Linear scan keeping the first item whose metric beats the running best."""
        best = None
        for item in items:
            if metric(item) > (metric(best) if best is not None else 0):
                best = item
        return best

    def extract(self, guild_stats: Union[GuildSeasonalStats, dict]) -> dict:
        if isinstance(guild_stats, GuildSeasonalStats):
            guild_stats = guild_stats.to_dict()

        players = guild_stats["topPlayers"]
        dungeons = [{"name": name, **data} for name, data in guild_stats["dungeonLeaderboard"].items()]

        return {
            "highestKeyOverall": {"value": guild_stats["highestKeyOverall"], "dungeon": None, "player": None},
            "highestTimedKey": {"value": guild_stats["highestTimedKey"], "dungeon": None, "player": None},
            "topRatedPlayer": players[0] if players else None,
            "mostActivePlayer": self._first_max(players, lambda p: p["totalRuns"]),
            "mostActiveDungeon": self._first_max(dungeons, lambda d: d["totalRuns"]),
            "bestCompletionRate": self._first_max(players, lambda p: p["completionRate"]),
        }

class InvalidLeaderboardError(ValueError):
    pass

class LeaderboardBuilder:
    """Ranks a stored season record by players, dungeons or roles."""

    TYPES = ("players", "dungeons", "roles")

    def build(self, guild_stats: dict, board_type: str = "players", limit: int = 10) -> List[dict]:
        if board_type not in self.TYPES:
            raise InvalidLeaderboardError(f"Type must be one of: {', '.join(self.TYPES)}")
        if limit < 1:
            raise InvalidLeaderboardError(f"Limit must be positive, got {limit}")

        if board_type == "players":
            return list(guild_stats["topPlayers"][:limit])

        if board_type == "dungeons":
            source, sort_key = guild_stats["dungeonLeaderboard"], "highestKey"
        else:
            source, sort_key = guild_stats["roleStats"], "averageRating"

        rows = [{"name": name, **data} for name, data in source.items()]
        rows.sort(key=lambda row: row[sort_key], reverse=True)
        return rows[:limit]

def aggregate_character_seasonal_stats(character: CharacterInput) -> CharacterSeasonalStats:
    return CharacterStatsAggregator().aggregate(character)

def aggregate_guild_seasonal_stats(characters: Iterable[CharacterInput], season: int) -> GuildSeasonalStats:
    return GuildStatsAggregator().aggregate(characters, season)

def extract_top_achievements(guild_stats: Union[GuildSeasonalStats, dict]) -> dict:
    return AchievementExtractor().extract(guild_stats)

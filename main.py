import argparse
import json
import os
from dataclasses import dataclass
from typing import List, Optional

from inmemory_repository import InMemoryMemberRepository
from repository import MemberRepository, SeasonalStatsRepository
from services import (
    AchievementExtractor,
    CharacterStatsAggregator,
    GuildStatsAggregator,
    LeaderboardBuilder,
)
from sqlite_repository import SQLiteMemberRepository, SQLiteSeasonalStatsRepository

CONFIG_PATH = "seasonal_stats_config.json"

@dataclass(frozen=True)
class Config:
    db_path: str = "guild.db"
    season: int = 15
    output_dir: str = "."
    symmetric_networks: bool = False

    @property
    def output_path(self) -> str:
        return os.path.join(self.output_dir, f"season-{self.season}-stats.json")

class ConfigLoader:

    @staticmethod
    def from_json(path: str = CONFIG_PATH) -> Config:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        return Config(
            db_path=data.get("db_path", "guild.db"),
            season=data.get("season", 15),
            output_dir=data.get("output_dir", "."),
            symmetric_networks=data.get("symmetric_networks", False),
        )

class StatsNotFoundError(LookupError):
    pass

class CharacterNotFoundError(LookupError):
    pass

class ResultWriter:

    def __init__(self, output_path: str):
        self.output_path = output_path

    def write_stats(self, stats: dict) -> str:
        with open(self.output_path, "w", encoding="utf-8") as f:
            json.dump(stats, f, ensure_ascii=False, indent=2)
        return self.output_path

class SeasonalStatsOrchestrator:
    """
    Facade over the roster store, the aggregation services and the season store.
    Repositories are injected so tests can swap them.
    """

    def __init__(self, config: Config, members: Optional[MemberRepository] = None,
                 seasons: Optional[SeasonalStatsRepository] = None):
        self.config = config
        self.members = members or SQLiteMemberRepository(config.db_path)
        self.seasons = seasons or SQLiteSeasonalStatsRepository(config.db_path)

        self.character_aggregator = CharacterStatsAggregator()
        self.guild_aggregator = GuildStatsAggregator(
            self.character_aggregator,
            show_progress=True,
            symmetric_networks=config.symmetric_networks,
        )
        self.achievement_extractor = AchievementExtractor()
        self.leaderboard_builder = LeaderboardBuilder()
        self.result_writer = ResultWriter(config.output_path)

    def refresh(self) -> dict:
        """Recompute the configured season from the current roster and upsert it."""
        characters = self.members.get_all_members()
        print(f"Found {len(characters)} characters.")

        guild_stats = self.guild_aggregator.aggregate(characters, self.config.season)
        print(f"✅ {guild_stats.characters_with_runs} characters with runs, "
              f"{guild_stats.total_runs} runs ({guild_stats.total_timed_runs} timed)")

        document = self.seasons.save(guild_stats.to_dict())
        stats_file = self.result_writer.write_stats(document)
        print(f"\n📁 Saved file:")
        print(f" - {stats_file}")
        return document

    def character_stats(self, name: str, server: str) -> dict:
        print(f"🔍 Fetching seasonal statistics for {name}-{server}")
        doc = self.members.find_member(name, server)
        if doc is None:
            raise CharacterNotFoundError(f"Character {name}-{server} not found")

        meta = doc.get("metaData") or {}
        current = (doc.get("currentSeason") or {}).get("current_mythic_rating") or {}
        return {
            "character": {
                "name": doc.get("name"),
                "server": doc.get("server"),
                "spec": meta.get("spec"),
                "class": meta.get("class"),
                "currentRating": current.get("rating") or 0,
            },
            "seasonalStats": self.character_aggregator.aggregate(doc).to_dict(),
        }

    def _stored(self, season: Optional[int]) -> dict:
        stats = self.seasons.get(season)
        if stats is None:
            target = f"season {season}" if season is not None else "any season"
            raise StatsNotFoundError(f"No seasonal statistics found for {target}")
        return stats

    def leaderboard(self, board_type: str = "players", limit: int = 10,
                    season: Optional[int] = None) -> List[dict]:
        print(f"🔍 Fetching {board_type} leaderboard")
        return self.leaderboard_builder.build(self._stored(season), board_type, limit)

    def achievements(self, season: Optional[int] = None) -> dict:
        return self.achievement_extractor.extract(self._stored(season))

    def status(self) -> dict:
        latest = self.seasons.get()
        return {
            "hasData": latest is not None,
            "season": latest["season"] if latest else None,
            "lastUpdated": latest["lastUpdated"] if latest else None,
        }

    def cleanup(self):
        self.members.close()
        self.seasons.close()

def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Aggregate guild Mythic+ seasonal statistics.")
    parser.add_argument("--db", dest="db_path", help="SQLite database holding members and season records")
    parser.add_argument("--season", type=int, help="Season number, e.g. 15")
    parser.add_argument("--members-json", help="Read the roster from an exported JSON file instead of the database")
    parser.add_argument("--symmetric-networks", action="store_true",
                        help="Record co-play edges on both characters")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("refresh", help="Recompute and store the season record")
    character = sub.add_parser("character", help="Seasonal stats for one character")
    character.add_argument("name")
    character.add_argument("server")
    board = sub.add_parser("leaderboard", help="Rank the stored season record")
    board.add_argument("--type", dest="board_type", choices=LeaderboardBuilder.TYPES, default="players")
    board.add_argument("--limit", type=int, default=10)
    sub.add_parser("achievements", help="Headline records for the stored season")
    sub.add_parser("status", help="Whether a season record exists")
    return parser.parse_args(argv)

def load_config(args) -> Config:
    base = ConfigLoader.from_json() if os.path.exists(CONFIG_PATH) else Config()

    return Config(
        db_path=args.db_path or base.db_path,
        season=args.season if args.season is not None else base.season,
        output_dir=base.output_dir,
        symmetric_networks=args.symmetric_networks or base.symmetric_networks,
    )

def run_command(orchestrator: SeasonalStatsOrchestrator, args):
    if args.command == "refresh":
        return orchestrator.refresh()
    if args.command == "character":
        return orchestrator.character_stats(args.name, args.server)
    if args.command == "leaderboard":
        if args.limit < 1:
            raise ValueError("--limit must be at least 1")
        return orchestrator.leaderboard(args.board_type, args.limit, args.season)
    if args.command == "achievements":
        return orchestrator.achievements(args.season)
    return orchestrator.status()

def main(argv=None):

    args = parse_args(argv)
    orchestrator = None

    try:
        config = load_config(args)
        members = InMemoryMemberRepository.from_json(args.members_json) if args.members_json else None
        orchestrator = SeasonalStatsOrchestrator(config, members=members)

        result = run_command(orchestrator, args)
        if args.command != "refresh":
            print(json.dumps(result, ensure_ascii=False, indent=2))

    except (StatsNotFoundError, CharacterNotFoundError) as e:
        print(f"❌ {e}")
        raise SystemExit(1)
    except Exception as e:
        print(f"❌ Error: {e}")
        raise
    finally:
        if orchestrator:
            orchestrator.cleanup()

if __name__ == "__main__":
    main()

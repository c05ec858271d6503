import json
import os
import tempfile
import unittest

from main import Config, ConfigLoader, parse_args
from models import (
    UNKNOWN,
    CharacterRecord,
    DungeonRun,
    GuildSeasonalStats,
    PartyMember,
    RunTally,
)
from tests.test_services import FIXED_NOW, build_guild, make_character, make_member, make_run

class TestRunParsing(unittest.TestCase):
    """Unit tests for reading raw API documents."""

    def test_full_run(self):
        raw = make_run(14, True, 250, "Grim Batol", ("Fortified", "Bursting"),
                       [make_member("Tanky", "draenor", "Vengeance")], duration=2100)

        run = DungeonRun.from_api(raw)

        self.assertEqual(run.keystone_level, 14)
        self.assertTrue(run.is_timed)
        self.assertEqual(run.rating, 250)
        self.assertEqual(run.duration, 2100)
        self.assertEqual(run.dungeon, "Grim Batol")
        self.assertEqual(run.affixes, ("Fortified", "Bursting"))
        self.assertEqual(run.members, (PartyMember("Tanky", "draenor", "Vengeance"),))
        self.assertEqual(run.members[0].key, "Tanky-draenor")

    def test_missing_fields(self):
        run = DungeonRun.from_api({"keystone_affixes": [{}], "members": [{}], "mythic_rating": None})

        self.assertEqual(run.keystone_level, 0)
        self.assertFalse(run.is_timed)
        self.assertEqual(run.rating, 0)
        self.assertEqual(run.dungeon, UNKNOWN)
        self.assertEqual(run.affixes, (UNKNOWN,))
        self.assertEqual(run.members, (PartyMember(UNKNOWN, UNKNOWN, UNKNOWN),))

    def test_character_document(self):
        doc = make_character("Alpha", [make_run(10), "garbage"], server="draenor", rating=2750,
                             spec="Holy", char_class="Priest")

        record = CharacterRecord.from_document(doc)

        self.assertEqual(record.key, "Alpha-draenor")
        self.assertEqual(record.spec, "Holy")
        self.assertEqual(record.character_class, "Priest")
        self.assertEqual(record.current_rating, 2750)
        self.assertEqual(len(record.runs), 1)

    def test_character_document_camel_case_runs(self):
        doc = {"name": "Beta", "server": "kazzak", "currentSeason": {"bestRuns": [make_run(9)]}}
        self.assertEqual(len(CharacterRecord.from_document(doc).runs), 1)

    def test_wrongly_typed_run_fields(self):
        raw = make_run(12, members=[make_member("Tanky")])
        cases = [
            ("keystone_affixes", 5, "affixes", ()),
            ("members", "Tanky", "members", ()),
            ("keystone_level", "12", "keystone_level", 0),
            ("keystone_level", True, "keystone_level", 0),
            ("duration", "1800", "duration", 0),
            ("dungeon", ["Ara-Kara"], "dungeon", UNKNOWN),
        ]
        for field, value, attr, expected in cases:
            with self.subTest(field=field, value=value):
                run = DungeonRun.from_api({**raw, field: value})
                self.assertEqual(getattr(run, attr), expected)

    def test_string_rating_uses_default(self):
        run = DungeonRun.from_api({"mythic_rating": {"rating": "250"}})
        self.assertEqual(run.rating, 0)

    def test_null_best_runs_falls_back_to_camel_case(self):
        doc = {"name": "Delta", "server": "kazzak",
               "currentSeason": {"best_runs": None, "bestRuns": [make_run(9)]}}
        self.assertEqual(len(CharacterRecord.from_document(doc).runs), 1)

    def test_non_dict_document(self):
        record = CharacterRecord.from_document(None)

        self.assertEqual(record.key, "Unknown-Unknown")
        self.assertIsNone(record.runs)
        self.assertEqual(record.current_rating, 0)

    def test_string_rating_in_document(self):
        doc = make_character("Eps", [make_run(9)], rating="2500")
        self.assertEqual(CharacterRecord.from_document(doc).current_rating, 0)

    def test_character_without_season(self):
        record = CharacterRecord.from_document({"name": "Gamma", "server": "kazzak"})

        self.assertIsNone(record.runs)
        self.assertEqual(record.current_rating, 0)
        self.assertEqual(record.spec, UNKNOWN)

class TestRunTally(unittest.TestCase):

    def test_empty_tally_has_no_division_error(self):
        tally = RunTally()
        self.assertEqual(tally.average_rating, 0)
        self.assertEqual(tally.completion_rate, 0)

    def test_merge(self):
        a = RunTally(total_runs=2, timed_runs=1, total_rating=300, highest_key=12)
        a.merge(RunTally(total_runs=2, timed_runs=2, total_rating=500, highest_key=15))

        self.assertEqual((a.total_runs, a.timed_runs, a.highest_key), (4, 3, 15))
        self.assertEqual(a.average_rating, 200)
        self.assertEqual(a.completion_rate, 75)

class TestGuildStatsSerialization(unittest.TestCase):

    def test_dict_round_trip(self):
        mate = make_member("Mate")
        guild = build_guild([
            make_character("Alpha", [make_run(10, members=[mate]), make_run(12, False, dungeon="Grim Batol")],
                           rating=2500),
            make_character("Beta", [make_run(11, affixes=("Fortified",), members=[mate])], rating=2300),
        ])
        data = guild.to_dict()

        restored = GuildSeasonalStats.from_dict(json.loads(json.dumps(data)))

        self.assertEqual(restored.to_dict(), data)
        self.assertEqual(restored.last_updated, FIXED_NOW)

    def test_json_shape(self):
        data = build_guild([make_character("Alpha", [make_run(10)], rating=2000)]).to_dict()

        self.assertEqual(set(data["dungeonLeaderboard"]["Ara-Kara"]),
                         {"totalRuns", "timedRuns", "highestKey", "averageRating", "totalRating",
                          "completionRate", "playerCount"})
        self.assertEqual(set(data["topPlayers"][0]),
                         {"name", "server", "spec", "class", "rating", "highestTimedKey",
                          "highestKeyOverall", "totalRuns", "completionRate", "averageRating"})

class TestConfigLoader(unittest.TestCase):
    """Unit tests for configuration loading."""

    def test_default_config(self):
        config = Config()

        self.assertEqual(config.db_path, "guild.db")
        self.assertEqual(config.season, 15)
        self.assertFalse(config.symmetric_networks)

    def test_output_path(self):
        config = Config(season=3, output_dir="out")
        self.assertEqual(config.output_path, os.path.join("out", "season-3-stats.json"))

    def test_from_json(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "config.json")
            with open(path, "w", encoding="utf-8") as f:
                json.dump({"season": 16, "db_path": "eu.db"}, f)

            config = ConfigLoader.from_json(path)

        self.assertEqual(config.season, 16)
        self.assertEqual(config.db_path, "eu.db")
        self.assertEqual(config.output_dir, ".")

    def test_parse_args(self):
        args = parse_args(["--season", "14", "leaderboard", "--type", "dungeons", "--limit", "3"])

        self.assertEqual(args.season, 14)
        self.assertEqual(args.command, "leaderboard")
        self.assertEqual(args.board_type, "dungeons")
        self.assertEqual(args.limit, 3)

if __name__ == '__main__':
    unittest.main()

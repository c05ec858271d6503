import json
import sqlite3
from datetime import datetime, timezone
from typing import List, Optional

from repository import MemberRepository, SeasonalStatsRepository

class SQLiteMemberRepository(MemberRepository):
    """SQLite implementation of MemberRepository. Members are stored as JSON documents."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self.conn = sqlite3.connect(db_path)
        self.cursor = self.conn.cursor()
        self.cursor.execute("""
            CREATE TABLE IF NOT EXISTS members (
                name TEXT NOT NULL,
                server TEXT NOT NULL,
                document TEXT NOT NULL,
                PRIMARY KEY (name, server)
            )
        """)
        self.conn.commit()

    def add_member(self, doc: dict):
        self.cursor.execute("""
            INSERT INTO members (name, server, document) VALUES (?, ?, ?)
            ON CONFLICT(name, server) DO UPDATE SET document = excluded.document
        """, (doc["name"], doc["server"], json.dumps(doc)))
        self.conn.commit()

    def get_all_members(self) -> List[dict]:
        self.cursor.execute("SELECT document FROM members ORDER BY rowid")
        return [json.loads(row[0]) for row in self.cursor.fetchall()]

    def find_member(self, name: str, server: str) -> Optional[dict]:
        self.cursor.execute("""
            SELECT document FROM members
            WHERE lower(name) = lower(?) AND lower(server) = lower(?)
            LIMIT 1
        """, (name, server))
        row = self.cursor.fetchone()
        if not row:
            return None
        return json.loads(row[0])

    def close(self):
        self.conn.close()

class SQLiteSeasonalStatsRepository(SeasonalStatsRepository):
    """SQLite implementation of SeasonalStatsRepository."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self.conn = sqlite3.connect(db_path)
        self.cursor = self.conn.cursor()
        self.cursor.execute("""
            CREATE TABLE IF NOT EXISTS seasonal_stats (
                season INTEGER PRIMARY KEY,
                created_at TEXT NOT NULL,
                document TEXT NOT NULL
            )
        """)
        self.conn.commit()

    def save(self, stats: dict) -> dict:
        now = datetime.now(timezone.utc).isoformat()
        self.cursor.execute("SELECT created_at FROM seasonal_stats WHERE season = ?", (stats["season"],))
        row = self.cursor.fetchone()
        created_at = row[0] if row else stats.get("createdAt", now)

        document = {**stats, "lastUpdated": now, "createdAt": created_at}
        self.cursor.execute("""
            INSERT INTO seasonal_stats (season, created_at, document) VALUES (?, ?, ?)
            ON CONFLICT(season) DO UPDATE SET document = excluded.document
        """, (stats["season"], created_at, json.dumps(document)))
        self.conn.commit()
        print(f"✅ Seasonal stats saved for season {stats['season']}")
        return document

    def get(self, season: Optional[int] = None) -> Optional[dict]:
        if season is None:
            self.cursor.execute("SELECT document FROM seasonal_stats ORDER BY season DESC LIMIT 1")
        else:
            self.cursor.execute("SELECT document FROM seasonal_stats WHERE season = ?", (season,))
        row = self.cursor.fetchone()
        if not row:
            return None
        return json.loads(row[0])

    def get_all(self) -> List[dict]:
        self.cursor.execute("SELECT document FROM seasonal_stats ORDER BY season DESC")
        return [json.loads(row[0]) for row in self.cursor.fetchall()]

    def delete(self, season: int) -> bool:
        self.cursor.execute("DELETE FROM seasonal_stats WHERE season = ?", (season,))
        self.conn.commit()
        return self.cursor.rowcount > 0

    def has(self, season: int) -> bool:
        self.cursor.execute("SELECT 1 FROM seasonal_stats WHERE season = ? LIMIT 1", (season,))
        return self.cursor.fetchone() is not None

    def close(self):
        self.conn.close()

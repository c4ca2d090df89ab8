"""
Repository pattern for data access.

Persists the generation ledger and the per-day request quota counter.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional

from .db import DEFAULT_DB_PATH, get_connection
from .models import DailyQuotaUsage, GenerationEvent

# Leave some buffer under the vendor's 50 requests/day free limit
FREE_TIER_DAILY_LIMIT = 45

_EVENT_COLUMNS = (
    "timestamp, feature, model, prompt_tokens, completion_tokens, "
    "total_tokens, estimated_cost, retry_count"
)


@dataclass(frozen=True)
class QuotaStatus:
    """Whether another request fits in today's quota."""
    can_proceed: bool
    remaining_quota: int


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the ledger and quota tables if they don't exist.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS generation_event (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                timestamp TEXT NOT NULL,
                feature TEXT NOT NULL,
                model TEXT NOT NULL,
                prompt_tokens INTEGER NOT NULL,
                completion_tokens INTEGER NOT NULL,
                total_tokens INTEGER NOT NULL,
                estimated_cost REAL NOT NULL CHECK (estimated_cost >= 0),
                retry_count INTEGER NOT NULL DEFAULT 0
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS ai_quota_usage (
                date TEXT NOT NULL,
                feature TEXT NOT NULL,
                request_count INTEGER NOT NULL,
                last_updated TEXT NOT NULL,
                PRIMARY KEY (date, feature)
            )
        """)
        conn.commit()
    finally:
        conn.close()


def _row_to_event(row) -> GenerationEvent:
    return GenerationEvent(
        timestamp=datetime.fromisoformat(row[0]),
        feature=row[1],
        model=row[2],
        prompt_tokens=row[3],
        completion_tokens=row[4],
        total_tokens=row[5],
        estimated_cost=row[6],
        retry_count=row[7]
    )


class GenerationRepository:
    """Repository for the generation ledger and daily quota counters."""

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the repository with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    def record_generation(self, event: GenerationEvent) -> None:
        """Append a ledger event and count it against the day's quota.

        Both writes happen in one transaction. The quota row is bumped with
        a single upsert so concurrent writers never lose an increment.

        Args:
            event: The generation event to record
        """
        day = event.timestamp.date().isoformat()
        conn = get_connection(self.db_path)
        try:
            with conn:
                conn.execute(
                    f"INSERT INTO generation_event ({_EVENT_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        event.timestamp.isoformat(),
                        event.feature,
                        event.model,
                        event.prompt_tokens,
                        event.completion_tokens,
                        event.total_tokens,
                        event.estimated_cost,
                        event.retry_count
                    )
                )
                conn.execute("""
                    INSERT INTO ai_quota_usage (date, feature, request_count, last_updated)
                    VALUES (?, ?, 1, ?)
                    ON CONFLICT (date, feature) DO UPDATE SET
                        request_count = request_count + 1,
                        last_updated = excluded.last_updated
                """, (day, event.feature, datetime.now().isoformat()))
        finally:
            conn.close()

    def fetch_recent_events(
        self,
        feature: Optional[str] = None,
        model: Optional[str] = None,
        limit: int = 100
    ) -> List[GenerationEvent]:
        """Fetch recent events, newest first, optionally filtered.

        Args:
            feature: Optional filter for specific feature
            model: Optional filter for specific model
            limit: Maximum number of events to return

        Returns:
            List of generation events ordered by timestamp (newest first)
        """
        conn = get_connection(self.db_path)
        try:
            query = f"SELECT {_EVENT_COLUMNS} FROM generation_event"
            params: list = []
            conditions = []

            if feature:
                conditions.append("feature = ?")
                params.append(feature)
            if model:
                conditions.append("model = ?")
                params.append(model)

            if conditions:
                query += " WHERE " + " AND ".join(conditions)

            query += " ORDER BY timestamp DESC, id DESC LIMIT ?"
            params.append(limit)

            cursor = conn.execute(query, params)
            return [_row_to_event(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    def get_daily_spend(self, day: Optional[date] = None) -> float:
        """Sum of estimated costs recorded on a day (today by default)."""
        day_key = (day or date.today()).isoformat()
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                "SELECT SUM(estimated_cost) FROM generation_event WHERE substr(timestamp, 1, 10) = ?",
                (day_key,)
            )
            row = cursor.fetchone()
            return float(row[0] or 0)
        finally:
            conn.close()

    def get_daily_usage(self, day: Optional[date] = None) -> DailyQuotaUsage:
        """Requests counted on a day, in total and per feature."""
        day_key = (day or date.today()).isoformat()
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                "SELECT feature, request_count FROM ai_quota_usage WHERE date = ? ORDER BY feature",
                (day_key,)
            )
            features = {feature: count for feature, count in cursor.fetchall()}
            return DailyQuotaUsage(
                date=day_key,
                request_count=sum(features.values()),
                features=features
            )
        finally:
            conn.close()

    def check_quota_status(
        self,
        daily_limit: int = FREE_TIER_DAILY_LIMIT,
        day: Optional[date] = None
    ) -> QuotaStatus:
        """Check whether the day's request count is still under the limit."""
        used = self.get_daily_usage(day).request_count
        remaining = daily_limit - used
        return QuotaStatus(can_proceed=remaining > 0, remaining_quota=max(0, remaining))

"""
SQLite access for the generation ledger.
"""

import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = ".resume-ai.db"

# Seconds a writer waits on a locked database before failing
BUSY_TIMEOUT = 5.0


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Open the ledger database, creating its parent directory if needed.

    Several CLI processes may record generations at once; writers wait up
    to BUSY_TIMEOUT for the lock instead of failing immediately.
    """
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    return sqlite3.connect(str(path), timeout=BUSY_TIMEOUT)

import os
from pathlib import Path

_DEFAULT_DB_PATH = Path("data") / "agf.db"


class Sqlite:
    def __init__(self, config: dict | None = None) -> None:
        sql_cfg = (config or {}).get("agf_memory", {}).get("sqlite", {})
        self.DB_PATH: str = str(sql_cfg.get("db_path", os.getenv("SQLITE_DB_PATH", str(_DEFAULT_DB_PATH))))
        self.BUSY_TIMEOUT_MS: int = int(sql_cfg.get("busy_timeout_ms", os.getenv("SQLITE_BUSY_TIMEOUT_MS", "3000")))

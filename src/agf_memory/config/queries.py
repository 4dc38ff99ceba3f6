import os


class Queries:
    def __init__(self, config: dict | None = None) -> None:
        q_cfg = (config or {}).get("agf_memory", {}).get("queries", {})
        self.RECENT_CHATS_LIMIT: int = int(q_cfg.get("recent_chats_limit", os.getenv("RECENT_CHATS_LIMIT", "20")))
        self.HISTORY_PAGE_SIZE: int = int(q_cfg.get("history_page_size", os.getenv("HISTORY_PAGE_SIZE", "25")))
        self.RECALL_LIMIT: int = int(q_cfg.get("recall_limit", os.getenv("RECALL_LIMIT", "5")))

import os


class Embeddings:
    def __init__(self, config: dict | None = None) -> None:
        emb_cfg = (config or {}).get("agf_memory", {}).get("embeddings", {})
        self.OLLAMA_HOST: str = str(emb_cfg.get("ollama_host", os.getenv("OLLAMA_HOST", "http://localhost:11434")))
        self.EMB_MODEL_ID: str = str(emb_cfg.get("model_id", os.getenv("EMB_MODEL_ID", "all-minilm")))

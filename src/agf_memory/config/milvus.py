import os


class Milvus:
    def __init__(self, config: dict | None = None) -> None:
        milvus_cfg = (config or {}).get("agf_memory", {}).get("milvus", {})
        self.MILVUS_HOST: str = str(milvus_cfg.get("host", os.getenv("MILVUS_HOST", "127.0.0.1")))
        self.MILVUS_PORT: str = str(milvus_cfg.get("port", os.getenv("MILVUS_PORT", "19530")))
        self.MILVUS_ALIAS: str = str(milvus_cfg.get("alias", os.getenv("MILVUS_ALIAS", "default")))
        # prepended to every collection name (`<prefix><kind>_<id>`)
        self.MILVUS_COLLECTION_PREFIX: str = str(
            milvus_cfg.get("collection_prefix", os.getenv("MILVUS_COLLECTION_PREFIX", ""))
        )
        self.EMB_DIM: int = int(milvus_cfg.get("emb_dim", os.getenv("EMB_DIM", "384")))
        self.MILVUS_HNSW_M: int = int(milvus_cfg.get("hnsw_m", os.getenv("MILVUS_HNSW_M", "16")))
        self.MILVUS_HNSW_EF_CONSTRUCTION: int = int(
            milvus_cfg.get("hnsw_ef_construction", os.getenv("MILVUS_HNSW_EF_CONSTRUCTION", "100"))
        )
        self.MILVUS_SEARCH_EF: int = int(milvus_cfg.get("search_ef", os.getenv("MILVUS_SEARCH_EF", "64")))
        self.MILVUS_MMAP_THRESHOLD: int = int(
            milvus_cfg.get("mmap_threshold", os.getenv("MILVUS_MMAP_THRESHOLD", "20000"))
        )

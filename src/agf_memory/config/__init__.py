"""Library configuration"""

import logging
from dotenv import load_dotenv

from .loader import load_raw_config
from .sqlite import Sqlite
from .milvus import Milvus
from .embeddings import Embeddings
from .queries import Queries

load_dotenv()

# handler setup is left to the host application
logging.getLogger("agf_memory").addHandler(logging.NullHandler())

_RAW_CONFIG = load_raw_config()

sqlite = Sqlite(_RAW_CONFIG)
milvus = Milvus(_RAW_CONFIG)
embeddings = Embeddings(_RAW_CONFIG)
queries = Queries(_RAW_CONFIG)


__all__ = ["sqlite", "milvus", "embeddings", "queries"]

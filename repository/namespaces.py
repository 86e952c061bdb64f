# repository/namespaces.py
from typing import Final

ROOT: Final[str] = "hscode"

CASES: Final[str] = f"{ROOT}:cases"
ATTEMPTS: Final[str] = f"{ROOT}:attempts"  # RPUSH list per case, oldest first
LOCKS: Final[str] = f"{ROOT}:locks:case"

# read-only data written by the ingestion jobs
REGISTRY: Final[str] = f"{ROOT}:registry"  # hash code10 -> entry json
CORPUS: Final[str] = f"{ROOT}:kb:chunks"  # hash chunk id -> chunk json (+embedding)
PRECEDENTS: Final[str] = f"{ROOT}:precedents"  # hash per owner, id -> precedent json

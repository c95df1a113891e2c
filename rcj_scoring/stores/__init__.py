"""
Stores Package - RCJ Scoring Engine
rcj_scoring/stores/__init__.py

Backing stores for score sheets, templates, divisions and teams.
"""

from rcj_scoring.stores.base import ScoreStore, StoreSession
from rcj_scoring.stores.memory_store import MemoryScoreStore
from rcj_scoring.stores.snowflake_store import SnowflakeScoreStore

__all__ = [
    "ScoreStore",
    "StoreSession",
    "MemoryScoreStore",
    "SnowflakeScoreStore",
]

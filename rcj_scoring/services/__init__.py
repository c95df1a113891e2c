"""
Services Package - RCJ Scoring Engine
rcj_scoring/services/__init__.py

Fan-out coordination and ladder ranking.
"""

from rcj_scoring.services.fetch_coordinator import Fetch, FetchCoordinator

__all__ = ["Fetch", "FetchCoordinator"]

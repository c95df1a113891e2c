"""
RCJ Scoring Engine

Score sheet aggregation, transactional score sheet mutation and ladder
ranking for multi-division competitions.
"""

__version__ = "1.0.0"

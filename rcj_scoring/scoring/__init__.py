"""
scoring/ — Aggregation and ranking

Modules:
    utils.py        - Decimal helpers and the display boundary conversion
    aggregation.py  - Sheet totals, per-round averages, per-team composites
    ranking.py      - Deterministic ladder ordering
"""

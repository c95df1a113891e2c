#!/usr/bin/env python
"""
Print the dance ladder for one division or for every dance-league division.

Ladders are ranked ascending (lowest total first); --descending reverses
them for display only.

Usage:
    python -m rcj_scoring.scripts.print_ladder
    python -m rcj_scoring.scripts.print_ladder --division <division-id>
    python -m rcj_scoring.scripts.print_ladder --descending --json
"""

import argparse
import asyncio
import json
from typing import List, Optional

import structlog

from rcj_scoring.config import get_settings
from rcj_scoring.core.dependencies import create_engine
from rcj_scoring.core.logging import configure_logging
from rcj_scoring.models.ladder import DivisionLadder

logger = structlog.get_logger(__name__)


def render(ladders: List[DivisionLadder], places: int, descending: bool) -> str:
    lines = []
    for ladder in ladders:
        entries = list(reversed(ladder.ladder)) if descending else ladder.ladder
        lines.append(f"{'=' * 60}")
        lines.append(f"{ladder.division.name} ({ladder.division.league.value})")
        lines.append(f"{'=' * 60}")
        lines.append(f"{'Team':<28}{'Interview':>10}{'Round':>10}{'Final':>10}")
        for entry in entries:
            row = entry.to_display(places)
            lines.append(
                f"{row['team']:<28}{row['interview_score']:>10}"
                f"{row['round_total']:>10}{row['final_total']:>10}"
            )
    return "\n".join(lines)


async def main(division_id: Optional[str], descending: bool, as_json: bool) -> None:
    settings = get_settings()
    engine = create_engine(settings)
    try:
        ladders = await engine.fetch_dance_ladders(division_id)
    finally:
        engine.close()
    logger.info("ladders_fetched", divisions=len(ladders), division_id=division_id)

    places = settings.DISPLAY_DECIMAL_PLACES
    if as_json:
        payload = [
            {
                "division": ladder.division.name,
                "ladder": [
                    e.to_display(places)
                    for e in (reversed(ladder.ladder) if descending else ladder.ladder)
                ],
            }
            for ladder in ladders
        ]
        print(json.dumps(payload, indent=2))
    else:
        print(render(ladders, places, descending))


def cli() -> None:
    parser = argparse.ArgumentParser(description="Print dance ladders")
    parser.add_argument("--division", default=None, help="Division id (default: all dance divisions)")
    parser.add_argument("--descending", action="store_true", help="Highest total first")
    parser.add_argument("--json", action="store_true", help="Emit JSON instead of a table")
    args = parser.parse_args()

    configure_logging(get_settings())
    asyncio.run(main(args.division, args.descending, args.json))


if __name__ == "__main__":
    cli()

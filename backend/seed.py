"""
Seed script for Courtside.

Creates a handful of demo teams with rosters (skipping teams that already exist by
name) and, with --tournament, the demo playoff tournament over the first four teams.

Usage:
    docker compose exec api python -m seed
    docker compose exec api python -m seed --tournament
"""
from __future__ import annotations

import argparse
import asyncio
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config import get_settings
from shared.models.orm import PlayerORM, TeamORM
from shared.utils.database import DatabaseManager
from shared.utils.logging import get_logger, setup_logging
from tournament import service as tournament_service

logger = get_logger(__name__)

DEMO_TEAMS: list[dict[str, Any]] = [
    {
        "name": "Lakeside Herons",
        "city": "Lakeside",
        "players": [
            ("Marcus Bell", 4, "PG"), ("Theo Alvarez", 11, "SG"), ("Jonah Pike", 23, "SF"),
            ("Dre Coleman", 32, "PF"), ("Sam Okafor", 50, "C"),
        ],
    },
    {
        "name": "Granite City Miners",
        "city": "Granite City",
        "players": [
            ("Eli Novak", 3, "PG"), ("Ray Dunn", 8, "SG"), ("Luis Ortega", 15, "SF"),
            ("Kofi Mensah", 21, "PF"), ("Pete Larsen", 44, "C"),
        ],
    },
    {
        "name": "Harbor Gulls",
        "city": "Port Harbor",
        "players": [
            ("Andre Ruiz", 1, "PG"), ("Milo Grant", 7, "SG"), ("Ivan Petrov", 13, "SF"),
            ("Caleb Stone", 24, "PF"), ("Noah Reyes", 33, "C"),
        ],
    },
    {
        "name": "Summit Rams",
        "city": "Summit",
        "players": [
            ("Tyler Hahn", 2, "PG"), ("Omar Haddad", 10, "SG"), ("Gus Moreno", 17, "SF"),
            ("Wes Carter", 25, "PF"), ("Bo Lindqvist", 41, "C"),
        ],
    },
]


async def _ensure_team(session: AsyncSession, spec: dict[str, Any]) -> bool:
    """Create the team and its players unless a team with that name exists."""
    exists = (
        await session.execute(
            select(TeamORM.id).where(func.lower(TeamORM.name) == spec["name"].lower())
        )
    ).scalar_one_or_none()
    if exists is not None:
        return False

    team = TeamORM(name=spec["name"], city=spec["city"], score=0, fouls=0)
    session.add(team)
    await session.flush()
    for name, number, position in spec["players"]:
        session.add(
            PlayerORM(team_id=team.id, name=name, number=number, position=position, points=0, fouls=0)
        )
    await session.flush()
    return True


async def seed(with_tournament: bool = False) -> None:
    """Main seed function."""
    setup_logging("seed")
    settings = get_settings()
    db = DatabaseManager(settings)
    await db.connect()

    print(f"\n{'='*60}")
    print(f"  Courtside Seed — {datetime.now().astimezone().strftime('%Y-%m-%d %H:%M %Z')}")
    print(f"{'='*60}")

    try:
        await db.create_schema()
        created = 0
        async with db.write_session() as session:
            for spec in DEMO_TEAMS:
                if await _ensure_team(session, spec):
                    created += 1
                    print(f"  ✓ {spec['name']:25s} — {len(spec['players'])} players")
                else:
                    print(f"  · {spec['name']:25s} — already present")
        logger.info("seed_teams_done", created=created)

        if with_tournament:
            async with db.write_session() as session:
                tournament = await tournament_service.seed_demo(session, settings=settings)
                print(f"  ✓ Demo tournament #{tournament.id} ({tournament.name})")

        print()
        print(f"  Summary: {created} new teams")
        print(f"{'='*60}\n")
    finally:
        await db.disconnect()


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed demo teams for Courtside")
    parser.add_argument(
        "--tournament", action="store_true", help="Also create the demo playoff tournament"
    )
    args = parser.parse_args()
    asyncio.run(seed(with_tournament=args.tournament))


if __name__ == "__main__":
    main()

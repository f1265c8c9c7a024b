#!/usr/bin/env python3
"""Seed the database with the default Basic / Premium / Unlimited license templates.

Usage:
    python scripts/seed_license_templates.py
    # or, once installed:
    label seed-templates
"""

import asyncio
import sys
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from label_engine.common.config import get_settings
from label_engine.common.database import DatabaseManager
from label_engine.licensing.templates import DEFAULT_TEMPLATES, seed_templates


async def seed() -> None:
    settings = get_settings()
    db = DatabaseManager(settings)
    await db.init()
    await db.create_all()

    async with db.get_session() as session:
        created = await seed_templates(session, producer_name=settings.producer_name)

    created_ids = {t.template_id for t in created}
    for data in DEFAULT_TEMPLATES:
        state = "created" if data["template_id"] in created_ids else "skip"
        print(f"  [{state}] {data['tier']} ({data['template_id']})")

    await db.close()
    print(f"\nDone. {len(created)} template(s) seeded.")


if __name__ == "__main__":
    asyncio.run(seed())

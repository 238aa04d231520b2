#!/usr/bin/env python3
"""
Validate an organization configuration file and install it in the database.

    python scripts/load_org_config.py config/example_org.yaml [more.yaml ...]

Each file is validated first; a file that fails validation is reported
and nothing from it is written.  Courts listed under ``resources`` are
created if they don't exist yet.
"""

import asyncio
import sys
from pathlib import Path

import yaml

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from app import db  # noqa: E402
from app.engine.errors import ConfigurationError  # noqa: E402
from app.services.org_config import load_organization_config_file  # noqa: E402


def read_resources(path: Path) -> list[dict]:
    """The optional ``resources`` list of a configuration file."""
    with path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}
    return list(raw.get("resources") or [])


async def install(path: Path) -> bool:
    try:
        config = load_organization_config_file(path)
    except ConfigurationError as exc:
        print(f"✗ {path}: {exc}")
        return False

    await db.upsert_organization(config)
    print(f"✓ {config.id}: {config.name} ({', '.join(sorted(config.tiers)) or 'no tiers'})")

    for entry in read_resources(path):
        existing = await db.get_resource(entry["id"]) if entry.get("id") else None
        if existing is not None:
            print(f"  - {existing.label} already exists")
            continue
        resource = await db.create_resource(
            config.id,
            entry["label"],
            resource_id=entry.get("id"),
            surface=entry.get("surface", "hard"),
            indoor=bool(entry.get("indoor", False)),
            active=bool(entry.get("active", True)),
            hours_overrides=entry.get("hours_overrides"),
        )
        print(f"  + {resource.label} ({resource.id})")
    return True


async def main(paths: list[str]) -> int:
    if not paths:
        print(__doc__)
        return 1

    await db.init_db()
    try:
        results = [await install(Path(p)) for p in paths]
    finally:
        await db.close_db()
    return 0 if all(results) else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main(sys.argv[1:])))

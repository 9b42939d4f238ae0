"""Seed the directory with organizers, bitcoiners and events from JSON fixtures.

Usage: python scripts/seed_all.py [--reset] [--data-dir DIR]

Fixtures live in `scripts/seed_data/`. Records reference each other by
name (`organizer`, `location`, `speakers`) and are resolved to ids here,
then validated with the same rules as the API before being written.
"""
import sys
import json
import argparse
import pathlib
# Ensure `backend/` is on sys.path so `lnconnext` package imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from lnconnext.database import engine, create_db_and_tables, drop_db_and_tables
from lnconnext import repositories, validators
from lnconnext.errors import ValidationError

SEED_UID = "seed-script"
DATA_DIR = pathlib.Path(__file__).resolve().parent / "seed_data"


def _load(data_dir: pathlib.Path, name: str) -> list:
    return json.loads((data_dir / f"{name}.json").read_text(encoding="utf-8"))


def seed(session: Session, data_dir: pathlib.Path) -> dict:
    """Insert every fixture and return per-kind counts."""
    organizer_ids = {}
    for raw in _load(data_dir, "organizers"):
        organizer = repositories.OrganizerRepository(session).create(validators.validate_organizer(raw), SEED_UID)
        organizer_ids[organizer.name] = organizer.id

    bitcoiner_ids = {}
    for raw in _load(data_dir, "bitcoiners"):
        payload = dict(raw)
        org_name = payload.pop("organizer", None)
        if org_name:
            payload["organizerId"] = organizer_ids[org_name]
        bitcoiner = repositories.BitcoinerRepository(session).create(validators.validate_bitcoiner(payload), SEED_UID)
        bitcoiner_ids[bitcoiner.name] = bitcoiner.id

    locations = {loc["buildingName"]: loc for loc in _load(data_dir, "locations")}

    events = 0
    for raw in _load(data_dir, "events"):
        payload = dict(raw)
        payload["organizerId"] = organizer_ids[payload.pop("organizer")]
        loc_name = payload.pop("location", None)
        payload["location"] = locations[loc_name] if loc_name else None
        payload["sections"] = [
            {**{k: v for k, v in s.items() if k != "speakers"}, "speakerIds": [bitcoiner_ids[n] for n in s.get("speakers", [])]}
            for s in payload.get("sections", [])
        ]
        repositories.EventRepository(session).create(validators.validate_event(payload), SEED_UID)
        events += 1

    return {"organizers": len(organizer_ids), "bitcoiners": len(bitcoiner_ids), "events": events}


def main(reset: bool = False, data_dir: pathlib.Path = DATA_DIR):
    if reset:
        print("Clearing existing data...")
        drop_db_and_tables()
    create_db_and_tables()
    with Session(engine) as session:
        try:
            counts = seed(session, data_dir)
        except (ValidationError, KeyError) as exc:
            print(f"Seeding failed: {exc}")
            sys.exit(1)
    print("Seeding completed:")
    for kind, n in counts.items():
        print(f"- {kind}: {n}")


if __name__ == '__main__':
    p = argparse.ArgumentParser()
    p.add_argument('--reset', action='store_true', help='drop and recreate all tables first')
    p.add_argument('--data-dir', type=pathlib.Path, default=DATA_DIR)
    args = p.parse_args()
    main(reset=args.reset, data_dir=args.data_dir)

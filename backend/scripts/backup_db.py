"""Write a timestamped copy of the SQLite database into `backup/`.

Usage: python scripts/backup_db.py [--out-dir DIR]

Uses the sqlite3 online backup API, so the app can keep running while
the copy is taken. Only `sqlite:///` database URLs are supported.
"""
import sys
import sqlite3
import argparse
import pathlib
from datetime import datetime
from typing import Optional
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from lnconnext.config import settings


def sqlite_path(database_url: str) -> pathlib.Path:
    prefix = "sqlite:///"
    if not database_url.startswith(prefix):
        raise ValueError(f"backup only supports sqlite databases, got {database_url.split(':', 1)[0]}")
    return pathlib.Path(database_url[len(prefix):])


def backup(database_url: str, out_dir: pathlib.Path, now: Optional[datetime] = None) -> pathlib.Path:
    """Copy the database to `out_dir/<YYYYmmdd_HHMMSS>/app.db` and return that path."""
    src_path = sqlite_path(database_url)
    if not src_path.exists():
        raise FileNotFoundError(f"database not found at {src_path}")
    stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    target_dir = out_dir / stamp
    target_dir.mkdir(parents=True, exist_ok=True)
    target = target_dir / src_path.name
    src = sqlite3.connect(src_path)
    dst = sqlite3.connect(target)
    try:
        src.backup(dst)
    finally:
        dst.close()
        src.close()
    return target


def main(out_dir: pathlib.Path):
    print("Starting database backup...")
    try:
        target = backup(settings.DATABASE_URL, out_dir)
    except (ValueError, FileNotFoundError, sqlite3.Error) as exc:
        print(f"Backup failed: {exc}")
        sys.exit(1)
    print(f"Backup completed: {target}")
    print(f"To restore, copy it over {sqlite_path(settings.DATABASE_URL)} while the app is stopped.")


if __name__ == '__main__':
    p = argparse.ArgumentParser()
    p.add_argument('--out-dir', type=pathlib.Path, default=ROOT / 'backup')
    args = p.parse_args()
    main(args.out_dir)

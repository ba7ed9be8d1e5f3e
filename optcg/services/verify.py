from __future__ import annotations

import sqlite3
from pathlib import Path

REQUIRED_COLUMNS = {
    "series": {"series_id", "series_name"},
    "cards": {"cid", "display_code", "name", "card_type", "cost", "power", "counter"},
    "variants": {"cid", "image_src", "series_id", "is_alternate_art"},
    "files": {"cid", "file_path"},
}


def inspect_store(path: str | Path) -> list[str]:
    """Check a finished store for the post-normalization tables."""
    issues: list[str] = []
    db_path = Path(path)
    if not db_path.exists() or not db_path.is_file() or db_path.stat().st_size == 0:
        return [f"store file is missing or empty: {db_path}"]

    try:
        conn = sqlite3.connect(db_path)
        try:
            tables = {
                r[0]
                for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
            }
            for table, required in REQUIRED_COLUMNS.items():
                if table not in tables:
                    issues.append(f"table missing: {table}")
                    continue
                cols = {r[1] for r in conn.execute(f"PRAGMA table_info({table})").fetchall()}
                missing = required - cols
                if missing:
                    issues.append(f"{table} columns missing: {', '.join(sorted(missing))}")
            if "card_rows" in tables:
                issues.append("raw table card_rows still present (store not normalized)")
        finally:
            conn.close()
    except sqlite3.Error as ex:
        issues.append(f"store inspection failed: {ex}")
    return issues


def inspect_data_root(data_root: Path) -> list[str]:
    issues: list[str] = []
    try:
        data_root.mkdir(parents=True, exist_ok=True)
        probe = data_root / ".write_test"
        probe.write_text("ok", encoding="utf-8")
        probe.unlink()
    except OSError as ex:
        issues.append(f"data folder is not writable: {ex}")
    return issues


def run_startup_checks(data_root: Path) -> list[str]:
    return inspect_data_root(data_root)

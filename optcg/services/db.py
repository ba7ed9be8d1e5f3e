"""
SQLite catalog store.

Every public method opens its own connection and closes it before
returning. Multi-row writes run inside one explicit transaction, so a
failed batch leaves the store as it was before the batch.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, Mapping

from optcg.errors import StorageError
from optcg.models import (
    CanonicalCard,
    FileRecord,
    NormalizeSummary,
    RawCardRow,
    Variant,
    WorkItem,
)
from optcg.services.parser import is_alternate_art

logger = logging.getLogger(__name__)

SERIES_DDL = """
CREATE TABLE IF NOT EXISTS series(
  series_id TEXT PRIMARY KEY,
  series_name TEXT NOT NULL
);
"""

CARD_ROWS_DDL = """
CREATE TABLE IF NOT EXISTS card_rows(
  row_id INTEGER PRIMARY KEY AUTOINCREMENT,
  display_code TEXT NOT NULL,
  name TEXT,
  species TEXT,
  card_type TEXT,
  image_src TEXT,
  cost INTEGER NOT NULL DEFAULT 0,
  power INTEGER NOT NULL DEFAULT 0,
  counter INTEGER NOT NULL DEFAULT 0,
  color TEXT,
  feature TEXT,
  effect_text TEXT,
  acquisition_text TEXT,
  series_id TEXT NOT NULL
);
"""

CARDS_STAGING_DDL = """
CREATE TABLE cards_staging(
  cid INTEGER PRIMARY KEY,
  display_code TEXT NOT NULL,
  name TEXT,
  card_type TEXT,
  cost INTEGER NOT NULL,
  power INTEGER NOT NULL,
  counter INTEGER NOT NULL,
  color TEXT,
  feature TEXT,
  effect_text TEXT
);
"""

VARIANTS_DDL = """
CREATE TABLE variants(
  cid INTEGER PRIMARY KEY,
  image_src TEXT,
  species TEXT,
  acquisition_text TEXT,
  series_id TEXT NOT NULL,
  is_alternate_art INTEGER NOT NULL
);
"""

FILES_DDL = """
CREATE TABLE IF NOT EXISTS files(
  file_id INTEGER PRIMARY KEY AUTOINCREMENT,
  cid INTEGER NOT NULL,
  file_path TEXT NOT NULL
);
"""


def _describe_rows(rows: list[RawCardRow]) -> str:
    if not rows:
        return "0 rows"
    series = sorted({r.series_id for r in rows})
    return f"{len(rows)} rows, series={','.join(series)}, first={rows[0].display_code}"


class CatalogStore:
    def __init__(self, db_path: str | Path) -> None:
        if not str(db_path).strip():
            raise ValueError("DB path is empty")
        self.db_path = Path(db_path)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        # autocommit; transactions are opened explicitly
        conn = sqlite3.connect(self.db_path, isolation_level=None)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    @staticmethod
    @contextmanager
    def _transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
        conn.execute("BEGIN")
        try:
            yield conn
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")

    def upsert_series(self, series: Mapping[str, str]) -> int:
        items = [(sid, name) for sid, name in series.items()]
        try:
            with self._connect() as conn, self._transaction(conn):
                conn.execute(SERIES_DDL)
                conn.executemany(
                    """
                    INSERT INTO series(series_id, series_name)
                    VALUES(?, ?)
                    ON CONFLICT(series_id) DO UPDATE SET series_name=excluded.series_name
                    """,
                    items,
                )
        except sqlite3.Error as ex:
            raise StorageError("upsert_series", f"{len(items)} series: {dict(items)}", str(ex)) from ex
        return len(items)

    def load_series_index(self) -> dict[str, str]:
        try:
            with self._connect() as conn:
                conn.execute(SERIES_DDL)
                rows = conn.execute(
                    "SELECT series_id, series_name FROM series ORDER BY rowid"
                ).fetchall()
        except sqlite3.Error as ex:
            raise StorageError("load_series_index", "full scan", str(ex)) from ex
        return {r["series_id"]: r["series_name"] for r in rows}

    def append_card_rows(self, rows: Iterable[RawCardRow]) -> int:
        rows = list(rows)
        params = [
            (
                r.display_code,
                r.name,
                r.species,
                r.card_type,
                r.image_src,
                r.cost,
                r.power,
                r.counter,
                r.color,
                r.feature,
                r.effect_text,
                r.acquisition_text,
                r.series_id,
            )
            for r in rows
        ]
        try:
            with self._connect() as conn, self._transaction(conn):
                conn.execute(CARD_ROWS_DDL)
                conn.executemany(
                    """
                    INSERT INTO card_rows(display_code,name,species,card_type,image_src,cost,power,counter,color,feature,effect_text,acquisition_text,series_id)
                    VALUES(?,?,?,?,?,?,?,?,?,?,?,?,?)
                    """,
                    params,
                )
        except sqlite3.Error as ex:
            raise StorageError("append_card_rows", _describe_rows(rows), str(ex)) from ex
        return len(rows)

    def load_card_rows(self) -> list[RawCardRow]:
        try:
            with self._connect() as conn:
                rows = conn.execute("SELECT * FROM card_rows ORDER BY row_id").fetchall()
        except sqlite3.Error as ex:
            raise StorageError("load_card_rows", "full scan", str(ex)) from ex
        return [RawCardRow(**dict(r)) for r in rows]

    def normalize(self) -> NormalizeSummary:
        """
        Split raw rows into canonical cards and variants, then retire the
        raw table.

        cid is the row's position ordered by (display_code, row_id). Card
        and variant are both written from the same source row with the
        same cid; nothing is looked up by display_code. Earlier cards,
        variants and files are discarded since their cids are reassigned.
        """
        try:
            with self._connect() as conn, self._transaction(conn):
                tables = self._tables(conn)
                if "card_rows" not in tables and {"cards", "variants"} & tables:
                    raise StorageError("normalize", "card_rows", "store is already normalized")
                # nothing extracted yet normalizes to empty tables
                conn.execute(CARD_ROWS_DDL)

                conn.execute("DROP TABLE IF EXISTS cards_staging")
                conn.execute("DROP TABLE IF EXISTS cards")
                conn.execute("DROP TABLE IF EXISTS variants")
                conn.execute("DROP TABLE IF EXISTS files")
                conn.execute("DROP TABLE IF EXISTS temp.cid_map")

                conn.execute(
                    """
                    CREATE TEMP TABLE cid_map AS
                    SELECT
                        row_id,
                        row_number() OVER (ORDER BY display_code, row_id) AS cid
                    FROM card_rows
                    """
                )

                conn.execute(CARDS_STAGING_DDL)
                conn.execute(
                    """
                    INSERT INTO cards_staging(cid,display_code,name,card_type,cost,power,counter,color,feature,effect_text)
                    SELECT m.cid, r.display_code, r.name, r.card_type, r.cost, r.power, r.counter, r.color, r.feature, r.effect_text
                    FROM card_rows r
                    JOIN cid_map m ON m.row_id = r.row_id
                    ORDER BY m.cid
                    """
                )

                conn.execute(VARIANTS_DDL)
                source = conn.execute(
                    """
                    SELECT m.cid, r.image_src, r.species, r.acquisition_text, r.series_id
                    FROM card_rows r
                    JOIN cid_map m ON m.row_id = r.row_id
                    ORDER BY m.cid
                    """
                ).fetchall()
                variants = [
                    (
                        r["cid"],
                        r["image_src"],
                        r["species"],
                        r["acquisition_text"],
                        r["series_id"],
                        1 if is_alternate_art(r["image_src"] or "") else 0,
                    )
                    for r in source
                ]
                conn.executemany(
                    """
                    INSERT INTO variants(cid,image_src,species,acquisition_text,series_id,is_alternate_art)
                    VALUES(?,?,?,?,?,?)
                    """,
                    variants,
                )

                raw_count = conn.execute("SELECT COUNT(*) FROM card_rows").fetchone()[0]
                card_count = conn.execute("SELECT COUNT(*) FROM cards_staging").fetchone()[0]
                variant_count = conn.execute("SELECT COUNT(*) FROM variants").fetchone()[0]
                paired = conn.execute(
                    "SELECT COUNT(*) FROM cards_staging c JOIN variants v ON v.cid = c.cid"
                ).fetchone()[0]
                if not (raw_count == card_count == variant_count == paired):
                    raise StorageError(
                        "normalize",
                        f"raw={raw_count} cards={card_count} variants={variant_count} paired={paired}",
                        "card/variant pairing is not one-to-one",
                    )

                conn.execute("DROP TABLE card_rows")
                conn.execute("ALTER TABLE cards_staging RENAME TO cards")
                conn.execute(FILES_DDL)
                conn.execute("DROP TABLE temp.cid_map")
        except sqlite3.Error as ex:
            raise StorageError("normalize", "card_rows", str(ex)) from ex

        alt = sum(v[5] for v in variants)
        return NormalizeSummary(raw_rows=raw_count, cards=card_count, variants=variant_count, alternate_art=alt)

    def load_cards(self) -> list[CanonicalCard]:
        try:
            with self._connect() as conn:
                rows = conn.execute("SELECT * FROM cards ORDER BY cid").fetchall()
        except sqlite3.Error as ex:
            raise StorageError("load_cards", "full scan", str(ex)) from ex
        return [CanonicalCard(**dict(r)) for r in rows]

    def load_variants(self) -> list[Variant]:
        try:
            with self._connect() as conn:
                rows = conn.execute("SELECT * FROM variants ORDER BY cid").fetchall()
        except sqlite3.Error as ex:
            raise StorageError("load_variants", "full scan", str(ex)) from ex
        out = []
        for r in rows:
            d = dict(r)
            d["is_alternate_art"] = bool(d["is_alternate_art"])
            out.append(Variant(**d))
        return out

    def fetch_download_worklist(self) -> list[WorkItem]:
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    """
                    SELECT v.cid, v.image_src, s.series_name
                    FROM variants v
                    INNER JOIN cards c ON c.cid = v.cid
                    INNER JOIN series s ON s.series_id = v.series_id
                    ORDER BY s.series_name, s.series_id, v.cid
                    """
                ).fetchall()
        except sqlite3.Error as ex:
            raise StorageError("fetch_download_worklist", "variants/cards/series join", str(ex)) from ex
        return [WorkItem(cid=r["cid"], image_src=r["image_src"] or "", series_name=r["series_name"]) for r in rows]

    def record_file(self, cid: int, path: str | Path) -> None:
        try:
            with self._connect() as conn, self._transaction(conn):
                conn.execute(FILES_DDL)
                conn.execute("INSERT INTO files(cid, file_path) VALUES(?, ?)", (cid, str(path)))
        except sqlite3.Error as ex:
            raise StorageError("record_file", f"cid={cid} path={path}", str(ex)) from ex

    def load_files(self) -> list[FileRecord]:
        try:
            with self._connect() as conn:
                conn.execute(FILES_DDL)
                rows = conn.execute("SELECT cid, file_path FROM files ORDER BY file_id").fetchall()
        except sqlite3.Error as ex:
            raise StorageError("load_files", "full scan", str(ex)) from ex
        return [FileRecord(cid=r["cid"], path=r["file_path"]) for r in rows]

    @staticmethod
    def _tables(conn: sqlite3.Connection) -> set[str]:
        rows = conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
        return {r[0] for r in rows}

    def table_names(self) -> set[str]:
        try:
            with self._connect() as conn:
                return self._tables(conn)
        except sqlite3.Error as ex:
            raise StorageError("table_names", "sqlite_master", str(ex)) from ex

"""Tests for settings, logging and the startup/store checks."""

import logging
import sqlite3
from pathlib import Path

import pytest

from conftest import make_row
from optcg.config import load_settings
from optcg.constants import SETTLE_SECONDS, SITE_URLS
from optcg.logs import close_logging, setup_logging
from optcg.paths import reset_dir
from optcg.services.db import CatalogStore
from optcg.services.verify import inspect_store, run_startup_checks

ENV_VARS = (
    "OPTCG_DATA_ROOT",
    "OPTCG_SITE",
    "OPTCG_HEADLESS",
    "OPTCG_SETTLE_SECONDS",
    "OPTCG_CONSENT_TIMEOUT_MS",
    "OPTCG_LOG_LEVEL",
)


@pytest.fixture
def clean_env(monkeypatch, tmp_path: Path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("OPTCG_DATA_ROOT", str(tmp_path / "data"))
    return monkeypatch


class TestSettings:
    def test_defaults(self, clean_env, tmp_path: Path) -> None:
        settings = load_settings()

        assert settings.data_root == tmp_path / "data"
        assert settings.site_url is None
        assert settings.headless is True
        assert settings.settle_seconds == SETTLE_SECONDS
        assert settings.log_level == "INFO"

    def test_overrides(self, clean_env) -> None:
        clean_env.setenv("OPTCG_SITE", " JA ")
        clean_env.setenv("OPTCG_HEADLESS", "false")
        clean_env.setenv("OPTCG_SETTLE_SECONDS", "0.5")
        clean_env.setenv("OPTCG_CONSENT_TIMEOUT_MS", "2500")
        clean_env.setenv("OPTCG_LOG_LEVEL", "debug")

        settings = load_settings()

        assert settings.site_url == SITE_URLS["ja"]
        assert settings.headless is False
        assert settings.settle_seconds == 0.5
        assert settings.consent_timeout_ms == 2500
        assert settings.log_level == "DEBUG"

    def test_unknown_site_rejected(self, clean_env) -> None:
        clean_env.setenv("OPTCG_SITE", "en")

        with pytest.raises(ValueError, match="OPTCG_SITE"):
            load_settings()

    def test_bad_number_rejected(self, clean_env) -> None:
        clean_env.setenv("OPTCG_SETTLE_SECONDS", "soon")

        with pytest.raises(ValueError, match="OPTCG_SETTLE_SECONDS"):
            load_settings()


class TestLogging:
    def test_dated_log_file(self, tmp_path: Path) -> None:
        root = logging.getLogger()
        saved = list(root.handlers), root.level
        try:
            log_path = setup_logging(tmp_path / "log", "WARNING")
            logging.getLogger("optcg.test").debug("debug line")
            for h in root.handlers:
                h.flush()

            assert log_path.parent == tmp_path / "log"
            assert len(log_path.stem) == 8 and log_path.stem.isdigit()
            assert log_path.suffix == ".txt"
            assert "debug line" in log_path.read_text(encoding="utf-8")
        finally:
            for h in list(root.handlers):
                root.removeHandler(h)
                h.close()
            for h in saved[0]:
                root.addHandler(h)
            root.setLevel(saved[1])

    def test_close_releases_log_file(self, tmp_path: Path) -> None:
        root = logging.getLogger()
        saved = list(root.handlers), root.level
        try:
            setup_logging(tmp_path / "log")
            file_handlers = [h for h in root.handlers if isinstance(h, logging.FileHandler)]

            close_logging()

            assert len(file_handlers) == 1
            assert file_handlers[0] not in root.handlers
            assert file_handlers[0].stream is None
        finally:
            for h in saved[0]:
                root.addHandler(h)
            root.setLevel(saved[1])


class TestPaths:
    def test_reset_dir_empties_existing(self, tmp_path: Path) -> None:
        target = tmp_path / "images"
        (target / "sub").mkdir(parents=True)
        (target / "sub" / "a.png").write_bytes(b"x")

        reset_dir(target)

        assert target.is_dir()
        assert list(target.iterdir()) == []


class TestChecks:
    def test_writable_data_root(self, tmp_path: Path) -> None:
        assert run_startup_checks(tmp_path / "data") == []

    def test_missing_store(self, tmp_path: Path) -> None:
        issues = inspect_store(tmp_path / "nope.db")

        assert len(issues) == 1
        assert "missing" in issues[0]

    def test_normalized_store_passes(self, store: CatalogStore) -> None:
        store.upsert_series({"OP01": "Romance Dawn"})
        store.append_card_rows([make_row()])
        store.normalize()
        store.record_file(1, "images/Romance Dawn/OP01-001.png")

        assert inspect_store(store.db_path) == []

    def test_unnormalized_store_is_flagged(self, store: CatalogStore) -> None:
        store.upsert_series({"OP01": "Romance Dawn"})
        store.append_card_rows([make_row()])

        issues = inspect_store(store.db_path)

        assert "table missing: cards" in issues
        assert any("card_rows" in i for i in issues)

    def test_missing_column_is_flagged(self, tmp_path: Path) -> None:
        path = tmp_path / "old.db"
        conn = sqlite3.connect(path)
        conn.execute("CREATE TABLE series(series_id TEXT)")
        conn.commit()
        conn.close()

        issues = inspect_store(path)

        assert "series columns missing: series_name" in issues

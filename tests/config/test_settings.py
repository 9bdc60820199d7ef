"""
Runtime settings: resolution order, parsing and validation.

get_active_settings() is the only entrypoint; every call leaves a
LEDGER_CONFIG_TRACE log entry.
"""

from decimal import Decimal
from pathlib import Path

import pytest
import yaml

from ledger_config import LedgerSettings, get_active_settings, resolve_config_path
from ledger_config.loader import compute_checksum, parse_settings


def _write(tmp_path: Path, data: dict) -> Path:
    path = tmp_path / "ledger.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


@pytest.fixture(autouse=True)
def _no_env_overrides(monkeypatch):
    monkeypatch.delenv("LEDGER_CONFIG_PATH", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)


class TestPackagedDefaults:

    def test_defaults_match_schema(self):
        settings = get_active_settings()

        assert settings == LedgerSettings()
        assert settings.reconciliation_tolerance == Decimal("0.01")
        assert settings.default_entry_prefix == "AS"

    def test_default_path_is_packaged_file(self):
        path = resolve_config_path()
        assert path.name == "defaults.yaml"
        assert path.exists()


class TestResolution:

    def test_explicit_path_wins(self, tmp_path, monkeypatch):
        explicit = _write(tmp_path, {"ledger": {"default_entry_prefix": "JV"}})
        monkeypatch.setenv("LEDGER_CONFIG_PATH", str(tmp_path / "missing.yaml"))

        assert get_active_settings(explicit).default_entry_prefix == "JV"

    def test_env_path(self, tmp_path, monkeypatch):
        path = _write(tmp_path, {"closing": {"reconciliation_tolerance": "0.05"}})
        monkeypatch.setenv("LEDGER_CONFIG_PATH", str(path))

        assert get_active_settings().reconciliation_tolerance == Decimal("0.05")

    def test_database_url_env_override(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://ledger@localhost/ledger")

        assert get_active_settings().database_url == "postgresql://ledger@localhost/ledger"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_settings(tmp_path / "nope.yaml")


class TestParsing:

    def test_absent_sections_fall_back(self):
        assert parse_settings({}) == LedgerSettings()

    def test_float_tolerance_parsed_without_float_noise(self):
        settings = parse_settings({"closing": {"reconciliation_tolerance": 0.1}})
        assert settings.reconciliation_tolerance == Decimal("0.1")

    def test_log_level_uppercased(self):
        assert parse_settings({"logging": {"level": "debug"}}).log_level == "DEBUG"

    @pytest.mark.parametrize(
        "data",
        [
            {"closing": {"reconciliation_tolerance": "-0.01"}},
            {"closing": {"reconciliation_tolerance": "abc"}},
            {"ledger": {"default_entry_prefix": ""}},
            {"ledger": {"sequence_width": 0}},
            {"ledger": {"sequence_width": True}},
            {"ledger": {"currency_places": "two"}},
            {"logging": {"level": "VERBOSE"}},
            {"closing": ["not", "a", "mapping"]},
        ],
        ids=[
            "negative-tolerance",
            "bad-decimal",
            "empty-prefix",
            "zero-width",
            "bool-width",
            "text-places",
            "unknown-level",
            "section-not-mapping",
        ],
    )
    def test_invalid_values_rejected(self, data):
        with pytest.raises(ValueError):
            parse_settings(data)

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ValueError):
            get_active_settings(path)


class TestConfigTrace:

    def test_trace_logged_with_checksum(self, tmp_path, captured_logs):
        path = _write(tmp_path, {"ledger": {"sequence_width": 8}})

        settings = get_active_settings(path)

        traces = [r for r in captured_logs() if r["message"] == "LEDGER_CONFIG_TRACE"]
        assert len(traces) == 1
        assert traces[0]["source"] == str(path)
        assert traces[0]["checksum"] == compute_checksum(settings)
        assert traces[0]["database_url_from_env"] is False

    def test_checksum_tracks_values(self):
        assert compute_checksum(LedgerSettings()) == compute_checksum(LedgerSettings())
        assert compute_checksum(LedgerSettings()) != compute_checksum(
            LedgerSettings(sequence_width=8),
        )

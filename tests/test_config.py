import pytest
from conftest import pytest_report_header

from garagedesk import main as entry
from garagedesk.config import ConfigError, load_config, parse_config
from garagedesk.db import Db, DbError

CONFIG = """
[app]
name = "Test Garage"
log_level = "debug"

[db]
host = "127.0.0.1"
name = "garagedesk"
user = "garagedesk"
password = "secret"

[business]
admin_password = "letmein"
invoice_prefix = "BILL"
"""


def test_load_config(tmp_path) -> None:
    path = tmp_path / "config.toml"
    path.write_text(CONFIG, encoding="utf-8")

    cfg = load_config(path)
    assert cfg.name == "Test Garage"
    assert cfg.log_level == "DEBUG"
    assert cfg.db.port == 5432
    assert cfg.business.invoice_prefix == "BILL"
    assert cfg.business.free_service_threshold == 10
    assert cfg.http.port == 5000


def test_config_path_from_environment(tmp_path, monkeypatch) -> None:
    path = tmp_path / "elsewhere.toml"
    path.write_text(CONFIG, encoding="utf-8")
    monkeypatch.setenv("GARAGEDESK_CONFIG", str(path))
    assert load_config().business.admin_password == "letmein"


def test_missing_file_and_keys(tmp_path) -> None:
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "absent.toml")
    with pytest.raises(ConfigError, match="admin_password"):
        parse_config({"db": {"host": "h", "name": "n", "user": "u", "password": "p"}, "business": {}})


def test_invalid_values(tmp_path) -> None:
    broken = tmp_path / "broken.toml"
    broken.write_text("[db\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(broken)

    with pytest.raises(ConfigError, match="free_service_threshold"):
        parse_config(
            {
                "db": {"host": "h", "name": "n", "user": "u", "password": "p"},
                "business": {"admin_password": "x", "free_service_threshold": 0},
            }
        )


def test_main_exit_codes(tmp_path, monkeypatch) -> None:
    assert entry.main(["--config", str(tmp_path / "absent.toml"), "init-db"]) == 2

    path = tmp_path / "config.toml"
    path.write_text(CONFIG, encoding="utf-8")

    def unreachable(self, *args, **kwargs):
        raise DbError("Cannot connect to database.")

    monkeypatch.setattr(Db, "apply_schema", unreachable)
    assert entry.main(["--config", str(path), "init-db"]) == 3

    monkeypatch.setattr(Db, "apply_schema", lambda self, *a, **kw: None)
    assert entry.main(["--config", str(path), "init-db"]) == 0


def test_report_header_says_whether_sql_runs(monkeypatch) -> None:
    monkeypatch.delenv("GARAGEDESK_TEST_DSN", raising=False)
    assert "skipped" in pytest_report_header(None)
    monkeypatch.setenv("GARAGEDESK_TEST_DSN", "dbname=garagedesk_test")
    assert "enabled" in pytest_report_header(None)

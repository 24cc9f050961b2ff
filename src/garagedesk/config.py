from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path

CONFIG_ENV_VAR = "GARAGEDESK_CONFIG"
DEFAULT_CONFIG_PATH = "config.toml"


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class DbConfig:
    host: str
    port: int
    name: str
    user: str
    password: str
    sslmode: str = "disable"


@dataclass(frozen=True)
class BusinessConfig:
    admin_password: str
    invoice_prefix: str = "INV"
    serial_width: int = 3
    free_service_threshold: int = 10
    counter_name: str = "work_order_sequence"


@dataclass(frozen=True)
class HttpConfig:
    host: str = "127.0.0.1"
    port: int = 5000


@dataclass(frozen=True)
class AppConfig:
    name: str
    log_level: str
    db: DbConfig
    business: BusinessConfig
    http: HttpConfig


def resolve_config_path(path: str | Path | None = None) -> Path:
    if path:
        return Path(path)
    return Path(os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH))


def load_config(path: str | Path | None = None) -> AppConfig:
    p = resolve_config_path(path)
    if not p.exists():
        raise ConfigError(f"Config file not found: {p.resolve()}")

    try:
        data = tomllib.loads(p.read_text(encoding="utf-8"))
    except Exception as e:
        raise ConfigError(f"Failed to read config TOML: {e}") from e

    return parse_config(data)


def parse_config(data: dict) -> AppConfig:
    try:
        app = data.get("app", {})
        db = data["db"]
        business = data["business"]
        http = data.get("http", {})

        threshold = int(business.get("free_service_threshold", 10))
        if threshold <= 0:
            raise ValueError("free_service_threshold must be > 0")
        width = int(business.get("serial_width", 3))
        if width <= 0:
            raise ValueError("serial_width must be > 0")

        return AppConfig(
            name=str(app.get("name", "GarageDesk")),
            log_level=str(app.get("log_level", "INFO")).upper(),
            db=DbConfig(
                host=str(db["host"]),
                port=int(db.get("port", 5432)),
                name=str(db["name"]),
                user=str(db["user"]),
                password=str(db["password"]),
                sslmode=str(db.get("sslmode", "disable")),
            ),
            business=BusinessConfig(
                admin_password=str(business["admin_password"]),
                invoice_prefix=str(business.get("invoice_prefix", "INV")),
                serial_width=width,
                free_service_threshold=threshold,
                counter_name=str(business.get("counter_name", "work_order_sequence")),
            ),
            http=HttpConfig(
                host=str(http.get("host", "127.0.0.1")),
                port=int(http.get("port", 5000)),
            ),
        )
    except KeyError as e:
        raise ConfigError(f"Missing config key: {e}") from e
    except Exception as e:
        raise ConfigError(f"Invalid config values: {e}") from e

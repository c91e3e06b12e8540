"""Configuration and shared settings."""

__version__ = "0.1.0"

import os
import sys
from dataclasses import dataclass, field

from dotenv import load_dotenv

from hrflow.domain.managers.base import ManagerSettings

load_dotenv()

_stderr_print = lambda *a, **kw: print(*a, **kw, file=sys.stderr)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        _stderr_print(f"Invalid {name}={raw!r}, falling back to {default}")
        return default
    if value < minimum:
        _stderr_print(f"{name}={value} is below {minimum}, falling back to {default}")
        return default
    return value


def _env_float(name: str, default: float, low: float, high: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        _stderr_print(f"Invalid {name}={raw!r}, falling back to {default}")
        return default
    if not low <= value <= high:
        _stderr_print(f"{name}={value} outside [{low}, {high}], falling back to {default}")
        return default
    return value


CONFIG = {
    "host": os.getenv("HRFLOW_HOST", "127.0.0.1"),
    "port": _env_int("PORT", 3000, minimum=1),
    "data_dir": os.getenv("HRFLOW_DATA_DIR", "data"),
    # Fuzzy matching
    "match_threshold": _env_float("HRFLOW_MATCH_THRESHOLD", 0.6, 0.0, 1.0),
    "auto_select_score": _env_float("HRFLOW_AUTO_SELECT_SCORE", 0.95, 0.0, 1.0),
    "max_candidates": _env_int("HRFLOW_MAX_CANDIDATES", 3, minimum=1),
    # Confirmations
    "confirmation_ttl_minutes": _env_int("HRFLOW_CONFIRMATION_TTL_MINUTES", 30, minimum=1),
    "report_permission_denied": _env_bool("HRFLOW_REPORT_PERMISSION_DENIED", "false"),
    # Notifications
    "notify_webhook_url": os.getenv("HRFLOW_NOTIFY_WEBHOOK_URL", ""),
    "notify_webhook_token": os.getenv("HRFLOW_NOTIFY_WEBHOOK_TOKEN", ""),
    "hr_email": os.getenv("HRFLOW_HR_EMAIL", "hr@company.com"),
    "email_domain": os.getenv("HRFLOW_EMAIL_DOMAIN", "company.com"),
    # Domain defaults
    "default_pto_days": _env_int("HRFLOW_DEFAULT_PTO_DAYS", 15),
    "low_stock_threshold": _env_int("HRFLOW_LOW_STOCK_THRESHOLD", 5),
    # Termination sweep; 0 disables the background loop
    "sweep_interval_seconds": _env_int("HRFLOW_SWEEP_INTERVAL_SECONDS", 3600),
}


# ── Typed config ──────────────────────────────────────


@dataclass
class ResolverConfig:
    threshold: float = 0.6
    auto_select: float = 0.95
    max_candidates: int = 3


@dataclass
class NotifyConfig:
    webhook_url: str = ""
    webhook_token: str = ""

    @property
    def is_configured(self) -> bool:
        return bool(self.webhook_url)


@dataclass
class AppConfig:
    """Typed view of CONFIG, passed to create_app."""

    host: str = "127.0.0.1"
    port: int = 3000
    data_dir: str = "data"
    confirmation_ttl_minutes: int = 30
    report_permission_denied: bool = False
    sweep_interval_seconds: int = 3600
    resolver: ResolverConfig = field(default_factory=ResolverConfig)
    notify: NotifyConfig = field(default_factory=NotifyConfig)
    managers: ManagerSettings = field(default_factory=ManagerSettings)

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create AppConfig from environment variables."""
        return cls(
            host=CONFIG["host"],
            port=CONFIG["port"],
            data_dir=CONFIG["data_dir"],
            confirmation_ttl_minutes=CONFIG["confirmation_ttl_minutes"],
            report_permission_denied=CONFIG["report_permission_denied"],
            sweep_interval_seconds=CONFIG["sweep_interval_seconds"],
            resolver=ResolverConfig(
                threshold=CONFIG["match_threshold"],
                auto_select=CONFIG["auto_select_score"],
                max_candidates=CONFIG["max_candidates"],
            ),
            notify=NotifyConfig(
                webhook_url=CONFIG["notify_webhook_url"],
                webhook_token=CONFIG["notify_webhook_token"],
            ),
            managers=ManagerSettings(
                default_pto_days=CONFIG["default_pto_days"],
                low_stock_threshold=CONFIG["low_stock_threshold"],
                email_domain=CONFIG["email_domain"],
                hr_email=CONFIG["hr_email"],
            ),
        )

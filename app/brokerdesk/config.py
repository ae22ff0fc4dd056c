import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str

    transmission_success_probability: float
    transmission_simulated_latency: float
    transmission_max_workers: int
    transmission_history_limit: int


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_float(name: str, default: float) -> float:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number (got {raw!r}).")


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer (got {raw!r}).")


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///brokerdesk.db"),
        transmission_success_probability=_getenv_float("TRANSMISSION_SUCCESS_PROBABILITY", 0.9),
        transmission_simulated_latency=_getenv_float("TRANSMISSION_SIMULATED_LATENCY", 0.0),
        transmission_max_workers=_getenv_int("TRANSMISSION_MAX_WORKERS", 4),
        transmission_history_limit=_getenv_int("TRANSMISSION_HISTORY_LIMIT", 50),
    )


def load_config() -> dict:
    s = load_settings()
    if not 0.0 <= s.transmission_success_probability <= 1.0:
        raise RuntimeError("TRANSMISSION_SUCCESS_PROBABILITY must be between 0 and 1.")
    if s.transmission_max_workers < 1:
        raise RuntimeError("TRANSMISSION_MAX_WORKERS must be at least 1.")
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "TRANSMISSION_SUCCESS_PROBABILITY": s.transmission_success_probability,
        "TRANSMISSION_SIMULATED_LATENCY": s.transmission_simulated_latency,
        "TRANSMISSION_MAX_WORKERS": s.transmission_max_workers,
        "TRANSMISSION_HISTORY_LIMIT": s.transmission_history_limit,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
        "MAX_CONTENT_LENGTH": 2 * 1024 * 1024,
    }

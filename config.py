import os
from dataclasses import dataclass

from dotenv import find_dotenv, load_dotenv

# ─── DEFAULTS ───────────────────────────────────────────────────
DEFAULT_RPC_HOST     = "go.getblock.io"
DEFAULT_TOP_N        = 5
DEFAULT_CORS_ORIGINS = ("http://localhost:3000",)
DEFAULT_LOG_LEVEL    = "INFO"
LOG_LEVELS           = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")
# ────────────────────────────────────────────────────────────────


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class Config:
    api_key: str
    rpc_host: str = DEFAULT_RPC_HOST
    top_n: int = DEFAULT_TOP_N
    cors_origins: tuple = DEFAULT_CORS_ORIGINS
    log_level: str = DEFAULT_LOG_LEVEL

    @property
    def rpc_url(self) -> str:
        return f"https://{self.rpc_host}/{self.api_key}"


def _positive_int(name, raw, default):
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None
    if value < 1:
        raise ConfigError(f"{name} must be at least 1, got {value}")
    return value


def load_config(env=None, dotenv_path=None) -> Config:
    """
    Build a Config from `env`, or from the process environment (after
    loading .env) when no mapping is given.
    """
    if env is None:
        # .env is searched for upwards from the working directory
        load_dotenv(dotenv_path or find_dotenv(usecwd=True))
        env = os.environ

    api_key = (env.get("ETH_API_KEY") or "").strip()
    if not api_key:
        raise ConfigError("ETH_API_KEY is not set")

    origins = tuple(
        o.strip() for o in (env.get("CORS_ORIGINS") or "").split(",") if o.strip()
    )

    log_level = (env.get("LOG_LEVEL") or DEFAULT_LOG_LEVEL).strip().upper()
    if log_level not in LOG_LEVELS:
        raise ConfigError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {log_level!r}")

    return Config(
        api_key=api_key,
        rpc_host=(env.get("ETH_RPC_HOST") or DEFAULT_RPC_HOST).strip().strip("/"),
        top_n=_positive_int("TOP_N", env.get("TOP_N"), DEFAULT_TOP_N),
        cors_origins=origins or DEFAULT_CORS_ORIGINS,
        log_level=log_level,
    )

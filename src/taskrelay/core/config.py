from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

@dataclass
class Settings:
    log_level: str
    log_dir: str
    host: str
    port: int
    api_base: str
    wallets_dir: str
    static_dir: str | None
    new_task_interval: float
    agent_task_interval: float
    watched_task_interval: float
    state_query_timeout: float
    http_timeout: float
    clear_logs_on_launch: bool
    anthropic_api_key: str
    openai_api_key: str
    openrouter_api_key: str

    @staticmethod
    def from_env() -> "Settings":
        default_home = Path(os.path.expanduser("~")) / ".taskrelay"
        default_log_dir = str(default_home / ".logs")
        return Settings(
            log_level=os.getenv("TASKRELAY_LOG_LEVEL", "info"),
            log_dir=os.getenv("TASKRELAY_LOG_DIR") or default_log_dir,
            host=os.getenv("TASKRELAY_HOST", "127.0.0.1"),
            port=int(os.getenv("TASKRELAY_PORT", "3402")),
            api_base=os.getenv("TASKRELAY_API_BASE", "https://stackstasker.com").rstrip("/"),
            wallets_dir=os.getenv("TASKRELAY_WALLETS_DIR") or str(Path.cwd() / "wallets"),
            static_dir=os.getenv("TASKRELAY_STATIC_DIR") or None,
            new_task_interval=float(os.getenv("TASKRELAY_NEW_TASK_INTERVAL", "5")),
            agent_task_interval=float(os.getenv("TASKRELAY_AGENT_TASK_INTERVAL", "10")),
            watched_task_interval=float(os.getenv("TASKRELAY_WATCHED_TASK_INTERVAL", "10")),
            state_query_timeout=float(os.getenv("TASKRELAY_STATE_QUERY_TIMEOUT", "5")),
            http_timeout=float(os.getenv("TASKRELAY_HTTP_TIMEOUT", "15")),
            clear_logs_on_launch=os.getenv("TASKRELAY_CLEAR_LOGS_ON_LAUNCH", "false").lower() in {"1", "true", "yes"},
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY", ""),
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),
            openrouter_api_key=os.getenv("OPENROUTER_API_KEY", ""),
        )

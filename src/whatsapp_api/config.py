from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


def get_env_files() -> tuple[Path, ...]:
    """Return env files: root .env first, then local .env.local for overrides."""
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / "pyproject.toml").exists():
            root = parent
            break
    else:
        root = Path.cwd()

    files = [f for f in [root / ".env", root / ".env.local"] if f.exists()]
    return tuple(files) if files else (".env",)


class Settings(BaseSettings):
    # API access
    access_token: str | None = None
    cors_origins: str = "*"

    # Server
    host: str = "0.0.0.0"
    port: int = 3000

    # Logging
    log_level: str = "INFO"
    error_log_file: str | None = None

    # Webhook
    webhook_url: str | None = None
    webhook_timeout: float = 10.0

    # Session
    session_path: str = "sessions"
    max_reconnect_attempts: int = 5
    reconnect_delay: float = 2.0
    qr_timeout: float = 60.0
    auto_start_session: bool = True

    # Protocol bridge
    bridge_url: str = "ws://localhost:3001/socket"
    bridge_connect_timeout: float = 20.0
    bridge_request_timeout: float = 30.0
    browser_name: str = "Baileys REST API"
    browser_client: str = "Chrome"
    browser_version: str = "1.0.0"

    model_config = SettingsConfigDict(
        env_file=get_env_files(),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def browser(self) -> tuple[str, str, str]:
        return (self.browser_name, self.browser_client, self.browser_version)


settings = Settings()

"""Client configuration loaded from ``STRANGER_CHAT_*`` environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict

from .protocol import DEFAULT_CAPS, DEFAULT_LANGUAGE


class StrangerChatSettings(BaseSettings):
    """Endpoints, protocol defaults and timeouts for one client."""

    model_config = SettingsConfigDict(
        env_prefix="STRANGER_CHAT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_url: str = "https://front1.omegle.com"
    check_url: str = "https://waw.chatomegle.com/check"
    status_url: str = "https://chatomegle.com/status"

    language: str = DEFAULT_LANGUAGE
    caps: str = DEFAULT_CAPS

    request_timeout: float = 10.0
    # Long-poll requests are held open by the server; keep this above its hold time.
    poll_timeout: float = 65.0

    user_agent: str = (
        "Mozilla/5.0 (X11; Linux x86_64; rv:128.0) Gecko/20100101 Firefox/128.0"
    )
    origin: str = "https://www.omegle.com"

    def headers(self) -> dict[str, str]:
        """Headers sent with every request."""
        return {
            "User-Agent": self.user_agent,
            "Origin": self.origin,
            "Referer": self.origin + "/",
            "Accept": "application/json",
        }

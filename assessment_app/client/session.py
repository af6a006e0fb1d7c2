"""Explicit API session: where to connect and which token to present."""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from assessment_app.config.settings import Settings
from assessment_app.constants.network_constants import REQUEST_TIMEOUT_SECONDS


@dataclass(slots=True)
class ApiSession:
    """Connection details passed into every gateway instead of ambient auth state."""

    base_url: str
    token: str | None = None
    timeout_seconds: float = REQUEST_TIMEOUT_SECONDS

    @classmethod
    def from_settings(cls, settings: Settings, token: str | None = None) -> ApiSession:
        return cls(
            base_url=settings.api_base_url,
            token=token,
            timeout_seconds=settings.request_timeout_seconds,
        )

    def auth_headers(self) -> dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    def open_client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            timeout=self.timeout_seconds,
            headers={"Accept": "application/json", "Content-Type": "application/json"},
        )

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from app.config import Settings
from app.exceptions import CarApiError, CarApiValidationError, ConfigurationError


@dataclass(frozen=True)
class CarApiConfig:
    api_key: str
    base_url: str = "https://carapi.app/api"

    @classmethod
    def from_settings(cls, settings: Settings) -> "CarApiConfig":
        """Validate car-API settings once, at startup."""

        api_key = (settings.car_api_key or "").strip()
        if not api_key:
            raise ConfigurationError("CAR_API_KEY is missing. Please add it to your environment or .env file.")
        return cls(api_key=api_key, base_url=settings.car_api_base_url.rstrip("/"))


class CarApiClient:
    """Read-only client for the CarAPI makes/models/years endpoints.

    Every request carries ``Authorization: Bearer <api key>``. Failures are logged
    with full detail and re-raised as :class:`CarApiError` with a generic message.
    """

    def __init__(self, config: CarApiConfig, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.config = config
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            headers={"Authorization": f"Bearer {config.api_key}"},
            transport=transport,
        )

    async def list_makes(self, page: int = 1, limit: int = 1000) -> Any:
        return await self._get("/makes", {"page": page, "limit": limit}, what="car makes")

    async def list_models(self, make: str | None) -> Any:
        if not make or not make.strip():
            raise CarApiValidationError("Make is required.")
        return await self._get("/models", {"make": make}, what="car models")

    async def list_years(self, make: str | None, model: str | None) -> Any:
        if not make or not make.strip() or not model or not model.strip():
            raise CarApiValidationError("Both make and model are required.")
        return await self._get("/years", {"make": make, "model": model}, what="car years")

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, params: dict[str, Any], *, what: str) -> Any:
        upstream: httpx.Response | None = None
        try:
            upstream = await self._client.get(path, params=params)
            upstream.raise_for_status()
            return upstream.json()
        except (httpx.HTTPError, ValueError) as exc:
            # Non-JSON 2xx bodies arrive here as ValueError.
            structlog.get_logger("car_api").error(
                "car_api_request_failed",
                operation=path.lstrip("/"),
                message=str(exc),
                response=upstream.text if upstream is not None else None,
                status_code=upstream.status_code if upstream is not None else None,
            )
            raise CarApiError(
                f"Failed to fetch {what}",
                status_code=upstream.status_code if upstream is not None else None,
            ) from exc

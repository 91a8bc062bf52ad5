from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import quote

import google.auth.exceptions
import httpx
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from kitchen_dashboard.config import Settings
from kitchen_dashboard.errors import AuthError, CredentialsMissingError, FetchError
from kitchen_dashboard.schemas import TimeWindow


logger = logging.getLogger(__name__)

PAGE_SIZE = 250
MAX_PAGES = 20


def load_service_account_info(settings: Settings) -> dict[str, Any]:
    """Read the service-account payload from the environment or the credentials file.

    Missing and malformed credentials raise distinct errors so either case can
    be diagnosed from the logs.
    """
    if settings.google_service_account_json:
        raw = settings.google_service_account_json
        source = "GOOGLE_SERVICE_ACCOUNT_JSON"
    else:
        path = Path(settings.google_credentials_path)
        if not path.is_file():
            raise CredentialsMissingError(
                "Calendar credentials not configured: set GOOGLE_SERVICE_ACCOUNT_JSON "
                f"or provide a credentials file at {path}"
            )
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise AuthError(f"Calendar credentials file {path} could not be read") from exc
        source = str(path)

    try:
        info = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise AuthError(f"Calendar credentials in {source} are not valid JSON") from exc
    if not isinstance(info, dict):
        raise AuthError(f"Calendar credentials in {source} are not a JSON object")
    return info


@dataclass
class GoogleCalendarClient:
    settings: Settings
    transport: httpx.AsyncBaseTransport | None = field(default=None, repr=False)
    _credentials: dict[str, service_account.Credentials] = field(default_factory=dict, init=False, repr=False)
    _refresh_lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)
    _client: httpx.AsyncClient = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._client = httpx.AsyncClient(
            timeout=self.settings.request_timeout_seconds,
            transport=self.transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def access_token(self, info: dict[str, Any]) -> str:
        cache_key = f"{info.get('client_email')}:{info.get('private_key_id')}"
        credentials = self._credentials.get(cache_key)
        if credentials is None:
            try:
                credentials = service_account.Credentials.from_service_account_info(
                    info, scopes=list(self.settings.google_calendar_scopes)
                )
            except (ValueError, KeyError) as exc:
                raise AuthError("Calendar service-account payload is malformed") from exc
            self._credentials[cache_key] = credentials

        # Today and week fetches share one Credentials object; refresh it once.
        async with self._refresh_lock:
            if not credentials.valid:
                try:
                    await asyncio.to_thread(credentials.refresh, Request())
                except google.auth.exceptions.GoogleAuthError as exc:
                    self._credentials.pop(cache_key, None)
                    raise AuthError("Calendar service account could not obtain an access token") from exc
        return credentials.token

    async def list_events(self, *, calendar_id: str, window: TimeWindow, token: str) -> list[dict]:
        """Return every event overlapping the window, recurring events expanded, sorted by start."""
        url = f"{self.settings.google_calendar_base_url}/calendars/{quote(calendar_id, safe='')}/events"
        params: dict[str, Any] = {
            "timeMin": window.start_instant,
            "timeMax": window.end_instant,
            "singleEvents": "true",
            "orderBy": "startTime",
            "maxResults": PAGE_SIZE,
        }
        headers = {"Authorization": f"Bearer {token}"}

        items: list[dict] = []
        for _ in range(MAX_PAGES):
            try:
                response = await self._client.get(url, params=params, headers=headers)
                response.raise_for_status()
                payload = response.json()
            except httpx.HTTPStatusError as exc:
                if exc.response.status_code in {401, 403}:
                    raise AuthError(f"Calendar provider rejected credentials ({exc.response.status_code})") from exc
                raise FetchError(f"Calendar provider returned {exc.response.status_code}") from exc
            except (httpx.HTTPError, ValueError) as exc:
                raise FetchError("Calendar provider request failed") from exc

            page_items = payload.get("items") if isinstance(payload, dict) else None
            if isinstance(page_items, list):
                items.extend(item for item in page_items if isinstance(item, dict))

            next_token = payload.get("nextPageToken") if isinstance(payload, dict) else None
            if not next_token:
                return items
            params["pageToken"] = next_token

        logger.warning("Calendar %s returned more than %d pages; truncating", calendar_id, MAX_PAGES)
        return items

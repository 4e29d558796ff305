"""Task tracker API client — implements TaskApiPort over httpx.

Authenticates with either a static bearer token (API_TOKEN) or a service
login. A 401 on a service-login session triggers exactly one forced
re-login and retry; every other failure surfaces with its HTTP status.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from src.data.models import Task, User
from src.ports.task_api_port import UpstreamAuthError, UpstreamRequestError

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT_SECONDS = 15.0


def _error_message(response: httpx.Response, fallback: str) -> str:
    try:
        data = response.json()
    except ValueError:
        return fallback
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return fallback


class TaskApiClient:
    """HTTP client for the task tracker backend."""

    def __init__(
        self,
        base_url: str,
        api_token: str | None = None,
        service_login: str | None = None,
        service_password: str | None = None,
        timeout: float = _DEFAULT_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = (base_url or "").rstrip("/")
        self._static_token = api_token or None
        self._service_login = service_login or None
        self._service_password = service_password or None
        self._token: str | None = self._static_token
        self._http = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    async def login(self, force: bool = False) -> str:
        """Obtain a bearer token via the service account."""
        if self._static_token:
            return self._static_token
        if self._token and not force:
            return self._token
        if not self._service_login or not self._service_password:
            raise UpstreamAuthError(
                "API credentials are not provided. "
                "Set API_TOKEN or API_SERVICE_LOGIN/API_SERVICE_PASSWORD."
            )

        try:
            response = await self._http.post(
                f"{self._base_url}/auth/login",
                json={"login": self._service_login, "password": self._service_password},
            )
        except httpx.HTTPError as exc:
            raise UpstreamRequestError(f"API login failed: {exc}") from exc

        if response.status_code == 401:
            raise UpstreamAuthError(
                _error_message(response, "API login rejected"), status=401,
            )
        if response.is_error:
            raise UpstreamRequestError(
                _error_message(response, "API login failed"),
                status=response.status_code,
            )

        data = response.json() or {}
        token = data.get("token")
        if not token:
            raise UpstreamAuthError("API login succeeded but token is missing in response")
        self._token = token
        logger.info(
            "Authenticated against API as %s",
            (data.get("user") or {}).get("login", self._service_login),
        )
        return token

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        retried: bool = False,
    ) -> Any:
        token = await self.login()
        try:
            response = await self._http.request(
                method,
                f"{self._base_url}{path}",
                json=json,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as exc:
            raise UpstreamRequestError(f"API request {method} {path} failed: {exc}") from exc

        if response.status_code == 401:
            if not self._static_token and not retried:
                logger.warning("API token expired, re-authenticating...")
                await self.login(force=True)
                return await self._request(method, path, json=json, retried=True)
            raise UpstreamAuthError(
                _error_message(response, f"API request {method} {path} unauthorized"),
                status=401,
            )

        if response.is_error:
            raise UpstreamRequestError(
                _error_message(response, f"API request failed for {method} {path}"),
                status=response.status_code,
            )

        if not response.content:
            return None
        return response.json()

    async def fetch_users(self) -> list[User]:
        data = await self._request("GET", "/users")
        raw = data.get("users") if isinstance(data, dict) else None
        return [
            User.from_api(item)
            for item in raw or []
            if isinstance(item, dict) and item.get("id") is not None
        ]

    async def fetch_tasks(self) -> list[Task]:
        data = await self._request("GET", "/tasks")
        if isinstance(data, dict):
            data = data.get("tasks")
        if not isinstance(data, list):
            return []
        tasks = []
        for item in data:
            if not isinstance(item, dict) or item.get("id") is None:
                continue
            tasks.append(Task.from_api(item))
        return tasks

    async def update_user_linkage(self, user_id: str, fields: dict[str, Any]) -> User:
        if not user_id:
            raise ValueError("User id is required for Telegram update")
        data = await self._request("PUT", f"/users/{user_id}/telegram", json=fields)
        payload = data.get("user") if isinstance(data, dict) else None
        if not isinstance(payload, dict):
            raise UpstreamRequestError(
                f"API returned no user for Telegram update of {user_id}"
            )
        return User.from_api(payload)

"""Service account credentials and the authorized HTTP client.

Google APIs are called over httpx; google-auth supplies and refreshes the
bearer token. Refresh is a blocking call, so it runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import ssl
from pathlib import Path
from typing import Any

import certifi
import httpx
from google.auth.credentials import Credentials
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2 import service_account
from loguru import logger

from sheetwatch.exceptions import (
    APIError,
    AuthenticationError,
    NotFoundError,
    TransportError,
)

DEFAULT_TIMEOUT = 60

# Read-only access is enough to fetch values and list sheets
SHEETS_SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets.readonly",
    "https://www.googleapis.com/auth/drive.readonly",
]

DRIVE_WATCH_SCOPES = [
    "https://www.googleapis.com/auth/drive",
    "https://www.googleapis.com/auth/drive.file",
]


def load_service_account_credentials(
    key_file: str | Path, scopes: list[str]
) -> Credentials:
    """Load service account credentials from a JSON key file.

    Raises:
        AuthenticationError: If the key file is missing or malformed
    """
    path = Path(key_file).expanduser()
    try:
        return service_account.Credentials.from_service_account_file(
            str(path), scopes=scopes
        )
    except FileNotFoundError as e:
        raise AuthenticationError(f"Service account key not found: {path}") from e
    except (ValueError, KeyError) as e:
        raise AuthenticationError(f"Invalid service account key '{path}': {e}") from e


class AuthorizedClient:
    """httpx client that attaches a fresh bearer token to every request."""

    def __init__(
        self,
        credentials: Credentials,
        timeout: int = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            credentials: google-auth credentials with the required scopes
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        self._credentials = credentials
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        self._client = httpx.AsyncClient(
            timeout=timeout,
            verify=ssl_context,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def get(self, url: str, params: Any = None) -> dict[str, Any]:
        return await self.request("GET", url, params=params)

    async def post(self, url: str, body: dict[str, Any]) -> dict[str, Any]:
        return await self.request("POST", url, json_body=body)

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: Any = None,
        json_body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make an authenticated request and decode the JSON response.

        Empty responses (such as 204 No Content) decode to an empty dict.
        """
        token = await self._access_token()
        try:
            response = await self._client.request(
                method,
                url,
                params=params,
                json=json_body,
                headers={"Authorization": f"Bearer {token}"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 401:
                raise AuthenticationError("Invalid or expired access token") from e
            if status == 403:
                raise AuthenticationError(
                    "Access denied. Share the spreadsheet with the service account "
                    "and check its scopes."
                ) from e
            if status == 404:
                raise NotFoundError(
                    "Resource not found. Check the ID and sharing permissions."
                ) from e
            body = e.response.text
            raise APIError(f"API error ({status}): {body}", status_code=status) from e
        except httpx.RequestError as e:
            raise TransportError(f"Network error: {e}") from e

        if not response.content:
            return {}
        try:
            result: dict[str, Any] = response.json()
        except ValueError as e:
            raise APIError(
                f"Invalid JSON response: {e}", status_code=response.status_code
            ) from e
        return result

    async def _access_token(self) -> str:
        if not self._credentials.valid:
            logger.debug("Refreshing Google access token")
            try:
                await asyncio.to_thread(self._credentials.refresh, GoogleAuthRequest())
            except GoogleAuthError as e:
                raise AuthenticationError(f"Token refresh failed: {e}") from e
        token: str = self._credentials.token
        return token

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

"""Drive API push-notification channels.

A watch channel makes Google Drive POST to our webhook whenever the
spreadsheet file changes. Channels expire after at most 7 days and must
be renewed by creating a new one.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from loguru import logger

from sheetwatch.credentials import AuthorizedClient
from sheetwatch.exceptions import TransportError, WatchError

DRIVE_API_BASE = "https://www.googleapis.com/drive/v3"

# Maximum lifetime Drive accepts for a file watch channel
MAX_CHANNEL_LIFETIME = timedelta(days=7)

@dataclass(frozen=True)
class WatchChannel:
    """An active Drive notification channel."""

    channel_id: str
    resource_id: str
    resource_uri: str | None
    expiration: datetime

    @property
    def expires_in(self) -> timedelta:
        return self.expiration - datetime.now(UTC)


def new_channel_id() -> str:
    """Generate a channel ID from the current time in milliseconds."""
    return f"channel-{int(datetime.now(UTC).timestamp() * 1000)}"


class DriveWatch:
    """Creates, renews and stops watch channels on one spreadsheet file."""

    def __init__(self, client: AuthorizedClient, spreadsheet_id: str) -> None:
        self._client = client
        self._spreadsheet_id = spreadsheet_id

    async def setup_watch(
        self,
        address: str,
        channel_id: str,
        *,
        token: str | None = None,
        lifetime: timedelta = MAX_CHANNEL_LIFETIME,
    ) -> WatchChannel:
        """Create a web_hook channel for the spreadsheet.

        Args:
            address: Full URL Drive should POST notifications to
            channel_id: ID for the new channel, echoed back in notifications
            token: Optional shared secret echoed back in notifications
            lifetime: Requested channel lifetime, capped at 7 days

        Raises:
            WatchError: If Drive rejects the request
        """
        expiration = datetime.now(UTC) + min(lifetime, MAX_CHANNEL_LIFETIME)
        body: dict[str, Any] = {
            "id": channel_id,
            "type": "web_hook",
            "address": address,
            "expiration": int(expiration.timestamp() * 1000),
        }
        if token:
            body["token"] = token

        try:
            response = await self._client.post(
                f"{DRIVE_API_BASE}/files/{self._spreadsheet_id}/watch", body
            )
        except TransportError as e:
            raise WatchError("setup", str(e)) from e

        channel = WatchChannel(
            channel_id=response.get("id", channel_id),
            resource_id=response.get("resourceId", ""),
            resource_uri=response.get("resourceUri"),
            expiration=_parse_expiration(response.get("expiration"), expiration),
        )
        logger.info(
            f"Drive watch channel created: {channel.channel_id} "
            f"(resource {channel.resource_id}, expires {channel.expiration.isoformat()})"
        )
        return channel

    async def stop_watch(self, channel_id: str, resource_id: str) -> None:
        """Stop a channel so Drive no longer sends notifications for it.

        Raises:
            WatchError: If Drive rejects the request
        """
        try:
            await self._client.post(
                f"{DRIVE_API_BASE}/channels/stop",
                {"id": channel_id, "resourceId": resource_id},
            )
        except TransportError as e:
            raise WatchError("stop", str(e)) from e
        logger.info(f"Watch channel stopped: {channel_id}")

    async def renew_watch(
        self,
        address: str,
        old_channel_id: str,
        old_resource_id: str,
        new_channel_id: str,
        *,
        token: str | None = None,
    ) -> WatchChannel:
        """Replace a channel with a fresh one.

        The new channel is created before the old one is stopped so no
        notification is missed in between. Failing to stop the old channel
        is logged; it expires on its own.
        """
        channel = await self.setup_watch(address, new_channel_id, token=token)
        try:
            await self.stop_watch(old_channel_id, old_resource_id)
        except WatchError as e:
            logger.warning(f"Could not stop previous channel {old_channel_id}: {e}")
        return channel


def _parse_expiration(value: Any, fallback: datetime) -> datetime:
    """Drive returns expiration as epoch milliseconds in a string."""
    if value is None:
        return fallback
    try:
        return datetime.fromtimestamp(int(value) / 1000, tz=UTC)
    except (TypeError, ValueError):
        return fallback

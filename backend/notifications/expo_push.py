"""
Expo Push Notifications Client

Sends exposure reminders via the Expo Push API.
https://docs.expo.dev/push-notifications/overview/
"""

import httpx
import logging
from typing import Optional, Dict

from .models import PlannedReminder

logger = logging.getLogger(__name__)

# Expo Push API endpoint
EXPO_PUSH_API_URL = "https://exp.host/--/api/v2/push/send"


class ExpoPushClient:
    """Client for sending push notifications via Expo."""

    def __init__(self, access_token: Optional[str] = None, client: Optional[httpx.Client] = None):
        """
        Initialize Expo push client.

        Args:
            access_token: Optional Expo access token (may not be required for basic usage)
            client: Optional preconfigured httpx.Client
        """
        self.access_token = access_token
        self.client = client or httpx.Client(timeout=10.0)

    def send_reminder(self, push_token: str, reminder: PlannedReminder) -> bool:
        """Deliver a planned reminder now."""
        data = {
            "type": reminder.reminder_type.value,
            "ownerId": reminder.owner_id,
        }
        if reminder.uv_index is not None:
            data["uvIndex"] = str(reminder.uv_index)
        return self.send_notification(
            push_token=push_token,
            title=reminder.title,
            body=reminder.body,
            data=data,
        )

    def send_notification(
        self,
        push_token: str,
        title: str,
        body: str,
        data: Optional[Dict[str, str]] = None,
        sound: str = "default",
    ) -> bool:
        """
        Send a push notification via Expo.

        Args:
            push_token: Expo push token
            title: Notification title
            body: Notification body
            data: Optional data payload
            sound: Sound to play ("default" or "none")

        Returns:
            True if sent successfully, False otherwise
        """
        if not push_token:
            logger.warning("[PUSH] Cannot send notification: empty push token")
            return False

        if not push_token.startswith("ExponentPushToken["):
            logger.warning(f"[PUSH] Invalid push token format: {push_token[:20]}...")
            return False

        payload = {
            "to": push_token,
            "title": title,
            "body": body,
            "sound": sound,
            "priority": "high",
        }

        if data:
            payload["data"] = data

        try:
            response = self.client.post(
                EXPO_PUSH_API_URL,
                json=payload,
                headers=self._get_headers(),
            )
        except httpx.HTTPError as e:
            logger.error(f"[PUSH] Failed to send push notification: {e}")
            return False

        if response.status_code != 200:
            logger.error(f"[PUSH] Expo push API error: {response.status_code} {response.text}")
            return False

        try:
            result = response.json()
        except ValueError as e:
            logger.error(f"[PUSH] Unreadable Expo response: {e}")
            return False
        if not isinstance(result, dict):
            logger.error(f"[PUSH] Unexpected Expo response: {result!r}")
            return False

        if result.get("data", {}).get("status") == "error":
            error = result.get("data", {}).get("message", "Unknown error")
            logger.error(f"[PUSH] Expo push error: {error}")
            return False

        logger.info(f"[PUSH] Sent to {push_token[:30]}... (title: {title[:30]})")
        return True

    def _get_headers(self) -> dict:
        """Get HTTP headers for Expo API."""
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    def close(self):
        """Close HTTP client."""
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

# pricewatch/notify/push_sink.py

"""Push-notification delivery sinks."""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from curl_cffi import requests as curl_requests

from pricewatch.config.settings import Settings

logger = logging.getLogger("pricewatch.push")

DELIVERED = "delivered"
INVALID_TOKEN = "invalid_token"
FAILED = "failed"

_FCM_SEND_URL = "https://fcm.googleapis.com/v1/projects/{project}/messages:send"

# FCM error statuses meaning the token will never work again
_INVALID_TOKEN_MARKERS: tuple[str, ...] = (
    "UNREGISTERED",
    "registration-token-not-registered",
    "The registration token is not a valid FCM registration token",
)


class PushSink(ABC):
    """Delivers one push message to one device token."""

    @abstractmethod
    def send(
        self,
        token: str,
        title: str,
        body: str,
        data: dict[str, str],
    ) -> str:
        """Return ``DELIVERED``, ``INVALID_TOKEN`` or ``FAILED``."""
        ...


class FcmPushSink(PushSink):
    """Firebase Cloud Messaging HTTP v1 sink.

    OAuth access tokens expire after about an hour. With a token file
    configured, the token is read from it at start-up and re-read
    whenever FCM answers 401; the rejected request is then retried once
    with the new token.
    """

    def __init__(
        self,
        project_id: str | None = None,
        access_token: str | None = None,
        token_file: Path | str | None = None,
    ) -> None:
        self.settings = Settings()
        self.project_id = project_id or self.settings.FCM_PROJECT_ID
        self.access_token = access_token or self.settings.FCM_ACCESS_TOKEN
        token_path = token_file or self.settings.FCM_ACCESS_TOKEN_FILE
        self.token_file = Path(token_path) if token_path else None
        if not self.access_token:
            self._reload_token()
        self.session = curl_requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.project_id and self.access_token)

    def _reload_token(self) -> bool:
        """Re-read the token file; True when it held a new token."""
        if self.token_file is None:
            return False
        try:
            token = self.token_file.read_text(encoding="utf-8").strip()
        except OSError as exc:
            logger.warning(
                "Cannot read FCM token file %s: %s", self.token_file, exc,
            )
            return False
        if not token or token == self.access_token:
            return False
        self.access_token = token
        logger.info("Loaded FCM access token from %s", self.token_file)
        return True

    def _post(self, payload: dict[str, Any]) -> Any:
        return self.session.post(
            _FCM_SEND_URL.format(project=self.project_id),
            headers={
                "Authorization": f"Bearer {self.access_token}",
                "Content-Type": "application/json",
            },
            json=payload,
            timeout=self.settings.PUSH_TIMEOUT,
        )

    def send(
        self,
        token: str,
        title: str,
        body: str,
        data: dict[str, str],
    ) -> str:
        payload: dict[str, Any] = {
            "message": {
                "token": token,
                "notification": {"title": title, "body": body},
                # FCM data values must be strings
                "data": {k: str(v) for k, v in data.items()},
            }
        }
        try:
            resp = self._post(payload)
            if resp.status_code == 401 and self._reload_token():
                resp = self._post(payload)
        except Exception as exc:
            logger.warning("FCM request failed: %s", exc, exc_info=True)
            return FAILED

        if resp.status_code == 200:
            return DELIVERED
        text = resp.text or ""
        if resp.status_code in (400, 404) and any(
            marker in text for marker in _INVALID_TOKEN_MARKERS
        ):
            return INVALID_TOKEN
        if resp.status_code == 401:
            logger.error(
                "FCM rejected the access token; refresh FCM_ACCESS_TOKEN "
                "or the token file"
            )
            return FAILED
        logger.warning(
            "FCM HTTP %d: %s", resp.status_code, text[:200],
        )
        return FAILED

    def close(self) -> None:
        self.session.close()

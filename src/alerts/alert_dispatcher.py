import asyncio
import aiohttp
from logging import Logger
from typing import Optional
from core.types import AlertMessage
from alerts.delivery import DeliveryPolicy, SingleAttemptDelivery

TELEGRAM_API_URL = "https://api.telegram.org/bot{token}/sendMessage"

class AlertDispatcher:
    """
    Sends alerts to a Telegram chat.

    Without a token and chat id every deliver() is a no-op, so the monitor can
    run observe-only. Delivery never raises: failures are logged and dropped.
    """

    def __init__(self,
                 token: Optional[str],
                 chat_id: Optional[str],
                 logger: Logger,
                 policy: Optional[DeliveryPolicy] = None,
                 timeout: float = 10.0,
                 proxy: Optional[str] = None,
                 session: Optional[aiohttp.ClientSession] = None):
        self.token = token
        self.chat_id = chat_id
        self.logger = logger
        self.policy = policy or SingleAttemptDelivery()
        self.timeout = timeout
        self.proxy = proxy
        self._session = session

        self.sent = 0
        self.failed = 0
        self.skipped = 0

    @property
    def enabled(self) -> bool:
        return bool(self.token and self.chat_id)

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self._session

    def build_payload(self, message: AlertMessage) -> dict:
        return {
            "chat_id": self.chat_id,
            "text": message.text,
            "parse_mode": "HTML",
            "disable_web_page_preview": True
        }

    async def _post(self, payload: dict) -> bool:
        """One request to the sink, True on a 2xx answer"""
        url = TELEGRAM_API_URL.format(token=self.token)
        try:
            async with self._get_session().post(url, json=payload, proxy=self.proxy) as response:
                if 200 <= response.status < 300:
                    return True
                body = await response.text()
                self.logger.warning(f"Telegram send failed: Status {response.status}, {body}")
                return False
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.warning(f"Telegram network error: {str(e)}")
            return False

    async def deliver(self, message: AlertMessage):
        self.logger.info(f"--------\n{message.text}\n--------")
        if not self.enabled:
            self.skipped += 1
            self.logger.debug(f"Alerts disabled, not sending {message.link}")
            return

        payload = self.build_payload(message)
        if await self.policy.send(lambda: self._post(payload)):
            self.sent += 1
            self.logger.info(f"Telegram alert sent for {message.link}")
        else:
            self.failed += 1

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()

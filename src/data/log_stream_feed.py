import json
import asyncio
import websockets
import websockets.exceptions
from datetime import datetime
from typing import AsyncIterator, Optional
from logging import Logger
from core.types import LogEvent
from utils.config import SYSTEM_PROGRAM_ID

class SubscriptionError(Exception):
    """Raised when the log subscription cannot be established"""
    pass

class LogStreamFeed:
    """Streams logsSubscribe notifications for one program"""

    SUBSCRIBE_REQUEST_ID = 1
    CONFIRMATION_TIMEOUT = 10

    def __init__(self,
                 ws_url: str,
                 logger: Logger,
                 program_id: str = SYSTEM_PROGRAM_ID,
                 commitment: str = "processed"):
        self.ws_url = ws_url
        self.program_id = program_id
        self.commitment = commitment
        self.logger = logger
        self.ws = None
        self.subscription_id: Optional[int] = None

        self.message_health = {
            'last_message_time': None,
            'messages_received': 0,
            'failed_filtered': 0,
            'processing_errors': 0
        }

    async def connect(self):
        """Open the socket and subscribe. Any failure here is fatal to the caller."""
        self.logger.info(f"Connecting to WebSocket at {self.ws_url}")
        try:
            self.ws = await websockets.connect(self.ws_url)
        except (OSError, asyncio.TimeoutError, websockets.exceptions.WebSocketException) as e:
            raise SubscriptionError(f"Could not connect to {self.ws_url}: {str(e)}") from e

        subscribe_message = {
            "jsonrpc": "2.0",
            "id": self.SUBSCRIBE_REQUEST_ID,
            "method": "logsSubscribe",
            "params": [
                {"mentions": [self.program_id]},
                {"commitment": self.commitment}
            ]
        }
        try:
            await self.ws.send(json.dumps(subscribe_message))
            reply = await asyncio.wait_for(self.ws.recv(), timeout=self.CONFIRMATION_TIMEOUT)
        except asyncio.TimeoutError as e:
            await self.ws.close()
            raise SubscriptionError("Timed out waiting for subscription confirmation") from e
        except websockets.exceptions.ConnectionClosed as e:
            raise SubscriptionError(f"Connection closed before subscription was confirmed: {str(e)}") from e

        try:
            data = json.loads(reply)
            confirmed = data.get("id") == self.SUBSCRIBE_REQUEST_ID and "result" in data
        except (ValueError, AttributeError) as e:
            await self.ws.close()
            raise SubscriptionError(f"Unreadable subscription reply: {reply!r}") from e
        if not confirmed:
            await self.ws.close()
            raise SubscriptionError(f"Subscription rejected: {data.get('error', data)}")

        self.subscription_id = data["result"]
        self.logger.info(
            f"Subscribed to logs mentioning {self.program_id} "
            f"(subscription {self.subscription_id}, commitment {self.commitment})"
        )

    @staticmethod
    def parse_log_event(msg: str) -> Optional[LogEvent]:
        """Turn a raw notification frame into a LogEvent, None for anything else"""
        data = json.loads(msg)
        if data.get("method") != "logsNotification":
            return None

        value = data.get("params", {}).get("result", {}).get("value", {})
        signature = value.get("signature")
        if not signature:
            return None

        return LogEvent(
            signature=signature,
            failed=value.get("err") is not None,
            raw_log_lines=tuple(value.get("logs") or ()),
        )

    async def events(self) -> AsyncIterator[LogEvent]:
        """Every notification as a LogEvent. Ends when the connection closes."""
        if self.ws is None:
            raise SubscriptionError("connect() must be called before reading events")

        while True:
            try:
                msg = await self.ws.recv()
            except websockets.exceptions.ConnectionClosed as e:
                self.logger.error(
                    f"WebSocket disconnected: {str(e)}, "
                    f"Last message: {self.message_health['last_message_time']}"
                )
                return

            self.message_health['last_message_time'] = datetime.now()
            self.message_health['messages_received'] += 1

            try:
                event = self.parse_log_event(msg)
            except (ValueError, AttributeError) as e:
                self.message_health['processing_errors'] += 1
                self.logger.error(f"Error processing message: {str(e)}")
                continue

            if event is not None:
                yield event

    async def successful_signatures(self) -> AsyncIterator[str]:
        """Signatures of transactions that did not fail"""
        async for event in self.events():
            if event.failed:
                self.message_health['failed_filtered'] += 1
                continue
            yield event.signature

    async def unsubscribe(self):
        if self.ws is None or self.subscription_id is None:
            return
        unsubscribe_message = {
            "jsonrpc": "2.0",
            "id": self.SUBSCRIBE_REQUEST_ID + 1,
            "method": "logsUnsubscribe",
            "params": [self.subscription_id]
        }
        try:
            await self.ws.send(json.dumps(unsubscribe_message))
        except websockets.exceptions.ConnectionClosed:
            self.logger.debug("Connection already closed, skipping unsubscribe")
        self.subscription_id = None

    async def stop(self):
        """Unsubscribe and close the socket"""
        if self.ws:
            await self.unsubscribe()
            await self.ws.close()

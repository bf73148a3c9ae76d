import asyncio
import logging
from typing import Dict, Optional
from solana.rpc.async_api import AsyncClient
from core.bounded_queue import BoundedQueue, QueueClosed
from core.dispatcher import Dispatcher
from data.log_stream_feed import LogStreamFeed
from enrichment.transaction_resolver import TransactionResolver
from alerts.alert_dispatcher import AlertDispatcher
from alerts.delivery import build_delivery_policy
from monitoring.heartbeat import HeartbeatMonitor
from utils.config import MonitorConfig
from utils.logger import ALERTS_CHANNEL, MonitorLogger

class WhaleMonitor:
    """
    Wires the pipeline together:

        LogStreamFeed -> BoundedQueue -> Dispatcher -> TransactionResolver -> AlertDispatcher

    The feed and the dispatcher each run one serial loop; every signature gets
    its own resolve-and-alert task. The RPC client is shared read-only by all tasks.
    """

    def __init__(self,
                 config: MonitorConfig,
                 logger: Optional[logging.Logger] = None,
                 feed: Optional[LogStreamFeed] = None,
                 client: Optional[AsyncClient] = None,
                 alert_dispatcher: Optional[AlertDispatcher] = None,
                 drain_timeout: float = 10.0):

        self.config = config
        params = config.pipeline
        self.logger = logger or MonitorLogger(level=params.log_level).logger
        self.is_running = False
        self.drain_timeout = drain_timeout

        self.feed = feed or LogStreamFeed(
            config.ws_url,
            self.logger.getChild("feed"),
            program_id=params.program_id,
            commitment=params.commitment
        )
        self.queue = BoundedQueue(params.queue_capacity)
        self.client = client or AsyncClient(config.rpc_url)

        self.alert_dispatcher = alert_dispatcher or AlertDispatcher(
            token=config.telegram_token,
            chat_id=config.telegram_chat_id,
            logger=self.logger.getChild(ALERTS_CHANNEL),
            policy=build_delivery_policy(
                params.delivery_policy,
                params.delivery_attempts,
                params.delivery_backoff
            ),
            timeout=params.alert_timeout,
            proxy=config.telegram_proxy
        )
        self.resolver = TransactionResolver(
            self.client,
            self.alert_dispatcher,
            self.logger.getChild("resolver"),
            threshold_sol=params.alert_threshold_sol,
            lookup_attempts=params.lookup_attempts,
            retry_delay=params.lookup_retry_delay,
            explorer_url=params.explorer_url
        )
        self.dispatcher = Dispatcher(
            self.queue,
            self.resolver.process,
            self.logger.getChild("dispatcher"),
            max_concurrency=params.max_concurrency
        )
        self.heartbeat = HeartbeatMonitor(
            self.logger.getChild("heartbeat"),
            self.stats,
            queue_capacity=params.queue_capacity,
            heartbeat_interval=params.heartbeat_interval
        )

        self._dispatcher_task: Optional[asyncio.Task] = None
        self._shutdown: Optional[asyncio.Task] = None

        if not self.alert_dispatcher.enabled:
            self.logger.warning("TELEGRAM_TOKEN/TELEGRAM_CHAT_ID not set, alerts will only be logged")
        self.logger.info(
            f"Whale monitor initializing: threshold={params.alert_threshold_sol} SOL, "
            f"queue={params.queue_capacity}, max_concurrency={params.max_concurrency}, "
            f"delivery={params.delivery_policy}"
        )

    def stats(self) -> Dict:
        return {
            'queue_depth': self.queue.qsize(),
            **self.dispatcher.stats(),
            'alerts': self.resolver.alerts_raised,
            'misses': self.resolver.misses,
            'messages': self.feed.message_health['messages_received'],
            'failed_filtered': self.feed.message_health['failed_filtered'],
        }

    async def start(self):
        """Subscribe and run until the stream ends or stop() is called"""
        self.is_running = True
        try:
            await self.feed.connect()
        except Exception:
            self.is_running = False
            await self._close_clients()
            raise

        if self._shutdown is not None:
            # stop() arrived while subscribing and found no socket to close
            await self._shutdown
            await self.feed.stop()
            return

        self._dispatcher_task = asyncio.create_task(self.dispatcher.run())
        self.heartbeat.start_monitoring()
        self.logger.info("Listening for large transfers...")

        try:
            await self._produce()
        finally:
            await self.stop()

    async def _produce(self):
        async for signature in self.feed.successful_signatures():
            try:
                await self.queue.put(signature)
            except QueueClosed:
                break
        self.logger.info("Log stream ended")

    async def stop(self):
        """Shut down once; concurrent callers wait on the same shutdown"""
        if self._shutdown is None:
            self._shutdown = asyncio.create_task(self._shutdown_sequence())
        await asyncio.shield(self._shutdown)

    async def _shutdown_sequence(self):
        self.logger.info("Shutting down whale monitor...")
        self.is_running = False

        await self.queue.close()
        await self.feed.stop()

        if self._dispatcher_task:
            await self._dispatcher_task
        await self.dispatcher.drain(self.drain_timeout)

        self.heartbeat.stop_monitoring()
        await self._close_clients()
        self.logger.info(f"Whale monitor stopped: {self.stats()}")

    async def _close_clients(self):
        await self.alert_dispatcher.close()
        await self.client.close()

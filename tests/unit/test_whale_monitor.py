"""
Unit tests for WhaleMonitor wiring.

Tests cover:
- End of the log stream drains the pipeline and alerts on large transfers only
- stop() from outside ends a running monitor and closes every client
- Subscription failure propagates and still closes clients
- A socket opened after stop() is closed once connect returns
- Tunables flow from MonitorConfig into the components
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.whale_monitor import WhaleMonitor
from data.log_stream_feed import SubscriptionError
from utils.config import MonitorConfig, PipelineParameters

BIG = "2VDPC8mnFLG4Wa1Ji3cAH3ooLiCv96KmNTov4sTS2XqvMLHGKHBHUj3P9LRP3BS2Z5sf31Y1mhx3GMNVeoC9h6D2"
SMALL = "3hVQanMpEPpQpCjwWWGT1utjr9E3HNfixQy4AWpUhTBAjTmgQQ8GHNvBMBPPBjGVjQKCpWfc8pinMVv6c9T4zsF3"

BALANCES = {
    BIG: ([5_000_000_000], [1_000_000_000]),
    SMALL: ([1_000_000_000], [990_000_000]),
}


class FakeFeed:
    def __init__(self, signatures, hold_open: bool = False):
        self.signatures = signatures
        self.hold_open = hold_open
        self.connect = AsyncMock()
        self.stopped = False
        self.message_health = {"messages_received": 0, "failed_filtered": 0}
        self._closed = None

    async def successful_signatures(self):
        self._closed = asyncio.Event()
        for signature in self.signatures:
            self.message_health["messages_received"] += 1
            yield signature
        if self.hold_open:
            await self._closed.wait()

    async def stop(self):
        self.stopped = True
        if self._closed:
            self._closed.set()


def fake_client() -> MagicMock:
    async def get_transaction(signature, **kwargs):
        pre, post = BALANCES[str(signature)]
        meta = SimpleNamespace(pre_balances=pre, post_balances=post)
        return SimpleNamespace(value=SimpleNamespace(transaction=SimpleNamespace(meta=meta)))

    client = MagicMock()
    client.get_transaction = AsyncMock(side_effect=get_transaction)
    client.close = AsyncMock()
    return client


def fake_alerts() -> MagicMock:
    alerts = MagicMock()
    alerts.enabled = False
    alerts.deliver = AsyncMock()
    alerts.close = AsyncMock()
    return alerts


def make_config(**overrides) -> MonitorConfig:
    params = {"heartbeat_interval": 3600, "lookup_retry_delay": 0, **overrides}
    return MonitorConfig(
        ws_url="wss://example.invalid",
        rpc_url="https://example.invalid",
        pipeline=PipelineParameters(**params),
    )


class TestWhaleMonitorRun:
    def test_stream_end_drains_and_alerts(self, logger) -> None:
        async def scenario():
            feed = FakeFeed([BIG, SMALL])
            client = fake_client()
            alerts = fake_alerts()
            monitor = WhaleMonitor(make_config(), logger, feed=feed, client=client, alert_dispatcher=alerts)
            await asyncio.wait_for(monitor.start(), timeout=5)
            return monitor, feed, client, alerts

        monitor, feed, client, alerts = asyncio.run(scenario())

        alerts.deliver.assert_awaited_once()
        assert "4.00 SOL" in alerts.deliver.await_args.args[0].text
        assert monitor.dispatcher.dispatched == 2
        assert monitor.queue.closed
        assert feed.stopped
        client.close.assert_awaited_once()
        alerts.close.assert_awaited_once()
        assert not monitor.is_running

    def test_external_stop_ends_running_monitor(self, logger) -> None:
        async def scenario():
            feed = FakeFeed([BIG], hold_open=True)
            alerts = fake_alerts()
            monitor = WhaleMonitor(make_config(), logger, feed=feed, client=fake_client(), alert_dispatcher=alerts)

            run_task = asyncio.create_task(monitor.start())
            for _ in range(100):
                if alerts.deliver.await_count:
                    break
                await asyncio.sleep(0.01)

            await asyncio.gather(monitor.stop(), monitor.stop())
            await asyncio.wait_for(run_task, timeout=5)
            return monitor, alerts

        monitor, alerts = asyncio.run(scenario())

        alerts.deliver.assert_awaited_once()
        alerts.close.assert_awaited_once()
        assert monitor.stats()["in_flight"] == 0

    def test_subscription_failure_is_fatal(self, logger) -> None:
        async def scenario():
            feed = FakeFeed([])
            feed.connect.side_effect = SubscriptionError("refused")
            client = fake_client()
            alerts = fake_alerts()
            monitor = WhaleMonitor(make_config(), logger, feed=feed, client=client, alert_dispatcher=alerts)
            with pytest.raises(SubscriptionError):
                await monitor.start()
            return client, alerts

        client, alerts = asyncio.run(scenario())

        client.close.assert_awaited_once()
        alerts.close.assert_awaited_once()


class TestWhaleMonitorWiring:
    def test_tunables_reach_components(self, logger) -> None:
        async def scenario():
            config = make_config(
                alert_threshold_sol=250.0,
                queue_capacity=7,
                max_concurrency=3,
                lookup_attempts=5,
            )
            return WhaleMonitor(config, logger, feed=FakeFeed([]), client=fake_client(), alert_dispatcher=fake_alerts())

        monitor = asyncio.run(scenario())

        assert monitor.queue.capacity == 7
        assert monitor.dispatcher.max_concurrency == 3
        assert monitor.resolver.threshold_sol == 250.0
        assert monitor.resolver.lookup_attempts == 5
        assert monitor.heartbeat.queue_capacity == 7

    def test_builds_alert_dispatcher_from_config(self, logger) -> None:
        async def scenario():
            config = MonitorConfig(
                ws_url="wss://example.invalid",
                rpc_url="https://example.invalid",
                telegram_token="123:abc",
                telegram_chat_id="42",
                pipeline=PipelineParameters(delivery_policy="retry", delivery_attempts=4),
            )
            return WhaleMonitor(config, logger, feed=FakeFeed([]), client=fake_client())

        monitor = asyncio.run(scenario())

        assert monitor.alert_dispatcher.enabled
        assert monitor.alert_dispatcher.policy.max_attempts == 4


class TestStopDuringConnect:
    def test_socket_opened_after_stop_is_closed(self, logger) -> None:
        async def scenario():
            feed = FakeFeed([])
            gate = asyncio.Event()
            connected = []
            stops = []

            async def slow_connect():
                await gate.wait()
                connected.append(True)

            async def recording_stop():
                stops.append(bool(connected))

            feed.connect = AsyncMock(side_effect=slow_connect)
            feed.stop = recording_stop
            alerts = fake_alerts()
            monitor = WhaleMonitor(make_config(), logger, feed=feed, client=fake_client(), alert_dispatcher=alerts)

            run_task = asyncio.create_task(monitor.start())
            await asyncio.sleep(0.01)
            await monitor.stop()
            gate.set()
            await asyncio.wait_for(run_task, timeout=5)
            return monitor, stops

        monitor, stops = asyncio.run(scenario())

        # first stop saw no socket, the second one runs after connect finished
        assert stops == [False, True]
        assert monitor.dispatcher.dispatched == 0

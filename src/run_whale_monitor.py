import asyncio
import signal
import sys
from core.whale_monitor import WhaleMonitor
from data.log_stream_feed import SubscriptionError
from utils.config import ConfigError, load_config
from utils.logger import MonitorLogger

class InitWhaleMonitor:
    def __init__(self, monitor_logger: MonitorLogger):
        self.monitor = None
        self.monitor_logger = monitor_logger
        self.logger = monitor_logger.logger

    def handle_shutdown(self, signum):
        """Handle shutdown signals"""
        self.logger.info(f"Received signal {signum}. Starting graceful shutdown...")
        if self.monitor:
            asyncio.get_running_loop().create_task(self.monitor.stop())

    async def run(self) -> int:
        """Run the monitor, returning the process exit status"""
        try:
            config = load_config()
        except ConfigError as e:
            self.logger.critical(f"Configuration error: {e}")
            return 1

        self.monitor_logger.set_level(config.pipeline.log_level)
        try:
            self.monitor = WhaleMonitor(config, logger=self.logger)
        except ValueError as e:
            self.logger.critical(f"Invalid pipeline settings: {e}")
            return 1

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self.handle_shutdown, sig)

        try:
            await self.monitor.start()
        except (SubscriptionError, OSError) as e:
            self.logger.critical(f"Failed to start whale monitor: {e}")
            return 1
        return 0

async def main() -> int:
    monitor_logger = MonitorLogger("whale_monitor", console_output=True)
    monitor_logger.logger.info("Starting Solana whale monitor...")
    try:
        return await InitWhaleMonitor(monitor_logger).run()
    finally:
        monitor_logger.logger.info("Whale monitor shutdown complete")

def cli():
    sys.exit(asyncio.run(main()))

if __name__ == "__main__":
    cli()

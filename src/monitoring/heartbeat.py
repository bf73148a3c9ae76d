from datetime import datetime
import threading
from typing import Callable, Optional, Dict
import logging
import psutil

class HeartbeatMonitor:
    def __init__(self,
                 logger: logging.Logger,
                 stats_provider: Callable[[], Dict],
                 queue_capacity: int,
                 heartbeat_interval: int = 30,
                 usage_threshold: float = 80.0):
        self.logger = logger
        self.stats_provider = stats_provider

        # Configuration
        self.queue_capacity = queue_capacity
        self.heartbeat_interval = heartbeat_interval  # seconds between checks
        self.usage_threshold = usage_threshold        # percent, for queue fill, cpu and memory

        # State tracking
        self.last_heartbeat: Optional[datetime] = None
        self.system_status: str = "INITIALIZING"
        self.monitor_thread: Optional[threading.Thread] = None
        self.system_metrics: Dict = {}
        self._stop_event = threading.Event()

    def start_monitoring(self):
        """Start independent monitoring thread"""
        self.logger.info("Starting heartbeat monitor")
        self._stop_event.clear()
        self.system_status = "RUNNING"

        self.monitor_thread = threading.Thread(
            target=self._monitor_loop,
            daemon=True,
            name='HeartbeatMonitor'
        )
        self.monitor_thread.start()

    def _monitor_loop(self):
        while not self._stop_event.wait(self.heartbeat_interval):
            try:
                self.beat()
            except Exception as e:
                self.logger.error(f"Monitor loop error: {str(e)}")
                self.system_status = "ERROR"

    def beat(self):
        """Collect metrics, check them and log a summary"""
        self._update_system_metrics()
        self._verify_system_health()
        self.last_heartbeat = datetime.now()
        self.logger.info(f"Heartbeat [{self.system_status}]: {self.system_metrics}")

    def _update_system_metrics(self):
        self.system_metrics = {
            **self.stats_provider(),
            'cpu_usage': psutil.cpu_percent(),
            'memory_usage': psutil.virtual_memory().percent,
        }

    def _verify_system_health(self):
        self.system_status = "RUNNING"

        queue_fill = 100.0 * self.system_metrics.get('queue_depth', 0) / self.queue_capacity
        if queue_fill >= self.usage_threshold:
            self.logger.warning(
                f"Queue {queue_fill:.0f}% full, ingestion is being throttled by enrichment"
            )
            self.system_status = "WARNING"

        if self.system_metrics['cpu_usage'] > self.usage_threshold:
            self.logger.warning(f"High CPU usage: {self.system_metrics['cpu_usage']}%")
            self.system_status = "WARNING"

        if self.system_metrics['memory_usage'] > self.usage_threshold:
            self.logger.warning(f"High memory usage: {self.system_metrics['memory_usage']}%")
            self.system_status = "WARNING"

    def get_status(self) -> Dict:
        """Get current system status and metrics"""
        return {
            'status': self.system_status,
            'last_heartbeat': self.last_heartbeat,
            'metrics': self.system_metrics
        }

    def stop_monitoring(self):
        """Safely stop the monitor"""
        self.logger.info("Stopping heartbeat monitor")
        self._stop_event.set()
        if self.monitor_thread:
            self.monitor_thread.join(timeout=5.0)
        self.system_status = "STOPPED"

import logging
from datetime import datetime
import os

ALERTS_CHANNEL = "alerts"

class MonitorLogger:
    """
    Configures the whale_monitor logger tree once per process.

    Components get named children (whale_monitor.feed, whale_monitor.resolver, ...)
    so the file log shows where each line came from. Lines logged on the alerts
    child are also written to their own alerts_<timestamp>.log.
    """

    def __init__(self,
                 name: str = "whale_monitor",
                 log_dir: str = "data/logs",
                 console_output: bool = True,
                 level: str = "INFO"):
        self.name = name
        self.log_dir = log_dir
        os.makedirs(log_dir, exist_ok=True)

        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG)
        self.logger.propagate = False
        self.console_handler = None

        if not self.logger.handlers:
            self._setup_handlers(console_output)
        else:
            self.console_handler = next(
                (h for h in self.logger.handlers if type(h) is logging.StreamHandler), None
            )
        self.set_level(level)

    def _setup_handlers(self, console_output: bool):
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')

        if console_output:
            self.console_handler = logging.StreamHandler()
            self.console_handler.setFormatter(
                logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')
            )
            self.logger.addHandler(self.console_handler)

        # Full debug trail, one file per run
        file_handler = logging.FileHandler(
            os.path.join(self.log_dir, f'whale_monitor_{timestamp}.log')
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        )
        self.logger.addHandler(file_handler)

        # Alert lines only; they still propagate into the handlers above
        alert_handler = logging.FileHandler(
            os.path.join(self.log_dir, f'alerts_{timestamp}.log')
        )
        alert_handler.setLevel(logging.INFO)
        alert_handler.setFormatter(logging.Formatter('%(asctime)s - %(message)s'))
        self.component(ALERTS_CHANNEL).addHandler(alert_handler)

    def set_level(self, level: str):
        """Console verbosity, e.g. from the log_level tunable. The file log stays at DEBUG."""
        if self.console_handler:
            self.console_handler.setLevel(logging.getLevelName(level.upper()))

    def component(self, component: str) -> logging.Logger:
        return self.logger.getChild(component)

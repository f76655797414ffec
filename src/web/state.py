"""
Process-wide state shared between the loop driver and the status API.
"""

import threading
import time
from typing import Any, Dict, Optional


class SharedState:
    """
    Singleton class to share state between the main processing loop
    and the FastAPI web server.

    The web side only reads snapshots and asks for resets; it never steps
    the automaton itself.
    """
    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super(SharedState, cls).__new__(cls)
                    cls._instance._init_state()
        return cls._instance

    def _init_state(self):
        self.session = None
        self.driver = None
        self.config = None
        self.config_lock = threading.Lock()
        self.system_stats = {
            "start_time": 0,
            "last_tick_ts": None,
        }

    def clear(self):
        """Drop references to the current session and driver."""
        self._init_state()

    def set_session(self, session):
        self.session = session

    def set_driver(self, driver):
        self.driver = driver

    def set_config(self, config: Dict[str, Any]):
        with self.config_lock:
            self.config = config

    def get_config_copy(self) -> Optional[Dict[str, Any]]:
        with self.config_lock:
            if self.config is None:
                return None
            return dict(self.config)

    def update_system_stats(self, stats: Dict[str, Any]):
        self.system_stats.update(stats)

    def get_system_stats_copy(self) -> Dict[str, Any]:
        """Return a shallow copy of current system stats, loop stats included."""
        stats = dict(self.system_stats)
        if self.driver is not None:
            stats.update(self.driver.stats.to_dict())
            stats["running"] = self.driver.is_running
            stats["busy"] = self.driver.busy
        stats["now"] = time.time()
        return stats


# Global instance
state = SharedState()

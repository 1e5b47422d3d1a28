import threading

from .config import load_settings

_manager = None
_lock = threading.Lock()


def get_manager():
    """Return the process-wide manager, building it from load_settings() on first use."""
    global _manager
    with _lock:
        if _manager is None:
            _manager = load_settings().create_manager()
        return _manager


def reset_manager():
    global _manager
    with _lock:
        manager, _manager = _manager, None
    if manager is not None:
        manager.close()


def record_statistic(topic, timestamp=None, amount=1):
    get_manager().add_statistic(topic, timestamp=timestamp, amount=amount)

from capture_stats.core.scheduling.debounce import Debouncer

__all__ = ["Debouncer"]

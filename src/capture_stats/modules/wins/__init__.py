from capture_stats.modules.wins.registry import WinRegistry

__all__ = ["WinRegistry"]

from capture_stats.core.database.metrics import DatabaseMetrics, OperationTiming
from capture_stats.core.database.service import DatabaseService

__all__ = ["DatabaseMetrics", "DatabaseService", "OperationTiming"]

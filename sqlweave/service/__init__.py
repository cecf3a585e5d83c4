from sqlweave.service._transactions import use_transactions
from sqlweave.service.base import RelationalService, ReturningConfig

__all__ = ("RelationalService", "ReturningConfig", "use_transactions")

from .store import ExecuteResult, Store

__all__ = ["ExecuteResult", "Store"]

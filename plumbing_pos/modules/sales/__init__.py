from .engine import LineItem, SaleResult, SaleTransactionEngine, line_total

__all__ = ["LineItem", "SaleResult", "SaleTransactionEngine", "line_total"]

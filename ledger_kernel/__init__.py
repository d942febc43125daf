"""
Ledger Kernel - costed inventory ledger and double-entry journal poster.

An append-only stock and accounting core with:
- Per-key running balances (quantity, value, average cost)
- Weighted-average and FIFO costing over a persisted lot queue
- Exact Decimal double-entry validation
- Serialised appends under concurrent access
"""

__version__ = "0.1.0"

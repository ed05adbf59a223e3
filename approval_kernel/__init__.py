"""
Approval Kernel

The workflow engine behind the portal's approval requests:
- Ordered approver chains with sequential level activation
- Atomic approve/reject decisions under optimistic concurrency
- Bounded decision reversal (cancellation window)
- Append-only comments and hash-chained approval history
- Read-only overdue and bottleneck reporting
"""

__version__ = "0.1.0"

"""
Voicecraft Kernel - project fulfillment and credit ledger

A transactional core for expert-fulfilled voice projects with:
- Append-only credit ledger with a non-negative balance guarantee
- Guarded project state machine (estimate, reserve, assign, review)
- Single payout / refund settlement per project
- Pluggable cost-estimation gateway
"""

__version__ = "0.1.0"

"""Procurement approvals.

Tiered approval workflow for purchase orders and service requisitions.
"""

__version__ = "0.1.0"

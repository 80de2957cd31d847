"""
Site Logistics Tracker

Asset inventory and logistics tracking for dewatering and waterproofing
work: stock levels, waybills to sites, quick checkouts and returns, all
posted through an auditable stock ledger.
"""

__version__ = "1.0.0"

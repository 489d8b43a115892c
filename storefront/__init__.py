"""Storefront backend: cart, order reconciliation and revenue ledger"""

__version__ = "1.0.0"

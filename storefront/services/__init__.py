"""Services package"""

from .catalog import ProductCatalog, UserStore
from .email_service import EmailService
from .revenue_ledger import RevenueLedger

__all__ = [
    "ProductCatalog",
    "UserStore",
    "EmailService",
    "RevenueLedger",
]

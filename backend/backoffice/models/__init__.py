from backoffice.models.category import Category
from backoffice.models.catalog import Product
from backoffice.models.quotation import (
    Quotation,
    QuotationCounter,
    QuotationItem,
    QuotationPayment,
    QuotationTransaction,
)
from backoffice.models.finance import Client, ClientTransaction

__all__ = [
    "Category",
    "Product",
    "Quotation",
    "QuotationCounter",
    "QuotationItem",
    "QuotationPayment",
    "QuotationTransaction",
    "Client",
    "ClientTransaction",
]

from backoffice.business.billing.api import router
from backoffice.business.billing.models import Invoice
from backoffice.business.billing.schemas import (
    InvoiceCreate,
    InvoicePatch,
    InvoicePaymentCreate,
    InvoiceRead,
    InvoiceStatusChange,
)
from backoffice.business.billing.service import InvoiceService, invoice_service

__all__ = [
    "router",
    "Invoice",
    "InvoiceCreate",
    "InvoicePatch",
    "InvoicePaymentCreate",
    "InvoiceRead",
    "InvoiceStatusChange",
    "InvoiceService",
    "invoice_service",
]

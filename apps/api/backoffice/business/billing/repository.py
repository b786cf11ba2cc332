from __future__ import annotations

from sqlalchemy.orm import Session

from backoffice.business.billing.models import Invoice
from backoffice.business.finance.numbering import next_document_number
from backoffice.platform.repository import EntityRepository

INVOICE_NUMBER_PREFIX = "INV"


class InvoiceRepository(EntityRepository[Invoice]):
    model = Invoice
    label = "invoice"
    resource = "billing.invoice"

    def next_number(self, session: Session) -> str:
        return next_document_number(session, Invoice.invoice_number, INVOICE_NUMBER_PREFIX)

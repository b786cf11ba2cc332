from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy.orm import Session

from backoffice import audit, events
from backoffice.business.billing.models import Invoice, utcnow
from backoffice.business.billing.repository import InvoiceRepository
from backoffice.business.billing.schemas import (
    InvoiceCreate,
    InvoicePatch,
    InvoicePaymentCreate,
    InvoiceRead,
    InvoiceStatusChange,
)
from backoffice.business.finance import decode_items, encode_items, price_items
from backoffice.business.finance.calculator import to_amount, to_decimal
from backoffice.business.finance.schemas import LineItemRead
from backoffice.core.config import get_settings
from backoffice.core.errors import ConflictError, ValidationError
from backoffice.crm.repositories import CustomerRepository
from backoffice.crm.service import CustomerService
from backoffice.lifecycle.machines import INVOICE_MACHINE
from backoffice.platform.security.context import ActorUser

_PAYABLE_STATUSES = {"sent", "overdue"}


@dataclass(slots=True)
class InvoiceService:
    invoices: InvoiceRepository = InvoiceRepository()
    customers: CustomerRepository = CustomerRepository()
    customer_service: CustomerService = field(default_factory=CustomerService)
    entity_type: str = "billing.invoice"

    def create_invoice(self, session: Session, actor_user: ActorUser, dto: InvoiceCreate) -> InvoiceRead:
        settings = get_settings()
        tax_rate = dto.tax_rate if dto.tax_rate is not None else settings.default_tax_rate
        priced, totals = price_items(dto.items, tax_rate)

        invoice_date = dto.invoice_date or utcnow().date()
        due_date = dto.due_date or invoice_date + timedelta(days=settings.default_invoice_due_days)
        if due_date < invoice_date:
            raise ValidationError("due_date must not be before invoice_date", details={"field": "due_date"})

        customer = self.customers.require(session, dto.customer_id) if dto.customer_id is not None else None
        invoice = Invoice(
            invoice_number=self.invoices.next_number(session),
            customer_id=dto.customer_id,
            customer_name=dto.customer_name or (customer.name if customer else None),
            customer_email=str(dto.customer_email) if dto.customer_email else (customer.email if customer else None),
            customer_phone=dto.customer_phone or (customer.phone if customer else None),
            customer_address=dto.customer_address or (customer.address if customer else None),
            invoice_type=dto.invoice_type,
            invoice_date=invoice_date,
            due_date=due_date,
            items=encode_items(priced),
            subtotal=totals.subtotal,
            tax_rate=to_decimal(tax_rate, "tax_rate"),
            tax=totals.tax,
            total=totals.total,
            amount_paid=Decimal("0"),
            notes=dto.notes,
            status=INVOICE_MACHINE.initial,
            created_by=actor_user.user_id,
        )
        self.invoices.add(session, invoice)
        if customer is not None:
            self.customer_service.record_note(
                session,
                actor_user,
                customer.id,
                f"Invoice {invoice.invoice_number} created - {invoice.invoice_type or 'General'} - "
                f"Total: ${totals.total:.2f}",
            )
        self.invoices.commit(session, "billing.invoice.create")
        session.refresh(invoice)

        created = self._to_read(invoice)
        self._audit(actor_user, invoice.id, "create", None, created)
        events.publish(
            events.build_envelope(
                "invoice.created",
                actor_user.user_id,
                {
                    "invoice_id": str(invoice.id),
                    "invoice_number": invoice.invoice_number,
                    "customer_id": str(invoice.customer_id) if invoice.customer_id else None,
                    "total": str(totals.total),
                },
            )
        )
        return created

    def list_invoices(
        self,
        session: Session,
        actor_user: ActorUser,
        status_filter: str | None,
        customer_id: uuid.UUID | None,
        offset: int = 0,
        limit: int = 50,
    ) -> list[InvoiceRead]:
        invoices = self.invoices.list(
            session,
            filters={"status": status_filter, "customer_id": customer_id},
            order_by=Invoice.created_at.desc(),
            offset=offset,
            limit=limit,
        )
        return [self._to_read(invoice) for invoice in invoices]

    def get_invoice(self, session: Session, actor_user: ActorUser, invoice_id: uuid.UUID) -> InvoiceRead:
        return self._to_read(self.invoices.require(session, invoice_id))

    def update_invoice(
        self,
        session: Session,
        actor_user: ActorUser,
        invoice_id: uuid.UUID,
        dto: InvoicePatch,
    ) -> InvoiceRead:
        invoice = self.invoices.require(session, invoice_id)
        if invoice.status in INVOICE_MACHINE.terminal:
            raise ConflictError(
                f"invoice with status {invoice.status} cannot be modified",
                details={"invoice_id": str(invoice.id), "status": invoice.status},
            )

        payload = dto.model_dump(exclude_unset=True, exclude={"row_version", "items"})
        if payload.get("customer_email") is not None:
            payload["customer_email"] = str(payload["customer_email"])
        if payload.get("invoice_date", invoice.invoice_date) is None:
            payload.pop("invoice_date")
        if "items" in dto.model_fields_set or "tax_rate" in dto.model_fields_set:
            items: list[Any] = dto.items if dto.items is not None else decode_items(invoice.items)
            tax_rate = payload.get("tax_rate")
            if tax_rate is None:
                tax_rate = invoice.tax_rate
            priced, totals = price_items(items, tax_rate)
            if totals.total < invoice.amount_paid:
                raise ValidationError(
                    "invoice total cannot drop below the amount already paid",
                    details={"total": str(totals.total), "amount_paid": str(invoice.amount_paid)},
                )
            payload.update(
                items=encode_items(priced),
                tax_rate=to_decimal(tax_rate, "tax_rate"),
                subtotal=totals.subtotal,
                tax=totals.tax,
                total=totals.total,
            )
        invoice_date = payload.get("invoice_date", invoice.invoice_date)
        due_date = payload.get("due_date", invoice.due_date)
        if due_date is not None and due_date < invoice_date:
            raise ValidationError("due_date must not be before invoice_date", details={"field": "due_date"})
        if not payload:
            return self._to_read(invoice)

        before = self._to_read(invoice)
        invoice = self.invoices.update_versioned(session, invoice, payload, dto.row_version)
        self.invoices.commit(session, "billing.invoice.update")
        session.refresh(invoice)

        updated = self._to_read(invoice)
        self._audit(actor_user, invoice.id, "update", before, updated)
        events.publish(
            events.build_envelope(
                "invoice.updated",
                actor_user.user_id,
                {"invoice_id": str(invoice.id), "total": str(invoice.total)},
            )
        )
        return updated

    def change_status(
        self,
        session: Session,
        actor_user: ActorUser,
        invoice_id: uuid.UUID,
        dto: InvoiceStatusChange,
    ) -> InvoiceRead:
        invoice = self.invoices.require(session, invoice_id)
        previous_status = invoice.status
        INVOICE_MACHINE.ensure(previous_status, dto.status)
        if previous_status == dto.status:
            return self._to_read(invoice)

        values: dict[str, Any] = {"status": dto.status}
        if dto.status == "paid":
            values["amount_paid"] = invoice.total
            values["paid_at"] = utcnow()
        return self._apply(session, actor_user, invoice, values, dto.row_version, "status_change")

    def record_payment(
        self,
        session: Session,
        actor_user: ActorUser,
        invoice_id: uuid.UUID,
        dto: InvoicePaymentCreate,
    ) -> InvoiceRead:
        """Add a payment; an invoice whose balance reaches zero becomes ``paid``."""
        invoice = self.invoices.require(session, invoice_id)
        if invoice.status not in _PAYABLE_STATUSES:
            raise ConflictError(
                f"cannot record a payment on a {invoice.status} invoice",
                details={"invoice_id": str(invoice.id), "status": invoice.status},
            )
        amount = to_amount(dto.amount, "amount")
        amount_paid = Decimal(invoice.amount_paid) + amount
        if amount_paid > invoice.total:
            raise ValidationError(
                "payment exceeds the balance due",
                details={"amount": str(amount), "balance_due": str(invoice.total - invoice.amount_paid)},
            )

        values: dict[str, Any] = {"amount_paid": amount_paid}
        if amount_paid == invoice.total:
            INVOICE_MACHINE.ensure(invoice.status, "paid")
            values["status"] = "paid"
            values["paid_at"] = utcnow()
        updated = self._apply(session, actor_user, invoice, values, dto.row_version, "payment")
        events.publish(
            events.build_envelope(
                "invoice.payment_recorded",
                actor_user.user_id,
                {"invoice_id": str(invoice_id), "amount": str(amount), "amount_paid": str(amount_paid)},
            )
        )
        return updated

    def delete_invoice(self, session: Session, actor_user: ActorUser, invoice_id: uuid.UUID) -> None:
        invoice = self.invoices.require(session, invoice_id)
        INVOICE_MACHINE.ensure_deletable(invoice.status)
        before = self._to_read(invoice)
        self.invoices.delete(session, invoice)
        self.invoices.commit(session, "billing.invoice.delete")

        self._audit(actor_user, invoice_id, "delete", before, None)
        events.publish(events.build_envelope("invoice.deleted", actor_user.user_id, {"invoice_id": str(invoice_id)}))

    def _apply(
        self,
        session: Session,
        actor_user: ActorUser,
        invoice: Invoice,
        values: dict[str, Any],
        expected_row_version: int | None,
        action: str,
    ) -> InvoiceRead:
        previous_status = invoice.status
        before = self._to_read(invoice)
        invoice = self.invoices.update_versioned(session, invoice, values, expected_row_version)
        self.invoices.commit(session, f"billing.invoice.{action}")
        session.refresh(invoice)

        updated = self._to_read(invoice)
        self._audit(actor_user, invoice.id, action, before, updated)
        if invoice.status != previous_status:
            INVOICE_MACHINE.record(previous_status, invoice.status)
            events.publish(
                events.build_envelope(
                    "invoice.status_changed",
                    actor_user.user_id,
                    {"invoice_id": str(invoice.id), "from": previous_status, "to": invoice.status},
                )
            )
        return updated

    def _to_read(self, invoice: Invoice) -> InvoiceRead:
        return InvoiceRead.model_validate(
            {
                "id": invoice.id,
                "invoice_number": invoice.invoice_number,
                "customer_id": invoice.customer_id,
                "customer_name": invoice.customer_name,
                "customer_email": invoice.customer_email,
                "customer_phone": invoice.customer_phone,
                "customer_address": invoice.customer_address,
                "invoice_type": invoice.invoice_type,
                "invoice_date": invoice.invoice_date,
                "due_date": invoice.due_date,
                "items": [LineItemRead.model_validate(item) for item in decode_items(invoice.items)],
                "subtotal": invoice.subtotal,
                "tax_rate": invoice.tax_rate,
                "tax": invoice.tax,
                "total": invoice.total,
                "amount_paid": invoice.amount_paid,
                "balance_due": invoice.total - invoice.amount_paid,
                "notes": invoice.notes,
                "status": invoice.status,
                "paid_at": invoice.paid_at,
                "created_at": invoice.created_at,
                "updated_at": invoice.updated_at,
                "row_version": invoice.row_version,
            }
        )

    def _audit(
        self,
        actor_user: ActorUser,
        invoice_id: uuid.UUID,
        action: str,
        before: InvoiceRead | None,
        after: InvoiceRead | None,
    ) -> None:
        audit.record(
            actor_user_id=actor_user.user_id,
            entity_type=self.entity_type,
            entity_id=str(invoice_id),
            action=action,
            before=before.model_dump(mode="json") if before is not None else None,
            after=after.model_dump(mode="json") if after is not None else None,
            correlation_id=actor_user.correlation_id,
        )


invoice_service = InvoiceService()

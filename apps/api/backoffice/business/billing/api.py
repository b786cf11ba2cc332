from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from backoffice.api.deps import get_current_user, offset_from_cursor, require_capability
from backoffice.api.errors import failure_response
from backoffice.business.billing.schemas import (
    InvoiceCreate,
    InvoicePatch,
    InvoicePaymentCreate,
    InvoiceRead,
    InvoiceStatusChange,
)
from backoffice.business.billing.service import invoice_service
from backoffice.core.database import get_db
from backoffice.core.errors import DomainError
from backoffice.platform.security import ActorUser, Capability


router = APIRouter(prefix="/api/invoices", tags=["invoices"])


@router.post("", response_model=InvoiceRead, status_code=status.HTTP_201_CREATED)
def create_invoice(
    request: Request,
    dto: InvoiceCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> InvoiceRead | JSONResponse:
    try:
        require_capability(user, Capability.INVOICES_CREATE)
        return invoice_service.create_invoice(db, user, dto)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="invoice_create_failed")


@router.get("", response_model=list[InvoiceRead])
def list_invoices(
    request: Request,
    status_filter: str | None = Query(default=None, alias="status"),
    customer_id: uuid.UUID | None = Query(default=None),
    cursor: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[InvoiceRead] | JSONResponse:
    try:
        require_capability(user, Capability.INVOICES_VIEW)
        return invoice_service.list_invoices(
            db,
            user,
            status_filter=status_filter,
            customer_id=customer_id,
            offset=offset_from_cursor(cursor),
            limit=limit,
        )
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="invoice_list_failed")


@router.get("/{invoice_id}", response_model=InvoiceRead)
def get_invoice(
    request: Request,
    invoice_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> InvoiceRead | JSONResponse:
    try:
        require_capability(user, Capability.INVOICES_VIEW)
        return invoice_service.get_invoice(db, user, invoice_id)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="invoice_get_failed")


@router.patch("/{invoice_id}", response_model=InvoiceRead)
def update_invoice(
    request: Request,
    invoice_id: uuid.UUID,
    dto: InvoicePatch,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> InvoiceRead | JSONResponse:
    try:
        require_capability(user, Capability.INVOICES_EDIT)
        return invoice_service.update_invoice(db, user, invoice_id, dto)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="invoice_update_failed")


@router.delete("/{invoice_id}", response_model=None, status_code=status.HTTP_200_OK)
def delete_invoice(
    request: Request,
    invoice_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> Any:
    try:
        require_capability(user, Capability.INVOICES_EDIT)
        invoice_service.delete_invoice(db, user, invoice_id)
        return {"status": "deleted"}
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="invoice_delete_failed")


@router.post("/{invoice_id}/status", response_model=InvoiceRead)
def change_invoice_status(
    request: Request,
    invoice_id: uuid.UUID,
    dto: InvoiceStatusChange,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> InvoiceRead | JSONResponse:
    try:
        require_capability(user, Capability.INVOICES_EDIT)
        return invoice_service.change_status(db, user, invoice_id, dto)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="invoice_status_change_failed")


@router.post("/{invoice_id}/payments", response_model=InvoiceRead)
def record_invoice_payment(
    request: Request,
    invoice_id: uuid.UUID,
    dto: InvoicePaymentCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> InvoiceRead | JSONResponse:
    try:
        require_capability(user, Capability.INVOICES_EDIT)
        return invoice_service.record_payment(db, user, invoice_id, dto)
    except (DomainError, HTTPException) as exc:
        return failure_response(request, exc, code="invoice_payment_failed")

"""
Invoice Repository.

Data access for invoices: number sequencing, magic-link token lookup,
overdue marking and reminder selection.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select, update

from portal.backend.models.invoice import UNPAID_STATUSES, Invoice
from portal.backend.repositories.base import BaseRepository


class InvoiceRepository(BaseRepository[Invoice]):
    """Repository for Invoice model."""

    model = Invoice
    label = "Invoice"

    async def get_by_payment_token(self, token: str) -> Invoice | None:
        """Find an invoice by its payment link token (any tenant)."""
        return await self.find_one(Invoice.payment_token == token)

    async def max_number_seq(self) -> int | None:
        """Highest invoice sequence number issued so far, or None."""
        result = await self.session.execute(select(func.max(Invoice.number_seq)))
        return result.scalar_one_or_none()

    async def list_for_org(
        self,
        org_id: str,
        status: str | None = None,
        contact_id: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Invoice], int]:
        conditions = [Invoice.org_id == org_id]
        if status:
            conditions.append(Invoice.status == status)
        if contact_id:
            conditions.append(Invoice.contact_id == contact_id)
        items = await self.find(
            *conditions, order_by=Invoice.created_at.desc(), limit=limit, offset=offset,
        )
        return items, await self.count(*conditions)

    async def list_recurring_due(self, now: datetime) -> list[Invoice]:
        """Recurring invoices whose next occurrence is due."""
        return await self.find(
            Invoice.is_recurring.is_(True),
            Invoice.next_invoice_date.is_not(None),
            Invoice.next_invoice_date <= now,
            order_by=Invoice.next_invoice_date.asc(),
        )

    async def mark_overdue(self, now: datetime) -> int:
        """Flip sent invoices past their due date to overdue; returns how many changed."""
        result = await self.session.execute(
            update(Invoice)
            .where(Invoice.status == "sent", Invoice.due_at.is_not(None), Invoice.due_at < now)
            .values(status="overdue", updated_at=now)
        )
        return result.rowcount or 0

    async def list_reminders_due(self, now: datetime, max_reminders: int) -> list[Invoice]:
        """Unpaid invoices whose next automatic reminder is due."""
        return await self.find(
            Invoice.status.in_(UNPAID_STATUSES),
            Invoice.next_reminder_at.is_not(None),
            Invoice.next_reminder_at <= now,
            Invoice.reminder_count < max_reminders,
            order_by=Invoice.next_reminder_at.asc(),
        )

    async def unpaid_summary(self, org_id: str) -> tuple[int, Decimal]:
        """Return (count, total amount) of unpaid invoices."""
        result = await self.session.execute(
            select(func.count(), func.coalesce(func.sum(Invoice.total), 0))
            .where(Invoice.org_id == org_id, Invoice.status.in_(UNPAID_STATUSES))
        )
        count, amount = result.one()
        return count, Decimal(str(amount))

    async def paid_between(
        self, org_id: str, start: datetime, end: datetime | None = None,
    ) -> list[Invoice]:
        conditions = [
            Invoice.org_id == org_id,
            Invoice.status == "paid",
            Invoice.paid_at.is_not(None),
            Invoice.paid_at >= start,
        ]
        if end is not None:
            conditions.append(Invoice.paid_at < end)
        return await self.find(*conditions)

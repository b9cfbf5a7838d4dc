"""
Invoice Service.

Invoice numbering and tax, magic-link and in-app card payment through
Square, reminders and recurring invoice generation.

Payment follows charge-then-record: once Square accepts a charge the
payment is reported as succeeded even if the invoice update cannot be
persisted. That case is logged at critical for manual reconciliation.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from portal.backend.core.config import get_app_config
from portal.backend.core.exceptions import (
    ConflictError,
    GoneError,
    NotFoundError,
    ServiceNotConfiguredError,
    ValidationError,
)
from portal.backend.core.logging import get_logger
from portal.backend.core.rate_limiter import RateLimiter, get_rate_limiter
from portal.backend.core.security import generate_payment_token
from portal.backend.core.utils import add_months, to_cents, to_money, utc_now
from portal.backend.integrations.square import SquareClient, new_idempotency_key
from portal.backend.models.contact import Contact
from portal.backend.models.invoice import Invoice
from portal.backend.repositories.contact import ContactRepository
from portal.backend.repositories.invoice import InvoiceRepository
from portal.backend.repositories.organization import OrganizationRepository
from portal.backend.schemas.invoice import InvoiceCreate, InvoiceUpdate
from portal.backend.services.base import BaseService
from portal.backend.services.mail import Mailer, public_url, render_message
from portal.backend.services.notification import NotificationService

logger = get_logger(__name__)

INTERVAL_DAYS = {"weekly": 7, "bi-weekly": 14}
INTERVAL_MONTHS = {"monthly": 1, "quarterly": 3, "semi-annual": 6, "annual": 12}


def compute_tax(amount: Decimal, tax_rate: Decimal | float | int) -> tuple[Decimal, Decimal]:
    """Return (tax_amount, total) for an amount and a percentage rate."""
    amount = to_money(amount)
    tax_amount = to_money(amount * Decimal(str(tax_rate)) / 100)
    return tax_amount, amount + tax_amount


def next_reminder_at(reminder_count: int, now: datetime) -> datetime | None:
    """
    When the next automatic reminder is due.

    reminder_schedule_days holds the gap before each reminder, counted
    from the previous send. None once every scheduled reminder went out.
    """
    schedule = get_app_config().billing.reminder_schedule_days
    if reminder_count >= len(schedule):
        return None
    return now + timedelta(days=schedule[reminder_count])


def format_invoice_number(prefix: str, seq: int, width: int) -> str:
    return f"{prefix}{seq:0{width}d}"


def next_recurring_date(current: datetime, interval: str, day_of_month: int | None = None) -> datetime:
    """
    Next occurrence of a recurring invoice.

    Week-based intervals add days. Month-based intervals add months with
    the day clamped to the end of the target month; day_of_month, when
    set, replaces the day and is clamped the same way.

    Raises:
        ValidationError: Unknown interval
    """
    if interval in INTERVAL_DAYS:
        return current + timedelta(days=INTERVAL_DAYS[interval])
    if interval in INTERVAL_MONTHS:
        return add_months(current, INTERVAL_MONTHS[interval], day=day_of_month)
    raise ValidationError(f"Unknown recurring interval: {interval}")


class InvoiceService(BaseService):
    """Service for invoice business logic."""

    def __init__(
        self,
        session: AsyncSession,
        square: SquareClient | None = None,
        mailer: Mailer | None = None,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        super().__init__(session)
        self.repo = InvoiceRepository(session)
        self.contacts = ContactRepository(session)
        self.orgs = OrganizationRepository(session)
        self._square = square
        self.mailer = mailer or Mailer()
        self.rate_limiter = rate_limiter or get_rate_limiter()

    @property
    def square(self) -> SquareClient:
        if self._square is None:
            self._square = SquareClient()
        return self._square

    # -------------------------------------------------------------------------
    # CRUD
    # -------------------------------------------------------------------------

    async def _next_number(self) -> tuple[int, str]:
        billing = get_app_config().billing
        seq = max(await self.repo.max_number_seq() or 0, billing.invoice_number_base) + 1
        return seq, format_invoice_number(
            billing.invoice_number_prefix, seq, billing.invoice_number_width,
        )

    async def _insert(self, org_id: str, **fields: Any) -> Invoice:
        """Insert an invoice with a fresh number and payment link."""
        billing = get_app_config().billing
        now = utc_now()
        seq, number = await self._next_number()
        fields.setdefault("due_at", now + timedelta(days=billing.default_due_days))
        return await self._execute_db_operation(
            "create_invoice",
            self.repo.create(
                org_id=org_id,
                number_seq=seq,
                invoice_number=number,
                payment_token=generate_payment_token(),
                payment_token_expires_at=now + timedelta(days=billing.payment_link_expire_days),
                **fields,
            ),
            conflict_message="Invoice number already issued, please retry",
        )

    async def create_invoice(self, org_id: str, data: InvoiceCreate) -> Invoice:
        """
        Create an invoice, sent immediately unless send is false.

        Raises:
            ValidationError: contact_id or amount missing, or recurring without interval
            NotFoundError: Contact not in this organization
        """
        self._validate_required(data.model_dump(), ["contact_id", "amount"])
        if data.is_recurring and not data.recurring_interval:
            raise ValidationError("recurring_interval is required for recurring invoices")
        contact = await self.contacts.get_in_org(data.contact_id, org_id)

        tax_rate = (
            data.tax_rate
            if data.tax_rate is not None
            else Decimal(str(get_app_config().billing.default_tax_rate))
        )
        tax_amount, total = compute_tax(data.amount, tax_rate)
        now = utc_now()

        fields: dict[str, Any] = {
            "contact_id": contact.id,
            "project_id": data.project_id,
            "description": data.description,
            "amount": to_money(data.amount),
            "tax_rate": tax_rate,
            "tax_amount": tax_amount,
            "total": total,
            "status": "sent" if data.send else "draft",
            "sent_at": now if data.send else None,
            "next_reminder_at": next_reminder_at(0, now) if data.send else None,
            "is_recurring": data.is_recurring,
        }
        if data.due_at is not None:
            fields["due_at"] = data.due_at
        if data.is_recurring:
            fields["recurring_interval"] = data.recurring_interval
            fields["recurring_day_of_month"] = data.recurring_day_of_month
            fields["next_invoice_date"] = next_recurring_date(
                now, data.recurring_interval, data.recurring_day_of_month,
            )

        invoice = await self._insert(org_id, **fields)
        self._log_operation(
            "Invoice created",
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            total=str(invoice.total),
        )
        if data.send:
            await self._email_payment_link(invoice, contact)
        return invoice

    async def list_invoices(
        self,
        org_id: str,
        status: str | None = None,
        contact_id: str | None = None,
        client_contact_id: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Invoice], int]:
        """List invoices. client_contact_id restricts a client to their own."""
        if client_contact_id is not None:
            contact_id = client_contact_id
        return await self.repo.list_for_org(
            org_id, status=status, contact_id=contact_id, limit=limit, offset=offset,
        )

    async def get_invoice(
        self, org_id: str, invoice_id: str, client_contact_id: str | None = None,
    ) -> Invoice:
        invoice = await self.repo.get_in_org(invoice_id, org_id)
        if client_contact_id is not None and invoice.contact_id != client_contact_id:
            raise NotFoundError("Invoice not found")
        return invoice

    async def update_invoice(self, org_id: str, invoice_id: str, data: InvoiceUpdate) -> Invoice:
        """Partial update; tax and total follow amount or tax rate changes."""
        invoice = await self.repo.get_in_org(invoice_id, org_id)
        update_data = data.model_dump(exclude_unset=True)
        if "amount" in update_data or "tax_rate" in update_data:
            amount = update_data.get("amount")
            if amount is None:
                amount = invoice.amount
            tax_rate = update_data.get("tax_rate")
            if tax_rate is None:
                tax_rate = invoice.tax_rate
            update_data["amount"] = to_money(amount)
            update_data["tax_rate"] = tax_rate
            update_data["tax_amount"], update_data["total"] = compute_tax(amount, tax_rate)
        if not update_data:
            return invoice

        self._log_operation("Updating invoice", invoice_id=invoice_id, fields=list(update_data))
        return await self._execute_db_operation(
            "update_invoice", self.repo.apply(invoice, **update_data),
        )

    async def delete_invoice(self, org_id: str, invoice_id: str) -> None:
        invoice = await self.repo.get_in_org(invoice_id, org_id)
        if invoice.status == "paid":
            raise ConflictError("Paid invoices cannot be deleted")
        self._log_operation("Deleting invoice", invoice_id=invoice_id)
        await self._execute_db_operation("delete_invoice", self.repo.remove(invoice))

    # -------------------------------------------------------------------------
    # Sending
    # -------------------------------------------------------------------------

    async def _email_payment_link(self, invoice: Invoice, contact: Contact, reminder: bool = False) -> str | None:
        link = public_url(f"/pay/{invoice.payment_token}")
        heading = (
            f"Reminder: invoice {invoice.invoice_number}"
            if reminder
            else f"Invoice {invoice.invoice_number}"
        )
        return await self.mailer.send(
            contact.email,
            heading,
            render_message(
                heading,
                [
                    f"Hi {contact.name or 'there'},",
                    f"Amount due: ${invoice.total:,.2f}",
                ],
                link=link,
                link_label="Pay invoice",
            ),
        )

    async def send_invoice(self, org_id: str, invoice_id: str) -> Invoice:
        invoice = await self.repo.get_in_org(invoice_id, org_id)
        if invoice.status in ("paid", "cancelled"):
            raise ConflictError(f"Invoice is {invoice.status}")
        contact = await self.contacts.get_by_id(invoice.contact_id)
        now = utc_now()
        invoice = await self.repo.apply(
            invoice, status="sent", sent_at=now, next_reminder_at=next_reminder_at(invoice.reminder_count, now),
        )
        await self._email_payment_link(invoice, contact)
        self._log_operation("Invoice sent", invoice_id=invoice_id)
        return invoice

    async def send_reminder(self, org_id: str, invoice_id: str) -> Invoice:
        invoice = await self.repo.get_in_org(invoice_id, org_id)
        if invoice.status in ("paid", "cancelled"):
            raise ConflictError(f"Invoice is {invoice.status}")
        contact = await self.contacts.get_by_id(invoice.contact_id)
        await self._email_payment_link(invoice, contact, reminder=True)
        now = utc_now()
        self._log_operation("Invoice reminder sent", invoice_id=invoice_id)
        return await self.repo.apply(
            invoice,
            reminder_count=invoice.reminder_count + 1,
            last_reminder_at=now,
            next_reminder_at=next_reminder_at(invoice.reminder_count + 1, now),
        )

    async def send_due_reminders(self, now: datetime | None = None) -> dict[str, int]:
        """
        Mark overdue invoices, then email every reminder that is due.

        An invoice gets at most one reminder per entry in
        reminder_schedule_days. When the mailer skips the send the
        invoice is left as is and picked up again on the next run.
        """
        now = now or utc_now()
        overdue = await self.repo.mark_overdue(now)
        limit = len(get_app_config().billing.reminder_schedule_days)

        sent = 0
        for invoice in await self.repo.list_reminders_due(now, limit):
            contact = await self.contacts.get_by_id_or_none(invoice.contact_id)
            if contact is None:
                continue
            if await self._email_payment_link(invoice, contact, reminder=True) is None:
                continue
            await self.repo.apply(
                invoice,
                reminder_count=invoice.reminder_count + 1,
                last_reminder_at=now,
                next_reminder_at=next_reminder_at(invoice.reminder_count + 1, now),
            )
            sent += 1

        if overdue or sent:
            self._log_operation("Invoice reminders processed", overdue=overdue, reminders_sent=sent)
        return {"overdue": overdue, "reminders_sent": sent}

    # -------------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------------

    async def _get_valid_by_token(self, token: str) -> Invoice:
        invoice = await self.repo.get_by_payment_token(token)
        if invoice is None:
            raise NotFoundError("Invoice not found")
        if invoice.payment_token_expires_at < utc_now():
            raise GoneError("Payment link has expired")
        return invoice

    async def get_public_invoice(self, token: str) -> dict[str, Any]:
        """Public view of an invoice for the holder of its payment link."""
        invoice = await self._get_valid_by_token(token)
        contact = await self.contacts.get_by_id_or_none(invoice.contact_id)
        org = await self.orgs.get_by_id_or_none(invoice.org_id)
        return {
            "invoice_number": invoice.invoice_number,
            "description": invoice.description,
            "amount": invoice.amount,
            "tax_rate": invoice.tax_rate,
            "tax_amount": invoice.tax_amount,
            "total": invoice.total,
            "status": invoice.status,
            "due_at": invoice.due_at,
            "paid_at": invoice.paid_at,
            "payment_token_expires_at": invoice.payment_token_expires_at,
            "contact_name": contact.name if contact else None,
            "organization_name": org.name if org else None,
        }

    async def pay_public(self, token: str | None, source_id: str | None) -> dict[str, Any]:
        """
        Pay an invoice through its magic link.

        Raises:
            ValidationError: Missing token/source_id, or invoice already paid
            NotFoundError: Unknown token
            GoneError: Payment link expired
            ServiceNotConfiguredError: Square credentials missing
            PaymentError: Card declined
        """
        self._validate_required({"token": token, "source_id": source_id}, ["token", "source_id"])
        invoice = await self._get_valid_by_token(token)
        return await self._charge_and_record(invoice, source_id)

    async def pay(self, org_id: str, invoice_id: str, contact: Contact, source_id: str | None) -> dict[str, Any]:
        """
        Pay an invoice from an authenticated session.

        Attempts are rate limited per contact.

        Raises:
            RateLimitError: Too many attempts
        """
        self.rate_limiter.enforce("payments", contact.id)
        self._validate_required({"source_id": source_id}, ["source_id"])
        invoice = await self.repo.get_in_org(invoice_id, org_id)
        if contact.role == "client" and invoice.contact_id != contact.id:
            raise NotFoundError("Invoice not found")
        return await self._charge_and_record(invoice, source_id)

    async def _charge_and_record(self, invoice: Invoice, source_id: str) -> dict[str, Any]:
        if invoice.status == "paid":
            raise ValidationError("Invoice is already paid")
        if invoice.status == "cancelled":
            raise ValidationError("Invoice is cancelled")
        if not self.square.is_configured:
            raise ServiceNotConfiguredError("Payment processing is not configured")

        payment = await self.square.create_payment(
            source_id=source_id,
            amount_cents=to_cents(invoice.total),
            idempotency_key=new_idempotency_key(),
            reference_id=invoice.id,
            note=f"Invoice {invoice.invoice_number}",
        )

        invoice_id = invoice.id
        invoice_number = invoice.invoice_number
        org_id = invoice.org_id
        contact_id = invoice.contact_id
        total = invoice.total

        recorded = True
        try:
            await self.repo.apply(
                invoice,
                status="paid",
                paid_at=utc_now(),
                square_payment_id=payment.id,
                payment_method="card",
                next_reminder_at=None,
            )
            await self.session.commit()
        except SQLAlchemyError as e:
            recorded = False
            await self.session.rollback()
            logger.critical(
                "Payment captured but invoice update failed",
                extra={
                    "invoice_id": invoice_id,
                    "invoice_number": invoice_number,
                    "payment_id": payment.id,
                    "amount": str(total),
                    "error": str(e),
                },
            )

        self._log_operation(
            "Invoice paid",
            invoice_id=invoice_id,
            payment_id=payment.id,
            amount=str(total),
            recorded=recorded,
        )

        contact = await self.contacts.get_by_id_or_none(contact_id)
        payer = (contact.name or contact.email) if contact else "client"
        if recorded:
            await NotificationService(self.session).notify_org_admins(
                org_id,
                "payment_received",
                f"Payment received: ${total:,.2f}",
                f"Invoice {invoice_number} paid by {payer}",
                link=f"/invoices/{invoice_id}",
            )
        await self._send_payment_emails(contact, invoice_number, total, payer, payment.receipt_url)

        return {
            "success": True,
            "invoice_id": invoice_id,
            "invoice_number": invoice_number,
            "payment_id": payment.id,
            "amount": total,
            "recorded": recorded,
        }

    async def _send_payment_emails(
        self,
        contact: Contact | None,
        invoice_number: str,
        total: Decimal,
        payer: str,
        receipt_url: str | None,
    ) -> None:
        if contact is not None:
            await self.mailer.send(
                contact.email,
                f"Payment Receipt - Invoice {invoice_number}",
                render_message(
                    "Thank you for your payment",
                    [f"We received ${total:,.2f} for invoice {invoice_number}."],
                    link=receipt_url,
                    link_label="View receipt",
                ),
            )
        await self.mailer.send(
            self.mailer.admin_address,
            f"Payment received: Invoice {invoice_number}",
            render_message(
                "Payment received",
                [f"Invoice {invoice_number} was paid by {payer}: ${total:,.2f}"],
            ),
        )

    # -------------------------------------------------------------------------
    # Recurring
    # -------------------------------------------------------------------------

    async def generate_recurring(self, now: datetime | None = None) -> list[Invoice]:
        """
        Issue the next invoice of every recurring invoice that is due.

        Each generated invoice copies the parent's amounts, is sent, and
        points back through parent_invoice_id. The parent's
        next_invoice_date advances by one interval.
        """
        now = now or utc_now()
        generated: list[Invoice] = []
        for parent in await self.repo.list_recurring_due(now):
            child = await self._insert(
                parent.org_id,
                contact_id=parent.contact_id,
                project_id=parent.project_id,
                parent_invoice_id=parent.id,
                description=parent.description,
                amount=parent.amount,
                tax_rate=parent.tax_rate,
                tax_amount=parent.tax_amount,
                total=parent.total,
                status="sent",
                sent_at=now,
                next_reminder_at=next_reminder_at(0, now),
                due_at=now + timedelta(days=get_app_config().billing.default_due_days),
            )
            await self.repo.apply(
                parent,
                next_invoice_date=next_recurring_date(
                    parent.next_invoice_date, parent.recurring_interval, parent.recurring_day_of_month,
                ),
            )
            contact = await self.contacts.get_by_id_or_none(parent.contact_id)
            if contact is not None:
                await self._email_payment_link(child, contact)
            generated.append(child)

        if generated:
            self._log_operation("Recurring invoices generated", count=len(generated))
        return generated

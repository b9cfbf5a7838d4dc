"""
Dashboard Service.

Read-only aggregates for the staff dashboard.
"""

import re
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from portal.backend.core.exceptions import ValidationError
from portal.backend.core.utils import add_months, percentage, to_money, utc_now
from portal.backend.models.contact import Contact
from portal.backend.models.message import Message
from portal.backend.models.project import Project
from portal.backend.models.proposal import Proposal
from portal.backend.repositories.contact import ContactRepository
from portal.backend.repositories.crm import TaskRepository
from portal.backend.repositories.invoice import InvoiceRepository
from portal.backend.repositories.message import MessageRepository
from portal.backend.repositories.project import ProjectRepository
from portal.backend.repositories.proposal import ProposalRepository
from portal.backend.services.base import BaseService

PENDING_PROPOSAL_STATUSES = ("draft", "sent", "viewed")
UPCOMING_TASK_WINDOW = timedelta(days=7)
PERIOD_PATTERN = re.compile(r"^(\d+)d$")


def parse_period(period: str | None) -> int:
    """
    Parse ``{n}d`` into a number of days (30 when empty).

    Raises:
        ValidationError: Not of the form {n}d with n > 0
    """
    if not period:
        return 30
    match = PERIOD_PATTERN.match(period.strip())
    if match is None or int(match.group(1)) == 0:
        raise ValidationError("period must look like 30d", details={"field": "period"})
    return int(match.group(1))


def month_keys(now: datetime, months: int) -> list[str]:
    """The last ``months`` YYYY-MM keys, oldest first, ending with the current month."""
    first = now.replace(day=1)
    return [add_months(first, -offset).strftime("%Y-%m") for offset in range(months - 1, -1, -1)]


class DashboardService(BaseService):
    """Service for dashboard aggregates."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.contacts = ContactRepository(session)
        self.projects = ProjectRepository(session)
        self.proposals = ProposalRepository(session)
        self.invoices = InvoiceRepository(session)
        self.messages = MessageRepository(session)
        self.tasks = TaskRepository(session)

    async def overview(self, org_id: str, contact_id: str) -> dict[str, Any]:
        unpaid_count, unpaid_amount = await self.invoices.unpaid_summary(org_id)
        return {
            "active_projects": await self.projects.count(
                Project.org_id == org_id, Project.status == "active",
            ),
            "pending_proposals": await self.proposals.count(
                Proposal.org_id == org_id, Proposal.status.in_(PENDING_PROPOSAL_STATUSES),
            ),
            "unpaid_invoices": unpaid_count,
            "unpaid_amount": to_money(unpaid_amount),
            "unread_messages": await self.messages.count_unread(org_id, contact_id),
            "upcoming_tasks": await self.tasks.count_upcoming(org_id, utc_now() + UPCOMING_TASK_WINDOW),
        }

    async def stats(self, org_id: str, period: str | None = None) -> dict[str, Any]:
        days = parse_period(period)
        since = utc_now() - timedelta(days=days)

        new_clients = await self.contacts.count(
            Contact.org_id == org_id, Contact.type == "client", Contact.created_at >= since,
        )
        new_proposals = await self.proposals.count(
            Proposal.org_id == org_id, Proposal.created_at >= since,
        )
        accepted = await self.proposals.find(
            Proposal.org_id == org_id,
            Proposal.status == "accepted",
            Proposal.accepted_at.is_not(None),
            Proposal.accepted_at >= since,
        )
        paid = await self.invoices.paid_between(org_id, since)

        return {
            "period_days": days,
            "new_clients": new_clients,
            "new_proposals": new_proposals,
            "accepted_proposals": len(accepted),
            "accepted_value": to_money(sum((p.total for p in accepted), Decimal("0"))),
            "revenue": to_money(sum((i.total for i in paid), Decimal("0"))),
            "conversion_rate": percentage(len(accepted), new_proposals),
        }

    async def activity(self, org_id: str, limit: int = 20) -> list[dict[str, Any]]:
        """Latest proposal, invoice, message and project events, newest first."""
        events: list[dict[str, Any]] = []
        for proposal in await self.proposals.find(
            Proposal.org_id == org_id, order_by=Proposal.updated_at.desc(), limit=limit,
        ):
            events.append({
                "type": "proposal", "id": proposal.id, "title": proposal.title,
                "status": proposal.status, "date": proposal.updated_at,
            })
        invoices, _ = await self.invoices.list_for_org(org_id, limit=limit)
        for invoice in invoices:
            events.append({
                "type": "invoice", "id": invoice.id, "title": invoice.invoice_number,
                "status": invoice.status, "date": invoice.paid_at or invoice.created_at,
            })
        for message in await self.messages.find(
            Message.org_id == org_id, order_by=Message.created_at.desc(), limit=limit,
        ):
            events.append({
                "type": "message", "id": message.id,
                "title": message.subject or message.content[:80],
                "status": "read" if message.is_read else "unread", "date": message.created_at,
            })
        for project in await self.projects.find(
            Project.org_id == org_id, order_by=Project.updated_at.desc(), limit=limit,
        ):
            events.append({
                "type": "project", "id": project.id, "title": project.name,
                "status": project.status, "date": project.updated_at,
            })

        events.sort(key=lambda e: e["date"], reverse=True)
        return events[:limit]

    async def pipeline(self, org_id: str) -> dict[str, int]:
        return await self.contacts.count_by_stage(org_id)

    async def revenue(self, org_id: str, months: int = 6) -> list[dict[str, Any]]:
        """Paid revenue per month for the last ``months`` months, zero months included."""
        if months < 1:
            raise ValidationError("months must be at least 1", details={"field": "months"})
        now = utc_now()
        keys = month_keys(now, months)
        start = datetime.strptime(keys[0], "%Y-%m")
        totals = {key: Decimal("0") for key in keys}
        for invoice in await self.invoices.paid_between(org_id, start):
            key = invoice.paid_at.strftime("%Y-%m")
            if key in totals:
                totals[key] += invoice.total
        return [{"month": key, "revenue": to_money(amount)} for key, amount in totals.items()]

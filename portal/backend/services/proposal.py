"""
Proposal Service.

Proposal pricing, sending, view tracking, acceptance, e-signature,
deposit payment and AI-assisted rewriting.
"""

from collections.abc import Iterable
from decimal import Decimal
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from portal.backend.core.exceptions import ConflictError, ValidationError
from portal.backend.core.logging import get_logger
from portal.backend.core.utils import to_cents, to_money, utc_now
from portal.backend.integrations.llm import LLMClient
from portal.backend.integrations.square import SquareClient, new_idempotency_key
from portal.backend.models.job import BackgroundJob
from portal.backend.models.project import Project
from portal.backend.models.proposal import PROPOSAL_CLOSED_STATUSES, Proposal
from portal.backend.repositories.contact import ContactRepository
from portal.backend.repositories.project import ProjectRepository
from portal.backend.repositories.proposal import ProposalRepository
from portal.backend.schemas.proposal import (
    DepositPayment,
    LineItem,
    ProposalAccept,
    ProposalCreate,
    ProposalSign,
    ProposalUpdate,
)
from portal.backend.services.base import BaseService
from portal.backend.services.job import JobService
from portal.backend.services.mail import Mailer, public_url, render_message

logger = get_logger(__name__)

VIEWABLE_STATUSES = ("sent", "viewed")

AI_EDIT_SYSTEM_PROMPT = (
    "You edit business proposals for a digital agency. Apply the requested "
    "changes and return only the full revised proposal text."
)


def _item_value(item: Any, key: str) -> Any:
    return item.get(key) if isinstance(item, dict) else getattr(item, key)


def compute_total(line_items: Iterable[LineItem | dict[str, Any]]) -> Decimal:
    """Sum of quantity * unit_price over all line items, rounded to cents."""
    total = Decimal("0")
    for item in line_items:
        quantity = Decimal(str(_item_value(item, "quantity") or 0))
        unit_price = Decimal(str(_item_value(item, "unit_price") or 0))
        total += quantity * unit_price
    return to_money(total)


def serialize_line_items(line_items: Iterable[LineItem]) -> list[dict[str, Any]]:
    """JSON-safe representation stored in proposals.line_items."""
    return [
        {
            "description": item.description,
            "quantity": float(item.quantity),
            "unit_price": float(item.unit_price),
        }
        for item in line_items
    ]


def elapsed_ms(start, end) -> int | None:
    """Milliseconds between two timestamps, None when either is missing."""
    if start is None or end is None:
        return None
    return int((end - start).total_seconds() * 1000)


class ProposalService(BaseService):
    """Service for proposal business logic."""

    def __init__(
        self,
        session: AsyncSession,
        square: SquareClient | None = None,
        mailer: Mailer | None = None,
        llm: LLMClient | None = None,
    ) -> None:
        super().__init__(session)
        self.repo = ProposalRepository(session)
        self.contacts = ContactRepository(session)
        self.projects = ProjectRepository(session)
        self._square = square
        self.mailer = mailer or Mailer()
        self._llm = llm

    @property
    def square(self) -> SquareClient:
        if self._square is None:
            self._square = SquareClient()
        return self._square

    @property
    def llm(self) -> LLMClient:
        if self._llm is None:
            self._llm = LLMClient()
        return self._llm

    async def list_proposals(
        self,
        org_id: str,
        status: str | None = None,
        contact_id: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Proposal], int]:
        return await self.repo.list_for_org(
            org_id, status=status, contact_id=contact_id, limit=limit, offset=offset,
        )

    async def get_proposal(self, org_id: str, proposal_id: str) -> Proposal:
        return await self.repo.get_in_org(proposal_id, org_id)

    async def create_proposal(self, org_id: str, created_by: str, data: ProposalCreate) -> Proposal:
        """
        Create a draft proposal with its total computed from the line items.

        Raises:
            ValidationError: title or contact_id missing
            NotFoundError: Contact not in this organization
        """
        self._validate_required(data.model_dump(), ["title", "contact_id"])
        await self.contacts.get_in_org(data.contact_id, org_id)

        self._log_operation("Creating proposal", org_id=org_id, contact_id=data.contact_id)
        return await self._execute_db_operation(
            "create_proposal",
            self.repo.create(
                org_id=org_id,
                contact_id=data.contact_id,
                created_by=created_by,
                title=data.title.strip(),
                content=data.content,
                line_items=serialize_line_items(data.line_items),
                total=compute_total(data.line_items),
                valid_until=data.valid_until,
                status="draft",
            ),
        )

    async def update_proposal(self, org_id: str, proposal_id: str, data: ProposalUpdate) -> Proposal:
        """Partial update; the total follows any change of line items."""
        proposal = await self.repo.get_in_org(proposal_id, org_id)
        update_data = data.model_dump(exclude_unset=True, exclude={"line_items"})
        if data.line_items is not None:
            update_data["line_items"] = serialize_line_items(data.line_items)
            update_data["total"] = compute_total(data.line_items)
        if not update_data:
            return proposal

        self._log_operation("Updating proposal", proposal_id=proposal_id, fields=list(update_data))
        return await self._execute_db_operation(
            "update_proposal", self.repo.apply(proposal, **update_data),
        )

    async def delete_proposal(self, org_id: str, proposal_id: str) -> None:
        proposal = await self.repo.get_in_org(proposal_id, org_id)
        self._log_operation("Deleting proposal", proposal_id=proposal_id)
        await self._execute_db_operation("delete_proposal", self.repo.remove(proposal))

    async def send_proposal(self, org_id: str, proposal_id: str) -> Proposal:
        """Mark sent and email the contact a link to the proposal."""
        proposal = await self.repo.get_in_org(proposal_id, org_id)
        if proposal.status in PROPOSAL_CLOSED_STATUSES:
            raise ConflictError(f"Proposal is already {proposal.status}")

        proposal = await self.repo.apply(proposal, status="sent", sent_at=utc_now())
        contact = await self.contacts.get_by_id_or_none(proposal.contact_id)
        if contact is not None:
            link = public_url(f"/proposals/{proposal.id}")
            await self.mailer.send(
                contact.email,
                f"Proposal: {proposal.title}",
                render_message(
                    proposal.title,
                    [f"Hi {contact.name or 'there'},", "Your proposal is ready to review."],
                    link=link,
                    link_label="View proposal",
                ),
            )

        self._log_operation("Proposal sent", proposal_id=proposal_id)
        return proposal

    async def track_view(self, proposal_id: str) -> Proposal:
        """
        Record a view from the public proposal page.

        first_viewed_at is set once. The status moves to viewed only
        from sent or viewed.
        """
        proposal = await self.repo.get_by_id(proposal_id)
        now = utc_now()
        changes: dict[str, Any] = {
            "view_count": proposal.view_count + 1,
            "last_viewed_at": now,
        }
        if proposal.first_viewed_at is None:
            changes["first_viewed_at"] = now
        if proposal.status in VIEWABLE_STATUSES:
            changes["status"] = "viewed"
        return await self.repo.apply(proposal, **changes)

    async def accept_proposal(
        self, org_id: str, proposal_id: str, data: ProposalAccept,
    ) -> tuple[Proposal, Project | None]:
        """
        Accept a proposal and, by default, open an active project for it.

        Raises:
            ConflictError: Proposal already accepted or declined
        """
        proposal = await self.repo.get_in_org(proposal_id, org_id)
        if proposal.status in PROPOSAL_CLOSED_STATUSES:
            raise ConflictError(f"Proposal is already {proposal.status}")

        changes: dict[str, Any] = {"status": "accepted", "accepted_at": utc_now()}
        if data.signature_data:
            changes["signature_data"] = data.signature_data
            changes["signed_at"] = proposal.signed_at or changes["accepted_at"]
        proposal = await self.repo.apply(proposal, **changes)

        project = None
        if data.create_project:
            project = await self.projects.create(
                org_id=org_id,
                contact_id=proposal.contact_id,
                proposal_id=proposal.id,
                name=proposal.title,
                budget=proposal.total,
                status="active",
            )

        self._log_operation(
            "Proposal accepted",
            proposal_id=proposal_id,
            project_id=project.id if project else None,
        )
        return proposal, project

    async def decline_proposal(self, org_id: str, proposal_id: str, reason: str | None) -> Proposal:
        proposal = await self.repo.get_in_org(proposal_id, org_id)
        if proposal.status in PROPOSAL_CLOSED_STATUSES:
            raise ConflictError(f"Proposal is already {proposal.status}")

        self._log_operation("Proposal declined", proposal_id=proposal_id)
        return await self.repo.apply(
            proposal, status="declined", declined_at=utc_now(), decline_reason=reason,
        )

    async def sign_proposal(self, org_id: str, proposal_id: str, data: ProposalSign) -> Proposal:
        """
        Record the client's e-signature.

        Raises:
            ValidationError: signature_data missing
            ConflictError: Proposal declined or already signed
        """
        self._validate_required(data.model_dump(), ["signature_data"])
        proposal = await self.repo.get_in_org(proposal_id, org_id)
        if proposal.status == "declined":
            raise ConflictError("Proposal was declined")
        if proposal.signed_at is not None:
            raise ConflictError("Proposal is already signed")

        changes: dict[str, Any] = {
            "signed_at": utc_now(),
            "signature_data": data.signature_data,
            "signer_name": data.signer_name,
            "signer_email": data.signer_email,
        }
        if proposal.status != "accepted":
            changes["status"] = "signed"

        self._log_operation("Proposal signed", proposal_id=proposal_id)
        return await self.repo.apply(proposal, **changes)

    async def get_analytics(self, org_id: str, proposal_id: str) -> dict[str, Any]:
        proposal = await self.repo.get_in_org(proposal_id, org_id)
        return {
            "view_count": proposal.view_count,
            "time_to_first_view_ms": elapsed_ms(proposal.sent_at, proposal.first_viewed_at),
            "time_to_accept_ms": elapsed_ms(proposal.sent_at, proposal.accepted_at),
        }

    async def request_ai_edit(
        self, org_id: str, proposal_id: str, instructions: str | None, created_by: str,
    ) -> BackgroundJob:
        """Queue a proposal_ai_edit job for the proposal."""
        self._validate_required({"instructions": instructions}, ["instructions"])
        await self.repo.get_in_org(proposal_id, org_id)
        return await JobService(self.session).enqueue(
            "proposal_ai_edit",
            {"proposal_id": proposal_id, "instructions": instructions.strip()},
            org_id=org_id,
            created_by=created_by,
        )

    async def apply_ai_edit(self, proposal_id: str, instructions: str) -> dict[str, Any]:
        """Job handler body: rewrite the proposal content through the LLM."""
        proposal = await self.repo.get_by_id(proposal_id)
        revised = await self.llm.complete(
            [
                {"role": "system", "content": AI_EDIT_SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": (
                        f"Proposal title: {proposal.title}\n\n"
                        f"Current text:\n{proposal.content or ''}\n\n"
                        f"Requested changes:\n{instructions}"
                    ),
                },
            ]
        )
        await self.repo.apply(proposal, content=revised)
        return {"proposal_id": proposal.id, "content_length": len(revised)}

    async def pay_deposit(self, org_id: str, proposal_id: str, data: DepositPayment) -> dict[str, Any]:
        """
        Charge the proposal deposit through Square.

        The amount comes from the request, or from the proposal's stored
        deposit_amount when the request omits it. Once Square accepts the
        charge the payment is reported as succeeded; a failed proposal
        update is logged at critical and returned with recorded=False.

        Raises:
            ValidationError: Missing source, not signed/accepted, already paid, or no amount
            PaymentError: Card declined
        """
        self._validate_required(data.model_dump(), ["source_id"])
        proposal = await self.repo.get_in_org(proposal_id, org_id)

        if proposal.deposit_paid_at is not None:
            raise ValidationError("Deposit already paid")
        if proposal.signed_at is None and proposal.status != "accepted":
            raise ValidationError("Proposal must be signed before payment")

        amount = data.amount or proposal.deposit_amount
        if amount is None or amount <= 0:
            raise ValidationError("Invalid deposit amount")
        amount = to_money(amount)

        payment = await self.square.create_payment(
            source_id=data.source_id,
            amount_cents=to_cents(amount),
            idempotency_key=new_idempotency_key(),
            reference_id=f"proposal-{proposal.id}",
            note=f"Deposit for: {proposal.title}",
        )

        paid_at = utc_now()
        recorded = True
        try:
            await self.repo.apply(
                proposal,
                deposit_amount=amount,
                deposit_paid_at=paid_at,
                deposit_payment_id=payment.id,
            )
            await self.session.commit()
        except SQLAlchemyError as e:
            recorded = False
            await self.session.rollback()
            logger.critical(
                "Deposit captured but proposal update failed",
                extra={
                    "proposal_id": proposal_id,
                    "payment_id": payment.id,
                    "amount": str(amount),
                    "error": str(e),
                },
            )

        self._log_operation("Deposit paid", proposal_id=proposal_id, payment_id=payment.id, recorded=recorded)
        return {
            "success": True,
            "proposal_id": proposal_id,
            "payment_id": payment.id,
            "amount": amount,
            "deposit_paid_at": paid_at if recorded else None,
            "recorded": recorded,
        }



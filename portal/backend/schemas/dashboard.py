"""
Dashboard Schemas.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel


class Overview(BaseModel):
    active_projects: int
    pending_proposals: int
    unpaid_invoices: int
    unpaid_amount: Decimal
    unread_messages: int
    upcoming_tasks: int


class PeriodStats(BaseModel):
    period_days: int
    new_clients: int
    new_proposals: int
    accepted_proposals: int
    accepted_value: Decimal
    revenue: Decimal
    conversion_rate: float


class ActivityEvent(BaseModel):
    type: str
    id: str
    title: str
    status: str | None
    date: datetime


class RevenueMonth(BaseModel):
    month: str
    revenue: Decimal

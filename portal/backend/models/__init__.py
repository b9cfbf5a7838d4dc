"""
Database Models.

Importing this package registers every table on Base.metadata
(used by Alembic autogenerate and the test database setup).
"""

from portal.backend.models.base import Base
from portal.backend.models.commerce import ShopifyProduct, ShopifyStore, ShopifySyncLog
from portal.backend.models.contact import Contact
from portal.backend.models.crm import CallFollowUp, CallLog, CrmNote, Notification, Task
from portal.backend.models.email import (
    EmailCampaign,
    EmailList,
    EmailSubscriber,
    EmailTemplate,
    EmailTracking,
)
from portal.backend.models.invoice import Invoice
from portal.backend.models.job import BackgroundJob
from portal.backend.models.message import Message
from portal.backend.models.organization import Organization, OrganizationMember
from portal.backend.models.project import Project, ProjectChecklistItem
from portal.backend.models.proposal import Proposal
from portal.backend.models.seo import SeoKeyword, SeoPage, SeoRecommendation, SeoSite
from portal.backend.models.signal import SignalConfig, SignalConversation, SignalMessage

__all__ = [
    "Base",
    "BackgroundJob",
    "CallFollowUp",
    "CallLog",
    "Contact",
    "CrmNote",
    "EmailCampaign",
    "EmailList",
    "EmailSubscriber",
    "EmailTemplate",
    "EmailTracking",
    "Invoice",
    "Message",
    "Notification",
    "Organization",
    "OrganizationMember",
    "Project",
    "ProjectChecklistItem",
    "Proposal",
    "SeoKeyword",
    "SeoPage",
    "SeoRecommendation",
    "SeoSite",
    "ShopifyProduct",
    "ShopifyStore",
    "ShopifySyncLog",
    "SignalConfig",
    "SignalConversation",
    "SignalMessage",
    "Task",
]

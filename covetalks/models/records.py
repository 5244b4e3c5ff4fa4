"""
Record Models

Pydantic models and enums mirroring the Supabase tables.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class MemberType(str, Enum):
    SPEAKER = "Speaker"
    ORGANIZATION = "Organization"


class MemberStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class PlanType(str, Enum):
    FREE = "Free"
    STANDARD = "Standard"
    PLUS = "Plus"
    PREMIUM = "Premium"


class BillingPeriod(str, Enum):
    MONTHLY = "Monthly"
    YEARLY = "Yearly"


class OrganizationRole(str, Enum):
    OWNER = "Owner"
    ADMIN = "Admin"
    MEMBER = "Member"


class EventFormat(str, Enum):
    IN_PERSON = "In-Person"
    VIRTUAL = "Virtual"
    HYBRID = "Hybrid"


class OpportunityStatus(str, Enum):
    DRAFT = "Draft"
    OPEN = "Open"
    CLOSED = "Closed"
    FILLED = "Filled"


class ApplicationStatus(str, Enum):
    PENDING = "Pending"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"
    WITHDRAWN = "Withdrawn"


class MessageStatus(str, Enum):
    UNREAD = "unread"
    READ = "read"
    ARCHIVED = "archived"


class SubscriptionStatus(str, Enum):
    ACTIVE = "Active"
    CANCELLED = "Cancelled"
    PAST_DUE = "Past_due"
    PAUSED = "Paused"
    TRIALING = "Trialing"


class PaymentStatus(str, Enum):
    PENDING = "Pending"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    REFUNDED = "Refunded"


class Record(BaseModel):
    """Base for table rows; unknown columns are kept"""

    model_config = ConfigDict(extra="allow", use_enum_values=True)

    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Member(Record):
    email: Optional[str] = None
    name: Optional[str] = None
    member_type: Optional[MemberType] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    specialties: Optional[List[str]] = None
    profile_image_url: Optional[str] = None
    subscription_tier: PlanType = PlanType.FREE
    stripe_customer_id: Optional[str] = None
    onboarding_completed: bool = False
    status: MemberStatus = MemberStatus.ACTIVE


class PublicProfile(BaseModel):
    """What other members may see of a member; unknown columns are dropped"""

    model_config = ConfigDict(use_enum_values=True)

    id: str
    name: Optional[str] = None
    member_type: Optional[MemberType] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    specialties: Optional[List[str]] = None
    profile_image_url: Optional[str] = None


PUBLIC_PROFILE_COLUMNS = ",".join(PublicProfile.model_fields)


class Organization(Record):
    name: str
    organization_type: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    size: Optional[str] = None
    industry: Optional[str] = None
    preferred_topics: Optional[List[str]] = None


class OrganizationMember(Record):
    organization_id: str
    member_id: str
    role: OrganizationRole = OrganizationRole.MEMBER


class SpeakingOpportunity(Record):
    posted_by: str
    organization_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    event_date: Optional[datetime] = None
    event_format: Optional[EventFormat] = None
    location: Optional[str] = None
    compensation_amount: Optional[float] = None
    travel_covered: bool = False
    accommodation_covered: bool = False
    topics: Optional[List[str]] = None
    application_deadline: Optional[datetime] = None
    status: OpportunityStatus = OpportunityStatus.DRAFT
    application_count: int = 0


class Application(Record):
    opportunity_id: str
    speaker_id: str
    cover_letter: Optional[str] = None
    proposed_topics: Optional[List[str]] = None
    requested_fee: Optional[float] = None
    availability_confirmed: bool = False
    notes: Optional[str] = None
    status: ApplicationStatus = ApplicationStatus.PENDING
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    review_message: Optional[str] = None


class Message(Record):
    sender_id: str
    recipient_id: str
    subject: str = "Direct Message"
    message: str
    opportunity_id: Optional[str] = None
    parent_message_id: Optional[str] = None
    thread_id: Optional[str] = None
    status: MessageStatus = MessageStatus.UNREAD
    read_at: Optional[datetime] = None


class Subscription(Record):
    member_id: Optional[str] = None
    stripe_subscription_id: str
    stripe_price_id: Optional[str] = None
    plan_type: Optional[PlanType] = None
    billing_period: Optional[BillingPeriod] = None
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    amount: Optional[float] = None
    currency: str = "usd"
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    cancelled_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None


class Payment(Record):
    member_id: Optional[str] = None
    subscription_id: Optional[str] = None
    stripe_invoice_id: str
    stripe_charge_id: Optional[str] = None
    amount: float
    currency: str = "usd"
    status: PaymentStatus = PaymentStatus.SUCCEEDED
    description: Optional[str] = None
    invoice_url: Optional[str] = None
    receipt_url: Optional[str] = None
    payment_date: Optional[datetime] = None
    card_last4: Optional[str] = None
    card_brand: Optional[str] = None


class Page(BaseModel):
    """One page of a listing"""

    items: List[Dict[str, Any]]
    page: int
    page_size: int
    total: int = Field(description="Total rows matching the filters")

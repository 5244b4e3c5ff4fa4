"""
Request Models

Bodies accepted by the JSON API. Field aliases accept the camelCase names
sent by the web client.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from covetalks.models.records import (
    BillingPeriod,
    EventFormat,
    MemberType,
    OpportunityStatus,
    OrganizationRole,
)


class RequestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)


# Billing


class CheckoutRequest(RequestModel):
    plan_type: Literal["Standard", "Plus", "Premium"] = Field(alias="planType")
    billing_period: BillingPeriod = Field(alias="billingPeriod")


class SubscriptionActionRequest(RequestModel):
    subscription_id: str = Field(alias="subscriptionId", min_length=1)


class PaymentMethodRequest(RequestModel):
    payment_method_id: str = Field(alias="paymentMethodId", min_length=1)


# Directory


class ProfileUpdate(RequestModel):
    name: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    specialties: Optional[List[str]] = None
    profile_image_url: Optional[str] = None


class OnboardingRequest(ProfileUpdate):
    member_type: Optional[MemberType] = Field(None, alias="memberType")
    organization_name: Optional[str] = Field(None, alias="organizationName")
    organization_type: Optional[str] = Field(None, alias="organizationType")


class OrganizationCreate(RequestModel):
    name: str = Field(min_length=1)
    organization_type: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    size: Optional[str] = None
    industry: Optional[str] = None
    preferred_topics: Optional[List[str]] = None


class OrganizationMemberAdd(RequestModel):
    member_id: str = Field(alias="memberId")
    role: OrganizationRole = OrganizationRole.MEMBER


# Workflow


class OpportunityCreate(RequestModel):
    title: str = Field(min_length=1)
    organization_id: Optional[str] = Field(None, alias="organizationId")
    description: Optional[str] = None
    event_date: Optional[datetime] = None
    event_format: Optional[EventFormat] = None
    location: Optional[str] = None
    compensation_amount: Optional[float] = Field(None, ge=0)
    travel_covered: bool = False
    accommodation_covered: bool = False
    topics: Optional[List[str]] = None
    application_deadline: Optional[datetime] = None
    status: Literal["Draft", "Open"] = "Draft"


class OpportunityUpdate(RequestModel):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    event_date: Optional[datetime] = None
    event_format: Optional[EventFormat] = None
    location: Optional[str] = None
    compensation_amount: Optional[float] = Field(None, ge=0)
    travel_covered: Optional[bool] = None
    accommodation_covered: Optional[bool] = None
    topics: Optional[List[str]] = None
    application_deadline: Optional[datetime] = None


class OpportunityStatusUpdate(RequestModel):
    status: OpportunityStatus


class ApplicationForm(RequestModel):
    cover_letter: str = Field("", alias="coverLetter")
    proposed_topics: List[str] = Field(default_factory=list, alias="proposedTopics")
    requested_fee: Optional[float] = Field(None, alias="requestedFee", ge=0)
    availability_confirmed: bool = Field(False, alias="availabilityConfirmed")
    notes: Optional[str] = None


class ApplicationReview(RequestModel):
    status: Literal["Accepted", "Rejected"]
    message: Optional[str] = None


# Messaging


class MessageCreate(RequestModel):
    recipient_id: str = Field(alias="recipientId")
    message: str = Field("", alias="content")
    subject: str = "Direct Message"
    parent_message_id: Optional[str] = Field(None, alias="parentMessageId")
    opportunity_id: Optional[str] = Field(None, alias="opportunityId")

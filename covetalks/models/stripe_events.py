"""
Stripe Event Models

Pydantic models for validating verified Stripe webhook payloads.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class StripeCheckoutSessionData(BaseModel):
    """Stripe checkout session data"""

    model_config = ConfigDict(extra="allow")

    id: str = Field(description="Checkout session ID")
    mode: Optional[str] = Field(None, description="payment, setup or subscription")
    customer: Optional[str] = Field(None, description="Customer ID")
    subscription: Optional[str] = Field(None, description="Subscription ID")
    payment_status: Optional[str] = None
    status: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class StripeSubscriptionData(BaseModel):
    """
    Stripe subscription data.

    Status is kept as a plain string: new provider statuses must reach the
    status mapper rather than fail validation.
    """

    model_config = ConfigDict(extra="allow")

    id: str = Field(description="Stripe subscription ID")
    customer: Optional[str] = Field(None, description="Customer ID")
    status: str
    cancel_at_period_end: bool = False
    current_period_start: Optional[int] = Field(None, description="Unix timestamp")
    current_period_end: Optional[int] = Field(None, description="Unix timestamp")
    items: Dict[str, Any] = Field(default_factory=dict)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def first_item(self) -> Dict[str, Any]:
        data: List[Dict[str, Any]] = self.items.get("data") or []
        return data[0] if data else {}

    @property
    def price(self) -> Dict[str, Any]:
        return self.first_item.get("price") or {}

    @property
    def period_start(self) -> Optional[int]:
        # Newer API versions moved billing periods onto subscription items
        return self.current_period_start or self.first_item.get("current_period_start")

    @property
    def period_end(self) -> Optional[int]:
        return self.current_period_end or self.first_item.get("current_period_end")


class StripeInvoiceData(BaseModel):
    """Stripe invoice data"""

    model_config = ConfigDict(extra="allow")

    id: str = Field(description="Invoice ID")
    customer: Optional[str] = Field(None, description="Customer ID")
    subscription: Optional[str] = Field(None, description="Subscription ID")
    charge: Optional[str] = Field(None, description="Charge ID")
    amount_paid: int = Field(0, description="Amount paid in the smallest currency unit")
    currency: str = Field("usd", description="Three-letter ISO currency code")
    created: Optional[int] = Field(None, description="Unix timestamp when created")
    description: Optional[str] = None
    hosted_invoice_url: Optional[str] = None
    receipt_url: Optional[str] = None
    payment_method_details: Optional[Dict[str, Any]] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def card(self) -> Dict[str, Any]:
        return (self.payment_method_details or {}).get("card") or {}


class StripeEventData(BaseModel):
    """Stripe event data wrapper"""

    object: Dict[str, Any] = Field(description="The Stripe object")
    previous_attributes: Optional[Dict[str, Any]] = Field(
        None, description="Previous object state for update events"
    )


class StripeEvent(BaseModel):
    """
    Stripe webhook event model.
    Represents the complete webhook payload from Stripe.
    """

    id: str = Field(description="Unique event identifier")
    type: str = Field(description="Event type (e.g., invoice.payment_succeeded)")
    created: int = Field(description="Unix timestamp of event creation")
    livemode: bool = Field(False, description="Whether in live mode")
    data: StripeEventData = Field(description="Event data")
    api_version: Optional[str] = Field(None)

    @property
    def event_object(self) -> Dict[str, Any]:
        """Get the main event object"""
        return self.data.object

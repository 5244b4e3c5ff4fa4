"""
Subscriptions and payments tables

Writes driven by Stripe webhooks are keyed by Stripe ids so that replayed
deliveries converge on the same rows.
"""

from typing import Any, Dict, List, Optional

from covetalks.models.records import SubscriptionStatus
from covetalks.repositories.base import SupabaseRepository


class SubscriptionRepository(SupabaseRepository):
    table_name = "subscriptions"

    def upsert_by_stripe_id(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Insert or update the row with the same stripe_subscription_id"""
        response = self._execute(
            self._table().upsert(data, on_conflict="stripe_subscription_id"),
            "upsert",
            stripe_subscription_id=data.get("stripe_subscription_id"),
        )
        return self._first(response) or data

    def get_by_stripe_id(self, stripe_subscription_id: str) -> Optional[Dict[str, Any]]:
        response = self._execute(
            self._table().select("*").eq("stripe_subscription_id", stripe_subscription_id).limit(1),
            "get_by_stripe_id",
            stripe_subscription_id=stripe_subscription_id,
        )
        return self._first(response)

    def update_by_stripe_id(
        self,
        stripe_subscription_id: str,
        data: Dict[str, Any],
        member_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Update by Stripe id, optionally scoped to the owning member"""
        query = self._table().update(data).eq("stripe_subscription_id", stripe_subscription_id)
        if member_id is not None:
            query = query.eq("member_id", member_id)
        response = self._execute(
            query,
            "update_by_stripe_id",
            stripe_subscription_id=stripe_subscription_id,
        )
        return response.data or []

    def current_for_member(self, member_id: str) -> Optional[Dict[str, Any]]:
        """Most recent subscription that has not been cancelled"""
        response = self._execute(
            self._table()
            .select("*")
            .eq("member_id", member_id)
            .neq("status", SubscriptionStatus.CANCELLED.value)
            .order("created_at", desc=True)
            .limit(1),
            "current_for_member",
        )
        return self._first(response)


class PaymentRepository(SupabaseRepository):
    table_name = "payments"

    def insert_once(self, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Append a ledger row unless one already exists for the invoice.

        Returns:
            The inserted row, or None if the invoice was already recorded
        """
        response = self._execute(
            self._table().upsert(data, on_conflict="stripe_invoice_id", ignore_duplicates=True),
            "insert_once",
            stripe_invoice_id=data.get("stripe_invoice_id"),
        )
        return self._first(response)

    def list_for_member(self, member_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        response = self._execute(
            self._table()
            .select("*")
            .eq("member_id", member_id)
            .order("payment_date", desc=True)
            .limit(limit),
            "list_for_member",
        )
        return response.data or []

"""Messages table"""

from typing import Any, Dict, List

from covetalks.models.records import MessageStatus
from covetalks.repositories.base import SupabaseRepository, quote_filter_value

PARTY_COLUMNS = (
    "*, sender:sender_id (id, name, member_type, profile_image_url), "
    "recipient:recipient_id (id, name, member_type, profile_image_url)"
)


class MessageRepository(SupabaseRepository):
    table_name = "messages"

    def list_for_member(self, member_id: str) -> List[Dict[str, Any]]:
        """All non-archived messages sent or received by a member, newest first"""
        member = quote_filter_value(member_id)
        response = self._execute(
            self._table()
            .select(PARTY_COLUMNS)
            .or_(f"sender_id.eq.{member},recipient_id.eq.{member}")
            .neq("status", MessageStatus.ARCHIVED.value)
            .order("created_at", desc=True),
            "list_for_member",
        )
        return response.data or []

    def conversation(self, member_id: str, other_id: str) -> List[Dict[str, Any]]:
        """Messages exchanged between two members, oldest first"""
        member, other = quote_filter_value(member_id), quote_filter_value(other_id)
        response = self._execute(
            self._table()
            .select(PARTY_COLUMNS)
            .or_(
                f"and(sender_id.eq.{member},recipient_id.eq.{other}),"
                f"and(sender_id.eq.{other},recipient_id.eq.{member})"
            )
            .order("created_at"),
            "conversation",
        )
        return response.data or []

    def mark_read(self, message_ids: List[str], read_at: str) -> None:
        if not message_ids:
            return
        self._execute(
            self._table()
            .update({"status": MessageStatus.READ.value, "read_at": read_at})
            .in_("id", message_ids),
            "mark_read",
            count=len(message_ids),
        )

    def count_unread(self, member_id: str) -> int:
        response = self._execute(
            self._table()
            .select("id", count="exact")
            .eq("recipient_id", member_id)
            .eq("status", MessageStatus.UNREAD.value),
            "count_unread",
        )
        return response.count or 0

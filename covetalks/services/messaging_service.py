"""
Messaging Service

Direct messages between two members, grouped into conversations by
counterpart. Replies share the thread of the message they answer.
"""

from typing import Any, Dict, List, Optional

from covetalks.models.records import Message, MessageStatus
from covetalks.repositories import Repositories
from covetalks.utils.exceptions import Forbidden, NotFound, ValidationError
from covetalks.utils.logging_config import get_logger
from covetalks.utils.timestamps import utc_now_iso

logger = get_logger(__name__)

DEFAULT_SUBJECT = "Direct Message"


class MessagingService:
    """Threaded member-to-member messages"""

    def __init__(self, repositories: Repositories):
        self.repositories = repositories

    def _get_message(self, message_id: str) -> Message:
        row = self.repositories.messages.get(message_id)
        if row is None:
            raise NotFound("Message", message_id)
        return Message.model_validate(row)

    def send_message(
        self,
        sender_id: str,
        recipient_id: str,
        body: str,
        subject: Optional[str] = None,
        parent_message_id: Optional[str] = None,
        opportunity_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Send a message.

        Raises:
            ValidationError: Empty body or a message to oneself
            NotFound: Unknown recipient or parent message
            Forbidden: Replying to a thread the sender is not part of
        """
        body = (body or "").strip()
        if not body:
            raise ValidationError("Message cannot be empty")
        if sender_id == recipient_id:
            raise ValidationError("You cannot send a message to yourself")
        if self.repositories.members.get(recipient_id) is None:
            raise NotFound("Member", recipient_id)

        thread_id = None
        if parent_message_id:
            parent = self._get_message(parent_message_id)
            if sender_id not in (parent.sender_id, parent.recipient_id):
                raise Forbidden("You cannot reply to this message")
            thread_id = parent.thread_id or parent.id
            opportunity_id = opportunity_id or parent.opportunity_id
            if not subject:
                subject = parent.subject if parent.subject.startswith("Re: ") else f"Re: {parent.subject}"

        message = self.repositories.messages.insert(
            {
                "sender_id": sender_id,
                "recipient_id": recipient_id,
                "subject": subject or DEFAULT_SUBJECT,
                "message": body,
                "opportunity_id": opportunity_id,
                "parent_message_id": parent_message_id,
                "thread_id": thread_id,
                "status": MessageStatus.UNREAD.value,
            }
        )

        logger.info(
            "Message sent",
            extra={"message_id": message.get("id"), "thread_id": thread_id},
        )
        return message

    def list_conversations(self, member_id: str) -> List[Dict[str, Any]]:
        """
        One entry per counterpart with the latest message and the number of
        unread messages received from them. Newest conversation first.
        """
        conversations: Dict[str, Dict[str, Any]] = {}

        # Rows arrive newest first, so the first row seen per counterpart is the latest
        for row in self.repositories.messages.list_for_member(member_id):
            outgoing = row["sender_id"] == member_id
            other_id = row["recipient_id"] if outgoing else row["sender_id"]

            conversation = conversations.get(other_id)
            if conversation is None:
                conversation = conversations[other_id] = {
                    "other_member_id": other_id,
                    "other_member": row.get("recipient" if outgoing else "sender"),
                    "last_message": row,
                    "unread_count": 0,
                }

            if not outgoing and row.get("status") == MessageStatus.UNREAD.value:
                conversation["unread_count"] += 1

        return list(conversations.values())

    def get_conversation(self, member_id: str, other_id: str) -> List[Dict[str, Any]]:
        """Messages with one counterpart, oldest first; received unread ones become read"""
        messages = self.repositories.messages.conversation(member_id, other_id)

        unread_ids = [
            row["id"]
            for row in messages
            if row["recipient_id"] == member_id and row.get("status") == MessageStatus.UNREAD.value
        ]
        if unread_ids:
            read_at = utc_now_iso()
            self.repositories.messages.mark_read(unread_ids, read_at)
            for row in messages:
                if row["id"] in unread_ids:
                    row["status"] = MessageStatus.READ.value
                    row["read_at"] = read_at

        return messages

    def mark_read(self, message_id: str, member_id: str) -> None:
        message = self._get_message(message_id)
        if message.recipient_id != member_id:
            raise Forbidden("Only the recipient can mark a message read")
        if message.status == MessageStatus.UNREAD.value:
            self.repositories.messages.mark_read([message_id], utc_now_iso())

    def archive_message(self, message_id: str, member_id: str) -> Dict[str, Any]:
        message = self._get_message(message_id)
        if message.recipient_id != member_id:
            raise Forbidden("Only the recipient can archive a message")
        return (
            self.repositories.messages.update(
                message_id, {"status": MessageStatus.ARCHIVED.value}
            )
            or {}
        )

    def unread_count(self, member_id: str) -> int:
        return self.repositories.messages.count_unread(member_id)

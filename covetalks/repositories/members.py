"""Members and organizations tables"""

from typing import Any, Dict, List, Optional, Tuple

from covetalks.models.records import PUBLIC_PROFILE_COLUMNS, MemberStatus, MemberType
from covetalks.repositories.base import SupabaseRepository, ilike_any


class MemberRepository(SupabaseRepository):
    table_name = "members"

    def get_by_stripe_customer(self, stripe_customer_id: str) -> Optional[Dict[str, Any]]:
        response = self._execute(
            self._table().select("*").eq("stripe_customer_id", stripe_customer_id).limit(1),
            "get_by_stripe_customer",
            stripe_customer_id=stripe_customer_id,
        )
        return self._first(response)

    def list_speakers(
        self,
        search: Optional[str] = None,
        specialty: Optional[str] = None,
        location: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[Dict[str, Any]], int]:
        query = (
            self._table()
            .select(PUBLIC_PROFILE_COLUMNS, count="exact")
            .eq("member_type", MemberType.SPEAKER.value)
            .eq("status", MemberStatus.ACTIVE.value)
        )
        if search:
            query = query.or_(ilike_any(("name", "bio"), search))
        if specialty:
            query = query.contains("specialties", [specialty])
        if location:
            query = query.ilike("location", f"%{location}%")
        return self._paginated(query.order("name"), page, page_size)


class OrganizationRepository(SupabaseRepository):
    table_name = "organizations"
    members_table = "organization_members"

    def find_by_name(self, name: str) -> Optional[Dict[str, Any]]:
        response = self._execute(
            self._table().select("*").eq("name", name).limit(1),
            "find_by_name",
        )
        return self._first(response)

    def list_organizations(
        self,
        search: Optional[str] = None,
        organization_type: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[Dict[str, Any]], int]:
        query = self._table().select("*", count="exact")
        if search:
            query = query.or_(ilike_any(("name", "location"), search))
        if organization_type:
            query = query.eq("organization_type", organization_type)
        return self._paginated(query.order("name"), page, page_size)

    def add_member(self, organization_id: str, member_id: str, role: str) -> Dict[str, Any]:
        response = self._execute(
            self.client.table(self.members_table).insert(
                {"organization_id": organization_id, "member_id": member_id, "role": role}
            ),
            "add_member",
            organization_id=organization_id,
        )
        return self._first(response) or {}

    def get_membership(self, organization_id: str, member_id: str) -> Optional[Dict[str, Any]]:
        response = self._execute(
            self.client.table(self.members_table)
            .select("*")
            .eq("organization_id", organization_id)
            .eq("member_id", member_id)
            .limit(1),
            "get_membership",
            organization_id=organization_id,
        )
        return self._first(response)

    def memberships_for(self, member_id: str) -> List[Dict[str, Any]]:
        response = self._execute(
            self.client.table(self.members_table).select("*").eq("member_id", member_id),
            "memberships_for",
        )
        return response.data or []

    def list_members(self, organization_id: str) -> List[Dict[str, Any]]:
        response = self._execute(
            self.client.table(self.members_table)
            .select("*, member:member_id (id, name, member_type, profile_image_url)")
            .eq("organization_id", organization_id)
            .order("created_at"),
            "list_members",
            organization_id=organization_id,
        )
        return response.data or []

"""Speaking opportunities and applications tables"""

from typing import Any, Dict, List, Optional, Tuple

from covetalks.models.records import ApplicationStatus, OpportunityStatus
from covetalks.repositories.base import SupabaseRepository, ilike_any


class OpportunityRepository(SupabaseRepository):
    table_name = "speaking_opportunities"

    def list_opportunities(
        self,
        status: Optional[str] = None,
        event_format: Optional[str] = None,
        organization_id: Optional[str] = None,
        posted_by: Optional[str] = None,
        search: Optional[str] = None,
        exclude_drafts: bool = False,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[Dict[str, Any]], int]:
        query = self._table().select("*", count="exact")
        if status:
            query = query.eq("status", status)
        if exclude_drafts:
            query = query.neq("status", OpportunityStatus.DRAFT.value)
        if event_format:
            query = query.eq("event_format", event_format)
        if organization_id:
            query = query.eq("organization_id", organization_id)
        if posted_by:
            query = query.eq("posted_by", posted_by)
        if search:
            query = query.or_(ilike_any(("title", "description"), search))
        return self._paginated(query.order("created_at", desc=True), page, page_size)

    def set_application_count(self, opportunity_id: str, count: int) -> None:
        self._execute(
            self._table().update({"application_count": count}).eq("id", opportunity_id),
            "set_application_count",
            opportunity_id=opportunity_id,
        )


class ApplicationRepository(SupabaseRepository):
    table_name = "applications"

    def count_active(self, opportunity_id: str) -> int:
        """Number of non-withdrawn applications for an opportunity"""
        response = self._execute(
            self._table()
            .select("id", count="exact")
            .eq("opportunity_id", opportunity_id)
            .neq("status", ApplicationStatus.WITHDRAWN.value),
            "count_active",
            opportunity_id=opportunity_id,
        )
        return response.count or 0

    def list_for_speaker(self, speaker_id: str, status: Optional[str] = None) -> List[Dict[str, Any]]:
        query = (
            self._table()
            .select("*, opportunity:opportunity_id (id, title, event_date, status)")
            .eq("speaker_id", speaker_id)
        )
        if status:
            query = query.eq("status", status)
        response = self._execute(query.order("created_at", desc=True), "list_for_speaker")
        return response.data or []

    def list_for_opportunity(self, opportunity_id: str, status: Optional[str] = None) -> List[Dict[str, Any]]:
        query = (
            self._table()
            .select("*, speaker:speaker_id (id, name, email, location, specialties)")
            .eq("opportunity_id", opportunity_id)
        )
        if status:
            query = query.eq("status", status)
        response = self._execute(
            query.order("created_at", desc=True),
            "list_for_opportunity",
            opportunity_id=opportunity_id,
        )
        return response.data or []

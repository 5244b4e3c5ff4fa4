"""
Opportunity & Application Workflow

Posting speaking opportunities and moving applications through
Pending -> Accepted | Rejected | Withdrawn (and Accepted -> Withdrawn).

The opportunity's application_count is derived: after every submission and
withdrawal it is recomputed from the non-withdrawn applications.
"""

from typing import Any, Dict, Optional

from covetalks.models.records import (
    Application,
    ApplicationStatus,
    Member,
    MemberType,
    OpportunityStatus,
    OrganizationRole,
    Page,
    SpeakingOpportunity,
)
from covetalks.models.requests import (
    ApplicationForm,
    OpportunityCreate,
    OpportunityUpdate,
)
from covetalks.repositories import Repositories
from covetalks.repositories.base import page_bounds
from covetalks.utils.exceptions import (
    CoveTalksException,
    DuplicateApplication,
    Forbidden,
    NotFound,
    UniqueViolation,
    ValidationError,
)
from covetalks.utils.logging_config import get_logger
from covetalks.utils.timestamps import utc_now_iso

logger = get_logger(__name__)

MANAGER_ROLES = {OrganizationRole.OWNER.value, OrganizationRole.ADMIN.value}

WITHDRAWABLE = {ApplicationStatus.PENDING.value, ApplicationStatus.ACCEPTED.value}


class WorkflowService:
    """Opportunity posting and application lifecycle"""

    def __init__(self, repositories: Repositories):
        self.repositories = repositories

    # Lookups

    def _get_opportunity(self, opportunity_id: str) -> SpeakingOpportunity:
        row = self.repositories.opportunities.get(opportunity_id)
        if row is None:
            raise NotFound("Opportunity", opportunity_id)
        return SpeakingOpportunity.model_validate(row)

    def _get_application(self, application_id: str) -> Application:
        row = self.repositories.applications.get(application_id)
        if row is None:
            raise NotFound("Application", application_id)
        return Application.model_validate(row)

    def _get_member(self, member_id: str) -> Member:
        row = self.repositories.members.get(member_id)
        if row is None:
            raise NotFound("Member", member_id)
        return Member.model_validate(row)

    def can_manage(self, opportunity: SpeakingOpportunity, member_id: str) -> bool:
        """The poster, or an Owner/Admin of the opportunity's organization"""
        if opportunity.posted_by == member_id:
            return True
        if not opportunity.organization_id:
            return False
        membership = self.repositories.organizations.get_membership(
            opportunity.organization_id, member_id
        )
        return bool(membership) and membership.get("role") in MANAGER_ROLES

    def _require_manager(self, opportunity: SpeakingOpportunity, member_id: str) -> None:
        if not self.can_manage(opportunity, member_id):
            logger.warning(
                "Opportunity management denied",
                extra={"opportunity_id": opportunity.id, "member_id": member_id},
            )
            raise Forbidden("You cannot manage this opportunity")

    def refresh_application_count(self, opportunity_id: str) -> Optional[int]:
        """
        Recompute application_count from storage.

        Best-effort: a failure is logged and the count is healed by the next
        submission or withdrawal.
        """
        try:
            count = self.repositories.applications.count_active(opportunity_id)
            self.repositories.opportunities.set_application_count(opportunity_id, count)
            return count
        except CoveTalksException as e:
            logger.warning(
                f"Failed to refresh application count: {e.message}",
                extra={"opportunity_id": opportunity_id, "error_code": e.error_code},
            )
            return None

    # Applications

    def submit_application(
        self,
        opportunity_id: str,
        speaker_id: str,
        form: ApplicationForm,
    ) -> Dict[str, Any]:
        """
        Submit a speaker's application to an open opportunity.

        Raises:
            ValidationError: Blank cover letter, unconfirmed availability, or
                an opportunity that is not Open
            DuplicateApplication: The speaker already has a live application
        """
        if not form.cover_letter.strip():
            raise ValidationError("Please provide a cover letter")
        if not form.availability_confirmed:
            raise ValidationError("Please confirm your availability for the event date")

        speaker = self._get_member(speaker_id)
        if speaker.member_type != MemberType.SPEAKER.value:
            raise Forbidden("Only speakers can apply to opportunities")

        opportunity = self._get_opportunity(opportunity_id)
        if opportunity.status != OpportunityStatus.OPEN.value:
            raise ValidationError(
                "This opportunity is not accepting applications",
                details={"status": opportunity.status},
            )

        record = {
            "opportunity_id": opportunity_id,
            "speaker_id": speaker_id,
            "cover_letter": form.cover_letter.strip(),
            "proposed_topics": form.proposed_topics,
            "requested_fee": form.requested_fee,
            "availability_confirmed": True,
            "notes": form.notes,
            "status": ApplicationStatus.PENDING.value,
        }

        try:
            application = self.repositories.applications.insert(record)
        except UniqueViolation as e:
            raise DuplicateApplication(opportunity_id, speaker_id) from e

        logger.info(
            "Application submitted",
            extra={
                "application_id": application.get("id"),
                "opportunity_id": opportunity_id,
                "speaker_id": speaker_id,
            },
        )

        self.refresh_application_count(opportunity_id)
        return application

    def withdraw_application(self, application_id: str, speaker_id: str) -> Dict[str, Any]:
        application = self._get_application(application_id)
        if application.speaker_id != speaker_id:
            raise Forbidden("You can only withdraw your own applications")
        if application.status not in WITHDRAWABLE:
            raise ValidationError(
                f"A {application.status} application cannot be withdrawn",
                details={"status": application.status},
            )

        updated = self.repositories.applications.update(
            application_id,
            {"status": ApplicationStatus.WITHDRAWN.value, "updated_at": utc_now_iso()},
        )

        logger.info(
            "Application withdrawn",
            extra={"application_id": application_id, "opportunity_id": application.opportunity_id},
        )

        self.refresh_application_count(application.opportunity_id)
        return updated or {}

    def review_application(
        self,
        application_id: str,
        reviewer_id: str,
        decision: str,
        message: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Accept or reject a pending application"""
        if decision not in (ApplicationStatus.ACCEPTED.value, ApplicationStatus.REJECTED.value):
            raise ValidationError(f"Invalid review decision: {decision}")

        application = self._get_application(application_id)
        opportunity = self._get_opportunity(application.opportunity_id)
        self._require_manager(opportunity, reviewer_id)

        if application.status != ApplicationStatus.PENDING.value:
            raise ValidationError(
                f"A {application.status} application cannot be reviewed",
                details={"status": application.status},
            )

        now = utc_now_iso()
        updated = self.repositories.applications.update(
            application_id,
            {
                "status": decision,
                "reviewed_by": reviewer_id,
                "reviewed_at": now,
                "review_message": message,
                "updated_at": now,
            },
        )

        logger.info(
            f"Application {decision.lower()}",
            extra={"application_id": application_id, "reviewer_id": reviewer_id},
        )
        return updated or {}

    def list_speaker_applications(self, speaker_id: str, status: Optional[str] = None):
        return self.repositories.applications.list_for_speaker(speaker_id, status=status)

    def list_opportunity_applications(
        self,
        opportunity_id: str,
        member_id: str,
        status: Optional[str] = None,
    ):
        opportunity = self._get_opportunity(opportunity_id)
        self._require_manager(opportunity, member_id)
        return self.repositories.applications.list_for_opportunity(opportunity_id, status=status)

    # Opportunities

    def create_opportunity(self, poster_id: str, data: OpportunityCreate) -> Dict[str, Any]:
        poster = self._get_member(poster_id)
        if poster.member_type != MemberType.ORGANIZATION.value:
            raise Forbidden("Only organizations can post opportunities")

        record = data.model_dump(mode="json")
        organization_id = record.get("organization_id")
        if organization_id:
            membership = self.repositories.organizations.get_membership(organization_id, poster_id)
            if not membership or membership.get("role") not in MANAGER_ROLES:
                raise Forbidden("You cannot post for this organization")
        else:
            memberships = self.repositories.organizations.memberships_for(poster_id)
            record["organization_id"] = memberships[0]["organization_id"] if memberships else None

        record.update({"posted_by": poster_id, "application_count": 0})
        opportunity = self.repositories.opportunities.insert(record)

        logger.info(
            "Opportunity created",
            extra={"opportunity_id": opportunity.get("id"), "posted_by": poster_id},
        )
        return opportunity

    def get_opportunity(self, opportunity_id: str, member_id: Optional[str] = None) -> Dict[str, Any]:
        opportunity = self._get_opportunity(opportunity_id)
        if opportunity.status == OpportunityStatus.DRAFT.value and not (
            member_id and self.can_manage(opportunity, member_id)
        ):
            raise NotFound("Opportunity", opportunity_id)
        return opportunity.model_dump(mode="json")

    def list_opportunities(
        self,
        status: Optional[str] = OpportunityStatus.OPEN.value,
        event_format: Optional[str] = None,
        organization_id: Optional[str] = None,
        posted_by: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Page:
        page, page_size, _, _ = page_bounds(page, page_size)
        # Drafts are listed only to the member who posted them
        public = posted_by is None
        if public and status == OpportunityStatus.DRAFT.value:
            return Page(items=[], page=page, page_size=page_size, total=0)

        rows, total = self.repositories.opportunities.list_opportunities(
            status=status,
            event_format=event_format,
            organization_id=organization_id,
            posted_by=posted_by,
            search=search,
            exclude_drafts=public,
            page=page,
            page_size=page_size,
        )
        return Page(items=rows, page=page, page_size=page_size, total=total)

    def update_opportunity(
        self,
        opportunity_id: str,
        member_id: str,
        data: OpportunityUpdate,
    ) -> Dict[str, Any]:
        opportunity = self._get_opportunity(opportunity_id)
        self._require_manager(opportunity, member_id)

        changes = data.model_dump(mode="json", exclude_unset=True)
        if not changes:
            raise ValidationError("No fields to update")
        changes["updated_at"] = utc_now_iso()

        return self.repositories.opportunities.update(opportunity_id, changes) or {}

    def set_opportunity_status(self, opportunity_id: str, member_id: str, status: str) -> Dict[str, Any]:
        opportunity = self._get_opportunity(opportunity_id)
        self._require_manager(opportunity, member_id)

        updated = self.repositories.opportunities.update(
            opportunity_id, {"status": status, "updated_at": utc_now_iso()}
        )
        logger.info(
            "Opportunity status changed",
            extra={"opportunity_id": opportunity_id, "from": opportunity.status, "to": status},
        )
        return updated or {}

"""
Member/Organization Directory

Member profiles, onboarding and organizations with their memberships.
"""

from typing import Any, Dict, List, Optional

from covetalks.models.records import (
    Member,
    MemberType,
    Organization,
    OrganizationMember,
    OrganizationRole,
    Page,
    PublicProfile,
)
from covetalks.models.requests import (
    OnboardingRequest,
    OrganizationCreate,
    ProfileUpdate,
)
from covetalks.repositories import Repositories
from covetalks.repositories.base import page_bounds
from covetalks.utils.exceptions import Forbidden, NotFound, UniqueViolation, ValidationError
from covetalks.utils.logging_config import get_logger
from covetalks.utils.timestamps import utc_now_iso

logger = get_logger(__name__)

PROFILE_FIELDS = set(ProfileUpdate.model_fields)

MANAGER_ROLES = {OrganizationRole.OWNER.value, OrganizationRole.ADMIN.value}


class DirectoryService:
    """Members and organizations"""

    def __init__(self, repositories: Repositories):
        self.repositories = repositories

    def get_member(self, member_id: str) -> Dict[str, Any]:
        row = self.repositories.members.get(member_id)
        if row is None:
            raise NotFound("Member", member_id)
        return Member.model_validate(row).model_dump(mode="json")

    def get_public_profile(self, member_id: str) -> Dict[str, Any]:
        row = self.repositories.members.get(member_id)
        if row is None:
            raise NotFound("Member", member_id)
        return PublicProfile.model_validate(row).model_dump(mode="json")

    def update_profile(self, member_id: str, data: ProfileUpdate) -> Dict[str, Any]:
        changes = {
            key: value
            for key, value in data.model_dump(exclude_unset=True).items()
            if key in PROFILE_FIELDS
        }
        if not changes:
            raise ValidationError("No fields to update")
        if "name" in changes and not (changes["name"] or "").strip():
            raise ValidationError("Name cannot be empty")

        changes["updated_at"] = utc_now_iso()
        updated = self.repositories.members.update(member_id, changes)
        if updated is None:
            raise NotFound("Member", member_id)

        logger.info(
            "Profile updated",
            extra={"member_id": member_id, "fields": sorted(k for k in changes if k != "updated_at")},
        )
        return updated

    def list_speakers(
        self,
        search: Optional[str] = None,
        specialty: Optional[str] = None,
        location: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Page:
        page, page_size, _, _ = page_bounds(page, page_size)
        rows, total = self.repositories.members.list_speakers(
            search=search,
            specialty=specialty,
            location=location,
            page=page,
            page_size=page_size,
        )
        items = [PublicProfile.model_validate(row).model_dump(mode="json") for row in rows]
        return Page(items=items, page=page, page_size=page_size, total=total)

    def complete_onboarding(self, member_id: str, data: OnboardingRequest) -> Dict[str, Any]:
        """
        Finish onboarding for a member.

        Organization members are attached to the named organization, which
        is created (with the member as Owner) if it does not exist yet.
        """
        row = self.repositories.members.get(member_id)
        if row is None:
            raise NotFound("Member", member_id)
        member = Member.model_validate(row)

        member_type = data.member_type or member.member_type
        if member_type is None:
            raise ValidationError("Please choose whether you are a speaker or an organization")

        changes: Dict[str, Any] = {
            key: value
            for key, value in data.model_dump(exclude_unset=True).items()
            if key in PROFILE_FIELDS
        }
        changes.update(
            {
                "member_type": member_type,
                "onboarding_completed": True,
                "updated_at": utc_now_iso(),
            }
        )

        if member_type == MemberType.ORGANIZATION.value:
            if not (data.organization_name or "").strip():
                raise ValidationError("Organization name is required")
            self._join_or_create_organization(
                member_id, data.organization_name.strip(), data.organization_type
            )

        updated = self.repositories.members.update(member_id, changes) or {}
        logger.info(
            "Onboarding completed",
            extra={"member_id": member_id, "member_type": member_type},
        )
        return updated

    def _join_or_create_organization(
        self,
        member_id: str,
        name: str,
        organization_type: Optional[str],
    ) -> Dict[str, Any]:
        existing = self.repositories.organizations.find_by_name(name)
        if existing is None:
            return self.create_organization(
                member_id,
                OrganizationCreate(name=name, organization_type=organization_type),
            )

        if self.repositories.organizations.get_membership(existing["id"], member_id) is None:
            self.repositories.organizations.add_member(
                existing["id"], member_id, OrganizationRole.MEMBER.value
            )
        return existing

    # Organizations

    def create_organization(self, owner_id: str, data: OrganizationCreate) -> Dict[str, Any]:
        """Insert an organization and make the creator its Owner"""
        organization = self.repositories.organizations.insert(data.model_dump(exclude_none=True))
        self.repositories.organizations.add_member(
            organization["id"], owner_id, OrganizationRole.OWNER.value
        )

        logger.info(
            "Organization created",
            extra={"organization_id": organization["id"], "owner_id": owner_id},
        )
        return organization

    def get_organization(self, organization_id: str) -> Dict[str, Any]:
        row = self.repositories.organizations.get(organization_id)
        if row is None:
            raise NotFound("Organization", organization_id)
        return Organization.model_validate(row).model_dump(mode="json")

    def list_organizations(
        self,
        search: Optional[str] = None,
        organization_type: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Page:
        page, page_size, _, _ = page_bounds(page, page_size)
        rows, total = self.repositories.organizations.list_organizations(
            search=search,
            organization_type=organization_type,
            page=page,
            page_size=page_size,
        )
        return Page(items=rows, page=page, page_size=page_size, total=total)

    def list_organization_members(self, organization_id: str) -> List[Dict[str, Any]]:
        self.get_organization(organization_id)
        return self.repositories.organizations.list_members(organization_id)

    def add_organization_member(
        self,
        organization_id: str,
        actor_id: str,
        member_id: str,
        role: str = OrganizationRole.MEMBER.value,
    ) -> Dict[str, Any]:
        """Add a member to an organization; only Owners and Admins may"""
        self.get_organization(organization_id)

        membership = self.repositories.organizations.get_membership(organization_id, actor_id)
        if not membership or membership.get("role") not in MANAGER_ROLES:
            raise Forbidden("Only organization owners and admins can add members")
        if role == OrganizationRole.OWNER.value and membership.get("role") != OrganizationRole.OWNER.value:
            raise Forbidden("Only owners can add another owner")

        if self.repositories.members.get(member_id) is None:
            raise NotFound("Member", member_id)

        try:
            added = self.repositories.organizations.add_member(organization_id, member_id, role)
        except UniqueViolation as e:
            raise ValidationError("Member already belongs to this organization") from e

        logger.info(
            "Organization member added",
            extra={"organization_id": organization_id, "member_id": member_id, "role": role},
        )
        return OrganizationMember.model_validate(added).model_dump(mode="json")

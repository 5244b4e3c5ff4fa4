"""Organization directory and membership endpoints"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from covetalks.auth.session import SessionUser
from covetalks.dependencies import get_current_user, get_directory_service
from covetalks.models.records import Page
from covetalks.models.requests import OrganizationCreate, OrganizationMemberAdd
from covetalks.repositories.base import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from covetalks.services.directory_service import DirectoryService

router = APIRouter(prefix="/api/organizations", tags=["organizations"])


@router.post("", status_code=201)
def create_organization(
    body: OrganizationCreate,
    user: SessionUser = Depends(get_current_user),
    directory: DirectoryService = Depends(get_directory_service),
):
    return directory.create_organization(user.id, body)


@router.get("", response_model=Page)
def list_organizations(
    search: Optional[str] = None,
    organization_type: Optional[str] = Query(None, alias="type"),
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    user: SessionUser = Depends(get_current_user),
    directory: DirectoryService = Depends(get_directory_service),
):
    return directory.list_organizations(
        search=search,
        organization_type=organization_type,
        page=page,
        page_size=page_size,
    )


@router.get("/{organization_id}")
def get_organization(
    organization_id: str,
    user: SessionUser = Depends(get_current_user),
    directory: DirectoryService = Depends(get_directory_service),
):
    return directory.get_organization(organization_id)


@router.get("/{organization_id}/members")
def list_members(
    organization_id: str,
    user: SessionUser = Depends(get_current_user),
    directory: DirectoryService = Depends(get_directory_service),
):
    return {"members": directory.list_organization_members(organization_id)}


@router.post("/{organization_id}/members", status_code=201)
def add_member(
    organization_id: str,
    body: OrganizationMemberAdd,
    user: SessionUser = Depends(get_current_user),
    directory: DirectoryService = Depends(get_directory_service),
):
    return directory.add_organization_member(organization_id, user.id, body.member_id, body.role)

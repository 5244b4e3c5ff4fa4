"""Member profile, onboarding and speaker directory endpoints"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from covetalks.auth.session import SessionUser
from covetalks.dependencies import get_current_user, get_directory_service
from covetalks.models.records import Page
from covetalks.models.requests import OnboardingRequest, ProfileUpdate
from covetalks.repositories.base import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from covetalks.services.directory_service import DirectoryService

router = APIRouter(prefix="/api/members", tags=["members"])


@router.get("/me")
def my_profile(
    user: SessionUser = Depends(get_current_user),
    directory: DirectoryService = Depends(get_directory_service),
):
    return directory.get_member(user.id)


@router.patch("/me")
def update_my_profile(
    body: ProfileUpdate,
    user: SessionUser = Depends(get_current_user),
    directory: DirectoryService = Depends(get_directory_service),
):
    return directory.update_profile(user.id, body)


@router.post("/me/onboarding")
def complete_onboarding(
    body: OnboardingRequest,
    user: SessionUser = Depends(get_current_user),
    directory: DirectoryService = Depends(get_directory_service),
):
    return directory.complete_onboarding(user.id, body)


@router.get("/speakers", response_model=Page)
def list_speakers(
    search: Optional[str] = None,
    specialty: Optional[str] = None,
    location: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    user: SessionUser = Depends(get_current_user),
    directory: DirectoryService = Depends(get_directory_service),
):
    return directory.list_speakers(
        search=search,
        specialty=specialty,
        location=location,
        page=page,
        page_size=page_size,
    )


@router.get("/{member_id}")
def get_member(
    member_id: str,
    user: SessionUser = Depends(get_current_user),
    directory: DirectoryService = Depends(get_directory_service),
):
    """Full profile for the caller, public fields for anyone else"""
    if member_id == user.id:
        return directory.get_member(member_id)
    return directory.get_public_profile(member_id)

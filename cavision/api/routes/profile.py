from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cavision.api.dependencies import get_profile_service
from cavision.core.security import current_user_id, require_api_key
from cavision.db.session import get_db
from cavision.schemas.profile_schema import ProfileUpdate, UserProfile, UserStats
from cavision.services.profile_service import ProfileNotFoundError, ProfileService

router = APIRouter(
    prefix="/ai/users/me",
    tags=["profile"],
    dependencies=[Depends(require_api_key)],
)


@router.get("/profile", response_model=UserProfile)
def get_profile(
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
    service: ProfileService = Depends(get_profile_service),
) -> UserProfile:
    try:
        return service.get_profile(db, user_id)
    except ProfileNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="profile not found") from exc


@router.put("/profile", response_model=UserProfile)
def update_profile(
    body: ProfileUpdate,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
    service: ProfileService = Depends(get_profile_service),
) -> UserProfile:
    """
    Merge the provided fields into the profile, creating it on first write (signup).
    """
    try:
        return service.update_profile(db, user_id, body)
    except SQLAlchemyError as exc:
        db.rollback()
        service.logger.error("profile update failed user_id=%s", user_id, exc_info=exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not save your profile. Please try again.",
        ) from exc


@router.get("/stats", response_model=UserStats)
def get_stats(
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
    service: ProfileService = Depends(get_profile_service),
) -> UserStats:
    try:
        return service.get_stats(db, user_id)
    except ProfileNotFoundError:
        return UserStats()

# app/routers/progress_router.py
from fastapi import APIRouter, HTTPException, Depends
import logging
from typing import Any, Dict
from sqlalchemy.orm import Session
from ..schemas.ielts_schemas import ProgressReportResponse, TargetScoreUpdate
from ..services.result_service import ResultService
from ..database.database import get_db
from ..dependencies import CurrentUser, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/progress", tags=["progress"])

NO_DATA_MESSAGE = "No progress data yet"


@router.get("/my-progress", response_model=ProgressReportResponse)
def get_my_progress(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> ProgressReportResponse:
    """Progress report recomputed from the caller's full result history."""
    try:
        report = ResultService(db).get_progress_report(user.user_id)
        if report is None:
            return ProgressReportResponse(data=None, message=NO_DATA_MESSAGE)
        return ProgressReportResponse(data=report, message="Progress retrieved")
    except Exception as e:
        logger.error(f"Error building progress report: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to build progress report")


@router.put("/target-score")
def update_target_score(
    update: TargetScoreUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    try:
        profile = ResultService(db).set_target_score(user.user_id, update.target_score)
        logger.info(f"User {user.user_id} set target score {update.target_score}")
        return {
            "targetScore": profile.target_score,
            "progressToTarget": profile.progress_to_target,
        }
    except Exception as e:
        logger.error(f"Error updating target score: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to update target score")

# app/routers/result_router.py
from fastapi import APIRouter, HTTPException, Depends, Query
import logging
import math
from typing import Any, Dict
from sqlalchemy.orm import Session
from ..config import RESULTS_PAGE_LIMIT_MAX
from ..schemas.ielts_schemas import (
    EMPTY_PROGRESS,
    PaginatedResults,
    Pagination,
    ProgressRead,
    TeacherGrade,
    TestResultRead,
    TestSubmission,
)
from ..services.result_service import ResultService
from ..database.database import get_db
from ..dependencies import CurrentUser, get_current_user, require_staff

# Configure logging
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/results", tags=["results"])


@router.post("/submit", response_model=TestResultRead, status_code=201)
def submit_test(
    submission: TestSubmission,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> TestResultRead:
    """Grade a submitted attempt and return the stored result."""
    try:
        logger.info(f"Received submission for test {submission.test_id} from user {user.user_id}")

        result_service = ResultService(db)
        return result_service.submit_test(user.user_id, submission)

    except LookupError as le:
        raise HTTPException(status_code=404, detail=str(le))
    except ValueError as ve:
        logger.error(f"Validation error in test submission: {str(ve)}")
        raise HTTPException(status_code=400, detail=str(ve))
    except Exception as e:
        logger.error(f"Error processing test submission: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to process test submission")


@router.get("/user/me", response_model=PaginatedResults)
def get_my_results(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=RESULTS_PAGE_LIMIT_MAX),
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> PaginatedResults:
    """List the caller's results, newest first."""
    try:
        results, total = ResultService(db).list_user_results(user.user_id, page, limit)
        return PaginatedResults(
            data=[TestResultRead.model_validate(r) for r in results],
            pagination=Pagination(
                page=page,
                limit=limit,
                total=total,
                total_pages=math.ceil(total / limit),
            ),
        )
    except Exception as e:
        logger.error(f"Error listing results: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to list results")


@router.get("/progress/me")
def get_my_progress_profile(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """Stored progress profile, or a zero-valued stub before the first submission."""
    try:
        profile = ResultService(db).get_progress(user.user_id)
        if not profile:
            return dict(EMPTY_PROGRESS)
        return ProgressRead.model_validate(profile).model_dump(by_alias=True, mode="json")
    except Exception as e:
        logger.error(f"Error retrieving progress: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to retrieve progress")


@router.get("/{result_id}", response_model=TestResultRead)
def get_result(
    result_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> TestResultRead:
    try:
        result = ResultService(db).get_result(result_id)
        if not result:
            raise HTTPException(status_code=404, detail="Result not found")
        if result.user_id != user.user_id and not user.is_admin:
            raise HTTPException(status_code=403, detail="Not allowed to view this result")
        return TestResultRead.model_validate(result)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error retrieving result {result_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to retrieve result")


@router.put("/{result_id}/grade", response_model=TestResultRead)
def grade_result(
    result_id: str,
    grade: TeacherGrade,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> TestResultRead:
    """Manual grading of writing / speaking attempts by a teacher."""
    require_staff(user)
    try:
        return ResultService(db).grade_manually(result_id, grade, user.user_id)

    except LookupError as le:
        raise HTTPException(status_code=404, detail=str(le))
    except ValueError as ve:
        raise HTTPException(status_code=400, detail=str(ve))
    except Exception as e:
        logger.error(f"Error grading result {result_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to grade result")

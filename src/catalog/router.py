"""Learning path authoring validation endpoint."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status

from src.core.exceptions import LearningHubError
from src.core.http_errors import handle_learning_error

from .schemas import PathValidationResponse
from .service import PathValidationService


router = APIRouter(prefix="/v1/paths", tags=["paths"])


async def get_path_validation_service(request: Request) -> PathValidationService:
    """Get path validation service from app state."""
    service = getattr(request.app.state, "path_validation_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Catalog service not available",
        )
    return service


PathValidationServiceDep = Annotated[
    PathValidationService, Depends(get_path_validation_service)
]


@router.post(
    "/{path_id}/validate",
    response_model=PathValidationResponse,
    summary="Validate path modules and prerequisites",
)
async def validate_path(
    path_id: UUID,
    service: PathValidationServiceDep,
) -> PathValidationResponse:
    """Check content fields, quiz links and prerequisite acyclicity.

    Returns a module order that satisfies every prerequisite, or 400 with
    the offending module (or the cycle) in the error details.
    """
    try:
        return await service.validate_path(path_id)
    except LearningHubError as e:
        raise handle_learning_error(e) from e

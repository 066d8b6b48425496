from fastapi import status
from fastapi.responses import JSONResponse

from jobwarden.schemas.common import ApiResponse

ERROR_STATUS = {
    "not_found": status.HTTP_404_NOT_FOUND,
}


def envelope(response: ApiResponse) -> JSONResponse:
    """Render an orchestrator envelope; failures map to 400 (404 for missing)."""
    if response.success:
        code = status.HTTP_200_OK
    else:
        code = ERROR_STATUS.get(response.error_code or "", status.HTTP_400_BAD_REQUEST)
    return JSONResponse(status_code=code, content=response.model_dump(mode="json"))

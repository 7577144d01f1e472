from fastapi import HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from app.services.errors import WalletTrackerError


def err(message: str, http_status: int = 400):
    raise HTTPException(status_code=http_status, detail=message)


def raise_for_service_error(exc: WalletTrackerError):
    """Re-raise a service-layer error as the matching HTTP error."""
    raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc


def validation_error_response(errors) -> JSONResponse:
    # Malformed request bodies are client errors like any other bad input.
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(errors)})

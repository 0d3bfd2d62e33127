"""API routes for credential and model settings."""

from fastapi import APIRouter, Depends, HTTPException, Request, status

from .settings_schemas import (
    ApiKeyStatusResponse,
    ApiKeyUpdateRequest,
    ApiKeyValidateRequest,
    ApiKeyValidateResponse,
    ModelSettingsResponse,
    ModelUpdateRequest,
    SuccessResponse,
)
from .settings_service import SettingsService

router = APIRouter(prefix="/api/settings", tags=["settings"])


def get_settings_service(request: Request) -> SettingsService:
    try:
        return request.app.state.settings_service  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - defensive path
        raise RuntimeError("SettingsService is not configured") from exc


@router.get("/api-key/status", response_model=ApiKeyStatusResponse)
def read_api_key_status(
    service: SettingsService = Depends(get_settings_service),
) -> ApiKeyStatusResponse:
    return ApiKeyStatusResponse(**service.key_status())


@router.post("/api-key", response_model=SuccessResponse)
def save_api_key(
    payload: ApiKeyUpdateRequest,
    service: SettingsService = Depends(get_settings_service),
) -> SuccessResponse:
    try:
        service.save_api_key(payload.api_key)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"status": "error", "failure_reason": "api_key_required", "message": str(exc)},
        ) from exc
    return SuccessResponse()


@router.post("/api-key/validate", response_model=ApiKeyValidateResponse)
async def validate_api_key(
    payload: ApiKeyValidateRequest,
    service: SettingsService = Depends(get_settings_service),
) -> ApiKeyValidateResponse:
    valid, error = await service.validate_key(payload.api_key)
    return ApiKeyValidateResponse(valid=valid, error=error)


@router.get("/model", response_model=ModelSettingsResponse)
def read_model(service: SettingsService = Depends(get_settings_service)) -> ModelSettingsResponse:
    return ModelSettingsResponse(model=service.active_model(), available=service.available_models())


@router.put("/model", response_model=ModelSettingsResponse)
def update_model(
    payload: ModelUpdateRequest,
    service: SettingsService = Depends(get_settings_service),
) -> ModelSettingsResponse:
    try:
        model = service.save_model(payload.model)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"status": "error", "failure_reason": "model_required", "message": str(exc)},
        ) from exc
    return ModelSettingsResponse(model=model, available=service.available_models())

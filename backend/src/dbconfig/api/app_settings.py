"""
Runtime application settings API endpoints.

Reads require the view permission, writes the update permission. Values of
encrypted settings are never returned; they can only be replaced.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status

from ..auth.rbac import SettingsAccess, require_settings_update, require_settings_view
from ..core.key_policy import get_key_policy
from ..schemas.app_setting import (
    AppSettingCreate,
    AppSettingList,
    AppSettingResponse,
    AppSettingUpdate,
    KeyPolicyResponse,
)
from ..schemas.envelope import ErrorResponse, SuccessResponse
from ..services.app_settings_service import AppSettingsService
from .dependencies import get_app_settings_service

router = APIRouter(
    prefix="/db-config",
    tags=["app-settings"],
    responses={
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Missing view or update permission"},
    },
)


@router.get("", response_model=SuccessResponse[AppSettingList])
async def list_app_settings(
    module: Optional[str] = Query(None, description="Only settings of this module"),
    access: SettingsAccess = Depends(require_settings_view),
    service: AppSettingsService = Depends(get_app_settings_service),
):
    """List stored settings; the response tells the caller whether it may edit them."""
    settings = await service.list_settings(module)
    items = [AppSettingResponse.from_setting(s) for s in settings]
    return SuccessResponse(data=AppSettingList(items=items, total=len(items), can_update=access.can_update))


@router.get("/key-policy", response_model=SuccessResponse[KeyPolicyResponse])
async def get_app_settings_key_policy(
    _access: SettingsAccess = Depends(require_settings_view),
):
    """Key prefixes that can never be stored, and those that can."""
    policy = get_key_policy()
    return SuccessResponse(
        data=KeyPolicyResponse(
            blocked_prefixes=list(policy.blocked_prefixes),
            allowed_prefixes=list(policy.allowed_prefixes),
        )
    )


@router.get("/{setting_id}", response_model=SuccessResponse[AppSettingResponse])
async def get_app_setting(
    setting_id: str = Path(..., description="Setting ID"),
    _access: SettingsAccess = Depends(require_settings_view),
    service: AppSettingsService = Depends(get_app_settings_service),
):
    setting = await service.get_setting(setting_id)
    return SuccessResponse(data=AppSettingResponse.from_setting(setting))


@router.post(
    "",
    response_model=SuccessResponse[AppSettingResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create a new setting",
)
async def create_app_setting(
    payload: AppSettingCreate,
    _access: SettingsAccess = Depends(require_settings_update),
    service: AppSettingsService = Depends(get_app_settings_service),
):
    """Create a setting. The configuration is reloaded before this returns."""
    setting = await service.create(payload.model_dump())
    return SuccessResponse(data=AppSettingResponse.from_setting(setting))


@router.put("/{setting_id}", response_model=SuccessResponse[AppSettingResponse])
@router.patch("/{setting_id}", response_model=SuccessResponse[AppSettingResponse])
async def update_app_setting(
    payload: AppSettingUpdate,
    setting_id: str = Path(..., description="Setting ID"),
    _access: SettingsAccess = Depends(require_settings_update),
    service: AppSettingsService = Depends(get_app_settings_service),
):
    """Update a setting. An empty value on an encrypted setting keeps the stored secret."""
    setting = await service.update(setting_id, payload.model_dump(exclude_unset=True))
    return SuccessResponse(data=AppSettingResponse.from_setting(setting))


@router.delete("/{setting_id}", response_model=SuccessResponse[dict])
async def delete_app_setting(
    setting_id: str = Path(..., description="Setting ID"),
    _access: SettingsAccess = Depends(require_settings_update),
    service: AppSettingsService = Depends(get_app_settings_service),
):
    await service.delete(setting_id)
    return SuccessResponse(data={"id": setting_id, "deleted": True})

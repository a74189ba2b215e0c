"""
Credit Settings API Endpoints.

Process-wide credit policy (default limit, auto-approval limit, credit days).
"""

from fastapi import APIRouter, Depends

from api.dependencies import LedgerServices, get_services
from api.models import SettingsPatch, SettingsResponse

router = APIRouter(prefix="/credit/settings")


@router.get("", response_model=SettingsResponse, summary="Get Credit Settings")
def get_settings(services: LedgerServices = Depends(get_services)):
    return SettingsResponse.from_domain(services.settings.current)


@router.patch(
    "",
    response_model=SettingsResponse,
    summary="Update Credit Settings",
    description="Partial update; only the fields sent are changed."
)
def update_settings(patch: SettingsPatch, services: LedgerServices = Depends(get_services)):
    updated = services.settings.update(patch.model_dump(exclude_unset=True, exclude_none=True))
    return SettingsResponse.from_domain(updated)

import logging

from fastapi import APIRouter, HTTPException, status, Body

from omega.auth.dependencies import AdminUserDep
from omega.billing_settings.dependencies import BillingSettingsServiceDep
from omega.billing_settings.exceptions import BillingSettingsUpdateException
from omega.billing_settings.models import BillingSettingsRead, BillingSettingsUpdate

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/billing-settings",
    tags=["Billing Settings"]
)

@router.get("/", response_model=BillingSettingsRead)
async def read_billing_settings(
    settings_service: BillingSettingsServiceDep,
    current_admin: AdminUserDep,
):
    """Retourne les paramètres de facturation (créés avec les valeurs par défaut au premier accès)."""
    return await settings_service.get_settings()

@router.put("/", response_model=BillingSettingsRead)
async def update_billing_settings(
    settings_service: BillingSettingsServiceDep,
    current_admin: AdminUserDep,
    settings_update: BillingSettingsUpdate = Body(...),
):
    """Met à jour les paramètres de facturation (hors compteurs de numérotation)."""
    logger.info(f"API update_billing_settings par admin {current_admin.id}")
    try:
        return await settings_service.update_settings(settings_update)
    except BillingSettingsUpdateException as e:
        logger.error(f"Erreur API update_billing_settings: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Erreur interne MAJ paramètres.")

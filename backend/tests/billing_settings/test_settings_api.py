import pytest
from httpx import AsyncClient

SETTINGS_API_PREFIX = "/api/v1/billing-settings"


@pytest.mark.asyncio
async def test_read_settings_creates_defaults(test_client: AsyncClient, auth_headers_admin):
    response = await test_client.get(SETTINGS_API_PREFIX + "/", headers=auth_headers_admin)
    assert response.status_code == 200
    data = response.json()
    assert data["company_name"] == "OMEGA"
    assert data["invoice_prefix"] == "FAC"
    assert data["quote_prefix"] == "DEV"
    assert data["default_payment_terms"] == 30
    assert data["next_invoice_number"] == 1

@pytest.mark.asyncio
async def test_update_settings(test_client: AsyncClient, auth_headers_admin):
    response = await test_client.put(
        SETTINGS_API_PREFIX + "/",
        json={
            "company_phone": "04 67 00 00 00",
            "invoice_prefix": "F",
            "bank_details": {"iban": "FR7630006000011234567890189", "bic": "AGRIFRPP", "bank_name": "Crédit Agricole"},
        },
        headers=auth_headers_admin,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["company_phone"] == "04 67 00 00 00"
    assert data["invoice_prefix"] == "F"
    assert data["bank_details"]["bic"] == "AGRIFRPP"
    # Les champs non fournis restent inchangés
    assert data["company_name"] == "OMEGA"

@pytest.mark.asyncio
async def test_counters_cannot_be_set_through_update(test_client: AsyncClient, auth_headers_admin):
    await test_client.put(SETTINGS_API_PREFIX + "/", json={"next_invoice_number": 500}, headers=auth_headers_admin)
    response = await test_client.get(SETTINGS_API_PREFIX + "/", headers=auth_headers_admin)
    assert response.json()["next_invoice_number"] == 1

@pytest.mark.asyncio
async def test_settings_require_admin(test_client: AsyncClient, auth_headers_user):
    response = await test_client.get(SETTINGS_API_PREFIX + "/", headers=auth_headers_user)
    assert response.status_code == 403

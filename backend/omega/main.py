"""
Module principal de l'application FastAPI OMEGA Facturation.

Configure l'instance FastAPI, le CORS et inclut les routeurs du domaine
facturation (paramètres, devis, factures, remboursements, export PDF, événements).
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from omega.config import settings
# Enregistre toutes les tables SQLModel avant le premier accès
from omega import models
from omega.billing_settings.router import router as billing_settings_router
from omega.events.router import router as events_router
from omega.invoices.router import router as invoice_router
from omega.pdf.router import router as pdf_router
from omega.quotes.router import router as quote_router
from omega.refunds.router import router as refund_router

# Configurer le logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="OMEGA Facturation API",
    description="API de gestion des devis, factures, paiements et remboursements.",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Range"],
)

# ======================================================
# Inclure les routeurs
# ======================================================
app.include_router(billing_settings_router, prefix=settings.API_V1_PREFIX)
app.include_router(quote_router, prefix=settings.API_V1_PREFIX)
app.include_router(invoice_router, prefix=settings.API_V1_PREFIX)
app.include_router(refund_router, prefix=settings.API_V1_PREFIX)
# Le PDF de facture vit sous /invoices/{id}/pdf: le routeur PDF n'a pas de préfixe propre
app.include_router(pdf_router, prefix=settings.API_V1_PREFIX)
app.include_router(events_router, prefix=settings.API_V1_PREFIX)


@app.get("/")
async def root():
    return {"message": "OMEGA Facturation API"}

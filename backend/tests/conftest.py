# Standard Library
from dataclasses import replace
from decimal import Decimal
from typing import AsyncGenerator, Dict, List, Optional

# Third-Party Libraries
import pytest
import pytest_asyncio

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, AsyncEngine
from sqlalchemy.orm import sessionmaker

# First-Party Libraries
from omega.main import app
from omega import models  # enregistre toutes les tables dans SQLModel.metadata
from omega.database import create_tables, get_db_session, get_session_factory
from omega.auth.security import create_access_token
from omega.billing_settings.numbering import NumberingService
from omega.billing_settings.repositories import SQLAlchemyBillingSettingsRepository
from omega.core.utils import utcnow
from omega.events.bus import BillingEventBus
from omega.invoices.repositories import SQLAlchemyInvoiceRepository
from omega.invoices.service import InvoiceService
from omega.orders.models import Order, OrderItem
from omega.orders.repositories import SQLAlchemyOrderRepository
from omega.pdf.domain.exceptions import PDFGenerationException
from omega.pdf.domain.generator import AbstractPDFGenerator, DocumentSnapshot
from omega.pdf.interfaces.dependencies import get_pdf_generator
from omega.refunds.dependencies import get_payment_processor
from omega.refunds.domain.processor import AbstractPaymentProcessor, ProcessorCharge, ProcessorRefund
from omega.refunds.repositories import SQLAlchemyRefundRepository
from omega.refunds.service import RefundService

TEST_PAYMENT_INTENT = "pi_test_123"
TEST_CHARGE = "ch_test_123"

# --- Fixtures de Base ---

@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Base SQLite fichier propre à chaque test (plusieurs connexions possibles)."""
    engine: AsyncEngine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'omega_test.db'}", echo=False)
    await create_tables(engine)
    yield engine
    await engine.dispose()

@pytest_asyncio.fixture(scope="function")
async def session_factory(db_engine: AsyncEngine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory: sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session

@pytest.fixture
def event_bus() -> BillingEventBus:
    return BillingEventBus()

# --- Prestataire de paiement simulé ---

class FakePaymentProcessor(AbstractPaymentProcessor):
    """Prestataire en mémoire: une transaction unique, remboursements enregistrés."""

    def __init__(self, amount_cents: int = 12000, amount_refunded_cents: int = 0):
        self.charge = ProcessorCharge(
            id=TEST_CHARGE,
            amount=amount_cents,
            amount_refunded=amount_refunded_cents,
            payment_intent=TEST_PAYMENT_INTENT,
        )
        self.refunds: List[ProcessorRefund] = []
        self.refund_calls: List[Dict] = []
        self.refund_status = "succeeded"
        self.fail_with: Optional[Exception] = None
        self.refunds_by_key: Dict[str, ProcessorRefund] = {}

    async def retrieve_charge(self, charge_id: str) -> ProcessorCharge:
        return self.charge

    async def retrieve_payment_intent_charge(self, payment_intent_id: str) -> ProcessorCharge:
        return self.charge

    async def create_refund(self, *, charge_id, amount_cents, metadata, idempotency_key) -> ProcessorRefund:
        self.refund_calls.append({
            "charge_id": charge_id,
            "amount_cents": amount_cents,
            "metadata": metadata,
            "idempotency_key": idempotency_key,
        })
        if self.fail_with is not None:
            raise self.fail_with
        # Stripe rejoue la réponse d'origine pour une clé déjà vue
        if idempotency_key in self.refunds_by_key:
            return self.refunds_by_key[idempotency_key]
        refund = ProcessorRefund(
            id=f"re_test_{len(self.refunds) + 1}",
            amount=amount_cents,
            status=self.refund_status,
            charge_id=charge_id,
            payment_intent=self.charge.payment_intent,
            metadata=dict(metadata),
        )
        self.refunds.append(refund)
        self.refunds_by_key[idempotency_key] = refund
        if refund.status not in ("failed", "canceled"):
            self.charge = replace(self.charge, amount_refunded=self.charge.amount_refunded + amount_cents)
        return refund

    async def list_refunds(self, *, charge_id: str) -> List[ProcessorRefund]:
        return list(self.refunds)

@pytest.fixture
def payment_processor() -> FakePaymentProcessor:
    return FakePaymentProcessor()

# --- Services construits sur la session de test ---

@pytest.fixture
def invoice_service(db_session: AsyncSession, session_factory: sessionmaker, event_bus: BillingEventBus) -> InvoiceService:
    return InvoiceService(
        invoice_repo=SQLAlchemyInvoiceRepository(db_session=db_session),
        order_repo=SQLAlchemyOrderRepository(db_session=db_session),
        settings_repo=SQLAlchemyBillingSettingsRepository(db_session=db_session),
        numbering=NumberingService(session_factory=session_factory),
        event_bus=event_bus,
    )

@pytest.fixture
def refund_service(db_session: AsyncSession, payment_processor: FakePaymentProcessor, event_bus: BillingEventBus) -> RefundService:
    return RefundService(
        invoice_repo=SQLAlchemyInvoiceRepository(db_session=db_session),
        refund_repo=SQLAlchemyRefundRepository(db_session=db_session),
        processor=payment_processor,
        event_bus=event_bus,
    )

# --- Données ---

async def create_order(
    session: AsyncSession,
    *,
    price: str = "120.00",
    quantity: int = 1,
    user_type: str = "particulier",
    payment_intent: Optional[str] = TEST_PAYMENT_INTENT,
) -> Order:
    """Commande boutique d'un seul article; prix TTC pour un particulier."""
    amount = Decimal(price) * quantity
    if user_type == "pro":
        sub_total = amount
        tax = (amount * Decimal("0.2")).quantize(Decimal("0.01"))
    else:
        sub_total = (amount / Decimal("1.2")).quantize(Decimal("0.01"))
        tax = amount - sub_total
    order = Order(
        user_id="client-42",
        user_type=user_type,
        customer_name="Jean Dupont",
        customer_email="jean.dupont@example.com",
        shipping_address={"street": "12 rue des Lilas", "postal_code": "34000", "city": "Montpellier"},
        status="paid",
        sub_total=sub_total,
        tax=tax,
        total=sub_total + tax,
        stripe_payment_intent_id=payment_intent,
        created_at=utcnow(),
    )
    session.add(order)
    await session.flush()
    session.add(OrderItem(order_id=order.id, product_id=7, product_name="Chaise OMEGA", quantity=quantity, price=Decimal(price)))
    await session.commit()
    return order

@pytest.fixture
def order_factory(db_session: AsyncSession):
    async def _create(**kwargs) -> Order:
        return await create_order(db_session, **kwargs)
    return _create

@pytest_asyncio.fixture(scope="function")
async def card_order(db_session: AsyncSession) -> Order:
    return await create_order(db_session)

def build_invoice_payload(**overrides) -> Dict:
    payload = {
        "customer_name": "Atelier Martin",
        "customer_email": "contact@atelier-martin.fr",
        "items": [
            {"description": "Table de réunion", "quantity": 1, "unit_price_ht": "100.00", "tax_rate": "20.00"},
        ],
    }
    payload.update(overrides)
    return payload

@pytest.fixture
def invoice_payload():
    """Constructeur de payload de facture, surchargeable champ par champ."""
    return build_invoice_payload

# --- Authentification ---

@pytest.fixture
def auth_headers_admin() -> dict[str, str]:
    access_token = create_access_token(data={"sub": "admin-1", "email": "admin@omega-fx.fr", "role": "admin"})
    return {"Authorization": f"Bearer {access_token}"}

@pytest.fixture
def auth_headers_user() -> dict[str, str]:
    access_token = create_access_token(data={"sub": "user-1", "email": "client@example.com", "role": "authenticated"})
    return {"Authorization": f"Bearer {access_token}"}

# --- Fixtures PDF ---

class MockPDFGenerator(AbstractPDFGenerator):
    """Un générateur PDF simulé pour les tests."""

    def __init__(self):
        self.snapshots: List[DocumentSnapshot] = []
        self.invoices: List[Dict] = []

    async def generate_invoice_pdf(self, invoice_data: Dict) -> bytes:
        self.invoices.append(invoice_data)
        if invoice_data["invoice"].get("customer_name") == "fail_invoice":
            raise PDFGenerationException("Mock invoice generation failed intentionally.")
        return f"%PDF-mock facture {invoice_data['invoice']['invoice_number']}".encode("utf-8")

    async def render_snapshot_pdf(self, snapshot: DocumentSnapshot) -> bytes:
        self.snapshots.append(snapshot)
        return f"%PDF-mock {snapshot.title}".encode("utf-8")

@pytest.fixture
def mock_pdf_generator() -> MockPDFGenerator:
    return MockPDFGenerator()

# --- Client HTTP ---

@pytest_asyncio.fixture(scope="function")
async def test_client(
    session_factory: sessionmaker,
    payment_processor: FakePaymentProcessor,
    mock_pdf_generator: MockPDFGenerator,
) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient httpx sur l'application, base de test et prestataires simulés."""
    async def override_get_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_get_db_session
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_payment_processor] = lambda: payment_processor
    app.dependency_overrides[get_pdf_generator] = lambda: mock_pdf_generator
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()

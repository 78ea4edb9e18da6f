import os
import tempfile

# CRITICAL: Set environment variables BEFORE any inquiry_service imports
# These must be set before inquiry_service.config.settings is loaded
_TEST_DB_PATH = os.path.join(tempfile.gettempdir(), "test_inquiries.db")
os.environ["SECRET_KEY"] = "test-secret-key-1234567890"
os.environ["DATABASE_URL"] = f"sqlite+pysqlite:///{_TEST_DB_PATH}"
os.environ["ENVIRONMENT"] = "test"
os.environ["API_V1_STR"] = "/api"  # Ensure /api prefix is used in tests
os.environ["NOTIFICATIONS_EMAIL_ENABLED"] = "false"
os.environ["SUPER_ADMIN_ID"] = "999"
os.environ.pop("CATALOG_BASE_URL", None)
os.environ.pop("INQUIRY_MODERATION_ENABLED", None)

import pytest
from sqlalchemy.orm import sessionmaker

# Now import app modules - they will use the test DATABASE_URL
from inquiry_service.config import settings
from inquiry_service.database import Base, engine as app_engine, get_db
from inquiry_service.main import app
from inquiry_service.models import RoleName
from inquiry_service.services.catalog import ProductInfo
from inquiry_service.services.identity import Principal
from inquiry_service.services.inquiry_lifecycle import InquiryLifecycle
from inquiry_service.services.notifications import NotificationDispatcher

# Use the same engine that the app uses
TEST_ENGINE = app_engine

TestingSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, bind=TEST_ENGINE, future=True
)


def override_get_db():
    """Test database session that uses the test engine."""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(scope="function", autouse=True)
def setup_test_database():
    """
    Create all tables before each test and drop them after.
    Also restores dependency overrides and any settings a test flipped.
    """
    original_overrides = dict(app.dependency_overrides)
    original_moderation = settings.inquiry_moderation_enabled

    Base.metadata.drop_all(bind=TEST_ENGINE)
    Base.metadata.create_all(bind=TEST_ENGINE)

    yield

    app.dependency_overrides.clear()
    app.dependency_overrides.update(original_overrides)
    settings.inquiry_moderation_enabled = original_moderation

    Base.metadata.drop_all(bind=TEST_ENGINE)


@pytest.fixture
def db_session():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


class RecordingHook:
    """Post-commit hook that keeps every notice it receives."""

    name = "recording"

    def __init__(self):
        self.notices = []

    def __call__(self, notice):
        self.notices.append(notice)

    def kinds_for(self, role: RoleName, recipient_id: int) -> list[str]:
        return [
            n.kind
            for n in self.notices
            if n.recipient_role == role and n.recipient_id == recipient_id
        ]


class FakeCatalog:
    def __init__(self, products=None, *, error=None):
        self.products = dict(products or {})
        self.error = error
        self.calls = []

    def __call__(self, product_id: int) -> ProductInfo:
        self.calls.append(product_id)
        if self.error is not None:
            raise self.error
        return self.products[product_id]


BUYER_ID = 10
SUPPLIER_ID = 20
OTHER_SUPPLIER_ID = 21
ADMIN_ID = 1
PRODUCT_ID = 500


@pytest.fixture
def buyer() -> Principal:
    return Principal(id=BUYER_ID, role=RoleName.buyer, email_verified=True, approved=True)


@pytest.fixture
def supplier() -> Principal:
    return Principal(id=SUPPLIER_ID, role=RoleName.supplier, email_verified=True, approved=True)


@pytest.fixture
def other_supplier() -> Principal:
    return Principal(
        id=OTHER_SUPPLIER_ID, role=RoleName.supplier, email_verified=True, approved=True
    )


@pytest.fixture
def admin() -> Principal:
    return Principal(id=ADMIN_ID, role=RoleName.admin, email_verified=True, approved=True)


@pytest.fixture
def recorder() -> RecordingHook:
    return RecordingHook()


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog(
        {PRODUCT_ID: ProductInfo(product_id=PRODUCT_ID, supplier_id=SUPPLIER_ID, min_order_quantity=50)}
    )


@pytest.fixture
def make_lifecycle(db_session, recorder, catalog):
    """Build an engine over the test session with inline, recorded notifications."""

    def _make(*, db=None, dispatcher=None, catalog_override=None, **setting_updates):
        cfg = settings.model_copy(update=setting_updates) if setting_updates else settings
        return InquiryLifecycle(
            db if db is not None else db_session,
            dispatcher=dispatcher or NotificationDispatcher([recorder]),
            catalog=catalog_override or catalog,
            settings=cfg,
        )

    return _make


@pytest.fixture
def lifecycle(make_lifecycle) -> InquiryLifecycle:
    return make_lifecycle()

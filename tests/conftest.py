"""
Pytest configuration and shared fixtures for the recommendation engine tests.
"""
import os
import sys
from typing import Callable, List
from unittest.mock import MagicMock

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), "src"))

# Load environment variables
from dotenv import load_dotenv
load_dotenv(os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env"))

# Keep tests off the network regardless of the developer's .env
for _key in ("AI_API_KEY", "OPENAI_API_KEY", "ANTHROPIC_API_KEY", "CATALOG_PATH", "REFERENCE_DATA_PATH"):
    os.environ.pop(_key, None)


# ============================================================================
# Fixtures: Test Data Factories
# ============================================================================

@pytest.fixture
def make_item() -> Callable:
    """Factory for CatalogItem with sensible defaults."""
    from recs.models import CatalogItem

    def _make(item_id: str, **fields):
        fields.setdefault("title", f"Item {item_id}")
        fields.setdefault("price", 20.0)
        return CatalogItem(id=item_id, **fields)

    return _make


@pytest.fixture
def make_event() -> Callable:
    """Factory for InteractionEvent; ``kind`` accepts the wire names."""
    from recs.models import InteractionEvent

    def _make(kind: str, timestamp: float, product_id=None, **fields):
        return InteractionEvent(kind=kind, timestamp=timestamp, product_id=product_id, **fields)

    return _make


@pytest.fixture
def sample_catalog(make_item) -> List:
    """Small storefront catalog covering every signal."""
    return [
        make_item(
            "product-1", title="Oyster Mushroom Kit", product_type="Kits",
            vendor="FungiCo", tags=["beginner", "featured"], price=40.0,
            collections=["kits"],
        ),
        make_item(
            "product-2", title="Lion's Mane Kit", product_type="Kits",
            vendor="FungiCo", tags=["trending", "beginner"], price=45.0,
            collections=["kits"],
        ),
        make_item(
            "product-3", title="Shiitake Log", product_type="Logs",
            vendor="WoodWorks", tags=["sale"], price=30.0, compare_at_price=40.0,
            collections=["logs"],
        ),
        make_item(
            "product-4", title="Sterile Substrate", product_type="Supplies",
            vendor="LabGrow", tags=["popular"], price=15.0,
            available_for_sale=False,
        ),
        make_item(
            "product-5", title="Grow Tent", product_type="Equipment",
            vendor="LabGrow", tags=["premium", "detailed"], price=120.0,
        ),
    ]


@pytest.fixture
def impulse_events(make_event) -> List:
    """Fast hovers and two cart adds: classifies as impulse_buyer."""
    return [
        make_event("view", 1_000, "product-1"),
        make_event("hover_end", 1_500, "product-1", duration_ms=400),
        make_event("cart_add", 2_000, "product-1"),
        make_event("hover_end", 2_500, "product-2", duration_ms=600),
        make_event("cart_add", 3_000, "product-2"),
    ]


# ============================================================================
# Fixtures: Settings & Services
# ============================================================================

@pytest.fixture
def test_settings():
    """Settings with no providers configured."""
    from config.settings import get_settings_for_testing
    return get_settings_for_testing()


@pytest.fixture
def rules_only_pipeline():
    """Pipeline on the built-in reference data, no remote inference."""
    from recs.inference import InferenceChain
    from recs.pipeline import RecommendationPipeline
    return RecommendationPipeline(inference=InferenceChain(providers=[]))


@pytest.fixture
def session_manager():
    """Session manager with the rule-based analyzer."""
    from services.session_manager import SessionManager
    return SessionManager(debounce_seconds=0.0)


@pytest.fixture
def mock_provider():
    """Inference provider stub; configure ``classify`` per test."""
    provider = MagicMock()
    provider.name = "mock"
    return provider


# ============================================================================
# Fixtures: FastAPI Test Client
# ============================================================================

@pytest.fixture
def app(rules_only_pipeline, session_manager, sample_catalog):
    """FastAPI application with engine dependencies overridden."""
    from api.app import create_app
    from recs.catalog import InMemoryCatalog, get_catalog
    from recs.pipeline import get_pipeline
    from services.session_manager import get_session_manager

    application = create_app()
    catalog = InMemoryCatalog(sample_catalog)
    application.dependency_overrides[get_pipeline] = lambda: rules_only_pipeline
    application.dependency_overrides[get_session_manager] = lambda: session_manager
    application.dependency_overrides[get_catalog] = lambda: catalog
    return application


@pytest.fixture
def client(app):
    """Synchronous test client (lifespan not run)."""
    from fastapi.testclient import TestClient
    return TestClient(app)


@pytest.fixture(autouse=True)
def reset_singletons():
    """Drop module singletons so tests never share engine state."""
    yield
    from recs.catalog import reset_catalog
    from recs.pipeline import reset_pipeline
    from services.session_manager import reset_session_manager
    reset_catalog()
    reset_pipeline()
    reset_session_manager()


# ============================================================================
# Markers auto-use
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "slow: marks tests as slow")

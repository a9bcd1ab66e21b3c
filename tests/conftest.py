"""Shared fixtures for mealplanner tests."""

import os

# Settings are read at import time; keep tests off real databases and providers
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ["OPENROUTER_API_KEY"] = ""
os.environ["OPENAI_API_KEY"] = ""
os.environ["SENTRY_DSN"] = ""
os.environ["ENVIRONMENT"] = "test"

import json
import uuid

import pytest
import respx
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from mealplanner.db.database import Base
from mealplanner.errors import PersistenceConflict
from mealplanner.models import Household
from mealplanner.models.extracted import CatalogIngredient
from mealplanner.services import url_guard
from mealplanner.services.llm_client import LLMService
from mealplanner.services.store import HouseholdStore

PUBLIC_ADDRESS = "93.184.216.34"


# ============================================================
# Network
# ============================================================

@pytest.fixture(autouse=True)
def public_dns(monkeypatch):
    """Resolve every hostname to a public address unless a test overrides it."""
    async def resolve(hostname, port):
        return [PUBLIC_ADDRESS]

    monkeypatch.setattr(url_guard, "_resolve_addresses", resolve)
    return resolve


@pytest.fixture
def mock_httpx():
    """Activate respx mock for HTTP requests."""
    with respx.mock(assert_all_called=False) as respx_mock:
        yield respx_mock


# ============================================================
# Text completion
# ============================================================

class FakeCompletionClient(LLMService):
    """LLMService whose complete() replays queued responses and records prompts."""

    def __init__(self, responses=None):
        super().__init__(openrouter_api_key="test-key", openai_api_key="", timeout=1)
        self.responses = list(responses or [])
        self.prompts = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self.responses:
            raise AssertionError("Unexpected text-completion call")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if not isinstance(response, str):
            response = json.dumps(response)
        return response


@pytest.fixture
def fake_llm():
    return FakeCompletionClient()


# ============================================================
# In-memory store
# ============================================================

class FakeStore:
    """
    Minimal in-memory catalog with the reconciliation-facing store interface.

    conflict_names simulates a concurrent import winning the insert race:
    the first create of such a name raises PersistenceConflict after the
    "other" import's row has appeared in the catalog.
    """

    def __init__(self, catalog=None, conflict_names=(), vanish_on_conflict=False):
        self.catalog = list(catalog or [])
        self.conflict_names = {name.lower() for name in conflict_names}
        self.vanish_on_conflict = vanish_on_conflict
        self.created = []

    async def create_ingredient(self, name):
        if name.lower() in self.conflict_names:
            self.conflict_names.discard(name.lower())
            if not self.vanish_on_conflict:
                self.catalog.append(CatalogIngredient(id=uuid.uuid4(), name=name))
            raise PersistenceConflict(f"Ingredient \"{name}\" already exists")
        if any(entry.name.lower() == name.lower() for entry in self.catalog):
            raise PersistenceConflict(f"Ingredient \"{name}\" already exists")
        entry = CatalogIngredient(id=uuid.uuid4(), name=name)
        self.catalog.append(entry)
        self.created.append(entry)
        return entry

    async def find_ingredient_by_name(self, name):
        for entry in self.catalog:
            if entry.name.strip().lower() == name.strip().lower():
                return entry
        return None


@pytest.fixture
def fake_store():
    return FakeStore()


# ============================================================
# Database
# ============================================================

@pytest.fixture
async def db_engine(tmp_path):
    """File-backed SQLite engine with the full schema."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")

    # Let SQLAlchemy own transaction boundaries so SAVEPOINT works on SQLite
    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine):
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest.fixture
async def household(db_session):
    household = Household(name="Test Household")
    db_session.add(household)
    await db_session.commit()
    return household


@pytest.fixture
async def store(db_session, household):
    return HouseholdStore(db_session, household.id)


# ============================================================
# Sample pages
# ============================================================

def jsonld_page(recipe: dict, wrap_graph: bool = False) -> str:
    """Build a recipe page with one JSON-LD block."""
    data = {"@context": "https://schema.org", "@graph": [recipe]} if wrap_graph else recipe
    return f"""<html>
<head>
<title>{recipe.get("name", "Recipe")}</title>
<script type="application/ld+json">{json.dumps(data)}</script>
</head>
<body><h1>{recipe.get("name", "Recipe")}</h1></body>
</html>"""


@pytest.fixture
def pancake_page():
    return jsonld_page({
        "@context": "https://schema.org",
        "@type": "Recipe",
        "name": "Simple Pancakes",
        "description": "Fluffy weekend pancakes.",
        "recipeCategory": "Breakfast",
        "recipeCuisine": ["American"],
        "recipeIngredient": ["2 cups flour", "1 tsp salt"],
    })


@pytest.fixture
def plain_page():
    """A recipe page without structured data."""
    return """<html>
<head><title>Grandma's Trail Mix</title><style>body { color: red; }</style></head>
<body>
<nav><a href="/">Home</a></nav>
<article>
<h1>Grandma's Trail Mix</h1>
<ul><li>2 cups peanuts</li><li>1 cup raisins</li></ul>
</article>
<div class="comments-area"><p>Great recipe!</p></div>
<footer>Copyright</footer>
</body>
</html>"""

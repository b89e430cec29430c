"""
Shared pytest fixtures for the Workflow Configuration Studio test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - catalog_data: the bundled sample catalogue as a dict
    - seeded_catalog: catalogue rows upserted into the test database
    - metadata: get_metadata payload of application 1
    - make_catalog: builds an engine Catalog from a catalogue dict
    - catalog: engine Catalog for application 1 (no database)
    - store: empty ConfigStore
"""

import json

import pytest

from wfconfig import create_app
from wfconfig.engine.catalog import Catalog
from wfconfig.engine.store import ConfigStore
from wfconfig.models import db as _db
from wfconfig.services.catalog_service import BUNDLED_CATALOG

# Application used by most engine tests:
#   stage 10 Pre-Close   → 100 Load Feeds, 101 Upload P&L Extract
#   stage 11 Close       → 110 Run P&L, 111 Variance Review
#   stage 12 Post-Close  → 120 Controller Sign-off
APP_ID = 1


def _sample_catalog() -> dict:
    with open(BUNDLED_CATALOG, encoding="utf-8") as fh:
        return json.load(fh)


def metadata_for(data: dict, app_id: int = APP_ID) -> dict:
    """Shape the catalogue dict like ``catalog_service.get_metadata``."""
    app = next(a for a in data["applications"] if a["id"] == app_id)
    stages = [s for s in data["stages"] if s["application_id"] == app_id]
    stage_ids = {s["id"] for s in stages}
    return {
        "application": app,
        "stages": stages,
        "substages": [s for s in data["substages"] if s.get("default_stage_id") in stage_ids],
        "parameters": data["parameters"],
        "attestations": data["attestations"],
    }


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Catalogue fixtures ───────────────────────────────────────────────────


@pytest.fixture()
def catalog_data():
    """Fresh copy of the bundled sample catalogue."""
    return _sample_catalog()


@pytest.fixture()
def seeded_catalog(catalog_data):
    """Upsert the sample catalogue into the test database."""
    from wfconfig.services.catalog_service import load_catalog

    load_catalog(catalog_data)
    return catalog_data


@pytest.fixture()
def metadata(catalog_data):
    """``get_metadata`` payload of application 1."""
    return metadata_for(catalog_data)


@pytest.fixture()
def make_catalog():
    """Build an engine Catalog from a catalogue dict."""
    def _make(data, app_id=APP_ID):
        return Catalog.from_metadata(metadata_for(data, app_id))
    return _make


@pytest.fixture()
def catalog(catalog_data, make_catalog):
    """Engine catalogue of application 1, built without the database."""
    return make_catalog(catalog_data)


@pytest.fixture()
def store():
    return ConfigStore()

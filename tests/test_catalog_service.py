"""
Tests: catalog_service — metadata read and catalogue seeding.

Covers:
    1.  load_catalog creates every section and is idempotent on re-run
    2.  Upsert updates existing rows by id
    3.  Invalid parameter type / missing id rejected and rolled back
    4.  get_metadata scopes stages and substages to the application
    5.  get_metadata unknown application → NotFoundError
    6.  list_applications hides inactive applications by default
    7.  The bundled sample catalogue loads from JSON

All test data created via the service itself.
The `session` autouse fixture rolls back after every test.
"""

import pytest
from sqlalchemy import func, select

from wfconfig.core.exceptions import NotFoundError, ValidationError
from wfconfig.models import db
from wfconfig.models.catalog import WorkflowApplication, WorkflowStage, WorkflowSubstage
from wfconfig.services import catalog_service


def _count(model):
    return db.session.execute(select(func.count(model.id))).scalar()


class TestLoadCatalog:
    def test_creates_every_section(self, catalog_data):
        counts = catalog_service.load_catalog(catalog_data)

        assert counts["created"] == {
            "applications": 2, "stages": 5, "substages": 7, "parameters": 5, "attestations": 2,
        }
        assert _count(WorkflowSubstage) == 7

    def test_idempotent(self, catalog_data):
        catalog_service.load_catalog(catalog_data)
        counts = catalog_service.load_catalog(catalog_data)

        assert sum(counts["created"].values()) == 0
        assert counts["updated"]["stages"] == 5
        assert _count(WorkflowStage) == 5

    def test_upsert_updates_by_id(self, seeded_catalog):
        catalog_service.load_catalog({"stages": [{"id": 10, "name": "Pre-Close (T-1)", "application_id": 1}]})

        assert db.session.get(WorkflowStage, 10).name == "Pre-Close (T-1)"

    def test_mappings_stored_as_id_lists(self, seeded_catalog):
        substage = db.session.get(WorkflowSubstage, 101)
        assert substage.param_mapping == "1,3"
        assert substage.to_dict()["param_mapping"] == [1, 3]

    def test_invalid_param_type_rolled_back(self, catalog_data):
        catalog_data["parameters"].append({"id": 9, "name": "bad", "param_type": "blob"})

        with pytest.raises(ValidationError):
            catalog_service.load_catalog(catalog_data)

        assert _count(WorkflowApplication) == 0

    def test_missing_id_rejected(self):
        with pytest.raises(ValidationError):
            catalog_service.load_catalog({"applications": [{"name": "No id"}]})

    def test_missing_required_field_rejected(self):
        with pytest.raises(ValidationError):
            catalog_service.load_catalog({"stages": [{"id": 1, "name": "Orphan"}]})

    def test_empty_catalog_rejected(self):
        with pytest.raises(ValidationError):
            catalog_service.load_catalog({"nothing": []})

    def test_bundled_catalog_loads(self):
        counts = catalog_service.load_catalog_from_json()
        assert counts["created"]["applications"] == 2


class TestReadCatalog:
    def test_metadata_scoped_to_application(self, seeded_catalog):
        meta = catalog_service.get_metadata(2)

        assert meta["application"]["app_id"] == 2
        assert [s["stage_id"] for s in meta["stages"]] == [20, 21]
        assert [s["substage_id"] for s in meta["substages"]] == [200, 210]
        assert len(meta["parameters"]) == 5
        assert len(meta["attestations"]) == 2

    def test_metadata_unknown_application(self, seeded_catalog):
        with pytest.raises(NotFoundError):
            catalog_service.get_metadata(999)

    def test_list_applications_active_only(self, seeded_catalog):
        db.session.get(WorkflowApplication, 2).is_active = False
        db.session.commit()

        assert [a.id for a in catalog_service.list_applications()] == [1]
        assert len(catalog_service.list_applications(active_only=False)) == 2

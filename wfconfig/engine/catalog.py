"""Read-only metadata snapshot for one application, with lookup helpers."""

from __future__ import annotations

import logging

from wfconfig.engine.records import (
    Application,
    AttestationDef,
    ParameterDef,
    StageTemplate,
    SubstageTemplate,
)

logger = logging.getLogger(__name__)


class Catalog:
    """Stages, substage templates, parameters and attestations of an application."""

    def __init__(
        self,
        application: Application | None = None,
        stages: list[StageTemplate] | None = None,
        substages: list[SubstageTemplate] | None = None,
        parameters: list[ParameterDef] | None = None,
        attestations: list[AttestationDef] | None = None,
    ):
        self.application = application
        self.stages = list(stages or [])
        self.substages = list(substages or [])
        self.parameters = list(parameters or [])
        self.attestations = list(attestations or [])

        self._stages = {s.stage_id: s for s in self.stages}
        self._substages = {s.substage_id: s for s in self.substages}
        self._parameters = {p.param_id: p for p in self.parameters}
        self._attestations = {a.attestation_id: a for a in self.attestations}

    @classmethod
    def from_metadata(cls, data: dict | None) -> Catalog:
        """Build from the ``get_metadata`` payload."""
        data = data or {}
        app = data.get("application")
        catalog = cls(
            application=Application.from_dict(app) if app else None,
            stages=[StageTemplate.from_dict(s) for s in data.get("stages") or []],
            substages=[SubstageTemplate.from_dict(s) for s in data.get("substages") or []],
            parameters=[ParameterDef.from_dict(p) for p in data.get("parameters") or []],
            attestations=[AttestationDef.from_dict(a) for a in data.get("attestations") or []],
        )
        logger.debug(
            "Catalog loaded: %d stages, %d substages, %d parameters, %d attestations",
            len(catalog.stages), len(catalog.substages),
            len(catalog.parameters), len(catalog.attestations),
        )
        return catalog

    # ── Lookups ──────────────────────────────────────────────────────────

    def stage(self, stage_id: int) -> StageTemplate | None:
        return self._stages.get(stage_id)

    def has_stage(self, stage_id: int) -> bool:
        return stage_id in self._stages

    def substage(self, substage_id: int) -> SubstageTemplate | None:
        return self._substages.get(substage_id)

    def parameter(self, param_id: int) -> ParameterDef | None:
        return self._parameters.get(param_id)

    def attestation(self, attestation_id: int) -> AttestationDef | None:
        return self._attestations.get(attestation_id)

    def templates_for_stage(self, stage_id: int) -> list[SubstageTemplate]:
        """Templates whose default stage is *stage_id*, in catalogue order."""
        return [s for s in self.substages if s.default_stage_id == stage_id]

    def _mapped_parameters(self, substage: SubstageTemplate) -> list[ParameterDef]:
        params = []
        for param_id in substage.param_mapping:
            param = self._parameters.get(param_id)
            if param is None:
                logger.debug("Substage %s maps unknown parameter %s", substage.substage_id, param_id)
                continue
            params.append(param)
        return params

    def value_parameter_names(self, substage: SubstageTemplate) -> list[str]:
        return [p.name for p in self._mapped_parameters(substage) if not p.is_upload]

    def upload_parameter_names(self, substage: SubstageTemplate) -> list[str]:
        return [p.name for p in self._mapped_parameters(substage) if p.is_upload]

    def __repr__(self):
        app_id = self.application.app_id if self.application else None
        return f"<Catalog app={app_id} stages={len(self.stages)} substages={len(self.substages)}>"

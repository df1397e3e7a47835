from __future__ import annotations

import logging
from typing import Any, List, Optional

from app.errors import ParsingError
from .builder import build_object
from .formatter import Convention, PROJStringFormatter
from .model import Param, Pipeline, Step, parse_pipeline

logger = logging.getLogger(__name__)

# Parameters understood by the builder or passed through to PROJ untouched
KNOWN_PARAMS = {
    "init", "title", "type", "no_defs", "wktext",
    "ellps", "datum", "a", "b", "rf", "f", "R", "towgs84", "pm",
    "units", "to_meter", "vunits", "vto_meter", "axis",
    "lat_0", "lon_0", "lat_1", "lat_2", "lat_ts", "k", "k_0", "x_0", "y_0", "zone", "south", "over",
    "grids", "nadgrids", "geoidgrids", "multiplier",
    "xy_in", "xy_out", "z_in", "z_out", "order",
    "x", "y", "z", "rx", "ry", "rz", "s", "convention", "t_epoch",
    "omit_fwd", "omit_inv", "v_1", "v_2", "v_3", "v_4",
}

DEPRECATED_PARAMS = {
    "wktext": "+wktext has no effect and is ignored",
}


class PROJStringParser:
    """Parse PROJ strings into domain objects.

    ``+init=auth:code`` steps are expanded through the attached registry. With
    PROJ.4 init rules the expansion is silent; without them it still happens
    but is reported as deprecated syntax.
    """

    def __init__(self) -> None:
        self._db = None
        self._use_proj4_init_rules = False
        self._strict = False
        self._warnings: List[str] = []

    def attach_database_context(self, context: Any) -> "PROJStringParser":
        self._db = context
        return self

    def set_use_proj4_init_rules(self, flag: bool) -> "PROJStringParser":
        self._use_proj4_init_rules = bool(flag)
        return self

    def set_strict(self, strict: bool) -> "PROJStringParser":
        self._strict = bool(strict)
        return self

    @property
    def database_context(self) -> Optional[Any]:
        return self._db

    def warning_list(self) -> List[str]:
        return list(self._warnings)

    def emit_warning(self, msg: str) -> None:
        if self._strict:
            raise ParsingError(msg)
        logger.debug("proj string warning: %s", msg)
        self._warnings.append(msg)

    def parse_pipeline(self, text: str) -> Pipeline:
        """Tokenize and group ``text`` into steps, expanding ``+init`` and checking names."""
        if not isinstance(text, str):
            raise ParsingError("PROJ string input must be a string")
        raw = parse_pipeline(text)
        steps = []
        for step in raw.steps:
            merged = Step(step.name, step.inverted, list(step.params) + list(raw.global_params))
            if merged.has_param("init"):
                merged = self._expand_init(merged)
            self._check_params(merged)
            steps.append(merged)
        return Pipeline(steps=steps)

    def create_from_proj_string(self, text: str):
        self._warnings = []
        pipeline = self.parse_pipeline(text)
        return build_object(pipeline)

    def _check_params(self, step: Step) -> None:
        for p in step.params:
            if p.name in DEPRECATED_PARAMS:
                self.emit_warning(DEPRECATED_PARAMS[p.name])
            elif p.name not in KNOWN_PARAMS:
                self.emit_warning(f"unknown parameter +{p.name} in step {step.name or 'init'}")

    def _expand_init(self, step: Step) -> Step:
        from registry.factory import AuthorityFactory

        init = step.get_param("init")
        ref = init.value_text() or ""
        auth, sep, code = ref.partition(":")
        if not sep or not auth or not code:
            raise ParsingError(f"+init={ref}: expected authority:code")
        if self._db is None:
            raise ParsingError(f"+init={ref} requires a database context")
        if not self._use_proj4_init_rules:
            self.emit_warning(f"+init={ref} is deprecated syntax; use the {auth.upper()}:{code} identifier instead")

        crs = AuthorityFactory.create(self._db, auth.upper()).create_coordinate_reference_system(code)
        fmt = PROJStringFormatter(Convention.PROJ_4, self._db).set_add_no_defs(False)
        expanded = parse_pipeline(crs.export_to_proj_string(fmt)).steps[0]

        # explicit parameters override the ones coming from the definition
        params: List[Param] = list(expanded.params)
        for p in step.params:
            if p.name == "init":
                continue
            for i, existing in enumerate(params):
                if existing.name == p.name:
                    params[i] = p
                    break
            else:
                params.append(p)
        name = step.name or expanded.name
        return Step(name, step.inverted, params)


__all__ = ["PROJStringParser", "KNOWN_PARAMS", "DEPRECATED_PARAMS"]

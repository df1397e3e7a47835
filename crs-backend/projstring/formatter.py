"""Builder of PROJ strings.

Exporters append steps and parameters; ``start_inversion``/``stop_inversion``
bracket a region that is rendered as the algebraic inverse of what was added
inside it (step order reversed, every ``+inv`` flag flipped). Regions nest.
"""
from __future__ import annotations

import enum
import logging
from contextlib import contextmanager
from typing import Any, Iterator, List, Optional, Set

from app.errors import FormattingError
from .model import GRID_PARAM_NAMES, Param, ParamValue, Step, parse_pipeline

logger = logging.getLogger(__name__)


class Convention(str, enum.Enum):
    PROJ_5 = "PROJ_5"
    PROJ_4 = "PROJ_4"


def _is_swap_2_1(step: Step) -> bool:
    return step.name == "axisswap" and step.param_value("order") == "2,1"


def _forward_form(step: Step) -> Step:
    """Inverted unitconvert / 2,1 axisswap rewritten as the equivalent forward step."""
    if not step.inverted:
        return step
    if _is_swap_2_1(step):
        return Step(step.name, False, step.params)
    if step.name == "unitconvert":
        swapped = []
        for p in step.params:
            name = p.name
            if name.endswith("_in"):
                name = name[:-3] + "_out"
            elif name.endswith("_out"):
                name = name[:-4] + "_in"
            swapped.append(Param(name, p.value))
        swapped.sort(key=lambda p: p.name.endswith("_out"))
        return Step(step.name, False, swapped)
    return step


class PROJStringFormatter:
    def __init__(self, convention: Convention = Convention.PROJ_5, database_context: Optional[Any] = None):
        self._convention = Convention(convention)
        self._db = database_context
        self._steps: List[Step] = []
        self._inversion_stack: List[int] = []
        self._use_etmerc_for_tmerc = False
        self._add_no_defs = True
        self._optimize = False

    @classmethod
    def create(cls, convention: Convention = Convention.PROJ_5, database_context: Optional[Any] = None) -> "PROJStringFormatter":
        return cls(convention, database_context)

    @property
    def convention(self) -> Convention:
        return self._convention

    @property
    def database_context(self) -> Optional[Any]:
        return self._db

    def set_use_etmerc_for_tmerc(self, flag: bool) -> "PROJStringFormatter":
        self._use_etmerc_for_tmerc = bool(flag)
        return self

    def use_etmerc_for_tmerc(self) -> bool:
        return self._use_etmerc_for_tmerc

    def set_add_no_defs(self, flag: bool) -> "PROJStringFormatter":
        self._add_no_defs = bool(flag)
        return self

    def get_add_no_defs(self) -> bool:
        return self._add_no_defs

    def set_coordinate_operation_optimizations(self, flag: bool) -> "PROJStringFormatter":
        self._optimize = bool(flag)
        return self

    # ---- steps -----------------------------------------------------------

    def add_step(self, name: str) -> None:
        self._steps.append(Step(name))

    def set_current_step_inverted(self, inverted: bool) -> None:
        self._current().inverted = bool(inverted)

    def add_param(self, name: str, value: ParamValue = None) -> None:
        if isinstance(value, bool):
            raise TypeError(f"boolean value for +{name}; add it as a flag instead")
        if isinstance(value, (list, tuple)):
            value = tuple(float(v) for v in value)
        self._current().params.append(Param(name, value))

    def has_param(self, name: str) -> bool:
        return bool(self._steps) and self._steps[-1].has_param(name)

    def _current(self) -> Step:
        if not self._steps:
            raise RuntimeError("add_step() must be called before adding parameters")
        return self._steps[-1]

    def ingest_proj_string(self, text: str) -> None:
        """Append the steps of an existing PROJ string (global params folded into each step)."""
        pipeline = parse_pipeline(text)
        logger.debug("ingesting %d step(s) from PROJ string", len(pipeline.steps))
        for step in pipeline.steps:
            self._steps.append(
                Step(step.name, step.inverted, list(step.params) + list(pipeline.global_params))
            )

    # ---- inversion -------------------------------------------------------

    def start_inversion(self) -> None:
        self._inversion_stack.append(len(self._steps))

    def stop_inversion(self) -> None:
        if not self._inversion_stack:
            raise RuntimeError("stop_inversion() without matching start_inversion()")
        start = self._inversion_stack.pop()
        region = self._steps[start:]
        region.reverse()
        for step in region:
            step.inverted = not step.inverted
        self._steps[start:] = region

    @contextmanager
    def inverted(self) -> Iterator[None]:
        self.start_inversion()
        try:
            yield
        finally:
            self.stop_inversion()

    def is_inverted(self) -> bool:
        return bool(self._inversion_stack)

    # ---- output ----------------------------------------------------------

    def steps(self) -> List[Step]:
        return [Step(s.name, s.inverted, list(s.params)) for s in self._steps]

    def get_used_grid_names(self) -> Set[str]:
        names: Set[str] = set()
        for step in self._steps:
            for p in step.params:
                if p.name not in GRID_PARAM_NAMES or p.value is None:
                    continue
                for g in str(p.value).split(","):
                    g = g.strip().lstrip("@")
                    if g and g != "null":
                        names.add(g)
        return names

    def _optimized_steps(self) -> List[Step]:
        out: List[Step] = []
        for step in self.steps():
            # a 2,1 axis swap is its own inverse
            if out and (out[-1].is_inverse_of(step) or (_is_swap_2_1(out[-1]) and _is_swap_2_1(step))):
                out.pop()
                continue
            out.append(step)
        return [_forward_form(s) for s in out]

    def to_string(self) -> str:
        if self._inversion_stack:
            raise RuntimeError("PROJStringFormatter.to_string() called inside an inversion")
        steps = self._optimized_steps() if self._optimize else self.steps()
        if not steps:
            return ""
        if self._convention is Convention.PROJ_4:
            if len(steps) > 1 or steps[0].inverted:
                raise FormattingError("a multi-step or inverted operation cannot be expressed as a PROJ.4 string")
            return steps[0].render()
        if len(steps) == 1 and not steps[0].inverted:
            return steps[0].render()
        parts = ["+proj=pipeline"]
        for step in steps:
            parts.append("+step")
            if step.inverted:
                parts.append("+inv")
            parts.append(step.render())
        return " ".join(parts)

    __str__ = to_string


__all__ = [
    "Convention",
    "PROJStringFormatter",
]

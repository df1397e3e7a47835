"""In-memory form of a PROJ string and the token grammar behind it.

    string   := token (WS token)*
    token    := '+' NAME ('=' VALUE)?
    pipeline := '+proj=pipeline' global_param* ('+step' '+inv'? step_param*)+

A value may be double quoted to carry spaces (``+title="my crs"``).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, Union

from app.errors import ParsingError
from wkt.formatter import format_number

ParamValue = Union[None, str, int, float, Tuple[float, ...]]

GRID_PARAM_NAMES = ("grids", "nadgrids", "geoidgrids")


@dataclass
class Param:
    name: str
    value: ParamValue = None

    @property
    def is_flag(self) -> bool:
        return self.value is None

    def value_text(self) -> Optional[str]:
        v = self.value
        if v is None:
            return None
        if isinstance(v, tuple):
            return ",".join(format_number(x) for x in v)
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return format_number(v)
        return str(v)

    def render(self) -> str:
        text = self.value_text()
        if text is None:
            return f"+{self.name}"
        if any(c.isspace() for c in text):
            text = '"' + text.replace('"', '""') + '"'
        return f"+{self.name}={text}"


@dataclass
class Step:
    """One operation of a pipeline. ``name`` is the ``+proj=`` value ("" for an ``+init`` step)."""

    name: str
    inverted: bool = False
    params: List[Param] = field(default_factory=list)

    def get_param(self, name: str) -> Optional[Param]:
        for p in self.params:
            if p.name == name:
                return p
        return None

    def has_param(self, name: str) -> bool:
        return self.get_param(name) is not None

    def param_value(self, name: str) -> Optional[str]:
        p = self.get_param(name)
        return None if p is None else p.value_text()

    def render(self) -> str:
        parts = [f"+proj={self.name}"] if self.name else []
        parts.extend(p.render() for p in self.params)
        return " ".join(parts)

    def is_inverse_of(self, other: "Step") -> bool:
        return (
            self.name == other.name
            and self.inverted != other.inverted
            and [p.render() for p in self.params] == [p.render() for p in other.params]
        )


@dataclass
class Pipeline:
    steps: List[Step] = field(default_factory=list)
    global_params: List[Param] = field(default_factory=list)

    @property
    def is_pipeline(self) -> bool:
        return len(self.steps) > 1 or any(s.inverted for s in self.steps)


def tokenize(text: str) -> List[str]:
    """Split on whitespace outside double quotes."""
    tokens: List[str] = []
    i, n = 0, len(text)
    while i < n:
        while i < n and text[i].isspace():
            i += 1
        if i >= n:
            break
        start = i
        in_quote = False
        while i < n and (in_quote or not text[i].isspace()):
            if text[i] == '"':
                in_quote = not in_quote
            i += 1
        if in_quote:
            raise ParsingError(f"unbalanced double quote in token starting at offset {start}")
        tokens.append(text[start:i])
    return tokens


def parse_token(token: str) -> Param:
    if not token.startswith("+"):
        raise ParsingError(f"unexpected token {token!r}: parameters start with '+'")
    name, sep, value = token[1:].partition("=")
    if not name:
        raise ParsingError(f"missing parameter name in {token!r}")
    if not sep:
        return Param(name)
    if len(value) >= 2 and value[0] == '"' and value[-1] == '"':
        value = value[1:-1].replace('""', '"')
    return Param(name, value)


def _split_step(params: Sequence[Param], where: str) -> Step:
    step = Step("")
    for p in params:
        if p.name == "proj":
            if p.value in (None, ""):
                raise ParsingError(f"+proj without a value in {where}")
            if p.value == "pipeline":
                raise ParsingError("nested pipelines are not supported")
            if step.name:
                raise ParsingError(f"more than one +proj in {where}")
            step.name = str(p.value)
        elif p.name == "inv" and p.is_flag:
            step.inverted = not step.inverted
        else:
            step.params.append(p)
    if not step.name and not step.has_param("init"):
        raise ParsingError(f"missing +proj in {where}")
    return step


def parse_pipeline(text: str) -> Pipeline:
    """Group the tokens of ``text`` into steps. Raises ParsingError on malformed input."""
    params = [parse_token(t) for t in tokenize(text)]
    if not params:
        raise ParsingError("empty PROJ string")

    is_pipeline = any(p.name == "proj" and p.value == "pipeline" for p in params)
    if not is_pipeline:
        if any(p.name == "step" for p in params):
            raise ParsingError("+step found outside of a +proj=pipeline")
        return Pipeline(steps=[_split_step(params, "PROJ string")])

    pipeline = Pipeline()
    current: Optional[List[Param]] = None
    chunks: List[List[Param]] = []
    seen_pipeline = False
    for p in params:
        if p.name == "proj" and p.value == "pipeline":
            if seen_pipeline or current is not None:
                raise ParsingError("nested pipelines are not supported")
            seen_pipeline = True
        elif p.name == "step":
            if not p.is_flag:
                raise ParsingError("+step does not take a value")
            current = []
            chunks.append(current)
        elif current is None:
            pipeline.global_params.append(p)
        else:
            current.append(p)
    if not chunks:
        raise ParsingError("pipeline without any +step")
    for idx, chunk in enumerate(chunks, start=1):
        pipeline.steps.append(_split_step(chunk, f"step {idx}"))
    return pipeline


__all__ = [
    "GRID_PARAM_NAMES",
    "Param",
    "ParamValue",
    "Step",
    "Pipeline",
    "tokenize",
    "parse_token",
    "parse_pipeline",
]

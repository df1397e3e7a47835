"""HTTP surface of the WKT / PROJ string conversions and registry lookups.

Parsing, formatting and registry queries are blocking; each request runs them
on a worker thread with its own parser, formatter and DatabaseContext, since
none of these objects may be shared between threads.
"""
from __future__ import annotations

import logging
import os
from functools import partial
from typing import Any, Callable, List, Optional, Tuple

import anyio
from fastapi import APIRouter, HTTPException, Query

from app.crs.operations import CoordinateOperation, Transformation
from app.errors import FactoryError, FormattingError, GeoTextError, NoSuchAuthorityCodeError, ParsingError
from app.logging_setup import timed
from app.schemas import (
    ExportResponse,
    GuessResponse,
    OperationsResponse,
    OperationSummary,
    OutputFormat,
    PROJConvertRequest,
    PROJConvertResponse,
    SearchMatch,
    SearchRequest,
    SearchResponse,
    TextRequest,
    TreeNode,
    TreeResponse,
    WKTConvertRequest,
    WKTConvertResponse,
)
from projstring.formatter import Convention as PROJConvention, PROJStringFormatter
from projstring.parser import PROJStringParser
from registry.categories import ObjectType
from registry.context import DatabaseContext
from registry.factory import AuthorityFactory
from wkt.dialect import guess_dialect
from wkt.formatter import Convention as WKTConvention, WKTFormatter
from wkt.node import WKTNode
from wkt.parser import WKTParser, parse_tree

logger = logging.getLogger(__name__)

router = APIRouter()


def _http_error(e: GeoTextError) -> HTTPException:
    if isinstance(e, NoSuchAuthorityCodeError):
        return HTTPException(status_code=404, detail={"error": str(e), "authority": e.authority, "code": e.code})
    if isinstance(e, FactoryError):
        return HTTPException(status_code=400, detail=str(e))
    return HTTPException(status_code=422, detail=str(e))


def _open_registry(required: bool) -> Optional[DatabaseContext]:
    if not os.getenv("GEOTEXT_DB_PATH"):
        if required:
            raise HTTPException(status_code=503, detail="No registry database configured (GEOTEXT_DB_PATH)")
        return None
    try:
        return DatabaseContext.from_env()
    except FactoryError as e:
        raise HTTPException(status_code=503, detail=f"Registry unavailable: {e}")


async def _run(fn: Callable[..., Any], *args: Any) -> Any:
    """Run ``fn`` on a worker thread, translating data errors to HTTP errors."""

    def _call():
        try:
            return fn(*args)
        except GeoTextError as e:
            logger.debug("request failed: %s", e)
            raise _http_error(e) from e

    return await anyio.to_thread.run_sync(_call)


def _to_tree(node: WKTNode) -> TreeNode:
    return TreeNode(value=node.value, children=[_to_tree(c) for c in node.children])


def _parse_ref(ref: str, default_auth: str) -> Tuple[str, str]:
    auth, sep, code = ref.partition(":")
    if not sep:
        auth, code = default_auth, ref
    if not auth or not code:
        raise HTTPException(status_code=422, detail=f"Invalid CRS reference {ref!r}; expected AUTH:CODE")
    return auth, code


def _export(obj: Any, fmt_name: str, db: Optional[DatabaseContext]) -> str:
    if fmt_name.startswith("PROJ"):
        return obj.export_to_proj_string(PROJStringFormatter(PROJConvention(fmt_name), db))
    return obj.export_to_wkt(WKTFormatter(WKTConvention(fmt_name), db))


# ---- WKT -----------------------------------------------------------------


@router.post("/wkt/guess", response_model=GuessResponse)
async def wkt_guess(req: TextRequest) -> GuessResponse:
    return GuessResponse(dialect=guess_dialect(req.text).value)


@router.post("/wkt/tree", response_model=TreeResponse)
async def wkt_tree(req: TextRequest) -> TreeResponse:
    """Bracketed tree of the text, without interpreting keywords."""
    try:
        node, end = parse_tree(req.text)
    except ParsingError as e:
        raise _http_error(e)
    return TreeResponse(tree=_to_tree(node), end=end)


def _convert_wkt(req: WKTConvertRequest) -> WKTConvertResponse:
    db = _open_registry(required=False)
    try:
        parser = WKTParser().set_strict(req.strict)
        if db is not None:
            parser.attach_database_context(db)
        with timed(logger, "wkt.convert", convention=req.convention) as log:
            obj = parser.create_from_wkt(req.text)
            formatter = WKTFormatter(WKTConvention(req.convention), db).set_multi_line(req.multiline)
            formatter.set_strict(req.strict)
            wkt = obj.export_to_wkt(formatter)
            log["dialect"] = parser.guess_dialect(req.text).value
            log["warnings"] = len(parser.warning_list())
        return WKTConvertResponse(
            wkt=wkt,
            source_dialect=log["dialect"],
            warnings=parser.warning_list(),
        )
    finally:
        if db is not None:
            db.close()


@router.post("/wkt/convert", response_model=WKTConvertResponse)
async def wkt_convert(req: WKTConvertRequest) -> WKTConvertResponse:
    """Parse WKT in any supported dialect and re-emit it in ``convention``.

    Body schema:
      {"text": "GEOGCS[...]", "convention": "WKT2_2018", "multiline": false, "strict": false}
    """
    return await _run(_convert_wkt, req)


# ---- PROJ strings ----------------------------------------------------------


def _convert_proj(req: PROJConvertRequest) -> PROJConvertResponse:
    db = _open_registry(required=False)
    try:
        parser = PROJStringParser().set_use_proj4_init_rules(req.use_proj4_init_rules)
        if db is not None:
            parser.attach_database_context(db)
        with timed(logger, "proj.convert", convention=req.convention) as log:
            obj = parser.create_from_proj_string(req.text)
            formatter = PROJStringFormatter(PROJConvention(req.convention), db)
            proj_string = obj.export_to_proj_string(formatter)
            log["warnings"] = len(parser.warning_list())
        wkt = None
        if req.wkt_convention:
            wkt = obj.export_to_wkt(WKTFormatter(WKTConvention(req.wkt_convention), db))
        return PROJConvertResponse(
            proj_string=proj_string,
            grids=sorted(formatter.get_used_grid_names()),
            wkt=wkt,
            warnings=parser.warning_list(),
        )
    finally:
        if db is not None:
            db.close()


@router.post("/proj/convert", response_model=PROJConvertResponse)
async def proj_convert(req: PROJConvertRequest) -> PROJConvertResponse:
    return await _run(_convert_proj, req)


# ---- registry --------------------------------------------------------------


def _crs_export(auth: str, code: str, fmt_name: str) -> ExportResponse:
    db = _open_registry(required=True)
    try:
        crs = AuthorityFactory.create(db, auth).create_coordinate_reference_system(code)
        return ExportResponse(authority=auth, code=code, name=crs.name, format=fmt_name, text=_export(crs, fmt_name, db))
    finally:
        db.close()


@router.get("/crs/{auth}/{code}", response_model=ExportResponse)
async def crs_export(auth: str, code: str, format: OutputFormat = Query("WKT2_2018")) -> ExportResponse:
    return await _run(_crs_export, auth, code, format)


def _first_id(obj: Any) -> Tuple[Optional[str], Optional[str]]:
    ids = getattr(obj, "identifiers", ())
    return (ids[0].authority, ids[0].code) if ids else (None, None)


def _search(req: SearchRequest) -> SearchResponse:
    try:
        types = [ObjectType(c.upper()) for c in req.categories]
    except ValueError as e:
        raise HTTPException(status_code=422, detail=f"Unknown category: {e}")
    db = _open_registry(required=True)
    try:
        factory = AuthorityFactory.create(db, req.authority)
        objects = factory.create_objects_from_name(req.name, types, req.approximate, req.limit)
        matches = []
        for obj in objects:
            auth, code = _first_id(obj)
            matches.append(SearchMatch(authority=auth, code=code, name=obj.name, type=type(obj).__name__))
        return SearchResponse(matches=matches)
    finally:
        db.close()


@router.post("/crs/search", response_model=SearchResponse)
async def crs_search(req: SearchRequest) -> SearchResponse:
    return await _run(_search, req)


def _summarize(op: CoordinateOperation, db: DatabaseContext) -> OperationSummary:
    auth, code = _first_id(op)
    formatter = PROJStringFormatter(PROJConvention.PROJ_5, db)
    try:
        proj_string = op.export_to_proj_string(formatter)
        grids = sorted(formatter.get_used_grid_names())
    except FormattingError as e:
        logger.debug("no PROJ string for %s: %s", op.name, e)
        proj_string, grids = None, []
    accuracy = op.accuracy if isinstance(op, Transformation) else None
    return OperationSummary(
        authority=auth, code=code, name=op.name, type=type(op).__name__,
        accuracy=accuracy, proj_string=proj_string, grids=grids,
    )


def _operations(source: str, target: str, auth: str, intermediate: List[str], discard_missing: bool) -> OperationsResponse:
    src = _parse_ref(source, auth)
    dst = _parse_ref(target, auth)
    via = [_parse_ref(ref, auth) for ref in intermediate]
    db = _open_registry(required=True)
    try:
        factory = AuthorityFactory.create(db, auth)
        ops: List[CoordinateOperation] = factory.create_from_coordinate_reference_system_codes(
            src[1], dst[1], src[0], dst[0], discard_if_missing_grid=discard_missing
        )
        if via:
            ops += factory.create_from_crs_codes_with_intermediates(
                src[0], src[1], dst[0], dst[1],
                discard_if_missing_grid=discard_missing,
                intermediate_crs_auth_codes=via,
            )
        logger.info("operations %s -> %s: %d found", source, target, len(ops))
        return OperationsResponse(
            source=f"{src[0]}:{src[1]}",
            target=f"{dst[0]}:{dst[1]}",
            operations=[_summarize(op, db) for op in ops],
        )
    finally:
        db.close()


@router.get("/operations", response_model=OperationsResponse)
async def operations(
    source: str = Query(..., description="AUTH:CODE of the source CRS"),
    target: str = Query(..., description="AUTH:CODE of the target CRS"),
    auth: str = Query("EPSG", description="Authority of the operations"),
    intermediate: List[str] = Query(default=[], description="AUTH:CODE of pivot CRS"),
    discard_missing_grids: bool = False,
) -> OperationsResponse:
    return await _run(partial(_operations, source, target, auth, intermediate, discard_missing_grids))


__all__ = ["router"]

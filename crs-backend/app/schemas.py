from __future__ import annotations

from typing import List, Optional, Literal
from pydantic import BaseModel, Field, ConfigDict, field_validator

WKTConventionName = Literal[
    "WKT2", "WKT2_SIMPLIFIED", "WKT2_2018", "WKT2_2018_SIMPLIFIED", "WKT1_GDAL", "WKT1_ESRI"
]
PROJConventionName = Literal["PROJ_5", "PROJ_4"]
OutputFormat = Literal[
    "WKT2", "WKT2_SIMPLIFIED", "WKT2_2018", "WKT2_2018_SIMPLIFIED", "WKT1_GDAL", "WKT1_ESRI", "PROJ_5", "PROJ_4"
]


class TextRequest(BaseModel):
    text: str

    @field_validator("text")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("'text' must be a non-empty string")
        return v


class GuessResponse(BaseModel):
    dialect: str


class TreeNode(BaseModel):
    """A node of the bracketed text tree; quoted leaves keep their quotes."""

    value: str
    children: List["TreeNode"] = Field(default_factory=list)


class TreeResponse(BaseModel):
    tree: TreeNode
    end: int = Field(description="Offset just past the parsed text")


class WKTConvertRequest(TextRequest):
    convention: WKTConventionName = "WKT2_2018"
    multiline: bool = False
    strict: bool = False

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "text": 'GEOGCS["WGS 84",DATUM["WGS_1984",SPHEROID["WGS 84",6378137,298.257223563]],'
                'PRIMEM["Greenwich",0],UNIT["degree",0.0174532925199433]]',
                "convention": "WKT2_2018",
                "multiline": False,
                "strict": False,
            }
        }
    )


class WKTConvertResponse(BaseModel):
    wkt: str
    source_dialect: str
    warnings: List[str] = Field(default_factory=list)


class PROJConvertRequest(TextRequest):
    convention: PROJConventionName = "PROJ_5"
    use_proj4_init_rules: bool = False
    # also render the parsed object as WKT
    wkt_convention: Optional[WKTConventionName] = None


class PROJConvertResponse(BaseModel):
    proj_string: str
    grids: List[str] = Field(default_factory=list)
    wkt: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)


class ExportResponse(BaseModel):
    authority: str
    code: str
    name: str
    format: OutputFormat
    text: str


class SearchRequest(BaseModel):
    name: str
    categories: List[str] = Field(default_factory=list, description="ObjectType names; empty for all")
    approximate: bool = True
    limit: int = Field(default=10, ge=0, le=500)
    authority: str = "EPSG"


class SearchMatch(BaseModel):
    authority: Optional[str] = None
    code: Optional[str] = None
    name: str
    type: str


class SearchResponse(BaseModel):
    matches: List[SearchMatch] = Field(default_factory=list)


class OperationSummary(BaseModel):
    authority: Optional[str] = None
    code: Optional[str] = None
    name: str
    type: str
    accuracy: Optional[float] = None
    proj_string: Optional[str] = None
    grids: List[str] = Field(default_factory=list)


class OperationsResponse(BaseModel):
    source: str
    target: str
    operations: List[OperationSummary] = Field(default_factory=list)


TreeNode.model_rebuild()

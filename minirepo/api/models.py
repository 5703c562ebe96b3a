from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime, timezone
from typing import List, Optional, Dict, Any, Literal


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


# BASE RESPONSE MODEL
# ==============================================================
class BaseResponse(BaseModel):
    """Common fields of every response"""
    status: bool = Field(True, description="true = success, false = error")
    timestamp: str = Field(default_factory=_utc_now)


# ERROR RESPONSE
# ==============================================================
class ErrorResponse(BaseResponse):
    status: bool = Field(False, description="Always False for errors")
    error_code: str = Field(..., description="Machine readable error code")
    message: str = Field(..., description="Human readable message")
    details: Optional[str] = Field(None, description="Extra details")


# RECORD MODELS
# ==============================================================
# 1. Single record - Response
class RecordResponse(BaseResponse):
    data: Dict[str, Any] = Field(..., description="Record with its resolved relations")

# 2. Paginated list - Response
class PageResponse(BaseResponse):
    data: List[Dict[str, Any]] = Field(default_factory=list, description="Records on this page")
    total: int = Field(..., description="Total record count")
    per_page: int = Field(..., description="Page size")
    current_page: int = Field(..., description="1-based page number")
    last_page: int = Field(..., description="Last page number")
    from_: Optional[int] = Field(None, alias="from", description="Position of the first record on the page")
    to: Optional[int] = Field(None, description="Position of the last record on the page")

    model_config = ConfigDict(populate_by_name=True)


# DATATABLE MODELS (DataTables server-side protocol)
# ==============================================================
class DatatableColumn(BaseModel):
    data: Optional[str] = Field(None, description="Column name")
    name: Optional[str] = None
    searchable: bool = True
    orderable: bool = True

    model_config = ConfigDict(extra="allow")

class DatatableSearch(BaseModel):
    value: str = Field("", description="Global search text")
    regex: bool = False

class DatatableOrder(BaseModel):
    column: int = Field(0, ge=0, description="Index into columns")
    dir: Literal["asc", "desc"] = "asc"

# 1. DataTable - Request
class DatatableRequest(BaseModel):
    draw: Optional[int] = Field(None, description="Echoed back unchanged")
    columns: List[DatatableColumn] = Field(..., min_length=1)
    order: List[DatatableOrder] = Field(default_factory=lambda: [DatatableOrder()], min_length=1)
    start: int = Field(0, ge=0)
    length: int = Field(10, ge=-1, description="-1 returns every filtered record")
    search: DatatableSearch = Field(default_factory=DatatableSearch)

    model_config = ConfigDict(extra="allow")

# 2. DataTable - Response (request echoed back plus results)
class DatatableResponse(DatatableRequest):
    recordsTotal: int = Field(..., description="Row count before filtering")
    recordsFiltered: int = Field(..., description="Row count after the search filter")
    data: List[Dict[str, Any]] = Field(default_factory=list)

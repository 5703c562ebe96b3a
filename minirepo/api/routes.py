from fastapi import APIRouter, Query
from typing import List, Optional
import logging

from ..exceptions import NotFoundError
from .models import DatatableRequest, DatatableResponse, PageResponse, RecordResponse

logger = logging.getLogger(__name__)


def create_repository_router(repository, prefix: str = "", tags: Optional[List[str]] = None) -> APIRouter:
    """
    Read-only REST surface for one repository

    GET  {prefix}/               paginated list (relations resolved)
    GET  {prefix}/{record_id}    one record, 404 when absent
    POST {prefix}/datatable      DataTables server-side processing

    Exception handling is centralized, see register_exception_handlers().
    """
    router = APIRouter(prefix=prefix, tags=tags or [repository.table.upper()])

    @router.get("/", response_model=PageResponse, response_model_by_alias=True)
    def list_records(page: int = Query(1, ge=1), per_page: int = Query(15, ge=1, le=500)):
        """Paginated records"""
        paginator = repository.paginate(limit=per_page, page=page)
        return PageResponse(**paginator.to_dict())

    @router.post("/datatable", response_model=DatatableResponse)
    def datatable(request: DatatableRequest):
        """DataTables server-side processing"""
        result = repository.datatable(request.model_dump())
        return DatatableResponse(**result)

    @router.get("/{record_id}", response_model=RecordResponse)
    def get_record(record_id: str):
        """One record by primary key"""
        record = repository.find(repository.coerce_key(record_id))
        if record is None:
            raise NotFoundError(f"{repository.table} record not found", f"{repository.primary_key}={record_id}")
        return RecordResponse(data=record)

    return router

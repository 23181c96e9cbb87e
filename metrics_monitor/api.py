"""FastAPI application serving persisted host metrics."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse

from .errors import StoreError
from .store import MetricsStore
from .utils import parse_timestamp, utcnow

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def _now() -> str:
    return utcnow().isoformat()


def _respond(status_code: int, body: Dict[str, Any]) -> JSONResponse:
    body["time"] = _now()
    return JSONResponse(status_code=status_code, content=body)


def _parse_int(raw: Optional[str], default: int) -> int:
    try:
        return int(raw) if raw is not None else default
    except ValueError:
        return default


def clamp_page(raw: Optional[str]) -> int:
    return max(1, _parse_int(raw, 1))


def clamp_page_size(raw: Optional[str]) -> int:
    page_size = _parse_int(raw, DEFAULT_PAGE_SIZE)
    if page_size < 1 or page_size > MAX_PAGE_SIZE:
        return DEFAULT_PAGE_SIZE
    return page_size


def get_store(request: Request) -> MetricsStore:
    return request.app.state.store


def _parse_window(start: str, end: str) -> Tuple[Any, Any, Optional[JSONResponse]]:
    try:
        parsed_start = parse_timestamp(start)
    except ValueError as exc:
        logger.warning("Start time parsing error: %s", exc)
        return None, None, _respond(400, {"message": "Invalid start time format", "error": str(exc)})
    try:
        parsed_end = parse_timestamp(end)
    except ValueError as exc:
        logger.warning("End time parsing error: %s", exc)
        return None, None, _respond(400, {"message": "Invalid end time format", "error": str(exc)})
    return parsed_start, parsed_end, None


def create_app(store: MetricsStore) -> FastAPI:
    app = FastAPI(
        title="Metrics Monitor",
        description="Serves host CPU and memory samples collected on a fixed interval.",
        version="0.1.0",
    )
    app.state.store = store

    @app.exception_handler(StoreError)
    async def store_error_handler(_request: Request, exc: StoreError):
        logger.error("Metrics store error: %s", exc)
        return _respond(500, {"message": str(exc)})

    @app.get("/metrics/", summary="Paginated metrics, newest first", tags=["metrics"])
    def list_metrics(
        page: Optional[str] = Query(default=None),
        page_size: Optional[str] = Query(default=None, alias="pageSize"),
        metrics_store: MetricsStore = Depends(get_store),
    ):
        size = clamp_page_size(page_size)
        offset = (clamp_page(page) - 1) * size
        samples, total = metrics_store.list_page(size, offset)
        if not samples:
            return _respond(404, {"message": "No metrics found"})
        return _respond(
            200,
            {"data": [sample.to_dict() for sample in samples], "totalRecords": total},
        )

    @app.get("/metrics", summary="Metrics collected between start and end", tags=["metrics"])
    def metrics_by_time_range(
        start: str = "",
        end: str = "",
        metrics_store: MetricsStore = Depends(get_store),
    ):
        parsed_start, parsed_end, error = _parse_window(start, end)
        if error is not None:
            return error
        samples = metrics_store.list_range(parsed_start, parsed_end)
        if not samples:
            return _respond(404, {"message": "No metrics found in the given time range"})
        return _respond(200, {"data": [sample.to_dict() for sample in samples]})

    @app.get("/metrics/average", summary="Average CPU and memory usage between start and end", tags=["metrics"])
    def average_metrics(
        start: str = "",
        end: str = "",
        metrics_store: MetricsStore = Depends(get_store),
    ):
        parsed_start, parsed_end, error = _parse_window(start, end)
        if error is not None:
            return error
        average = metrics_store.average(parsed_start, parsed_end)
        if average.is_empty:
            return _respond(404, {"message": "No metrics found in the given time range"})
        return _respond(200, {"data": average.to_dict()})

    @app.get("/health", summary="Service health check", tags=["system"])
    async def health():
        return {"status": "ok"}

    return app

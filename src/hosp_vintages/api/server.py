"""
HTTP API for versioned hospital-capacity queries.

Endpoints:
- GET  /covid_hosp_state_timeseries  -> envelope (states, dates, issues as query strings)
- POST /covid_hosp_state_timeseries  -> envelope (same parameters as a JSON body)
- GET  /health                       -> store status

Usage:
    HOSP_VINTAGES_STORE=data/versions.jsonl uvicorn hosp_vintages.api.server:app
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Optional, Union

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..config import STORE_PATH, STORE_PATH_ENV
from ..query.engine import QueryEngine
from ..query.envelope import error_envelope, respond
from ..store.store import VersionStore

logger = logging.getLogger(__name__)

# a date, an "a-b" range string, a [start, end] pair or a {"from", "to"} dict
DateItem = Union[int, str, list[Union[int, str]], dict[str, Union[int, str]]]
DateParam = Union[list[DateItem], int, str]


class QueryRequest(BaseModel):
    states: Optional[Union[list[str], str]] = None
    dates: Optional[DateParam] = None
    issues: Optional[DateParam] = None


def create_app(engine: QueryEngine | None = None) -> FastAPI:
    """Build the API around *engine*.

    When no engine is given, the store named by ``HOSP_VINTAGES_STORE``
    (default ``data/versions.jsonl``) is opened on startup and closed on
    shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned: VersionStore | None = None
        if engine is None:
            path = os.environ.get(STORE_PATH_ENV, str(STORE_PATH))
            logger.info(f'Opening version store at {path}')
            owned = VersionStore(path)
            app.state.engine = QueryEngine(owned)
        else:
            app.state.engine = engine
        yield
        if owned is not None:
            owned.close()
        app.state.engine = None

    app = FastAPI(
        title='hosp_vintages',
        version='0.1.0',
        description='Versioned hospital-capacity time series',
        lifespan=lifespan,
    )

    def _engine(request: Request) -> QueryEngine:
        current = getattr(request.app.state, 'engine', None)
        if current is None:
            raise HTTPException(status_code=503, detail='Store not initialized')
        return current

    @app.exception_handler(RequestValidationError)
    async def _invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.info(f'Rejected malformed request to {request.url.path}: {exc.errors()}')
        return JSONResponse(content=error_envelope(-1, 'invalid query parameters'))

    @app.exception_handler(HTTPException)
    async def _http_error(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code, content=error_envelope(-1, str(exc.detail))
        )

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f'Unhandled error serving {request.url.path}')
        return JSONResponse(status_code=500, content=error_envelope(-1, 'internal error'))

    @app.get('/health')
    def health(request: Request) -> dict[str, Any]:
        engine_ = _engine(request)
        return {'status': 'online', 'versions': len(engine_.store)}

    @app.get('/covid_hosp_state_timeseries')
    def get_timeseries(
        request: Request,
        states: Optional[str] = Query(None),
        dates: Optional[str] = Query(None),
        issues: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        return respond(_engine(request), states, dates, issues)

    @app.post('/covid_hosp_state_timeseries')
    def post_timeseries(request: Request, body: QueryRequest) -> dict[str, Any]:
        return respond(_engine(request), body.states, body.dates, body.issues)

    return app


app = create_app()

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .errors import PersistenceError, ScoresheetError, SessionNotFoundError

log = logging.getLogger(__name__)


def add_error_handlers(app: FastAPI):
    @app.exception_handler(SessionNotFoundError)
    async def session_not_found_handler(request: Request, exc: SessionNotFoundError):
        response = JSONResponse(status_code=exc.status_code, content={"message": exc.message})
        response.delete_cookie(request.app.state.settings.SESSION_COOKIE_NAME)
        return response

    @app.exception_handler(PersistenceError)
    async def persistence_error_handler(request: Request, exc: PersistenceError):
        # Already logged where the database call failed
        return JSONResponse(status_code=500, content={"message": "Internal server error"})

    @app.exception_handler(ScoresheetError)
    async def scoresheet_error_handler(request: Request, exc: ScoresheetError):
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        log.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"message": "Internal server error"})

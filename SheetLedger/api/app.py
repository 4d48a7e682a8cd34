"""
FastAPI application factory.

The ledger service is created once per application and kept on ``app.state``.
Status exceptions raised by the core are turned into ``{"success": false}`` envelopes.
"""
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .router import api_router
from .. import __version__
from ..core.ledger import LedgerAPI
from ..settings import lib
from ..status import status

STATUS_CODES = {
    status.Status.NotConfigured: 503,
    status.Status.UserNotFound: 404,
    status.Status.DuplicateIdentity: 409,
    status.Status.InvalidRecord: 400,
}


def error_response(status_code: int, error: str, details: str = '') -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={'success': False, 'error': error, 'details': details},
    )


def create_app(ledger: Optional[LedgerAPI] = None, settings: Optional[lib.SettingsAPI] = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        ledger: The ledger service to serve. Built from ``settings`` when omitted.
        settings: The settings to build the ledger service from. Loaded from disk when omitted.
    """
    if ledger is None:
        ledger = LedgerAPI(settings=settings)

    app = FastAPI(
        title='SheetLedger API',
        description='Personal expense tracking backed by Google Sheets',
        version=__version__,
    )
    app.state.ledger = ledger

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ledger.settings.get_section('server')['cors_origins'],
        allow_credentials=True,
        allow_methods=['*'],
        allow_headers=['*'],
    )

    @app.exception_handler(status.BaseStatusException)
    async def status_exception_handler(request: Request, ex: status.BaseStatusException):
        return error_response(STATUS_CODES.get(ex.status, 500), ex.status_message, ex.detail)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, ex: RequestValidationError):
        fields = ', '.join('.'.join(str(p) for p in e['loc'][1:]) for e in ex.errors())
        return error_response(400, 'Invalid request', f'Missing or invalid fields: {fields}')

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, ex: ValueError):
        logging.warning(f'{request.method} {request.url.path}: {ex}')
        return error_response(400, 'Invalid request', str(ex))

    app.include_router(api_router)
    return app

"""
Health and index routes.
"""
from fastapi import APIRouter, Depends

from ..dependencies import get_ledger
from ... import __version__
from ...core.ledger import LedgerAPI

router = APIRouter(tags=['health'])


@router.get('/api/health')
def health(ledger: LedgerAPI = Depends(get_ledger)):
    """Health check endpoint."""
    return ledger.health()


@router.get('/')
def root():
    return {
        'message': 'SheetLedger API is running',
        'version': __version__,
        'endpoints': {
            'user': [
                'POST /api/user/register',
                'POST /api/user/setup',
                'GET /api/user/profile/{email}',
                'PUT /api/user/profile',
                'GET /api/user/spreadsheet/{email}',
                'DELETE /api/user/delete-account',
                'GET /api/user/export-data/{email}',
            ],
            'expenses': [
                'POST /api/save-expense',
                'GET /api/expenses',
            ],
            'health': ['GET /api/health'],
        },
    }

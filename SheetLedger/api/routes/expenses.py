"""
Expense routes.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..dependencies import get_ledger
from ..schemas import ExpenseRequest
from ...core.ledger import LedgerAPI
from ...status import status

router = APIRouter(prefix='/api', tags=['expenses'])


@router.post('/save-expense')
def save_expense(body: ExpenseRequest, ledger: LedgerAPI = Depends(get_ledger)):
    """Save an expense to the user's collection. Unknown users are registered first."""
    record = ledger.save_expense(body.user_email, body.fields(), display_name=body.user_name)
    return {
        'success': True,
        'message': 'Expense saved with photo' if record.has_photo else 'Expense saved',
        'expense': record.to_json(),
    }


@router.get('/expenses')
def list_expenses(
        user_email: str = Query(alias='userEmail', min_length=1),
        user_name: Optional[str] = Query(default=None, alias='userName'),
        ledger: LedgerAPI = Depends(get_ledger),
):
    """List the user's expenses, newest first.

    Read failures and a missing configuration yield an empty list with a warning.
    """
    try:
        result = ledger.list_expenses(user_email, display_name=user_name)
    except status.BaseStatusException as ex:
        logging.warning(f'Could not list the expenses of "{user_email}": {ex}')
        return {'success': True, 'expenses': [], 'warning': ex.status_message}

    if not result.ok:
        return {'success': True, 'expenses': [], 'warning': 'Failed to load from personal spreadsheet'}
    return {'success': True, 'expenses': result.to_json()}

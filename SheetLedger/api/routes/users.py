"""
User registration, profile and account routes.
"""
import datetime

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..dependencies import get_ledger
from ..schemas import EmailRequest, ProfileUpdateRequest, RegisterRequest, SetupRequest
from ...core.ledger import LedgerAPI

router = APIRouter(prefix='/api/user', tags=['users'])


@router.post('/register')
def register(body: RegisterRequest, ledger: LedgerAPI = Depends(get_ledger)):
    """Register a user, or refresh the profile of a known one."""
    profile, is_new = ledger.register(body.email, uid=body.uid, name=body.name, picture=body.picture)
    return {
        'success': True,
        'user': profile.to_json(),
        'isNew': is_new,
        'hasCollection': bool(profile.collection_handle),
    }


@router.post('/setup')
def setup(body: SetupRequest, ledger: LedgerAPI = Depends(get_ledger)):
    """Store the welcome setup answers."""
    profile = ledger.setup(
        body.email,
        nickname=body.nickname,
        purpose=body.purpose,
        monthly_budget=body.monthly_budget,
        categories=body.categories,
    )
    return {'success': True, 'user': profile.to_json()}


@router.get('/profile/{email}')
def get_profile(email: str, ledger: LedgerAPI = Depends(get_ledger)):
    return {'success': True, 'user': ledger.get_profile(email).to_json()}


@router.put('/profile')
def update_profile(body: ProfileUpdateRequest, ledger: LedgerAPI = Depends(get_ledger)):
    profile = ledger.update_profile(body.email, body.updates())
    return {'success': True, 'user': profile.to_json()}


@router.get('/spreadsheet/{email}')
def get_spreadsheet(email: str, ledger: LedgerAPI = Depends(get_ledger)):
    """Return the handle and browser url of the user's collection, provisioning it if needed."""
    return {'success': True, **ledger.collection_info(email)}


@router.delete('/delete-account')
def delete_account(body: EmailRequest, ledger: LedgerAPI = Depends(get_ledger)):
    """Delete the user's collection and profile together."""
    result = ledger.delete_account(body.email)
    return {
        'success': True,
        'message': 'Account and spreadsheet deleted',
        'details': result,
    }


@router.get('/export-data/{email}')
def export_data(email: str, ledger: LedgerAPI = Depends(get_ledger)):
    """Download the profile and every expense as a JSON attachment."""
    data = ledger.export_data(email)
    filename = f'expense-data-{email}-{datetime.date.today().isoformat()}.json'
    return JSONResponse(
        content=data,
        headers={'Content-Disposition': f'attachment; filename="{filename}"'},
    )

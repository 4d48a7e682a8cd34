"""
Request dependencies.
"""
from fastapi import Request

from ..core.ledger import LedgerAPI


def get_ledger(request: Request) -> LedgerAPI:
    """Return the ledger service created with the application."""
    return request.app.state.ledger

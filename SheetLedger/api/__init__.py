"""
HTTP layer: a FastAPI application exposing the ledger service.

- :mod:`SheetLedger.api.app` – :func:`create_app`, CORS and error envelopes.
- :mod:`SheetLedger.api.schemas` – Request bodies.
- :mod:`SheetLedger.api.routes` – User, expense and health routes.
"""

"""
Core package for SheetLedger providing the user directory and expense storage.

This package includes:

- :mod:`SheetLedger.core.auth` – Service account credential management.
- :mod:`SheetLedger.core.service` – Google Sheets API integration and error mapping.
- :mod:`SheetLedger.core.schema` – Fixed column layouts, profiles, expense records and collections.
- :mod:`SheetLedger.core.directory` – The ``Users`` worksheet mapping identities to profiles and collection handles.
- :mod:`SheetLedger.core.provision` – Creation of private collections with randomized titles.
- :mod:`SheetLedger.core.resolver` – Identity to collection resolution with repair and a short-lived cache.
- :mod:`SheetLedger.core.records` – Appending, listing and deleting expense records.
- :mod:`SheetLedger.core.ledger` – :class:`~SheetLedger.core.ledger.LedgerAPI`, the service object used by the HTTP layer.
"""

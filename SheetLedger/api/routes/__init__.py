"""Route modules included by :mod:`SheetLedger.api.router`."""

"""
Logging subsystem: handlers and setup helpers for server logging.

Modules:

- :mod:`SheetLedger.log.log` – Root logger setup, level helpers, and the in-memory :class:`TankHandler`.
"""

"""
Settings package: server configuration and credential lookup.

- :mod:`SheetLedger.settings.lib` – :class:`SettingsAPI` for loading, validating and persisting ``server.json``.
"""

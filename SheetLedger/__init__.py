"""
SheetLedger: personal expense tracking server storing every user's expenses in Google Sheets.

This package provides:

- :mod:`SheetLedger.core` – The user directory, collection provisioning and resolution, and the expense record store.
- :mod:`SheetLedger.api` – A FastAPI application exposing the ledger service over HTTP.
- :mod:`SheetLedger.settings` – Server settings, schema validation and credential lookup.
- :mod:`SheetLedger.status` – Status codes and exceptions.
- :mod:`SheetLedger.log` – Logging setup and the in-memory log tank.

Use :func:`SheetLedger.exec_` to start the server.
"""

import sys

# Fail on Python < 3.11
if not (sys.version_info.major == 3 and sys.version_info.minor >= 11):
    raise RuntimeError('SheetLedger requires Python 3.11 or higher.')

__version__ = '0.1.0'
__author__ = 'Gergely Wootsch'
__license__ = 'GPL-3.0'
__copyright__ = 'Copyright (C) 2025 Gergely Wootsch'
__description__ = 'SheetLedger: personal expense tracking server storing per-user sheets in one Google Spreadsheet.'
__url__ = 'https://github.com/wgergely/SheetLedger'
__email__ = 'hello+SheetLedger@gergely-wootsch.com'

from .log import log

log.setup_logging()


def exec_() -> None:
    """Start the HTTP server.

    Loads the server settings, applies the configured log level, builds the ledger
    service and serves the FastAPI application with uvicorn.
    """
    import uvicorn
    from .api import app
    from .settings import lib

    settings = lib.SettingsAPI()
    server = settings.get_section('server')
    log.set_logging_level(log.level_from_name(server['log_level']))

    uvicorn.run(app.create_app(settings=settings), host=server['host'], port=server['port'])


if __name__ == '__main__':
    exec_()

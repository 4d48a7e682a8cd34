"""Google Sheets API integration.

Wraps the Sheets v4 resource used by the directory, provisioner, resolver and record
store. Every remote call goes through :meth:`SheetsAPI.execute`, which converts
transport and HTTP errors into status exceptions.
"""

import logging
import socket
import ssl
import threading
from typing import Any, Dict, List, Optional

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ..status import status

RAW: str = 'RAW'
UNFORMATTED_VALUE: str = 'UNFORMATTED_VALUE'
SHEET_FIELDS: str = 'sheets(properties(sheetId,title,gridProperties(rowCount,columnCount)))'


def idx_to_col(idx: int) -> str:
    """Convert zero-based column index to spreadsheet letter(s).

    Args:
        idx: The zero-based column index.

    Returns:
        The spreadsheet column letter(s) (e.g., A, B, AA).
    """
    letters = ''
    while idx >= 0:
        letters = chr((idx % 26) + ord('A')) + letters
        idx = idx // 26 - 1
    return letters


def quote_title(title: str) -> str:
    """Quote a worksheet title for use in A1 notation."""
    return "'" + title.replace("'", "''") + "'"


def a1_range(title: str, start: Optional[str] = None, end: Optional[str] = None) -> str:
    """Build an A1 range such as ``'Users'!A2:L2``.

    Args:
        title: Worksheet title.
        start: Top-left cell or column, e.g. ``A1`` or ``A``. Whole sheet when omitted.
        end: Bottom-right cell or column.
    """
    rng = quote_title(title)
    if start:
        rng += f'!{start}'
        if end:
            rng += f':{end}'
    return rng


def http_status(ex: HttpError) -> Optional[int]:
    """Return the HTTP status code of an HttpError, if known."""
    return ex.resp.status if ex.resp is not None else None


class SheetsAPI:
    """Builds (or receives) a Sheets API client and performs remote calls against it.

    Args:
        settings: The :class:`~SheetLedger.settings.lib.SettingsAPI` instance.
        auth_manager: The :class:`~SheetLedger.core.auth.AuthManager` used to build the client.
        service: An already built Sheets resource. When given, no credentials are needed.
    """

    def __init__(self, settings, auth_manager=None, service: Any = None) -> None:
        self.settings = settings
        self.auth_manager = auth_manager
        self._injected = service is not None
        self._cached_service: Any = service
        self._lock = threading.Lock()

    @property
    def spreadsheet_id(self) -> str:
        return self.settings.spreadsheet_id

    @property
    def injected(self) -> bool:
        """True when the Sheets resource was passed in rather than built from credentials."""
        return self._injected

    @property
    def configured(self) -> bool:
        """True when remote calls can be attempted at all."""
        if self._injected:
            return bool(self.spreadsheet_id)
        return self.settings.is_configured()

    def get_service(self) -> Any:
        """
        Builds (or returns cached) Google Sheets service client.

        Raises:
            status.NotConfiguredException: If credentials or the master spreadsheet id are missing.
            status.ServiceUnavailableException: If the client cannot be built.
        """
        if not self.configured:
            raise status.NotConfiguredException

        with self._lock:
            if self._cached_service is not None:
                return self._cached_service

            creds: Any = self.auth_manager.get_valid_credentials()
            try:
                service: Any = build('sheets', 'v4', credentials=creds, cache_discovery=False)
            except Exception as ex:
                raise status.ServiceUnavailableException(str(ex)) from ex
            logging.debug('Google Sheets service client created successfully.')
            self._cached_service = service
            return service

    def execute(self, request: Any, action: str) -> Dict[str, Any]:
        """Execute a prepared API request, mapping failures to status exceptions.

        Args:
            request: A googleapiclient request object.
            action: Short description of the call, used in error messages.

        Returns:
            The decoded JSON response.
        """
        try:
            return request.execute() or {}
        except HttpError as ex:
            stat: Optional[int] = http_status(ex)
            if stat == 404:
                raise status.SpreadsheetNotFoundException(
                    f'Spreadsheet "{self.spreadsheet_id}" not found (HTTP 404) while trying to {action}.'
                ) from ex
            if stat == 403:
                raise status.ServiceUnavailableException(
                    f'Access denied (HTTP 403) for spreadsheet "{self.spreadsheet_id}" while trying to {action}. '
                    'Please share the sheet with the service account.'
                ) from ex
            raise status.RemoteServiceException(f'Failed to {action}: {ex}') from ex
        except socket.timeout as ex:
            raise status.ServiceUnavailableException(f'Timeout error while trying to {action}: {ex}') from ex
        except ssl.SSLError as ex:
            raise status.ServiceUnavailableException(f'SSL error while trying to {action}: {ex}') from ex

    def list_sheets(self) -> List[Dict[str, Any]]:
        """Return the properties of every worksheet in the master spreadsheet.

        Each item has ``sheetId``, ``title`` and ``gridProperties``.
        """
        service = self.get_service()
        result = self.execute(
            service.spreadsheets().get(spreadsheetId=self.spreadsheet_id, fields=SHEET_FIELDS),
            'list worksheets'
        )
        return [s.get('properties', {}) for s in result.get('sheets', [])]

    def batch_update(self, requests: List[Dict[str, Any]], action: str) -> Dict[str, Any]:
        service = self.get_service()
        return self.execute(
            service.spreadsheets().batchUpdate(
                spreadsheetId=self.spreadsheet_id,
                body={'requests': requests},
            ),
            action
        )

    def add_sheet(self, title: str, row_count: int, column_count: int) -> Dict[str, Any]:
        """Create a worksheet and return its properties."""
        result = self.batch_update([{
            'addSheet': {
                'properties': {
                    'title': title,
                    'gridProperties': {'rowCount': row_count, 'columnCount': column_count},
                }
            }
        }], f'create worksheet "{title}"')
        replies = result.get('replies') or [{}]
        properties = replies[0].get('addSheet', {}).get('properties')
        if not properties:
            raise status.RemoteServiceException(f'No properties returned for new worksheet "{title}".')
        logging.debug(f'Created worksheet "{title}" (sheetId={properties.get("sheetId")}).')
        return properties

    def delete_sheet(self, sheet_id: int) -> None:
        self.batch_update([{'deleteSheet': {'sheetId': sheet_id}}], f'delete worksheet {sheet_id}')
        logging.debug(f'Deleted worksheet {sheet_id}.')

    def append_columns(self, sheet_id: int, count: int) -> None:
        """Grow a worksheet by ``count`` columns."""
        self.batch_update([{
            'appendDimension': {'sheetId': sheet_id, 'dimension': 'COLUMNS', 'length': count}
        }], f'add {count} column(s) to worksheet {sheet_id}')

    def delete_row(self, sheet_id: int, row_number: int) -> None:
        """Delete a single row, given its one-based row number."""
        self.batch_update([{
            'deleteDimension': {
                'range': {
                    'sheetId': sheet_id,
                    'dimension': 'ROWS',
                    'startIndex': row_number - 1,
                    'endIndex': row_number,
                }
            }
        }], f'delete row {row_number} of worksheet {sheet_id}')

    def get_values(self, range_: str) -> List[List[Any]]:
        service = self.get_service()
        result = self.execute(
            service.spreadsheets().values().get(
                spreadsheetId=self.spreadsheet_id,
                range=range_,
                valueRenderOption=UNFORMATTED_VALUE,
            ),
            f'read "{range_}"'
        )
        return result.get('values', [])

    def update_values(self, range_: str, values: List[List[Any]]) -> None:
        service = self.get_service()
        self.execute(
            service.spreadsheets().values().update(
                spreadsheetId=self.spreadsheet_id,
                range=range_,
                valueInputOption=RAW,
                body={'values': values},
            ),
            f'write "{range_}"'
        )

    def append_values(self, range_: str, values: List[List[Any]]) -> None:
        service = self.get_service()
        self.execute(
            service.spreadsheets().values().append(
                spreadsheetId=self.spreadsheet_id,
                range=range_,
                valueInputOption=RAW,
                insertDataOption='INSERT_ROWS',
                body={'values': values},
            ),
            f'append to "{range_}"'
        )

    def fetch_headers(self, title: str) -> List[str]:
        """Return the header row of a worksheet, or an empty list when it has none."""
        rows = self.get_values(a1_range(title, '1', '1'))
        if not rows or not rows[0]:
            return []
        return [str(cell) for cell in rows[0]]

    def repair_header(
            self,
            title: str,
            sheet_id: int,
            expected: List[str],
            current: List[str],
            column_count: int,
    ) -> List[str]:
        """Make sure the header row of a worksheet holds every expected column.

        Missing columns are appended after the existing ones. Existing columns,
        including unexpected ones, are never removed or reordered, so data rows
        keep lining up with their headers.

        Returns:
            The header row as it is after the repair.
        """
        if not current:
            headers = list(expected)
        else:
            missing = [h for h in expected if h not in current]
            if not missing:
                return current
            headers = list(current) + missing

        logging.info(f'Repairing header row of "{title}": [{",".join(headers)}].')
        if len(headers) > column_count:
            self.append_columns(sheet_id, len(headers) - column_count)
        self.update_values(a1_range(title, 'A1', f'{idx_to_col(len(headers) - 1)}1'), [headers])
        return headers

"""User directory stored in the ``Users`` worksheet of the master spreadsheet.

Every operation reads the worksheet afresh. Only the location of the worksheet
(its title and id) is kept in memory between calls.
"""
import logging
import threading
from typing import Any, Dict, List, Optional, Tuple

from . import schema
from .service import a1_range, idx_to_col
from ..status import status


class DirectoryAPI:
    """Find, insert, update and delete :class:`~SheetLedger.core.schema.UserProfile` rows.

    Args:
        sheets: The :class:`~SheetLedger.core.service.SheetsAPI` used for remote calls.
        title: Title of the directory worksheet.
        row_count: Row count used when the worksheet has to be created.
    """

    def __init__(self, sheets, title: str = 'Users', row_count: int = 1000) -> None:
        self.sheets = sheets
        self.title = title
        self.row_count = row_count

        self._sheet_id: Optional[int] = None
        self._lock = threading.Lock()

    @property
    def sheet_id(self) -> Optional[int]:
        return self._sheet_id

    def ensure_table(self) -> int:
        """Make sure the directory worksheet exists and holds every directory column.

        Returns:
            The worksheet id of the directory.
        """
        with self._lock:
            if self._sheet_id is not None:
                return self._sheet_id

            props = next((p for p in self.sheets.list_sheets() if p.get('title') == self.title), None)
            if props is None:
                logging.info(f'Directory worksheet "{self.title}" not found, creating it.')
                props = self.sheets.add_sheet(self.title, self.row_count, len(schema.DIRECTORY_HEADERS))
                current: List[str] = []
            else:
                current = self.sheets.fetch_headers(self.title)

            column_count = props.get('gridProperties', {}).get('columnCount', len(schema.DIRECTORY_HEADERS))
            self.sheets.repair_header(
                self.title, props['sheetId'], schema.DIRECTORY_HEADERS, current, column_count
            )
            self._sheet_id = props['sheetId']
            return self._sheet_id

    def _read(self) -> Tuple[List[str], List[List[Any]]]:
        self.ensure_table()
        values = self.sheets.get_values(a1_range(self.title))
        if not values:
            return list(schema.DIRECTORY_HEADERS), []
        return [str(h) for h in values[0]], values[1:]

    def _locate(self, identity: str) -> Tuple[List[str], Optional[int], Optional[List[Any]]]:
        """Return the header, the one-based row number and the raw row of ``identity``."""
        headers, rows = self._read()
        if 'Email' not in headers:
            raise status.RemoteServiceException(f'Directory worksheet "{self.title}" has no "Email" column.')
        idx = headers.index('Email')
        for n, row in enumerate(rows, start=2):
            if idx < len(row) and str(row[idx]) == identity:
                return headers, n, row
        return headers, None, None

    def find(self, identity: str) -> Optional[schema.UserProfile]:
        """Look up a profile by its exact identity. Returns None when absent."""
        headers, _, row = self._locate(identity)
        if row is None:
            return None
        return schema.UserProfile.from_row(headers, row)

    def insert(self, profile: schema.UserProfile) -> schema.UserProfile:
        """Append a new profile row.

        Raises:
            status.DuplicateIdentityException: If the identity is already present.
        """
        headers, n, _ = self._locate(profile.email)
        if n is not None:
            raise status.DuplicateIdentityException(profile.email)

        now = schema.now_str()
        profile.created_at = profile.created_at or now
        profile.last_login = profile.last_login or now

        self.sheets.append_values(a1_range(self.title, 'A1'), [profile.to_row(headers)])
        logging.info(f'Added "{profile.email}" to the directory.')
        return profile

    def update(self, identity: str, fields: Dict[str, Any]) -> schema.UserProfile:
        """Overwrite the given profile fields and refresh the last login time.

        Args:
            identity: The identity of the profile.
            fields: Mapping of :class:`~SheetLedger.core.schema.UserProfile` attribute names to new values.

        Raises:
            ValueError: If a field cannot be updated.
            status.UserNotFoundException: If the identity is absent.
        """
        unknown = [k for k in fields if k not in schema.UPDATABLE_PROFILE_FIELDS]
        if unknown:
            raise ValueError(f'Cannot update profile fields: {unknown}')

        headers, n, row = self._locate(identity)
        if n is None:
            raise status.UserNotFoundException(identity)

        profile = schema.UserProfile.from_row(headers, row)
        for k, v in fields.items():
            setattr(profile, k, v)
        profile.last_login = schema.now_str()

        end = f'{idx_to_col(len(headers) - 1)}{n}'
        self.sheets.update_values(a1_range(self.title, f'A{n}', end), [profile.to_row(headers, existing=row)])
        logging.debug(f'Updated {sorted(fields)} of "{identity}".')
        return profile

    def delete(self, identity: str) -> None:
        """Remove the profile row.

        Raises:
            status.UserNotFoundException: If the identity is absent.
        """
        _, n, _ = self._locate(identity)
        if n is None:
            raise status.UserNotFoundException(identity)
        self.sheets.delete_row(self.ensure_table(), n)
        logging.info(f'Removed "{identity}" from the directory.')

    def profiles(self) -> List[schema.UserProfile]:
        """Return every profile in row order. Blank rows are skipped."""
        headers, rows = self._read()
        return [schema.UserProfile.from_row(headers, r) for r in rows if any(str(c).strip() for c in r)]

    def stats(self) -> Dict[str, int]:
        profiles = self.profiles()
        return {
            'total_users': len(profiles),
            'users_with_collections': sum(1 for p in profiles if p.collection_handle),
        }

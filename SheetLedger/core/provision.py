"""Creation of private expense collections.

Each collection is a new worksheet of the master spreadsheet. Its title is drawn
from two word lists and a random suffix, so it does not reveal whom it belongs to.
"""
import logging
import random
import secrets
import time
from typing import Optional, Set

from . import schema
from .service import a1_range, idx_to_col
from ..status import status

ADJECTIVES = ['Swift', 'Bright', 'Clear', 'Fresh', 'Smart', 'Quick', 'Active', 'Dynamic', 'Prime', 'Ultra']
NOUNS = ['Ledger', 'Tracker', 'Record', 'Journal', 'Book', 'Log', 'Notes', 'Data', 'File', 'Sheet']

MAX_ATTEMPTS = 10
ROW_COUNT = 1000


def generate_name() -> str:
    """Return a random title such as ``SwiftLedger_A1B2C3``."""
    return f'{random.choice(ADJECTIVES)}{random.choice(NOUNS)}_{secrets.token_hex(3).upper()}'


def fallback_name() -> str:
    """Return a timestamp based title such as ``Sheet_1710400000000_1a2b``."""
    return f'Sheet_{int(time.time() * 1000)}_{secrets.token_hex(2)}'


class ProvisionAPI:
    """Creates empty collections holding only the expense header row.

    Args:
        sheets: The :class:`~SheetLedger.core.service.SheetsAPI` used for remote calls.
        max_attempts: How many random titles to try before using :func:`fallback_name`.
        row_count: Row count of new worksheets.
    """

    def __init__(self, sheets, max_attempts: int = MAX_ATTEMPTS, row_count: int = ROW_COUNT) -> None:
        self.sheets = sheets
        self.max_attempts = max_attempts
        self.row_count = row_count

    def _is_taken(self, name: str, existing: Set[str]) -> bool:
        return name in existing

    def pick_name(self, existing: Set[str]) -> str:
        """Pick a title not in ``existing``.

        The fallback title is used without checking once every attempt collides.
        """
        for attempt in range(1, self.max_attempts + 1):
            name = generate_name()
            if not self._is_taken(name, existing):
                return name
            logging.debug(f'Worksheet title "{name}" is taken (attempt {attempt}/{self.max_attempts}).')

        name = fallback_name()
        logging.warning(f'Could not find a free worksheet title in {self.max_attempts} attempts, using "{name}".')
        return name

    def provision(self, identity: str, display_name: Optional[str] = None) -> schema.Collection:
        """Create a new private collection with the expense header row.

        Args:
            identity: The owner of the new collection. Only used for logging.
            display_name: The owner's display name. Only used for logging.

        Returns:
            The new collection.

        Raises:
            status.NotConfiguredException: If the service is not configured.
            status.ProvisioningFailedException: If the worksheet could not be created.
        """
        logging.info(f'Provisioning a collection for "{identity}" ({display_name or "no name"}).')
        try:
            existing = {p.get('title') for p in self.sheets.list_sheets()}
            name = self.pick_name(existing)

            headers = list(schema.EXPENSE_HEADERS)
            props = self.sheets.add_sheet(name, self.row_count, len(headers))
            try:
                self.sheets.update_values(a1_range(name, 'A1', f'{idx_to_col(len(headers) - 1)}1'), [headers])
            except status.BaseStatusException:
                self.discard(props['sheetId'])
                raise
        except status.NotConfiguredException:
            raise
        except status.BaseStatusException as ex:
            raise status.ProvisioningFailedException(f'{identity}: {ex}') from ex

        collection = schema.Collection(
            spreadsheet_id=self.sheets.spreadsheet_id,
            sheet_id=props['sheetId'],
            title=props.get('title', name),
            headers=headers,
            column_count=props.get('gridProperties', {}).get('columnCount', len(headers)),
        )
        logging.info(f'Provisioned collection "{collection.title}" ({collection.handle}) for "{identity}".')
        return collection

    def discard(self, sheet_id: int) -> None:
        """Delete a collection that was created but never recorded in the directory.

        Failures are logged and not raised; the caller is already handling an error.
        """
        try:
            self.sheets.delete_sheet(sheet_id)
        except status.BaseStatusException as ex:
            logging.error(f'Could not remove unrecorded worksheet {sheet_id}: {ex}')
        else:
            logging.info(f'Removed unrecorded worksheet {sheet_id}.')

"""Expense records of a private collection.

Provides :class:`RecordStore` for appending, listing and deleting records, and
:class:`RecordList`, which tells an empty collection apart from a failed read.
"""
import dataclasses
import logging
from typing import Any, Dict, Iterator, List, Optional

import pandas as pd

from . import schema
from .service import a1_range
from ..status import status


@dataclasses.dataclass
class RecordList:
    """Records read from a collection, or the reason they could not be read."""
    records: List[schema.ExpenseRecord] = dataclasses.field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def __iter__(self) -> Iterator[schema.ExpenseRecord]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def to_json(self) -> List[Dict[str, Any]]:
        return [r.to_json() for r in self.records]


def sort_records(records: List[schema.ExpenseRecord]) -> List[schema.ExpenseRecord]:
    """Order records by date, newest first. Ties keep row order; undated rows go last."""
    if not records:
        return []
    df = pd.DataFrame({
        'date': pd.to_datetime([r.tanggal for r in records], format='%Y-%m-%d', errors='coerce'),
        'row': range(len(records)),
    })
    df = df.sort_values(['date', 'row'], ascending=[False, True], na_position='last')
    return [records[i] for i in df['row']]


class RecordStore:
    """Append, read and delete expense records.

    Args:
        sheets: The :class:`~SheetLedger.core.service.SheetsAPI` used for remote calls.
        protected: Worksheet titles that must never be deleted.
    """

    def __init__(self, sheets, protected: Optional[List[str]] = None) -> None:
        self.sheets = sheets
        self.protected = set(protected or [])

    def append(self, collection: schema.Collection, record: schema.ExpenseRecord) -> schema.ExpenseRecord:
        """Write ``record`` as a new row, in the column order of the collection's header."""
        missing = [h for h in schema.EXPENSE_HEADERS if h not in collection.headers]
        if missing:
            raise status.RemoteServiceException(f'Collection "{collection.title}" is missing columns {missing}.')

        self.sheets.append_values(a1_range(collection.title, 'A1'), [record.to_row(collection.headers)])
        logging.debug(f'Appended "{record.id}" to "{collection.title}".')
        return record

    def list_all(self, collection: schema.Collection) -> RecordList:
        """Read every record, newest first.

        A failed read is reported through :attr:`RecordList.error` instead of raising.
        """
        try:
            values = self.sheets.get_values(a1_range(collection.title))
        except status.BaseStatusException as ex:
            logging.warning(f'Could not read "{collection.title}": {ex}')
            return RecordList(error=str(ex))

        if len(values) < 2:
            return RecordList()

        headers = [str(h) for h in values[0]]
        records = [
            schema.ExpenseRecord.from_row(headers, row)
            for row in values[1:]
            if any(str(c).strip() for c in row)
        ]
        return RecordList(sort_records(records))

    def delete_collection(self, collection: schema.Collection) -> None:
        """Delete the worksheet of ``collection`` with all its rows.

        Raises:
            ValueError: If the worksheet is protected.
        """
        if collection.title in self.protected:
            raise ValueError(f'Refusing to delete protected worksheet "{collection.title}".')
        self.sheets.delete_sheet(collection.sheet_id)
        logging.info(f'Deleted collection "{collection.title}" ({collection.handle}).')

    @staticmethod
    def summarize(records: List[schema.ExpenseRecord]) -> Dict[str, Any]:
        """Return the record count, the total amount and the total per category."""
        if not records:
            return {'totalExpenses': 0, 'totalAmount': 0, 'byCategory': {}}

        df = pd.DataFrame([{'kategori': r.kategori, 'total': r.total} for r in records])
        by_category = df.groupby('kategori')['total'].sum()
        return {
            'totalExpenses': len(df),
            'totalAmount': int(df['total'].sum()),
            'byCategory': {str(k): int(v) for k, v in by_category.items()},
        }

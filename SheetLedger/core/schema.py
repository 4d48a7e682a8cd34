"""Row schemas and value types shared by the directory and the record store.

Defines the fixed column layouts of the ``Users`` directory and of every private
expense collection, the :class:`UserProfile` and :class:`ExpenseRecord` rows, the
:class:`Collection` handle type, and the small parsing helpers used to validate
incoming values.
"""
import dataclasses
import datetime
import enum
import json
import logging
import random
import re
import secrets
import string
import time
from typing import Any, Dict, List, Optional

from ..status import status

DIRECTORY_HEADERS: List[str] = [
    'UID', 'Email', 'Name', 'Nickname', 'Purpose', 'MonthlyBudget', 'Categories',
    'IsSetupComplete', 'CreatedAt', 'LastLogin', 'Picture', 'SpreadsheetId',
]
EXPENSE_HEADERS: List[str] = [
    'ID', 'Toko', 'Kategori', 'Total', 'Tanggal', 'Alamat', 'Catatan', 'Filename', 'Timestamp', 'Base64',
]

# Google Sheets rejects cells longer than this
MAX_CELL_CHARS: int = 50000
NO_PHOTO: str = 'No'
PHOTO_PREFIX: str = 'data:image/'


class Category(enum.StrEnum):
    """Fixed set of expense category tags."""
    Makanan = 'makanan'
    Transportasi = 'transportasi'
    Belanja = 'belanja'
    Hiburan = 'hiburan'
    Kesehatan = 'kesehatan'
    Pendidikan = 'pendidikan'
    Lainnya = 'lainnya'

    @classmethod
    def parse(cls, value: Any) -> 'Category':
        """Decode a stored tag, falling back to :attr:`Lainnya` for unknown values."""
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            logging.debug(f'Unknown category "{value}", using "{cls.Lainnya}".')
            return cls.Lainnya


def now_str() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.datetime.now(datetime.timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def generate_id(prefix: str = 'exp') -> str:
    """Generate a record id such as ``exp_1710400000000_a1b2c3``."""
    return f'{prefix}_{int(time.time() * 1000)}_{secrets.token_hex(3)}'


def is_valid_date(value: Any) -> bool:
    """Check that a value is a real calendar date in ``YYYY-MM-DD`` form."""
    if not isinstance(value, str) or not re.fullmatch(r'\d{4}-\d{2}-\d{2}', value):
        return False
    try:
        datetime.date.fromisoformat(value)
    except ValueError:
        return False
    return True


def parse_amount(value: Any, strict: bool = False) -> int:
    """Parse an amount given as a number or a formatted string into an integer.

    Currency markers and spaces are dropped. Indonesian formatting is understood:
    dots are thousands separators and a comma marks decimals (``1.500.000,50``).
    A single dot followed by one or two digits is read as a decimal point.
    A minus sign before the first digit makes the amount negative.

    Args:
        value: The amount to parse.
        strict: Raise instead of returning 0 for values holding no number.

    Raises:
        ValueError: If ``strict`` is set and the value holds no number.
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return int(round(value))
    if not value:
        return 0

    clean = str(value).strip()
    clean = re.sub(r'rupiah|dollar|euro|pound', '', clean, flags=re.IGNORECASE)
    negative = bool(re.match(r'^[^\d]*-', clean))
    clean = re.sub(r'[^\d.,]', '', clean)

    if '.' in clean and ',' in clean:
        clean = clean.replace('.', '').replace(',', '.', 1)
    elif '.' in clean:
        parts = clean.split('.')
        if not (len(parts) == 2 and len(parts[1]) <= 2):
            clean = clean.replace('.', '')
    elif ',' in clean:
        clean = clean.replace(',', '.', 1)

    try:
        amount = int(round(float(clean)))
    except ValueError:
        if strict:
            raise ValueError(f'Not an amount: "{value}"') from None
        return 0
    return -amount if negative else amount


def _cell(headers: List[str], row: List[Any], name: str, default: Any = '') -> Any:
    """Return the cell of ``row`` under header ``name``; rows may be shorter than the header."""
    try:
        idx = headers.index(name)
    except ValueError:
        return default
    if idx >= len(row) or row[idx] is None:
        return default
    return row[idx]


def _text(value: Any) -> str:
    if value is None:
        return ''
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclasses.dataclass
class Collection:
    """An opened private collection: one worksheet of the master spreadsheet.

    ``sheet_id`` is the stable worksheet id and is what the directory stores; ``title``
    is the randomized, non-authoritative label.
    """
    spreadsheet_id: str
    sheet_id: int
    title: str
    headers: List[str]
    column_count: int

    @property
    def handle(self) -> str:
        return str(self.sheet_id)


# Profile attribute -> directory column
PROFILE_COLUMNS: Dict[str, str] = {
    'uid': 'UID',
    'email': 'Email',
    'name': 'Name',
    'nickname': 'Nickname',
    'purpose': 'Purpose',
    'monthly_budget': 'MonthlyBudget',
    'categories': 'Categories',
    'is_setup_complete': 'IsSetupComplete',
    'created_at': 'CreatedAt',
    'last_login': 'LastLogin',
    'picture': 'Picture',
    'collection_handle': 'SpreadsheetId',
}
UPDATABLE_PROFILE_FIELDS: List[str] = [
    'name', 'nickname', 'purpose', 'monthly_budget', 'categories', 'is_setup_complete', 'picture',
    'collection_handle',
]


@dataclasses.dataclass
class UserProfile:
    """One row of the user directory. ``email`` is the identity."""
    email: str
    uid: str = ''
    name: str = ''
    nickname: str = ''
    purpose: str = ''
    monthly_budget: Any = ''
    categories: List[str] = dataclasses.field(default_factory=list)
    is_setup_complete: bool = False
    created_at: str = ''
    last_login: str = ''
    picture: str = ''
    collection_handle: str = ''

    @staticmethod
    def encode(field: str, value: Any) -> Any:
        """Convert a profile attribute to its cell value."""
        if field == 'categories':
            return json.dumps(list(value or []), ensure_ascii=False)
        if field == 'is_setup_complete':
            return 'true' if value else 'false'
        if value is None:
            return ''
        return value

    @staticmethod
    def decode(field: str, value: Any) -> Any:
        """Convert a cell value to its profile attribute."""
        if field == 'categories':
            if isinstance(value, list):
                return value
            try:
                decoded = json.loads(value or '[]')
            except ValueError:
                logging.warning(f'Invalid categories cell "{value}", using an empty list.')
                return []
            return decoded if isinstance(decoded, list) else []
        if field == 'is_setup_complete':
            return str(value).strip().lower() == 'true'
        if field == 'monthly_budget':
            return value
        return _text(value)

    @classmethod
    def from_row(cls, headers: List[str], row: List[Any]) -> 'UserProfile':
        kwargs = {
            field: cls.decode(field, _cell(headers, row, column))
            for field, column in PROFILE_COLUMNS.items()
        }
        return cls(**kwargs)

    def to_row(self, headers: List[str], existing: Optional[List[Any]] = None) -> List[Any]:
        """Lay the profile out in ``headers`` order.

        Cells under columns the profile does not know keep their ``existing`` value.
        """
        columns = {column: field for field, column in PROFILE_COLUMNS.items()}
        existing = existing or []
        row = []
        for idx, header in enumerate(headers):
            if header in columns:
                field = columns[header]
                row.append(self.encode(field, getattr(self, field)))
            else:
                row.append(existing[idx] if idx < len(existing) else '')
        return row

    def to_json(self) -> Dict[str, Any]:
        return {
            'uid': self.uid,
            'email': self.email,
            'name': self.name,
            'nickname': self.nickname,
            'purpose': self.purpose,
            'monthlyBudget': self.monthly_budget,
            'categories': list(self.categories),
            'isSetupComplete': self.is_setup_complete,
            'createdAt': self.created_at,
            'lastLogin': self.last_login,
            'picture': self.picture,
            'spreadsheetId': self.collection_handle,
        }


# Record attribute -> collection column
RECORD_COLUMNS: Dict[str, str] = {
    'id': 'ID',
    'toko': 'Toko',
    'kategori': 'Kategori',
    'total': 'Total',
    'tanggal': 'Tanggal',
    'alamat': 'Alamat',
    'catatan': 'Catatan',
    'filename': 'Filename',
    'timestamp': 'Timestamp',
    'base64': 'Base64',
}


def _photo_filename(filename: Optional[str]) -> str:
    """Prefix a display filename with a random tag, as ``AB12CD_receipt.jpg``."""
    tag = ''.join(random.choices(string.ascii_uppercase + string.digits, k=6))
    return f'{tag}_{filename or "photo.jpeg"}'


@dataclasses.dataclass
class ExpenseRecord:
    """One row of a private expense collection."""
    id: str
    toko: str
    kategori: str
    total: int
    tanggal: str
    alamat: str = ''
    catatan: str = ''
    filename: str = NO_PHOTO
    timestamp: str = ''
    base64: str = ''

    @property
    def has_photo(self) -> bool:
        return self.base64.startswith(PHOTO_PREFIX)

    @classmethod
    def create(
            cls,
            toko: str,
            kategori: str,
            total: Any,
            tanggal: str,
            alamat: str = '',
            catatan: str = '',
            filename: Optional[str] = None,
            photo_data: Optional[str] = None,
    ) -> 'ExpenseRecord':
        """Validate input values and build a new record with a fresh id and timestamp.

        An unusable photo payload is dropped; the record is still created.

        Raises:
            status.InvalidRecordException: If a required value is missing or invalid.
        """
        missing = [k for k, v in (('toko', toko), ('kategori', kategori), ('total', total), ('tanggal', tanggal))
                   if v is None or v == '']
        if missing:
            raise status.InvalidRecordException(f'Missing required fields: {", ".join(missing)}')

        try:
            category = Category(str(kategori).strip().lower())
        except ValueError:
            raise status.InvalidRecordException(
                f'Unknown category "{kategori}", expected one of: {", ".join(Category)}'
            ) from None

        try:
            amount = parse_amount(total, strict=True)
        except ValueError:
            raise status.InvalidRecordException(f'Total "{total}" is not an amount.') from None
        if amount < 0:
            raise status.InvalidRecordException(f'Total must not be negative, got {amount}.')

        if not is_valid_date(tanggal):
            raise status.InvalidRecordException(f'Invalid date "{tanggal}", expected YYYY-MM-DD.')

        base64 = ''
        photo_filename = NO_PHOTO
        if photo_data:
            if not photo_data.startswith(PHOTO_PREFIX):
                logging.warning('Invalid photo data format received, saving without photo.')
            elif len(photo_data) > MAX_CELL_CHARS:
                logging.warning(
                    f'Photo data is {len(photo_data)} characters, over the {MAX_CELL_CHARS} cell limit. '
                    'Saving without photo.'
                )
            else:
                base64 = photo_data
                photo_filename = _photo_filename(filename)

        return cls(
            id=generate_id(),
            toko=str(toko).strip(),
            kategori=str(category),
            total=amount,
            tanggal=tanggal,
            alamat=alamat or '',
            catatan=catatan or '',
            filename=photo_filename,
            timestamp=now_str(),
            base64=base64,
        )

    @classmethod
    def from_row(cls, headers: List[str], row: List[Any]) -> 'ExpenseRecord':
        def get(field: str, default: Any = '') -> Any:
            return _cell(headers, row, RECORD_COLUMNS[field], default)

        return cls(
            id=_text(get('id')),
            toko=_text(get('toko')),
            kategori=str(Category.parse(get('kategori'))),
            total=parse_amount(get('total', 0)),
            tanggal=_text(get('tanggal')),
            alamat=_text(get('alamat')),
            catatan=_text(get('catatan')),
            filename=_text(get('filename')) or NO_PHOTO,
            timestamp=_text(get('timestamp')),
            base64=_text(get('base64')),
        )

    def to_row(self, headers: List[str]) -> List[Any]:
        columns = {column: field for field, column in RECORD_COLUMNS.items()}
        return [getattr(self, columns[h]) if h in columns else '' for h in headers]

    def to_json(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'toko': self.toko,
            'kategori': self.kategori,
            'total': self.total,
            'tanggal': self.tanggal,
            'alamat': self.alamat,
            'catatan': self.catatan,
            'filename': self.filename,
            'timestamp': self.timestamp,
            'base64': self.base64,
            'hasPhoto': self.has_photo,
        }

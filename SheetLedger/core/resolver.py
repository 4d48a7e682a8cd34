"""Resolution of a user's identity to their open private collection.

The resolver provisions a collection when the profile has none, repairs the header
row of an existing one, and replaces handles that no longer point to a worksheet.
Opened collections are kept in a short-lived cache keyed by identity and handle.
"""
import contextlib
import logging
import threading
import time
from typing import Any, Dict, Iterator, List, Optional, Tuple

from . import schema
from ..status import status

DEFAULT_TTL = 300


class HandleCache:
    """Expiring map of ``(identity, handle)`` to an open :class:`~SheetLedger.core.schema.Collection`."""

    def __init__(self, ttl: float = DEFAULT_TTL) -> None:
        self.ttl = ttl
        self._data: Dict[Tuple[str, str], Tuple[float, schema.Collection]] = {}
        self._lock = threading.Lock()

    def get(self, identity: str, handle: str) -> Optional[schema.Collection]:
        with self._lock:
            item = self._data.get((identity, handle))
            if item is None:
                return None
            expires, collection = item
            if time.monotonic() >= expires:
                del self._data[(identity, handle)]
                return None
            return collection

    def put(self, identity: str, collection: schema.Collection) -> None:
        if self.ttl <= 0:
            return
        with self._lock:
            self._data[(identity, collection.handle)] = (time.monotonic() + self.ttl, collection)

    def invalidate(self, identity: str) -> None:
        """Drop every entry of ``identity``."""
        with self._lock:
            for key in [k for k in self._data if k[0] == identity]:
                del self._data[key]

    def __len__(self) -> int:
        return len(self._data)


class IdentityLocks:
    """One re-entrant lock per identity.

    Serializes find-or-create sequences of the same identity inside this process only.
    A lock is dropped as soon as nobody holds or waits for it.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, List[Any]] = {}
        self._guard = threading.Lock()

    @contextlib.contextmanager
    def hold(self, identity: str) -> Iterator[None]:
        with self._guard:
            entry = self._locks.setdefault(identity, [threading.RLock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[identity]

    def __len__(self) -> int:
        return len(self._locks)


class ResolverAPI:
    """Returns a ready to use collection for an identity.

    Args:
        sheets: The :class:`~SheetLedger.core.service.SheetsAPI` used for remote calls.
        directory: The :class:`~SheetLedger.core.directory.DirectoryAPI` holding the handles.
        provisioner: The :class:`~SheetLedger.core.provision.ProvisionAPI` creating new collections.
        ttl: Seconds an opened collection is kept in the cache.
    """

    def __init__(self, sheets, directory, provisioner, ttl: float = DEFAULT_TTL) -> None:
        self.sheets = sheets
        self.directory = directory
        self.provisioner = provisioner
        self.cache = HandleCache(ttl)
        self.locks = IdentityLocks()

    def open(self, handle: str) -> Optional[schema.Collection]:
        """Open a collection by handle without repairing it.

        Handles written by older deployments hold the worksheet title instead of
        its id; these are matched by title.

        Returns:
            The collection, or None when no worksheet matches the handle or it names the directory.
        """
        if not handle:
            return None

        by_id = handle.lstrip('-').isdigit()
        for props in self.sheets.list_sheets():
            if by_id and str(props.get('sheetId')) == handle:
                break
            if not by_id and props.get('title') == handle:
                break
        else:
            return None

        title = props['title']
        if title == self.directory.title:
            logging.warning(f'Handle "{handle}" points to the directory worksheet, ignoring it.')
            return None

        headers = self.sheets.fetch_headers(title)
        return schema.Collection(
            spreadsheet_id=self.sheets.spreadsheet_id,
            sheet_id=props['sheetId'],
            title=title,
            headers=headers,
            column_count=props.get('gridProperties', {}).get('columnCount', len(headers)),
        )

    def resolve(self, identity: str, display_name: Optional[str] = None) -> schema.Collection:
        """Return the open collection of ``identity``, provisioning or repairing it as needed.

        Raises:
            status.UserNotFoundException: If the identity has no profile. Nothing is created.
            status.ProvisioningFailedException: If the profile had no collection and creating one failed.
            status.StaleHandleException: If the recorded collection is gone and creating a new one failed.
        """
        with self.locks.hold(identity):
            profile = self.directory.find(identity)
            if profile is None:
                raise status.UserNotFoundException(identity)

            handle = profile.collection_handle
            if not handle:
                return self._provision(profile, display_name)

            collection = self.cache.get(identity, handle)
            if collection is not None:
                return collection

            collection = self.open(handle)
            if collection is None:
                logging.warning(f'Collection "{handle}" of "{identity}" no longer exists, provisioning a new one.')
                try:
                    return self._provision(profile, display_name)
                except status.ProvisioningFailedException as ex:
                    raise status.StaleHandleException(f'{identity}: {handle}') from ex

            if collection.handle != handle:
                logging.info(f'Migrating handle of "{identity}" from "{handle}" to "{collection.handle}".')
                self.directory.update(identity, {'collection_handle': collection.handle})

            headers = self.sheets.repair_header(
                collection.title,
                collection.sheet_id,
                schema.EXPENSE_HEADERS,
                collection.headers,
                collection.column_count,
            )
            collection.column_count = max(collection.column_count, len(headers))
            collection.headers = headers

            self.cache.put(identity, collection)
            return collection

    def _provision(self, profile: schema.UserProfile, display_name: Optional[str]) -> schema.Collection:
        collection = self.provisioner.provision(profile.email, display_name or profile.name)
        try:
            self.directory.update(profile.email, {'collection_handle': collection.handle})
        except status.BaseStatusException:
            self.provisioner.discard(collection.sheet_id)
            raise
        self.cache.put(profile.email, collection)
        return collection

    def remember(self, identity: str, collection: schema.Collection) -> None:
        """Cache a collection opened elsewhere, e.g. right after registration."""
        self.cache.put(identity, collection)

    def invalidate(self, identity: str) -> None:
        """Drop the cached collections of ``identity``."""
        self.cache.invalidate(identity)
        logging.debug(f'Invalidated cached collections of "{identity}".')

"""The ledger service: one object owning every core component.

:class:`LedgerAPI` is built once when the server starts and is passed to the request
handlers. It implements the user facing operations on top of the directory, the
provisioner, the resolver and the record store.
"""
import logging
import time
from typing import Any, Dict, List, Optional, Tuple

from . import schema
from .auth import AuthManager
from .directory import DirectoryAPI
from .provision import ProvisionAPI
from .records import RecordList, RecordStore
from .resolver import ResolverAPI
from .service import SheetsAPI
from ..log import log
from ..settings import lib
from ..status import status

SHEET_URL = 'https://docs.google.com/spreadsheets/d/{spreadsheet_id}/edit#gid={sheet_id}'
RECENT_ERRORS = 20


class LedgerAPI:
    """Registers users and stores their expenses in their private collections.

    Args:
        settings: The :class:`~SheetLedger.settings.lib.SettingsAPI` to use. A new one is loaded when omitted.
        service: An already built Sheets API resource. Credentials are loaded from the settings when omitted.
    """

    def __init__(self, settings: Optional[lib.SettingsAPI] = None, service: Any = None) -> None:
        self.settings = settings or lib.SettingsAPI()
        self.started = time.monotonic()

        provisioning = self.settings.get_section('provisioning')
        cache = self.settings.get_section('cache')

        self.auth = AuthManager(self.settings)
        self.sheets = SheetsAPI(self.settings, self.auth, service=service)
        self.directory = DirectoryAPI(
            self.sheets,
            title=self.settings.directory_worksheet,
            row_count=provisioning['row_count'],
        )
        self.provisioner = ProvisionAPI(
            self.sheets,
            max_attempts=provisioning['max_attempts'],
            row_count=provisioning['row_count'],
        )
        self.resolver = ResolverAPI(self.sheets, self.directory, self.provisioner, ttl=cache['ttl_seconds'])
        self.records = RecordStore(self.sheets, protected=[self.settings.directory_worksheet])

    @property
    def configured(self) -> bool:
        return self.sheets.configured

    def _check_configured(self) -> None:
        if not self.configured:
            raise status.NotConfiguredException

    def register(
            self,
            identity: str,
            uid: Optional[str] = None,
            name: str = '',
            picture: str = '',
    ) -> Tuple[schema.UserProfile, bool]:
        """Return the profile of ``identity``, creating it with a private collection if absent.

        A failure to provision the collection does not fail the registration: the profile
        is stored with an empty handle and the collection is provisioned on first use.

        Returns:
            The profile and whether it was created by this call.
        """
        self._check_configured()
        with self.resolver.locks.hold(identity):
            profile = self.directory.find(identity)
            if profile is not None:
                fields = {'picture': picture} if picture else {}
                return self.directory.update(identity, fields), False

            profile = schema.UserProfile(
                email=identity,
                uid=uid or f'user_{int(time.time() * 1000)}',
                name=name or '',
                picture=picture or '',
            )

            collection = None
            try:
                collection = self.provisioner.provision(identity, name)
                profile.collection_handle = collection.handle
            except status.ProvisioningFailedException:
                logging.warning(f'Registering "{identity}" without a collection.')

            try:
                self.directory.insert(profile)
            except status.BaseStatusException:
                if collection is not None:
                    self.provisioner.discard(collection.sheet_id)
                raise
            if collection is not None:
                self.resolver.remember(identity, collection)
            return profile, True

    def setup(
            self,
            identity: str,
            nickname: str = '',
            purpose: str = '',
            monthly_budget: Any = '',
            categories: Optional[List[str]] = None,
    ) -> schema.UserProfile:
        """Store the answers of the welcome setup and mark the setup complete."""
        self._check_configured()
        return self.directory.update(identity, {
            'nickname': nickname or '',
            'purpose': purpose or '',
            'monthly_budget': monthly_budget if monthly_budget is not None else '',
            'categories': list(categories or []),
            'is_setup_complete': True,
        })

    def get_profile(self, identity: str) -> schema.UserProfile:
        """
        Raises:
            status.UserNotFoundException: If the identity has no profile.
        """
        self._check_configured()
        profile = self.directory.find(identity)
        if profile is None:
            raise status.UserNotFoundException(identity)
        return profile

    def update_profile(self, identity: str, fields: Dict[str, Any]) -> schema.UserProfile:
        self._check_configured()
        return self.directory.update(identity, fields)

    def collection_info(self, identity: str) -> Dict[str, Any]:
        """Return the handle, title and browser url of the user's collection."""
        self._check_configured()
        collection = self.resolver.resolve(identity)
        return {
            'spreadsheetId': collection.handle,
            'title': collection.title,
            'url': SHEET_URL.format(spreadsheet_id=collection.spreadsheet_id, sheet_id=collection.sheet_id),
        }

    def save_expense(
            self,
            identity: str,
            fields: Dict[str, Any],
            display_name: Optional[str] = None,
    ) -> schema.ExpenseRecord:
        """Validate and store a new expense. Unknown users are registered first.

        Args:
            identity: The owner of the expense.
            fields: Keyword arguments of :meth:`~SheetLedger.core.schema.ExpenseRecord.create`.
            display_name: The owner's display name, used when registering.

        Raises:
            status.InvalidRecordException: If the expense fails validation. Nothing is written.
        """
        self._check_configured()
        record = schema.ExpenseRecord.create(**fields)

        if self.directory.find(identity) is None:
            logging.info(f'"{identity}" is not registered yet, registering before saving.')
            self.register(identity, name=display_name or identity.split('@')[0])

        collection = self.resolver.resolve(identity, display_name)
        return self.records.append(collection, record)

    def list_expenses(self, identity: str, display_name: Optional[str] = None) -> RecordList:
        """Return the expenses of a registered user, newest first.

        Raises:
            status.UserNotFoundException: If the identity has no profile.
        """
        self._check_configured()
        collection = self.resolver.resolve(identity, display_name)
        return self.records.list_all(collection)

    def delete_account(self, identity: str) -> Dict[str, Any]:
        """Delete the user's collection and then their directory row.

        A failure of either step is raised; the directory row is kept when the
        collection could not be deleted.

        Raises:
            status.UserNotFoundException: If the identity has no profile.
        """
        self._check_configured()
        with self.resolver.locks.hold(identity):
            profile = self.get_profile(identity)

            deleted_collection = None
            collection = self.resolver.open(profile.collection_handle)
            if collection is not None:
                self.records.delete_collection(collection)
                deleted_collection = collection.title
            elif profile.collection_handle:
                logging.warning(f'Collection "{profile.collection_handle}" of "{identity}" was already gone.')

            self.directory.delete(identity)
            self.resolver.invalidate(identity)

        logging.info(f'Deleted the account of "{identity}".')
        return {
            'email': identity,
            'collectionDeleted': deleted_collection is not None,
            'collectionTitle': deleted_collection,
            'profileDeleted': True,
        }

    def export_data(self, identity: str) -> Dict[str, Any]:
        """Return the profile, every expense and their statistics.

        Raises:
            status.UserNotFoundException: If the identity has no profile.
            status.RemoteServiceException: If the expenses could not be read.
        """
        profile = self.get_profile(identity)

        records: List[schema.ExpenseRecord] = []
        collection = self.resolver.open(profile.collection_handle)
        if collection is not None:
            result = self.records.list_all(collection)
            if not result.ok:
                raise status.RemoteServiceException(result.error)
            records = result.records

        return {
            'exportDate': schema.now_str(),
            'user': profile.to_json(),
            'expenses': [r.to_json() for r in records],
            'statistics': self.records.summarize(records),
        }

    def health(self) -> Dict[str, Any]:
        """Report the configuration and the state of the master spreadsheet."""
        sheets: Dict[str, Any] = {
            'hasCredentials': self.settings.has_credentials() or self.sheets.injected,
            'hasMasterSpreadsheetId': bool(self.sheets.spreadsheet_id),
        }
        if not self.configured:
            sheets['status'] = 'not_configured'
        else:
            try:
                stats = self.directory.stats()
            except status.BaseStatusException as ex:
                sheets['status'] = 'error'
                sheets['error'] = str(ex)
            else:
                sheets['status'] = 'connected'
                sheets['totalUsers'] = stats['total_users']
                sheets['usersWithCollections'] = stats['users_with_collections']

        data: Dict[str, Any] = {
            'status': 'OK' if sheets['status'] == 'connected' else 'DEGRADED',
            'timestamp': schema.now_str(),
            'uptime': round(time.monotonic() - self.started, 3),
            'services': {'googleSheets': sheets},
        }
        if sheets['status'] == 'error':
            data['message'] = 'Master spreadsheet connection failed, but the server is running.'
        elif sheets['status'] == 'not_configured':
            data['message'] = 'Google Sheets not configured, running in limited mode.'

        if self.settings.get_section('server')['debug']:
            tank = log.get_tank()
            data['recentErrors'] = tank.get_logs(logging.ERROR, limit=RECENT_ERRORS) if tank else []
        return data

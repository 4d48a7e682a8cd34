"""
Google service account authentication and credential management.

Provides :class:`AuthManager`, which loads service account credentials from the
settings, refreshes them when expired and shares them between request threads.
"""

import logging
import threading
from typing import Optional

import google.auth.exceptions
import google.auth.transport.requests
import google.oauth2.service_account

from ..status import status

DEFAULT_SCOPES = ['https://www.googleapis.com/auth/spreadsheets', ]


class AuthManager:
    """Manages service account credentials with thread-safe refresh."""

    def __init__(self, settings):
        self.settings = settings
        self._lock = threading.Lock()
        self._creds: Optional[google.oauth2.service_account.Credentials] = None

    def get_valid_credentials(self) -> google.oauth2.service_account.Credentials:
        """
        Return valid credentials, loading them on first use.

        Raises:
            status.NotConfiguredException: if no service account credentials are configured.
            status.CredsInvalidException: if the stored key is corrupt.
            status.AuthenticationExceptionException: if a refresh fails.
        """
        with self._lock:
            if self._creds is None:
                info = self.settings.service_account_info()
                if info is None:
                    raise status.NotConfiguredException('No service account credentials found.')
                try:
                    self._creds = google.oauth2.service_account.Credentials.from_service_account_info(
                        info, scopes=DEFAULT_SCOPES
                    )
                except (ValueError, KeyError) as ex:
                    raise status.CredsInvalidException('Failed to load credentials') from ex
                logging.debug(f'Service account credentials loaded for "{self._creds.service_account_email}".')

            # Tokens are otherwise refreshed on demand by the HTTP transport
            if self._creds.expired:
                try:
                    self._creds.refresh(google.auth.transport.requests.Request())
                except google.auth.exceptions.GoogleAuthError as ex:
                    raise status.AuthenticationExceptionException(
                        'Failed to refresh credentials') from ex

            return self._creds

    def reset(self) -> None:
        """Forget the loaded credentials so the next call reloads them from the settings."""
        with self._lock:
            self._creds = None
        logging.debug('Service account credentials cleared.')

"""Settings library for server and credential configuration.

Provides:
    - Schema validation and enforcement for the server.json structure.
    - Loading, saving, and reverting server settings.
    - Service account credential lookup from file or environment.
"""

import json
import logging
import os
import pathlib
import shutil
from typing import Dict, Any, Optional, List

from ..status import status

app_name: str = 'SheetLedger'

CONFIG_DIR_ENV_KEY: str = 'SHEETLEDGER_CONFIG_DIR'
SPREADSHEET_ID_ENV_KEY: str = 'GOOGLE_SPREADSHEET_ID'
SERVICE_ACCOUNT_EMAIL_ENV_KEY: str = 'GOOGLE_SERVICE_ACCOUNT_EMAIL'
PRIVATE_KEY_ENV_KEY: str = 'GOOGLE_PRIVATE_KEY'

DEFAULT_TOKEN_URI: str = 'https://oauth2.googleapis.com/token'

SERVER_SCHEMA: Dict[str, Any] = {
    'spreadsheet': {
        'type': dict,
        'required': True,
        'item_schema': {
            'id': {'type': str, 'required': True},
            'directory_worksheet': {'type': str, 'required': True, 'non_empty': True},
        }
    },
    'cache': {
        'type': dict,
        'required': True,
        'item_schema': {
            'ttl_seconds': {'type': int, 'required': True, 'min': 0},
        }
    },
    'provisioning': {
        'type': dict,
        'required': True,
        'item_schema': {
            'max_attempts': {'type': int, 'required': True, 'min': 1},
            'row_count': {'type': int, 'required': True, 'min': 1},
        }
    },
    'server': {
        'type': dict,
        'required': True,
        'item_schema': {
            'host': {'type': str, 'required': True, 'non_empty': True},
            'port': {'type': int, 'required': True, 'min': 1},
            'cors_origins': {'type': list, 'required': True},
            'log_level': {'type': str, 'required': True},
            'debug': {'type': bool, 'required': True},
        }
    },
}

REQUIRED_SERVICE_ACCOUNT_KEYS: List[str] = ['client_email', 'private_key', 'token_uri']


def _validate_section(section_name: str, section: Dict[str, Any], item_schema: Dict[str, Any]) -> None:
    """Validate the fields of one server.json section.

    Args:
        section_name: Name of the section, used in error messages.
        section: The section data.
        item_schema: Dict describing required fields, types, and value constraints.

    Raises:
        status.ServerConfigInvalidException: If a field is missing, of the wrong type, or out of range.
    """
    logging.debug(f'Validating "{section_name}" section.')
    for field, field_specs in item_schema.items():
        if field_specs['required'] and field not in section:
            raise status.ServerConfigInvalidException(f'Section "{section_name}" missing "{field}".')
        if field not in section:
            continue

        value = section[field]
        _type = field_specs['type']
        # bool is an int subclass, it must not pass for numeric fields
        if not isinstance(value, _type) or (_type is int and isinstance(value, bool)):
            raise status.ServerConfigInvalidException(
                f'Section "{section_name}" field "{field}" must be {_type}, got {type(value)}.'
            )
        if 'min' in field_specs and value < field_specs['min']:
            raise status.ServerConfigInvalidException(
                f'Section "{section_name}" field "{field}" must be >= {field_specs["min"]}, got {value}.'
            )
        if field_specs.get('non_empty') and not value:
            raise status.ServerConfigInvalidException(
                f'Section "{section_name}" field "{field}" must not be empty.'
            )


class ConfigPaths:
    """Manage configuration file paths and ensure default templates exist.

    The template directory ships inside the package. The config directory is taken
    from the ``SHEETLEDGER_CONFIG_DIR`` environment variable, or defaults to
    ``~/.config/SheetLedger``.
    """

    def __init__(self) -> None:
        self.template_dir: pathlib.Path = pathlib.Path(__file__).parent.parent / 'config'
        self.server_template: pathlib.Path = self.template_dir / 'server.json.template'

        config_dir = os.environ.get(CONFIG_DIR_ENV_KEY)
        self.config_dir: pathlib.Path = (
            pathlib.Path(config_dir) if config_dir
            else pathlib.Path.home() / '.config' / app_name
        )
        logging.debug(f'Using config directory: {self.config_dir}')

        # Config files
        self.server_config_path: pathlib.Path = self.config_dir / 'server.json'
        self.service_account_path: pathlib.Path = self.config_dir / 'service_account.json'

        self._verify_and_prepare()

    def _verify_and_prepare(self) -> None:
        """Verify the template exists, create the config directory and copy the default config.

        Raises:
            FileNotFoundError: If the template directory or file is missing.
        """
        logging.debug(f'Verifying required templates in {self.template_dir}')
        if not self.template_dir.exists():
            msg: str = f'Missing template directory: {self.template_dir}'
            logging.error(msg)
            raise FileNotFoundError(msg)
        if not self.server_template.exists():
            msg = f'Missing server template: {self.server_template}'
            logging.error(msg)
            raise FileNotFoundError(msg)

        if not self.config_dir.exists():
            logging.debug(f'Creating config directory: {self.config_dir}')
            self.config_dir.mkdir(parents=True, exist_ok=True)

        # Ensure a valid config exists even if we haven't yet set it up
        if not self.server_config_path.exists():
            logging.debug(f'Copying default server config from template to {self.server_config_path}')
            shutil.copy(self.server_template, self.server_config_path)

    def revert_config_to_template(self) -> None:
        """Restore server.json from the default template file.

        Raises:
            FileNotFoundError: If the server template file is missing.
        """
        logging.debug(f'Reverting server config to template: {self.server_template}')
        if not self.server_template.exists():
            msg: str = f'Server template not found: {self.server_template}'
            logging.error(msg)
            raise FileNotFoundError(msg)
        shutil.copy(self.server_template, self.server_config_path)


class SettingsAPI(ConfigPaths):
    """
    Provides an interface to get/set/revert/save server.json sections and to look up
    the service account credentials.
    """

    def __init__(self, config_path: Optional[str] = None, service_account_path: Optional[str] = None) -> None:
        """Initialize SettingsAPI and load the server config.

        Args:
            config_path: Optional path to a custom server.json file.
            service_account_path: Optional path to a custom service account key file.
        """
        super().__init__()

        self.server_config_path: pathlib.Path = (
            pathlib.Path(config_path) if config_path else self.server_config_path
        )
        self.service_account_path: pathlib.Path = (
            pathlib.Path(service_account_path) if service_account_path else self.service_account_path
        )

        self.config_data: Dict[str, Any] = {}
        for k in SERVER_SCHEMA.keys():
            self.config_data[k] = {}

        self.load_config()

    def load_config(self) -> Dict[str, Any]:
        """Load server.json from disk and validate against schema.

        Returns:
            The loaded config data dictionary.

        Raises:
            status.ServerConfigNotFoundException: If server.json file is missing.
            status.ServerConfigInvalidException: If JSON parsing or validation fails.
        """
        logging.debug(f'Loading server config from "{self.server_config_path}"')
        if not self.server_config_path.exists():
            raise status.ServerConfigNotFoundException(str(self.server_config_path))

        try:
            with self.server_config_path.open('r', encoding='utf-8') as f:
                data: Dict[str, Any] = json.load(f)
        except (ValueError, OSError) as ex:
            raise status.ServerConfigInvalidException(str(ex)) from ex

        self.validate_config_data(data)
        self.config_data = data
        return self.config_data

    def validate_config_data(self, data: Dict[str, Any] = None) -> None:
        """Validate config data against the defined SERVER_SCHEMA.

        Args:
            data (dict, optional): Config data to validate. Defaults to self.config_data.

        Raises:
            status.ServerConfigInvalidException: If a required section is missing or validation fails.
        """
        if data is None:
            data = self.config_data
        if not data:
            raise status.ServerConfigInvalidException('Server config is empty.')

        logging.debug('Validating server config against schema.')
        for field, specs in SERVER_SCHEMA.items():
            if specs.get('required') and field not in data:
                raise status.ServerConfigInvalidException(f'Missing required field: {field}')

            if field not in data:
                continue

            if not isinstance(data[field], specs['type']):
                raise status.ServerConfigInvalidException(
                    f'Field "{field}" must be {specs["type"]}, got {type(data[field])}.'
                )
            _validate_section(field, data[field], specs['item_schema'])

        logging.debug('Server config is valid.')

    def get_section(self, section_name: str) -> Dict[str, Any]:
        """Retrieve a copy of configuration data for a section.

        Raises:
            KeyError: If section_name is not in config_data.
        """
        return self.config_data[section_name].copy()

    def set_section(self, section_name: str, new_data: Dict[str, Any]) -> None:
        """Replace, validate and persist a configuration section.

        The previous section data is restored when validation fails.

        Raises:
            ValueError: If section_name is unrecognized.
            status.ServerConfigInvalidException: If the new data fails validation.
        """
        if section_name not in self.config_data:
            msg: str = f'Unknown section_name for set: "{section_name}"'
            logging.error(msg)
            raise ValueError(msg)

        current_section_data: Dict[str, Any] = self.config_data.get(section_name).copy()

        self.config_data[section_name] = new_data
        try:
            self.validate_config_data()
        except status.ServerConfigInvalidException:
            logging.error(f'Validation error on set_section("{section_name}"), rolling back.')
            self.config_data[section_name] = current_section_data
            raise
        self.save_section(section_name)

    def revert_section(self, section_name: str) -> None:
        """Revert a configuration section to its template default and save.

        Raises:
            ValueError: If section_name is invalid or not present in the template.
        """
        if section_name not in self.config_data:
            msg: str = f'Unknown section_name for revert: "{section_name}"'
            logging.error(msg)
            raise ValueError(msg)

        with self.server_template.open('r', encoding='utf-8') as f:
            template_data: Dict[str, Any] = json.load(f)

        if section_name not in template_data:
            msg = f'No template-based revert logic for section "{section_name}".'
            logging.error(msg)
            raise ValueError(msg)

        self.config_data[section_name] = template_data[section_name]
        self.save_section(section_name)

    def save_section(self, section_name: str) -> None:
        """Persist a single configuration section to server.json.

        Raises:
            ValueError: If section_name is not recognized.
        """
        if section_name not in self.config_data:
            msg: str = f'Unknown section_name for save: "{section_name}"'
            logging.error(msg)
            raise ValueError(msg)

        with self.server_config_path.open('r', encoding='utf-8') as f:
            original_data: Dict[str, Any] = json.load(f)

        new_data: Dict[str, Any] = original_data.copy()
        new_data[section_name] = self.config_data[section_name]

        logging.debug(f'Saving section "{section_name}" to "{self.server_config_path}"')
        with self.server_config_path.open('w', encoding='utf-8') as f:
            json.dump(new_data, f, indent=4, ensure_ascii=False)

    @property
    def spreadsheet_id(self) -> str:
        """The master spreadsheet id. The environment takes precedence over server.json."""
        return os.environ.get(SPREADSHEET_ID_ENV_KEY) or self.config_data['spreadsheet'].get('id', '')

    @property
    def directory_worksheet(self) -> str:
        """Title of the worksheet holding the user directory."""
        return self.config_data['spreadsheet']['directory_worksheet']

    def has_credentials(self) -> bool:
        """Return True when service account credentials are available from env or file."""
        if os.environ.get(SERVICE_ACCOUNT_EMAIL_ENV_KEY) and os.environ.get(PRIVATE_KEY_ENV_KEY):
            return True
        return self.service_account_path.exists()

    def is_configured(self) -> bool:
        """Return True when both credentials and a master spreadsheet id are available."""
        return bool(self.spreadsheet_id) and self.has_credentials()

    def service_account_info(self) -> Optional[Dict[str, Any]]:
        """Return the service account key info, or None when no credentials are available.

        Environment variables take precedence over the key file. Escaped newlines in
        the private key are unescaped.

        Raises:
            status.CredsInvalidException: If the key file is unreadable or misses required fields.
        """
        email = os.environ.get(SERVICE_ACCOUNT_EMAIL_ENV_KEY)
        key = os.environ.get(PRIVATE_KEY_ENV_KEY)
        if email and key:
            logging.debug('Using service account credentials from the environment.')
            return {
                'type': 'service_account',
                'client_email': email,
                'private_key': key.replace('\\n', '\n'),
                'token_uri': DEFAULT_TOKEN_URI,
            }

        if not self.service_account_path.exists():
            return None

        logging.debug(f'Loading service account credentials from "{self.service_account_path}"')
        try:
            with self.service_account_path.open('r', encoding='utf-8') as f:
                data: Dict[str, Any] = json.load(f)
        except (ValueError, OSError) as ex:
            raise status.CredsInvalidException(str(ex)) from ex

        if not isinstance(data, dict):
            raise status.CredsInvalidException('The service account key must be a JSON object.')

        missing: List[str] = [k for k in REQUIRED_SERVICE_ACCOUNT_KEYS if not data.get(k)]
        if missing:
            raise status.CredsInvalidException(f'Missing required fields in the service account key: {missing}.')
        return data

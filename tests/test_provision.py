"""Tests for SheetLedger.core.provision."""
import re
from unittest.mock import patch

from SheetLedger.core import provision, schema
from SheetLedger.status import status
from tests.base import BaseLedgerTestCase


class NameTest(BaseLedgerTestCase):

    def test_generate_name(self):
        for _ in range(20):
            name = provision.generate_name()
            m = re.fullmatch(r'([A-Z][a-z]+)([A-Z][a-z]+)_([0-9A-F]{6})', name)
            self.assertIsNotNone(m, name)
            self.assertIn(m.group(1), provision.ADJECTIVES)
            self.assertIn(m.group(2), provision.NOUNS)

    def test_fallback_name(self):
        self.assertRegex(provision.fallback_name(), r'^Sheet_\d{13}_[0-9a-f]{4}$')


class ProvisionTest(BaseLedgerTestCase):

    def test_provision_creates_worksheet_with_header(self):
        collection = self.provisioner.provision('a@x.com', 'Ana')

        sheet = self.service.sheet(collection.title)
        self.assertIsNotNone(sheet)
        self.assertEqual(collection.handle, str(sheet['sheetId']))
        self.assertEqual(sheet['rowCount'], 1000)
        self.assertEqual(sheet['columnCount'], len(schema.EXPENSE_HEADERS))
        self.assertEqual(self.service.rows(collection.title), [schema.EXPENSE_HEADERS])
        self.assertEqual(collection.headers, schema.EXPENSE_HEADERS)
        self.assertEqual(collection.spreadsheet_id, self.service.spreadsheet_id)

    def test_title_does_not_reveal_identity(self):
        collection = self.provisioner.provision('ana.smith@x.com', 'Ana Smith')
        self.assertNotIn('ana', collection.title.lower())
        self.assertNotIn('smith', collection.title.lower())

    def test_handles_are_unique(self):
        handles = {self.provisioner.provision(f'u{i}@x.com').handle for i in range(5)}
        self.assertEqual(len(handles), 5)

    def test_collisions_use_the_fourth_name(self):
        names = [f'SwiftLedger_00000{i}' for i in range(1, 11)]
        with patch.object(provision, 'generate_name', side_effect=names), \
                patch.object(provision.ProvisionAPI, '_is_taken', side_effect=[True, True, True, False]) as taken:
            collection = self.provisioner.provision('a@x.com')

        self.assertEqual(collection.title, 'SwiftLedger_000004')
        self.assertEqual(taken.call_count, 4)

    def test_real_collision_with_existing_worksheet(self):
        self.service.add_worksheet('SwiftLedger_AAAAAA')
        with patch.object(provision, 'generate_name', side_effect=['SwiftLedger_AAAAAA', 'BrightBook_BBBBBB']):
            collection = self.provisioner.provision('a@x.com')
        self.assertEqual(collection.title, 'BrightBook_BBBBBB')

    def test_fallback_after_max_attempts(self):
        with patch.object(provision.ProvisionAPI, '_is_taken', return_value=True) as taken, \
                patch.object(provision, 'fallback_name', return_value='Sheet_1710400000000_abcd'):
            collection = self.provisioner.provision('a@x.com')

        self.assertEqual(taken.call_count, 10)
        self.assertEqual(collection.title, 'Sheet_1710400000000_abcd')
        self.assertIn('Sheet_1710400000000_abcd', self.service.titles())

    def test_max_attempts_is_configurable(self):
        self.provisioner.max_attempts = 3
        with patch.object(provision.ProvisionAPI, '_is_taken', return_value=True) as taken:
            collection = self.provisioner.provision('a@x.com')
        self.assertEqual(taken.call_count, 3)
        self.assertTrue(collection.title.startswith('Sheet_'))

    def test_header_failure_removes_worksheet(self):
        self.directory.ensure_table()
        self.service.fail('values.update')
        with self.assertRaises(status.ProvisioningFailedException):
            self.provisioner.provision('a@x.com')
        self.assertEqual(self.collection_titles(), [])

    def test_discard_does_not_raise(self):
        self.service.fail('batchUpdate')
        self.provisioner.discard(424242)
        self.assertIn('batchUpdate', self.service.calls)

    def test_remote_failure_raises_provisioning_failed(self):
        self.service.fail('batchUpdate')
        with self.assertRaises(status.ProvisioningFailedException) as ctx:
            self.provisioner.provision('a@x.com')
        self.assertIsInstance(ctx.exception.__cause__, status.RemoteServiceException)

    def test_not_configured_is_not_wrapped(self):
        section = self.settings.get_section('spreadsheet')
        section['id'] = ''
        self.settings.set_section('spreadsheet', section)
        with self.assertRaises(status.NotConfiguredException):
            self.provisioner.provision('a@x.com')

"""Tests for SheetLedger.core.directory against the in-memory Sheets service."""
from SheetLedger.core import schema
from SheetLedger.status import status
from tests.base import BaseLedgerTestCase


class EnsureTableTest(BaseLedgerTestCase):

    def test_creates_directory_worksheet(self):
        self.directory.ensure_table()
        self.assertIn('Users', self.service.titles())
        self.assertEqual(self.service.rows('Users'), [schema.DIRECTORY_HEADERS])

    def test_table_location_is_cached(self):
        self.directory.ensure_table()
        calls = self.service.calls.count('get')
        self.directory.ensure_table()
        self.directory.find('a@x.com')
        self.assertEqual(self.service.calls.count('get'), calls)

    def test_repairs_incomplete_header(self):
        self.service.add_worksheet('Users', [['UID', 'Email', 'Custom'], ['u1', 'a@x.com', 'kept']], column_count=3)
        self.directory.ensure_table()

        rows = self.service.rows('Users')
        self.assertEqual(rows[0][:3], ['UID', 'Email', 'Custom'])
        self.assertEqual(set(rows[0]), set(schema.DIRECTORY_HEADERS) | {'Custom'})
        self.assertEqual(rows[1], ['u1', 'a@x.com', 'kept'])
        self.assertEqual(self.directory.find('a@x.com').uid, 'u1')


class DirectoryCRUDTest(BaseLedgerTestCase):

    def test_find_missing(self):
        self.assertIsNone(self.directory.find('nobody@x.com'))

    def test_insert_and_find(self):
        self.add_profile('a@x.com', handle='1001', name='Ana')
        profile = self.directory.find('a@x.com')
        self.assertEqual(profile.name, 'Ana')
        self.assertEqual(profile.collection_handle, '1001')
        self.assertTrue(profile.created_at)
        self.assertTrue(profile.last_login)

    def test_find_is_exact(self):
        self.add_profile('a@x.com')
        self.assertIsNone(self.directory.find('A@x.com'))
        self.assertIsNone(self.directory.find('a@x.co'))

    def test_insert_duplicate(self):
        self.add_profile('a@x.com')
        with self.assertRaises(status.DuplicateIdentityException):
            self.add_profile('a@x.com')
        self.assertEqual(len(self.service.rows('Users')), 2)

    def test_update(self):
        self.add_profile('a@x.com')
        self.add_profile('b@x.com')
        before = self.directory.find('b@x.com')

        updated = self.directory.update('b@x.com', {'nickname': 'Bee', 'categories': ['hiburan']})
        self.assertEqual(updated.nickname, 'Bee')
        self.assertGreaterEqual(updated.last_login, before.last_login)

        found = self.directory.find('b@x.com')
        self.assertEqual(found.nickname, 'Bee')
        self.assertEqual(found.categories, ['hiburan'])
        self.assertEqual(found.created_at, before.created_at)
        self.assertEqual(self.directory.find('a@x.com').nickname, '')

    def test_update_keeps_unknown_columns(self):
        self.service.add_worksheet(
            'Users', [schema.DIRECTORY_HEADERS + ['Custom'], ['u1', 'a@x.com'] + [''] * 10 + ['kept']],
            column_count=13,
        )
        self.directory.update('a@x.com', {'name': 'Ana'})
        self.assertEqual(self.service.rows('Users')[1][-1], 'kept')
        self.assertEqual(self.service.rows('Users')[1][2], 'Ana')

    def test_update_missing(self):
        with self.assertRaises(status.UserNotFoundException):
            self.directory.update('nobody@x.com', {'name': 'x'})

    def test_update_unknown_field(self):
        self.add_profile('a@x.com')
        with self.assertRaises(ValueError):
            self.directory.update('a@x.com', {'email': 'b@x.com'})

    def test_delete(self):
        self.add_profile('a@x.com')
        self.add_profile('b@x.com')
        self.directory.delete('a@x.com')
        self.assertIsNone(self.directory.find('a@x.com'))
        self.assertIsNotNone(self.directory.find('b@x.com'))

    def test_delete_missing(self):
        with self.assertRaises(status.UserNotFoundException):
            self.directory.delete('nobody@x.com')

    def test_stats(self):
        self.add_profile('a@x.com', handle='1001')
        self.add_profile('b@x.com')
        self.assertEqual(self.directory.stats(), {'total_users': 2, 'users_with_collections': 1})

    def test_read_failure_propagates(self):
        self.directory.ensure_table()
        self.service.fail('values.get')
        with self.assertRaises(status.RemoteServiceException):
            self.directory.find('a@x.com')

"""Tests for SheetLedger.core.resolver: resolution, self-healing, header repair and caching."""
import threading
import time
from unittest.mock import patch

from SheetLedger.core import resolver, schema
from SheetLedger.status import status
from tests.base import BaseLedgerTestCase, BaseTestCase


def _collection(sheet_id=1001):
    return schema.Collection('master', sheet_id, f'T{sheet_id}', list(schema.EXPENSE_HEADERS), 10)


class HandleCacheTest(BaseTestCase):

    def test_put_and_get(self):
        cache = resolver.HandleCache(ttl=60)
        collection = _collection()
        cache.put('a@x.com', collection)
        self.assertIs(cache.get('a@x.com', '1001'), collection)
        self.assertIsNone(cache.get('a@x.com', '1002'))
        self.assertIsNone(cache.get('b@x.com', '1001'))

    def test_expiry(self):
        cache = resolver.HandleCache(ttl=60)
        with patch.object(resolver.time, 'monotonic', return_value=1000.0):
            cache.put('a@x.com', _collection())
        with patch.object(resolver.time, 'monotonic', return_value=1059.0):
            self.assertIsNotNone(cache.get('a@x.com', '1001'))
        with patch.object(resolver.time, 'monotonic', return_value=1060.0):
            self.assertIsNone(cache.get('a@x.com', '1001'))
        self.assertEqual(len(cache), 0)

    def test_zero_ttl_disables_cache(self):
        cache = resolver.HandleCache(ttl=0)
        cache.put('a@x.com', _collection())
        self.assertIsNone(cache.get('a@x.com', '1001'))

    def test_invalidate(self):
        cache = resolver.HandleCache(ttl=60)
        cache.put('a@x.com', _collection(1001))
        cache.put('a@x.com', _collection(1002))
        cache.put('b@x.com', _collection(1003))
        cache.invalidate('a@x.com')
        self.assertEqual(len(cache), 1)
        self.assertIsNotNone(cache.get('b@x.com', '1003'))


class IdentityLocksTest(BaseTestCase):

    def test_locks_are_dropped_when_released(self):
        locks = resolver.IdentityLocks()
        with locks.hold('a@x.com'):
            with locks.hold('a@x.com'):
                self.assertEqual(len(locks), 1)
            with locks.hold('b@x.com'):
                self.assertEqual(len(locks), 2)
            self.assertEqual(len(locks), 1)
        self.assertEqual(len(locks), 0)

    def test_lock_is_dropped_after_an_error(self):
        locks = resolver.IdentityLocks()
        with self.assertRaises(RuntimeError):
            with locks.hold('a@x.com'):
                raise RuntimeError('boom')
        self.assertEqual(len(locks), 0)

    def test_reentrant(self):
        locks = resolver.IdentityLocks()
        with locks.hold('a@x.com'):
            with locks.hold('a@x.com'):
                pass

    def test_serializes_same_identity(self):
        locks = resolver.IdentityLocks()
        order = []

        def worker(n):
            with locks.hold('a@x.com'):
                order.append(('in', n))
                time.sleep(0.02)
                order.append(('out', n))

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(3)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        for i in range(0, len(order), 2):
            self.assertEqual(order[i][0], 'in')
            self.assertEqual(order[i + 1], ('out', order[i][1]))


class ResolveTest(BaseLedgerTestCase):

    def test_unknown_identity(self):
        """Resolving an identity without a profile fails and creates nothing."""
        with self.assertRaises(status.UserNotFoundException):
            self.resolver.resolve('nobody@x.com')
        self.assertEqual(self.collection_titles(), [])

    def test_provisions_when_handle_empty(self):
        self.add_profile('a@x.com', name='Ana')
        collection = self.resolver.resolve('a@x.com')

        self.assertEqual(self.collection_titles(), [collection.title])
        self.assertEqual(self.directory.find('a@x.com').collection_handle, collection.handle)

    def test_resolution_is_idempotent(self):
        self.add_profile('a@x.com')
        first = self.resolver.resolve('a@x.com')
        second = self.resolver.resolve('a@x.com')
        self.assertEqual(first.handle, second.handle)
        self.assertEqual(len(self.collection_titles()), 1)

    def test_resolution_is_idempotent_without_cache(self):
        self.add_profile('a@x.com')
        first = self.resolver.resolve('a@x.com')
        self.resolver.invalidate('a@x.com')
        second = self.resolver.resolve('a@x.com')
        self.assertEqual(first.handle, second.handle)
        self.assertEqual(first.title, second.title)

    def test_cache_skips_open(self):
        self.add_profile('a@x.com')
        self.resolver.resolve('a@x.com')
        gets = self.service.calls.count('get')
        self.resolver.resolve('a@x.com')
        self.assertEqual(self.service.calls.count('get'), gets)

    def test_heals_deleted_collection(self):
        self.add_profile('a@x.com')
        old = self.resolver.resolve('a@x.com')
        self.resolver.invalidate('a@x.com')
        self.service.remove_worksheet(old.title)

        new = self.resolver.resolve('a@x.com')

        self.assertNotEqual(new.handle, old.handle)
        self.assertIsNotNone(self.service.sheet(new.title))
        self.assertEqual(self.directory.find('a@x.com').collection_handle, new.handle)

    def test_heals_unknown_handle(self):
        self.add_profile('a@x.com', handle='987654')
        collection = self.resolver.resolve('a@x.com')
        self.assertNotEqual(collection.handle, '987654')
        self.assertEqual(self.directory.find('a@x.com').collection_handle, collection.handle)

    def test_stale_handle_when_reprovisioning_fails(self):
        self.add_profile('a@x.com', handle='987654')
        self.service.fail('batchUpdate')
        with self.assertRaises(status.StaleHandleException) as ctx:
            self.resolver.resolve('a@x.com')
        self.assertIsInstance(ctx.exception.__cause__, status.ProvisioningFailedException)
        self.assertEqual(self.directory.find('a@x.com').collection_handle, '987654')

    def test_failed_handle_update_removes_new_collection(self):
        self.add_profile('a@x.com')
        self.service.fail('values.update', title='Users')
        with self.assertRaises(status.RemoteServiceException):
            self.resolver.resolve('a@x.com')
        self.assertEqual(self.collection_titles(), [])

    def test_directory_handle_is_not_opened(self):
        self.directory.ensure_table()
        users_id = str(self.service.sheet('Users')['sheetId'])
        self.add_profile('a@x.com', handle=users_id)

        self.assertIsNone(self.resolver.open(users_id))
        collection = self.resolver.resolve('a@x.com')

        self.assertNotEqual(collection.handle, users_id)
        self.assertEqual(self.service.rows('Users')[0], schema.DIRECTORY_HEADERS)
        self.assertEqual(self.directory.find('a@x.com').collection_handle, collection.handle)

    def test_unknown_identity_leaves_no_lock(self):
        with self.assertRaises(status.UserNotFoundException):
            self.resolver.resolve('nobody@x.com')
        self.assertEqual(len(self.resolver.locks), 0)

    def test_provisioning_failure_propagates_for_empty_handle(self):
        self.add_profile('a@x.com')
        self.service.fail('batchUpdate')
        with self.assertRaises(status.ProvisioningFailedException):
            self.resolver.resolve('a@x.com')

    def test_read_error_is_not_treated_as_stale(self):
        self.add_profile('a@x.com')
        first = self.resolver.resolve('a@x.com')
        self.resolver.invalidate('a@x.com')
        self.service.fail('get', times=1)
        with self.assertRaises(status.RemoteServiceException):
            self.resolver.resolve('a@x.com')
        self.assertEqual(self.directory.find('a@x.com').collection_handle, first.handle)

    def test_repairs_header_without_losing_rows(self):
        old_header = schema.EXPENSE_HEADERS[:-1]
        rows = [
            old_header,
            ['exp_1', 'KFC', 'makanan', 89000, '2024-03-14', '', '', 'No', '2024-03-14T10:00:00.000Z'],
            ['exp_2', 'Grab', 'transportasi', 25000, '2024-03-10', '', '', 'No', '2024-03-10T10:00:00.000Z'],
        ]
        sheet = self.service.add_worksheet('ClearNotes_123ABC', rows, column_count=len(old_header))
        self.add_profile('a@x.com', handle=str(sheet['sheetId']))

        collection = self.resolver.resolve('a@x.com')

        self.assertEqual(collection.headers, schema.EXPENSE_HEADERS)
        stored = self.service.rows('ClearNotes_123ABC')
        self.assertEqual(stored[0], schema.EXPENSE_HEADERS)
        self.assertEqual(stored[1:], rows[1:])
        self.assertEqual(sheet['columnCount'], len(schema.EXPENSE_HEADERS))

    def test_repair_keeps_unexpected_columns(self):
        header = ['Legacy'] + schema.EXPENSE_HEADERS[:3]
        sheet = self.service.add_worksheet('PrimeData_0F0F0F', [header, ['x', 'exp_1', 'KFC', 'makanan']])
        self.add_profile('a@x.com', handle=str(sheet['sheetId']))

        collection = self.resolver.resolve('a@x.com')

        self.assertEqual(collection.headers[:4], header)
        self.assertEqual(set(collection.headers), set(header) | set(schema.EXPENSE_HEADERS))
        self.assertEqual(self.service.rows('PrimeData_0F0F0F')[1], ['x', 'exp_1', 'KFC', 'makanan'])

    def test_migrates_title_handle(self):
        sheet = self.service.add_worksheet('SwiftLedger_ABC123', [schema.EXPENSE_HEADERS], column_count=10)
        self.add_profile('a@x.com', handle='SwiftLedger_ABC123')

        collection = self.resolver.resolve('a@x.com')

        self.assertEqual(collection.handle, str(sheet['sheetId']))
        self.assertEqual(self.directory.find('a@x.com').collection_handle, str(sheet['sheetId']))
        self.assertEqual(self.collection_titles(), ['SwiftLedger_ABC123'])

    def test_open(self):
        sheet = self.service.add_worksheet('SwiftLedger_ABC123', [schema.EXPENSE_HEADERS], column_count=10)
        collection = self.resolver.open(str(sheet['sheetId']))
        self.assertEqual(collection.title, 'SwiftLedger_ABC123')
        self.assertEqual(collection.headers, schema.EXPENSE_HEADERS)
        self.assertEqual(collection.column_count, 10)

        self.assertIsNone(self.resolver.open(''))
        self.assertIsNone(self.resolver.open('424242'))

    def test_deleted_account_is_not_healed(self):
        """After removing both the collection and the row, resolution fails instead of re-provisioning."""
        self.add_profile('a@x.com')
        collection = self.resolver.resolve('a@x.com')

        self.records.delete_collection(collection)
        self.directory.delete('a@x.com')

        with self.assertRaises(status.UserNotFoundException):
            self.resolver.resolve('a@x.com')
        self.assertEqual(self.collection_titles(), [])

    def test_concurrent_first_resolution_provisions_once(self):
        self.add_profile('a@x.com')
        results = []

        def worker():
            results.append(self.resolver.resolve('a@x.com').handle)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(len(set(results)), 1)
        self.assertEqual(len(self.collection_titles()), 1)

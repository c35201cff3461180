"""Tests for the Drive folder hierarchy cache."""

import threading
from unittest.mock import MagicMock

from django.test import SimpleTestCase

from ftpsync.sync.hierarchy import HierarchyCache
from ftpsync.tests.fakes import FakeDriveClient


class HierarchyCacheTests(SimpleTestCase):
    def setUp(self):
        self.client = FakeDriveClient()
        self.cache = HierarchyCache(self.client)

    def test_creates_missing_folder(self):
        folder_id = self.cache.resolve("Backups")

        self.assertEqual(self.client.folders_created, [("Backups", "")])
        self.assertEqual(self.client.get_file(folder_id).name, "Backups")

    def test_reuses_existing_folder(self):
        existing = self.client.create_folder("2024", "root1")
        self.client.folders_created.clear()

        self.assertEqual(self.cache.resolve("2024", "root1"), existing.id)
        self.assertEqual(self.client.folders_created, [])

    def test_cached_after_first_resolve(self):
        first = self.cache.resolve("2024", "root1")
        self.client.list_folders = MagicMock(side_effect=AssertionError("looked up twice"))

        self.assertEqual(self.cache.resolve("2024", "root1"), first)
        self.assertEqual(len(self.cache), 1)

    def test_same_name_under_different_parents(self):
        a = self.cache.resolve("05", "year-a")
        b = self.cache.resolve("05", "year-b")

        self.assertNotEqual(a, b)
        self.assertEqual(len(self.client.folders_created), 2)

    def test_resolve_date_path(self):
        day_id = self.cache.resolve_date_path("root1", "2024", "05", "01")

        self.assertEqual(self.client.get_file(day_id).name, "01")
        self.assertEqual([name for name, _ in self.client.folders_created], ["2024", "05", "01"])
        self.assertEqual(self.client.folder_path(day_id), "2024/05")

    def test_duplicate_folders_use_first(self):
        first = self.client.create_folder("2024", "root1")
        self.client.create_folder("2024", "root1")

        with self.assertLogs("ftpsync.sync.hierarchy", level="WARNING"):
            self.assertEqual(self.cache.resolve("2024", "root1"), first.id)

    def test_concurrent_resolve_creates_one_folder(self):
        """N threads resolving the same folder see one creation and one id."""
        self.client.lookup_delay = 0.01
        start = threading.Barrier(8)
        results = []

        def worker():
            start.wait()
            results.append(self.cache.resolve("2024", "root1"))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(len(results), 8)
        self.assertEqual(len(set(results)), 1)
        self.assertEqual(self.client.folders_created, [("2024", "root1")])

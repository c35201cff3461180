"""Tests for the confirmation ledger."""

import json
from datetime import datetime, timezone

from django.test import SimpleTestCase, override_settings

from ftpsync.sync.exceptions import LedgerPersistFailed
from ftpsync.sync.ledger import (
    ConfirmationLedger,
    LedgerEntry,
    LedgerKey,
    date_components,
    key_for,
)
from ftpsync.tests.fakes import FakeDriveClient


def make_entry(name="photo.jpg", day="01", hash="ab" * 32, size=1000) -> LedgerEntry:
    return LedgerEntry(file_name=name, year="2024", month="05", day=day, hash=hash, file_size=size)


class DateComponentsTests(SimpleTestCase):
    @override_settings(TIME_ZONE="UTC")
    def test_month_and_day_zero_padded(self):
        moment = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        self.assertEqual(date_components(moment), ("2024", "05", "01"))

    @override_settings(TIME_ZONE="America/New_York")
    def test_uses_active_time_zone(self):
        """02:00 UTC on the 5th is still the 4th in New York."""
        moment = datetime(2024, 3, 5, 2, 0, tzinfo=timezone.utc)
        self.assertEqual(date_components(moment), ("2024", "03", "04"))

    def test_naive_datetime_used_as_is(self):
        self.assertEqual(date_components(datetime(2023, 12, 31, 23, 59)), ("2023", "12", "31"))

    @override_settings(TIME_ZONE="UTC")
    def test_key_for(self):
        key = key_for("photo.jpg", datetime(2024, 5, 1, tzinfo=timezone.utc))
        self.assertEqual(key, LedgerKey("photo.jpg", "2024", "05", "01"))


class LedgerEntryTests(SimpleTestCase):
    def test_to_dict_uses_document_keys(self):
        data = make_entry().to_dict()

        self.assertEqual(
            data,
            {
                "fileName": "photo.jpg",
                "year": "2024",
                "month": "05",
                "day": "01",
                "hash": "ab" * 32,
                "fileSize": 1000,
            },
        )

    def test_from_dict_pads_numeric_components(self):
        entry = LedgerEntry.from_dict(
            {"fileName": "a.txt", "year": 2024, "month": 5, "day": 1, "hash": "x", "fileSize": 3}
        )

        self.assertEqual(entry.key, LedgerKey("a.txt", "2024", "05", "01"))
        self.assertEqual(entry.file_size, 3)


class ConfirmationLedgerTests(SimpleTestCase):
    def setUp(self):
        self.client = FakeDriveClient()
        self.ledger = ConfirmationLedger(self.client, "confirmations.json")

    def _document(self) -> list:
        document = self.client.find_app_data_file("confirmations.json")
        return json.loads(self.client.download_bytes(document.id))

    def test_load_missing_document_is_empty(self):
        self.assertEqual(self.ledger.load(), [])
        self.assertFalse(self.ledger.contains(make_entry().key))

    def test_confirm_creates_document(self):
        self.ledger.confirm(make_entry())

        self.assertEqual(self._document(), [make_entry().to_dict()])

    def test_confirm_rewrites_whole_document(self):
        self.ledger.confirm(make_entry(day="01"))
        self.ledger.confirm(make_entry(day="02"))

        self.assertEqual([e["day"] for e in self._document()], ["01", "02"])
        self.assertEqual(len(self.client.files), 1)

    def test_load_round_trips_persisted_entries(self):
        self.ledger.confirm(make_entry())

        other = ConfirmationLedger(self.client, "confirmations.json")
        entries = other.load()

        self.assertEqual(entries, [make_entry()])
        self.assertTrue(other.contains(make_entry().key))

    def test_contains_only_consults_snapshot(self):
        """Entries confirmed mid-pass do not change decisions until the next load."""
        self.ledger.load()
        self.ledger.confirm(make_entry())

        self.assertFalse(self.ledger.contains(make_entry().key))
        self.assertEqual(len(self.ledger.entries), 1)

        self.ledger.load()
        self.assertTrue(self.ledger.contains(make_entry().key))

    def test_failed_persist_drops_entry(self):
        self.ledger.load()
        self.client.fail_ledger_writes = 1

        with self.assertRaises(LedgerPersistFailed):
            self.ledger.confirm(make_entry())

        self.assertEqual(self.ledger.entries, [])
        self.assertIsNone(self.client.find_app_data_file("confirmations.json"))

    def test_failed_update_keeps_previous_document(self):
        self.ledger.confirm(make_entry(day="01"))
        self.client.fail_ledger_writes = 1

        with self.assertRaises(LedgerPersistFailed):
            self.ledger.confirm(make_entry(day="02"))

        self.assertEqual([e["day"] for e in self._document()], ["01"])
        self.assertEqual(self.ledger.entries, [make_entry(day="01")])

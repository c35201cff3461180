"""Tests for the upload and verify procedure."""

import hashlib
import json
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from django.test import SimpleTestCase, override_settings

from ftpsync.providers.ftp import ItemType, RemoteItem
from ftpsync.sync.exceptions import (
    HashMismatchAfterUpload,
    LedgerPersistFailed,
    UploadIncomplete,
)
from ftpsync.sync.ledger import LedgerEntry
from ftpsync.sync.transfer import TransferProcedure, guess_mime_type
from ftpsync.tests.fakes import FakeDriveClient, make_context

CONTENT = b"p" * 1000
DIGEST = hashlib.sha256(CONTENT).hexdigest()


def make_item(name="photo.jpg") -> RemoteItem:
    return RemoteItem(
        name=name,
        full_path=f"/incoming/{name}",
        source="ftp.example.com",
        item_type=ItemType.FILE,
        modified_time=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        size=len(CONTENT),
    )


@override_settings(TIME_ZONE="UTC")
class TransferProcedureTests(SimpleTestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.client = FakeDriveClient()
        self.context = make_context(self.temp_dir, client=self.client)
        self.context.ledger.load()
        self.procedure = TransferProcedure(self.context)
        self.local_path = Path(self.temp_dir) / "photo.jpg"
        self.local_path.write_bytes(CONTENT)

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _ledger_document(self) -> list:
        document = self.client.find_app_data_file("confirmations.json")
        if document is None:
            return []
        return json.loads(self.client.download_bytes(document.id))

    def test_upload_verify_confirm(self):
        result = self.procedure.run(make_item(), self.local_path)

        self.assertEqual(result.uploads, 1)
        self.assertEqual(result.bytes_uploaded, 1000)
        self.assertEqual(
            result.entry, LedgerEntry("photo.jpg", "2024", "05", "01", DIGEST, 1000)
        )
        self.assertEqual(self._ledger_document(), [result.entry.to_dict()])
        self.assertFalse(self.local_path.exists())

    def test_uploads_into_date_hierarchy(self):
        self.procedure.run(make_item(), self.local_path)

        stored = self.client.stored_files()
        self.assertEqual(len(stored), 1)
        self.assertEqual(self.client.folder_path(stored[0].id), "Backups/2024/05/01")
        self.assertEqual(stored[0].mime_type, "image/jpeg")

    def test_completed_notification_links_file(self):
        result = self.procedure.run(make_item(), self.local_path)

        self.context.notifier.notify.assert_called_with(
            f"<{result.web_view_link}|photo.jpg>: upload completed", force=True
        )

    def test_existing_matching_copy_confirmed_without_upload(self):
        day_id = self.context.hierarchy.resolve_date_path(
            self.context.ensure_root_folder(), "2024", "05", "01"
        )
        self.client.put_file("photo.jpg", day_id, CONTENT)

        result = self.procedure.run(make_item(), self.local_path)

        self.assertEqual(result.uploads, 0)
        self.assertEqual(self.client.uploads, [])
        self.assertEqual(len(self._ledger_document()), 1)

    def test_existing_mismatched_copy_overwritten(self):
        day_id = self.context.hierarchy.resolve_date_path(
            self.context.ensure_root_folder(), "2024", "05", "01"
        )
        file_id = self.client.put_file("photo.jpg", day_id, b"truncated")

        result = self.procedure.run(make_item(), self.local_path)

        self.assertEqual(self.client.uploads, [file_id])
        self.assertEqual(result.entry.hash, DIGEST)
        self.assertEqual(len(self.client.stored_files()), 1)
        message = self.context.notifier.notify.call_args_list[0][0][0]
        self.assertIn("reuploading due to hash mismatch", message)

    def test_mismatch_after_upload_retried_once(self):
        self.client.corrupt_uploads = 1

        result = self.procedure.run(make_item(), self.local_path)

        self.assertEqual(result.uploads, 2)
        self.assertEqual(len(self.client.uploads), 2)
        self.assertEqual(len(self.client.stored_files()), 1)
        self.assertEqual(result.entry.hash, DIGEST)

    def test_mismatch_after_retry_not_confirmed(self):
        self.client.corrupt_uploads = 2

        with self.assertRaises(HashMismatchAfterUpload):
            self.procedure.run(make_item(), self.local_path)

        self.assertEqual(len(self.client.uploads), 2)
        self.assertEqual(self._ledger_document(), [])
        self.assertTrue(self.local_path.exists())

    def test_absent_checksum_not_confirmed(self):
        self.client.withhold_checksum = True

        with self.assertRaises(HashMismatchAfterUpload):
            self.procedure.run(make_item(), self.local_path)

        self.assertEqual(len(self.client.uploads), 1)
        self.assertEqual(self._ledger_document(), [])
        self.assertTrue(self.local_path.exists())

    def test_incomplete_upload(self):
        self.client.fail_uploads = 1

        with self.assertRaises(UploadIncomplete):
            self.procedure.run(make_item(), self.local_path)

        self.assertEqual(self.client.stored_files(), [])
        self.assertEqual(self._ledger_document(), [])
        self.assertTrue(self.local_path.exists())

    def test_ledger_failure_keeps_artifact(self):
        self.client.fail_ledger_writes = 1

        with self.assertRaises(LedgerPersistFailed):
            self.procedure.run(make_item(), self.local_path)

        self.assertTrue(self.local_path.exists())
        self.assertEqual(self.context.ledger.entries, [])


class GuessMimeTypeTests(SimpleTestCase):
    def test_known_extension(self):
        self.assertEqual(guess_mime_type("clip.mp4"), "video/mp4")

    def test_unknown_extension(self):
        self.assertEqual(guess_mime_type("capture.raw123"), "application/octet-stream")

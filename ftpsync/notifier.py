"""
Best-effort progress notifications to a Slack incoming webhook.

Messages are always logged. Posting happens on a background thread fed
by a bounded queue; when the queue is full the message is dropped.
Delivery failures are logged and never reach the caller.
"""

from __future__ import annotations

import logging
import queue
import threading
import time

import requests

logger = logging.getLogger(__name__)

_STOP = object()


class Notifier:
    """
    Fire-and-forget notification channel.

    Progress messages are only posted when log_progress is enabled;
    forced messages (completed uploads, failures) are posted whenever a
    webhook is configured.
    """

    def __init__(
        self,
        webhook_url: str = "",
        log_progress: bool = False,
        max_pending: int = 100,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ):
        self.webhook_url = webhook_url
        self.log_progress = log_progress
        self.timeout = timeout
        self._session = session or requests.Session()
        self._queue: queue.Queue = queue.Queue(maxsize=max_pending)
        self._thread: threading.Thread | None = None
        self._thread_lock = threading.Lock()
        self.dropped = 0

    def _should_post(self, force: bool) -> bool:
        return bool(self.webhook_url) and (self.log_progress or force)

    def notify(self, text: str, force: bool = False) -> None:
        """Log text and queue it for posting without blocking."""
        logger.info(text)
        if not self._should_post(force):
            return

        self._ensure_worker()
        try:
            self._queue.put_nowait(text)
        except queue.Full:
            self.dropped += 1
            logger.debug(f"Notification queue full, dropped: {text}")

    def send(self, text: str, force: bool = False) -> bool:
        """
        Log text and post it synchronously.

        Returns:
            True if the message was delivered
        """
        logger.info(text)
        if not self._should_post(force):
            return False
        return self._post(text)

    def _post(self, text: str) -> bool:
        try:
            response = self._session.post(
                self.webhook_url,
                json={"text": text, "mrkdwn": True},
                timeout=self.timeout,
            )
            response.raise_for_status()
            return True
        except requests.RequestException as e:
            logger.warning(f"Slack notification failed: {e}")
            return False

    def _ensure_worker(self) -> None:
        with self._thread_lock:
            if self._thread is None or not self._thread.is_alive():
                self._thread = threading.Thread(
                    target=self._run, name="notifier", daemon=True
                )
                self._thread.start()

    def _run(self) -> None:
        while True:
            text = self._queue.get()
            try:
                if text is _STOP:
                    return
                self._post(text)
            finally:
                self._queue.task_done()

    def flush(self, timeout: float = 30.0) -> bool:
        """
        Wait until every queued message has been posted or dropped.

        Returns:
            False if the queue did not drain within timeout
        """
        deadline = time.monotonic() + timeout
        with self._queue.all_tasks_done:
            while self._queue.unfinished_tasks:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._queue.all_tasks_done.wait(remaining)
        return True

    def close(self, timeout: float = 30.0) -> None:
        """Deliver what is queued (up to timeout) and stop the worker."""
        with self._thread_lock:
            thread = self._thread
            self._thread = None

        if thread is None:
            return

        try:
            self._queue.put(_STOP, timeout=timeout)
        except queue.Full:
            logger.warning("Notification queue did not drain, abandoning pending messages")
            return
        thread.join(timeout)

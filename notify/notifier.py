"""
Notifier collaborators.
The core hands every notifier a {"type": ..., "data": ...} message and never waits on or inspects the outcome.
"""
import concurrent.futures
import threading
from typing import Any, Dict, List, Optional

from logging_config import get_logger
from storage.retry import perform_request_with_retries

log = get_logger(__name__)

PROGRESS_UPDATED = 'okr_progress_updated'
ALERT_RAISED = 'okr_alert'
PUSH_PROCESSED = 'github_push_processed'


class NullNotifier:
    """Discards every message."""

    def broadcast(self, message: Dict[str, Any]) -> None:
        return None


class RecordingNotifier:
    """Keeps broadcast messages in memory, in order."""

    def __init__(self):
        self._lock = threading.Lock()
        self.messages: List[Dict[str, Any]] = []

    def broadcast(self, message: Dict[str, Any]) -> None:
        with self._lock:
            self.messages.append(message)

    def of_type(self, message_type: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [m for m in self.messages if m.get('type') == message_type]


class HttpNotifier:
    """
    POSTs each message as JSON to a fixed URL.

    broadcast() only queues the message; a single worker thread sends it through the retry helper
    in order. close() waits for queued messages to be delivered.
    """

    def __init__(self, url: str, headers: Optional[Dict[str, str]] = None, max_retries: Optional[int] = None):
        self.url = url
        self.headers = headers or {'Content-Type': 'application/json'}
        self.max_retries = max_retries
        self._pool = concurrent.futures.ThreadPoolExecutor(max_workers=1, thread_name_prefix='okr-notify')

    def broadcast(self, message: Dict[str, Any]) -> concurrent.futures.Future:
        return self._pool.submit(self._post, message)

    def _post(self, message: Dict[str, Any]) -> int:
        try:
            res = perform_request_with_retries(self.url, method='POST', headers=self.headers, json_body=message, max_retries=self.max_retries)
        except Exception:
            log.exception('notify_http_failed', url=self.url, type=message.get('type'))
            return 0
        status = res.get('status', 0)
        if not 200 <= status < 300:
            log.warning('notify_http_failed', url=self.url, status=status, type=message.get('type'))
        return status

    def close(self) -> None:
        self._pool.shutdown(wait=True)


def safe_broadcast(notifier, message_type: str, data: Any) -> bool:
    """
    Send one message; notifier failures are logged and swallowed so committed state is never rolled back.
    """
    if notifier is None:
        return False
    try:
        notifier.broadcast({'type': message_type, 'data': data})
        return True
    except Exception:
        log.exception('notify_failed', type=message_type)
        return False

import threading

from structlog.testing import capture_logs

from notify import notifier as notifier_mod
from notify.notifier import HttpNotifier, NullNotifier, RecordingNotifier, safe_broadcast


class ExplodingNotifier:
    def broadcast(self, message):
        raise ConnectionError('socket closed')


def test_recording_notifier_filters_by_type():
    rec = RecordingNotifier()
    assert safe_broadcast(rec, 'a', {'n': 1})
    assert safe_broadcast(rec, 'b', {'n': 2})
    assert rec.messages == [{'type': 'a', 'data': {'n': 1}}, {'type': 'b', 'data': {'n': 2}}]
    assert rec.of_type('b') == [{'type': 'b', 'data': {'n': 2}}]


def test_failures_are_logged_and_swallowed():
    with capture_logs() as logs:
        assert safe_broadcast(ExplodingNotifier(), 'okr_alert', {}) is False
    assert [e['event'] for e in logs] == ['notify_failed']
    assert logs[0]['type'] == 'okr_alert'


def test_missing_and_null_notifiers():
    assert safe_broadcast(None, 'x', {}) is False
    assert safe_broadcast(NullNotifier(), 'x', {}) is True


def test_http_notifier_posts_json(monkeypatch):
    sent = []

    def fake_request(url, **kwargs):
        sent.append((url, kwargs))
        return {'response': None, 'status': 204, 'timestamp': 0}

    monkeypatch.setattr(notifier_mod, 'perform_request_with_retries', fake_request)
    http = HttpNotifier('https://hooks.example.test/okr', max_retries=2)
    assert http.broadcast({'type': 'okr_alert', 'data': {'id': 'a1'}}).result(timeout=5) == 204
    http.close()
    url, kwargs = sent[0]
    assert url == 'https://hooks.example.test/okr'
    assert kwargs['method'] == 'POST'
    assert kwargs['json_body'] == {'type': 'okr_alert', 'data': {'id': 'a1'}}
    assert kwargs['max_retries'] == 2


def test_http_notifier_logs_rejections(monkeypatch):
    monkeypatch.setattr(notifier_mod, 'perform_request_with_retries', lambda url, **kw: {'response': 'nope', 'status': 500, 'timestamp': 0})
    with capture_logs() as logs:
        http = HttpNotifier('https://hooks.example.test/okr')
        http.broadcast({'type': 'okr_progress_updated', 'data': {}}).result(timeout=5)
        http.close()
    assert logs[0]['event'] == 'notify_http_failed'
    assert logs[0]['status'] == 500


def test_http_notifier_does_not_wait_for_delivery(monkeypatch):
    release = threading.Event()
    sent = []

    def slow_request(url, **kwargs):
        release.wait(timeout=5)
        sent.append(kwargs['json_body'])
        return {'response': None, 'status': 200, 'timestamp': 0}

    monkeypatch.setattr(notifier_mod, 'perform_request_with_retries', slow_request)
    http = HttpNotifier('https://hooks.example.test/okr')
    future = http.broadcast({'type': 'okr_alert', 'data': {'n': 1}})
    http.broadcast({'type': 'okr_alert', 'data': {'n': 2}})
    assert not future.done()
    assert sent == []

    release.set()
    http.close()
    assert [m['data']['n'] for m in sent] == [1, 2]

import json
from recordstore import Event, EventKind, EventNotifier, RecordStore


def _lines(err):
    return [json.loads(l) for l in err.strip().splitlines() if l.startswith('{')]


def test_default_handler_logs_json(capsys):
    n = EventNotifier()
    n.emit(EventKind.RECORD_DELETED, 'readings', pk='A')
    lines = _lines(capsys.readouterr().err)
    assert lines[-1]['event'] == 'record_deleted'
    assert lines[-1]['table'] == 'readings'
    assert lines[-1]['pk'] == 'A'
    assert lines[-1]['level'] == 'INFO'


def test_not_found_logs_at_warn(capsys):
    EventNotifier().emit('record_not_found', 't', operation='delete', pk=1)
    line = _lines(capsys.readouterr().err)[-1]
    assert line['level'] == 'WARN'
    assert line['operation'] == 'delete'


def test_override_and_reset(capsys):
    n = EventNotifier()
    seen = []
    n.on('record_upserted', seen.append)
    assert n.is_overridden(EventKind.RECORD_UPSERTED)
    n.emit(EventKind.RECORD_UPSERTED, 't', pk=7)
    assert isinstance(seen[0], Event)
    assert seen[0].kind is EventKind.RECORD_UPSERTED and seen[0]['pk'] == 7
    assert 'record_upserted' not in capsys.readouterr().err
    n.reset('record_upserted')
    assert not n.is_overridden('record_upserted')
    n.emit(EventKind.RECORD_UPSERTED, 't', pk=8)
    assert len(seen) == 1
    assert 'record_upserted' in capsys.readouterr().err


def test_failing_handler_never_breaks_caller(db_path, capsys):
    store = RecordStore(db_path, 't', 'id', {'id': 'TEXT'})
    def boom(event):
        raise RuntimeError('handler exploded')
    store.notifier.on(EventKind.RECORD_UPSERTED, boom)
    assert store.open()
    store.upsert({'id': 'A'})
    assert store.get('A') == {'id': 'A'}
    store.close()
    assert 'event_handler_failed' in capsys.readouterr().err


def test_disabled_notifier_is_silent(db_path, capsys):
    seen = []
    store = RecordStore(db_path, 't', 'id', {'id': 'TEXT'}, events_enabled=False)
    store.notifier.on('table_ready', seen.append)
    assert store.open()
    store.delete('nope')
    store.close()
    assert seen == []
    assert 'record_not_found' not in capsys.readouterr().err


def test_events_disabled_from_env(monkeypatch, db_path):
    monkeypatch.setenv('RECORDSTORE_EVENTS', '0')
    store = RecordStore(db_path, 't', 'id', {'id': 'TEXT'})
    assert store.notifier.enabled is False


def test_notifiers_are_per_instance(tmp_path):
    a = RecordStore(str(tmp_path / 'a.db'), 't', 'id', {'id': 'TEXT'})
    b = RecordStore(str(tmp_path / 'b.db'), 't', 'id', {'id': 'TEXT'})
    a.notifier.on('record_deleted', lambda e: None)
    assert not b.notifier.is_overridden('record_deleted')


def test_lifecycle_event_sequence(store, notifier):
    store.upsert({'id': 'A', 'value': 1.0})
    store.upsert({'id': 'A', 'value': 2.0})
    store.modify({'id': 'A', 'value': 3.0})
    store.delete('A')
    kinds = notifier.kinds()
    assert kinds[:2] == [EventKind.DATABASE_CONNECTED, EventKind.TABLE_READY]
    assert kinds[2:] == [EventKind.RECORD_UPSERTED, EventKind.RECORD_UPSERTED,
                         EventKind.RECORD_MODIFIED, EventKind.RECORD_DELETED]
    assert [d['action'] for d in notifier.of(EventKind.RECORD_UPSERTED)] == ['insert', 'update']

import sqlite3
from decimal import Decimal
import pytest
from recordstore import EngineError, EventKind, MissingPrimaryKey, ValidationFailed


def _raw_rows(db_path):
    with sqlite3.connect(db_path) as conn:
        return conn.execute("SELECT * FROM readings ORDER BY id").fetchall()


def test_upsert_then_get_returns_record_restricted_to_columns(store):
    record = {'id': 'A', 'name': 'alpha', 'value': 1.5, 'count': 3, 'payload': b'\x01\x02', 'stray': 'x'}
    store.upsert(record)
    got = store.get('A')
    assert got == {'id': 'A', 'name': 'alpha', 'value': 1.5, 'count': 3, 'payload': b'\x01\x02'}
    assert list(got) == ['id', 'name', 'value', 'count', 'payload']


def test_partial_record_reads_back_nulls(store):
    store.upsert({'id': 'A', 'value': 2.0})
    assert store.get('A') == {'id': 'A', 'name': None, 'value': 2.0, 'count': None, 'payload': None}


def test_repeated_upsert_keeps_one_row_and_preserves_unsupplied(store, db_path):
    store.upsert({'id': 'A', 'name': 'first', 'value': 1.0, 'count': 1})
    store.upsert({'id': 'A', 'value': 2.0})
    store.upsert({'id': 'A', 'count': 9})
    assert len(_raw_rows(db_path)) == 1
    assert store.get('A') == {'id': 'A', 'name': 'first', 'value': 2.0, 'count': 9, 'payload': None}


def test_explicit_none_overwrites(store):
    store.upsert({'id': 'A', 'name': 'first'})
    store.upsert({'id': 'A', 'name': None, 'value': 1.0})
    assert store.get('A')['name'] is None


def test_type_mismatch_rejected_without_write(store, notifier, db_path):
    with pytest.raises(ValidationFailed) as exc:
        store.upsert({'id': 'A', 'value': 'not-a-number'})
    assert exc.value.column == 'value'
    assert _raw_rows(db_path) == []
    errors = notifier.of(EventKind.VALIDATION_ERROR)
    assert errors and errors[-1]['column'] == 'value'
    assert EventKind.RECORD_UPSERTED not in notifier.kinds()


def test_decimal_rejected_before_reaching_engine(store, db_path):
    with pytest.raises(ValidationFailed) as exc:
        store.upsert({'id': 'A', 'value': Decimal('1.5')})
    assert exc.value.column == 'value'
    assert exc.value.actual == 'Decimal'
    assert _raw_rows(db_path) == []
    store.upsert({'id': 'A', 'value': float(Decimal('1.5'))})
    assert store.get('A')['value'] == 1.5


def test_type_mismatch_leaves_existing_row_untouched(store):
    store.upsert({'id': 'A', 'value': 1.0})
    with pytest.raises(ValidationFailed):
        store.upsert({'id': 'A', 'name': 'ok', 'value': 'bad'})
    assert store.get('A')['value'] == 1.0
    assert store.get('A')['name'] is None


def test_missing_primary_key(store, notifier):
    with pytest.raises(MissingPrimaryKey):
        store.upsert({'name': 'orphan'})
    with pytest.raises(MissingPrimaryKey):
        store.modify({'id': None, 'name': 'orphan'})
    assert len(notifier.of(EventKind.VALIDATION_ERROR)) == 2
    assert store.count() == 0


def test_modify_existing(store, notifier):
    store.upsert({'id': 'A', 'name': 'first', 'value': 1.0})
    assert store.modify({'id': 'A', 'value': 5.0}) is True
    assert store.get('A') == {'id': 'A', 'name': 'first', 'value': 5.0, 'count': None, 'payload': None}
    assert notifier.of(EventKind.RECORD_MODIFIED) == [{'pk': 'A'}]


def test_modify_missing_is_reported_not_raised(store, notifier):
    assert store.modify({'id': 'ghost', 'value': 1.0}) is False
    assert store.get('ghost') is None
    assert notifier.of(EventKind.RECORD_NOT_FOUND) == [{'operation': 'modify', 'pk': 'ghost'}]


def test_modify_validates_before_lookup(store):
    with pytest.raises(ValidationFailed):
        store.modify({'id': 'ghost', 'count': 'many'})


def test_delete(store, notifier):
    store.upsert({'id': 'A'})
    assert store.delete('A') is True
    assert store.get('A') is None
    assert notifier.of(EventKind.RECORD_DELETED) == [{'pk': 'A'}]


def test_delete_missing_is_non_fatal(store, notifier):
    assert store.delete('does-not-exist') is False
    assert notifier.of(EventKind.RECORD_NOT_FOUND) == [{'operation': 'delete', 'pk': 'does-not-exist'}]


def test_get_missing_returns_none(store):
    assert store.get('nothing') is None


def test_get_all_and_count(store):
    assert store.get_all() == []
    for i, key in enumerate(['A', 'B', 'C']):
        store.upsert({'id': key, 'count': i})
    rows = store.get_all()
    assert sorted(r['id'] for r in rows) == ['A', 'B', 'C']
    assert all(set(r) == {'id', 'name', 'value', 'count', 'payload'} for r in rows)
    assert store.count() == 3
    assert store.exists('B') and not store.exists('Z')


def test_integer_primary_key(tmp_path):
    from recordstore import RecordStore
    s = RecordStore(str(tmp_path / 'i.db'), 'people', 'person_id', {'person_id': 'INTEGER', 'name': 'TEXT'})
    assert s.open()
    s.upsert({'person_id': 7, 'name': 'x'})
    s.upsert({'person_id': 7, 'name': 'y'})
    assert s.get(7) == {'person_id': 7, 'name': 'y'}
    assert s.count() == 1
    s.close()


def test_update_with_no_columns_surfaces_engine_error(store, notifier):
    store.upsert({'id': 'A'})
    with pytest.raises(EngineError) as exc:
        store.upsert({'id': 'A'})
    assert exc.value.operation == 'upsert'
    assert isinstance(exc.value.__cause__, sqlite3.Error)
    assert notifier.of(EventKind.DATABASE_ERROR)


def test_operations_require_open_store(db_path):
    from recordstore import RecordStore
    s = RecordStore(db_path, 'readings', 'id', {'id': 'TEXT'})
    with pytest.raises(EngineError) as exc:
        s.get('A')
    assert 'not open' in str(exc.value)

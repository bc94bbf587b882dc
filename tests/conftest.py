import pytest
from recordstore import RecordStore, EventKind, EventNotifier

READINGS = {'id': 'TEXT', 'name': 'TEXT', 'value': 'REAL', 'count': 'INTEGER', 'payload': 'BLOB'}


class RecordingNotifier(EventNotifier):
    """Notifier that keeps every emitted event (and still logs by default)."""

    def __init__(self):
        super().__init__(enabled=True)
        self.events = []

    def emit(self, kind, table=None, **data):
        super().emit(kind, table, **data)
        self.events.append((EventKind(kind), data))

    def kinds(self):
        return [k for k, _ in self.events]

    def of(self, kind):
        return [d for k, d in self.events if k == kind]


@pytest.fixture()
def db_path(tmp_path):
    return str(tmp_path / 'store.db')


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def store(db_path, notifier):
    s = RecordStore(db_path, 'readings', 'id', READINGS, notifier=notifier)
    assert s.open()
    yield s
    s.close()

import copy
from datetime import date, timedelta

import pytest
from google.api_core.exceptions import AlreadyExists

import expenses
import firebase_store
import trips
from factories import ALICE, BOB, CAROL
from utils import format_trip_date


# =============================================================================
# In-memory Firestore
# =============================================================================

class FakeSnapshot:
    """Document snapshot returned by get() and stream()."""

    def __init__(self, reference, data):
        self.reference = reference
        self.id = reference.id
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeWatch:
    def __init__(self, db, path, callback):
        self._db = db
        self.path = path
        self.callback = callback

    def unsubscribe(self):
        self._db.watches.remove(self)


class FakeDocumentRef:
    def __init__(self, db, path):
        self._db = db
        self.path = path
        self.id = path[-1]

    def collection(self, name):
        return FakeCollection(self._db, self.path + (name,))

    def get(self):
        return FakeSnapshot(self, self._db.docs.get(self.path))

    def set(self, data):
        self._db.docs[self.path] = copy.deepcopy(data)
        self._db.notify(self.path[:-1])

    def create(self, data):
        if self.path in self._db.docs:
            raise AlreadyExists(f"Document already exists: {'/'.join(self.path)}")
        self.set(data)

    def update(self, data):
        if self.path not in self._db.docs:
            raise KeyError(f"No document to update: {'/'.join(self.path)}")
        self._db.docs[self.path].update(copy.deepcopy(data))
        self._db.notify(self.path[:-1])

    def delete(self):
        self._db.docs.pop(self.path, None)
        self._db.notify(self.path[:-1])


class FakeQuery:
    def __init__(self, collection, field, op, value):
        self._collection = collection
        self._field = field
        self._op = op
        self._value = value

    def stream(self):
        for snapshot in self._collection.stream():
            field_value = snapshot.to_dict().get(self._field)
            if self._op == "array_contains" and self._value in (field_value or []):
                yield snapshot
            elif self._op == "==" and field_value == self._value:
                yield snapshot


class FakeCollection:
    def __init__(self, db, path):
        self._db = db
        self.path = path

    def document(self, doc_id):
        return FakeDocumentRef(self._db, self.path + (doc_id,))

    def stream(self):
        return iter(self._db.snapshots(self.path))

    def where(self, filter):
        return FakeQuery(self, filter.field_path, filter.op_string, filter.value)

    def on_snapshot(self, callback):
        watch = FakeWatch(self._db, self.path, callback)
        self._db.watches.append(watch)
        callback(self._db.snapshots(self.path), [], None)
        return watch


class FakeFirestore:
    """Just enough of the Firestore client API for the stores."""

    def __init__(self):
        self.docs = {}
        self.watches = []

    def collection(self, name):
        return FakeCollection(self, (name,))

    def snapshots(self, collection_path):
        return [
            FakeSnapshot(FakeDocumentRef(self, path), data)
            for path, data in sorted(self.docs.items())
            if path[:-1] == collection_path
        ]

    def notify(self, collection_path):
        for watch in list(self.watches):
            if watch.path == collection_path:
                watch.callback(self.snapshots(collection_path), [], None)


@pytest.fixture
def fake_db(monkeypatch):
    """Replace Firestore with an in-memory fake in every store module."""
    db = FakeFirestore()
    for module in (trips, expenses, firebase_store):
        monkeypatch.setattr(module, "get_db", lambda: db)
    return db


# =============================================================================
# Trips and expenses
# =============================================================================

@pytest.fixture
def trip_dates():
    """A start and end date a week from now, in DD-MM-YYYY format."""
    start = date.today() + timedelta(days=7)
    return format_trip_date(start), format_trip_date(start + timedelta(days=4))


@pytest.fixture
def trip(fake_db, trip_dates):
    """Create and return a trip with three participants, admin 'admin-uid'."""
    start, end = trip_dates
    return trips.create_trip(
        name="Goa Getaway",
        start_date=start,
        end_date=end,
        starting_point="Mumbai",
        destinations=["Panaji", "Calangute"],
        participants=[ALICE, BOB, CAROL],
        admin_id="admin-uid",
    )

"""
In-memory stand-in for the slice of the Firestore client the app uses.

Supports slash-delimited collection paths, document create/get/set/update/delete,
queries with where/order_by/limit, write batches, `last_update_time`
preconditions, SERVER_TIMESTAMP / DELETE_FIELD and on_snapshot listeners
(fired synchronously on registration and after every write).
"""
import copy
import itertools
import threading
import uuid
from datetime import datetime, timedelta, timezone

from firebase_admin import firestore
from google.api_core.exceptions import AlreadyExists, FailedPrecondition, NotFound

_BASE_TIME = datetime(2025, 1, 1, tzinfo=timezone.utc)

_OPS = {
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    "<": lambda a, b: a < b,
    "<=": lambda a, b: a <= b,
    ">": lambda a, b: a > b,
    ">=": lambda a, b: a >= b,
    "in": lambda a, b: a in b,
}


class WriteOption:
    def __init__(self, last_update_time):
        self.last_update_time = last_update_time


class Watch:
    def __init__(self, registry, entry):
        self._registry = registry
        self._entry = entry

    def unsubscribe(self):
        self._registry.remove_listener(self._entry)


class DocumentSnapshot:
    def __init__(self, reference, data, update_time):
        self.reference = reference
        self.id = reference.id
        self._data = data
        self.update_time = update_time

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class DocumentReference:
    def __init__(self, client, collection_path, doc_id):
        self._client = client
        self.collection_path = collection_path
        self.id = doc_id

    @property
    def path(self):
        return f"{self.collection_path}/{self.id}"

    def get(self):
        return self._client._snapshot(self)

    def create(self, data):
        self._client._apply([("create", self, data, {})])

    def set(self, data, merge=False):
        self._client._apply([("set", self, data, {"merge": merge})])

    def update(self, data, option=None):
        self._client._apply([("update", self, data, {"option": option})])

    def delete(self, option=None):
        self._client._apply([("delete", self, None, {"option": option})])

    def on_snapshot(self, callback):
        return self._client._listen(("doc", self.path), lambda: [self.get()], callback)


class Query:
    def __init__(self, client, collection_path, filters=(), orders=(), limit_to=None):
        self._client = client
        self._path = collection_path
        self._filters = list(filters)
        self._orders = list(orders)
        self._limit = limit_to

    def _copy(self, **changes):
        params = dict(filters=self._filters, orders=self._orders, limit_to=self._limit)
        params.update(changes)
        return Query(self._client, self._path, **params)

    def where(self, field_path=None, op_string=None, value=None, *, filter=None):
        if filter is not None:
            field_path, op_string, value = filter.field_path, filter.op_string, filter.value
        return self._copy(filters=self._filters + [(field_path, op_string, value)])

    def order_by(self, field_path, direction="ASCENDING"):
        return self._copy(orders=self._orders + [(field_path, direction)])

    def limit(self, count):
        return self._copy(limit_to=count)

    def _matches(self, data):
        for field, op, value in self._filters:
            if field not in data or not _OPS[op](data[field], value):
                return False
        return all(field in data for field, _ in self._orders)

    def _results(self):
        snaps = [s for s in self._client._collection_snapshots(self._path) if self._matches(s.to_dict())]
        for field, direction in reversed(self._orders):
            snaps.sort(key=lambda s: s.to_dict()[field], reverse=direction == "DESCENDING")
        if self._limit is not None:
            snaps = snaps[: self._limit]
        return snaps

    def stream(self):
        return iter(self._results())

    def get(self):
        return self._results()

    def on_snapshot(self, callback):
        return self._client._listen(("collection", self._path), self._results, callback)


class CollectionReference(Query):
    def __init__(self, client, path):
        super().__init__(client, path)
        self.id = path.rsplit("/", 1)[-1]

    def document(self, document_id=None):
        return DocumentReference(self._client, self._path, document_id or uuid.uuid4().hex[:20])

    def add(self, data):
        ref = self.document()
        ref.set(data)
        return ref.get().update_time, ref


class WriteBatch:
    def __init__(self, client):
        self._client = client
        self._writes = []

    def set(self, reference, data, merge=False):
        self._writes.append(("set", reference, data, {"merge": merge}))

    def update(self, reference, field_updates, option=None):
        self._writes.append(("update", reference, field_updates, {"option": option}))

    def delete(self, reference, option=None):
        self._writes.append(("delete", reference, None, {"option": option}))

    def commit(self):
        self._client._apply(self._writes)
        self._writes = []


class FakeFirestore:
    def __init__(self):
        self._docs = {}          # path -> (collection_path, data, update_time)
        self._lock = threading.RLock()
        self._clock = itertools.count(1)
        self._listeners = []
        self.commits = 0

    # --- client surface ---

    def collection(self, path):
        return CollectionReference(self, path)

    def batch(self):
        return WriteBatch(self)

    @staticmethod
    def write_option(last_update_time=None):
        return WriteOption(last_update_time)

    # --- test helpers ---

    def put(self, path, data):
        """Seeds a document by full path, e.g. 'admins/u1'."""
        collection_path, doc_id = path.rsplit("/", 1)
        self.collection(collection_path).document(doc_id).set(data)

    def data(self, path):
        collection_path, doc_id = path.rsplit("/", 1)
        return self.collection(collection_path).document(doc_id).get().to_dict()

    def listener_count(self):
        return len(self._listeners)

    # --- internals ---

    def _now(self):
        return _BASE_TIME + timedelta(microseconds=next(self._clock))

    def _snapshot(self, ref):
        with self._lock:
            entry = self._docs.get(ref.path)
        if entry is None:
            return DocumentSnapshot(ref, None, None)
        return DocumentSnapshot(ref, copy.deepcopy(entry[1]), entry[2])

    def _collection_snapshots(self, collection_path):
        with self._lock:
            items = [(path, entry) for path, entry in self._docs.items() if entry[0] == collection_path]
        return [
            DocumentSnapshot(DocumentReference(self, collection_path, path.rsplit("/", 1)[1]),
                             copy.deepcopy(entry[1]), entry[2])
            for path, entry in items
        ]

    def _resolve(self, data, now, base=None):
        result = dict(base or {})
        for key, value in data.items():
            if value is firestore.DELETE_FIELD:
                result.pop(key, None)
            elif value is firestore.SERVER_TIMESTAMP:
                result[key] = now
            else:
                result[key] = copy.deepcopy(value)
        return result

    def _apply(self, writes):
        touched = []
        with self._lock:
            staged = dict(self._docs)
            now = self._now()
            for kind, ref, data, opts in writes:
                current = staged.get(ref.path)
                option = opts.get("option")
                if option is not None and (current is None or current[2] != option.last_update_time):
                    raise FailedPrecondition(f"{ref.path} changed since it was read")
                if kind == "create":
                    if current is not None:
                        raise AlreadyExists(f"{ref.path} already exists")
                    staged[ref.path] = (ref.collection_path, self._resolve(data, now), now)
                elif kind == "set":
                    base = current[1] if (current and opts.get("merge")) else None
                    staged[ref.path] = (ref.collection_path, self._resolve(data, now, base), now)
                elif kind == "update":
                    if current is None:
                        raise NotFound(f"No document to update: {ref.path}")
                    staged[ref.path] = (ref.collection_path, self._resolve(data, now, current[1]), now)
                elif kind == "delete":
                    staged.pop(ref.path, None)
                touched.append(ref)
            self._docs = staged
            self.commits += 1
            listeners = list(self._listeners)

        for ref in touched:
            for entry in listeners:
                key, results, callback = entry
                if key == ("doc", ref.path) or key == ("collection", ref.collection_path):
                    callback(results(), [], now)

    def _listen(self, key, results, callback):
        entry = (key, results, callback)
        with self._lock:
            self._listeners.append(entry)
        callback(results(), [], self._now())
        return Watch(self, entry)

    def remove_listener(self, entry):
        with self._lock:
            if entry in self._listeners:
                self._listeners.remove(entry)

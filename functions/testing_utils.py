# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

"""In-memory stand-ins for the Firestore client used by the unit tests."""

import itertools
from dataclasses import dataclass
from typing import Dict, Optional, Set


@dataclass
class FakeSnapshot:
    id: str
    _data: Optional[dict]
    reference: Optional["FakeDocument"] = None

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> Optional[dict]:
        return dict(self._data) if self._data is not None else None


class FakeDocument:
    def __init__(self, db: "FakeFirestore", collection: str, doc_id: str):
        self._db = db
        self._collection = collection
        self.id = doc_id

    def get(self) -> FakeSnapshot:
        self._db.reads.append((self._collection, self.id))
        if (self._collection, self.id) in self._db.failing:
            raise RuntimeError(f"read failed for {self._collection}/{self.id}")
        data = self._db.data.get(self._collection, {}).get(self.id)
        return FakeSnapshot(self.id, data)

    def set(self, data: dict) -> None:
        self._db.data.setdefault(self._collection, {})[self.id] = dict(data)

    def update(self, data: dict) -> None:
        self._db.data[self._collection][self.id].update(data)

    def delete(self) -> None:
        self._db.data.get(self._collection, {}).pop(self.id, None)


class FakeQuery:
    def __init__(self, db: "FakeFirestore", collection: str, field: str, value):
        self._db = db
        self._collection = collection
        self._field = field
        self._value = value

    def stream(self):
        for doc_id, data in self._db.data.get(self._collection, {}).items():
            if data.get(self._field) == self._value:
                yield FakeSnapshot(
                    doc_id, data, FakeDocument(self._db, self._collection, doc_id)
                )


class FakeBatch:
    def __init__(self, db: "FakeFirestore"):
        self._db = db
        self._deletes = []

    def delete(self, reference: FakeDocument) -> None:
        self._deletes.append(reference)

    def commit(self) -> None:
        self._db.commits.append(len(self._deletes))
        for reference in self._deletes:
            reference.delete()


class FakeCollection:
    def __init__(self, db: "FakeFirestore", name: str):
        self._db = db
        self._name = name

    def document(self, doc_id: str) -> FakeDocument:
        return FakeDocument(self._db, self._name, doc_id)

    def add(self, data: dict):
        doc_id = f"auto-{next(self._db.ids)}"
        self._db.data.setdefault(self._name, {})[doc_id] = dict(data)
        return None, FakeDocument(self._db, self._name, doc_id)

    def where(self, filter=None):
        # Only equality filters are used by the functions.
        return FakeQuery(self._db, self._name, filter.field_path, filter.value)


class FakeFirestore:
    """
    A dict-backed Firestore client.

    `data` maps collection name -> document id -> document dict. Reads of any
    (collection, id) pair listed in `failing` raise RuntimeError.
    """

    def __init__(
        self,
        data: Optional[Dict[str, Dict[str, dict]]] = None,
        failing: Optional[Set[tuple]] = None,
    ):
        self.data = data or {}
        self.failing = failing or set()
        self.reads = []
        self.ids = itertools.count(1)
        self.commits = []

    def collection(self, name: str) -> FakeCollection:
        return FakeCollection(self, name)

    def batch(self) -> FakeBatch:
        return FakeBatch(self)

    def documents(self, collection: str) -> Dict[str, dict]:
        return self.data.get(collection, {})


def expo_token(suffix: str) -> str:
    return f"ExponentPushToken[{suffix}]"


class InMemoryStorageClient:
    """A bucket stand-in: `objects` maps object name -> (bytes, content type)."""

    def __init__(self, objects: Optional[Dict[str, tuple]] = None):
        self.objects = dict(objects or {})
        self.uploads = []

    def download_bytes(self, path: str) -> bytes:
        return self.objects[path][0]

    def upload_bytes(self, path: str, data: bytes, content_type: str) -> None:
        self.objects[path] = (data, content_type)
        self.uploads.append(path)

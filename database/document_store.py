"""
Document store collaborators
Versioned get/put/query/delete over named collections, with conditional
writes so concurrent seat updates can be detected and retried
"""
from abc import ABC, abstractmethod
import copy
import threading
from typing import Dict, List, Optional, Tuple

from psycopg2.extras import Json, RealDictCursor

from .database import DatabaseManager


COMPANIES = 'companies'
ROUTES = 'routes'
BUSES = 'buses'
SCHEDULES = 'schedules'
BOOKINGS = 'bookings'
PAYMENTS = 'payments'


class ConcurrentModificationError(Exception):
    """Raised when a conditional put finds a different version than expected"""

    def __init__(self, collection: str, doc_id: str, expected: int, actual: Optional[int]):
        self.collection = collection
        self.doc_id = doc_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{collection}/{doc_id} changed concurrently (expected version {expected}, found {actual})"
        )


class DocumentStore(ABC):
    """Abstract document store used by the services"""

    @abstractmethod
    def get_versioned(self, collection: str, doc_id: str) -> Tuple[Optional[dict], int]:
        """Return ``(doc, version)``; ``(None, 0)`` when the document does not exist"""

    @abstractmethod
    def put(self, collection: str, doc_id: str, doc: dict, expected_version: Optional[int] = None) -> int:
        """
        Write a document and return its new version

        Args:
            collection: Collection name
            doc_id: Document ID
            doc: Document body
            expected_version: When given, the write only happens if the stored
                version matches (0 means the document must not exist yet)

        Raises:
            ConcurrentModificationError: If ``expected_version`` does not match
        """

    @abstractmethod
    def query(self, collection: str, **field_equals) -> List[dict]:
        """Return documents whose top-level fields equal the given values"""

    @abstractmethod
    def delete_by_id(self, collection: str, doc_id: str) -> bool:
        """Delete a document, returning whether it existed"""

    def get_by_id(self, collection: str, doc_id: str) -> Optional[dict]:
        doc, _ = self.get_versioned(collection, doc_id)
        return doc


class MemoryDocumentStore(DocumentStore):
    """Thread-safe in-process store; documents are copied on the way in and out"""

    def __init__(self):
        self._lock = threading.Lock()
        self._collections: Dict[str, Dict[str, Tuple[int, dict]]] = {}

    def get_versioned(self, collection, doc_id):
        with self._lock:
            entry = self._collections.get(collection, {}).get(doc_id)
            if entry is None:
                return None, 0
            version, doc = entry
            return copy.deepcopy(doc), version

    def put(self, collection, doc_id, doc, expected_version=None):
        with self._lock:
            documents = self._collections.setdefault(collection, {})
            current = documents.get(doc_id)
            current_version = current[0] if current else 0

            if expected_version is not None and expected_version != current_version:
                raise ConcurrentModificationError(collection, doc_id, expected_version, current_version)

            new_version = current_version + 1
            documents[doc_id] = (new_version, copy.deepcopy(doc))
            return new_version

    def query(self, collection, **field_equals):
        with self._lock:
            documents = list(self._collections.get(collection, {}).values())
        return [
            copy.deepcopy(doc)
            for _, doc in documents
            if all(doc.get(key) == value for key, value in field_equals.items())
        ]

    def delete_by_id(self, collection, doc_id):
        with self._lock:
            return self._collections.get(collection, {}).pop(doc_id, None) is not None


class PostgresDocumentStore(DocumentStore):
    """JSONB-backed store; conditional puts are version-guarded UPDATEs"""

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    def get_versioned(self, collection, doc_id):
        with self.db_manager.get_cursor(cursor_factory=RealDictCursor) as cursor:
            cursor.execute("""
                SELECT body, version
                FROM documents
                WHERE collection = %s AND id = %s
            """, (collection, doc_id))
            row = cursor.fetchone()
            if not row:
                return None, 0
            return row['body'], row['version']

    def put(self, collection, doc_id, doc, expected_version=None):
        with self.db_manager.get_cursor(cursor_factory=RealDictCursor) as cursor:
            if expected_version is None:
                cursor.execute("""
                    INSERT INTO documents (collection, id, version, body)
                    VALUES (%s, %s, 1, %s)
                    ON CONFLICT (collection, id) DO UPDATE
                    SET body = EXCLUDED.body,
                        version = documents.version + 1,
                        updated_at = NOW()
                    RETURNING version
                """, (collection, doc_id, Json(doc)))
            elif expected_version == 0:
                cursor.execute("""
                    INSERT INTO documents (collection, id, version, body)
                    VALUES (%s, %s, 1, %s)
                    ON CONFLICT (collection, id) DO NOTHING
                    RETURNING version
                """, (collection, doc_id, Json(doc)))
            else:
                cursor.execute("""
                    UPDATE documents
                    SET body = %s, version = version + 1, updated_at = NOW()
                    WHERE collection = %s AND id = %s AND version = %s
                    RETURNING version
                """, (Json(doc), collection, doc_id, expected_version))

            row = cursor.fetchone()
            if row:
                return row['version']

            cursor.execute("""
                SELECT version FROM documents WHERE collection = %s AND id = %s
            """, (collection, doc_id))
            current = cursor.fetchone()
            raise ConcurrentModificationError(
                collection, doc_id, expected_version, current['version'] if current else 0
            )

    def query(self, collection, **field_equals):
        with self.db_manager.get_cursor(cursor_factory=RealDictCursor) as cursor:
            if field_equals:
                cursor.execute("""
                    SELECT body FROM documents
                    WHERE collection = %s AND body @> %s
                    ORDER BY created_at, id
                """, (collection, Json(field_equals)))
            else:
                cursor.execute("""
                    SELECT body FROM documents
                    WHERE collection = %s
                    ORDER BY created_at, id
                """, (collection,))
            return [row['body'] for row in cursor.fetchall()]

    def delete_by_id(self, collection, doc_id):
        with self.db_manager.get_cursor() as cursor:
            cursor.execute("""
                DELETE FROM documents WHERE collection = %s AND id = %s
                RETURNING id
            """, (collection, doc_id))
            return cursor.fetchone() is not None

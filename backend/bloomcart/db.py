# db.py
import copy
import logging
import threading

import certifi
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import ConnectionFailure, PyMongoError

from bloomcart import config

# --- Logging Setup ---
logger = logging.getLogger('db')


class StoreUnavailable(Exception):
    """The persistent store could not serve a read or write."""


def connect_to_db(uri: str | None = config.MONGO_URI, db_name: str | None = config.MONGO_DB):
    """
    Establishes a connection to MongoDB and returns the database object, or
    None when the configuration is missing or the server is unreachable.
    """
    if not (uri and db_name):
        logger.error("Missing MongoDB configuration variables; running without persistent storage.")
        return None

    try:
        # Atlas (SRV) deployments need TLS with a CA bundle; local servers usually run without.
        tls_options = {'tls': True, 'tlsCAFile': certifi.where()} if uri.startswith('mongodb+srv') else {}
        client = MongoClient(uri, serverSelectionTimeoutMS=config.MONGO_TIMEOUT_MS, **tls_options)
        logger.info("MongoClient created.")

        # Send a ping to confirm a successful connection
        client.admin.command('ping')
        logger.info("Pinged your deployment. You successfully connected to MongoDB!")

        db = client[db_name]
        logger.info("Ensuring unique indexes exist...")
        db[config.MONGO_PRODUCTS_COLLECTION].create_index([("product_key", ASCENDING)], unique=True)
        db[config.MONGO_PRODUCTS_COLLECTION].create_index([("category", ASCENDING), ("overall_score", DESCENDING)])
        db[config.MONGO_ACCOUNTS_COLLECTION].create_index([("account_id", ASCENDING)], unique=True)
        logger.info("Indexes are ready.")
        return db

    except ConnectionFailure as e:
        logger.error(f"Could not connect to MongoDB: {e}")
        return None
    except PyMongoError as e:
        logger.error(f"An error occurred while preparing MongoDB: {e}")
        return None


# ==============================================================================
# Document stores
# ==============================================================================

class MongoStore:
    """Keyed get/upsert/delete over one collection. Every driver error becomes StoreUnavailable."""

    key_field = '_key'

    def __init__(self, collection):
        self.collection = collection

    def get(self, key: str) -> dict | None:
        try:
            return self.collection.find_one({self.key_field: key}, {'_id': 0})
        except PyMongoError as e:
            raise StoreUnavailable(f"read of {self.key_field}={key} failed: {e}") from e

    def upsert(self, key: str, document: dict) -> None:
        try:
            self.collection.replace_one({self.key_field: key}, document, upsert=True)
        except PyMongoError as e:
            raise StoreUnavailable(f"upsert of {self.key_field}={key} failed: {e}") from e

    def delete(self, key: str) -> bool:
        try:
            return self.collection.delete_one({self.key_field: key}).deleted_count > 0
        except PyMongoError as e:
            raise StoreUnavailable(f"delete of {self.key_field}={key} failed: {e}") from e


class MongoProductStore(MongoStore):
    key_field = 'product_key'

    def top_in_category(self, category: str, exclude_key: str, limit: int = 3) -> list:
        pipeline = [
            {'$match': {'category': category, 'product_key': {'$ne': exclude_key}}},
            {'$sort': {'overall_score': -1}},
            {'$limit': limit},
            {'$project': {
                '_id': 0,
                'product_key': 1,
                'title': '$product.title',
                'brand': '$product.brand',
                'score': '$overall_score',
                'grade': 1,
            }},
        ]
        try:
            return list(self.collection.aggregate(pipeline))
        except PyMongoError as e:
            raise StoreUnavailable(f"recommendation query for '{category}' failed: {e}") from e


class MongoAccountStore(MongoStore):
    key_field = 'account_id'


class MemoryStore:
    """Process-local stand-in for a MongoStore, keyed the same way."""

    def __init__(self):
        self._documents = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> dict | None:
        with self._lock:
            document = self._documents.get(key)
            return copy.deepcopy(document) if document is not None else None

    def upsert(self, key: str, document: dict) -> None:
        with self._lock:
            self._documents[key] = copy.deepcopy(document)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._documents.pop(key, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._documents)


class MemoryProductStore(MemoryStore):

    def top_in_category(self, category: str, exclude_key: str, limit: int = 3) -> list:
        with self._lock:
            candidates = [doc for key, doc in self._documents.items()
                          if doc.get('category') == category and key != exclude_key]
        candidates.sort(key=lambda doc: doc.get('overall_score', 0), reverse=True)
        return [{
            'product_key': doc['product_key'],
            'title': doc['product']['title'],
            'brand': doc['product'].get('brand', ''),
            'score': doc['overall_score'],
            'grade': doc['grade'],
        } for doc in candidates[:limit]]


class MemoryAccountStore(MemoryStore):
    pass

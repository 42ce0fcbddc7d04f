"""
Document-store mirror of relational records.

Each table is mirrored into a MongoDB collection of the same name. The
mirror is best effort: a failed upsert never fails the request, the
lifecycle flags the row with ``sync_mdb = 1`` instead.

``MirrorStore`` accepts anything that hands out PyMongo-style collections
(``db[name]`` returning an object with ``update_one``, ``find`` and
``count_documents``), which keeps it testable without a server.

Configuration:
    MONGODB_URI       — mirror disabled when empty
    MONGODB_DATABASE  — database name (default "coreapi")
"""

import logging

logger = logging.getLogger(__name__)


class MirrorError(Exception):
    """Raised when the document store rejects a read or write."""


class MirrorStore:
    """Upsert/search facade over a PyMongo-style database."""

    def __init__(self, database):
        self._database = database

    def collection(self, table: str):
        return self._database[table]

    def upsert(self, table: str, document: dict, unique_keys=("id",)) -> None:
        selector = {key: document[key] for key in unique_keys}
        try:
            self.collection(table).update_one(selector, {"$set": document}, upsert=True)
        except Exception as exc:
            raise MirrorError(f"Upsert into {table} failed: {exc}") from exc

    def search(self, table: str, filter_doc: dict, sort=None, skip: int = 0, limit: int = 0) -> list[dict]:
        try:
            cursor = self.collection(table).find(filter_doc, {"_id": 0})
            if sort:
                cursor = cursor.sort(list(sort))
            if skip:
                cursor = cursor.skip(skip)
            if limit:
                cursor = cursor.limit(limit)
            return list(cursor)
        except Exception as exc:
            raise MirrorError(f"Search in {table} failed: {exc}") from exc

    def count(self, table: str, filter_doc: dict) -> int:
        try:
            return self.collection(table).count_documents(filter_doc)
        except Exception as exc:
            raise MirrorError(f"Count in {table} failed: {exc}") from exc


def init_mirror(app):
    """Attach a MirrorStore to ``app.extensions["mirror"]`` when configured.

    pymongo is imported here so deployments without a mirror need not
    install it.
    """
    uri = app.config.get("MONGODB_URI")
    if not uri:
        app.extensions["mirror"] = None
        logger.debug("MongoDB mirror disabled (MONGODB_URI not set)")
        return None

    from pymongo import MongoClient

    client = MongoClient(uri, serverSelectionTimeoutMS=app.config.get("MONGODB_TIMEOUT_MS", 2000))
    store = MirrorStore(client[app.config.get("MONGODB_DATABASE", "coreapi")])
    app.extensions["mirror"] = store
    logger.info("MongoDB mirror enabled: database=%s", app.config.get("MONGODB_DATABASE", "coreapi"))
    return store

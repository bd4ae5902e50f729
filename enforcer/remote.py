"""
Remote canonical copy of words, cards and reviews.

The reconciliation engine talks to the remote through the RemoteStore
protocol. MongoRemoteStore is the production implementation: one MongoDB
collection per table, documents shaped like the snapshot rows.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import PyMongoError

from enforcer import config
from enforcer.errors import Transient

logger = logging.getLogger(__name__)

WORDS = "words"
CARDS = "cards"
REVIEWS = "reviews"

# Correction fields the remote accepts
CONTENT_FIELDS = ("text", "translation")


class RemoteStore(Protocol):
    """What the reconciliation engine needs from the remote copy."""

    def fetch_snapshot(self) -> dict:
        """Return `{words: [...], cards: [...], reviews: [...]}` as plain dicts."""
        ...

    def update_word(self, word_id: str, changes: dict[str, str]) -> int:
        """Apply content changes to one word; return the number of rows matched."""
        ...


class MongoRemoteStore:
    """
    MongoDB-backed remote copy.

    The client is created lazily and reused across calls. Every operation is
    bounded by REMOTE_TIMEOUT_MS; driver errors surface as Transient.
    """

    def __init__(
        self,
        mongo_uri: Optional[str] = None,
        db_name: Optional[str] = None,
        timeout_ms: Optional[int] = None,
        client: Optional[MongoClient] = None
    ):
        self._mongo_uri = mongo_uri
        self._db_name = db_name or config.get_mongo_db_name()
        self._timeout_ms = timeout_ms or config.get_remote_timeout_ms()
        self._client = client

    # ---- Connection Management ----

    def _get_db(self) -> Database:
        if self._client is None:
            self._client = MongoClient(
                self._mongo_uri or config.get_mongo_uri(),
                serverSelectionTimeoutMS=self._timeout_ms,
                connectTimeoutMS=self._timeout_ms,
                socketTimeoutMS=self._timeout_ms,
                maxPoolSize=10,         # Connection pool size
                minPoolSize=1,          # Keep at least 1 connection alive
                maxIdleTimeMS=60000,    # Keep connections alive for 60 seconds
            )
        return self._client[self._db_name]

    def _collection(self, name: str) -> Collection:
        return self._get_db()[name]

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    # ---- Operations ----

    def fetch_snapshot(self) -> dict:
        """
        Read all words, cards and reviews.

        Returns:
            Snapshot dict in the wire format (Mongo `_id` stripped)

        Raises:
            Transient: network or server failure
        """
        projection = {"_id": False}
        try:
            snapshot = {
                WORDS: list(self._collection(WORDS).find({}, projection)),
                CARDS: list(self._collection(CARDS).find({}, projection)),
                REVIEWS: list(self._collection(REVIEWS).find({}, projection)),
            }
        except PyMongoError as exc:
            logger.error("fetch_snapshot failed: %s", exc)
            raise Transient(f"Failed to fetch remote snapshot: {exc}") from exc

        logger.info(
            "Fetched remote snapshot: %d words, %d cards, %d reviews",
            len(snapshot[WORDS]), len(snapshot[CARDS]), len(snapshot[REVIEWS]),
        )
        return snapshot

    def update_word(self, word_id: str, changes: dict[str, str]) -> int:
        """
        Update content fields of one word.

        Args:
            word_id: Word identifier (the `id` field, not Mongo's `_id`)
            changes: Field -> new value; only text/translation are accepted

        Returns:
            Number of matched documents (0 when the word is unknown)

        Raises:
            ValueError: a field other than text/translation was passed
            Transient: network or server failure
        """
        unknown = set(changes) - set(CONTENT_FIELDS)
        if unknown:
            raise ValueError(f"Unsupported correction fields: {sorted(unknown)}")
        if not changes:
            return 0

        try:
            result = self._collection(WORDS).update_one({"id": word_id}, {"$set": changes})
        except PyMongoError as exc:
            logger.error("update_word %s failed: %s", word_id, exc)
            raise Transient(f"Failed to update remote word {word_id}: {exc}") from exc

        return result.matched_count

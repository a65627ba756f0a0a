# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Unit of work for multi-document writes.

With a MongoDB session every write joins the session's transaction and the
server commits or aborts them together. Without one (standalone server,
in-memory test double) each successful write records a compensating write,
and ``rollback`` replays them newest first.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from bson import ObjectId
from pymongo.client_session import ClientSession
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)


class UnitOfWork:
    """Groups writes that must commit or fail together."""

    def __init__(self, mongodb_service, session: Optional[ClientSession] = None):
        self.db = mongodb_service
        self.session = session
        self._compensations: List[Callable[[], Any]] = []

    @property
    def transactional(self) -> bool:
        """True when writes are covered by a server-side transaction."""
        return self.session is not None

    def insert(self, collection: str, document: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a document and return it with its ``id``."""
        created = self.db.create(collection, document, session=self.session)

        if not self.transactional:
            object_id = ObjectId(created["id"])
            self._compensations.append(
                lambda: self.db.get_collection(collection).delete_one({"_id": object_id})
            )

        return created

    def find_one(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Read a document through the unit's session."""
        return self.db.find_one(collection, doc_id, session=self.session)

    def compare_and_set(self, collection: str, doc_id: str,
                        expected: Dict[str, Any], updates: Dict[str, Any]) -> bool:
        """
        Apply ``updates`` only if the document currently matches ``expected``.

        Returns:
            True if the document matched and was updated
        """
        snapshot = None
        if not self.transactional:
            snapshot = self.db.find_one(collection, doc_id)
            if snapshot is None:
                return False

        matched = self.db.update(collection, doc_id, updates, expected=expected, session=self.session)

        if matched and snapshot is not None:
            previous = {key: snapshot.get(key) for key in list(updates) + ["updated_at"]}
            self._compensations.append(lambda: self.db.update(collection, doc_id, previous))

        return matched

    def soft_delete(self, collection: str, doc_id: str, expected: Optional[Dict[str, Any]] = None) -> bool:
        """
        Soft delete a document if it matches ``expected``.

        Returns:
            True if the document matched and was marked deleted
        """
        deleted = self.db.soft_delete(collection, doc_id, expected=expected, session=self.session)

        if deleted and not self.transactional:
            object_id = ObjectId(doc_id)
            self._compensations.append(
                lambda: self.db.get_collection(collection).update_one(
                    {"_id": object_id}, {"$set": {"deleted_at": None}}
                )
            )

        return deleted

    def rollback(self) -> None:
        """Undo recorded writes, newest first. No-op inside a server transaction."""
        while self._compensations:
            undo = self._compensations.pop()
            try:
                undo()
            except PyMongoError as e:
                logger.error(
                    "Compensating write failed",
                    extra={"error": str(e), "remaining": len(self._compensations)},
                    exc_info=True
                )

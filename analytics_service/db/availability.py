"""Relation existence checks backing the degrade-to-empty policy."""

from __future__ import annotations

import logging

from sqlalchemy import inspect
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class DataAvailability:
    """Answers whether a table, view or materialized view exists.

    Results are memoized for the lifetime of the instance; one instance is
    built per request, so a freshly deployed rollup is picked up on the next
    request.
    """

    def __init__(self, db: Session) -> None:
        self.db = db
        self._known: dict[str, bool] = {}

    def exists(self, relation: str) -> bool:
        if relation not in self._known:
            inspector = inspect(self.db.connection())
            present = inspector.has_table(relation)
            if not present:
                logger.info("Relation %s is not available; dependent analytics degrade to empty", relation)
            self._known[relation] = present
        return self._known[relation]

    def all_exist(self, *relations: str) -> bool:
        # Checks every relation so each missing one is logged.
        return all([self.exists(relation) for relation in relations])

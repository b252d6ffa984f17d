"""
Snapshot Store

Durable key-value storage for engine snapshots, backed by the async
SQLAlchemy engine. One row per key, overwritten on every save.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from breakout_engine.database import create_engine_for, create_session_maker, init_db
from breakout_engine.exceptions import PersistenceError
from breakout_engine.models import EngineSnapshot

logger = logging.getLogger(__name__)


class SnapshotStore:
    def __init__(self, database_url: str):
        self.database_url = database_url
        self._engine = create_engine_for(database_url)
        self._session_maker = create_session_maker(self._engine)

    async def init(self):
        """Create the snapshot table if missing"""
        try:
            await init_db(self._engine)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not initialise snapshot store: {e}")

    async def close(self):
        await self._engine.dispose()

    async def save(self, key: str, payload: Dict[str, Any]):
        try:
            body = json.dumps(payload)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Snapshot {key!r} is not JSON serializable: {e}")

        try:
            async with self._session_maker() as db:
                row = await db.get(EngineSnapshot, key)
                if row is None:
                    db.add(EngineSnapshot(key=key, payload=body, saved_at=datetime.utcnow()))
                else:
                    row.payload = body
                    row.saved_at = datetime.utcnow()
                await db.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to save snapshot {key!r}: {e}")

    async def load(self, key: str) -> Optional[Dict[str, Any]]:
        """Stored snapshot, or None when nothing was saved under key"""
        try:
            async with self._session_maker() as db:
                result = await db.execute(select(EngineSnapshot).where(EngineSnapshot.key == key))
                row = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load snapshot {key!r}: {e}")

        if row is None:
            return None
        try:
            return json.loads(row.payload)
        except ValueError as e:
            raise PersistenceError(f"Snapshot {key!r} is corrupt: {e}")

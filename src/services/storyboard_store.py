"""SQLite-backed storage for scripts, storyboard scenes and voiceover jobs.

Uses aiosqlite for async database operations. Every write goes through one
lock so that multi-statement operations (find-or-create a voiceover for a
scene, bulk scene inserts) commit atomically on the shared connection.
"""

import asyncio
import json
import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite

from models.storyboard import ContentType, Scene, SceneDraft, Script
from models.voiceover import DEFAULT_VOICE_PROVIDER, Voiceover, VoiceoverStatus
from services.errors import (
    AuthorizationError,
    SceneNotFoundError,
    ScriptNotFoundError,
    VoiceoverNotFoundError,
)

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = ".scenecraft/storyboard.db"

CONTENT_TYPES_SQL = ", ".join(f"'{c.value}'" for c in ContentType)
STATUSES_SQL = ", ".join(f"'{s.value}'" for s in VoiceoverStatus)

# Fields a caller may change through update_scene
EDITABLE_SCENE_FIELDS = {
    "scene_content",
    "scene_name",
    "content_type",
    "emotion",
    "visual_elements",
    "notes",
    "duration",
    "image_id",
    "voiceover_id",
}

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS scripts (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        video_id TEXT NOT NULL,
        script TEXT NOT NULL,
        title TEXT,
        created_at TEXT NOT NULL
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS scenes (
        id TEXT PRIMARY KEY,
        script_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        video_id TEXT NOT NULL,
        scene_index INTEGER NOT NULL,
        scene_name TEXT NOT NULL,
        scene_content TEXT NOT NULL,
        content_type TEXT NOT NULL CHECK (content_type IN ({CONTENT_TYPES_SQL})),
        emotion TEXT,
        visual_elements JSON,
        image_id TEXT,
        voiceover_id TEXT,
        duration INTEGER,
        notes TEXT,
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_scenes_script_index ON scenes (script_id, scene_index)",
    "CREATE INDEX IF NOT EXISTS idx_scenes_script_user ON scenes (script_id, user_id)",
    f"""
    CREATE TABLE IF NOT EXISTS voiceovers (
        id TEXT PRIMARY KEY,
        script_id TEXT NOT NULL,
        scene_id TEXT,
        user_id TEXT NOT NULL,
        video_id TEXT NOT NULL,
        storage_id TEXT,
        voice_name TEXT NOT NULL,
        voice_provider TEXT NOT NULL,
        duration INTEGER,
        text TEXT NOT NULL,
        status TEXT NOT NULL CHECK (status IN ({STATUSES_SQL})),
        error_message TEXT,
        generation INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_voiceovers_scene ON voiceovers (scene_id)",
    "CREATE INDEX IF NOT EXISTS idx_voiceovers_script ON voiceovers (script_id)",
]


def _new_id() -> str:
    return str(uuid.uuid4())


def _check_owner(kind: str, record_id: str, owner_id: str, user_id: str) -> None:
    if owner_id != user_id:
        raise AuthorizationError(kind, record_id, user_id)


class StoryboardStore:
    """Async SQLite storage for the storyboard core.

    Scenes are read by (script_id, user_id) and mutated by scene id. Voiceovers
    live in the same database so find-or-create by scene runs in one
    transaction with the scene back-reference update.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize store with database path.

        Args:
            db_path: Path to SQLite database file, or ":memory:". Parent
                     directory will be created if it doesn't exist.
        """
        self.db_path = db_path
        self.db: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

    async def connect(self) -> None:
        """Open the connection and create the schema."""
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self.db = await aiosqlite.connect(self.db_path)
        self.db.row_factory = aiosqlite.Row

        if self.db_path != ":memory:":
            await self.db.execute("PRAGMA journal_mode=WAL")

        for statement in SCHEMA:
            await self.db.execute(statement)
        await self.db.commit()
        logger.info(f"Storyboard store connected: {self.db_path}")

    async def close(self) -> None:
        """Close database connection."""
        if self.db:
            await self.db.close()
            self.db = None
            logger.info("Storyboard store connection closed")

    def _conn(self) -> aiosqlite.Connection:
        if self.db is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self.db

    async def _fetchone(self, query: str, params: tuple | list) -> aiosqlite.Row | None:
        async with self._conn().execute(query, params) as cursor:
            return await cursor.fetchone()

    async def _fetchall(self, query: str, params: tuple | list) -> list[aiosqlite.Row]:
        async with self._conn().execute(query, params) as cursor:
            return list(await cursor.fetchall())

    # =========================================================================
    # Scripts
    # =========================================================================

    async def add_script(
        self,
        user_id: str,
        video_id: str,
        script: str,
        title: str | None = None,
    ) -> Script:
        """Insert a script. Scripts are produced upstream and never edited here."""
        db = self._conn()
        record = Script(
            id=_new_id(),
            user_id=user_id,
            video_id=video_id,
            script=script,
            title=title,
        )
        async with self._write_lock:
            await db.execute(
                "INSERT INTO scripts (id, user_id, video_id, script, title, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    record.id,
                    record.user_id,
                    record.video_id,
                    record.script,
                    record.title,
                    record.created_at.isoformat(),
                ),
            )
            await db.commit()
        return record

    async def get_script(self, script_id: str, user_id: str) -> Script:
        """Get a script owned by user_id.

        Raises:
            ScriptNotFoundError: If the script does not exist
            AuthorizationError: If it belongs to another user
        """
        row = await self._fetchone("SELECT * FROM scripts WHERE id = ?", (script_id,))
        if row is None:
            raise ScriptNotFoundError(script_id)
        _check_owner("Script", script_id, row["user_id"], user_id)
        return Script(
            id=row["id"],
            user_id=row["user_id"],
            video_id=row["video_id"],
            script=row["script"],
            title=row["title"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    # =========================================================================
    # Scenes
    # =========================================================================

    async def create_scene(
        self,
        script_id: str,
        user_id: str,
        video_id: str,
        draft: SceneDraft,
    ) -> str:
        """Insert one scene. scene_index uniqueness is not validated.

        Returns:
            The new scene id
        """
        ids = await self.create_scenes(script_id, user_id, video_id, [draft])
        return ids[0]

    async def create_scenes(
        self,
        script_id: str,
        user_id: str,
        video_id: str,
        drafts: list[SceneDraft],
    ) -> list[str]:
        """Insert a batch of scenes in one transaction.

        Returns:
            Scene ids in the order of the drafts
        """
        db = self._conn()
        now = datetime.now().isoformat()
        ids = [_new_id() for _ in drafts]
        rows = [
            (
                scene_id,
                script_id,
                user_id,
                video_id,
                draft.scene_index,
                draft.scene_name,
                draft.scene_content,
                ContentType(draft.content_type).value,
                draft.emotion,
                json.dumps(draft.visual_elements) if draft.visual_elements else None,
                draft.duration,
                draft.notes,
                now,
            )
            for scene_id, draft in zip(ids, drafts)
        ]

        async with self._write_lock:
            try:
                await db.executemany(
                    "INSERT INTO scenes (id, script_id, user_id, video_id, scene_index, "
                    "scene_name, scene_content, content_type, emotion, visual_elements, "
                    "duration, notes, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    rows,
                )
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        logger.info(f"Created {len(ids)} scenes for script {script_id}")
        return ids

    async def list_scenes(self, script_id: str, user_id: str) -> list[Scene]:
        """List a user's scenes for a script, ascending by scene_index.

        Raises:
            AuthorizationError: If the script is known and owned by another user
        """
        owner = await self._fetchone("SELECT user_id FROM scripts WHERE id = ?", (script_id,))
        if owner is not None:
            _check_owner("Script", script_id, owner["user_id"], user_id)

        rows = await self._fetchall(
            "SELECT * FROM scenes WHERE script_id = ? AND user_id = ? "
            "ORDER BY scene_index ASC, created_at ASC",
            (script_id, user_id),
        )
        return [self._row_to_scene(row) for row in rows]

    async def get_scene(self, scene_id: str, user_id: str) -> Scene:
        """Get a scene owned by user_id.

        Raises:
            SceneNotFoundError: If the scene does not exist
            AuthorizationError: If it belongs to another user
        """
        row = await self._fetchone("SELECT * FROM scenes WHERE id = ?", (scene_id,))
        if row is None:
            raise SceneNotFoundError(scene_id)
        _check_owner("Scene", scene_id, row["user_id"], user_id)
        return self._row_to_scene(row)

    async def update_scene(self, scene_id: str, user_id: str, **fields: Any) -> Scene:
        """Partially update a scene.

        Only supplied fields change. A field passed as None is ignored, so an
        update can never blank out an optional field by omission.

        Raises:
            ValueError: If an unknown field is supplied
            SceneNotFoundError: If the scene does not exist
            AuthorizationError: If it belongs to another user
        """
        unknown = set(fields) - EDITABLE_SCENE_FIELDS
        if unknown:
            raise ValueError(f"Unknown scene fields: {', '.join(sorted(unknown))}")

        updates = {key: value for key, value in fields.items() if value is not None}
        if "content_type" in updates:
            updates["content_type"] = ContentType(updates["content_type"]).value
        if "visual_elements" in updates:
            updates["visual_elements"] = json.dumps(list(updates["visual_elements"]))

        db = self._conn()
        async with self._write_lock:
            await self.get_scene(scene_id, user_id)
            if updates:
                assignments = ", ".join(f"{key} = ?" for key in updates)
                await db.execute(
                    f"UPDATE scenes SET {assignments} WHERE id = ?",
                    [*updates.values(), scene_id],
                )
                await db.commit()
                logger.debug(f"Updated scene {scene_id}: {sorted(updates)}")

        return await self.get_scene(scene_id, user_id)

    async def clear_scene_voiceover(self, scene_id: str, voiceover_id: str) -> bool:
        """Remove a scene's voiceover back-reference if it still points at voiceover_id."""
        db = self._conn()
        async with self._write_lock:
            cursor = await db.execute(
                "UPDATE scenes SET voiceover_id = NULL WHERE id = ? AND voiceover_id = ?",
                (scene_id, voiceover_id),
            )
            await db.commit()
            return cursor.rowcount > 0

    async def delete_scene(self, scene_id: str, user_id: str) -> None:
        """Hard delete one scene.

        Remaining scenes are not renumbered and nothing that references the
        scene (voiceover, image blob) is touched.
        """
        db = self._conn()
        async with self._write_lock:
            await self.get_scene(scene_id, user_id)
            await db.execute("DELETE FROM scenes WHERE id = ?", (scene_id,))
            await db.commit()
        logger.info(f"Deleted scene {scene_id}")

    async def count_scenes_with_image(self, image_id: str) -> int:
        """Number of scenes whose image_id is image_id."""
        row = await self._fetchone(
            "SELECT COUNT(*) FROM scenes WHERE image_id = ?", (image_id,)
        )
        return row[0] if row else 0

    # =========================================================================
    # Voiceovers
    # =========================================================================

    async def upsert_voiceover(
        self,
        script_id: str,
        user_id: str,
        video_id: str,
        text: str,
        voice_name: str,
        scene_id: str | None = None,
        voice_provider: str = DEFAULT_VOICE_PROVIDER,
    ) -> Voiceover:
        """Find-or-create the current voiceover for a scene and mark it processing.

        With a scene_id, an existing voiceover for that scene is reused: its id is
        kept, its text and voice are re-snapshotted, previous results are
        cleared and its generation is bumped. The scene's voiceover_id is set in
        the same transaction. Without a scene_id a new record is always created.

        Raises:
            SceneNotFoundError: If scene_id does not exist
            ScriptNotFoundError: If script_id does not exist
            ValueError: If the scene belongs to a different script
            AuthorizationError: If the scene or existing voiceover is another user's
        """
        db = self._conn()
        now = datetime.now().isoformat()

        async with self._write_lock:
            try:
                existing = None
                if scene_id is not None:
                    scene = await self.get_scene(scene_id, user_id)
                    if scene.script_id != script_id:
                        raise ValueError(
                            f"Scene {scene_id} belongs to script {scene.script_id}, not {script_id}"
                        )
                    existing = await self._fetchone(
                        "SELECT * FROM voiceovers WHERE scene_id = ? "
                        "ORDER BY created_at ASC LIMIT 1",
                        (scene_id,),
                    )

                if existing is not None:
                    _check_owner("Voiceover", existing["id"], existing["user_id"], user_id)
                    voiceover_id = existing["id"]
                    await db.execute(
                        "UPDATE voiceovers SET status = ?, storage_id = NULL, duration = NULL, "
                        "error_message = NULL, text = ?, voice_name = ?, voice_provider = ?, "
                        "generation = generation + 1, updated_at = ? WHERE id = ?",
                        (
                            VoiceoverStatus.PROCESSING.value,
                            text,
                            voice_name,
                            voice_provider,
                            now,
                            voiceover_id,
                        ),
                    )
                    logger.info(f"Reusing voiceover {voiceover_id} for scene {scene_id}")
                else:
                    if scene_id is None:
                        await self.get_script(script_id, user_id)
                    voiceover_id = _new_id()
                    await db.execute(
                        "INSERT INTO voiceovers (id, script_id, scene_id, user_id, video_id, "
                        "voice_name, voice_provider, text, status, generation, created_at, "
                        "updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 1, ?, ?)",
                        (
                            voiceover_id,
                            script_id,
                            scene_id,
                            user_id,
                            video_id,
                            voice_name,
                            voice_provider,
                            text,
                            VoiceoverStatus.PROCESSING.value,
                            now,
                            now,
                        ),
                    )
                    logger.info(f"Created voiceover {voiceover_id}")

                if scene_id is not None:
                    await db.execute(
                        "UPDATE scenes SET voiceover_id = ? WHERE id = ?",
                        (voiceover_id, scene_id),
                    )
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        voiceover = await self.get_voiceover(voiceover_id)
        if voiceover is None:
            raise VoiceoverNotFoundError(voiceover_id)
        return voiceover

    async def get_voiceover(self, voiceover_id: str) -> Voiceover | None:
        """Get a voiceover by id without an ownership check (background jobs)."""
        row = await self._fetchone("SELECT * FROM voiceovers WHERE id = ?", (voiceover_id,))
        return self._row_to_voiceover(row) if row is not None else None

    async def get_user_voiceover(self, voiceover_id: str, user_id: str) -> Voiceover:
        """Get a voiceover owned by user_id.

        Raises:
            VoiceoverNotFoundError: If it does not exist
            AuthorizationError: If it belongs to another user
        """
        voiceover = await self.get_voiceover(voiceover_id)
        if voiceover is None:
            raise VoiceoverNotFoundError(voiceover_id)
        _check_owner("Voiceover", voiceover_id, voiceover.user_id, user_id)
        return voiceover

    async def find_voiceover_by_scene(self, scene_id: str, user_id: str) -> Voiceover | None:
        """The current voiceover of a scene, if the user has one."""
        row = await self._fetchone(
            "SELECT * FROM voiceovers WHERE scene_id = ? AND user_id = ? "
            "ORDER BY created_at ASC LIMIT 1",
            (scene_id, user_id),
        )
        return self._row_to_voiceover(row) if row is not None else None

    async def list_voiceovers(self, script_id: str, user_id: str) -> list[Voiceover]:
        """A user's voiceovers for a script, oldest first."""
        rows = await self._fetchall(
            "SELECT * FROM voiceovers WHERE script_id = ? AND user_id = ? ORDER BY created_at ASC",
            (script_id, user_id),
        )
        return [self._row_to_voiceover(row) for row in rows]

    async def list_processing_voiceovers(self) -> list[Voiceover]:
        """All voiceovers still waiting for their audio."""
        rows = await self._fetchall(
            "SELECT * FROM voiceovers WHERE status = ? ORDER BY created_at ASC",
            (VoiceoverStatus.PROCESSING.value,),
        )
        return [self._row_to_voiceover(row) for row in rows]

    async def complete_voiceover(
        self,
        voiceover_id: str,
        generation: int | None,
        storage_id: str,
        duration: int,
    ) -> bool:
        """Move a processing voiceover to completed.

        The write only lands if the record still exists, is still processing
        and (when given) still has the same generation. A deleted or re-requested
        job therefore cannot overwrite newer state.

        Returns:
            True if the record was updated
        """
        return await self._finish_voiceover(
            voiceover_id,
            generation,
            "status = ?, storage_id = ?, duration = ?, error_message = NULL",
            (VoiceoverStatus.COMPLETED.value, storage_id, duration),
        )

    async def fail_voiceover(
        self,
        voiceover_id: str,
        generation: int | None,
        error_message: str,
    ) -> bool:
        """Move a processing voiceover to failed. Same guard as complete_voiceover."""
        return await self._finish_voiceover(
            voiceover_id,
            generation,
            "status = ?, storage_id = NULL, duration = NULL, error_message = ?",
            (VoiceoverStatus.FAILED.value, error_message or "Voiceover generation failed"),
        )

    async def _finish_voiceover(
        self,
        voiceover_id: str,
        generation: int | None,
        assignments: str,
        values: tuple,
    ) -> bool:
        db = self._conn()
        query = f"UPDATE voiceovers SET {assignments}, updated_at = ? WHERE id = ? AND status = ?"
        params: list[Any] = [
            *values,
            datetime.now().isoformat(),
            voiceover_id,
            VoiceoverStatus.PROCESSING.value,
        ]
        if generation is not None:
            query += " AND generation = ?"
            params.append(generation)

        async with self._write_lock:
            cursor = await db.execute(query, params)
            await db.commit()
            updated = cursor.rowcount > 0

        if not updated:
            logger.warning(
                f"Voiceover {voiceover_id} (generation {generation}) was deleted or "
                "superseded; result discarded"
            )
        return updated

    async def delete_voiceover(self, voiceover_id: str) -> bool:
        """Delete a voiceover record.

        Returns:
            True if deleted, False if not found
        """
        db = self._conn()
        async with self._write_lock:
            cursor = await db.execute("DELETE FROM voiceovers WHERE id = ?", (voiceover_id,))
            await db.commit()
            deleted = cursor.rowcount > 0

        if deleted:
            logger.info(f"Deleted voiceover {voiceover_id}")
        return deleted

    # =========================================================================
    # Row mapping
    # =========================================================================

    def _row_to_scene(self, row: aiosqlite.Row) -> Scene:
        visual_elements = None
        if row["visual_elements"]:
            try:
                visual_elements = json.loads(row["visual_elements"])
            except json.JSONDecodeError:
                logger.warning(f"Failed to parse visual elements for scene {row['id']}")

        return Scene(
            id=row["id"],
            script_id=row["script_id"],
            user_id=row["user_id"],
            video_id=row["video_id"],
            scene_index=row["scene_index"],
            scene_name=row["scene_name"],
            scene_content=row["scene_content"],
            content_type=ContentType(row["content_type"]),
            emotion=row["emotion"],
            visual_elements=visual_elements,
            image_id=row["image_id"],
            voiceover_id=row["voiceover_id"],
            duration=row["duration"],
            notes=row["notes"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def _row_to_voiceover(self, row: aiosqlite.Row) -> Voiceover:
        return Voiceover(
            id=row["id"],
            script_id=row["script_id"],
            scene_id=row["scene_id"],
            user_id=row["user_id"],
            video_id=row["video_id"],
            storage_id=row["storage_id"],
            voice_name=row["voice_name"],
            voice_provider=row["voice_provider"],
            duration=row["duration"],
            text=row["text"],
            status=VoiceoverStatus(row["status"]),
            error_message=row["error_message"],
            generation=row["generation"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

# core/database.py

import sqlite3
import json
import threading
from pathlib import Path
from typing import Optional, List, Iterable
from datetime import datetime

from photosweep.core.errors import PhotoNotFoundError
from photosweep.core.models import DuplicateAssignment, PhotoAnalysis, PhotoRecord

_ANALYSIS_COLUMNS = (
    'content_hash', 'perceptual_hash', 'quality', 'brightness', 'contrast',
    'sharpness', 'is_blurry', 'is_screenshot', 'is_duplicate', 'duplicate_group',
)
_BOOLEAN_COLUMNS = {'is_blurry', 'is_screenshot', 'is_duplicate', 'favorite'}


class PhotoDatabase:
    """
    SQLite store for photo records and their analysis fields
    """

    def __init__(self, db_path: str = "data/photos.db"):
        self.db_path = db_path
        self.conn = None
        # one connection is shared by worker threads; every statement runs under this lock
        self._lock = threading.RLock()
        self._initialize_database()

    def _initialize_database(self):
        """Create database schema"""
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row

        cursor = self.conn.cursor()

        # seq records insertion order and breaks ties between equal timestamps
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS photos (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                photo_id TEXT UNIQUE NOT NULL,
                user_id TEXT NOT NULL,
                original_name TEXT NOT NULL,
                size INTEGER NOT NULL,
                mime_type TEXT,
                path TEXT,
                thumbnail_path TEXT,
                width INTEGER,
                height INTEGER,
                content_hash TEXT,
                perceptual_hash TEXT,
                quality FLOAT,
                brightness FLOAT,
                contrast FLOAT,
                sharpness FLOAT,
                is_blurry BOOLEAN DEFAULT 0,
                is_screenshot BOOLEAN DEFAULT 0,
                is_duplicate BOOLEAN DEFAULT 0,
                duplicate_group TEXT,
                status TEXT NOT NULL DEFAULT 'active',
                favorite BOOLEAN DEFAULT 0,
                tags TEXT NOT NULL DEFAULT '[]',
                views INTEGER DEFAULT 0,
                created_at TIMESTAMP NOT NULL
            )
        """)

        # Indexing for faster queries
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_user_status ON photos(user_id, status)
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_user_created ON photos(user_id, created_at)
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_content_hash ON photos(user_id, content_hash)
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_perceptual_hash ON photos(user_id, perceptual_hash)
        """)

        self.conn.commit()

    def add_photo(self, photo: PhotoRecord) -> PhotoRecord:
        """Insert a new photo record"""
        if photo.user_id is None:
            raise ValueError("Photo records need a user_id to be stored")

        analysis = photo.analysis
        with self._lock, self.conn:
            self.conn.execute("""
                INSERT INTO photos
                (photo_id, user_id, original_name, size, mime_type, path,
                 thumbnail_path, width, height, content_hash, perceptual_hash,
                 quality, brightness, contrast, sharpness, is_blurry,
                 is_screenshot, is_duplicate, duplicate_group, status,
                 favorite, tags, views, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                photo.photo_id,
                photo.user_id,
                photo.original_name,
                photo.size,
                photo.mime_type,
                photo.path,
                photo.thumbnail_path,
                photo.width,
                photo.height,
                analysis.content_hash,
                analysis.perceptual_hash,
                analysis.quality,
                analysis.brightness,
                analysis.contrast,
                analysis.sharpness,
                analysis.is_blurry,
                analysis.is_screenshot,
                analysis.is_duplicate,
                analysis.duplicate_group,
                photo.status,
                photo.favorite,
                json.dumps(list(photo.tags)),
                photo.views,
                photo.created_at.isoformat(timespec='microseconds'),
            ))
        return photo

    def get_photo(self, user_id: str, photo_id: str,
                  status: Optional[str] = None) -> PhotoRecord:
        """Fetch one photo, optionally requiring a lifecycle status"""
        sql = "SELECT * FROM photos WHERE user_id = ? AND photo_id = ?"
        params = [user_id, photo_id]
        if status is not None:
            sql += " AND status = ?"
            params.append(status)

        with self._lock:
            row = self.conn.execute(sql, params).fetchone()
        if row is None:
            raise PhotoNotFoundError(f"Photo {photo_id} not found")
        return self._row_to_record(row)

    def list_photos(self, user_id: str, status: Optional[str] = None,
                    newest_first: bool = False) -> List[PhotoRecord]:
        """All photos of a user in creation order"""
        sql = "SELECT * FROM photos WHERE user_id = ?"
        params = [user_id]
        if status is not None:
            sql += " AND status = ?"
            params.append(status)
        direction = "DESC" if newest_first else "ASC"
        sql += f" ORDER BY created_at {direction}, seq {direction}"

        with self._lock:
            rows = self.conn.execute(sql, params).fetchall()
        return [self._row_to_record(row) for row in rows]

    def apply_duplicate_assignments(self, assignments: Iterable[DuplicateAssignment]) -> int:
        """Write a grouping pass back in a single transaction"""
        rows = [(a.is_duplicate, a.duplicate_group, a.photo_id) for a in assignments]
        with self._lock, self.conn:
            self.conn.executemany("""
                UPDATE photos SET is_duplicate = ?, duplicate_group = ?
                WHERE photo_id = ?
            """, rows)
        return len(rows)

    def update_fields(self, user_id: str, photo_id: str, **fields) -> PhotoRecord:
        """Update lifecycle fields (status, favorite, tags, views, thumbnail_path)"""
        allowed = {'status', 'favorite', 'tags', 'views', 'thumbnail_path'}
        unknown = set(fields) - allowed
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")

        if 'tags' in fields:
            fields['tags'] = json.dumps(list(fields['tags']))

        assignments = ", ".join(f"{name} = ?" for name in fields)
        with self._lock, self.conn:
            cursor = self.conn.execute(
                f"UPDATE photos SET {assignments} WHERE user_id = ? AND photo_id = ?",
                [*fields.values(), user_id, photo_id]
            )
        if cursor.rowcount == 0:
            raise PhotoNotFoundError(f"Photo {photo_id} not found")
        return self.get_photo(user_id, photo_id)

    def delete_photos(self, user_id: str, status: str = 'deleted') -> List[PhotoRecord]:
        """Remove rows in the given status and return what was removed"""
        with self._lock:
            removed = self.list_photos(user_id, status)
            with self.conn:
                self.conn.execute(
                    "DELETE FROM photos WHERE user_id = ? AND status = ?",
                    (user_id, status)
                )
        return removed

    def _row_to_record(self, row: sqlite3.Row) -> PhotoRecord:
        data = dict(row)
        for name in _BOOLEAN_COLUMNS:
            data[name] = bool(data[name])

        analysis = PhotoAnalysis(**{name: data[name] for name in _ANALYSIS_COLUMNS})
        return PhotoRecord(
            photo_id=data['photo_id'],
            user_id=data['user_id'],
            original_name=data['original_name'],
            size=data['size'],
            created_at=datetime.fromisoformat(data['created_at']),
            mime_type=data['mime_type'],
            path=data['path'],
            thumbnail_path=data['thumbnail_path'],
            width=data['width'],
            height=data['height'],
            status=data['status'],
            favorite=data['favorite'],
            tags=tuple(json.loads(data['tags'])),
            views=data['views'],
            analysis=analysis,
        )

    def close(self):
        """Close database connection"""
        with self._lock:
            if self.conn:
                self.conn.close()
                self.conn = None

import json
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from ...domain.errors import ConflictError, NotFoundError
from ...domain.models import Item, ItemCriteria, User
from ...domain.models.item import SORT_NEWEST, SORT_OLDEST, SORT_PRICE_HIGH, SORT_PRICE_LOW
from ...domain.ports.persistence import PersistenceGateway

# id is the tie-breaker so paging stays stable for equal keys.
_SORT_CLAUSES = {
    SORT_NEWEST: "created_at DESC, id DESC",
    SORT_OLDEST: "created_at ASC, id ASC",
    SORT_PRICE_LOW: "price ASC, id ASC",
    SORT_PRICE_HIGH: "price DESC, id DESC",
}

_UPDATABLE_ITEM_COLUMNS = ("title", "description", "price", "category", "condition", "images", "tags")
_JSON_ITEM_COLUMNS = ("images", "tags")


class SQLitePersistence(PersistenceGateway):
    """SQLite-backed implementation of the persistence gateway."""

    def __init__(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._lock = threading.Lock()
        self._initialize()

    def _initialize(self) -> None:
        with self._conn:
            self._conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    email TEXT NOT NULL UNIQUE,
                    password_hash TEXT NOT NULL,
                    phone TEXT NOT NULL,
                    whatsapp TEXT NOT NULL,
                    year TEXT NOT NULL,
                    branch TEXT NOT NULL,
                    institutional_id TEXT NOT NULL UNIQUE,
                    profile_image TEXT NOT NULL DEFAULT '',
                    is_verified INTEGER NOT NULL DEFAULT 0,
                    email_otp TEXT,
                    email_otp_expiry TEXT,
                    rating REAL NOT NULL DEFAULT 0 CHECK (rating >= 0 AND rating <= 5),
                    total_ratings INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS items (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL,
                    price REAL NOT NULL CHECK (price >= 0),
                    category TEXT NOT NULL,
                    condition TEXT NOT NULL,
                    images TEXT NOT NULL,
                    seller_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    is_available INTEGER NOT NULL DEFAULT 1,
                    is_sold INTEGER NOT NULL DEFAULT 0,
                    sold_to_id INTEGER REFERENCES users(id) ON DELETE SET NULL,
                    sold_at TEXT,
                    views INTEGER NOT NULL DEFAULT 0,
                    tags TEXT NOT NULL DEFAULT '[]',
                    location TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    CHECK (is_sold = 0 OR is_available = 0)
                );

                CREATE INDEX IF NOT EXISTS idx_items_category_price
                    ON items(category, price);
                CREATE INDEX IF NOT EXISTS idx_items_seller
                    ON items(seller_id);
                CREATE INDEX IF NOT EXISTS idx_items_created_at
                    ON items(created_at DESC);

                CREATE TABLE IF NOT EXISTS item_favorites (
                    item_id INTEGER NOT NULL REFERENCES items(id) ON DELETE CASCADE,
                    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    created_at TEXT NOT NULL,
                    PRIMARY KEY (item_id, user_id)
                );

                CREATE INDEX IF NOT EXISTS idx_item_favorites_user
                    ON item_favorites(user_id);

                CREATE VIRTUAL TABLE IF NOT EXISTS items_fts USING fts5(
                    title, description, tags, tokenize = 'porter unicode61'
                );

                CREATE TRIGGER IF NOT EXISTS items_fts_after_insert AFTER INSERT ON items BEGIN
                    INSERT INTO items_fts (rowid, title, description, tags)
                    VALUES (new.id, new.title, new.description, new.tags);
                END;

                CREATE TRIGGER IF NOT EXISTS items_fts_after_delete AFTER DELETE ON items BEGIN
                    DELETE FROM items_fts WHERE rowid = old.id;
                END;

                CREATE TRIGGER IF NOT EXISTS items_fts_after_update
                AFTER UPDATE OF title, description, tags ON items BEGIN
                    UPDATE items_fts
                    SET title = new.title, description = new.description, tags = new.tags
                    WHERE rowid = new.id;
                END;
                """
            )

    def close(self) -> None:
        self._conn.close()

    # UserRepository API ----------------------------------------------------
    def get_user_by_id(self, user_id: int) -> Optional[User]:
        with self._lock:
            cur = self._conn.execute("SELECT * FROM users WHERE id = ?", (user_id,))
            row = cur.fetchone()
        return self._row_to_user(row) if row else None

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._lock:
            cur = self._conn.execute(
                "SELECT * FROM users WHERE email = ?", (email.strip().lower(),)
            )
            row = cur.fetchone()
        return self._row_to_user(row) if row else None

    def get_user_by_institutional_id(self, institutional_id: str) -> Optional[User]:
        with self._lock:
            cur = self._conn.execute(
                "SELECT * FROM users WHERE institutional_id = ?", (institutional_id,)
            )
            row = cur.fetchone()
        return self._row_to_user(row) if row else None

    def get_users_by_ids(self, user_ids: Iterable[int]) -> Dict[int, User]:
        ids = sorted(set(user_ids))
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        with self._lock:
            cur = self._conn.execute(f"SELECT * FROM users WHERE id IN ({placeholders})", ids)
            rows = cur.fetchall()
        return {row["id"]: self._row_to_user(row) for row in rows}

    def create_user(
        self,
        *,
        name: str,
        email: str,
        password_hash: str,
        phone: str,
        whatsapp: str,
        year: str,
        branch: str,
        institutional_id: str,
        email_otp: str,
        email_otp_expiry: datetime,
    ) -> User:
        now = self._now()
        try:
            with self._lock, self._conn:
                cur = self._conn.execute(
                    """
                    INSERT INTO users (
                        name, email, password_hash, phone, whatsapp, year, branch,
                        institutional_id, is_verified, email_otp, email_otp_expiry,
                        created_at, updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, 0, ?, ?, ?, ?)
                    """,
                    (
                        name,
                        email.lower(),
                        password_hash,
                        phone,
                        whatsapp,
                        year,
                        branch,
                        institutional_id,
                        email_otp,
                        self._format_datetime(email_otp_expiry),
                        now,
                        now,
                    ),
                )
                user_id = cur.lastrowid
                cur = self._conn.execute("SELECT * FROM users WHERE id = ?", (user_id,))
                row = cur.fetchone()
        except sqlite3.IntegrityError as exc:
            raise ConflictError("An account with this email or ID card already exists.") from exc
        if not row:
            raise RuntimeError("Failed to persist user.")
        return self._row_to_user(row)

    def set_user_otp(self, user_id: int, otp: str, expires_at: datetime) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                """
                UPDATE users
                SET email_otp = ?, email_otp_expiry = ?, updated_at = ?
                WHERE id = ?
                """,
                (otp, self._format_datetime(expires_at), self._now(), user_id),
            )

    def mark_user_verified(self, user_id: int) -> bool:
        with self._lock, self._conn:
            cur = self._conn.execute(
                """
                UPDATE users
                SET is_verified = 1, email_otp = NULL, email_otp_expiry = NULL, updated_at = ?
                WHERE id = ? AND is_verified = 0
                """,
                (self._now(), user_id),
            )
            return cur.rowcount == 1

    def delete_user(self, user_id: int) -> bool:
        with self._lock, self._conn:
            cur = self._conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
            return cur.rowcount == 1

    # ItemRepository API ----------------------------------------------------
    def create_item(
        self,
        *,
        seller_id: int,
        title: str,
        description: str,
        price: float,
        category: str,
        condition: str,
        images: List[str],
        tags: List[str],
        location: str,
    ) -> Item:
        now = self._now()
        with self._lock, self._conn:
            cur = self._conn.execute(
                """
                INSERT INTO items (
                    title, description, price, category, condition, images, seller_id,
                    is_available, is_sold, views, tags, location, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, 1, 0, 0, ?, ?, ?, ?)
                """,
                (
                    title,
                    description,
                    price,
                    category,
                    condition,
                    json.dumps(images),
                    seller_id,
                    json.dumps(tags, ensure_ascii=False),
                    location,
                    now,
                    now,
                ),
            )
            item = self._fetch_item_locked(cur.lastrowid)
        if not item:
            raise RuntimeError("Failed to persist item.")
        return item

    def get_item(self, item_id: int) -> Optional[Item]:
        with self._lock:
            return self._fetch_item_locked(item_id)

    def update_item(self, item_id: int, updates: Dict[str, Any]) -> Item:
        assignments = []
        params: List[Any] = []
        for column in _UPDATABLE_ITEM_COLUMNS:
            if column not in updates:
                continue
            value = updates[column]
            if column in _JSON_ITEM_COLUMNS:
                value = json.dumps(value, ensure_ascii=False)
            assignments.append(f"{column} = ?")
            params.append(value)

        with self._lock, self._conn:
            if assignments:
                assignments.append("updated_at = ?")
                params.append(self._now())
                params.append(item_id)
                statement = f"UPDATE items SET {', '.join(assignments)} WHERE id = ?"
                self._conn.execute(statement, params)
            item = self._fetch_item_locked(item_id)
        if not item:
            raise NotFoundError("Item not found")
        return item

    def delete_item(self, item_id: int) -> bool:
        with self._lock, self._conn:
            cur = self._conn.execute("DELETE FROM items WHERE id = ?", (item_id,))
            return cur.rowcount == 1

    def increment_item_views(self, item_id: int) -> Optional[Item]:
        with self._lock, self._conn:
            cur = self._conn.execute("UPDATE items SET views = views + 1 WHERE id = ?", (item_id,))
            if cur.rowcount == 0:
                return None
            return self._fetch_item_locked(item_id)

    def toggle_item_favorite(self, item_id: int, user_id: int) -> Optional[bool]:
        with self._lock, self._conn:
            cur = self._conn.execute("SELECT 1 FROM items WHERE id = ?", (item_id,))
            if cur.fetchone() is None:
                return None
            cur = self._conn.execute(
                "DELETE FROM item_favorites WHERE item_id = ? AND user_id = ?",
                (item_id, user_id),
            )
            if cur.rowcount:
                return False
            self._conn.execute(
                "INSERT INTO item_favorites (item_id, user_id, created_at) VALUES (?, ?, ?)",
                (item_id, user_id, self._now()),
            )
            return True

    def mark_item_sold(
        self, item_id: int, sold_at: datetime, buyer_id: Optional[int]
    ) -> Optional[Item]:
        with self._lock, self._conn:
            cur = self._conn.execute(
                """
                UPDATE items
                SET is_sold = 1, is_available = 0, sold_at = ?,
                    sold_to_id = COALESCE(?, sold_to_id), updated_at = ?
                WHERE id = ?
                """,
                (self._format_datetime(sold_at), buyer_id, self._now(), item_id),
            )
            if cur.rowcount == 0:
                return None
            return self._fetch_item_locked(item_id)

    def search_items(
        self,
        criteria: ItemCriteria,
        sort_by: str,
        offset: int,
        limit: int,
    ) -> Tuple[List[Item], int]:
        clauses = ["is_available = 1", "is_sold = 0"]
        params: List[Any] = []
        if criteria.category:
            clauses.append("category = ?")
            params.append(criteria.category)
        if criteria.min_price is not None:
            clauses.append("price >= ?")
            params.append(criteria.min_price)
        if criteria.max_price is not None:
            clauses.append("price <= ?")
            params.append(criteria.max_price)
        if criteria.search_terms:
            clauses.append("id IN (SELECT rowid FROM items_fts WHERE items_fts MATCH ?)")
            params.append(self._match_expression(criteria.search_terms))
        where = " AND ".join(clauses)
        order = _SORT_CLAUSES.get(sort_by, _SORT_CLAUSES[SORT_NEWEST])

        with self._lock:
            cur = self._conn.execute(f"SELECT COUNT(*) AS total FROM items WHERE {where}", params)
            total = cur.fetchone()["total"]
            cur = self._conn.execute(
                f"SELECT * FROM items WHERE {where} ORDER BY {order} LIMIT ? OFFSET ?",
                [*params, limit, offset],
            )
            items = self._rows_to_items_locked(cur.fetchall())
        return items, total

    def get_items_by_seller(self, seller_id: int) -> List[Item]:
        with self._lock:
            cur = self._conn.execute(
                "SELECT * FROM items WHERE seller_id = ? ORDER BY created_at DESC, id DESC",
                (seller_id,),
            )
            return self._rows_to_items_locked(cur.fetchall())

    def get_items_favorited_by(self, user_id: int) -> List[Item]:
        with self._lock:
            cur = self._conn.execute(
                """
                SELECT items.* FROM items
                JOIN item_favorites ON item_favorites.item_id = items.id
                WHERE item_favorites.user_id = ?
                ORDER BY items.created_at DESC, items.id DESC
                """,
                (user_id,),
            )
            return self._rows_to_items_locked(cur.fetchall())

    # Helpers ----------------------------------------------------------------
    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat(timespec="microseconds")

    @staticmethod
    def _format_datetime(value: datetime) -> str:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat(timespec="microseconds")

    @staticmethod
    def _parse_datetime(value: str) -> datetime:
        try:
            result = datetime.fromisoformat(value)
        except ValueError:
            # Fallback for legacy formats without 'T'
            result = datetime.strptime(value, "%Y-%m-%d %H:%M:%S")
        if result.tzinfo is None:
            return result.replace(tzinfo=timezone.utc)
        return result.astimezone(timezone.utc)

    @staticmethod
    def _match_expression(terms: Sequence[str]) -> str:
        quoted = ['"{}"'.format(term.replace('"', '""')) for term in terms]
        return " OR ".join(quoted)

    def _fetch_item_locked(self, item_id: Optional[int]) -> Optional[Item]:
        cur = self._conn.execute("SELECT * FROM items WHERE id = ?", (item_id,))
        row = cur.fetchone()
        if not row:
            return None
        return self._rows_to_items_locked([row])[0]

    def _rows_to_items_locked(self, rows: Sequence[sqlite3.Row]) -> List[Item]:
        favorites: Dict[int, List[int]] = {row["id"]: [] for row in rows}
        if favorites:
            placeholders = ", ".join("?" for _ in favorites)
            cur = self._conn.execute(
                f"""
                SELECT item_id, user_id FROM item_favorites
                WHERE item_id IN ({placeholders})
                ORDER BY created_at ASC
                """,
                list(favorites),
            )
            for fav in cur.fetchall():
                favorites[fav["item_id"]].append(fav["user_id"])
        return [self._row_to_item(row, favorites[row["id"]]) for row in rows]

    def _row_to_item(self, row: sqlite3.Row, favorites: List[int]) -> Item:
        return Item(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            price=row["price"],
            category=row["category"],
            condition=row["condition"],
            images=json.loads(row["images"]),
            seller_id=row["seller_id"],
            is_available=bool(row["is_available"]),
            is_sold=bool(row["is_sold"]),
            sold_to_id=row["sold_to_id"],
            sold_at=self._parse_datetime(row["sold_at"]) if row["sold_at"] else None,
            views=row["views"],
            favorites=favorites,
            tags=json.loads(row["tags"]),
            location=row["location"],
            created_at=self._parse_datetime(row["created_at"]),
            updated_at=self._parse_datetime(row["updated_at"]),
        )

    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            password_hash=row["password_hash"],
            phone=row["phone"],
            whatsapp=row["whatsapp"],
            year=row["year"],
            branch=row["branch"],
            institutional_id=row["institutional_id"],
            profile_image=row["profile_image"],
            is_verified=bool(row["is_verified"]),
            email_otp=row["email_otp"],
            email_otp_expiry=self._parse_datetime(row["email_otp_expiry"])
            if row["email_otp_expiry"]
            else None,
            rating=row["rating"],
            total_ratings=row["total_ratings"],
            created_at=self._parse_datetime(row["created_at"]),
            updated_at=self._parse_datetime(row["updated_at"]),
        )

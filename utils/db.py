import os
import sqlite3
import uuid
from contextlib import closing
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Optional

from flask import current_app, g, has_app_context

from utils.seo import BlogPostSeoInput, PostLocale, parse_timestamp

PUBLISHED = "PUBLISHED"
DRAFT = "DRAFT"


def _database_path() -> Path:
    url_override = os.getenv("DATABASE_URL", "").strip()
    if url_override.lower().startswith("sqlite:///"):
        candidate = url_override.split("sqlite:///", 1)[1]
        if candidate:
            return Path(candidate)
    path_override = os.getenv("DATABASE_PATH", "").strip()
    if path_override:
        return Path(path_override)
    database_name = os.getenv("DATABASE", "blog.db")
    if has_app_context():
        return Path(current_app.instance_path) / database_name
    return Path(database_name)


def get_db() -> sqlite3.Connection:
    if "db" not in g:
        db_path = _database_path()
        db_path.parent.mkdir(parents=True, exist_ok=True)
        g.db = sqlite3.connect(db_path)
        g.db.row_factory = sqlite3.Row
    return g.db


def close_db(_: Optional[BaseException] = None) -> None:
    db = g.pop("db", None)
    if db is not None:
        db.close()


def query_all(query: str, params: Iterable[Any] | None = None) -> list[sqlite3.Row]:
    db = get_db()
    cur = db.execute(query, params or [])
    rows = cur.fetchall()
    cur.close()
    return rows


def query_one(query: str, params: Iterable[Any] | None = None) -> Optional[sqlite3.Row]:
    db = get_db()
    cur = db.execute(query, params or [])
    row = cur.fetchone()
    cur.close()
    return row


def execute(query: str, params: Iterable[Any] | None = None) -> int:
    db = get_db()
    cur = db.execute(query, params or [])
    db.commit()
    lastrowid = cur.lastrowid
    cur.close()
    return lastrowid


def init_db() -> None:
    db = get_db()
    with closing(db.cursor()) as cursor:
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS posts (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                slug TEXT NOT NULL,
                excerpt TEXT NOT NULL,
                content TEXT NOT NULL,
                locale TEXT NOT NULL DEFAULT 'EN',
                status TEXT NOT NULL DEFAULT 'DRAFT',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                published_at TEXT,
                UNIQUE (locale, slug)
            )
            """
        )
        ensure_post_columns(db)
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS post_aliases (
                locale TEXT NOT NULL,
                old_slug TEXT NOT NULL,
                post_id INTEGER NOT NULL REFERENCES posts (id) ON DELETE CASCADE,
                PRIMARY KEY (locale, old_slug)
            )
            """
        )
        db.commit()

    try:
        seed_posts()
    except sqlite3.Error:
        current_app.logger.exception("Unable to seed posts")
        raise


def ensure_post_columns(db: sqlite3.Connection) -> None:
    desired_columns = {
        "group_id": "TEXT",
        "cover_image_path": "TEXT",
        "author_name": "TEXT",
    }
    existing_cursor = db.execute("PRAGMA table_info(posts)")
    existing_columns = {row[1] for row in existing_cursor.fetchall()}
    existing_cursor.close()
    for column, definition in desired_columns.items():
        if column not in existing_columns:
            db.execute(f"ALTER TABLE posts ADD COLUMN {column} {definition}")
    db.commit()


def seed_posts() -> None:
    existing = query_one("SELECT COUNT(*) as count FROM posts")
    if existing and existing["count"] > 0:
        return

    now = datetime.utcnow().isoformat()
    pair_group = uuid.uuid4().hex
    posts = [
        {
            "title": "Notes from a Slow Walk Through Kyoto",
            "slug": "slow-walk-through-kyoto",
            "excerpt": "Temples, side streets and the quiet hours before the tour buses arrive.",
            "content": "<p>The best time to see Kyoto is before breakfast...</p>",
            "locale": PostLocale.EN.value,
            "group_id": pair_group,
            "cover_image_path": "/uploads/kyoto-cover.jpg",
            "author_name": "Hao",
            "published_at": "2024-03-02T08:30:00Z",
        },
        {
            "title": "京都慢行笔记",
            "slug": "jing-du-man-xing-bi-ji",
            "excerpt": "寺庙、小巷，以及旅游大巴到来之前的安静时光。",
            "content": "<p>看京都最好的时间是早饭之前……</p>",
            "locale": PostLocale.ZH.value,
            "group_id": pair_group,
            "cover_image_path": "/uploads/kyoto-cover.jpg",
            "author_name": "Hao",
            "published_at": "2024-03-02T08:30:00Z",
        },
        {
            "title": "Self-Hosting a Photo Gallery",
            "slug": "self-hosting-a-photo-gallery",
            "excerpt": "What it took to move ten years of photos off a hosted service.",
            "content": "<p>Storage is cheap, thumbnails are not...</p>",
            "locale": PostLocale.EN.value,
            "author_name": None,
            "published_at": "2024-05-18T14:00:00Z",
        },
        {
            "title": "读书札记：四月",
            "slug": "du-shu-zha-ji-si-yue",
            "excerpt": "这个月读完的几本书和一些零散的想法。",
            "content": "<p>四月读得不多，但都很喜欢……</p>",
            "locale": PostLocale.ZH.value,
            "author_name": "Hao",
            "published_at": "2024-04-30T12:00:00Z",
        },
        {
            "title": "Unfinished: Building a Split Keyboard",
            "slug": "building-a-split-keyboard",
            "excerpt": "Draft notes on soldering, firmware and regret.",
            "content": "<p>TBD</p>",
            "locale": PostLocale.EN.value,
            "status": DRAFT,
            "author_name": "Hao",
        },
    ]

    for post in posts:
        execute(
            """
            INSERT INTO posts (
                title,
                slug,
                excerpt,
                content,
                locale,
                status,
                group_id,
                cover_image_path,
                author_name,
                created_at,
                updated_at,
                published_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                post["title"],
                post["slug"],
                post["excerpt"],
                post["content"],
                post["locale"],
                post.get("status", PUBLISHED),
                post.get("group_id"),
                post.get("cover_image_path"),
                post.get("author_name"),
                now,
                now,
                post.get("published_at"),
            ),
        )

    kyoto = query_one(
        "SELECT id FROM posts WHERE locale = ? AND slug = ?",
        (PostLocale.EN.value, "slow-walk-through-kyoto"),
    )
    if kyoto:
        add_alias(PostLocale.EN, "kyoto-walk", kyoto["id"])


def add_alias(locale: PostLocale, old_slug: str, post_id: int) -> None:
    execute(
        "INSERT OR IGNORE INTO post_aliases (locale, old_slug, post_id) VALUES (?, ?, ?)",
        (locale.value, old_slug, post_id),
    )


def get_post_by_slug(slug: str, locale: PostLocale) -> Optional[dict[str, Any]]:
    """Find a published post by slug, falling back to retired slugs."""
    row = query_one(
        "SELECT * FROM posts WHERE slug = ? AND locale = ? AND status = ?",
        (slug, locale.value, PUBLISHED),
    )
    if row:
        return dict(row)
    row = query_one(
        """
        SELECT posts.* FROM post_aliases
        JOIN posts ON posts.id = post_aliases.post_id
        WHERE post_aliases.locale = ? AND post_aliases.old_slug = ?
        """,
        (locale.value, slug),
    )
    if row and row["status"] == PUBLISHED:
        post = dict(row)
        post["via_alias"] = slug
        return post
    return None


def find_alternate_slug(group_id: Optional[str], locale: PostLocale | str) -> Optional[str]:
    """Slug of the translation of a post, looked up in the other locale."""
    if not group_id:
        return None
    other = PostLocale.ZH if locale == PostLocale.EN else PostLocale.EN
    row = query_one(
        "SELECT slug FROM posts WHERE group_id = ? AND locale = ? LIMIT 1",
        (group_id, other.value),
    )
    return row["slug"] if row else None


def list_published(locale: PostLocale) -> list[dict[str, Any]]:
    return [
        dict(row)
        for row in query_all(
            """
            SELECT * FROM posts
            WHERE status = ? AND locale = ?
            ORDER BY COALESCE(published_at, created_at) DESC
            """,
            (PUBLISHED, locale.value),
        )
    ]


def to_seo_input(post: dict[str, Any]) -> BlogPostSeoInput:
    author_name = post.get("author_name")
    return {
        "title": post["title"],
        "excerpt": post["excerpt"],
        "content": post["content"],
        "published_at": parse_timestamp(post.get("published_at")),
        "cover_image_path": post.get("cover_image_path"),
        "locale": PostLocale(post["locale"]),
        "author": {"name": author_name} if author_name is not None else None,
    }

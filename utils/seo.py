from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, TypedDict

SITE_NAME = "Hao's Blog"
PLACEHOLDER_COVER = "/images/placeholder-cover.svg"


class PostLocale(str, Enum):
    EN = "EN"
    ZH = "ZH"


class AuthorInput(TypedDict):
    name: str | None


class BlogPostSeoInput(TypedDict):
    title: str
    excerpt: str
    content: str
    published_at: datetime | None
    cover_image_path: str | None
    locale: PostLocale
    author: AuthorInput | None


AlternateLinks = TypedDict("AlternateLinks", {"en": str, "zh": str, "x-default": str}, total=False)


def iso_timestamp(dt: datetime) -> str:
    """Format like JavaScript's ``Date.toISOString()``: UTC, milliseconds, ``Z``."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: datetime | str | None) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def language_tag(locale: PostLocale | str) -> str:
    return "en-US" if locale == PostLocale.EN else "zh-CN"


def post_url(locale: PostLocale | str, slug: str, base_url: str = "") -> str:
    if locale == PostLocale.EN:
        return f"{base_url}/posts/{slug}"
    return f"{base_url}/zh/posts/{slug}"


def generate_blogposting_schema(
    post: BlogPostSeoInput | Mapping[str, Any],
    url: str,
    base_url: str = "",
    site_name: str = SITE_NAME,
) -> dict[str, Any]:
    """Build the schema.org ``BlogPosting`` object for a post page.

    ``url`` is the canonical page URL and is used verbatim. Optional fields
    (``datePublished``, ``image``) are left out rather than set to ``None``.
    """
    data: dict[str, Any] = {
        "@context": "https://schema.org",
        "@type": "BlogPosting",
        "headline": post["title"],
        "description": post["excerpt"],
        "inLanguage": language_tag(post["locale"]),
    }
    published_at = post.get("published_at")
    if published_at is not None:
        data["datePublished"] = iso_timestamp(published_at)
    cover = post.get("cover_image_path")
    if cover:
        data["image"] = f"{base_url}{cover}"

    author = post.get("author")
    author_name = author.get("name") if author is not None else None
    data["author"] = {
        "@type": "Person",
        "name": author_name if author_name is not None else "Anonymous",
    }
    data["publisher"] = {
        "@type": "Organization",
        "name": site_name,
        "logo": {
            "@type": "ImageObject",
            "url": f"{base_url}/logo.png",
        },
    }
    data["mainEntityOfPage"] = {
        "@type": "WebPage",
        "@id": url,
    }
    return data


def generate_alternate_links(
    current_locale: PostLocale | str,
    current_slug: str,
    alternate_slug: str | None = None,
    base_url: str = "",
) -> AlternateLinks:
    """Map hreflang keys to post URLs for a post and its optional translation.

    English is the default locale, so ``x-default`` always points at the
    English URL and only exists once that URL is known. A Chinese post without
    an English translation therefore gets no ``x-default``.
    """
    links: AlternateLinks = {}
    if current_locale == PostLocale.EN:
        links["en"] = post_url(PostLocale.EN, current_slug, base_url)
        links["x-default"] = links["en"]
        if alternate_slug:
            links["zh"] = post_url(PostLocale.ZH, alternate_slug, base_url)
    else:
        links["zh"] = post_url(PostLocale.ZH, current_slug, base_url)
        if alternate_slug:
            links["en"] = post_url(PostLocale.EN, alternate_slug, base_url)
            links["x-default"] = links["en"]
    return links


def build_post_metadata(
    post: BlogPostSeoInput | Mapping[str, Any],
    slug: str,
    alternate_slug: str | None = None,
    base_url: str = "",
) -> dict[str, Any]:
    locale = post["locale"]
    canonical = post_url(locale, slug, base_url)
    cover = post.get("cover_image_path")
    og_image = f"{base_url}{cover}" if cover else f"{base_url}{PLACEHOLDER_COVER}"
    return {
        "title": post["title"],
        "description": post["excerpt"],
        "canonical": canonical,
        "open_graph": {
            "title": post["title"],
            "description": post["excerpt"],
            "images": [og_image],
            "url": canonical,
            "type": "article",
            "locale": "en_US" if locale == PostLocale.EN else "zh_CN",
        },
        "twitter": {
            "card": "summary_large_image",
            "title": post["title"],
            "description": post["excerpt"],
            "images": [og_image],
        },
        "alternates": generate_alternate_links(locale, slug, alternate_slug, base_url),
    }


def not_found_metadata(locale: PostLocale | str) -> dict[str, Any]:
    return {"title": "Post Not Found" if locale == PostLocale.EN else "文章未找到"}


def jsonld_breadcrumbs(base_url: str, crumbs: list[tuple[str, str]]) -> dict[str, Any]:
    return {
        "@context": "https://schema.org",
        "@type": "BreadcrumbList",
        "itemListElement": [
            {
                "@type": "ListItem",
                "position": index + 1,
                "name": label,
                "item": f"{base_url}{path}",
            }
            for index, (label, path) in enumerate(crumbs)
        ],
    }

from datetime import datetime, timedelta, timezone

import pytest

from utils.seo import (
    PostLocale,
    build_post_metadata,
    generate_alternate_links,
    generate_blogposting_schema,
    iso_timestamp,
    not_found_metadata,
    parse_timestamp,
)

BASE = "https://example.com"


def make_post(**overrides):
    post = {
        "title": "Test Post",
        "excerpt": "Test excerpt",
        "content": "Test content",
        "published_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
        "cover_image_path": "/uploads/cover.jpg",
        "locale": PostLocale.EN,
        "author": {"name": "John Doe"},
    }
    post.update(overrides)
    return post


def test_english_schema():
    schema = generate_blogposting_schema(make_post(), f"{BASE}/posts/test-post", BASE)
    assert schema["@context"] == "https://schema.org"
    assert schema["@type"] == "BlogPosting"
    assert schema["headline"] == "Test Post"
    assert schema["description"] == "Test excerpt"
    assert schema["inLanguage"] == "en-US"
    assert schema["datePublished"] == "2024-01-01T00:00:00.000Z"
    assert schema["image"] == "https://example.com/uploads/cover.jpg"
    assert schema["author"] == {"@type": "Person", "name": "John Doe"}


def test_chinese_schema_without_cover():
    post = make_post(title="测试文章", locale=PostLocale.ZH, cover_image_path=None, author={"name": "张三"})
    schema = generate_blogposting_schema(post, f"{BASE}/zh/posts/test-post", BASE)
    assert schema["inLanguage"] == "zh-CN"
    assert schema["headline"] == "测试文章"
    assert "image" not in schema


def test_empty_cover_path_is_omitted():
    schema = generate_blogposting_schema(make_post(cover_image_path=""), f"{BASE}/posts/x", BASE)
    assert "image" not in schema


@pytest.mark.parametrize("author", [None, {"name": None}])
def test_missing_author_falls_back_to_anonymous(author):
    schema = generate_blogposting_schema(make_post(author=author), f"{BASE}/posts/test-post", BASE)
    assert schema["author"] == {"@type": "Person", "name": "Anonymous"}


def test_publisher_and_main_entity():
    url = f"{BASE}/posts/test-post"
    schema = generate_blogposting_schema(make_post(author=None), url, BASE)
    assert schema["publisher"] == {
        "@type": "Organization",
        "name": "Hao's Blog",
        "logo": {"@type": "ImageObject", "url": "https://example.com/logo.png"},
    }
    assert schema["mainEntityOfPage"] == {"@type": "WebPage", "@id": url}


def test_url_is_used_verbatim():
    schema = generate_blogposting_schema(make_post(), "not a url", BASE)
    assert schema["mainEntityOfPage"]["@id"] == "not a url"


def test_null_published_at_is_omitted():
    schema = generate_blogposting_schema(make_post(published_at=None), f"{BASE}/posts/test-post", BASE)
    assert "datePublished" not in schema


def test_key_order():
    schema = generate_blogposting_schema(make_post(), f"{BASE}/posts/test-post", BASE)
    assert list(schema) == [
        "@context",
        "@type",
        "headline",
        "description",
        "inLanguage",
        "datePublished",
        "image",
        "author",
        "publisher",
        "mainEntityOfPage",
    ]


def test_empty_base_url_gives_root_relative_image():
    schema = generate_blogposting_schema(make_post(), "/posts/test-post")
    assert schema["image"] == "/uploads/cover.jpg"
    assert schema["publisher"]["logo"]["url"] == "/logo.png"


def test_schema_is_deterministic():
    post = make_post()
    first = generate_blogposting_schema(post, f"{BASE}/posts/test-post", BASE)
    second = generate_blogposting_schema(post, f"{BASE}/posts/test-post", BASE)
    assert first == second


def test_iso_timestamp_matches_javascript_format():
    tz = timezone(timedelta(hours=8))
    assert iso_timestamp(datetime(2024, 1, 1, 8, 0, 0, 123456, tzinfo=tz)) == "2024-01-01T00:00:00.123Z"
    assert iso_timestamp(datetime(2024, 6, 30, 23, 59, 59)) == "2024-06-30T23:59:59.000Z"


def test_iso_timestamp_pads_early_years():
    assert iso_timestamp(datetime(999, 1, 1, tzinfo=timezone.utc)) == "0999-01-01T00:00:00.000Z"
    schema = generate_blogposting_schema(
        make_post(published_at=datetime(45, 7, 4, 12, 0, tzinfo=timezone.utc)), f"{BASE}/posts/x", BASE
    )
    assert schema["datePublished"] == "0045-07-04T12:00:00.000Z"


def test_parse_timestamp_accepts_z_suffix():
    assert parse_timestamp("2024-03-02T08:30:00Z") == datetime(2024, 3, 2, 8, 30, tzinfo=timezone.utc)
    assert parse_timestamp(None) is None


def test_alternate_links_en_with_translation():
    links = generate_alternate_links(PostLocale.EN, "test-post", "ce-shi", BASE)
    assert links == {
        "en": "https://example.com/posts/test-post",
        "x-default": "https://example.com/posts/test-post",
        "zh": "https://example.com/zh/posts/ce-shi",
    }


def test_alternate_links_zh_with_translation():
    links = generate_alternate_links(PostLocale.ZH, "ce-shi", "test-post", BASE)
    assert links == {
        "zh": "https://example.com/zh/posts/ce-shi",
        "en": "https://example.com/posts/test-post",
        "x-default": "https://example.com/posts/test-post",
    }


def test_alternate_links_en_without_translation_keeps_default():
    links = generate_alternate_links(PostLocale.EN, "test-post", base_url=BASE)
    assert links == {
        "en": "https://example.com/posts/test-post",
        "x-default": "https://example.com/posts/test-post",
    }


def test_alternate_links_zh_without_translation_has_no_default():
    links = generate_alternate_links(PostLocale.ZH, "ce-shi", base_url=BASE)
    assert links == {"zh": "https://example.com/zh/posts/ce-shi"}


def test_alternate_links_root_relative_without_base_url():
    links = generate_alternate_links(PostLocale.EN, "test-post", "ce-shi")
    assert links["en"] == "/posts/test-post"
    assert links["zh"] == "/zh/posts/ce-shi"
    assert links["x-default"] == "/posts/test-post"


@pytest.mark.parametrize(
    "locale, slug, alternate",
    [
        (PostLocale.EN, "test-post", "ce-shi"),
        (PostLocale.EN, "test-post", None),
        (PostLocale.ZH, "ce-shi", "test-post"),
        (PostLocale.ZH, "ce-shi", None),
    ],
)
def test_alternate_links_are_deterministic(locale, slug, alternate):
    first = generate_alternate_links(locale, slug, alternate, BASE)
    second = generate_alternate_links(locale, slug, alternate, BASE)
    assert first == second
    assert list(first.items()) == list(second.items())


def test_alternate_links_accept_plain_locale_strings():
    assert generate_alternate_links("ZH", "ce-shi") == {"zh": "/zh/posts/ce-shi"}


def test_post_metadata():
    post = make_post(locale=PostLocale.ZH, cover_image_path=None)
    meta = build_post_metadata(post, "ce-shi", "test-post", BASE)
    assert meta["canonical"] == "https://example.com/zh/posts/ce-shi"
    assert meta["open_graph"]["locale"] == "zh_CN"
    assert meta["open_graph"]["type"] == "article"
    assert meta["open_graph"]["images"] == ["https://example.com/images/placeholder-cover.svg"]
    assert meta["twitter"]["card"] == "summary_large_image"
    assert meta["alternates"]["x-default"] == "https://example.com/posts/test-post"


def test_not_found_metadata_is_localized():
    assert not_found_metadata(PostLocale.EN) == {"title": "Post Not Found"}
    assert not_found_metadata(PostLocale.ZH) == {"title": "文章未找到"}

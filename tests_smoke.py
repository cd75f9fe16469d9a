import json
import re

import pytest

from app import create_app
from utils.db import add_alias, execute, find_alternate_slug, get_post_by_slug, query_one
from utils.seo import PostLocale


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "test.db"))
    monkeypatch.setenv("SITE_URL", "https://example.com")
    app = create_app()
    app.config.update({"TESTING": True})
    with app.test_client() as client:
        yield client


def jsonld_blocks(html: str) -> list[dict]:
    return [json.loads(block) for block in re.findall(r'<script type="application/ld\+json">(.*?)</script>', html, re.S)]


def test_home(client):
    response = client.get("/")
    assert response.status_code == 200
    assert b"Notes from a Slow Walk Through Kyoto" in response.data
    assert b"Unfinished" not in response.data


def test_zh_index(client):
    response = client.get("/zh/posts")
    assert response.status_code == 200
    assert "京都慢行笔记" in response.get_data(as_text=True)


def test_english_post_with_translation(client):
    response = client.get("/posts/slow-walk-through-kyoto")
    assert response.status_code == 200
    html = response.get_data(as_text=True)
    assert '<link rel="canonical" href="https://example.com/posts/slow-walk-through-kyoto">' in html
    assert 'hreflang="zh" href="https://example.com/zh/posts/jing-du-man-xing-bi-ji"' in html
    assert 'hreflang="x-default" href="https://example.com/posts/slow-walk-through-kyoto"' in html
    schema = jsonld_blocks(html)[0]
    assert schema["@type"] == "BlogPosting"
    assert schema["inLanguage"] == "en-US"
    assert schema["datePublished"] == "2024-03-02T08:30:00.000Z"
    assert schema["image"] == "https://example.com/uploads/kyoto-cover.jpg"
    assert schema["mainEntityOfPage"]["@id"] == "https://example.com/posts/slow-walk-through-kyoto"


def test_chinese_post_without_translation(client):
    response = client.get("/zh/posts/du-shu-zha-ji-si-yue")
    assert response.status_code == 200
    html = response.get_data(as_text=True)
    assert 'hreflang="zh"' in html
    assert 'hreflang="x-default"' not in html
    assert 'hreflang="en"' not in html


def test_post_locale_mismatch_is_404(client):
    assert client.get("/posts/jing-du-man-xing-bi-ji").status_code == 404


def test_draft_is_hidden(client):
    assert client.get("/posts/building-a-split-keyboard").status_code == 404


def test_alias_serves_current_post(client):
    response = client.get("/api/seo/en/kyoto-walk")
    assert response.status_code == 200
    data = response.get_json()
    assert data["metadata"]["canonical"] == "https://example.com/posts/slow-walk-through-kyoto"


def test_alias_to_draft_is_404(client):
    with client.application.app_context():
        draft = query_one("SELECT id FROM posts WHERE slug = ?", ("building-a-split-keyboard",))
        add_alias(PostLocale.EN, "split-keyboard", draft["id"])
        assert get_post_by_slug("split-keyboard", PostLocale.EN) is None


def test_seo_api(client):
    response = client.get("/api/seo/zh/jing-du-man-xing-bi-ji")
    assert response.status_code == 200
    data = response.get_json()
    assert data["schema"]["inLanguage"] == "zh-CN"
    assert data["alternates"] == {
        "zh": "https://example.com/zh/posts/jing-du-man-xing-bi-ji",
        "en": "https://example.com/posts/slow-walk-through-kyoto",
        "x-default": "https://example.com/posts/slow-walk-through-kyoto",
    }
    assert data["metadata"]["open_graph"]["locale"] == "zh_CN"


def test_seo_api_anonymous_author(client):
    data = client.get("/api/seo/en/self-hosting-a-photo-gallery").get_json()
    assert data["schema"]["author"] == {"@type": "Person", "name": "Anonymous"}
    assert "image" not in data["schema"]


def test_seo_api_not_found(client):
    response = client.get("/api/seo/zh/missing")
    assert response.status_code == 404
    assert response.get_json()["metadata"] == {"title": "文章未找到"}


def test_seo_api_unknown_locale(client):
    assert client.get("/api/seo/fr/slow-walk-through-kyoto").status_code == 404


def test_find_alternate_slug_ignores_posts_without_group(client):
    with client.application.app_context():
        assert find_alternate_slug(None, PostLocale.EN) is None
        execute("UPDATE posts SET group_id = ? WHERE slug = ?", ("lonely", "du-shu-zha-ji-si-yue"))
        assert find_alternate_slug("lonely", PostLocale.ZH) is None


def test_sitemap_index(client):
    response = client.get("/sitemap.xml")
    assert response.status_code == 200
    assert b"<sitemapindex" in response.data
    assert b"https://example.com/sitemap-en.xml" in response.data
    assert b"https://example.com/sitemap-zh.xml" in response.data


def test_locale_sitemap(client):
    response = client.get("/sitemap-en.xml")
    assert response.status_code == 200
    assert b"<urlset" in response.data
    assert b"<loc>https://example.com/posts/slow-walk-through-kyoto</loc>" in response.data
    assert b"hreflang='zh' href='https://example.com/zh/posts/jing-du-man-xing-bi-ji'" in response.data
    assert b"building-a-split-keyboard" not in response.data


def test_robots(client):
    response = client.get("/robots.txt")
    assert response.status_code == 200
    assert b"Sitemap: https://example.com/sitemap.xml" in response.data


def test_health(client):
    assert client.get("/health").get_json() == {"status": "ok"}


def test_root_relative_links_without_site_url(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "relative.db"))
    monkeypatch.delenv("SITE_URL", raising=False)
    app = create_app()
    data = app.test_client().get("/api/seo/en/slow-walk-through-kyoto").get_json()
    assert data["alternates"]["en"] == "/posts/slow-walk-through-kyoto"
    assert data["alternates"]["zh"] == "/zh/posts/jing-du-man-xing-bi-ji"

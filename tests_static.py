import json

import build_static


def test_export_routes(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "export.db"))
    monkeypatch.setenv("SITE_URL", "https://example.com")
    output = tmp_path / "site"
    monkeypatch.setattr(build_static, "OUTPUT_DIR", output)

    written = build_static.export_routes()

    assert "/posts/slow-walk-through-kyoto/" in written
    assert (output / "posts" / "slow-walk-through-kyoto" / "index.html").exists()
    assert (output / "zh" / "posts" / "jing-du-man-xing-bi-ji" / "index.html").exists()
    assert not (output / "posts" / "building-a-split-keyboard").exists()
    assert b"<sitemapindex" in (output / "sitemap.xml").read_bytes()

    api = json.loads((output / "api" / "seo" / "zh" / "du-shu-zha-ji-si-yue.json").read_text(encoding="utf-8"))
    assert api["alternates"] == {"zh": "https://example.com/zh/posts/du-shu-zha-ji-si-yue"}

    headers = (output / "_headers").read_text()
    assert "/sitemap-en.xml\n  Content-Type: application/xml" in headers

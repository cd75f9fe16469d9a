"""Static export of the blog pages, SEO API responses and sitemaps."""
from __future__ import annotations

import os
import shutil
from pathlib import Path

from flask import Response

from app import create_app
from utils.db import list_published
from utils.seo import PostLocale, post_url

OUTPUT_DIR = Path(os.getenv("STATIC_OUTPUT_DIR", "static_build"))


def ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def write_response(path: str, response: Response) -> None:
    destination = OUTPUT_DIR / path.lstrip("/")
    if path.endswith("/") and not path.endswith("//"):
        destination = destination / "index.html"
    ensure_directory(destination)
    destination.write_bytes(response.get_data())


def clean_output_dir() -> None:
    if OUTPUT_DIR.exists():
        shutil.rmtree(OUTPUT_DIR)
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)


def collect_routes() -> list[str]:
    routes = [
        "/",
        "/posts",
        "/zh",
        "/zh/posts",
        "/sitemap.xml",
        "/sitemap-en.xml",
        "/sitemap-zh.xml",
        "/robots.txt",
    ]
    for locale, prefix in ((PostLocale.EN, "en"), (PostLocale.ZH, "zh")):
        for post in list_published(locale):
            routes.append(post_url(locale, post["slug"]))
            routes.append(f"/api/seo/{prefix}/{post['slug']}")
    return routes


def export_routes() -> list[str]:
    app = create_app()
    written: list[str] = []
    with app.app_context():
        client = app.test_client()
        clean_output_dir()

        for route in collect_routes():
            response = client.get(route)
            if response.status_code >= 400:
                raise RuntimeError(f"Failed to render {route}: {response.status_code}")

            if route.startswith("/api/"):
                target = f"{route}.json"
            elif route.endswith(".xml") or route.endswith(".txt") or route.endswith("/"):
                target = route
            else:
                target = f"{route}/"

            write_response(target, response)
            written.append(target)

        headers_lines: list[str] = []
        header_map = {
            "/sitemap.xml": {"Content-Type": "application/xml"},
            "/sitemap-en.xml": {"Content-Type": "application/xml"},
            "/sitemap-zh.xml": {"Content-Type": "application/xml"},
            "/robots.txt": {"Content-Type": "text/plain"},
            "/api/*": {"Content-Type": "application/json"},
        }
        for path, values in header_map.items():
            headers_lines.append(path)
            headers_lines.extend(f"  {key}: {value}" for key, value in values.items())
            headers_lines.append("")
        (OUTPUT_DIR / "_headers").write_text("\n".join(headers_lines).strip() + "\n")
    app.logger.info("Exported %d routes to %s", len(written), OUTPUT_DIR)
    return written


if __name__ == "__main__":
    export_routes()

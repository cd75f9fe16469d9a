from __future__ import annotations

import os
from datetime import datetime
from typing import Any

from dotenv import load_dotenv
from flask import Flask, Response, abort, jsonify, render_template, url_for
from markupsafe import escape

from utils import seo
from utils.db import (
    close_db,
    find_alternate_slug,
    get_post_by_slug,
    init_db,
    list_published,
    to_seo_input,
)
from utils.seo import PostLocale

load_dotenv()

LOCALE_PREFIXES = {"en": PostLocale.EN, "zh": PostLocale.ZH}


def create_app() -> Flask:
    app = Flask(__name__, static_folder="static", template_folder="templates")
    app.config["SECRET_KEY"] = os.getenv("SECRET_KEY", os.urandom(24))
    app.config["BASE_URL"] = os.getenv("SITE_URL", "")
    app.config["SITE_NAME"] = os.getenv("SITE_NAME", seo.SITE_NAME)
    # JSON-LD keys keep their schema order
    app.json.sort_keys = False

    os.makedirs(app.instance_path, exist_ok=True)

    app.teardown_appcontext(close_db)

    with app.app_context():
        init_db()
        if not app.config["BASE_URL"]:
            app.logger.warning("SITE_URL not set. Generated SEO links will be root-relative.")
        else:
            app.logger.info("Serving SEO metadata for %s", app.config["BASE_URL"])

    register_routes(app)
    register_filters(app)
    register_context_processors(app)

    return app


def resolve_locale(prefix: str) -> PostLocale:
    locale = LOCALE_PREFIXES.get(prefix)
    if locale is None:
        abort(404)
    return locale


def register_context_processors(app: Flask) -> None:
    @app.context_processor
    def inject_globals() -> dict[str, Any]:
        return {
            "site_name": app.config["SITE_NAME"],
            "base_url": app.config["BASE_URL"],
            "current_year": datetime.utcnow().year,
        }


def register_filters(app: Flask) -> None:
    @app.template_filter("format_date")
    def format_date(value: str | None, locale: str = PostLocale.EN.value) -> str:
        if not value:
            return ""
        try:
            parsed = seo.parse_timestamp(value)
        except ValueError:
            return value
        if locale == PostLocale.ZH.value:
            return f"{parsed.year}年{parsed.month}月{parsed.day}日"
        return parsed.strftime("%B %d, %Y")


def load_post_seo(app: Flask, slug: str, locale: PostLocale) -> dict[str, Any] | None:
    post = get_post_by_slug(slug, locale)
    if post is None:
        return None
    if post.get("via_alias"):
        app.logger.info("Serving %s post %r through alias %r", locale.value, post["slug"], post["via_alias"])
    base_url = app.config["BASE_URL"]
    seo_input = to_seo_input(post)
    alternate_slug = find_alternate_slug(post.get("group_id"), locale)
    canonical = seo.post_url(locale, post["slug"], base_url)
    return {
        "post": post,
        "schema": seo.generate_blogposting_schema(seo_input, canonical, base_url, app.config["SITE_NAME"]),
        "metadata": seo.build_post_metadata(seo_input, post["slug"], alternate_slug, base_url),
        "alternates": seo.generate_alternate_links(locale, post["slug"], alternate_slug, base_url),
    }


def render_post(app: Flask, slug: str, locale: PostLocale) -> str:
    bundle = load_post_seo(app, slug, locale)
    if bundle is None:
        abort(404)
    base_url = app.config["BASE_URL"]
    home = "/" if locale == PostLocale.EN else "/zh"
    breadcrumbs = seo.jsonld_breadcrumbs(
        base_url,
        [("Home", home), (bundle["post"]["title"], seo.post_url(locale, bundle["post"]["slug"]))],
    )
    return render_template(
        "post.html",
        post=bundle["post"],
        meta=bundle["metadata"],
        blog_json=bundle["schema"],
        breadcrumbs=breadcrumbs,
        html_lang=seo.language_tag(locale),
    )


def render_index(locale: PostLocale) -> str:
    posts = list_published(locale)
    return render_template(
        "posts.html",
        posts=posts,
        locale=locale.value,
        html_lang=seo.language_tag(locale),
        post_url=seo.post_url,
    )


def sitemap_entries(base_url: str, locale: PostLocale) -> list[dict[str, Any]]:
    today = datetime.utcnow().date().isoformat()
    prefix = "" if locale == PostLocale.EN else "/zh"
    urls: list[dict[str, Any]] = [
        {"loc": f"{base_url}{prefix}" or "/", "lastmod": today, "alternates": {}},
        {"loc": f"{base_url}{prefix}/posts", "lastmod": today, "alternates": {}},
    ]
    for post in list_published(locale):
        alternate_slug = find_alternate_slug(post.get("group_id"), locale)
        urls.append(
            {
                "loc": seo.post_url(locale, post["slug"], base_url),
                "lastmod": (post["updated_at"] or today)[:10],
                "alternates": seo.generate_alternate_links(locale, post["slug"], alternate_slug, base_url),
            }
        )
    return urls


def register_routes(app: Flask) -> None:
    @app.route("/")
    def home() -> str:
        return render_index(PostLocale.EN)

    @app.route("/posts")
    def posts_index() -> str:
        return render_index(PostLocale.EN)

    @app.route("/zh")
    def zh_home() -> str:
        return render_index(PostLocale.ZH)

    @app.route("/zh/posts")
    def zh_posts_index() -> str:
        return render_index(PostLocale.ZH)

    @app.route("/posts/<slug>")
    def post_detail(slug: str) -> str:
        return render_post(app, slug, PostLocale.EN)

    @app.route("/zh/posts/<slug>")
    def zh_post_detail(slug: str) -> str:
        return render_post(app, slug, PostLocale.ZH)

    @app.route("/api/seo/<prefix>/<slug>")
    def post_seo(prefix: str, slug: str) -> Any:
        locale = resolve_locale(prefix)
        bundle = load_post_seo(app, slug, locale)
        if bundle is None:
            return jsonify({"error": "not found", "metadata": seo.not_found_metadata(locale)}), 404
        return jsonify(
            {
                "schema": bundle["schema"],
                "alternates": bundle["alternates"],
                "metadata": bundle["metadata"],
            }
        )

    @app.route("/sitemap.xml")
    def sitemap_index() -> Response:
        base_url = app.config["BASE_URL"]
        today = datetime.utcnow().date().isoformat()
        entries = [
            f"<sitemap><loc>{escape(base_url)}/sitemap-{prefix}.xml</loc><lastmod>{today}</lastmod></sitemap>"
            for prefix in LOCALE_PREFIXES
        ]
        xml = (
            "<?xml version='1.0' encoding='UTF-8'?>"
            "<sitemapindex xmlns='http://www.sitemaps.org/schemas/sitemap/0.9'>"
            + "".join(entries)
            + "</sitemapindex>"
        )
        return Response(xml, mimetype="application/xml")

    @app.route("/sitemap-<prefix>.xml")
    def sitemap(prefix: str) -> Response:
        locale = resolve_locale(prefix)
        xml_urls = []
        for url in sitemap_entries(app.config["BASE_URL"], locale):
            links = "".join(
                f"<xhtml:link rel='alternate' hreflang='{hreflang}' href='{escape(href)}'/>"
                for hreflang, href in url["alternates"].items()
            )
            xml_urls.append(
                f"<url><loc>{escape(url['loc'])}</loc><lastmod>{url['lastmod']}</lastmod>{links}</url>"
            )
        xml = (
            "<?xml version='1.0' encoding='UTF-8'?>"
            "<urlset xmlns='http://www.sitemaps.org/schemas/sitemap/0.9'"
            " xmlns:xhtml='http://www.w3.org/1999/xhtml'>"
            + "".join(xml_urls)
            + "</urlset>"
        )
        return Response(xml, mimetype="application/xml")

    @app.route("/robots.txt")
    def robots() -> Response:
        sitemap_url = f"{app.config['BASE_URL']}{url_for('sitemap_index')}"
        content = f"User-agent: *\nAllow: /\nSitemap: {sitemap_url}\n"
        return Response(content, mimetype="text/plain")

    @app.route("/health")
    def health() -> Response:
        return jsonify({"status": "ok"})


app = create_app()


def main() -> None:
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", 5000)), debug=False)


if __name__ == "__main__":
    main()

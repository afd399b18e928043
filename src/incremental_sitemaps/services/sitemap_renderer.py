"""Render URL sets and the sitemap index as sitemap-protocol XML."""

from __future__ import annotations

from collections.abc import Iterable

from lxml import etree  # type: ignore[import-untyped]

from incremental_sitemaps.services.url_entries import (
    ImageEntry,
    SitemapIndexEntry,
    UrlEntry,
)

SITEMAP_NAMESPACE = "http://www.sitemaps.org/schemas/sitemap/0.9"
IMAGE_NAMESPACE = "http://www.google.com/schemas/sitemap-image/1.1"
NEWS_NAMESPACE = "http://www.google.com/schemas/sitemap-news/0.9"

_URLSET_NSMAP = {
    None: SITEMAP_NAMESPACE,
    "news": NEWS_NAMESPACE,
    "image": IMAGE_NAMESPACE,
}


def _sitemap_tag(name: str) -> str:
    return f"{{{SITEMAP_NAMESPACE}}}{name}"


def _image_tag(name: str) -> str:
    return f"{{{IMAGE_NAMESPACE}}}{name}"


def _add_text_child(parent: etree._Element, tag: str, value: str) -> None:
    child = etree.SubElement(parent, tag)
    child.text = value


def format_priority(priority: float) -> str:
    return format(float(priority), "g")


def _append_image(url_element: etree._Element, image: ImageEntry) -> None:
    image_element = etree.SubElement(url_element, _image_tag("image"))
    _add_text_child(image_element, _image_tag("loc"), image.loc)
    if image.caption:
        _add_text_child(image_element, _image_tag("caption"), image.caption)
    if image.title:
        _add_text_child(image_element, _image_tag("title"), image.title)
    if image.geo_location:
        _add_text_child(image_element, _image_tag("geo_location"), image.geo_location)
    if image.license:
        _add_text_child(image_element, _image_tag("license"), image.license)


def _serialize(root: etree._Element) -> str:
    xml_bytes = etree.tostring(
        root,
        xml_declaration=True,
        encoding="UTF-8",
        pretty_print=True,
    )
    return xml_bytes.decode("utf-8")


def render_urlset(entries: Iterable[UrlEntry]) -> str:
    """Render ``entries`` as a ``<urlset>`` document.

    Output depends only on the entries and their order, so rendering the same
    entries twice yields identical text.
    """
    root = etree.Element(_sitemap_tag("urlset"), nsmap=_URLSET_NSMAP)
    for entry in entries:
        url_element = etree.SubElement(root, _sitemap_tag("url"))
        _add_text_child(url_element, _sitemap_tag("loc"), entry.loc)
        if entry.lastmod is not None:
            _add_text_child(url_element, _sitemap_tag("lastmod"), entry.lastmod)
        if entry.changefreq is not None:
            _add_text_child(
                url_element, _sitemap_tag("changefreq"), entry.changefreq.value
            )
        if entry.priority is not None:
            _add_text_child(
                url_element, _sitemap_tag("priority"), format_priority(entry.priority)
            )
        for image in entry.images:
            _append_image(url_element, image)

    return _serialize(root)


def render_sitemap_index(entries: Iterable[SitemapIndexEntry]) -> str:
    """Render ``entries`` as a ``<sitemapindex>`` document."""

    root = etree.Element(_sitemap_tag("sitemapindex"), nsmap={None: SITEMAP_NAMESPACE})
    for entry in entries:
        sitemap_element = etree.SubElement(root, _sitemap_tag("sitemap"))
        _add_text_child(sitemap_element, _sitemap_tag("loc"), entry.loc)
        if entry.lastmod is not None:
            _add_text_child(sitemap_element, _sitemap_tag("lastmod"), entry.lastmod)

    return _serialize(root)


__all__ = [
    "IMAGE_NAMESPACE",
    "NEWS_NAMESPACE",
    "SITEMAP_NAMESPACE",
    "format_priority",
    "render_sitemap_index",
    "render_urlset",
]

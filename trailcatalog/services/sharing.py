"""Shareable links for trail guides."""

from __future__ import annotations

from urllib.parse import quote

from trailcatalog.schemas.trail_guide import ShareLink, TrailGuideRecord

SHARE_TEXT_TEMPLATE = 'Check out "{name}" on Access Nature - an accessible trail guide!'


def build_share_link(record: TrailGuideRecord, base_url: str) -> ShareLink:
    name = record.route_name or "Trail guide"
    url = f"{base_url.rstrip('/')}/index.html?trail={quote(record.id, safe='')}"
    return ShareLink(url=url, title=name, text=SHARE_TEXT_TEMPLATE.format(name=name))


__all__ = ["SHARE_TEXT_TEMPLATE", "build_share_link"]

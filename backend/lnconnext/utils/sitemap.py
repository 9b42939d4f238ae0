"""sitemap.xml rendering."""

from datetime import datetime
from typing import Iterable, List, Optional
from xml.etree import ElementTree as ET

SITEMAP_NS = "http://www.sitemaps.org/schemas/sitemap/0.9"

STATIC_PAGES = (
    ("", "daily", 1.0),
    ("/organizer", "weekly", 0.8),
    ("/event", "daily", 0.9),
    ("/bitcoiner", "weekly", 0.8),
    ("/calendar", "daily", 0.7),
)


def entry(loc: str, lastmod: Optional[datetime], changefreq: str, priority: float) -> dict:
    return {"loc": loc, "lastmod": lastmod, "changefreq": changefreq, "priority": priority}


def static_entries(base_url: str, now: datetime) -> List[dict]:
    return [entry(f"{base_url}{path}", now, freq, prio) for path, freq, prio in STATIC_PAGES]


def render(entries: Iterable[dict]) -> bytes:
    """Serialize entries into a `<urlset>` document."""
    urlset = ET.Element("urlset", xmlns=SITEMAP_NS)
    for e in entries:
        url = ET.SubElement(urlset, "url")
        ET.SubElement(url, "loc").text = e["loc"]
        if e.get("lastmod") is not None:
            ET.SubElement(url, "lastmod").text = e["lastmod"].strftime("%Y-%m-%dT%H:%M:%SZ")
        ET.SubElement(url, "changefreq").text = e["changefreq"]
        ET.SubElement(url, "priority").text = f"{e['priority']:.1f}"
    return ET.tostring(urlset, encoding="utf-8", xml_declaration=True)

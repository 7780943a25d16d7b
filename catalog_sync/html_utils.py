"""HTML parsing and extraction for rebike.com listing and product pages."""

from typing import Dict, List, Optional

from bs4 import BeautifulSoup, Tag

from catalog_sync.logging_config import get_logger
from catalog_sync.models import DetailResult, ListingCard, MAX_IMAGES
from catalog_sync.url_utils import URLValidationError, absolute_url, validate_url

__all__ = [
    "CARD_SELECTOR",
    "extract_listing_cards",
    "has_next_page",
    "extract_detail_images",
    "extract_description",
    "extract_specifications",
    "parse_detail_page",
]

logger = get_logger("html_utils")

CARD_SELECTOR = ".bike-card"
CARD_LINK_SELECTOR = 'a[href*="/de/"]'
CURRENT_PRICE_SELECTOR = "p.css-1bw9inq"
ORIGINAL_PRICE_SELECTOR = "p.css-1rh6qqp"
NEXT_PAGE_SELECTOR = '[aria-label="Next page"], .pagination-next, [class*="next"]'

IMAGE_CDN_MARKER = "rebike-photo-nas"
USAGE_MARKERS = ("Für den Alltag", "eignet sich für", "Körpergröße")
SPEC_TABLE_MARKERS = ("Artikel-Nr", "Motor", "Akku")
MAX_SPEC_KEY_LENGTH = 50
MAX_SPEC_VALUE_LENGTH = 100
MIN_HEADING_DESCRIPTION_LENGTH = 20
EMPTY_DESCRIPTION = "Detaillierte Beschreibung wird geladen..."


def _text(el: Optional[Tag]) -> Optional[str]:
    if el is None:
        return None
    text = el.get_text(" ", strip=True)
    return text or None


def extract_listing_cards(html: str) -> List[ListingCard]:
    """Extract card data for every product card on a listing page.

    Cards without a title or without a valid shop URL are dropped.
    """
    soup = BeautifulSoup(html, "html.parser")
    cards: List[ListingCard] = []

    for card in soup.select(CARD_SELECTOR):
        link = card.select_one(CARD_LINK_SELECTOR)
        title = _text(link)
        if not link or not title:
            continue

        try:
            url = validate_url(absolute_url(link.get("href")))
        except URLValidationError as e:
            logger.warning(f"Skipping card '{title}' with invalid URL: {e}")
            continue

        image_url = None
        img = card.find("img")
        if img is not None:
            src = img.get("src") or img.get("data-src")
            image_url = absolute_url(src) if src else None

        cards.append(ListingCard(
            title=title,
            url=url,
            current_price_raw=_text(card.select_one(CURRENT_PRICE_SELECTOR)),
            original_price_raw=_text(card.select_one(ORIGINAL_PRICE_SELECTOR)),
            image_url=image_url,
        ))

    return cards


def _is_disabled(el: Tag) -> bool:
    if el.has_attr("disabled"):
        return True
    if str(el.get("aria-disabled", "")).lower() == "true":
        return True
    classes = el.get("class") or []
    return any("disabled" in c.lower() for c in classes)


def has_next_page(html: str) -> bool:
    """True when the page shows an enabled next-page control."""
    soup = BeautifulSoup(html, "html.parser")
    for el in soup.select(NEXT_PAGE_SELECTOR):
        if not _is_disabled(el):
            return True
    return False


def extract_detail_images(soup: BeautifulSoup) -> List[str]:
    """Distinct product photos served from the shop's image CDN."""
    images: List[str] = []
    for img in soup.select(f'img[src*="{IMAGE_CDN_MARKER}"]'):
        src = img.get("src")
        if src and src not in images:
            images.append(src)
    return images[:MAX_IMAGES]


def extract_description(soup: BeautifulSoup) -> str:
    """Build the product description.

    Prefers a long enough <h1>, falls back to the meta description, and
    appends the first paragraph describing intended use.
    """
    description = ""
    heading = _text(soup.find("h1"))
    if heading and len(heading) > MIN_HEADING_DESCRIPTION_LENGTH:
        description = heading
    else:
        meta = soup.find("meta", attrs={"name": "description"})
        if meta and meta.get("content"):
            description = meta["content"].strip()

    if description:
        for p in soup.find_all("p"):
            text = p.get_text(" ", strip=True)
            if any(marker in text for marker in USAGE_MARKERS):
                description += ". " + text
                break

    return description or EMPTY_DESCRIPTION


def extract_specifications(soup: BeautifulSoup) -> Dict[str, str]:
    """Read th/td pairs from the first table that looks like a spec sheet."""
    spec_table = None
    for table in soup.find_all("table"):
        table_text = table.get_text()
        if any(marker in table_text for marker in SPEC_TABLE_MARKERS):
            spec_table = table
            break

    specs: Dict[str, str] = {}
    if spec_table is None:
        return specs

    for row in spec_table.find_all("tr"):
        th = row.find("th")
        td = row.find("td")
        if th is None or td is None:
            continue
        key = th.get_text(" ", strip=True)
        value = td.get_text(" ", strip=True)
        if key and value and len(key) < MAX_SPEC_KEY_LENGTH and len(value) < MAX_SPEC_VALUE_LENGTH:
            specs[key] = value
    return specs


def parse_detail_page(html: str) -> DetailResult:
    """Parse a rendered product page into a DetailResult."""
    soup = BeautifulSoup(html, "html.parser")
    return DetailResult(
        images=extract_detail_images(soup),
        description=extract_description(soup),
        specifications=extract_specifications(soup),
    )

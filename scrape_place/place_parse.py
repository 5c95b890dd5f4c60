"""
Naver Place parser - turn rendered page state into structured data.

The in-page scripts only observe the DOM and return plain dicts ("rendered
state"). All ranking rules live in the pure functions below so they can be
exercised without a browser:

- extract_rankings(): organic, deduplicated, ranked listing entries
- extract_review_counts(): visitor/blog counters of a profile page
- parse_review_count(): approximate counts such as "2.2만" or "999+"
"""

import re
from typing import Any, Dict, List, Optional, Tuple

from scrape_place.place_types import RankedEntity


BASE_URL = "https://m.place.naver.com"

SCROLL_CONTAINER_SELECTOR = ".YluNG"
LIST_ITEM_SELECTOR = "ul > li.VLTHu"
NEW_OPEN_SECTION_SELECTOR = ".phKao.lLNP9"
AD_LABEL_SELECTOR = ".place_ad_label_text"
NAME_SELECTOR = ".YwYLL"
CATEGORY_SELECTOR = ".YzBgS"

# Best-effort markers waited for after navigation
LIST_MARKER_SELECTOR = 'ul > li a, a[href*="/restaurant/"]'
REVIEW_MARKER_SELECTOR = '.place_section_content, [class*="review"]'

AD_TEXT = "광고"
UNKNOWN_NAME = "알 수 없음"
MAX_NAME_LENGTH = 50

VISITOR_LABEL = "방문자"
BLOG_LABEL = "블로그"

PLACE_ID_PATTERN = re.compile(r"/[a-z]+/(\d+)")
COUNT_PATTERN = re.compile(r"(\d+(?:,\d+)*)")
VISITOR_TEXT_PATTERN = re.compile(r"방문자\s*리뷰\s*(\d+(?:,\d+)*)")
BLOG_TEXT_PATTERN = re.compile(r"블로그\s*리뷰\s*(\d+(?:,\d+)*)")
APPROX_COUNT_PATTERN = re.compile(r"(\d+(?:,\d+)*(?:\.\d+)?)\s*(만|천)?")

UNIT_MULTIPLIERS = {"만": 10000, "천": 1000}


LISTING_SNAPSHOT_JS = """
() => {
    const container = document.querySelector('%(container)s');
    const items = Array.from(document.querySelectorAll('%(item)s')).map(item => {
        const link = item.querySelector('a[href*="/place/"]') || item.querySelector('a');
        const nameEl = item.querySelector('%(name)s');
        const categoryEl = item.querySelector('%(category)s');
        let reviewText = null;
        for (const span of item.querySelectorAll('span')) {
            const text = (span.textContent || '').trim();
            if (/^리뷰\\s*[\\d,.]+/.test(text)) {
                reviewText = text;
                break;
            }
        }
        return {
            href: link ? (link.getAttribute('href') || '') : '',
            name: nameEl ? (nameEl.textContent || '').trim() : null,
            category: categoryEl ? (categoryEl.textContent || '').trim() : null,
            text: item.innerText || item.textContent || '',
            review_text: reviewText,
            is_ad: item.querySelector('%(ad)s') !== null,
            in_new_open: item.closest('%(new_open)s') !== null,
        };
    });
    return { container: container !== null, items: items };
}
""" % {
    "container": SCROLL_CONTAINER_SELECTOR,
    "item": LIST_ITEM_SELECTOR,
    "name": NAME_SELECTOR,
    "category": CATEGORY_SELECTOR,
    "ad": AD_LABEL_SELECTOR,
    "new_open": NEW_OPEN_SECTION_SELECTOR,
}

SCROLL_TO_BOTTOM_JS = """
() => {
    const container = document.querySelector('%(container)s');
    if (!container) {
        return false;
    }
    container.scrollTop = container.scrollHeight;
    const items = document.querySelectorAll('%(item)s');
    if (items.length > 0) {
        items[items.length - 1].scrollIntoView({ behavior: 'auto', block: 'end' });
    }
    return true;
}
""" % {
    "container": SCROLL_CONTAINER_SELECTOR,
    "item": LIST_ITEM_SELECTOR,
}

REVIEW_SNAPSHOT_JS = """
() => ({
    links: Array.from(document.querySelectorAll('.dAsGb .PXMot a')).map(a => a.textContent || ''),
    body_text: document.body ? document.body.innerText : '',
})
"""


class ScrollContainerMissing(Exception):
    """The listing has no scrollable container; nothing can be ranked."""


def extract_place_id(href: Optional[str]) -> Optional[str]:
    """
    Extract the numeric place id from a listing/profile href.

    Examples:
        >>> extract_place_id("/restaurant/1234567?entry=pll")
        '1234567'
        >>> extract_place_id("https://m.place.naver.com/place/42/home")
        '42'
    """
    if not href:
        return None
    match = PLACE_ID_PATTERN.search(href)
    return match.group(1) if match else None


def absolute_href(href: str) -> str:
    if href.startswith("http"):
        return href
    return f"{BASE_URL}{href}"


def clean_name(name: Optional[str], text: Optional[str]) -> str:
    """
    Display name of a listing entry.

    Falls back to the first line of the entry's visible text; whitespace is
    collapsed and the result truncated to MAX_NAME_LENGTH characters.
    """
    candidate = (name or "").strip()
    if not candidate:
        lines = [line.strip() for line in (text or "").strip().split("\n")]
        candidate = lines[0] if lines else ""
    candidate = re.sub(r"\s+", " ", candidate[:MAX_NAME_LENGTH]).strip()
    return candidate or UNKNOWN_NAME


def parse_review_count(raw: Optional[str]) -> Optional[int]:
    """
    Parse an approximate review count from listing text.

    Examples:
        >>> parse_review_count("리뷰 1,234")
        1234
        >>> parse_review_count("리뷰 2.2만")
        22000
        >>> parse_review_count("리뷰 999+")
        999
    """
    if not raw:
        return None
    match = APPROX_COUNT_PATTERN.search(raw)
    if not match:
        return None

    number = float(match.group(1).replace(",", ""))
    unit = match.group(2)
    if unit:
        number *= UNIT_MULTIPLIERS[unit]
    return int(round(number))


def is_sponsored(item: Dict[str, Any]) -> bool:
    return bool(item.get("is_ad")) or AD_TEXT in (item.get("text") or "")


def extract_rankings(rendered_state: Dict[str, Any], max_depth: Optional[int] = None) -> List[RankedEntity]:
    """
    Ordered organic entries of a listing page.

    Rules:
        - sponsored entries (ad label or ad text) are skipped
        - entries of the "newly opened" section are skipped (not globally ranked)
        - the first occurrence of a place id wins; later duplicates are skipped
        - rank is the 1-based position after these exclusions

    Args:
        rendered_state: Result of LISTING_SNAPSHOT_JS
        max_depth: Stop after this many entries

    Returns:
        List of RankedEntity

    Raises:
        ScrollContainerMissing: If the page has no scroll container
    """
    if not rendered_state or not rendered_state.get("container"):
        raise ScrollContainerMissing("Scroll container not found on listing page")

    rankings: List[RankedEntity] = []
    seen = set()

    for item in rendered_state.get("items") or []:
        if item.get("in_new_open") or is_sponsored(item):
            continue

        href = item.get("href") or ""
        place_id = extract_place_id(href)
        if not place_id or place_id in seen:
            continue
        seen.add(place_id)

        review_raw = item.get("review_text")
        rankings.append(RankedEntity(
            rank=len(rankings) + 1,
            place_id=place_id,
            name=clean_name(item.get("name"), item.get("text")),
            category=(item.get("category") or None),
            href=absolute_href(href),
            review_count=parse_review_count(review_raw),
            review_count_raw=review_raw,
        ))

        if max_depth is not None and len(rankings) >= max_depth:
            break

    return rankings


def _parse_int(text: str) -> int:
    return int(text.replace(",", ""))


def extract_review_counts(page_state: Dict[str, Any]) -> Tuple[int, int]:
    """
    Visitor and blog review counters of a profile page.

    The structured counter links are read first; the body text regex is only
    consulted for a counter the first pass left at zero. A genuine zero cannot
    be told apart from a missing counter.

    Args:
        page_state: Result of REVIEW_SNAPSHOT_JS

    Returns:
        Tuple of (visitor_review_count, blog_review_count)
    """
    visitor = 0
    blog = 0

    for text in page_state.get("links") or []:
        match = COUNT_PATTERN.search(text or "")
        if not match:
            continue
        if VISITOR_LABEL in text:
            visitor = _parse_int(match.group(1))
        if BLOG_LABEL in text:
            blog = _parse_int(match.group(1))

    if visitor == 0 or blog == 0:
        body_text = page_state.get("body_text") or ""

        if visitor == 0:
            match = VISITOR_TEXT_PATTERN.search(body_text)
            if match:
                visitor = _parse_int(match.group(1))

        if blog == 0:
            match = BLOG_TEXT_PATTERN.search(body_text)
            if match:
                blog = _parse_int(match.group(1))

    return visitor, blog

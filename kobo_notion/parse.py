"""Build Notion blocks from highlights and read Notion API responses."""
from datetime import date
from typing import Any, Dict, List, Optional
import logging

from kobo_notion.models import Highlight

logger = logging.getLogger(__name__)

# Kobo Bookmark.Color -> Notion text colour
COLOR_MAP = {
    0: "yellow_background",
    1: "pink_background",
    2: "blue_background",
    3: "green_background",
}


def color_for(code: Optional[int]) -> Optional[str]:
    """
    Look up the Notion colour for a Kobo highlight colour code.

    Args:
        code: Kobo colour code, normally 0-3

    Returns:
        Notion colour name, or None when the code has no mapping
    """
    if isinstance(code, bool):
        return None
    return COLOR_MAP.get(code)


def format_export_date(day: date) -> str:
    """US short date without zero padding, e.g. 3/7/2024."""
    return f"{day.month}/{day.day}/{day.year}"


def heading_block(day: date) -> Dict[str, Any]:
    """Heading that marks the start of one export pass."""
    return {
        "object": "block",
        "type": "heading_2",
        "heading_2": {
            "rich_text": [
                {"type": "text", "text": {"content": f"Highlights - {format_export_date(day)}"}}
            ]
        },
    }


def highlight_block(highlight: Highlight) -> Dict[str, Any]:
    """
    Build a bulleted list item for a highlight.

    Args:
        highlight: Highlight with non-empty text

    Returns:
        Notion block payload
    """
    run: Dict[str, Any] = {
        "type": "text",
        "text": {"content": highlight.text},
    }
    color = color_for(highlight.color)
    if color:
        run["annotations"] = {"color": color}
    else:
        logger.debug(f"No colour mapping for code {highlight.color!r}")

    return {
        "object": "block",
        "type": "bulleted_list_item",
        "bulleted_list_item": {"rich_text": [run]},
    }


def highlight_blocks(highlights: List[Highlight]) -> List[Dict[str, Any]]:
    """Map highlights to list items, dropping any without text."""
    return [highlight_block(h) for h in highlights if h.has_text]


def parse_page_id(response_json: Dict[str, Any]) -> Optional[str]:
    """Extract the id of a page object returned by Notion."""
    page_id = response_json.get("id")
    return str(page_id) if page_id else None


def parse_page_ids(response_json: Dict[str, Any]) -> List[str]:
    """
    Extract page ids from a database query response.

    Args:
        response_json: Complete query response JSON

    Returns:
        Page ids in the order Notion returned them (empty if no results)
    """
    results = response_json.get("results") or []
    page_ids = []

    for item in results:
        if not isinstance(item, dict):
            continue
        page_id = parse_page_id(item)
        if page_id:
            page_ids.append(page_id)

    return page_ids

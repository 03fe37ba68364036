"""HTML cleanup for rich-text issue descriptions."""
from typing import Optional

import nh3

ALLOWED_TAGS = {"b", "i", "strong", "em", "p", "ul", "ol", "li", "a", "code", "pre", "blockquote"}
ALLOWED_ATTRIBUTES = {"a": {"href", "target", "rel"}}


def sanitize_description(description: Optional[str]) -> Optional[str]:
    """
    Strip every tag and attribute outside the description allow-list.

    Script and style elements are dropped together with their content.

    Args:
        description: Raw HTML from the client

    Returns:
        Cleaned HTML, or None for an empty description
    """
    if not description:
        return None
    # link_rel must be disabled while "rel" is an allowed attribute
    return nh3.clean(
        description,
        tags=ALLOWED_TAGS,
        attributes=ALLOWED_ATTRIBUTES,
        link_rel=None,
    )

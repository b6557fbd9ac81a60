from __future__ import annotations

import re
from urllib.parse import urlparse

from profile_analyzer.core.errors import UnsupportedDocumentError
from profile_analyzer.extraction.document import ProfileDocument

_PROFILE_PATH = re.compile(r"/in/([^/?#]+)")
_TOP_CARD_MARKERS = (
    ".pv-top-card",
    ".pv-text-details__left-panel",
    "section[data-member-id]",
    ".pv-profile-card__anchor",
    ".text-body-medium[data-generated-suggestion-target]",
)


def profile_id_from_url(url: str | None) -> str | None:
    if not url:
        return None
    match = _PROFILE_PATH.search(urlparse(url).path or url)
    if not match:
        return None
    return match.group(1).strip().lower() or None


def has_profile_markers(document: ProfileDocument) -> bool:
    return any(document.select_one(marker) is not None for marker in _TOP_CARD_MARKERS)


def resolve_profile_id(document: ProfileDocument) -> str:
    """Identity for a document, or UnsupportedDocumentError when it is not a profile page."""
    if document.url:
        profile_id = profile_id_from_url(document.url)
        if profile_id is None:
            raise UnsupportedDocumentError(f"Not a profile URL: {document.url}")
    else:
        # saved pages carry no location, only the canonical link
        canonical = document.select_one('link[rel="canonical"]')
        profile_id = profile_id_from_url(canonical.get("href")) if canonical is not None else None
    if not has_profile_markers(document):
        raise UnsupportedDocumentError()
    if profile_id is None:
        raise UnsupportedDocumentError("Profile identity could not be determined.")
    return profile_id

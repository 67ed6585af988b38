from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from .utils import clean_text, strip_query

PROFILE_PATH_MARKER = "/in/"
# Identity used for entries the platform renders without a reachable profile.
ANONYMOUS_ID = "headless"
ANONYMOUS_NAME = "LinkedIn Member"
NO_TITLE = "No title listed"
NO_LOCATION = "No location listed"

_TITLE_SEPARATORS = (" at ", " - ", " | ")


def derive_external_id(profile_url: Optional[str]) -> str:
    """Return the profile slug following ``/in/``, or the anonymous sentinel."""

    url = strip_query(profile_url)
    if PROFILE_PATH_MARKER not in url:
        return ANONYMOUS_ID
    slug = url.split(PROFILE_PATH_MARKER, 1)[1].split("/", 1)[0].strip()
    return slug or ANONYMOUS_ID


def split_position_and_company(title: Optional[str]) -> Tuple[str, str]:
    """Split headlines such as ``"Engineer at Acme"`` into position and company."""

    text = clean_text(title)
    if not text:
        return "", ""
    for separator in _TITLE_SEPARATORS:
        if separator in text:
            position, company = text.split(separator, 1)
            return position.strip(), company.strip()
    return text, ""


@dataclass(frozen=True)
class ProfileRecord:
    name: str
    title: str
    location: str
    profile_url: str
    external_id: str
    connection_degree: str
    is_anonymous: bool
    position: str = ""
    company: str = ""
    image_url: str = ""

    @classmethod
    def from_fields(
        cls,
        *,
        name: Optional[str],
        title: Optional[str],
        location: Optional[str],
        profile_url: Optional[str],
        connection_degree: Optional[str] = None,
        image_url: Optional[str] = None,
    ) -> "ProfileRecord":
        """Build a record from resolved fields, filling placeholders for gaps."""

        url = strip_query(profile_url)
        resolved_name = clean_text(name)
        position, company = split_position_and_company(title)
        return cls(
            name=resolved_name or ANONYMOUS_NAME,
            title=clean_text(title) or NO_TITLE,
            location=clean_text(location) or NO_LOCATION,
            profile_url=url,
            external_id=derive_external_id(url),
            connection_degree=clean_text(connection_degree),
            is_anonymous=not resolved_name,
            position=position,
            company=company,
            image_url=(image_url or "").strip(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "title": self.title,
            "location": self.location,
            "profileUrl": self.profile_url,
            "linkedinId": self.external_id,
            "connectionDegree": self.connection_degree,
            "isAnonymous": self.is_anonymous,
            "position": self.position,
            "company": self.company,
            "profileImage": self.image_url or None,
        }


__all__ = [
    "ANONYMOUS_ID",
    "ANONYMOUS_NAME",
    "NO_LOCATION",
    "NO_TITLE",
    "ProfileRecord",
    "derive_external_id",
    "split_position_and_company",
]

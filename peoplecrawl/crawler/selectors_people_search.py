"""Selectors, text signatures and field locator chains for people search.

Each tuple is ordered from the markup generation seen most recently to the
most generic structural fallback. Several generations are often live at the
same time, so older entries stay until they have been unseen for a while.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Tuple

from .locators import AttributeMatch, ContainerChain, LocatorChain, StructuralPosition, TextPattern
from .records import ANONYMOUS_NAME, NO_LOCATION, NO_TITLE, PROFILE_PATH_MARKER
from .utils import clean_text, normalize_url, strip_query

HEADLESS_PROFILE_URL = "https://www.linkedin.com/search/results/people/headless"

_DEGREE_SUFFIX_RE = re.compile(r"\s*•?\s*\d(?:st|nd|rd|th)\+?\s*(?:degree(?:\s+connection)?)?\s*$", re.I)
_VIEW_PROFILE_RE = re.compile(r"\s*View\s+.+?(?:’|')s?\s+profile.*$", re.I)


@dataclass(frozen=True)
class PeopleSearchSelectors:
    """Page-level selectors and signatures for the people-search results page."""

    # Any of these present means the results list has rendered.
    results_ready: Tuple[str, ...] = (
        'ul[role="list"]',
        'div[class*="search-results"]',
        'div[class*="results-container"]',
        "main div > ul",
        ".scaffold-layout__list",
        'div[class*="marvel-srp"]',
    )
    result_containers: Tuple[str, ...] = (
        "li.reusable-search__result-container",
        "div[data-chameleon-result-urn]",
        'div[data-view-name="search-entity-result-universal-template"]',
        "div.entity-result",
        'ul[role="list"] > li',
        'div[class*="result-container"]',
        'div[class*="srp"] li',
    )
    results_ancestors: Tuple[str, ...] = (
        'div[class*="search-results"]',
        'div[class*="results-container"]',
        'ul[role="list"]',
        'div[role="list"]',
        'div[class*="srp"]',
        "main",
    )
    no_results_markers: Tuple[str, ...] = (
        "No results found",
        "couldn't find any results",
        "couldn’t find any results",
        "Try removing filters",
    )
    no_results_selectors: Tuple[str, ...] = (
        ".search-reusable-search-no-results",
        'section[class*="no-results"]',
    )
    block_signatures: Tuple[str, ...] = (
        "unusual activity",
        "verify you're not a robot",
        "verify you’re not a robot",
        "security check",
        "CAPTCHA",
        "too many requests",
    )
    login_url_markers: Tuple[str, ...] = ("/login", "/checkpoint", "/authwall", "/uas/login")
    login_form_selectors: Tuple[str, ...] = (
        'form[action*="login"]',
        'input[name="session_key"]',
        'a[data-tracking-control-name="guest_homepage-basic_sign-in-link"]',
    )
    session_signal_selectors: Tuple[str, ...] = (
        "header",
        ".global-nav__me",
        'div[data-test-id="feed-container"]',
        'div[class*="feed-container"]',
        'a[href*="/in/"]',
        'a[href*="/profile/"]',
    )
    next_button_labels: Tuple[str, ...] = ("Next", "next")

    @property
    def results_ready_selector(self) -> str:
        return ",".join(self.results_ready)


PEOPLE_SEARCH_SELECTORS = PeopleSearchSelectors()


def normalize_name(raw: str) -> str:
    name = clean_text(raw)
    name = _VIEW_PROFILE_RE.sub("", name)
    name = _DEGREE_SUFFIX_RE.sub("", name).strip()
    if ANONYMOUS_NAME.lower() in name.lower():
        return ANONYMOUS_NAME
    return name


def normalize_profile_url(raw: str) -> str:
    value = (raw or "").strip()
    if PROFILE_PATH_MARKER in value:
        return strip_query(normalize_url(value))
    if "headless" in value:
        return HEADLESS_PROFILE_URL
    return ""


def normalize_degree(raw: str) -> str:
    return clean_text(raw).lstrip("•").strip()


# Interactive labels and presence badges that sit where a headline would.
_STATUS_PLACEHOLDERS = frozenset(
    {
        "Status is offline",
        "Status is online",
        "Status is reachable",
        "Connect",
        "Message",
        "Follow",
        "Pending",
    }
)

NAME_CHAIN = LocatorChain(
    field_name="name",
    strategies=(
        AttributeMatch('span.t-16 a span[aria-hidden="true"]'),
        AttributeMatch("span.t-16 a"),
        AttributeMatch('a[href*="/in/"] span[aria-hidden="true"]'),
        AttributeMatch(".entity-result__title-text a span"),
        AttributeMatch(".entity-result__title-text a"),
        AttributeMatch('span[class*="title"] a'),
        AttributeMatch(".app-aware-link span"),
        AttributeMatch(".app-aware-link"),
    ),
    placeholders=frozenset({ANONYMOUS_NAME}),
    normalize=normalize_name,
)

TITLE_CHAIN = LocatorChain(
    field_name="title",
    strategies=(
        AttributeMatch(".entity-result__primary-subtitle"),
        AttributeMatch('div[class*="primary-subtitle"]'),
        AttributeMatch("div.t-14.t-black.t-normal"),
        AttributeMatch('div[class*="subtitle"]:not([class*="secondary"])'),
        AttributeMatch(".search-result__subtitle"),
        StructuralPosition("div.t-14", 0),
    ),
    placeholders=_STATUS_PLACEHOLDERS | {NO_TITLE},
)

LOCATION_CHAIN = LocatorChain(
    field_name="location",
    strategies=(
        AttributeMatch(".entity-result__secondary-subtitle"),
        AttributeMatch('div[class*="secondary-subtitle"]'),
        AttributeMatch(".search-result__location"),
        StructuralPosition("div.t-14", 1),
    ),
    placeholders=_STATUS_PLACEHOLDERS | {NO_LOCATION},
)

URL_CHAIN = LocatorChain(
    field_name="url",
    strategies=(
        AttributeMatch('a[href*="/in/"]', attribute="href"),
        AttributeMatch("", attribute="data-chameleon-result-urn", contains="headless"),
        AttributeMatch("[data-chameleon-result-urn]", attribute="data-chameleon-result-urn", contains="headless"),
    ),
    normalize=normalize_profile_url,
)

DEGREE_CHAIN = LocatorChain(
    field_name="connection_degree",
    strategies=(
        TextPattern(r"(\d)(?:st|nd|rd|th)\+?\s+degree(?:\s+connection)?"),
        TextPattern(r"•\s*(\d(?:st|nd|rd|th)\+?)", group=1),
    ),
    normalize=normalize_degree,
)

IMAGE_CHAIN = LocatorChain(
    field_name="image",
    strategies=(
        AttributeMatch('img[class*="presence-entity__image"]', attribute="src"),
        AttributeMatch('img[class*="EntityPhoto-circle"]', attribute="src"),
        AttributeMatch('img[class*="profile"]', attribute="src"),
        AttributeMatch(".presence-entity img", attribute="src"),
        AttributeMatch(".ivm-image-view-model img", attribute="src"),
        AttributeMatch("img.avatar-image", attribute="src"),
    ),
    normalize=lambda raw: raw.strip() if raw.strip().startswith("http") else "",
)

FIELD_CHAINS: Dict[str, LocatorChain] = {
    "name": NAME_CHAIN,
    "title": TITLE_CHAIN,
    "location": LOCATION_CHAIN,
    "url": URL_CHAIN,
    "connection_degree": DEGREE_CHAIN,
    "image": IMAGE_CHAIN,
}

CONTAINER_CHAIN = ContainerChain(
    selectors=PEOPLE_SEARCH_SELECTORS.result_containers,
    results_ancestors=PEOPLE_SEARCH_SELECTORS.results_ancestors,
)

__all__ = [
    "CONTAINER_CHAIN",
    "FIELD_CHAINS",
    "HEADLESS_PROFILE_URL",
    "PEOPLE_SEARCH_SELECTORS",
    "PeopleSearchSelectors",
    "normalize_degree",
    "normalize_name",
    "normalize_profile_url",
]

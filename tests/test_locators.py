from __future__ import annotations

import pytest
from bs4 import BeautifulSoup

from peoplecrawl.crawler import locators
from peoplecrawl.crawler.locators import (
    AttributeMatch,
    ContainerChain,
    LocatorChain,
    StructuralPosition,
    TextPattern,
    largest_homogeneous_group,
)
from peoplecrawl.crawler.selectors_people_search import FIELD_CHAINS, HEADLESS_PROFILE_URL
from tests.fakes import person_html


def _container(html: str):
    return BeautifulSoup(html, "html5lib").select_one("li")


@pytest.fixture
def event_recorder(monkeypatch: pytest.MonkeyPatch) -> list[tuple[str, dict]]:
    events: list[tuple[str, dict]] = []

    def _record(label: str, **fields: object) -> None:
        events.append((label, fields))

    monkeypatch.setattr(locators, "_crawler_event", _record)
    return events


def test_first_non_placeholder_strategy_wins() -> None:
    container = _container(
        "<ul><li><div class='primary'>Status is offline</div>"
        "<div class='t-14'>Principal Engineer</div><div class='t-14'>Oslo</div></li></ul>"
    )
    chain = LocatorChain(
        field_name="title",
        strategies=(AttributeMatch(".primary"), StructuralPosition("div.t-14", 0)),
        placeholders=frozenset({"Status is offline"}),
    )

    value, strategy = chain.resolve_with_strategy(container)

    assert value == "Principal Engineer"
    assert isinstance(strategy, StructuralPosition)


def test_absent_when_every_strategy_misses() -> None:
    container = _container("<ul><li><span>nothing useful</span></li></ul>")
    chain = LocatorChain(field_name="location", strategies=(AttributeMatch(".loc"), StructuralPosition("div", 3)))

    assert chain.resolve(container) is None


def test_text_pattern_group() -> None:
    container = _container("<ul><li><span>Ada • 3rd+ degree connection</span></li></ul>")

    assert TextPattern(r"•\s*(\d(?:st|nd|rd|th)\+?)", group=1).resolve(container) == "3rd+"


def test_broken_strategy_is_logged_and_skipped(event_recorder: list[tuple[str, dict]]) -> None:
    class Exploding(AttributeMatch):
        def resolve(self, container):  # noqa: ANN001
            raise RuntimeError("boom")

    container = _container("<ul><li><div class='t-14'>Berlin</div></li></ul>")
    chain = LocatorChain(
        field_name="location",
        strategies=(Exploding(".x"), StructuralPosition("div.t-14", 0)),
    )

    assert chain.resolve(container) == "Berlin"
    assert event_recorder
    label, fields = event_recorder[0]
    assert label == "extract"
    assert fields["kind"] == "strategy_error"
    assert fields["field"] == "location"


def test_resolution_is_idempotent_on_static_container() -> None:
    container = _container(f"<ul>{person_html('Grace Hopper', 'grace-hopper')}</ul>")

    first = {name: chain.resolve(container) for name, chain in FIELD_CHAINS.items()}
    second = {name: chain.resolve(container) for name, chain in FIELD_CHAINS.items()}

    assert first == second
    assert first["name"] == "Grace Hopper"
    assert first["url"] == "https://www.linkedin.com/in/grace-hopper/"
    assert first["title"] == "Software Engineer at Acme"
    assert first["location"] == "Berlin, Germany"
    assert first["connection_degree"] == "2nd degree connection"


def test_anonymous_entry_resolves_headless_url_and_no_name() -> None:
    container = _container(f"<ul>{person_html(None, None)}</ul>")

    assert FIELD_CHAINS["name"].resolve(container) is None
    assert FIELD_CHAINS["url"].resolve(container) == HEADLESS_PROFILE_URL


def test_name_strips_view_profile_and_degree_suffix() -> None:
    container = _container(
        "<ul><li><span class='t-16'><a href='/in/x/'>"
        "<span aria-hidden='true'>Linus T. • 1st</span></a></span></li></ul>"
    )

    assert FIELD_CHAINS["name"].resolve(container) == "Linus T."


def test_homogeneous_group_fallback() -> None:
    soup = BeautifulSoup(
        "<main><div class='srp-list'>"
        "<div class='card x'>a</div><div class='card x'>b</div><div class='card x'>c</div>"
        "<aside>ad</aside></div></main>",
        "html5lib",
    )

    chain = ContainerChain(selectors=("li.result",), results_ancestors=("div[class*='srp']",))
    found, strategy = chain.resolve(soup)

    assert [node.get_text() for node in found] == ["a", "b", "c"]
    assert strategy == "homogeneous_list:div[class*='srp']"
    assert largest_homogeneous_group(soup.select_one("aside")) == []


def test_container_chain_ignores_navigation_chrome() -> None:
    soup = BeautifulSoup(
        "<header><ul role='list'><li>Home</li><li>Jobs</li></ul></header>"
        "<main><ul role='list'><li>Ada</li></ul></main>",
        "html5lib",
    )

    found, strategy = ContainerChain(selectors=("ul[role='list'] > li",)).resolve(soup)

    assert [node.get_text() for node in found] == ["Ada"]
    assert strategy == "selector:ul[role='list'] > li"

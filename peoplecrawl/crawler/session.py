"""Credential installation and authenticated-session verification."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from . import config
from .browser import BrowsingContext
from .credentials import CredentialSet
from .errors import AuthError, BrowserTimeout
from .logging_utils import _crawler_event
from .markup import Markup, has_any_selector, page_text, parse_document
from .selectors_people_search import PEOPLE_SEARCH_SELECTORS, PeopleSearchSelectors
from .utils import clean_text, log_line, normalize_url, strip_query

_NAME_MIN_LENGTH = 4
_BRAND = "LinkedIn"


@dataclass(frozen=True)
class IdentitySnapshot:
    display_name: str
    profile_url: str

    def to_dict(self) -> dict:
        return {"displayName": self.display_name, "profileUrl": self.profile_url}


@dataclass
class Session:
    context: BrowsingContext
    credentials: CredentialSet
    logged_in: bool = False
    identity: Optional[IdentitySnapshot] = None


def is_login_url(url: str, selectors: PeopleSearchSelectors = PEOPLE_SEARCH_SELECTORS) -> bool:
    lowered = (url or "").lower()
    return any(marker in lowered for marker in selectors.login_url_markers)


def detect_logged_in(html: Markup, selectors: PeopleSearchSelectors = PEOPLE_SEARCH_SELECTORS) -> bool:
    """Session-only page signals present and login-form markers absent."""

    soup = parse_document(html)
    if has_any_selector(soup, selectors.login_form_selectors):
        return False
    text = page_text(soup)
    if "Join now" in text and "Sign in" in text and "Feed" not in text:
        return False
    return has_any_selector(soup, selectors.session_signal_selectors)


def resolve_identity(html: Markup) -> Optional[IdentitySnapshot]:
    """Best-effort display name and profile URL of the logged-in member."""

    soup = parse_document(html)

    profile_url = ""
    for link in soup.select('a[href*="/in/"]'):
        href = link.get("href") or ""
        if "/company/" in href or "/post/" in href:
            continue
        profile_url = strip_query(normalize_url(href))
        break

    display_name = ""
    for img in soup.select('img[class*="profile"], img.global-nav__me-photo'):
        alt = clean_text(img.get("alt"))
        if len(alt) >= _NAME_MIN_LENGTH and _BRAND not in alt:
            display_name = alt
            break
    if not display_name:
        for link in soup.select('a[href*="/in/"]'):
            text = clean_text(link.get_text(" "))
            if len(text) >= _NAME_MIN_LENGTH and _BRAND not in text:
                display_name = text
                break

    if not display_name and not profile_url:
        return None
    return IdentitySnapshot(display_name=display_name or "LinkedIn User", profile_url=profile_url)


class SessionGate:
    def __init__(
        self,
        context: BrowsingContext,
        *,
        selectors: PeopleSearchSelectors = PEOPLE_SEARCH_SELECTORS,
        check_url: Optional[str] = None,
    ) -> None:
        self.context = context
        self.selectors = selectors
        self.check_url = check_url or config.SESSION_CHECK_URL

    async def establish(self, credentials: Union[str, CredentialSet, None]) -> Session:
        """Install ``credentials`` and confirm the context is logged in.

        Raises ``AuthError`` (missing_token) before touching the context when
        the credential string lacks the authentication cookie, and
        ``AuthError`` (not_authenticated) when the site does not accept it.
        """

        creds = credentials if isinstance(credentials, CredentialSet) else CredentialSet.parse(credentials)

        await self.context.clear_cookies()
        await self.context.install_cookies(creds.as_cookies())
        _crawler_event("session", step="cookies_installed", cookie_names=list(creds))

        try:
            await self.context.navigate(self.check_url, config.NAV_TIMEOUT_SECONDS)
        except BrowserTimeout as exc:
            # The feed often keeps loading; judge by what did render.
            log_line(f"[SESSION] Session check navigation timed out; inspecting page anyway: {exc}")

        current_url = await self.context.current_url()
        if is_login_url(current_url, self.selectors):
            _crawler_event("session", step="redirected_to_login", url=current_url)
            raise AuthError.not_authenticated("redirected to login")

        await self.context.wait_for_selector("nav, header", config.SESSION_NAV_SELECTOR_TIMEOUT_SECONDS)
        html = await self.context.content()
        if not detect_logged_in(html, self.selectors):
            _crawler_event("session", step="login_signals_absent", url=current_url)
            raise AuthError.not_authenticated()

        session = Session(context=self.context, credentials=creds, logged_in=True)
        try:
            session.identity = resolve_identity(html)
        except Exception as exc:  # noqa: BLE001
            log_line(f"[SESSION] Identity resolution failed; continuing: {exc}")
        _crawler_event(
            "session",
            step="validated",
            identity=session.identity.to_dict() if session.identity else None,
        )
        return session


__all__ = [
    "IdentitySnapshot",
    "Session",
    "SessionGate",
    "detect_logged_in",
    "is_login_url",
    "resolve_identity",
]

"""Parsing of raw ``Cookie`` header strings into an installable credential set."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from . import config
from .errors import AuthError


@dataclass(frozen=True)
class CredentialSet(Mapping[str, str]):
    """Immutable cookie name -> value mapping that always holds the auth token."""

    pairs: Tuple[Tuple[str, str], ...]
    token_name: str = field(default_factory=lambda: config.AUTH_COOKIE_NAME)

    def __post_init__(self) -> None:
        if not any(name == self.token_name for name, _ in self.pairs):
            raise AuthError.missing_token(self.token_name)

    @classmethod
    def parse(cls, raw: Optional[str], *, token_name: Optional[str] = None) -> "CredentialSet":
        """Parse ``"name=value; other=value"``; values may themselves contain ``=``."""

        token = token_name or config.AUTH_COOKIE_NAME
        seen: Dict[str, str] = {}
        for part in (raw or "").split(";"):
            part = part.strip()
            if not part or "=" not in part:
                continue
            name, value = part.split("=", 1)
            name = name.strip()
            value = value.strip()
            if name and value:
                seen[name] = value
        return cls(pairs=tuple(seen.items()), token_name=token)

    def __getitem__(self, key: str) -> str:
        for name, value in self.pairs:
            if name == key:
                return value
        raise KeyError(key)

    def __iter__(self) -> Iterator[str]:
        return (name for name, _ in self.pairs)

    def __len__(self) -> int:
        return len(self.pairs)

    @property
    def token(self) -> str:
        return self[self.token_name]

    def as_cookies(self, domain: Optional[str] = None) -> List[Dict[str, Any]]:
        """Render browser cookies scoped to the target domain."""

        cookie_domain = domain or config.COOKIE_DOMAIN
        return [
            {
                "name": name,
                "value": value,
                "domain": cookie_domain,
                "path": "/",
                "httpOnly": False,
                "secure": True,
            }
            for name, value in self.pairs
        ]

    def __repr__(self) -> str:
        # Cookie values are secrets; never let them reach a log line.
        return f"CredentialSet(names={list(self)!r})"


__all__ = ["CredentialSet"]

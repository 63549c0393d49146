"""Per-call archive configuration.

:class:`ArchiveOptions` is the explicit transport configuration handed to the
fetcher; nothing is read from process-wide state once it has been built.
Unset fields fall back to :data:`~web_archive.config.settings`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import timedelta
from typing import Any, Mapping
from urllib.parse import quote, unquote, urlsplit

from web_archive.config import settings
from web_archive.errors import UnsupportedOption

# Accepted proxy schemes mapped to the scheme httpx expects.
_PROXY_SCHEMES = {
    "http": "http",
    "https": "https",
    "socks": "socks5",
    "socks5": "socks5",
    "socks5h": "socks5h",
}


@dataclass(frozen=True)
class ProxyConfig:
    """A proxy endpoint: ``scheme://[user:password@]host:port``."""

    scheme: str
    host: str
    port: int
    credentials: tuple[str, str] | None = None

    def __post_init__(self) -> None:
        scheme = self.scheme.lower()
        if scheme not in _PROXY_SCHEMES:
            raise UnsupportedOption(
                f"unsupported proxy scheme {self.scheme!r}; "
                f"expected one of {', '.join(sorted(_PROXY_SCHEMES))}"
            )
        object.__setattr__(self, "scheme", scheme)
        if not self.host:
            raise UnsupportedOption("proxy host must not be empty")
        try:
            port = int(self.port)
        except (TypeError, ValueError) as exc:
            raise UnsupportedOption(f"invalid proxy port {self.port!r}") from exc
        if not 0 < port < 65536:
            raise UnsupportedOption(f"invalid proxy port {self.port!r}")
        object.__setattr__(self, "port", port)
        if self.credentials is not None:
            object.__setattr__(self, "credentials", tuple(self.credentials))

    @property
    def url(self) -> str:
        """The proxy as a URL string, in the form httpx accepts."""
        auth = ""
        if self.credentials:
            username, password = self.credentials
            auth = f"{quote(username, safe='')}:{quote(password, safe='')}@"
        return f"{_PROXY_SCHEMES[self.scheme]}://{auth}{self.host}:{self.port}"

    @classmethod
    def from_url(cls, url: str) -> ProxyConfig:
        """Parse ``scheme://[user:password@]host:port``."""
        try:
            parts = urlsplit(url)
            port = parts.port
        except ValueError as exc:
            raise UnsupportedOption(f"invalid proxy URL {url!r}: {exc}") from exc
        if not parts.scheme or not parts.hostname:
            raise UnsupportedOption(f"invalid proxy URL {url!r}")
        if port is None:
            port = 1080 if parts.scheme.lower().startswith("socks") else 8080
        credentials = None
        if parts.username is not None:
            credentials = (unquote(parts.username), unquote(parts.password or ""))
        return cls(
            scheme=parts.scheme,
            host=parts.hostname,
            port=port,
            credentials=credentials,
        )

    @classmethod
    def coerce(cls, value: ProxyConfig | str | Mapping[str, Any] | None) -> ProxyConfig | None:
        if value is None or isinstance(value, ProxyConfig):
            return value
        if isinstance(value, str):
            return cls.from_url(value)
        if isinstance(value, Mapping):
            unknown = set(value) - {f.name for f in fields(cls)}
            if unknown:
                raise UnsupportedOption(
                    f"unknown proxy option(s): {', '.join(sorted(unknown))}"
                )
            try:
                return cls(**value)
            except TypeError as exc:
                raise UnsupportedOption(f"incomplete proxy configuration: {exc}") from exc
        raise UnsupportedOption(f"unsupported proxy value {value!r}")


def _default_proxy() -> ProxyConfig | None:
    return ProxyConfig.from_url(settings.proxy_url) if settings.proxy_url else None


@dataclass(frozen=True)
class ArchiveOptions:
    """Options recognised by :func:`~web_archive.archive` and friends.

    Attributes:
        verify_tls: Verify server certificates and hostnames.  Turning this off
            is dangerous but sometimes needed for IP-addressed hosts.
        proxy: Route every request through this proxy.
        timeout: Timeout in seconds (a ``timedelta`` is accepted and
            converted), applied by httpx to each connect, read and write
            separately rather than to a whole request, so a server that keeps
            trickling bytes is not cut off.  Waiting for a free pooled
            connection is not limited.  A slow resource fails on its own; a
            slow root document fails the whole run.
        placeholder: Replacement value for references whose resource could
            not be fetched.  ``None`` leaves them untouched.
        user_agent: ``User-Agent`` header sent with every request.
    """

    verify_tls: bool = field(default_factory=lambda: settings.verify_tls)
    proxy: ProxyConfig | None = field(default_factory=_default_proxy)
    timeout: float = field(default_factory=lambda: settings.request_timeout)
    placeholder: str | None = None
    user_agent: str = field(default_factory=lambda: settings.user_agent)

    def __post_init__(self) -> None:
        if not isinstance(self.verify_tls, bool):
            raise UnsupportedOption(f"verify_tls must be a bool, got {self.verify_tls!r}")
        if self.placeholder is not None and not isinstance(self.placeholder, str):
            raise UnsupportedOption(f"placeholder must be a string, got {self.placeholder!r}")
        if not isinstance(self.user_agent, str):
            raise UnsupportedOption(f"user_agent must be a string, got {self.user_agent!r}")
        object.__setattr__(self, "proxy", ProxyConfig.coerce(self.proxy))
        timeout = self.timeout
        if isinstance(timeout, timedelta):
            timeout = timeout.total_seconds()
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
            raise UnsupportedOption(f"invalid timeout {self.timeout!r}")
        if timeout <= 0:
            raise UnsupportedOption(f"timeout must be positive, got {timeout!r}")
        object.__setattr__(self, "timeout", float(timeout))

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> ArchiveOptions:
        """Build options from a plain mapping, rejecting unknown keys."""
        unknown = set(values) - {f.name for f in fields(cls)}
        if unknown:
            raise UnsupportedOption(f"unknown option(s): {', '.join(sorted(unknown))}")
        return cls(**values)

    @classmethod
    def coerce(cls, value: ArchiveOptions | Mapping[str, Any] | None) -> ArchiveOptions:
        if value is None:
            return cls()
        if isinstance(value, ArchiveOptions):
            return value
        if isinstance(value, Mapping):
            return cls.from_mapping(value)
        raise UnsupportedOption(f"unsupported options value {value!r}")

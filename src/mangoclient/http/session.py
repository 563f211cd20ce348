"""Session state shared by every request of one client.

A Session owns the cookie jar and the default headers. The jar is seeded
with a random XSRF token; the server checks that the X-XSRF-TOKEN header
matches the XSRF-TOKEN cookie (double-submit protection), so the token is
sent both ways on every request.

Concurrent requests update the jar when their responses complete, so for a
cookie touched by several in-flight responses the last one to complete wins.
"""

import base64
import logging
import re
import uuid
from dataclasses import dataclass, field
from typing import Iterable
from urllib.parse import quote, unquote

logger = logging.getLogger(__name__)

XSRF_COOKIE = "XSRF-TOKEN"
XSRF_HEADER = "X-XSRF-TOKEN"

_COOKIE_SPLIT = re.compile(r"\s*;\s*")
_QUOTED = re.compile(r'^"(.*)"$')
# Characters left unescaped in cookie values
_COOKIE_SAFE = "!'()*~-_."


@dataclass
class Cookie:
    """A parsed Set-Cookie header."""

    name: str
    value: str
    attributes: dict[str, str] = field(default_factory=dict)

    @property
    def expired(self) -> bool:
        """True when the server asked for the cookie to be removed."""
        for key, value in self.attributes.items():
            if key.lower() == "max-age":
                return value == "0"
        return False


def parse_set_cookie(header: str) -> Cookie:
    """Parse one Set-Cookie header value.

    The first segment is ``name=value`` (quotes stripped, percent-decoded);
    the remaining segments are attributes such as ``Path`` or ``Max-Age``.
    """
    parts = _COOKIE_SPLIT.split(header.strip())
    name, _, raw_value = parts[0].partition("=")
    match = _QUOTED.match(raw_value)
    value = unquote(match.group(1) if match else raw_value)

    attributes: dict[str, str] = {}
    for part in parts[1:]:
        if not part:
            continue
        key, _, attr_value = part.partition("=")
        attributes[key] = attr_value

    return Cookie(name=name, value=value, attributes=attributes)


class Session:
    """Cookie jar plus default headers for one client instance.

    Args:
        enable_cookies: Keep a cookie jar and send XSRF/Cookie headers
        default_headers: Headers merged onto every request
    """

    def __init__(
        self,
        enable_cookies: bool = True,
        default_headers: dict[str, str] | None = None,
    ) -> None:
        self.cookies: dict[str, str] | None = (
            {XSRF_COOKIE: str(uuid.uuid4())} if enable_cookies else None
        )
        self.default_headers: dict[str, str] = dict(default_headers or {})

    @property
    def cookies_enabled(self) -> bool:
        return self.cookies is not None

    @property
    def xsrf_token(self) -> str | None:
        if self.cookies is None:
            return None
        return self.cookies.get(XSRF_COOKIE)

    def set_bearer_authentication(self, token: str) -> None:
        self.default_headers["Authorization"] = f"Bearer {token}"

    def set_basic_authentication(self, username: str, password: str) -> None:
        encoded = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
        self.default_headers["Authorization"] = f"Basic {encoded}"

    def clear_authentication(self) -> None:
        self.default_headers.pop("Authorization", None)

    def request_headers(self) -> dict[str, str]:
        """Headers carrying the session cookies for the next request."""
        if self.cookies is None:
            return {}

        headers: dict[str, str] = {}
        token = self.cookies.get(XSRF_COOKIE)
        if token:
            headers[XSRF_HEADER] = token

        if self.cookies:
            headers["Cookie"] = "; ".join(
                f"{name}={quote(value, safe=_COOKIE_SAFE)}"
                for name, value in self.cookies.items()
            )
        return headers

    def apply_set_cookie(self, headers: Iterable[str]) -> None:
        """Apply Set-Cookie header values to the jar."""
        if self.cookies is None:
            return

        for header in headers:
            cookie = parse_set_cookie(header)
            if cookie.expired:
                self.cookies.pop(cookie.name, None)
                logger.debug("Cookie %s removed", cookie.name)
            else:
                self.cookies[cookie.name] = cookie.value
                logger.debug("Cookie %s updated", cookie.name)

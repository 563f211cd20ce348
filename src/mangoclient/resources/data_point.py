"""Data points and their tags.

Tags are free-form ``key: value`` strings attached to a point. The server
manages the ``name`` and ``device`` tags itself and ignores them on writes.
"""

from typing import Any
from urllib.parse import quote

from mangoclient.resources.base import MangoObject

TAGS_URL = "/rest/v2/data-point-tags"


class DataPoint(MangoObject):
    """Data point stored at /rest/v2/data-points."""

    base_url = "/rest/v2/data-points"

    @classmethod
    def _tags_url(cls, xid: str) -> str:
        return f"{TAGS_URL}/point/{quote(xid, safe='')}"

    @classmethod
    async def get_tags(cls, xid: str) -> dict[str, str]:
        """Tags of the point with the given xid."""
        response = await cls._request(cls._tags_url(xid))
        return response.data or {}

    @classmethod
    async def set_tags(cls, xid: str, tags: dict[str, str]) -> dict[str, str]:
        """Replace all tags of a point, returning the resulting tags."""
        response = await cls._request(cls._tags_url(xid), method="POST", data=tags)
        return response.data or {}

    @classmethod
    async def add_tags(cls, xid: str, tags: dict[str, str]) -> dict[str, str]:
        """Merge tags into a point's existing tags, returning the resulting tags."""
        response = await cls._request(cls._tags_url(xid), method="PUT", data=tags)
        return response.data or {}

    @classmethod
    async def tag_keys(cls) -> list[str]:
        """All tag keys in use."""
        response = await cls._request(f"{TAGS_URL}/keys")
        return response.data or []

    @classmethod
    async def tag_values(cls, key: str, rql: str | None = None) -> list[Any]:
        """Values in use for a tag key, optionally restricted by an RQL query."""
        path = f"{TAGS_URL}/values/{quote(key, safe='')}"
        if rql:
            path = f"{path}?{rql}"
        response = await cls._request(path)
        return response.data or []

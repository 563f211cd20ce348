"""Base class for REST-backed Mango objects.

A MangoObject is a JSON record living on the server at ``base_url``. Its
properties are readable and writable as attributes or items; CRUD methods
send them through the owning client's request pipeline.

Resource classes are bound to a client before use; each MangoClient exposes
its own bound copies (``client.DataSource``, ``client.User``, ...), so several
clients can coexist without sharing state.

Usage:
    async with MangoClient(host="mango.local") as client:
        ds = client.DataSource({"name": "Boiler room", "modelType": "VIRTUAL"})
        await ds.save()
        ds.enabled = True
        await ds.save()
        await ds.delete()
"""

from typing import TYPE_CHECKING, Any, ClassVar, TypeVar
from urllib.parse import quote

from mangoclient.http.errors import MangoDecodeError

if TYPE_CHECKING:
    from mangoclient.client import MangoClient
    from mangoclient.http.request import Response

T = TypeVar("T", bound="MangoObject")


def bind(cls: type[T], client: "MangoClient") -> type[T]:
    """Create a subclass of ``cls`` whose requests go through ``client``."""
    return type(cls.__name__, (cls,), {"client": client, "__module__": cls.__module__})


def extract_items(data: Any) -> list[dict[str, Any]]:
    """Return the records of a list response (bare array or ``{"items": [...]}``)."""
    if data is None:
        return []
    if isinstance(data, dict):
        if "items" not in data:
            raise MangoDecodeError(
                f"Expected a list response, got an object with keys {sorted(data)}",
                data=data,
            )
        return data["items"]
    if not isinstance(data, list):
        raise MangoDecodeError(f"Expected a list response, got {type(data).__name__}", data=data)
    return data


class MangoObject:
    """JSON record stored on the server.

    Args:
        properties: Initial properties, merged over default_properties()
        **kwargs: Extra properties
    """

    base_url: ClassVar[str] = ""
    id_property: ClassVar[str] = "xid"
    client: ClassVar["MangoClient | None"] = None

    def __init__(self, properties: dict[str, Any] | None = None, **kwargs: Any) -> None:
        object.__setattr__(
            self,
            "_properties",
            {**self.default_properties(), **(properties or {}), **kwargs},
        )
        object.__setattr__(self, "_original_id", None)

    @classmethod
    def default_properties(cls) -> dict[str, Any]:
        """Properties a new, unsaved object starts with."""
        return {}

    @classmethod
    def from_data(cls: type[T], data: dict[str, Any]) -> T:
        """Build an object from a server response, skipping default properties."""
        obj = cls.__new__(cls)
        object.__setattr__(obj, "_properties", {})
        object.__setattr__(obj, "_original_id", None)
        return obj.update_self(data)

    # Property access

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._properties[name]
        except KeyError:
            raise AttributeError(
                f"{type(self).__name__!r} object has no property {name!r}"
            ) from None

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_"):
            object.__setattr__(self, name, value)
        else:
            self._properties[name] = value

    def __delattr__(self, name: str) -> None:
        try:
            del self._properties[name]
        except KeyError:
            raise AttributeError(name) from None

    def __getitem__(self, key: str) -> Any:
        return self._properties[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._properties[key] = value

    def __contains__(self, key: object) -> bool:
        return key in self._properties

    def __repr__(self) -> str:
        identifier = self._properties.get(self.id_property)
        return f"{type(self).__name__}({self.id_property}={identifier!r})"

    def to_dict(self) -> dict[str, Any]:
        """JSON properties of this object."""
        return dict(self._properties)

    @property
    def identifier(self) -> Any:
        """Identifier the object is stored under on the server."""
        if self._original_id is not None:
            return self._original_id
        return self._properties.get(self.id_property)

    @property
    def is_saved(self) -> bool:
        return self._original_id is not None

    def update_self(self: T, data: Any) -> T:
        """Merge a response body into this object and remember its identifier."""
        if isinstance(data, dict):
            self._properties.update(data)
        self._original_id = self._properties.get(self.id_property)
        return self

    # Requests

    @classmethod
    def _require_client(cls) -> "MangoClient":
        if cls.client is None:
            raise RuntimeError(
                f"{cls.__name__} is not bound to a client. Use client.{cls.__name__}."
            )
        return cls.client

    @classmethod
    async def _request(cls, path: str, **options: Any) -> "Response":
        return await cls._require_client().rest_request(path, **options)

    @classmethod
    def item_url(cls, identifier: Any) -> str:
        return f"{cls.base_url}/{quote(str(identifier), safe='')}"

    @classmethod
    async def list_all(cls: type[T]) -> list[T]:
        """Fetch every object at ``base_url``."""
        response = await cls._request(cls.base_url)
        return [cls.from_data(item) for item in extract_items(response.data)]

    @classmethod
    async def query(cls: type[T], rql: str) -> list[T]:
        """Fetch the objects matching an RQL query string."""
        separator = "&" if "?" in cls.base_url else "?"
        response = await cls._request(f"{cls.base_url}{separator}{rql}")
        return [cls.from_data(item) for item in extract_items(response.data)]

    @classmethod
    async def fetch(cls: type[T], identifier: Any) -> T:
        """Fetch one object by identifier."""
        response = await cls._request(cls.item_url(identifier))
        return cls.from_data(response.data)

    @classmethod
    async def delete_by_id(cls: type[T], identifier: Any) -> T:
        """Delete one object by identifier, returning the deleted object."""
        response = await cls._request(cls.item_url(identifier), method="DELETE")
        return cls.from_data(response.data)

    async def refresh(self: T) -> T:
        """Reload this object from the server."""
        response = await self._request(self.item_url(self.identifier))
        return self.update_self(response.data)

    async def save(self: T) -> T:
        """Create the object, or update it under its original identifier.

        Updating through the original identifier lets the xid itself change.
        """
        if self.is_saved:
            response = await self._request(
                self.item_url(self._original_id), method="PUT", data=self.to_dict()
            )
        else:
            response = await self._request(self.base_url, method="POST", data=self.to_dict())
        return self.update_self(response.data)

    async def patch(self: T, values: dict[str, Any]) -> T:
        """Update only the given properties on the server."""
        response = await self._request(self.item_url(self.identifier), method="PATCH", data=values)
        return self.update_self(response.data)

    async def delete(self: T) -> T:
        """Delete the object; it can be saved again afterwards to re-create it."""
        response = await self._request(self.item_url(self.identifier), method="DELETE")
        self.update_self(response.data)
        self._original_id = None
        return self

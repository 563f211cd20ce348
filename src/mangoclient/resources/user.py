"""Users and the login session.

Logging in sets the server's session cookie, which the client's cookie jar
then sends on every following request.
"""

from mangoclient.resources.base import MangoObject


class User(MangoObject):
    """User stored at /rest/v1/users, identified by username."""

    base_url = "/rest/v1/users"
    id_property = "username"

    @classmethod
    async def login(
        cls,
        username: str,
        password: str,
        retries: int = 0,
        retry_delay: float = 5.0,
    ) -> "User":
        """Log in and return the logged-in user.

        ``retries`` is useful right after server start, while the REST API
        is not yet accepting requests.
        """
        response = await cls._request(
            "/rest/v2/login",
            method="POST",
            data={"username": username, "password": password},
            retries=retries,
            retry_delay=retry_delay,
        )
        return cls.from_data(response.data)

    @classmethod
    async def logout(cls) -> None:
        await cls._request("/rest/v2/logout", method="POST")

    @classmethod
    async def current(cls) -> "User":
        """The user the session is authenticated as."""
        response = await cls._request(f"{cls.base_url}/current")
        return cls.from_data(response.data)

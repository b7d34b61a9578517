"""
Authentication provider abstractions.

An 'AuthProvider' integrates with a FastAPI application to identify the current
user on every request. Authentication itself happens upstream; the pipeline only
ever sees the resulting opaque user id. The toolkit ships one implementation:

'HeaderAuthProvider' trusts a user-id header set by an authenticating gateway.
"""

from abc import ABC, abstractmethod

from fastapi import FastAPI, HTTPException, Request, status


class AuthProvider(ABC):
    """
    Abstract base class for authentication backends.

    Implementors must supply a FastAPI dependency that resolves to the current
    user ID ('get_current_user_id') and a setup hook that registers any routes
    and middleware the provider needs ('bind_to_app').
    """

    @abstractmethod
    def get_current_user_id(self, request: Request) -> str:
        """FastAPI dependency that returns the authenticated user's ID.

        Raise 'HTTPException' with status 401 if the request is not authenticated.
        """
        pass

    @abstractmethod
    def bind_to_app(self, app: FastAPI) -> None:
        """Register routes and middleware required by this provider."""
        pass


class HeaderAuthProvider(AuthProvider):
    def __init__(self, header_name: str = "X-User-Id") -> None:
        self.header_name = header_name

    def get_current_user_id(self, request: Request) -> str:
        user_id = request.headers.get(self.header_name, "").strip()
        if not user_id:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
        return user_id

    def bind_to_app(self, app: FastAPI) -> None:
        pass

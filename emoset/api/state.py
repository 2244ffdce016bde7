"""Type-safe application state for Litestar."""

from __future__ import annotations

from litestar.datastructures import State

from ..config import Config
from ..storage import StorageBackend


class AppState(State):
    """Type-safe application state.

    Note: Attributes are set directly on the State dict, not as class attributes.
    This avoids deserialization issues with Litestar's signature model.
    """

    config: Config
    storage: StorageBackend
    frontend_url: str

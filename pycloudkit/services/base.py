from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - import for type checking only
    from pycloudkit.client import CloudKitClient


class BaseService:
    """
    Base for the API services. Holds a non-owning reference to the client
    whose engine performs the requests.
    """

    def __init__(self, client: "CloudKitClient", base_path: str):
        self._client = client
        self._base_path = base_path

    @property
    def client(self) -> "CloudKitClient":
        return self._client

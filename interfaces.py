"""
Collaborator interfaces for the Muse generation layer.

These are implemented outside this package (editor buffer, persistence,
notification UI, HTTP transport); only their shapes are defined here.
"""

from typing import Any, Dict, List, Protocol, Union

from models import Capability, Feature, GateReason


class DocumentBuffer(Protocol):
    """Editor text buffer mutated by document tool invocations."""

    @property
    def text(self) -> str:
        ...

    def replace(self, text: str) -> None:
        ...

    def append(self, text: str) -> None:
        ...


class PersistenceStore(Protocol):
    """Durable storage keyed by entity kind (project, asset, bible, version, usage)."""

    async def save(self, kind: str, entity: Dict[str, Any]) -> None:
        ...

    async def load(self, kind: str) -> List[Dict[str, Any]]:
        ...

    async def delete(self, kind: str, entity_id: str) -> None:
        ...


class ProviderTransport(Protocol):
    """Single raw call against the model provider.

    Implementations raise completion_gateway.ProviderError (or any exception
    whose string carries status codes / markers) on failure.
    """

    async def call(self, model_id: str, contents: List[Dict[str, Any]], config: Dict[str, Any]) -> Dict[str, Any]:
        ...


class NotificationSink(Protocol):
    """Receives upgrade prompts when an entitlement gate blocks an action."""

    def upgrade_required(self, subject: Union[Capability, Feature], reason: GateReason, message: str) -> None:
        ...

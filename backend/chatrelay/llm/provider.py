"""
Agent protocol definitions.

WHAT: Capability contract every backend adapter implements
WHY: Decouple calling code from specific provider implementations
HOW: Use Protocol to define the descriptor accessors and async request methods
"""

from typing import Protocol, runtime_checkable

from ..core.config import Settings
from .types import ChatRequest, ChatResponse


@runtime_checkable
class DeltaSink(Protocol):
    """Consumer of incremental assistant text during streaming."""

    async def on_delta(self, text: str) -> None:
        """Receive the next text fragment, in order."""
        ...


class ChatAgent(Protocol):
    """Protocol defining the interface all chat backends must implement."""

    name: str
    model_key: str

    def enabled(self, config: Settings) -> bool:
        """Whether credentials for this backend are present."""
        ...

    def model(self, config: Settings) -> str:
        """Currently configured model."""
        ...

    def model_list(self, config: Settings) -> list[str]:
        """Selectable models (raises ModelListParseError on bad config)."""
        ...

    async def request(
        self,
        request: ChatRequest,
        config: Settings,
        sink: DeltaSink | None = None
    ) -> ChatResponse:
        """Run a chat completion, streaming deltas into sink when given."""
        ...


class ImageAgent(Protocol):
    """Protocol defining the interface all image backends must implement."""

    name: str
    model_key: str

    def enabled(self, config: Settings) -> bool:
        ...

    def model(self, config: Settings) -> str:
        ...

    def model_list(self, config: Settings) -> list[str]:
        ...

    async def request(self, prompt: str, config: Settings) -> str:
        """Generate an image, returning a URL or base64 data."""
        ...

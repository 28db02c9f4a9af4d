"""
Agent registry.

WHAT: Ordered catalogue of every chat and image agent the process knows
WHY: Selection in auto mode depends on registration order, and lookups by
     name must be deterministic
HOW: Explicit object with append-only lists, built once at startup
"""

from collections import Counter

from ..utils.logger import get_logger
from .provider import ChatAgent, ImageAgent

logger = get_logger(__name__)


class AgentRegistry:
    """Append-only chat and image agent lists."""

    def __init__(self):
        self._chat: list[ChatAgent] = []
        self._image: list[ImageAgent] = []

    def register_chat(self, agent: ChatAgent) -> None:
        self._chat.append(agent)
        logger.debug(f"Registered chat agent: {agent.name}")

    def register_image(self, agent: ImageAgent) -> None:
        self._image.append(agent)
        logger.debug(f"Registered image agent: {agent.name}")

    def chat_agents(self) -> list[ChatAgent]:
        """Chat agents in registration order (a copy)."""
        return list(self._chat)

    def image_agents(self) -> list[ImageAgent]:
        """Image agents in registration order (a copy)."""
        return list(self._image)

    def find_chat(self, name: str) -> ChatAgent | None:
        return next((agent for agent in self._chat if agent.name == name), None)

    def find_image(self, name: str) -> ImageAgent | None:
        return next((agent for agent in self._image if agent.name == name), None)

    def duplicate_names(self) -> list[str]:
        """Names registered more than once within the chat or image list."""
        duplicates = []
        for agents in (self._chat, self._image):
            counts = Counter(agent.name for agent in agents)
            duplicates.extend(name for name, count in counts.items() if count > 1)
        return duplicates


def build_default_registry() -> AgentRegistry:
    """
    Register every built-in agent.

    Raises:
        ValueError: Two agents of the same kind share a name
    """
    from .anthropic import AnthropicChatAgent
    from .azure import AzureChatAgent, AzureImageAgent
    from .gemini import GeminiChatAgent
    from .openai import DallEImageAgent, OpenAIChatAgent
    from .openai_compatible import cohere_agent, deepseek_agent, groq_agent, mistral_agent, xai_agent
    from .workers_ai import WorkersChatAgent, WorkersImageAgent

    registry = AgentRegistry()
    for agent in (
        AnthropicChatAgent(),
        AzureChatAgent(),
        GeminiChatAgent(),
        OpenAIChatAgent(),
        mistral_agent(),
        cohere_agent(),
        deepseek_agent(),
        groq_agent(),
        xai_agent(),
        WorkersChatAgent(),
    ):
        registry.register_chat(agent)

    for agent in (DallEImageAgent(), AzureImageAgent(), WorkersImageAgent()):
        registry.register_image(agent)

    duplicates = registry.duplicate_names()
    if duplicates:
        raise ValueError(f"Duplicate agent names: {duplicates}")

    logger.info(
        f"Agent registry ready: {len(registry.chat_agents())} chat, "
        f"{len(registry.image_agents())} image"
    )
    return registry

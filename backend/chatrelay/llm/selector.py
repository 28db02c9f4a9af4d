"""
Agent selection.

WHAT: Pick the agent that serves a turn
WHY: Users may pin a provider, operators may pin one globally, otherwise the
     first backend with credentials wins
HOW: Strict precedence; a named provider either matches or fails, never falls through
"""

from typing import Any, Iterable, TypeVar

from ..core.config import Settings
from ..utils.logger import get_logger
from .registry import AgentRegistry
from .types import NoProviderAvailableError, ProviderNotAvailableError

logger = get_logger(__name__)

AgentT = TypeVar("AgentT")

AUTO = "auto"


def _match(agents: Iterable[AgentT], name: str, config: Settings, source: str) -> AgentT:
    for agent in agents:
        if agent.name == name and agent.enabled(config):
            return agent
    logger.warning(f"{source} AI provider {name} is not available")
    raise ProviderNotAvailableError(name, source)


def _select(
    agents: list[AgentT],
    config: Settings,
    user_config: dict[str, Any] | None,
    key: str,
    kind: str,
) -> AgentT:
    user_choice = (user_config or {}).get(key)
    if isinstance(user_choice, str) and user_choice:
        agent = _match(agents, user_choice, config, "user")
        logger.debug(f"Selected {kind} agent {agent.name} (user override)")
        return agent

    global_choice = getattr(config, key)
    if global_choice and global_choice != AUTO:
        agent = _match(agents, global_choice, config, "configured")
        logger.debug(f"Selected {kind} agent {agent.name} (global config)")
        return agent

    for agent in agents:
        if agent.enabled(config):
            logger.debug(f"Selected {kind} agent {agent.name} (auto)")
            return agent

    logger.error(f"No {kind} agent has credentials configured")
    raise NoProviderAvailableError(kind)


def select_chat_agent(
    registry: AgentRegistry,
    config: Settings,
    user_config: dict[str, Any] | None = None
):
    """
    Resolve the chat agent for a turn.

    Args:
        registry: Registered agents
        config: Global settings; enablement is always judged against these
        user_config: Per-user overrides (AI_PROVIDER)

    Returns:
        The selected ChatAgent

    Raises:
        ProviderNotAvailableError: Named provider unknown or disabled
        NoProviderAvailableError: Auto mode and nothing is enabled
    """
    return _select(registry.chat_agents(), config, user_config, "AI_PROVIDER", "chat")


def select_image_agent(
    registry: AgentRegistry,
    config: Settings,
    user_config: dict[str, Any] | None = None
):
    """Resolve the image agent for a turn (same rules, AI_IMAGE_PROVIDER)."""
    return _select(registry.image_agents(), config, user_config, "AI_IMAGE_PROVIDER", "image")

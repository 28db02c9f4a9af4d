"""
Chat turn orchestration.

WHAT: Run one chat turn (or one image request) end to end
WHY: Selection, history shaping, streaming delivery and finalization must
     happen in a fixed order for every incoming message
HOW: Per-turn config from user overrides, selector picks the agent, the
     StreamHandler is the agent's delta sink, finalize closes the turn
"""

import asyncio
from typing import Any, Dict, List, Optional

from ..core.config import Settings, merge_user_config
from ..llm.provider import ChatAgent
from ..llm.registry import AgentRegistry
from ..llm.selector import select_chat_agent, select_image_agent
from ..llm.streaming_handler import StreamHandler
from ..llm.types import ChatMessage, ChatRequest, ChatResponse, ProviderTimeoutError
from ..telegram.sender import MessageSender
from ..utils.backoff import RetryPolicy, deliver_with_retry
from ..utils.exceptions import DeliveryError
from ..utils.history_truncation import replace_image_placeholder, trim_history
from ..utils.logger import get_logger

logger = get_logger(__name__)

TYPING_ACTION = "typing"


async def _send_typing(sender: MessageSender) -> None:
    try:
        await sender.send_chat_action(TYPING_ACTION)
    except Exception as e:
        logger.warning(f"Failed to send typing action: {e}")


async def request_completion_with_stream(
    agent: ChatAgent,
    request: ChatRequest,
    config: Settings,
    stream_handler: Optional[StreamHandler],
    timeout: Optional[float] = None,
) -> ChatResponse:
    """
    Request a completion, streaming into the handler when stream mode is on.

    Args:
        agent: Selected chat agent
        request: Canonical request
        config: Per-turn settings (STREAM_MODE)
        stream_handler: Delivery pipeline; None forces a plain request
        timeout: Overall deadline in seconds

    Returns:
        The agent's response

    Raises:
        AgentError: Anything the agent raises (finalize failures are only logged)
        ProviderTimeoutError: The deadline expired
    """
    streaming = config.STREAM_MODE and stream_handler is not None

    if streaming:
        await _send_typing(stream_handler.sender)
        response = await _with_deadline(agent, agent.request(request, config, stream_handler), timeout)
        try:
            await stream_handler.finalize()
        except DeliveryError as e:
            logger.warning(f"Failed to finalize stream: {e.message}")
        return response

    return await _with_deadline(agent, agent.request(request, config, None), timeout)


async def _with_deadline(agent: ChatAgent, call, timeout: Optional[float]) -> ChatResponse:
    if timeout is None:
        return await call
    try:
        return await asyncio.wait_for(call, timeout)
    except asyncio.TimeoutError as e:
        logger.error(f"{agent.name} did not finish within {timeout}s")
        raise ProviderTimeoutError(agent.name, f"{agent.name} did not finish within {timeout}s") from e


def build_request(history: List[ChatMessage], config: Settings) -> ChatRequest:
    """Shape stored history into the request sent for this turn."""
    messages = trim_history(history, config.MAX_HISTORY_LENGTH, config.AUTO_TRIM_HISTORY)
    if config.HISTORY_IMAGE_PLACEHOLDER and messages:
        # the newest message is the one being answered; keep its images
        messages = replace_image_placeholder(messages[:-1], config.HISTORY_IMAGE_PLACEHOLDER) + messages[-1:]
    return ChatRequest(system_prompt=config.SYSTEM_INIT_MESSAGE, messages=messages)


async def request_completion(
    registry: AgentRegistry,
    history: List[ChatMessage],
    config: Settings,
    user_config: Optional[Dict[str, Any]],
    sender: MessageSender,
    timeout: Optional[float] = None,
) -> ChatResponse:
    """
    Run a full chat turn.

    Args:
        registry: Registered agents
        history: Stored history ending with the new user message
        config: Global settings
        user_config: Per-user overrides
        sender: Delivery target for this turn
        timeout: Overall deadline in seconds

    Returns:
        The response, for the caller to append to stored history

    Raises:
        SelectionError: No usable agent
        AgentError: The agent call failed
        DeliveryError: Non-streaming delivery of the final text failed
    """
    agent = select_chat_agent(registry, config, user_config)
    turn_config = merge_user_config(config, user_config)
    request = build_request(history, turn_config)

    logger.info(
        f"Chat turn: agent={agent.name} model={agent.model(turn_config)} "
        f"stream={turn_config.STREAM_MODE} messages={len(request.messages)}"
    )

    if turn_config.STREAM_MODE:
        handler = StreamHandler.from_settings(sender, turn_config)
        return await request_completion_with_stream(agent, request, turn_config, handler, timeout)

    await _send_typing(sender)
    response = await request_completion_with_stream(agent, request, turn_config, None, timeout)
    if response.text:
        await deliver_with_retry(
            lambda text: sender.send_rich_text(text, turn_config.DEFAULT_PARSE_MODE),
            response.text,
            RetryPolicy.from_settings(turn_config),
        )
    return response


async def generate_image(
    registry: AgentRegistry,
    prompt: str,
    config: Settings,
    user_config: Optional[Dict[str, Any]] = None,
) -> str:
    """Select an image agent and generate; returns a URL or base64 data."""
    agent = select_image_agent(registry, config, user_config)
    turn_config = merge_user_config(config, user_config)
    logger.info(f"Image request: agent={agent.name} model={agent.model(turn_config)}")
    return await agent.request(prompt, turn_config)

"""
Integration tests for a full chat turn.

WHAT: Selection -> agent -> streaming pipeline -> transport, end to end
WHY: Verify the components agree on ordering, pacing and error surfaces
HOW: Real registry and OpenAI agent over respx, fake chat transport
"""

import asyncio
import json

import httpx
import pytest
import respx

from chatrelay.llm.registry import build_default_registry
from chatrelay.llm.streaming_handler import StreamHandler
from chatrelay.llm.types import (
    ChatMessage,
    ChatRequest,
    ContentPart,
    DecodeError,
    ProviderTimeoutError,
    SelectionError,
)
from chatrelay.services.chat_service import (
    generate_image,
    request_completion,
    request_completion_with_stream,
)
from chatrelay.telegram.sender import MessageSender
from tests.fixtures.fakes import FakeChatAgent, FakeClock, FakeTransport, RecordingSleep, make_settings

CHAT_URL = "https://api.openai.com/v1/chat/completions"


def sse_deltas(*texts, done=True) -> bytes:
    lines = [f'data: {json.dumps({"choices": [{"delta": {"content": t}}]})}\n\n' for t in texts]
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines).encode()


def user(text: str) -> ChatMessage:
    return ChatMessage(role="user", content=text)


@pytest.fixture
def registry():
    return build_default_registry()


@pytest.fixture
def config():
    return make_settings(OPENAI_API_KEY="sk-test", SYSTEM_INIT_MESSAGE="Be helpful.")


@pytest.mark.integration
class TestStreamingTurn:

    @pytest.mark.asyncio
    @respx.mock
    async def test_hello_example(self, registry, config):
        """Deltas "Hel", "lo!" at interval 0 give two flushes and one assistant message."""
        respx.post(CHAT_URL).mock(return_value=httpx.Response(200, content=sse_deltas("Hel", "lo!")))
        transport = FakeTransport()

        response = await request_completion(registry, [user("Hi")], config, None, MessageSender(transport, 1))

        assert [(m.role, m.content) for m in response.messages] == [("assistant", "Hello!")]
        assert transport.deliveries == ["Hel", "Hello!"]
        assert transport.actions == ["typing"]

    @pytest.mark.asyncio
    @respx.mock
    async def test_invalid_json_surfaces_decode_error(self, registry, config):
        respx.post(CHAT_URL).mock(return_value=httpx.Response(
            200, content=sse_deltas("ok", done=False) + b"data: {broken\n\n"
        ))
        transport = FakeTransport()

        with pytest.raises(DecodeError):
            await request_completion(registry, [user("Hi")], config, None, MessageSender(transport, 1))

        # text delivered before the bad frame stays visible; nothing is finalized
        assert transport.deliveries == ["ok"]

    @pytest.mark.asyncio
    @respx.mock
    async def test_request_payload_built_from_config(self, registry):
        config = make_settings(
            OPENAI_API_KEY="sk-test",
            SYSTEM_INIT_MESSAGE="Be helpful.",
            MAX_HISTORY_LENGTH=2,
            HISTORY_IMAGE_PLACEHOLDER="[image]",
        )
        route = respx.post(CHAT_URL).mock(return_value=httpx.Response(200, content=sse_deltas("ok")))
        history = [
            user("old"),
            ChatMessage(role="user", content=[ContentPart.of_image("https://img/old.png")]),
            ChatMessage(role="user", content=[ContentPart.of_text("new"), ContentPart.of_image("https://img/new.png")]),
        ]

        await request_completion(registry, history, config, None, MessageSender(FakeTransport(), 1))

        messages = json.loads(route.calls.last.request.content)["messages"]
        assert messages[0] == {"role": "system", "content": "Be helpful."}
        assert messages[1] == {"role": "user", "content": "[image]"}
        assert messages[2]["content"][1] == {"type": "image_url", "image_url": {"url": "https://img/new.png"}}
        assert len(messages) == 3

    @pytest.mark.asyncio
    @respx.mock
    async def test_user_model_override(self, registry, config):
        route = respx.post(CHAT_URL).mock(return_value=httpx.Response(200, content=sse_deltas("ok")))

        await request_completion(
            registry, [user("Hi")], config, {"OPENAI_CHAT_MODEL": "gpt-4o"}, MessageSender(FakeTransport(), 1)
        )

        assert json.loads(route.calls.last.request.content)["model"] == "gpt-4o"


@pytest.mark.integration
class TestNonStreamingTurn:

    @pytest.mark.asyncio
    @respx.mock
    async def test_single_delivery(self, registry, config):
        route = respx.post(CHAT_URL).mock(return_value=httpx.Response(
            200, json={"choices": [{"message": {"content": "All at once"}}]}
        ))
        transport = FakeTransport()

        response = await request_completion(
            registry, [user("Hi")], config, {"STREAM_MODE": False}, MessageSender(transport, 1)
        )

        assert response.text == "All at once"
        assert transport.deliveries == ["All at once"]
        assert transport.actions == ["typing"]
        assert json.loads(route.calls.last.request.content)["stream"] is False


@pytest.mark.integration
class TestSelectionInTurn:

    @pytest.mark.asyncio
    @respx.mock(assert_all_called=False)
    async def test_disabled_override_fails_before_any_request(self, registry, config):
        route = respx.post(CHAT_URL)
        transport = FakeTransport()

        with pytest.raises(SelectionError) as exc_info:
            await request_completion(
                registry, [user("Hi")], config, {"AI_PROVIDER": "anthropic"}, MessageSender(transport, 1)
            )

        assert exc_info.value.provider == "anthropic"
        assert not route.called
        assert transport.deliveries == []

    @pytest.mark.asyncio
    @respx.mock
    async def test_generate_image(self, registry, config):
        respx.post("https://api.openai.com/v1/images/generations").mock(
            return_value=httpx.Response(200, json={"data": [{"url": "https://img/cat.png"}]})
        )

        assert await generate_image(registry, "a cat", config) == "https://img/cat.png"


@pytest.mark.integration
class TestRequestCompletionWithStream:

    def handler(self, transport, min_interval=0.0):
        return StreamHandler(
            MessageSender(transport, 1),
            min_interval=min_interval,
            clock=FakeClock(),
            sleep=RecordingSleep(),
        )

    @pytest.mark.asyncio
    async def test_finalize_failure_is_logged_not_raised(self):
        transport = FakeTransport(errors=[None, RuntimeError("edit failed")])
        agent = FakeChatAgent(deltas=["a", "b"])
        handler = self.handler(transport, min_interval=60.0)

        response = await request_completion_with_stream(agent, ChatRequest(), make_settings(), handler)

        assert response.text == "ab"
        assert transport.deliveries == ["a"]

    @pytest.mark.asyncio
    async def test_typing_failure_does_not_stop_turn(self):
        transport = FakeTransport(fail_actions=True)
        agent = FakeChatAgent(deltas=["x"])

        response = await request_completion_with_stream(agent, ChatRequest(), make_settings(), self.handler(transport))

        assert response.text == "x"
        assert transport.deliveries == ["x"]

    @pytest.mark.asyncio
    async def test_stream_mode_off_ignores_handler(self):
        transport = FakeTransport()
        agent = FakeChatAgent(deltas=["x"])

        await request_completion_with_stream(
            agent, ChatRequest(), make_settings(STREAM_MODE=False), self.handler(transport)
        )

        assert agent.streamed == [False]
        assert transport.deliveries == []

    @pytest.mark.asyncio
    async def test_agent_error_skips_finalize(self):
        transport = FakeTransport()
        agent = FakeChatAgent(deltas=["partial"], error=DecodeError("fake", "bad frame"))

        with pytest.raises(DecodeError):
            await request_completion_with_stream(agent, ChatRequest(), make_settings(), self.handler(transport))
        assert transport.deliveries == ["partial"]

    @pytest.mark.asyncio
    async def test_deadline_maps_to_timeout(self):
        class SlowAgent(FakeChatAgent):
            async def request(self, request, config, sink=None):
                await asyncio.sleep(10)

        with pytest.raises(ProviderTimeoutError) as exc_info:
            await request_completion_with_stream(
                SlowAgent("slow"), ChatRequest(), make_settings(), None, timeout=0.01
            )
        assert exc_info.value.provider == "slow"

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        started = asyncio.Event()

        class BlockingAgent(FakeChatAgent):
            async def request(self, request, config, sink=None):
                started.set()
                await asyncio.sleep(10)

        task = asyncio.create_task(
            request_completion_with_stream(BlockingAgent(), ChatRequest(), make_settings(), None)
        )
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

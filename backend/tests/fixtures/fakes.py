"""
In-memory fakes for delivery and agent tests.

WHAT: Recording sink, scripted chat transport, scripted agents, manual clock
WHY: Test pacing, retries and selection without Telegram or a real LLM
HOW: Plain classes implementing the same protocols as production code
"""

from typing import Dict, List, Optional

from chatrelay.core.config import Settings
from chatrelay.llm.types import ChatRequest, ChatResponse


class RecordingSink:
    """DeltaSink that remembers every delta."""

    def __init__(self):
        self.deltas: List[str] = []

    async def on_delta(self, text: str) -> None:
        self.deltas.append(text)


class FakeTransport:
    """
    ChatTransport recording every call.

    errors: queue of exceptions raised by successive send/edit calls
    (None entries mean "succeed this time").
    """

    def __init__(self, errors: Optional[List[Optional[Exception]]] = None, fail_actions: bool = False):
        self.errors = list(errors or [])
        self.fail_actions = fail_actions
        self.sent: List[Dict] = []
        self.edits: List[Dict] = []
        self.actions: List[str] = []
        self.next_message_id = 100

    def _maybe_fail(self):
        if self.errors:
            error = self.errors.pop(0)
            if error is not None:
                raise error

    @property
    def deliveries(self) -> List[str]:
        """Every text that reached the chat, in order."""
        return [call["text"] for call in sorted(self.sent + self.edits, key=lambda c: c["seq"])]

    def _seq(self) -> int:
        return len(self.sent) + len(self.edits)

    async def send_message(self, chat_id: int, text: str, parse_mode: str = "") -> int:
        self._maybe_fail()
        self.sent.append({"seq": self._seq(), "chat_id": chat_id, "text": text, "parse_mode": parse_mode})
        return self.next_message_id

    async def edit_message(self, chat_id: int, message_id: int, text: str, parse_mode: str = "") -> None:
        self._maybe_fail()
        self.edits.append({
            "seq": self._seq(),
            "chat_id": chat_id,
            "message_id": message_id,
            "text": text,
            "parse_mode": parse_mode,
        })

    async def send_chat_action(self, chat_id: int, action: str) -> None:
        if self.fail_actions:
            raise RuntimeError("chat action failed")
        self.actions.append(action)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Awaitable sleep that records delays instead of waiting."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeChatAgent:
    """ChatAgent that streams scripted deltas."""

    def __init__(
        self,
        name: str = "fake",
        deltas: Optional[List[str]] = None,
        enabled: bool = True,
        error: Optional[Exception] = None,
    ):
        self.name = name
        self.model_key = "OPENAI_CHAT_MODEL"
        self.deltas = deltas if deltas is not None else ["Hello"]
        self._enabled = enabled
        self.error = error
        self.requests: List[ChatRequest] = []
        self.streamed: List[bool] = []

    def enabled(self, config: Settings) -> bool:
        return self._enabled

    def model(self, config: Settings) -> str:
        return "fake-model"

    def model_list(self, config: Settings) -> List[str]:
        return ["fake-model"]

    async def request(self, request: ChatRequest, config: Settings, sink=None) -> ChatResponse:
        self.requests.append(request)
        self.streamed.append(sink is not None)
        if sink is not None:
            for delta in self.deltas:
                await sink.on_delta(delta)
        if self.error is not None:
            raise self.error
        return ChatResponse.from_text("".join(self.deltas))


class FakeImageAgent:
    """ImageAgent returning a fixed URL."""

    def __init__(self, name: str = "fake-image", enabled: bool = True, result: str = "https://img.example/1.png"):
        self.name = name
        self.model_key = "DALL_E_MODEL"
        self._enabled = enabled
        self.result = result
        self.prompts: List[str] = []

    def enabled(self, config: Settings) -> bool:
        return self._enabled

    def model(self, config: Settings) -> str:
        return "fake-image-model"

    def model_list(self, config: Settings) -> List[str]:
        return ["fake-image-model"]

    async def request(self, prompt: str, config: Settings) -> str:
        self.prompts.append(prompt)
        return self.result


# Every credential the agents check, blanked so the process environment
# cannot enable a backend behind a test's back.
BLANK_CREDENTIALS = {
    "OPENAI_API_KEY": "",
    "AZURE_API_KEY": "",
    "AZURE_RESOURCE_NAME": "",
    "CLOUDFLARE_ACCOUNT_ID": "",
    "CLOUDFLARE_TOKEN": "",
    "GOOGLE_API_KEY": "",
    "ANTHROPIC_API_KEY": "",
    "MISTRAL_API_KEY": "",
    "COHERE_API_KEY": "",
    "DEEPSEEK_API_KEY": "",
    "GROQ_API_KEY": "",
    "XAI_API_KEY": "",
}


def make_settings(**overrides) -> Settings:
    """
    Build isolated settings for a test.

    Skips the .env file and passes explicit values, which win over
    environment variables, so exported API keys cannot leak in.
    """
    values = {
        **BLANK_CREDENTIALS,
        "AI_PROVIDER": "auto",
        "AI_IMAGE_PROVIDER": "auto",
        "SYSTEM_INIT_MESSAGE": "",
        "CHAT_COMPLETE_API_TIMEOUT": 0,
        "STREAM_MODE": True,
        "DEFAULT_PARSE_MODE": "Markdown",
        "TELEGRAM_MIN_STREAM_INTERVAL": 0,
        "HISTORY_IMAGE_PLACEHOLDER": "",
        "AUTO_TRIM_HISTORY": True,
        "MAX_HISTORY_LENGTH": 20,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)

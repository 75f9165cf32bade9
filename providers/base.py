"""Provider capability surface shared by every language model backend."""

from dataclasses import dataclass, field
from typing import Optional, Protocol, runtime_checkable

from tools.text_utils import estimate_tokens as _estimate_tokens


@dataclass
class Message:
    role: str  # "system", "user" or "assistant"
    content: str


@dataclass
class CompletionOptions:
    temperature: float = 0.7
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    stop: Optional[list[str]] = None
    model: Optional[str] = None  # per-call override of the provider's model


@dataclass
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class CompletionResult:
    content: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    finish_reason: Optional[str] = None
    model: Optional[str] = None


@dataclass
class StructuredResult:
    data: dict
    usage: TokenUsage = field(default_factory=TokenUsage)
    raw: str = ""


@runtime_checkable
class LLMProvider(Protocol):
    """Capability set every backend implements.

    Backends are independent classes; nothing inherits from this protocol
    at runtime.
    """

    name: str
    model: str

    async def complete(
        self, messages: list[Message], options: Optional[CompletionOptions] = None
    ) -> CompletionResult:
        """Return the model's text reply. Raises TransportError/ConfigurationError."""
        ...

    async def complete_structured(
        self, messages: list[Message], options: Optional[CompletionOptions] = None
    ) -> StructuredResult:
        """Return the model's reply decoded as a JSON object. Raises ParseError."""
        ...

    def estimate_tokens(self, text: str) -> int:
        ...

    async def is_available(self) -> bool:
        ...


def estimate_tokens(text: str) -> int:
    """Default estimator shared by the backends."""
    return _estimate_tokens(text)

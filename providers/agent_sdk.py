"""Claude Agent SDK backend."""

import logging
import os
import shutil
from typing import Optional

from claude_agent_sdk import (
    AssistantMessage,
    ClaudeAgentOptions,
    CLINotFoundError,
    ResultMessage,
    query,
)

from config.exceptions import ConfigurationError, ParseError, TransportError
from providers.base import (
    CompletionOptions,
    CompletionResult,
    Message,
    StructuredResult,
    TokenUsage,
    estimate_tokens,
)
from tools.llm_client import parse_json_response

logger = logging.getLogger(__name__)

# The SDK refuses to start when it detects it is nested in a CLI session
os.environ.pop("CLAUDECODE", None)


def _split_messages(messages: list[Message]) -> tuple[str, str]:
    """Fold role-tagged messages into (system prompt, single user prompt)."""
    system = "\n\n".join(m.content for m in messages if m.role == "system")
    turns = [m for m in messages if m.role != "system"]
    if len(turns) == 1:
        return system, turns[0].content
    prompt = "\n\n".join(f"[{m.role}]\n{m.content}" for m in turns)
    return system, prompt


def _usage_from(result: ResultMessage) -> TokenUsage:
    raw = result.usage or {}
    prompt_tokens = int(raw.get("input_tokens", 0) or 0)
    completion_tokens = int(raw.get("output_tokens", 0) or 0)
    return TokenUsage(prompt_tokens, completion_tokens, prompt_tokens + completion_tokens)


class AgentSDKProvider:
    """Runs single-turn queries through ``claude_agent_sdk.query()``.

    Authentication is handled by the Claude CLI. Sampling temperature is not
    exposed by the SDK, so ``CompletionOptions.temperature`` is ignored.
    """

    name = "claude_agent"

    def __init__(self, model: str, cli_path: Optional[str] = None):
        self.model = model
        self.cli_path = cli_path

    async def complete(
        self, messages: list[Message], options: Optional[CompletionOptions] = None
    ) -> CompletionResult:
        options = options or CompletionOptions()
        system_prompt, user_prompt = _split_messages(messages)
        model = options.model or self.model

        options_kwargs = {
            "system_prompt": system_prompt,
            "model": model,
            "max_turns": 1,
        }
        if self.cli_path:
            options_kwargs["cli_path"] = self.cli_path

        logger.debug("AgentSDK call: model=%s, prompt=%d chars", model, len(user_prompt))

        result_text = ""
        usage = TokenUsage()
        finish_reason = None
        try:
            # The generator must be exhausted; leaving the loop early breaks
            # the SDK's internal cancel scopes.
            async for message in query(prompt=user_prompt, options=ClaudeAgentOptions(**options_kwargs)):
                if isinstance(message, ResultMessage):
                    result_text = message.result or result_text
                    usage = _usage_from(message)
                    finish_reason = "error" if message.is_error else "stop"
                    logger.debug(
                        "AgentSDK result: %d chars, tokens=%d/%d, cost=$%s",
                        len(result_text), usage.prompt_tokens, usage.completion_tokens,
                        message.total_cost_usd,
                    )
                elif isinstance(message, AssistantMessage) and not result_text:
                    parts = [block.text for block in message.content if hasattr(block, "text")]
                    if parts:
                        result_text = "".join(parts)
        except CLINotFoundError as e:
            raise ConfigurationError(f"Claude CLI not found: {e}") from e
        except Exception as e:
            raise TransportError(f"Agent SDK query failed: {e}") from e

        if finish_reason == "error":
            raise TransportError(f"Agent SDK reported an error result: {result_text[:200]}")
        if not result_text:
            logger.warning("AgentSDK returned no content")

        return CompletionResult(content=result_text, usage=usage, finish_reason=finish_reason, model=model)

    async def complete_structured(
        self, messages: list[Message], options: Optional[CompletionOptions] = None
    ) -> StructuredResult:
        result = await self.complete(messages, options)
        try:
            data = parse_json_response(result.content)
        except ValueError as e:
            raise ParseError(str(e), raw_response=result.content) from e
        return StructuredResult(data=data, usage=result.usage, raw=result.content)

    def estimate_tokens(self, text: str) -> int:
        return estimate_tokens(text)

    async def is_available(self) -> bool:
        return bool(self.cli_path or shutil.which("claude"))

"""Configuration helpers for the Parley assistant core."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from parley.utils import parse_bool, parse_int, split_csv, strip_or_none

PROVIDERS = {"openai", "anthropic", "zai"}
DEFAULT_TOOLS_TTL_MINUTES = 10
MIN_TOOLS_TTL_MINUTES = 1


@dataclass(frozen=True)
class LLMConfig:
    provider: str
    system_prompt: str
    openai_model: str
    openai_api_key: str | None
    openai_base_url: str
    openai_timeout: int
    anthropic_model: str
    anthropic_api_key: str | None
    anthropic_base_url: str
    anthropic_timeout: int
    anthropic_max_tokens: int
    zai_model: str
    zai_api_key: str | None
    zai_base_url: str
    zai_timeout: int

    def model_for(self, provider: str) -> str:
        return str(getattr(self, f"{_provider_key(provider)}_model"))

    def api_key_for(self, provider: str) -> str | None:
        return getattr(self, f"{_provider_key(provider)}_api_key")

    def base_url_for(self, provider: str) -> str:
        return str(getattr(self, f"{_provider_key(provider)}_base_url")).rstrip("/")

    def timeout_for(self, provider: str) -> int:
        return int(getattr(self, f"{_provider_key(provider)}_timeout"))


@dataclass(frozen=True)
class ToolGateConfig:
    baseline_tools: tuple[str, ...]
    ttl_minutes: int


@dataclass(frozen=True)
class AssistantConfig:
    llm: LLMConfig
    tools: ToolGateConfig
    max_tool_rounds: int
    log_llm_messages: bool

    @staticmethod
    def from_env(env: dict[str, str] | None = None) -> AssistantConfig:
        source = env if env is not None else os.environ

        system_prompt = source.get("PARLEY_SYSTEM_PROMPT", "").strip()
        prompt_file = source.get("PARLEY_SYSTEM_PROMPT_FILE")
        if not system_prompt and prompt_file:
            candidate = Path(prompt_file)
            if candidate.is_file():
                system_prompt = candidate.read_text(encoding="utf-8").strip()
        if not system_prompt:
            system_prompt = DEFAULT_SYSTEM_PROMPT

        provider = (source.get("PARLEY_PROVIDER") or "openai").strip().lower()
        if provider not in PROVIDERS:
            provider = "openai"

        llm = LLMConfig(
            provider=provider,
            system_prompt=system_prompt,
            openai_model=source.get("OPENAI_MODEL", "gpt-4o-mini"),
            openai_api_key=strip_or_none(source.get("OPENAI_API_KEY")),
            openai_base_url=source.get("OPENAI_BASE_URL", "https://api.openai.com/v1").rstrip("/"),
            openai_timeout=parse_int(source.get("OPENAI_TIMEOUT_SECONDS"), 60),
            anthropic_model=source.get("ANTHROPIC_MODEL", "claude-3-5-haiku-20241022"),
            anthropic_api_key=strip_or_none(source.get("ANTHROPIC_API_KEY")),
            anthropic_base_url=source.get("ANTHROPIC_BASE_URL", "https://api.anthropic.com/v1").rstrip("/"),
            anthropic_timeout=parse_int(source.get("ANTHROPIC_TIMEOUT_SECONDS"), 60),
            anthropic_max_tokens=max(1, parse_int(source.get("ANTHROPIC_MAX_TOKENS"), 4096)),
            zai_model=source.get("ZAI_MODEL", "glm-4.7"),
            zai_api_key=strip_or_none(source.get("ZAI_API_KEY")),
            zai_base_url=source.get("ZAI_BASE_URL", "https://open.bigmodel.cn/api/paas/v4").rstrip("/"),
            zai_timeout=parse_int(source.get("ZAI_TIMEOUT_SECONDS"), 60),
        )

        baseline_raw = source.get("PARLEY_BASELINE_TOOLS")
        baseline = tuple(split_csv(baseline_raw)) if baseline_raw is not None else DEFAULT_BASELINE_TOOLS
        tools = ToolGateConfig(
            baseline_tools=baseline,
            ttl_minutes=max(
                MIN_TOOLS_TTL_MINUTES,
                parse_int(source.get("PARLEY_TOOLS_TTL_MINUTES"), DEFAULT_TOOLS_TTL_MINUTES),
            ),
        )

        return AssistantConfig(
            llm=llm,
            tools=tools,
            max_tool_rounds=max(1, parse_int(source.get("PARLEY_MAX_TOOL_ROUNDS"), 5)),
            log_llm_messages=parse_bool(source.get("PARLEY_LOG_LLM"), True),
        )


DEFAULT_BASELINE_TOOLS: tuple[str, ...] = (
    "tools.list",
    "tools.enable",
    "tools.enable_categories",
    "tools.enable_ttl",
    "tools.reset",
)


DEFAULT_SYSTEM_PROMPT = """You are Parley, a friendly voice assistant.
- Keep answers short and conversational; they are read aloud sentence by sentence.
- Avoid markdown, tables and lists unless the user asks for them.
- Only the tools you can currently see are available. If a task needs a tool you
  cannot see, call tools.list and then tools.enable for the tools you need.
- When unsure, ask a clarifying question instead of guessing."""


def _provider_key(provider: str) -> str:
    key = (provider or "").strip().lower()
    if key not in PROVIDERS:
        raise ValueError(f"Unsupported provider: {provider!r}")
    return key

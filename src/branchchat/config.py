"""
Configuration for branchchat.

Provides a configuration object that can be loaded from YAML files, the
environment, or constructed programmatically.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

import yaml
from dotenv import load_dotenv

load_dotenv()

ChatMode = Literal["reasoner", "chat"]

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant.\nToday is {date}."

_FALSE_STRINGS = {"", "0", "false", "no", "off"}


def _as_bool(value: Any) -> bool:
    """Read a flag that may arrive as a string (quoted YAML, environment)."""
    if isinstance(value, str):
        return value.strip().lower() not in _FALSE_STRINGS
    return bool(value)


@dataclass
class ChatConfig:
    """
    Settings for the completion backend and the conversation defaults.

    Example YAML:
        mode: reasoner
        base_url: https://api.deepseek.com/v1
        reasoner_model: deepseek-reasoner
        chat_model: deepseek-chat
        temperature: 1.0
        show_thinking: true
        welcome_message: "Hi! How can I help you today?"
    """

    # Backend
    base_url: str | None = "https://api.deepseek.com/v1"
    api_key: str | None = None  # Defaults to DEEPSEEK_API_KEY / OPENAI_API_KEY

    # Models
    mode: ChatMode = "reasoner"
    reasoner_model: str = "deepseek-reasoner"
    chat_model: str = "deepseek-chat"
    temperature: float = 1.0  # Only sent in chat mode
    reasoner_max_tokens: int = 8192
    chat_max_tokens: int = 8192

    # Conversation
    system_prompt: str = DEFAULT_SYSTEM_PROMPT  # "{date}" is substituted per request
    welcome_message: str | None = None
    show_thinking: bool = True

    def model_for_mode(self, mode: ChatMode | None = None) -> str:
        """Model name to request for *mode* (defaults to the configured mode)."""
        mode = mode or self.mode
        return self.reasoner_model if mode == "reasoner" else self.chat_model

    def max_tokens_for_mode(self, mode: ChatMode | None = None) -> int:
        """Output token cap for *mode*."""
        mode = mode or self.mode
        return self.reasoner_max_tokens if mode == "reasoner" else self.chat_max_tokens

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChatConfig:
        """Create config from a dictionary."""
        mode = data.get("mode", "reasoner")
        if mode not in ("reasoner", "chat"):
            raise ValueError(f"Unknown chat mode: {mode!r}")

        return cls(
            base_url=data.get("base_url", "https://api.deepseek.com/v1"),
            api_key=data.get("api_key"),
            mode=mode,
            reasoner_model=data.get("reasoner_model", "deepseek-reasoner"),
            chat_model=data.get("chat_model", "deepseek-chat"),
            temperature=float(data.get("temperature", 1.0)),
            reasoner_max_tokens=int(data.get("reasoner_max_tokens", 8192)),
            chat_max_tokens=int(data.get("chat_max_tokens", 8192)),
            system_prompt=data.get("system_prompt", DEFAULT_SYSTEM_PROMPT),
            welcome_message=data.get("welcome_message"),
            show_thinking=_as_bool(data.get("show_thinking", True)),
        )

    @classmethod
    def from_yaml(cls, path: Path) -> ChatConfig:
        """Load config from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    @classmethod
    def from_yaml_string(cls, content: str) -> ChatConfig:
        """Load config from a YAML string."""
        data = yaml.safe_load(content)
        return cls.from_dict(data or {})

    @classmethod
    def from_env(cls, **overrides: Any) -> ChatConfig:
        """Create config from environment variables."""
        values: dict[str, Any] = {
            "base_url": os.environ.get("BRANCHCHAT_BASE_URL", "https://api.deepseek.com/v1"),
            "api_key": os.environ.get("DEEPSEEK_API_KEY") or os.environ.get("OPENAI_API_KEY"),
        }
        mode = os.environ.get("BRANCHCHAT_MODE")
        if mode in ("reasoner", "chat"):
            values["mode"] = mode
        welcome = os.environ.get("BRANCHCHAT_WELCOME")
        if welcome:
            values["welcome_message"] = welcome
        values.update(overrides)
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        """Convert config to a dictionary (the API key is left out)."""
        return {
            "base_url": self.base_url,
            "mode": self.mode,
            "reasoner_model": self.reasoner_model,
            "chat_model": self.chat_model,
            "temperature": self.temperature,
            "reasoner_max_tokens": self.reasoner_max_tokens,
            "chat_max_tokens": self.chat_max_tokens,
            "system_prompt": self.system_prompt,
            "welcome_message": self.welcome_message,
            "show_thinking": self.show_thinking,
        }

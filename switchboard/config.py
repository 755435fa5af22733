"""Settings via pydantic-settings with SWITCHBOARD_ env prefix.

Provider credentials use validation_alias to read the same unprefixed
env vars the upstream SDKs use (OPENAI_API_KEY, TAVILY_API_KEY), so a
single .env file works for both.
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SWITCHBOARD_", env_file=".env")

    log_level: str = "info"

    # Transport
    openai_api_key: str = Field("", validation_alias="OPENAI_API_KEY")
    api_base_url: str = "https://api.openai.com/v1"
    api_timeout_connect: int = 10  # seconds
    api_timeout_read: int = 120  # seconds
    api_max_retries: int = 1  # extra attempts on 429/5xx

    # LLM
    model: str = "gpt-4o-mini"
    summary_model: str = "gpt-4o-mini"

    # Orchestration loop
    max_steps: int = 20  # model calls per turn
    max_delegation_depth: int = 1

    # Compaction
    compaction_enabled: bool = True
    compaction_threshold: float = 0.8
    token_ratio: float = 0.3  # tokens per char, biased high
    message_overhead_tokens: int = 4

    # Tool output pruning (in-turn)
    tool_pruning_enabled: bool = True
    tool_soft_trim_chars: int = 4000
    tool_soft_trim_head: int = 1500
    tool_soft_trim_tail: int = 1500
    keep_last_tool_results: int = 2

    # Web tools
    tavily_api_key: str = Field("", validation_alias="TAVILY_API_KEY")
    web_search_max_results: int = 5

    @model_validator(mode="after")
    def _validate_limits(self) -> "Settings":
        if not 0.0 < self.compaction_threshold < 1.0:
            raise ValueError(
                f"compaction_threshold ({self.compaction_threshold}) must be "
                "between 0 and 1 (exclusive)"
            )
        if self.max_steps < 1:
            raise ValueError("max_steps must be >= 1")
        if self.tool_soft_trim_head + self.tool_soft_trim_tail >= self.tool_soft_trim_chars:
            raise ValueError(
                "tool_soft_trim_head + tool_soft_trim_tail must be < "
                "tool_soft_trim_chars"
            )
        return self

from pydantic import BaseModel, ConfigDict, Field


class LLMMessage(BaseModel):
    """A role-tagged message in the payload sent to a provider."""

    model_config = ConfigDict(frozen=True)

    role: str = Field(description="Role of the message sender: 'user', 'assistant', or 'system'")
    content: str = Field(description="Content of the message")


class TokenInfo(BaseModel):
    """Per-turn telemetry reported by providers that support it.

    A field left as None means the value could not be determined,
    which is different from a measured zero.
    """

    model_config = ConfigDict(frozen=True)

    request_tokens: int | None = Field(default=None, ge=0)
    response_tokens: int | None = Field(default=None, ge=0)
    response_time_ms: int | None = Field(default=None, ge=0)
    cost_usd: float | None = Field(default=None, ge=0.0)


class ProviderResponse(BaseModel):
    """Normalized result of a completion call.

    `token_info` is None when the provider does not report telemetry at all.
    """

    model_config = ConfigDict(frozen=True)

    text: str = Field(description="Cleaned response text")
    token_info: TokenInfo | None = Field(default=None, description="Token usage, latency and cost")

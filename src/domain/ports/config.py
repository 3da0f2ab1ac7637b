"""Config schema - application configuration sections."""

from pydantic import BaseModel, ConfigDict, Field


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = "0.0.0.0"
    port: int = 8000


class LLMConfig(BaseModel):
    """LLM provider selection."""

    provider: str = "openai_compatible"


class OpenAICompatibleConfig(BaseModel):
    """LM Studio, vLLM, LocalAI, OpenRouter - OpenAI-compatible API."""

    base_url: str = "http://localhost:1234/v1"
    api_key: str = ""
    timeout: int = 120
    # Optional: max tokens to generate. None = server/model default.
    max_tokens: int | None = None


class ModelConfig(BaseModel):
    """Primary model and the cheaper model used on rate limits."""

    primary: str = "qwen2.5-coder:7b"
    fallback: str = "qwen2.5-coder:3b"

    model_config = ConfigDict(extra="ignore")


class ParserConfig(BaseModel):
    """Tool-call parser safety limits."""

    max_input_length: int = Field(500_000, ge=1)
    max_param_size: int = Field(100_000, ge=1)
    max_tool_calls: int = Field(20, ge=1)
    max_json_depth: int = Field(10, ge=1)  # Bracket nesting allowed in params
    partial_min_length: int = Field(50, ge=0)  # Truncated params shorter than this are noise


class AgentConfig(BaseModel):
    """Agent loop settings."""

    max_iterations: int = Field(5, ge=1)  # Model calls per session, retries included
    partial_output_threshold: int = 100  # Chars of partial output worth keeping on timeout
    model_retry_delay: float = 2.0
    temperature: float = 0.7


class ToolsConfig(BaseModel):
    """Defaults for tool execution (per-tool definitions may override)."""

    default_timeout: float = 30.0
    default_max_attempts: int = Field(2, ge=1)
    retry_delay: float = 1.0
    retry_backoff_multiplier: float = 2.0
    max_retry_delay: float = 30.0


class ResilienceConfig(BaseModel):
    """Per-tool circuit breaker settings."""

    failure_threshold: int = 3
    recovery_timeout: float = 60.0
    success_threshold: int = 1


class SecurityConfig(BaseModel):
    """Security settings."""

    rate_limit_requests_per_minute: int = 100
    cors_origins: list[str] = ["http://localhost:5173"]


class AppConfig(BaseModel):
    """Full application configuration."""

    server: ServerConfig = ServerConfig()
    llm: LLMConfig = LLMConfig()
    openai_compatible: OpenAICompatibleConfig = OpenAICompatibleConfig()
    models: ModelConfig = ModelConfig()
    parser: ParserConfig = ParserConfig()
    agent: AgentConfig = AgentConfig()
    tools: ToolsConfig = ToolsConfig()
    resilience: ResilienceConfig = ResilienceConfig()
    security: SecurityConfig = SecurityConfig()
    log_level: str = "INFO"
    # Log file: path relative to cwd or absolute. Empty = only stdout. Rotation when file exceeds max_mb.
    log_file: str = ""
    log_rotation_max_mb: int = 5
    log_rotation_backups: int = 3


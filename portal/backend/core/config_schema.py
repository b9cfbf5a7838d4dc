"""
Configuration Schemas.

Pydantic models defining the expected structure of each YAML config file.
Used by AppConfig to validate configuration at load time. If a YAML file
has missing keys, wrong types, or unknown fields, a clear ValidationError
is raised at startup instead of a cryptic KeyError deep in application code.

Each top-level class corresponds to one file in config/settings/:
    ApplicationSchema   → application.yaml
    DatabaseSchema      → database.yaml
    LoggingSchema       → logging.yaml
    FeaturesSchema      → features.yaml
    SecuritySchema      → security.yaml
    IntegrationsSchema  → integrations.yaml
    BillingSchema       → billing.yaml
    JobsSchema          → jobs.yaml
"""

from pydantic import BaseModel, ConfigDict


class _StrictBase(BaseModel):
    """Base with extra='forbid' so unknown YAML keys are caught immediately."""

    model_config = ConfigDict(extra="forbid")


# =============================================================================
# application.yaml
# =============================================================================


class ServerSchema(_StrictBase):
    host: str
    port: int


class CorsSchema(_StrictBase):
    origins: list[str]


class PaginationSchema(_StrictBase):
    default_limit: int
    max_limit: int


class TimeoutsSchema(_StrictBase):
    database: int
    external_api: int
    background: int


class ApplicationSchema(_StrictBase):
    name: str
    version: str
    description: str
    environment: str
    debug: bool
    api_prefix: str
    docs_enabled: bool
    public_base_url: str
    server: ServerSchema
    cors: CorsSchema
    pagination: PaginationSchema
    timeouts: TimeoutsSchema


# =============================================================================
# database.yaml
# =============================================================================


class BrokerSchema(_StrictBase):
    queue_name: str
    result_expiry_seconds: int


class RedisSchema(_StrictBase):
    host: str
    port: int
    db: int
    broker: BrokerSchema


class DatabaseSchema(_StrictBase):
    host: str
    port: int
    name: str
    user: str
    pool_size: int
    max_overflow: int
    pool_timeout: int
    pool_recycle: int
    echo: bool
    echo_pool: bool
    redis: RedisSchema


# =============================================================================
# logging.yaml
# =============================================================================


class ConsoleHandlerSchema(_StrictBase):
    enabled: bool


class FileHandlerSchema(_StrictBase):
    enabled: bool
    path: str
    max_bytes: int
    backup_count: int


class HandlersSchema(_StrictBase):
    console: ConsoleHandlerSchema
    file: FileHandlerSchema


class LoggingSchema(_StrictBase):
    level: str
    format: str
    handlers: HandlersSchema


# =============================================================================
# features.yaml
# =============================================================================


class FeaturesSchema(_StrictBase):
    api_detailed_errors: bool
    api_request_logging: bool
    auth_rate_limit_enabled: bool
    jobs_dispatch_enabled: bool
    jobs_scheduler_enabled: bool
    email_tracking_enabled: bool


# =============================================================================
# security.yaml
# =============================================================================


class JwtSchema(_StrictBase):
    algorithm: str
    audience: str
    session_expire_days: int


class CookieSchema(_StrictBase):
    name: str
    secure: bool
    samesite: str


class RateLimitRuleSchema(_StrictBase):
    max_attempts: int
    window_seconds: int


class RateLimitingSchema(_StrictBase):
    payments: RateLimitRuleSchema
    login: RateLimitRuleSchema


class SecuritySchema(_StrictBase):
    jwt: JwtSchema
    cookie: CookieSchema
    invite_token_expire_days: int
    password_min_length: int
    rate_limiting: RateLimitingSchema


# =============================================================================
# integrations.yaml
# =============================================================================


class SquareSchema(_StrictBase):
    base_url: str
    api_version: str
    currency: str


class ResendSchema(_StrictBase):
    base_url: str
    from_address: str
    admin_address: str


class ShopifySchema(_StrictBase):
    api_version: str
    min_request_interval_ms: int
    page_size: int


class OpenAISchema(_StrictBase):
    base_url: str
    model: str
    max_tokens: int
    temperature: float


class CircuitBreakerSchema(_StrictBase):
    fail_max: int
    timeout_duration: int


class RetrySchema(_StrictBase):
    max_attempts: int
    backoff_min: int
    backoff_max: int


class IntegrationsSchema(_StrictBase):
    square: SquareSchema
    resend: ResendSchema
    shopify: ShopifySchema
    openai: OpenAISchema
    circuit_breaker: CircuitBreakerSchema
    retry: RetrySchema


# =============================================================================
# billing.yaml
# =============================================================================


class BillingSchema(_StrictBase):
    invoice_number_prefix: str
    invoice_number_base: int
    invoice_number_width: int
    payment_link_expire_days: int
    default_due_days: int
    default_tax_rate: float
    reminder_schedule_days: list[int]


# =============================================================================
# jobs.yaml
# =============================================================================


class JobQueueSchema(_StrictBase):
    priority: str
    types: list[str]


class JobsSchema(_StrictBase):
    max_retries: int
    retry_base_delay_seconds: int
    poll_batch_size: int
    poll_min_age_seconds: int
    cleanup_after_days: int
    priorities: list[str]
    queues: dict[str, JobQueueSchema]

"""
askai-kvs: a JSON key store, a schema-validated generation gateway and
signed capability links.

Quick start:
    ```python
    from askai_kvs import KeyStore, MemoryStoreBackend, ValidatedGenerationGateway, OpenAIProvider

    store = KeyStore(MemoryStoreBackend())
    await store.put("user:123", {"name": "Ada"})

    gateway = ValidatedGenerationGateway(OpenAIProvider())
    result = await gateway.generate(request, schema, fallback)
    ```

The HTTP surface lives in ``askai_kvs.api`` (``create_app``); client SDKs
in ``askai_kvs.clients``.
"""

__version__ = "0.1.0"

from .config import (
    FSStoreConfig,
    GatewayConfig,
    LinkConfig,
    LoggingConfig,
    OpenAIConfig,
    PostgresStoreConfig,
    ProviderConfig,
    RedisStoreConfig,
    ServerConfig,
    Settings,
    StoreConfig,
    configure,
    get_settings,
    load_env,
)
from .errors import (
    AuthenticationError,
    ConfigError,
    ConflictError,
    ErrorCode,
    ErrorContext,
    InvalidKeyError,
    InvalidRequestError,
    InvalidResponseError,
    InvalidSchemaError,
    LinkError,
    LinkExpiredError,
    LinkInvalidSignatureError,
    MalformedLinkError,
    NotFoundError,
    PayloadTooLargeError,
    ProviderError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    RateLimitError,
    ServiceError,
    StoreUnavailableError,
    UpstreamUnavailableError,
    ValidationError,
    error_from_status,
    is_retryable,
)
from .gateway import ValidatedGenerationGateway
from .generation import GenerationRequest, GenerationResponse, ValidatedResult
from .hooks import HookContext, HookManager, InMemoryMetricsHook, LoggingHook
from .links import (
    CapabilityLink,
    CapabilityLinkSigner,
    LinkFailure,
    LinkVerification,
    decode_link,
    encode_link,
    issue_link,
    link_to_url,
    verify_link,
    verify_link_query,
)
from .logging import StructuredLogger, configure_logging, get_logger
from .models import CapabilityTable, ModelCapabilities
from .providers import CompletionResult, Message, OpenAIProvider, Provider
from .store import FSStoreBackend, KeyStore, MemoryStoreBackend, Record, build_store_backend
from .validation import validate_key

__all__ = [
    "__version__",
    # Config
    "Settings",
    "ProviderConfig",
    "OpenAIConfig",
    "StoreConfig",
    "FSStoreConfig",
    "PostgresStoreConfig",
    "RedisStoreConfig",
    "GatewayConfig",
    "LinkConfig",
    "ServerConfig",
    "LoggingConfig",
    "get_settings",
    "configure",
    "load_env",
    # Errors
    "ErrorCode",
    "ErrorContext",
    "ServiceError",
    "ValidationError",
    "InvalidKeyError",
    "InvalidSchemaError",
    "InvalidRequestError",
    "PayloadTooLargeError",
    "NotFoundError",
    "ConflictError",
    "UpstreamUnavailableError",
    "StoreUnavailableError",
    "ProviderError",
    "RateLimitError",
    "AuthenticationError",
    "ProviderUnavailableError",
    "ProviderTimeoutError",
    "InvalidResponseError",
    "LinkError",
    "LinkExpiredError",
    "LinkInvalidSignatureError",
    "MalformedLinkError",
    "ConfigError",
    "error_from_status",
    "is_retryable",
    # Store
    "KeyStore",
    "Record",
    "MemoryStoreBackend",
    "FSStoreBackend",
    "build_store_backend",
    "validate_key",
    # Generation
    "GenerationRequest",
    "GenerationResponse",
    "ValidatedResult",
    "ValidatedGenerationGateway",
    "CapabilityTable",
    "ModelCapabilities",
    "Provider",
    "OpenAIProvider",
    "CompletionResult",
    "Message",
    # Links
    "CapabilityLink",
    "CapabilityLinkSigner",
    "LinkFailure",
    "LinkVerification",
    "issue_link",
    "verify_link",
    "encode_link",
    "decode_link",
    "link_to_url",
    "verify_link_query",
    # Observability
    "StructuredLogger",
    "get_logger",
    "configure_logging",
    "HookContext",
    "HookManager",
    "InMemoryMetricsHook",
    "LoggingHook",
]

"""
JSON schemas for configuration validation.
"""

PROVIDER_SCHEMA = {
    "type": "object",
    "properties": {
        "api_key": {"type": ["string", "null"]},
        "base_url": {"type": ["string", "null"]},
        "organization": {"type": ["string", "null"]},
        "timeout": {"type": "number", "minimum": 0.1},
        "default_model": {"type": "string", "minLength": 1, "maxLength": 100},
        "default_temperature": {"type": "number", "minimum": 0.0, "maximum": 2.0},
        "default_max_tokens": {"type": "integer", "minimum": 1},
    },
    "additionalProperties": False,
}

MODEL_CAPABILITY_SCHEMA = {
    "type": "object",
    "properties": {
        "supports_temperature": {"type": "boolean"},
        "temperature_range": {
            "type": "array",
            "items": {"type": "number", "minimum": 0.0},
            "minItems": 2,
            "maxItems": 2,
        },
        "fixed_temperature": {"type": ["number", "null"], "minimum": 0.0},
        "token_parameter": {"type": "string", "enum": ["max_tokens", "max_completion_tokens"]},
        "reasoning_effort": {"type": ["string", "null"], "enum": [None, "none", "minimal", "low", "medium", "high"]},
        "max_output_tokens": {"type": ["integer", "null"], "minimum": 1},
    },
    "additionalProperties": False,
}

MODELS_SCHEMA = {
    "type": "object",
    "additionalProperties": MODEL_CAPABILITY_SCHEMA,
}

STORE_SCHEMA = {
    "type": "object",
    "properties": {
        "backend": {"type": "string", "enum": ["memory", "fs", "postgres", "redis"]},
        "max_payload_bytes": {"type": "integer", "minimum": 1},
        "timeout": {"type": "number", "minimum": 0.1},
        # FS
        "data_dir": {"type": "string"},
        # Postgres
        "pg_dsn": {"type": "string"},
        "table": {"type": "string", "pattern": "^[A-Za-z_][A-Za-z0-9_]*$"},
        "pool_min_size": {"type": "integer", "minimum": 1},
        "pool_max_size": {"type": "integer", "minimum": 1},
        # Redis
        "redis_url": {"type": "string"},
        "key_prefix": {"type": "string"},
    },
    "required": ["backend"],
    "allOf": [
        {
            "if": {"properties": {"backend": {"const": "fs"}}},
            "then": {"required": ["data_dir"]},
        },
        {
            "if": {"properties": {"backend": {"const": "postgres"}}},
            "then": {"required": ["pg_dsn"]},
        },
        {
            "if": {"properties": {"backend": {"const": "redis"}}},
            "then": {"required": ["redis_url"]},
        },
    ],
}

GATEWAY_SCHEMA = {
    "type": "object",
    "properties": {
        "retry_temperature": {"type": "number", "minimum": 0.0},
        "max_system_prompt_chars": {"type": "integer", "minimum": 1},
        "max_input_chars": {"type": "integer", "minimum": 1},
        "max_tokens_limit": {"type": "integer", "minimum": 1},
        "max_model_chars": {"type": "integer", "minimum": 1},
        "attempt_timeout": {"type": ["number", "null"], "exclusiveMinimum": 0},
    },
    "additionalProperties": False,
}

LINKS_SCHEMA = {
    "type": "object",
    "properties": {
        "secret": {"type": ["string", "null"]},
        "default_ttl_seconds": {"type": "integer", "minimum": 1},
        "base_url": {"type": ["string", "null"]},
    },
    "additionalProperties": False,
}

SERVER_SCHEMA = {
    "type": "object",
    "properties": {
        "title": {"type": "string"},
        "allowed_origins": {
            "oneOf": [
                {"type": "array", "items": {"type": "string"}},
                {"type": "string"},
            ]
        },
        "kvs_prefix": {"type": "string", "pattern": "^/"},
        "askai_prefix": {"type": "string", "pattern": "^/"},
        "debug": {"type": "boolean"},
    },
    "additionalProperties": False,
}

LOGGING_SCHEMA = {
    "type": "object",
    "properties": {
        "level": {"type": "string", "enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]},
        "format": {"type": "string", "enum": ["text", "json"]},
        "log_file": {"type": ["string", "null"]},
        "log_requests": {"type": "boolean"},
        "log_responses": {"type": "boolean"},
        "log_store_operations": {"type": "boolean"},
        "redact_api_keys": {"type": "boolean"},
    },
}

CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "provider": PROVIDER_SCHEMA,
        "models": MODELS_SCHEMA,
        "store": STORE_SCHEMA,
        "gateway": GATEWAY_SCHEMA,
        "links": LINKS_SCHEMA,
        "server": SERVER_SCHEMA,
        "logging": LOGGING_SCHEMA,
    },
}

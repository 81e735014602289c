"""Database enums for the ranking schema."""

import enum


class ConfigTypeEnum(str, enum.Enum):
    """How a client_config value should be interpreted."""

    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    JSON = "json"

#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
import asyncio
import configparser
import logging
import os
from collections.abc import Awaitable, Callable, Mapping
from pathlib import Path
from typing import Any, ClassVar, Final, Literal

from .exceptions import SdkConfigurationError
from .identity import AWSIdentityProperties
from .retries import RetryPolicy

logger: Final = logging.getLogger(__name__)

SOURCE_CONSTRUCTOR = "constructor"
SOURCE_ENVIRONMENT = "environment"
SOURCE_CREDENTIALS_FILE = "credentials_file"
SOURCE_CONFIG_FILE = "config_file"
SOURCE_DEFAULT = "default"
SOURCE_IN_CODE_UPDATE = "in_code_update"

SourceType = Literal[
    "constructor",
    "environment",
    "credentials_file",
    "config_file",
    "default",
    "in_code_update",
]

_EXPLICIT_SOURCES = (SOURCE_CONSTRUCTOR, SOURCE_IN_CODE_UPDATE)


class ConfigValue:
    """Configuration value with metadata about its source"""

    def __init__(self, value: Any, source: SourceType):
        self.value = value
        self.source = source

    def __repr__(self) -> str:
        return f"ConfigValue(source={self.source!r})"


type Loader = Callable[[], Awaitable[Mapping[str, Any]]]


class SdkConfig:
    """
    SDK core configuration with precedence-based resolution.

    Each field is resolved from the first source that sets it, in this order:
    constructor argument, environment variable, config file (``~/.aws/config``),
    shared credentials file (``~/.aws/credentials``), then the field's default.
    The source of every resolved value is recorded and available through
    :py:meth:`get_config_value_object`.

    The constructor uses sentinel values (...) so that "not provided" can be told
    apart from "explicitly set to None".

    String values read from the environment or files are converted to the field's
    type by the field's ``converter``, then checked by its ``validator``.
    """

    CONFIG_FIELDS: ClassVar[dict[str, dict[str, Any]]] = {
        "aws_access_key_id": {
            "env_var": "AWS_ACCESS_KEY_ID",
            "config_key": "aws_access_key_id",
            "default": None,
            "type": str | None,
        },
        "aws_secret_access_key": {
            "env_var": "AWS_SECRET_ACCESS_KEY",
            "config_key": "aws_secret_access_key",
            "default": None,
            "type": str | None,
        },
        "aws_session_token": {
            "env_var": "AWS_SESSION_TOKEN",
            "config_key": "aws_session_token",
            "default": None,
            "type": str | None,
        },
        "profile": {
            "env_var": "AWS_PROFILE",
            "default": None,
            "type": str | None,
        },
        "shared_credentials_file": {
            "env_var": "AWS_SHARED_CREDENTIALS_FILE",
            "default": None,
            "type": str | None,
        },
        "max_attempts": {
            "env_var": "AWS_MAX_ATTEMPTS",
            "config_key": "max_attempts",
            "default": 4,
            "type": int,
            "converter": "_to_int",
            "validator": "_validate_max_attempts",
        },
        "reuse_last_provider_enabled": {
            "default": True,
            "type": bool,
        },
        "async_credential_update_enabled": {
            "default": False,
            "type": bool,
        },
        "ec2_metadata_disabled": {
            "env_var": "AWS_EC2_METADATA_DISABLED",
            "default": False,
            "type": bool,
            "converter": "_to_bool",
        },
        "ec2_metadata_service_endpoint": {
            "env_var": "AWS_EC2_METADATA_SERVICE_ENDPOINT",
            "config_key": "ec2_metadata_service_endpoint",
            "default": None,
            "type": str | None,
        },
        "ec2_metadata_service_endpoint_mode": {
            "env_var": "AWS_EC2_METADATA_SERVICE_ENDPOINT_MODE",
            "config_key": "ec2_metadata_service_endpoint_mode",
            "default": "IPv4",
            "validator": "_validate_endpoint_mode",
        },
    }

    def __init__(
        self,
        *,
        aws_access_key_id: str | None = ...,  # type: ignore[assignment]
        aws_secret_access_key: str | None = ...,  # type: ignore[assignment]
        aws_session_token: str | None = ...,  # type: ignore[assignment]
        profile: str | None = ...,  # type: ignore[assignment]
        shared_credentials_file: str | None = ...,  # type: ignore[assignment]
        max_attempts: int = ...,  # type: ignore[assignment]
        reuse_last_provider_enabled: bool = ...,  # type: ignore[assignment]
        async_credential_update_enabled: bool = ...,  # type: ignore[assignment]
        ec2_metadata_disabled: bool = ...,  # type: ignore[assignment]
        ec2_metadata_service_endpoint: str | None = ...,  # type: ignore[assignment]
        ec2_metadata_service_endpoint_mode: Literal["IPv4", "IPv6"] = ...,  # type: ignore[assignment]
    ):
        self._constructor_values = {
            k: v for k, v in locals().items() if k != "self" and v is not ...
        }
        self._resolved = False

    async def resolve(
        self,
        *,
        environment_loader: Loader | None = None,
        config_file_loader: Loader | None = None,
        credentials_file_loader: Loader | None = None,
    ) -> None:
        """Resolve configuration from all sources

        Args:
            environment_loader: Custom environment loader function
            config_file_loader: Custom config file loader function
            credentials_file_loader: Custom credentials file loader function
        """

        if self._resolved:
            raise RuntimeError(
                "Config has already been resolved. Multiple calls to resolve() are "
                "not allowed."
            )

        env_values = await (environment_loader or self._load_environment_values)()
        # The profile and credentials file location decide which file sections are
        # read, so they are resolved from the constructor and environment first.
        profile = self._constructor_values.get("profile") or env_values.get(
            "AWS_PROFILE"
        )
        credentials_file = self._constructor_values.get(
            "shared_credentials_file"
        ) or env_values.get("AWS_SHARED_CREDENTIALS_FILE")

        config_task = (
            config_file_loader
            or (lambda: self._load_config_file_values(env_values, profile))
        )()
        creds_task = (
            credentials_file_loader
            or (lambda: self._load_credentials_file_values(credentials_file, profile))
        )()
        config_file_values, credentials_file_values = await asyncio.gather(
            config_task, creds_task
        )

        for field_name, field_info in self.CONFIG_FIELDS.items():
            resolved_value = self._resolve_field(
                field_name,
                self._constructor_values,
                env_values,
                config_file_values,
                credentials_file_values,
                field_info["default"],
                field_info.get("validator"),
            )
            logger.debug(
                "Resolved config value %s from %s", field_name, resolved_value.source
            )
            setattr(self, f"_{field_name}", resolved_value)

        self._resolved = True

    async def _load_environment_values(self) -> Mapping[str, str]:
        return os.environ

    async def _load_config_file_values(
        self, env_values: Mapping[str, Any], profile: str | None
    ) -> dict[str, Any]:
        def _read_config() -> dict[str, str]:
            config_path = Path(
                env_values.get("AWS_CONFIG_FILE") or Path.home() / ".aws" / "config"
            ).expanduser()
            if not config_path.exists():
                return {}

            parser = configparser.ConfigParser(interpolation=None)
            parser.read(config_path)

            profile_name = profile or "default"
            section_name = (
                f"profile {profile_name}" if profile_name != "default" else "default"
            )

            if section_name not in parser:
                return {}

            return dict(parser[section_name])

        return await asyncio.to_thread(_read_config)

    async def _load_credentials_file_values(
        self, credentials_file: str | None, profile: str | None
    ) -> dict[str, Any]:
        def _read_credentials() -> dict[str, str]:
            credentials_path = Path(
                credentials_file or Path.home() / ".aws" / "credentials"
            ).expanduser()
            if not credentials_path.exists():
                return {}

            parser = configparser.ConfigParser(interpolation=None)
            parser.read(credentials_path)

            profile_name = profile or "default"

            if profile_name not in parser:
                return {}

            return dict(parser[profile_name])

        return await asyncio.to_thread(_read_credentials)

    def _resolve_field(
        self,
        field_name: str,
        constructor_values: Mapping[str, Any],
        env_values: Mapping[str, Any],
        config_file_values: Mapping[str, Any],
        credentials_file_values: Mapping[str, Any],
        default_value: Any,
        validator: str | None,
    ) -> ConfigValue:
        field_config = self.CONFIG_FIELDS.get(field_name, {})
        env_var = field_config.get("env_var")
        config_key = field_config.get("config_key")
        converter = field_config.get("converter")

        if field_name in constructor_values:
            value = constructor_values[field_name]
            source = SOURCE_CONSTRUCTOR
        elif env_var and env_var in env_values:
            value = env_values[env_var]
            source = SOURCE_ENVIRONMENT
        elif config_key and config_key in config_file_values:
            value = config_file_values[config_key]
            source = SOURCE_CONFIG_FILE
        elif config_key and config_key in credentials_file_values:
            value = credentials_file_values[config_key]
            source = SOURCE_CREDENTIALS_FILE
        else:
            value = default_value
            source = SOURCE_DEFAULT

        if converter and isinstance(value, str):
            value = getattr(self, converter)(value, field_name)

        if validator:
            getattr(self, validator)(value, field_name)
        else:
            expected_type = field_config["type"]
            if not isinstance(value, expected_type):
                actual_name = type(value).__name__
                expected_name = getattr(expected_type, "__name__", str(expected_type))
                raise TypeError(
                    f"{field_name} must be {expected_name}, got {actual_name}"
                )

        return ConfigValue(value, source)

    def _to_int(self, value: str, field_name: str) -> int:
        try:
            return int(value)
        except ValueError as e:
            raise SdkConfigurationError(
                f"{field_name} must be an integer, got {value!r}"
            ) from e

    def _to_bool(self, value: str, field_name: str) -> bool:
        match value.strip().lower():
            case "true":
                return True
            case "false":
                return False
            case _:
                raise SdkConfigurationError(
                    f"{field_name} must be true or false, got {value!r}"
                )

    def _validate_max_attempts(self, value: Any, field_name: str) -> None:
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"{field_name} must be int, got {type(value).__name__}")
        if value < 1:
            raise SdkConfigurationError(f"{field_name} must be at least 1, got {value}")

    def _validate_endpoint_mode(self, value: Any, field_name: str) -> None:
        if value not in ("IPv4", "IPv6"):
            raise SdkConfigurationError(
                f"{field_name} must be IPv4 or IPv6, got {value!r}"
            )

    def get_config_value_object(self, field_name: str) -> ConfigValue:
        """Get the raw ConfigValue object for a field"""
        if not self._resolved:
            raise RuntimeError("Config must be resolved before accessing values")
        return getattr(self, f"_{field_name}")

    def identity_properties(self) -> AWSIdentityProperties:
        """Credentials passed explicitly to the constructor or set in code.

        Credentials read from the environment or files are left to the matching
        resolvers in the credentials chain.
        """
        properties = AWSIdentityProperties()
        for field_name, key in (
            ("aws_access_key_id", "access_key_id"),
            ("aws_secret_access_key", "secret_access_key"),
            ("aws_session_token", "session_token"),
        ):
            config_value = self.get_config_value_object(field_name)
            if config_value.source in _EXPLICIT_SOURCES:
                properties[key] = config_value.value
        return properties

    def retry_policy(self) -> RetryPolicy:
        """A retry policy allowing ``max_attempts`` total attempts."""
        return RetryPolicy(num_retries=self.max_attempts - 1)

    @property
    def aws_access_key_id(self) -> str | None:
        return self.get_config_value_object("aws_access_key_id").value

    @aws_access_key_id.setter
    def aws_access_key_id(self, value: str | None) -> None:
        self._aws_access_key_id = ConfigValue(value, SOURCE_IN_CODE_UPDATE)

    @property
    def aws_secret_access_key(self) -> str | None:
        return self.get_config_value_object("aws_secret_access_key").value

    @aws_secret_access_key.setter
    def aws_secret_access_key(self, value: str | None) -> None:
        self._aws_secret_access_key = ConfigValue(value, SOURCE_IN_CODE_UPDATE)

    @property
    def aws_session_token(self) -> str | None:
        return self.get_config_value_object("aws_session_token").value

    @aws_session_token.setter
    def aws_session_token(self, value: str | None) -> None:
        self._aws_session_token = ConfigValue(value, SOURCE_IN_CODE_UPDATE)

    @property
    def profile(self) -> str | None:
        return self.get_config_value_object("profile").value

    @profile.setter
    def profile(self, value: str | None) -> None:
        self._profile = ConfigValue(value, SOURCE_IN_CODE_UPDATE)

    @property
    def shared_credentials_file(self) -> str | None:
        return self.get_config_value_object("shared_credentials_file").value

    @shared_credentials_file.setter
    def shared_credentials_file(self, value: str | None) -> None:
        self._shared_credentials_file = ConfigValue(value, SOURCE_IN_CODE_UPDATE)

    @property
    def max_attempts(self) -> int:
        return self.get_config_value_object("max_attempts").value

    @max_attempts.setter
    def max_attempts(self, value: int) -> None:
        self._validate_max_attempts(value, "max_attempts")
        self._max_attempts = ConfigValue(value, SOURCE_IN_CODE_UPDATE)

    @property
    def reuse_last_provider_enabled(self) -> bool:
        return self.get_config_value_object("reuse_last_provider_enabled").value

    @reuse_last_provider_enabled.setter
    def reuse_last_provider_enabled(self, value: bool) -> None:
        self._reuse_last_provider_enabled = ConfigValue(value, SOURCE_IN_CODE_UPDATE)

    @property
    def async_credential_update_enabled(self) -> bool:
        return self.get_config_value_object("async_credential_update_enabled").value

    @async_credential_update_enabled.setter
    def async_credential_update_enabled(self, value: bool) -> None:
        self._async_credential_update_enabled = ConfigValue(
            value, SOURCE_IN_CODE_UPDATE
        )

    @property
    def ec2_metadata_disabled(self) -> bool:
        return self.get_config_value_object("ec2_metadata_disabled").value

    @ec2_metadata_disabled.setter
    def ec2_metadata_disabled(self, value: bool) -> None:
        self._ec2_metadata_disabled = ConfigValue(value, SOURCE_IN_CODE_UPDATE)

    @property
    def ec2_metadata_service_endpoint(self) -> str | None:
        return self.get_config_value_object("ec2_metadata_service_endpoint").value

    @ec2_metadata_service_endpoint.setter
    def ec2_metadata_service_endpoint(self, value: str | None) -> None:
        self._ec2_metadata_service_endpoint = ConfigValue(value, SOURCE_IN_CODE_UPDATE)

    @property
    def ec2_metadata_service_endpoint_mode(self) -> Literal["IPv4", "IPv6"]:
        return self.get_config_value_object("ec2_metadata_service_endpoint_mode").value

    @ec2_metadata_service_endpoint_mode.setter
    def ec2_metadata_service_endpoint_mode(
        self, value: Literal["IPv4", "IPv6"]
    ) -> None:
        self._validate_endpoint_mode(value, "ec2_metadata_service_endpoint_mode")
        self._ec2_metadata_service_endpoint_mode = ConfigValue(
            value, SOURCE_IN_CODE_UPDATE
        )

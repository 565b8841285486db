"""
Configuration manager with JSON schema validation

Loads the devkit configuration from a YAML or JSON file, applies
environment variable overrides and validates the result before turning
it into typed dataclasses.

Design Notes:
- jsonschema (Draft 7) validation with every error reported at once
- STARKNET_DEVKIT_* environment overrides for CI
- Network names resolve to gateway / feeder gateway URLs; alpha and
  alpha-mainnet are always available
- The CLI runs either from a venv or from a Docker image, never both
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import jsonschema
import yaml

from .exceptions import ConfigurationError, ErrorCodes

LOG = logging.getLogger(__name__)

ENV_PREFIX = "STARKNET_DEVKIT_"
DEFAULT_NETWORK = "alpha"
DEFAULT_ARTIFACTS_PATH = "starknet-artifacts"
DEFAULT_DOCKERIZED_VERSION = "0.8.1"
STATUS_QUERY_KINDS = ("cli", "feeder_gateway")

BUILTIN_NETWORKS = {
    "alpha": "https://alpha4.starknet.io",
    "alpha-mainnet": "https://alpha-mainnet.starknet.io",
}

_NULLABLE_NUMBER = {"type": ["number", "null"], "exclusiveMinimum": 0}

CONFIG_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "starknet": {
            "type": "object",
            "properties": {
                "dockerized_version": {"type": ["string", "null"], "minLength": 1},
                "venv": {"type": ["string", "null"], "minLength": 1},
                "network": {"type": "string", "minLength": 1},
                "artifacts_path": {"type": "string", "minLength": 1},
                "poll_interval": {"type": "number", "exclusiveMinimum": 0},
                "max_poll_attempts": {"type": ["integer", "null"], "minimum": 1},
                "poll_timeout": _NULLABLE_NUMBER,
                "status_query": {"enum": list(STATUS_QUERY_KINDS)},
            },
            "additionalProperties": False,
        },
        "networks": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "properties": {
                    "url": {"type": "string", "minLength": 1},
                    "gateway_url": {"type": "string", "minLength": 1},
                    "feeder_gateway_url": {"type": "string", "minLength": 1},
                },
                "anyOf": [
                    {"required": ["url"]},
                    {"required": ["gateway_url", "feeder_gateway_url"]},
                ],
            },
        },
    },
}

# Environment variable suffix -> key of the "starknet" section
ENV_OVERRIDES = {
    "NETWORK": "network",
    "VENV": "venv",
    "DOCKERIZED_VERSION": "dockerized_version",
    "ARTIFACTS_PATH": "artifacts_path",
    "POLL_INTERVAL": "poll_interval",
}


@dataclass
class NetworkConfig:
    """Endpoints of one StarkNet network"""
    name: str
    gateway_url: str
    feeder_gateway_url: str


@dataclass
class StarknetConfig:
    """Validated devkit configuration"""
    network: NetworkConfig
    venv: Optional[str] = None
    dockerized_version: Optional[str] = None
    artifacts_path: str = DEFAULT_ARTIFACTS_PATH
    poll_interval: float = 1.0
    max_poll_attempts: Optional[int] = None
    poll_timeout: Optional[float] = None
    status_query: str = "cli"
    networks: Dict[str, NetworkConfig] = field(default_factory=dict)

    @property
    def uses_docker(self) -> bool:
        return self.venv is None


class ConfigManager:
    """
    Loads and validates devkit configuration.

    Usage:
        config = ConfigManager().load("starknet-devkit.yaml")
        runtime = StarknetRuntime(config)
    """

    def __init__(self, environ: Optional[Dict[str, str]] = None):
        """
        Args:
            environ: Environment to read overrides from (default: os.environ)
        """
        self.environ = os.environ if environ is None else environ

    def load(self, path: Optional[Union[str, Path]] = None, network: Optional[str] = None) -> StarknetConfig:
        """
        Load a configuration file.

        Args:
            path: YAML or JSON file; None means defaults plus environment
            network: Overrides the configured network name

        Raises:
            ConfigurationError: File missing, unparsable or invalid
        """
        raw: Dict[str, Any] = {}
        if path is not None:
            raw = self._read_file(Path(path))
        return self.build(raw, network=network, config_file=str(path) if path is not None else None)

    def build(
        self,
        raw: Dict[str, Any],
        network: Optional[str] = None,
        config_file: Optional[str] = None
    ) -> StarknetConfig:
        """Apply overrides to an already parsed configuration and validate it"""
        config = self._apply_env_overrides(raw)
        if network is not None:
            config.setdefault("starknet", {})["network"] = network

        errors = self.validate(config)
        if errors:
            error_msg = "Configuration validation failed:\n"
            error_msg += "\n".join(f"  - {error}" for error in errors)
            raise ConfigurationError(
                error_msg,
                config_file=config_file,
                code=ErrorCodes.CONFIG_VALIDATION_FAILED,
                details={"errors": errors}
            )

        return self._to_config(config, config_file)

    def validate(self, config: Dict[str, Any]) -> List[str]:
        """Validate against CONFIG_SCHEMA, returning error messages"""
        validator = jsonschema.Draft7Validator(CONFIG_SCHEMA)
        errors = []
        for error in sorted(validator.iter_errors(config), key=lambda e: [str(p) for p in e.path]):
            if error.path:
                path = " -> ".join(str(p) for p in error.path)
                errors.append(f"'{path}' {error.message}")
            else:
                errors.append(str(error.message))
        return errors

    def _read_file(self, config_file: Path) -> Dict[str, Any]:
        if not config_file.exists():
            raise ConfigurationError(
                f"Configuration file not found: {config_file}",
                config_file=str(config_file),
                code=ErrorCodes.CONFIG_FILE_NOT_FOUND
            )

        try:
            with open(config_file, 'r') as f:
                if config_file.suffix in (".yaml", ".yml"):
                    config = yaml.safe_load(f)
                else:
                    config = json.load(f)
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationError(
                f"Invalid configuration file {config_file}: {e}",
                config_file=str(config_file),
                code=ErrorCodes.CONFIG_VALIDATION_FAILED,
                cause=e
            )

        if config is None:
            return {}
        if not isinstance(config, dict):
            raise ConfigurationError(
                f"Configuration file {config_file} must contain a mapping",
                config_file=str(config_file),
                code=ErrorCodes.CONFIG_VALIDATION_FAILED
            )
        return config

    def _get_env_override(self, key: str, default: Any = None) -> Any:
        """Get environment variable override"""
        env_value = self.environ.get(f"{ENV_PREFIX}{key}")
        if env_value is None:
            return default
        # Try to parse as JSON first
        try:
            return json.loads(env_value)
        except json.JSONDecodeError:
            return env_value

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        # Deep copy to avoid modifying the caller's dict
        result = json.loads(json.dumps(config))
        starknet = result.setdefault("starknet", {})
        if not isinstance(starknet, dict):
            return result

        for env_key, config_key in ENV_OVERRIDES.items():
            value = self._get_env_override(env_key, starknet.get(config_key))
            if value is not None:
                if config_key != "poll_interval" and not isinstance(value, str):
                    # Versions and paths stay strings even when they parse as JSON
                    value = str(value)
                starknet[config_key] = value
        return result

    def _to_config(self, config: Dict[str, Any], config_file: Optional[str]) -> StarknetConfig:
        starknet = config.get("starknet", {})
        venv = starknet.get("venv")
        dockerized_version = starknet.get("dockerized_version")

        if venv is not None and dockerized_version is not None:
            raise ConfigurationError(
                "Error in config file. Only one of (starknet.dockerized_version, starknet.venv) can be specified.",
                config_file=config_file,
                field="starknet"
            )
        if venv is None and dockerized_version is None:
            dockerized_version = DEFAULT_DOCKERIZED_VERSION

        networks = {name: NetworkConfig(name, url, url) for name, url in BUILTIN_NETWORKS.items()}
        for name, entry in config.get("networks", {}).items():
            networks[name] = NetworkConfig(
                name=name,
                gateway_url=entry.get("gateway_url", entry.get("url")),
                feeder_gateway_url=entry.get("feeder_gateway_url", entry.get("url")),
            )

        network_name = starknet.get("network", DEFAULT_NETWORK)
        if network_name not in networks:
            raise ConfigurationError(
                f"Unknown network: {network_name}. Available networks: {', '.join(sorted(networks))}",
                config_file=config_file,
                field="starknet.network",
                code=ErrorCodes.UNKNOWN_NETWORK
            )

        LOG.debug(f"Using network {network_name}: {networks[network_name].gateway_url}")
        return StarknetConfig(
            network=networks[network_name],
            venv=venv,
            dockerized_version=dockerized_version if venv is None else None,
            artifacts_path=starknet.get("artifacts_path", DEFAULT_ARTIFACTS_PATH),
            poll_interval=float(starknet.get("poll_interval", 1.0)),
            max_poll_attempts=starknet.get("max_poll_attempts"),
            poll_timeout=starknet.get("poll_timeout"),
            status_query=starknet.get("status_query", "cli"),
            networks=networks,
        )

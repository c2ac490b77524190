"""Harness configuration.

Values come from defaults, then an optional YAML file, then ``WKO_E2E_*``
environment variables (highest precedence).
"""

import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Mapping

import yaml

from .exceptions import ConfigurationError
from .poller import Backoff, PollPolicy

ENV_PREFIX = "WKO_E2E_"


@dataclass(frozen=True)
class HarnessConfig:
    """Settings shared by every scenario of a test session."""

    namespace: str = "default"
    kubeconfig: str | None = None
    scripts_dir: str = "kubernetes/samples"

    # Images
    db_image: str = "container-registry.oracle.com/database/enterprise:12.2.0.1-slim"
    fmw_image: str = "container-registry.oracle.com/middleware/fmw-infrastructure:12.2.1.4"
    domain_image: str | None = None  # WebLogic image with a domain home, for domain scenarios

    # RCU defaults
    rcu_namespace: str = "rcu"
    rcu_schema_username: str = "myrcuuser"
    rcu_schema_password: str = field(default="Oradoc_db1", repr=False)
    rcu_sys_username: str = "sys"
    rcu_sys_password: str = field(default="Oradoc_db1", repr=False)

    # Polling defaults
    poll_interval: float = 10.0
    poll_timeout: float = 600.0
    poll_backoff: str = "fixed"
    poll_max_interval: float | None = None
    poll_jitter: float = 0.0

    log_level: str = "INFO"

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "HarnessConfig":
        """Build a config from plain values, converting types.

        Raises:
            ConfigurationError: On unknown keys or unconvertible values
        """
        known = {f.name: f for f in fields(cls)}
        unknown = sorted(set(values) - set(known))
        if unknown:
            raise ConfigurationError(f"unknown configuration keys: {', '.join(unknown)}")

        converted = {}
        for key, value in values.items():
            converted[key] = _convert(key, value, known[key].default)
        config = cls(**converted)
        config.default_policy()  # fail fast on bad polling settings
        config.logging_level()
        return config

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "HarnessConfig":
        return cls.load(None, environ)

    @classmethod
    def from_file(cls, path: str | Path) -> "HarnessConfig":
        return cls.from_mapping(_read_yaml(Path(path)))

    @classmethod
    def load(
        cls, path: str | Path | None = None, environ: Mapping[str, str] | None = None
    ) -> "HarnessConfig":
        """Defaults, then the YAML file (if any), then environment overrides."""
        environ = os.environ if environ is None else environ
        values: dict[str, Any] = _read_yaml(Path(path)) if path else {}
        if environ.get("KUBECONFIG") and "kubeconfig" not in values:
            values["kubeconfig"] = environ["KUBECONFIG"]
        for f in fields(cls):
            env_name = ENV_PREFIX + f.name.upper()
            if env_name in environ:
                values[f.name] = environ[env_name]
        return cls.from_mapping(values)

    def with_overrides(self, **overrides: Any) -> "HarnessConfig":
        """Copy with the given non-None values replaced."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def default_policy(self) -> PollPolicy:
        return self.policy()

    def policy(self, **overrides: Any) -> PollPolicy:
        """A validated PollPolicy built from the polling defaults.

        Args:
            **overrides: PollPolicy fields to replace (e.g. ``timeout=120``)

        Raises:
            ConfigurationError: If the resulting policy is invalid
        """
        try:
            backoff = Backoff(self.poll_backoff)
        except ValueError:
            raise ConfigurationError(f"unknown poll_backoff {self.poll_backoff!r}") from None
        policy = PollPolicy(
            interval=self.poll_interval,
            timeout=self.poll_timeout,
            backoff=backoff,
            max_interval=self.poll_max_interval,
            jitter=self.poll_jitter,
        )
        return replace(policy, **overrides).validate()

    def logging_level(self) -> int:
        """Numeric level for ``log_level`` (a name such as ``DEBUG``)."""
        level = logging.getLevelName(str(self.log_level).upper())
        if not isinstance(level, int):
            raise ConfigurationError(f"unknown log_level {self.log_level!r}")
        return level

    def configure_logging(self) -> None:
        """Apply ``log_level`` to every harness logger."""
        logging.getLogger("wko_e2e").setLevel(self.logging_level())

    def as_dict(self) -> dict[str, Any]:
        """Settings without secrets, for logging."""
        data = asdict(self)
        for key in ("rcu_schema_password", "rcu_sys_password"):
            data[key] = "***"
        return data


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text())
    except OSError as e:
        raise ConfigurationError(f"cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"invalid YAML in {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"config file {path} must contain a mapping")
    return data


def _convert(key: str, value: Any, default: Any) -> Any:
    if value is None:
        return None
    try:
        if key in ("poll_interval", "poll_timeout", "poll_max_interval", "poll_jitter"):
            return float(value)
        if isinstance(default, str) or default is None:
            return str(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"invalid value for {key}: {value!r}") from e
    return value

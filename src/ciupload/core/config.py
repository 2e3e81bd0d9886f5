"""Configuration for ciupload runs."""

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
import os

import yaml


CONFIG_ENV_VAR = "CIUPLOAD_CONFIG"
DEFAULT_CONFIG_NAME = ".ciupload.yaml"

SUPPORTED_SERVICES = ("github", "gitlab")

# Config file keys mirror the command line flags
_FILE_KEYS = {
    "suffix": ("release_suffix", str),
    "relbody": ("release_body", str),
    "preponly": ("prep_only", bool),
    "verbose": ("verbose", bool),
}
_OVERRIDE_FILE_KEYS = {
    "upload_to_service": "service",
    "upload_to_repo": "repo",
    "upload_to_repo_owner": "owner",
    "upload_auth_token": "token",
}


class ConfigurationError(Exception):
    """Invalid configuration."""

    pass


@dataclass
class OverrideOptions:
    """Values that take precedence over those found in the CI environment."""

    service: str = ""
    repo: str = ""
    owner: str = ""
    token: str = ""

    def any_set(self) -> bool:
        return any(getattr(self, f.name) for f in fields(self))


@dataclass
class UploadConfig:
    """Configuration for a single upload run."""

    filenames: list[str] = field(default_factory=list)
    release_suffix: str = ""
    release_body: str = ""
    prep_only: bool = False
    verbose: bool = False
    overrides: OverrideOptions = field(default_factory=OverrideOptions)

    @classmethod
    def from_file(cls, path: Path) -> "UploadConfig":
        """Load configuration from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")

        unknown = set(data) - set(_FILE_KEYS) - set(_OVERRIDE_FILE_KEYS)
        if unknown:
            raise ConfigurationError(
                f"Unknown keys in config file {path}: {', '.join(sorted(unknown))}"
            )

        values = {}
        for key, (attr, expected) in _FILE_KEYS.items():
            # An empty value keeps the default
            if data.get(key) is None:
                continue
            if not isinstance(data[key], expected):
                raise ConfigurationError(
                    f"Config key '{key}' in {path} must be a {expected.__name__}, "
                    f"got {data[key]!r}"
                )
            values[attr] = data[key]

        overrides = {
            attr: str(data[key])
            for key, attr in _OVERRIDE_FILE_KEYS.items()
            if data.get(key)
        }
        config = cls(overrides=OverrideOptions(**overrides), **values)
        config.validate()
        return config

    def merged(self, **values) -> "UploadConfig":
        """Return a copy with the given non-empty values taking precedence.

        Override values may be passed by their option names (service, repo,
        owner, token).
        """
        override_names = {f.name for f in fields(OverrideOptions)}
        overrides = {
            k: v for k, v in values.items() if k in override_names and v
        }
        own = {
            k: v
            for k, v in values.items()
            if k not in override_names and v not in (None, "", (), [], False)
        }
        if "filenames" in own:
            own["filenames"] = list(own["filenames"])

        config = replace(
            self,
            overrides=replace(self.overrides, **overrides),
            **own,
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Ensure the configuration is usable."""
        service = self.overrides.service
        if service and service not in SUPPORTED_SERVICES:
            raise ConfigurationError(
                f"Unsupported service '{service}', "
                f"expected one of: {', '.join(SUPPORTED_SERVICES)}"
            )


def default_config_path() -> Path:
    """Get the config file path, honouring CIUPLOAD_CONFIG."""
    return Path(os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_NAME))


def load_config(path: Path | None = None) -> UploadConfig:
    """Load the run configuration.

    An explicitly given file must exist; the default one is optional.
    """
    if path is not None:
        if not path.exists():
            raise ConfigurationError(f"Config file {path} does not exist")
        return UploadConfig.from_file(path)

    path = default_config_path()
    if path.exists():
        return UploadConfig.from_file(path)
    return UploadConfig()

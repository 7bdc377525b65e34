"""
Connection Configuration
========================

Typed connection configuration shared by every table of one execution
context.

A configuration can be built from keyword arguments, from a plain mapping
(validated), or from the ``[connection]`` table of a TOML file. Values that
are left unset fall back to the process environment when credentials and
regions are resolved.

Example
-------
>>> from inventory_genie.core.config import ConnectionConfig
>>>
>>> config = ConnectionConfig.from_file("inventory-genie.toml")
>>> config = config.merged(regions=["eu-west-1"], max_workers=4)

A configuration file looks like::

    [connection]
    profile = "audit"
    regions = ["us-east-1", "eu-west-1"]
    ignore_error_codes = ["AccessDenied", "UnauthorizedOperation"]
    max_workers = 8
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from inventory_genie.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 10
DEFAULT_RATE_LIMIT_PER_SECOND = 50.0
DEFAULT_RATE_LIMIT_BURST = 50


@dataclass(frozen=True)
class ConnectionConfig:
    """
    Connection configuration for one execution context.

    Parameters
    ----------
    profile : str, optional
        Named AWS CLI profile. Takes precedence over every key source.
    access_key : str, optional
        Static access key id.
    secret_key : str, optional
        Static secret access key.
    session_token : str, optional
        Session token; makes the key pair an STS-style credential.
    regions : list of str
        Regions a matrix table fans out to. The first entry is the default
        region.
    ignore_error_codes : list of str
        Error-code substrings whose errors are silently dropped from query
        results.
    max_workers : int, default=10
        Thread pool size for region fan-out.
    rate_limit_per_second : float, default=50.0
        Token refill rate of each (service, action) rate-limit bucket.
    rate_limit_burst : int, default=50
        Bucket capacity.
    """

    profile: Optional[str] = None
    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    session_token: Optional[str] = None
    regions: List[str] = field(default_factory=list)
    ignore_error_codes: List[str] = field(default_factory=list)
    max_workers: int = DEFAULT_MAX_WORKERS
    rate_limit_per_second: float = DEFAULT_RATE_LIMIT_PER_SECOND
    rate_limit_burst: int = DEFAULT_RATE_LIMIT_BURST

    def __post_init__(self) -> None:
        if self.max_workers < 1:
            raise ConfigError(
                "max_workers must be at least 1",
                details={"max_workers": self.max_workers},
            )
        if self.rate_limit_per_second <= 0 or self.rate_limit_burst < 1:
            raise ConfigError(
                "rate limit must be positive",
                details={
                    "rate_limit_per_second": self.rate_limit_per_second,
                    "rate_limit_burst": self.rate_limit_burst,
                },
            )

    # =========================================================================
    # Constructors
    # =========================================================================

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> ConnectionConfig:
        """
        Build a configuration from a plain mapping.

        Parameters
        ----------
        mapping : Mapping
            Keys are field names. ``None`` values are treated as unset.

        Returns
        -------
        ConnectionConfig
            The validated configuration.

        Raises
        ------
        ConfigError
            If a key is unknown or a value has the wrong type.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(mapping) - known)
        if unknown:
            raise ConfigError(
                f"Unknown connection option(s): {', '.join(unknown)}",
                details={"allowed": sorted(known)},
            )

        values: Dict[str, Any] = {}
        for key, value in mapping.items():
            if value is None:
                continue
            values[key] = _coerce(key, value)
        return cls(**values)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> ConnectionConfig:
        """
        Load the ``[connection]`` table of a TOML file.

        Raises
        ------
        ConfigError
            If the file is missing, is not valid TOML, or holds invalid
            options.
        """
        path = Path(path)
        try:
            with path.open("rb") as handle:
                data = tomllib.load(handle)
        except FileNotFoundError as e:
            raise ConfigError(
                f"Configuration file not found: {path}",
                details={"path": str(path)},
            ) from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(
                f"Invalid TOML in {path}: {e}",
                details={"path": str(path)},
            ) from e

        section = data.get("connection", {})
        if not isinstance(section, dict):
            raise ConfigError(
                "[connection] must be a table",
                details={"path": str(path)},
            )
        logger.debug(f"Loaded connection config from {path}")
        return cls.from_mapping(section)

    def merged(self, **overrides: Any) -> ConnectionConfig:
        """
        Return a copy with every non-``None`` override applied.

        Empty lists count as unset so that a CLI option that was not given
        does not clear a configured list.
        """
        values = {
            key: _coerce(key, value)
            for key, value in overrides.items()
            if value is not None and value != [] and value != ()
        }
        try:
            return replace(self, **values)
        except TypeError as e:
            raise ConfigError(f"Invalid connection option: {e}") from e

    @property
    def default_region_hint(self) -> Optional[str]:
        """The configured default region, if any."""
        return self.regions[0] if self.regions else None

    def __repr__(self) -> str:
        return (
            f"ConnectionConfig(profile={self.profile!r}, "
            f"access_key={'***' if self.access_key else None}, "
            f"regions={self.regions!r}, "
            f"max_workers={self.max_workers})"
        )


_LIST_FIELDS = {"regions", "ignore_error_codes"}
_STR_FIELDS = {"profile", "access_key", "secret_key", "session_token"}


def _coerce(key: str, value: Any) -> Any:
    if key in _LIST_FIELDS:
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, (list, tuple)) or not all(
            isinstance(item, str) for item in value
        ):
            raise ConfigError(
                f"'{key}' must be a list of strings",
                details={key: value},
            )
        return [item.strip() for item in value if item.strip()]

    if key in _STR_FIELDS:
        if not isinstance(value, str):
            raise ConfigError(f"'{key}' must be a string", details={key: value})
        return value.strip() or None

    if key in ("max_workers", "rate_limit_burst"):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"'{key}' must be an integer", details={key: value})
        return value

    if key == "rate_limit_per_second":
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"'{key}' must be a number", details={key: value})
        return float(value)

    return value


__all__ = ["ConnectionConfig"]

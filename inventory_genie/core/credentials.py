"""
Credential Resolution
=====================

Determines the effective AWS identity for an execution context and memoizes
it.

Precedence (first satisfied source wins):

1. ``profile`` from the connection config
2. a profile named by ``AWS_PROFILE``, ``AWS_DEFAULT_PROFILE`` or
   ``AWS_VAULT``
3. ``access_key``/``secret_key`` (and optional ``session_token``) from the
   connection config, each field falling back to its environment synonyms
4. otherwise a :class:`CredentialsError`

A key pair with a session token becomes an STS-style credential; without one
it is a plain static access key.

Classes
-------
KeyMaterial
    The three pieces of key material read from one frozen snapshot.
CredentialConfig
    Resolved credential plus the default region.
CredentialCache
    Single-flight memoized accessor, one per execution context.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, NamedTuple, Optional, Sequence

import boto3
from botocore.credentials import Credentials
from botocore.exceptions import ProfileNotFound

from inventory_genie.core.cache import SingleFlightCache
from inventory_genie.core.config import ConnectionConfig
from inventory_genie.core.exceptions import CredentialMaterialError, CredentialsError

logger = logging.getLogger(__name__)

PROFILE_ENV_VARS = ("AWS_PROFILE", "AWS_DEFAULT_PROFILE", "AWS_VAULT")
ACCESS_KEY_ENV_VARS = ("AWS_ACCESS_KEY_ID", "AWS_ACCESS_KEY", "EC2_ACCESS_KEY")
SECRET_KEY_ENV_VARS = ("AWS_SECRET_ACCESS_KEY", "AWS_SECRET_KEY", "EC2_SECRET_KEY")
SESSION_TOKEN_ENV_VARS = (
    "AWS_SESSION_TOKEN",
    "AWS_SECURITY_TOKEN",
    "EC2_SECURITY_TOKEN",
)

SOURCE_PROFILE = "profile"
SOURCE_ACCESS_KEY = "access_key"
SOURCE_STS = "sts"


class KeyMaterial(NamedTuple):
    """Access key id, secret and optional session token of one snapshot."""

    access_key_id: str
    secret_access_key: str
    session_token: Optional[str]


@dataclass(frozen=True)
class CredentialConfig:
    """
    A resolved credential and the default region it was resolved with.

    Attributes
    ----------
    credentials : botocore.credentials.Credentials
        Signer exposing the key material. Profile-based credentials may be
        refreshable.
    default_region : str
        Default region of the execution context.
    source : str
        ``profile``, ``access_key`` or ``sts``.
    """

    credentials: Credentials
    default_region: str
    source: str

    def _frozen(self, field: str) -> Any:
        try:
            return self.credentials.get_frozen_credentials()
        except Exception as e:
            raise CredentialMaterialError(
                f"Failed to read {field} from {self.source} credentials: {e}",
                field=field,
            ) from e

    def _access_key_id(self, frozen: Any) -> str:
        if not frozen.access_key:
            raise CredentialMaterialError(
                f"{self.source} credentials have no access key id",
                field="access_key_id",
            )
        return frozen.access_key

    def _secret_access_key(self, frozen: Any) -> str:
        if not frozen.secret_key:
            raise CredentialMaterialError(
                f"{self.source} credentials have no secret access key",
                field="secret_access_key",
            )
        return frozen.secret_key

    def key_material(self) -> KeyMaterial:
        """
        Return all three pieces of key material from one frozen snapshot.

        Refreshable credentials may rotate between two reads. All three
        values returned here belong to the same generation.

        Raises
        ------
        CredentialMaterialError
            With the field that could not be read. A failure to freeze the
            credential at all is reported against ``access_key_id``, the
            first field read.
        """
        frozen = self._frozen("access_key_id")
        return KeyMaterial(
            access_key_id=self._access_key_id(frozen),
            secret_access_key=self._secret_access_key(frozen),
            session_token=frozen.token or None,
        )

    def access_key_id(self) -> str:
        """
        Return the access key id.

        Raises
        ------
        CredentialMaterialError
            With ``field="access_key_id"`` if it cannot be read.
        """
        return self._access_key_id(self._frozen("access_key_id"))

    def secret_access_key(self) -> str:
        """
        Return the secret access key.

        Raises
        ------
        CredentialMaterialError
            With ``field="secret_access_key"`` if it cannot be read.
        """
        return self._secret_access_key(self._frozen("secret_access_key"))

    def session_token(self) -> Optional[str]:
        """Return the session token, or None for a static key pair."""
        return self._frozen("session_token").token or None

    def __repr__(self) -> str:
        return (
            f"CredentialConfig(source={self.source!r}, "
            f"default_region={self.default_region!r})"
        )


def _first_env(environ: Mapping[str, str], names: Sequence[str]) -> Optional[str]:
    for name in names:
        value = environ.get(name)
        if value:
            return value
    return None


def _profile_credentials(profile: str) -> Credentials:
    try:
        session = boto3.session.Session(profile_name=profile)
        credentials = session.get_credentials()
    except ProfileNotFound as e:
        raise CredentialsError(
            f"AWS profile '{profile}' not found",
            details={
                "profile": profile,
                "hint": "Check ~/.aws/config and ~/.aws/credentials",
            },
        ) from e

    if credentials is None:
        raise CredentialsError(
            f"AWS profile '{profile}' has no credentials",
            details={"profile": profile},
        )
    return credentials


def resolve_credentials(
    config: ConnectionConfig,
    environ: Mapping[str, str],
    default_region: str,
) -> CredentialConfig:
    """
    Resolve the effective credential for a connection.

    Parameters
    ----------
    config : ConnectionConfig
        Connection configuration.
    environ : Mapping
        Environment variables consulted for profile and key synonyms.
    default_region : str
        Already-resolved default region, carried in the result.

    Returns
    -------
    CredentialConfig
        The resolved credential.

    Raises
    ------
    CredentialsError
        If no source yields a credential, or a named profile is unusable.
    """
    profile = config.profile or _first_env(environ, PROFILE_ENV_VARS)
    if profile:
        logger.debug(f"Using profile '{profile}' credentials")
        return CredentialConfig(
            credentials=_profile_credentials(profile),
            default_region=default_region,
            source=SOURCE_PROFILE,
        )

    access_key = config.access_key or _first_env(environ, ACCESS_KEY_ENV_VARS)
    secret_key = config.secret_key or _first_env(environ, SECRET_KEY_ENV_VARS)
    session_token = config.session_token or _first_env(
        environ, SESSION_TOKEN_ENV_VARS
    )

    if access_key and secret_key:
        source = SOURCE_STS if session_token else SOURCE_ACCESS_KEY
        logger.debug(f"Using {source} credentials")
        return CredentialConfig(
            credentials=Credentials(
                access_key, secret_key, session_token, method="static"
            ),
            default_region=default_region,
            source=source,
        )

    raise CredentialsError(
        "'access_key' and 'secret_key' or 'profile' must be set in the "
        "connection config or environment",
        details={
            "access_key": bool(access_key),
            "secret_key": bool(secret_key),
        },
    )


class CredentialCache:
    """
    Memoized credential resolution for one execution context.

    The first caller resolves; concurrent callers wait for and share that
    result. A resolution failure is cached too, so every later caller sees
    the same :class:`CredentialsError` until a new context is created.

    Parameters
    ----------
    config : ConnectionConfig
        Connection configuration.
    environ : Mapping
        Environment variables.
    default_region : str
        Default region of the context.
    """

    _KEY = "credentials"

    def __init__(
        self,
        config: ConnectionConfig,
        environ: Mapping[str, str],
        default_region: str,
    ) -> None:
        self.config = config
        self.environ = environ
        self.default_region = default_region
        self._cache: SingleFlightCache[CredentialConfig] = SingleFlightCache(
            cache_failures=True, name="credentials"
        )

    def get(self) -> CredentialConfig:
        """Return the context's credential, resolving it on first use."""
        return self._cache.get_or_create(
            self._KEY,
            lambda: resolve_credentials(
                self.config, self.environ, self.default_region
            ),
        )

    def clear(self) -> None:
        self._cache.clear()

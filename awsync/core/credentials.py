"""
Credential Cache Module
=======================

Disk-persisted memoization of short-lived AWS credentials.

Assuming a role costs an STS round trip (and often an MFA prompt), so
credentials obtained that way are written to a per-profile JSON file and
reused by later invocations until they expire. Credentials from any other
origin are returned as-is and never written to disk.

Classes
-------
CredentialOrigin
    Closed set of credential sources, each flagged cacheable or not.
CachedCredential
    Key material with its origin and expiration.
BotocoreCredentialProvider
    Underlying provider backed by a boto3/botocore session.
FileCacheProvider
    Caching wrapper around any provider.

Cache Layout
------------
::

    <cache_dir>/credentials/aws-profile-<profile>.json   (mode 0600)

Example
-------
>>> provider = BotocoreCredentialProvider(boto3.Session(profile_name="admin"))
>>> cache = FileCacheProvider(provider, profile="admin", cache_dir="~/.awsync")
>>> cred = cache.retrieve()
>>> cred.origin
<CredentialOrigin.ASSUME_ROLE: 'assume-role'>

Notes
-----
Reads and writes are not locked across processes. Two invocations racing
on the same profile may both call the provider and both write the file;
the last writer wins.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from botocore.exceptions import BotoCoreError, ClientError

from awsync.core.exceptions import CacheReadError, CredentialsError

# Module logger
logger = logging.getLogger(__name__)

DEFAULT_PROFILE = "default"

# Lifetime assumed for freshly issued assumed-role sessions
DEFAULT_ASSUME_ROLE_DURATION = timedelta(minutes=15)

CREDENTIALS_FOLDER = "credentials"

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CredentialOrigin(str, Enum):
    """
    Authentication mechanism that produced a credential.

    Values follow botocore's credential ``method`` names.
    """

    ASSUME_ROLE = "assume-role"
    ASSUME_ROLE_WEB_IDENTITY = "assume-role-with-web-identity"
    STATIC = "explicit"
    ENVIRONMENT = "env"
    SHARED_CREDENTIALS_FILE = "shared-credentials-file"
    CONFIG_FILE = "config-file"
    PROCESS = "custom-process"
    INSTANCE_METADATA = "iam-role"
    CONTAINER = "container-role"
    SSO = "sso"
    UNKNOWN = "unknown"

    @property
    def cacheable(self) -> bool:
        """Whether credentials of this origin are persisted to disk."""
        return self is CredentialOrigin.ASSUME_ROLE

    @classmethod
    def from_method(cls, method: Optional[str]) -> CredentialOrigin:
        try:
            return cls(method)
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class CachedCredential:
    """
    AWS key material plus origin and expiration.

    A credential is usable iff ``now(UTC) < expiration``. Instances are
    never mutated: a stale one is discarded and replaced.

    Parameters
    ----------
    access_key : str
    secret_key : str
    token : str, optional
        Session token, present for temporary credentials.
    origin : CredentialOrigin
    expiration : datetime, optional
        Timezone-aware UTC expiry. ``None`` means the credential carries
        no expiry of its own.
    """

    access_key: str
    secret_key: str
    token: Optional[str] = None
    origin: CredentialOrigin = CredentialOrigin.UNKNOWN
    expiration: Optional[datetime] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expiration is None:
            return False
        now = now or utc_now()
        return not now < self.expiration

    def with_expiration(self, expiration: datetime) -> CachedCredential:
        return CachedCredential(
            access_key=self.access_key,
            secret_key=self.secret_key,
            token=self.token,
            origin=self.origin,
            expiration=expiration,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the on-disk JSON layout."""
        return {
            "AccessKeyID": self.access_key,
            "SecretAccessKey": self.secret_key,
            "SessionToken": self.token or "",
            "ProviderName": self.origin.value,
            "Expiration": self.expiration.isoformat() if self.expiration else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CachedCredential:
        """
        Parse the on-disk JSON layout.

        Raises
        ------
        KeyError, TypeError, ValueError
            If a required field is missing or malformed.
        """
        expiration = datetime.fromisoformat(data["Expiration"])
        if expiration.tzinfo is None:
            expiration = expiration.replace(tzinfo=timezone.utc)
        return cls(
            access_key=data["AccessKeyID"],
            secret_key=data["SecretAccessKey"],
            token=data.get("SessionToken") or None,
            origin=CredentialOrigin.from_method(data.get("ProviderName")),
            expiration=expiration.astimezone(timezone.utc),
        )

    def __repr__(self) -> str:
        return (
            f"CachedCredential(access_key='{self.access_key}', "
            f"origin={self.origin.value}, expiration={self.expiration})"
        )


class BotocoreCredentialProvider:
    """
    Underlying credential provider backed by a boto3 session.

    Delegates resolution (including any AssumeRole exchange configured in
    the profile) to botocore's credential chain.

    Parameters
    ----------
    session : boto3.Session
        Session whose credential chain is used.
    """

    def __init__(self, session) -> None:
        self.session = session
        self._credentials = None

    def retrieve(self) -> CachedCredential:
        """
        Resolve credentials through botocore.

        Raises
        ------
        CredentialsError
            If no credentials resolve or the exchange fails.
        """
        try:
            creds = self.session.get_credentials()
            if creds is None:
                raise CredentialsError(
                    "AWS credentials not found",
                    details={"hint": "Configure credentials using 'aws configure'"},
                )
            frozen = creds.get_frozen_credentials()
        except (BotoCoreError, ClientError) as e:
            raise CredentialsError(f"Failed to retrieve AWS credentials: {e}") from e

        self._credentials = creds
        origin = CredentialOrigin.from_method(getattr(creds, "method", None))
        logger.debug(f"Resolved credentials via {origin.value}")
        return CachedCredential(
            access_key=frozen.access_key,
            secret_key=frozen.secret_key,
            token=frozen.token,
            origin=origin,
        )

    def is_expired(self) -> bool:
        if self._credentials is None:
            return True
        refresh_needed = getattr(self._credentials, "refresh_needed", None)
        if callable(refresh_needed):
            return bool(refresh_needed())
        return False


class FileCacheProvider:
    """
    Per-profile on-disk cache in front of an underlying provider.

    Parameters
    ----------
    provider : object
        Underlying provider exposing ``retrieve()`` and ``is_expired()``.
    profile : str, default="default"
        Profile name; keys the cache file.
    cache_dir : str or Path, optional
        Cache root. ``None`` bypasses the cache entirely.
    clock : callable, optional
        Returns the current UTC time; injectable for tests.
    """

    def __init__(
        self,
        provider,
        profile: Optional[str] = None,
        cache_dir: Optional[Union[str, Path]] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.provider = provider
        self.profile = profile or DEFAULT_PROFILE
        self.cache_dir = Path(cache_dir).expanduser() if cache_dir else None
        self._clock = clock or utc_now
        self._current: Optional[CachedCredential] = None

    @property
    def cache_path(self) -> Optional[Path]:
        if self.cache_dir is None:
            return None
        return self.cache_dir / CREDENTIALS_FOLDER / f"aws-profile-{self.profile}.json"

    def retrieve(self) -> CachedCredential:
        """
        Return valid credentials, from disk when possible.

        Raises
        ------
        CredentialsError
            If the underlying provider fails. Nothing is cached then.
        """
        path = self.cache_path
        if path is None:
            return self.provider.retrieve()

        try:
            path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        except OSError as e:
            logger.warning(f"Credential cache unusable, not caching: {e}")
            return self.provider.retrieve()

        if path.exists():
            try:
                cached = self._read(path)
            except CacheReadError as e:
                logger.warning(f"Ignoring credential cache: {e}")
            else:
                logger.debug(f"loading credentials from '{path}'")
                if not cached.is_expired(self._clock()):
                    self._current = cached
                    return cached

        logger.debug("no valid cached credentials, getting new credentials")
        cred = self.provider.retrieve()

        if cred.origin.cacheable:
            cred = cred.with_expiration(self._clock() + DEFAULT_ASSUME_ROLE_DURATION)
            self._current = cred
            try:
                self._write(path, cred)
            except OSError as e:
                logger.warning(f"Failed to cache credentials in '{path}': {e}")
            else:
                logger.debug(f"credentials cached in '{path}'")
        return cred

    def is_expired(self) -> bool:
        if self._current is not None:
            return self._current.is_expired(self._clock())
        return self.provider.is_expired()

    def _read(self, path: Path) -> CachedCredential:
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            return CachedCredential.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            raise CacheReadError(
                f"cannot load cached credentials: {e}", path=str(path)
            ) from e

    def _write(self, path: Path, cred: CachedCredential) -> None:
        content = json.dumps(cred.to_dict())
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.chmod(path, 0o600)

    def __repr__(self) -> str:
        return (
            f"FileCacheProvider(profile='{self.profile}', "
            f"cache_dir={str(self.cache_dir) if self.cache_dir else None!r})"
        )

"""
AWS Client Module
=================

boto3 session holder shared by every fetch task of a synchronization pass.

The session is built on first use. When a cache directory is configured,
its credentials come from the on-disk credential cache wrapped around the
profile's own credential chain, so an assumed role is only exchanged once
per cache lifetime.

Classes
-------
AWSClient
    Session and per-service botocore client holder.

Example
-------
>>> from awsync.core.aws_client import AWSClient
>>>
>>> client = AWSClient(region="eu-west-1", profile="admin", cache_dir="~/.awsync")
>>> client.validate_credentials()
>>> ec2 = client.get_client("ec2")

Notes
-----
botocore clients are thread-safe; one client per API is created and handed
to all concurrent fetch tasks.

See Also
--------
awsync.core.credentials : Credential cache consulted when building the session.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Union

import boto3
from botocore.config import Config
from botocore.exceptions import (
    ClientError,
    NoCredentialsError,
    NoRegionError,
    ProfileNotFound,
)

from awsync.core.credentials import BotocoreCredentialProvider, FileCacheProvider
from awsync.core.exceptions import (
    AWSClientError,
    CredentialsError,
    RegionError,
    ServiceError,
)

# Module logger
logger = logging.getLogger(__name__)

INVALID_TOKEN_CODES = ("InvalidClientTokenId", "SignatureDoesNotMatch", "ExpiredToken")


class AWSClient:
    """
    Lazily-built boto3 session with shared, per-API botocore clients.

    Parameters
    ----------
    region : str, default="us-east-1"
        Region every client talks to and every resource is stamped with.
    profile : str, optional
        Named profile; also keys the credential cache file.
    max_retries : int, default=3
        botocore adaptive-retry attempt budget per request.
    timeout : int, default=30
        Connect and read timeout, in seconds.
    cache_dir : str or Path, optional
        Credential cache root. Without it credentials are resolved on
        every run.

    Attributes
    ----------
    credential_provider : FileCacheProvider or None
        Cache used to build the session, once it exists.
    """

    def __init__(
        self,
        region: str = "us-east-1",
        profile: Optional[str] = None,
        max_retries: int = 3,
        timeout: int = 30,
        cache_dir: Optional[Union[str, Path]] = None,
    ) -> None:
        self.region = region
        self.profile = profile
        self.max_retries = max_retries
        self.timeout = timeout
        self.cache_dir = Path(cache_dir).expanduser() if cache_dir else None
        self.credential_provider: Optional[FileCacheProvider] = None

        self._session: Optional[boto3.Session] = None
        self._clients: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._botocore_config = Config(
            retries={"max_attempts": max_retries, "mode": "adaptive"},
            connect_timeout=timeout,
            read_timeout=timeout,
        )

        logger.debug(f"AWSClient for {region} (profile={profile}, cache_dir={self.cache_dir})")

    @property
    def session(self) -> boto3.Session:
        """
        The boto3 session, built on first access.

        Raises
        ------
        CredentialsError
            Unknown profile, or the credential cache's provider failed.
        RegionError
            No usable region.
        """
        with self._lock:
            if self._session is None:
                self._session = self._build_session()
            return self._session

    def _build_session(self) -> boto3.Session:
        kwargs = {"region_name": self.region}
        if self.profile:
            kwargs["profile_name"] = self.profile

        try:
            profile_session = boto3.Session(**kwargs)
        except ProfileNotFound as e:
            raise CredentialsError(
                f"AWS profile '{self.profile}' not found",
                details={"profile": self.profile},
            ) from e

        if self.cache_dir is None:
            return profile_session

        self.credential_provider = FileCacheProvider(
            BotocoreCredentialProvider(profile_session),
            profile=self.profile,
            cache_dir=self.cache_dir,
        )
        cred = self.credential_provider.retrieve()
        logger.debug(f"Session built from {cred.origin.value} credentials")
        return boto3.Session(
            aws_access_key_id=cred.access_key,
            aws_secret_access_key=cred.secret_key,
            aws_session_token=cred.token,
            region_name=self.region,
        )

    def get_client(self, service_name: str) -> Any:
        """
        Return the shared botocore client for ``service_name``.

        Raises
        ------
        CredentialsError
            No credentials could be resolved.
        ServiceError
            botocore refused to build the client (e.g. unknown service).
        """
        session = self.session
        with self._lock:
            client = self._clients.get(service_name)
            if client is not None:
                return client

            try:
                client = session.client(service_name, config=self._botocore_config)
            except NoCredentialsError as e:
                raise CredentialsError(
                    "no AWS credentials resolved",
                    details={"profile": self.profile or "default"},
                ) from e
            except NoRegionError as e:
                raise RegionError(f"no usable region: {self.region!r}", region=self.region) from e
            except Exception as e:
                raise ServiceError(
                    f"cannot build {service_name} client: {e}",
                    service=service_name,
                    region=self.region,
                ) from e

            self._clients[service_name] = client
            return client

    # =========================================================================
    # Identity
    # =========================================================================

    def _caller_identity(self) -> Dict[str, Any]:
        return self.get_client("sts").get_caller_identity()

    def validate_credentials(self) -> bool:
        """
        Check the credentials with STS ``GetCallerIdentity``.

        Raises
        ------
        CredentialsError
            The call was rejected.
        """
        try:
            identity = self._caller_identity()
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "Unknown")
            if code in INVALID_TOKEN_CODES:
                raise CredentialsError(
                    f"credentials rejected by STS ({code})", details={"error_code": code}
                ) from e
            raise CredentialsError(f"cannot validate credentials: {e}") from e
        logger.info(f"Authenticated as {identity['Arn']}")
        return True

    def get_account_id(self) -> str:
        try:
            return self._caller_identity()["Account"]
        except ClientError as e:
            raise AWSClientError(f"cannot read account id: {e}", region=self.region) from e

    def with_region(self, region: str) -> AWSClient:
        """Same profile, retry and cache settings, other region."""
        return AWSClient(
            region=region,
            profile=self.profile,
            max_retries=self.max_retries,
            timeout=self.timeout,
            cache_dir=self.cache_dir,
        )

    def __enter__(self) -> AWSClient:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        with self._lock:
            self._clients.clear()
            self._session = None

    def __repr__(self) -> str:
        return f"AWSClient(region={self.region!r}, profile={self.profile!r}, cache_dir={self.cache_dir!r})"

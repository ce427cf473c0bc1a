"""
Tests for the AWS Client module.
"""

import json
import os
from datetime import timedelta

import pytest

from awsync.core.aws_client import AWSClient
from awsync.core.credentials import CachedCredential, CredentialOrigin, utc_now
from awsync.core.exceptions import CredentialsError


class TestAWSClient:
    """Tests for AWSClient class."""

    def test_client_initialization(self, mock_aws_environment):
        """Test basic client initialization."""
        client = AWSClient(region="us-east-1")
        assert client.region == "us-east-1"
        assert client.profile is None
        assert client.cache_dir is None

    def test_get_client_is_shared(self, mock_aws_environment):
        """Test that one client per service is created and reused."""
        client = AWSClient(region="us-east-1")
        ec2 = client.get_client("ec2")
        assert ec2 is client.get_client("ec2")
        assert ec2 is not client.get_client("iam")
        assert ec2.meta.region_name == "us-east-1"

    def test_validate_credentials(self, mock_aws_environment):
        """Test credential validation."""
        client = AWSClient(region="us-east-1")
        # Should not raise an exception with mocked credentials
        assert client.validate_credentials() is True

    def test_get_account_id(self, mock_aws_environment):
        """Test getting account ID."""
        client = AWSClient(region="us-east-1")
        account_id = client.get_account_id()
        assert len(account_id) == 12  # AWS account IDs are 12 digits

    def test_with_region(self, mock_aws_environment, tmp_path):
        """Test creating client for different region."""
        client = AWSClient(region="us-east-1", profile="test", cache_dir=tmp_path)
        new_client = client.with_region("eu-west-1")

        assert new_client.region == "eu-west-1"
        assert new_client.profile == "test"
        assert new_client.cache_dir == tmp_path
        assert client.region == "us-east-1"  # Original unchanged

    def test_retry_config(self, mock_aws_environment):
        """Test that retry configuration is applied."""
        client = AWSClient(region="us-east-1", max_retries=5, timeout=60)
        assert client.max_retries == 5
        assert client.timeout == 60

    def test_context_manager_resets_clients(self, mock_aws_environment):
        with AWSClient(region="us-east-1") as client:
            client.get_client("ec2")
        assert client._clients == {}


class TestAWSClientCredentialCache:
    """Tests for session creation through the credential cache."""

    def test_cache_dir_with_env_credentials(self, mock_aws_environment, tmp_path):
        """Test that environment credentials are used but never written to disk."""
        client = AWSClient(region="us-east-1", cache_dir=tmp_path)

        assert client.validate_credentials() is True

        provider = client.credential_provider
        assert provider is not None
        assert provider.cache_path == tmp_path / "credentials" / "aws-profile-default.json"
        assert not provider.cache_path.exists()
        assert client.session.get_credentials().access_key == os.environ["AWS_ACCESS_KEY_ID"]

    def test_cached_credentials_are_used(self, mock_aws_environment, tmp_path):
        """Test that a valid cache file overrides the credential chain."""
        path = tmp_path / "credentials" / "aws-profile-default.json"
        path.parent.mkdir(parents=True)
        cached = CachedCredential(
            "AKIACACHED", "cached-secret", "cached-token",
            CredentialOrigin.ASSUME_ROLE, utc_now() + timedelta(minutes=10),
        )
        path.write_text(json.dumps(cached.to_dict()))

        client = AWSClient(region="us-east-1", cache_dir=tmp_path)

        creds = client.session.get_credentials()
        assert creds.access_key == "AKIACACHED"
        assert creds.token == "cached-token"


class TestAWSClientErrors:
    """Tests for AWSClient error handling."""

    def test_invalid_profile_error(self, mock_aws_environment, tmp_path, monkeypatch):
        """Test error handling for an unknown profile."""
        monkeypatch.setenv("AWS_CONFIG_FILE", str(tmp_path / "config"))
        monkeypatch.setenv("AWS_SHARED_CREDENTIALS_FILE", str(tmp_path / "credentials"))
        client = AWSClient(region="us-east-1", profile="nonexistent-profile-xyz")

        with pytest.raises(CredentialsError, match="not found"):
            client.get_client("ec2")

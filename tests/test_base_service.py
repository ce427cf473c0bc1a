"""
Tests for the two-phase fetch orchestration in BaseService.
"""

import threading

import pytest
from botocore.exceptions import ClientError

from awsync.core.base_service import BaseService, classify_fetch_error
from awsync.core.config import SyncConfig
from awsync.core.exceptions import (
    ERR_FETCH_ACCESS_DENIED,
    AggregateSyncError,
    CredentialsError,
    GraphError,
    RelationshipResolutionError,
    UnsupportedResourceTypeError,
)
from awsync.core.fetchers import FetcherDescriptor, FetchOutput, fetch_all
from awsync.core.graph import Graph, Resource, init_region
from awsync.core.relationships import region_parent

REGION = "us-east-1"


def access_denied():
    return ClientError(
        {"Error": {"Code": "AccessDenied", "Message": "Access Denied"}}, "Describe"
    )


def throttled():
    return ClientError(
        {"Error": {"Code": "Throttling", "Message": "Rate exceeded"}}, "Describe"
    )


class StubClient:
    """AWS client stand-in; fetches never touch it."""

    def __init__(self, error=None):
        self.region = REGION
        self.error = error
        self.requested = []

    def get_client(self, api):
        if self.error is not None:
            raise self.error
        self.requested.append(api)
        return None


def descriptor(resource_type):
    return FetcherDescriptor(
        resource_type=resource_type,
        api="stub",
        api_method=f"describe_{resource_type}",
        outputs_extractor="Items",
        id_key="Id",
    )


class StubService(BaseService):
    """
    Service whose fetches are scripted.

    ``plan`` maps each type to either a resource count or an exception.
    """

    def __init__(self, plan, config=None, client=None, resolvers=None, barrier=None):
        super().__init__(client or StubClient(), config)
        self.plan = plan
        self.resolvers = resolvers
        self.barrier = barrier
        self.fetch_calls = []
        self.events = []
        self._events_lock = threading.Lock()

    def get_service_name(self):
        return "stub"

    def get_fetchers(self):
        return [descriptor(t) for t in self.plan]

    def get_relationship_resolvers(self):
        if self.resolvers is not None:
            return self.resolvers
        return {t: [self.recording_resolver] for t in self.plan}

    def record(self, event):
        with self._events_lock:
            self.events.append(event)

    def recording_resolver(self, graph, res, raw):
        self.record(("resolve", res.type))
        region_parent(graph, res, raw)

    def fetch_type(self, desc):
        self.record(("fetch-start", desc.resource_type))
        self.fetch_calls.append(desc.resource_type)
        if self.barrier is not None:
            self.barrier.wait(timeout=10)

        planned = self.plan[desc.resource_type]
        graph = Graph()
        raw = []
        if isinstance(planned, Exception):
            self.record(("fetch-done", desc.resource_type))
            return FetchOutput(graph=graph, raw=raw, error=planned)
        for i in range(planned):
            record = {"Id": f"{desc.resource_type}-{i}"}
            raw.append(record)
            graph.add_resource(Resource(desc.resource_type, record["Id"], REGION))
        self.record(("fetch-done", desc.resource_type))
        return FetchOutput(graph=graph, raw=raw)


class TestClassifyFetchError:
    """Tests for access-denied normalization."""

    def test_access_denied_message(self):
        err = ClientError({"Error": {"Code": "Forbidden", "Message": "Access Denied"}}, "Op")
        assert classify_fetch_error(err) is ERR_FETCH_ACCESS_DENIED

    @pytest.mark.parametrize(
        "code", ["AccessDenied", "AccessDeniedException", "UnauthorizedOperation"]
    )
    def test_access_denied_codes(self, code):
        err = ClientError({"Error": {"Code": code, "Message": "You are not authorized"}}, "Op")
        assert classify_fetch_error(err) is ERR_FETCH_ACCESS_DENIED

    def test_other_errors_pass_through(self):
        err = throttled()
        assert classify_fetch_error(err) is err
        other = RuntimeError("Access Denied")
        assert classify_fetch_error(other) is other


class TestFetchResources:
    """Tests for BaseService.fetch_resources."""

    def test_success(self):
        """Test that the graph holds every resource plus the region node."""
        plan = {"a": 3, "b": 0, "c": 5}
        service = StubService(plan)

        result = service.fetch_resources()

        assert result.error is None
        assert len(result.graph) == sum(plan.values()) + 1
        assert result.fetched_types == ["a", "b", "c"]
        assert result.failed_types == []
        region = init_region(REGION)
        assert len(result.graph.children_of(region)) == 8

    def test_access_denied_count(self):
        """Test that M access-denied fetches yield exactly M sentinels."""
        plan = {
            "a": access_denied(),
            "b": 2,
            "c": access_denied(),
            "d": access_denied(),
            "e": 1,
        }
        service = StubService(plan)

        result = service.fetch_resources()

        assert isinstance(result.error, AggregateSyncError)
        assert result.error.access_denied_count == 3
        assert all(e is ERR_FETCH_ACCESS_DENIED for e in result.error.errors)
        assert result.failed_types == ["a", "c", "d"]
        assert len(result.graph) == 4

    def test_other_errors_are_recorded_unchanged(self):
        """Test that non-authorization failures are kept as-is."""
        err = throttled()
        service = StubService({"a": err, "b": 1})

        result = service.fetch_resources()

        assert result.error.errors == [err]
        assert result.error.access_denied_count == 0
        assert result.graph.get_resource("b", "b-0") is not None

    def test_service_disabled(self):
        """Test that a disabled service performs no fetch at all."""
        client = StubClient()
        config = SyncConfig.from_mapping({"aws.stub.sync": False})
        service = StubService({"a": 1, "b": 1}, config=config, client=client)

        result = service.fetch_resources()

        assert service.fetch_calls == []
        assert client.requested == []
        assert len(result.graph) == 0
        assert result.error is None

    def test_type_disabled(self):
        """Test that a disabled type is neither fetched nor resolved."""
        config = SyncConfig.from_mapping({"aws.stub.b.sync": False})
        service = StubService({"a": 1, "b": 1, "c": 1}, config=config)

        result = service.fetch_resources()

        assert sorted(service.fetch_calls) == ["a", "c"]
        assert ("resolve", "b") not in service.events
        assert result.graph.get_resource("b", "b-0") is None
        assert result.error is None

    def test_failed_type_is_not_resolved(self):
        """Test that relationships are only resolved for fetched types."""
        service = StubService({"a": 2, "b": throttled()})

        service.fetch_resources()

        resolved = {t for kind, t in service.events if kind == "resolve"}
        assert resolved == {"a"}

    def test_fan_out_width(self):
        """Test that every enabled type is fetched concurrently."""
        plan = {t: 2 for t in "abcdef"}
        barrier = threading.Barrier(len(plan))
        service = StubService(plan, barrier=barrier)

        result = service.fetch_resources()

        assert result.error is None
        assert len(result.graph) == 2 * len(plan) + 1

    def test_resolution_starts_after_every_fetch(self):
        """Test that no resolver runs before all fetches have returned."""
        plan = {t: 3 for t in "abcd"}
        barrier = threading.Barrier(len(plan))
        service = StubService(plan, barrier=barrier)

        service.fetch_resources()

        kinds = [kind for kind, _ in service.events]
        last_fetch = max(i for i, k in enumerate(kinds) if k == "fetch-done")
        first_resolve = kinds.index("resolve")
        assert last_fetch < first_resolve
        assert kinds.count("resolve") == 12

    def test_resolution_error_is_recorded(self):
        """Test that a failing resolver adds to the aggregate error."""

        def broken(graph, res, raw):
            raise RelationshipResolutionError("bad record", resource_type=res.type, resource_id=res.id)

        service = StubService(
            {"a": 1, "b": 1},
            resolvers={"a": [broken], "b": [region_parent]},
        )

        result = service.fetch_resources()

        assert len(result.error.errors) == 1
        assert isinstance(result.error.errors[0], RelationshipResolutionError)
        assert result.fetched_types == ["a", "b"]
        assert result.graph.parent_of(result.graph.get_resource("b", "b-0")) == init_region(REGION)

    def test_unexpected_fetch_exception(self):
        """Test that an exception escaping a fetch task is recorded."""

        class Exploding(StubService):
            def fetch_type(self, desc):
                if desc.resource_type == "a":
                    raise RuntimeError("boom")
                return super().fetch_type(desc)

        result = Exploding({"a": 1, "b": 1}).fetch_resources()

        assert [str(e) for e in result.error.errors] == ["boom"]
        assert result.failed_types == ["a"]

    def test_partial_results_are_merged(self):
        """Test that resources fetched before a failure stay in the graph."""

        class Partial(StubService):
            def fetch_type(self, desc):
                out = super().fetch_type(desc)
                out.error = throttled()
                return out

        result = Partial({"a": 2}).fetch_resources()

        assert len(result.graph.find_resources("a")) == 2
        assert result.failed_types == ["a"]

    def test_merge_conflict_keeps_fetch_error(self):
        """Test that a failed merge does not hide the type's own fetch error."""

        class Conflicting(StubService):
            def fetch_type(self, desc):
                graph = Graph()
                graph.add_resource(Resource("region", REGION, region="elsewhere"))
                return FetchOutput(graph=graph, error=access_denied())

        result = Conflicting({"a": 0}).fetch_resources()

        assert result.failed_types == ["a"]
        assert len(result.error.errors) == 2
        assert result.error.access_denied_count == 1
        assert any(isinstance(e, GraphError) for e in result.error.errors)

    def test_malformed_record_keeps_partial_graph(self):
        """Test that records converted before a malformed one are merged."""

        class Malformed(StubService):
            def fetch_type(self, desc):
                response = {"Items": [{"Id": "a-0"}, {"Id": "a-1", "Tags": ["oops"]}]}

                class Client:
                    def describe_a(self):
                        return response

                return fetch_all(desc, Client(), REGION)

        result = Malformed({"a": 0}).fetch_resources()

        assert result.failed_types == ["a"]
        assert result.graph.get_resource("a", "a-0") is not None
        assert isinstance(result.error.errors[0], GraphError)

    def test_credentials_failure_is_fatal(self):
        """Test that no fetch starts when credentials cannot be obtained."""
        client = StubClient(error=CredentialsError("AWS credentials not found"))
        service = StubService({"a": 1}, client=client)

        with pytest.raises(CredentialsError):
            service.fetch_resources()
        assert service.fetch_calls == []


class TestFetchByType:
    """Tests for single-type fetches."""

    def test_fetch_by_type(self):
        result = StubService({"a": 2, "b": 1}).fetch_by_type("a")

        assert result.error is None
        assert len(result.graph) == 2
        assert result.graph.get_resource("region", REGION) is None

    def test_error_is_not_classified(self):
        err = access_denied()
        result = StubService({"a": err}).fetch_by_type("a")
        assert result.error is err
        assert result.failed_types == ["a"]

    def test_unsupported_type(self):
        with pytest.raises(UnsupportedResourceTypeError, match="aws stub: unsupported fetch for type z"):
            StubService({"a": 1}).fetch_by_type("z")

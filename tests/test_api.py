"""
Tests for ycinv/api.py.

The SDK is mocked: sdk.client(StubClass) returns a per-stub Mock, so these
tests check request fields and response mapping without network access.
"""
import os
import sys
from types import SimpleNamespace
from unittest.mock import Mock, patch

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ycinv.api import InstanceRef, ProjectRef, YandexCloudAPI, build_sdk
from ycinv.config import Credentials
from ycinv.models import Account, Disk


class StubRegistry:
    """sdk.client replacement handing out one Mock per stub class."""

    def __init__(self):
        self.stubs = {}
        self.created = []

    def __call__(self, stub_class):
        self.created.append(stub_class.__name__)
        return self.stubs.setdefault(stub_class.__name__, Mock())

    def __getitem__(self, name):
        return self.stubs.setdefault(name, Mock())


@pytest.fixture
def registry():
    return StubRegistry()


@pytest.fixture
def api(registry):
    sdk = Mock()
    sdk.client.side_effect = registry
    return YandexCloudAPI(sdk)


def last_request(stub_method):
    return stub_method.call_args[0][0]


# =============================================================================
# Resource Manager Tests
# =============================================================================

class TestResourceManager:
    """Tests for cloud and folder listing."""

    def test_list_accounts(self, api, registry):
        """Test clouds map to Account records with the continuation token."""
        registry['CloudServiceStub'].List.return_value = SimpleNamespace(
            clouds=[SimpleNamespace(id="c1", name="alpha"), SimpleNamespace(id="c2", name="beta")],
            next_page_token="tok",
        )

        page = api.list_accounts()
        assert page.items == [Account(id="c1", name="alpha"), Account(id="c2", name="beta")]
        assert page.next_page_token == "tok"

    def test_page_token_and_size_forwarded(self, api, registry):
        """Test the page token and size hint are set on the request."""
        stub = registry['CloudServiceStub']
        stub.List.return_value = SimpleNamespace(clouds=[], next_page_token="")

        api.list_accounts(page_token="abc", page_size=50)
        request = last_request(stub.List)
        assert request.page_token == "abc"
        assert request.page_size == 50

    def test_first_page_leaves_token_unset(self, api, registry):
        """Test the first request carries no page token."""
        stub = registry['CloudServiceStub']
        stub.List.return_value = SimpleNamespace(clouds=[], next_page_token="")

        api.list_accounts()
        request = last_request(stub.List)
        assert request.page_token == ""
        assert request.page_size == 0

    def test_list_projects(self, api, registry):
        """Test folders are listed per cloud id."""
        stub = registry['FolderServiceStub']
        stub.List.return_value = SimpleNamespace(
            folders=[SimpleNamespace(id="f1", name="prod")], next_page_token="",
        )

        page = api.list_projects("c1", page_size=10)
        assert page.items == [ProjectRef(id="f1", name="prod")]
        assert last_request(stub.List).cloud_id == "c1"


# =============================================================================
# Compute Tests
# =============================================================================

class TestCompute:
    """Tests for instance listing and disk lookup."""

    def test_list_instances(self, api, registry):
        """Test instance resources and disk ids are mapped."""
        stub = registry['InstanceServiceStub']
        stub.List.return_value = SimpleNamespace(
            instances=[SimpleNamespace(
                name="vm1",
                resources=SimpleNamespace(cores=4, memory=8 * 2**30, core_fraction=50),
                boot_disk=SimpleNamespace(disk_id="d-boot"),
                secondary_disks=[SimpleNamespace(disk_id="d-1"), SimpleNamespace(disk_id="d-2")],
            )],
            next_page_token="",
        )

        page = api.list_instances("f1")
        assert page.items == [InstanceRef(
            name="vm1", cores=4, memory=8 * 2**30, core_fraction=50,
            boot_disk_id="d-boot", secondary_disk_ids=["d-1", "d-2"],
        )]
        assert last_request(stub.List).folder_id == "f1"

    def test_get_disk(self, api, registry):
        """Test a disk lookup returns name and size."""
        stub = registry['DiskServiceStub']
        stub.Get.return_value = SimpleNamespace(name="data", size=20 * 2**30)

        assert api.get_disk("d-1") == Disk(name="data", size=20 * 2**30)
        assert last_request(stub.Get).disk_id == "d-1"

    def test_get_disk_error_propagates(self, api, registry):
        """Test lookup errors reach the caller."""
        registry['DiskServiceStub'].Get.side_effect = RuntimeError("not found")
        with pytest.raises(RuntimeError):
            api.get_disk("d-x")


# =============================================================================
# Storage / Network Tests
# =============================================================================

class TestStorageAndNetwork:
    """Tests for bucket and address calls."""

    def test_list_buckets(self, api, registry):
        """Test bucket names are listed per folder in a single page."""
        stub = registry['BucketServiceStub']
        stub.List.return_value = SimpleNamespace(
            buckets=[SimpleNamespace(name="logs"), SimpleNamespace(name="media")],
        )

        page = api.list_buckets("f1")
        assert page.items == ["logs", "media"]
        assert page.next_page_token == ""
        assert last_request(stub.List).folder_id == "f1"

    def test_get_bucket_stats(self, api, registry):
        """Test used size is returned in bytes."""
        stub = registry['BucketServiceStub']
        stub.GetStats.return_value = SimpleNamespace(used_size=3 * 2**30)

        assert api.get_bucket_stats("logs") == 3 * 2**30
        assert last_request(stub.GetStats).name == "logs"

    def test_list_addresses(self, api, registry):
        """Test address ids are listed per folder."""
        stub = registry['AddressServiceStub']
        stub.List.return_value = SimpleNamespace(
            addresses=[SimpleNamespace(id="a1"), SimpleNamespace(id="a2")], next_page_token="n",
        )

        page = api.list_addresses("f1", page_token="p")
        assert page.items == ["a1", "a2"]
        assert page.next_page_token == "n"
        request = last_request(stub.List)
        assert request.folder_id == "f1"
        assert request.page_token == "p"


# =============================================================================
# Client Construction Tests
# =============================================================================

class TestClientConstruction:
    """Tests for stub caching and SDK construction."""

    def test_stub_created_once(self, api, registry):
        """Test each stub class is built once and reused."""
        registry['DiskServiceStub'].Get.return_value = SimpleNamespace(name="d", size=1)
        api.get_disk("a")
        api.get_disk("b")
        assert registry.created.count('DiskServiceStub') == 1

    def test_build_sdk_uses_token(self):
        """Test the SDK is built from the resolved token."""
        with patch('yandexcloud.SDK') as sdk_class:
            build_sdk(Credentials(token="y0_token", source="env"))
        sdk_class.assert_called_once_with(token="y0_token")


if __name__ == '__main__':
    pytest.main([__file__, '-v'])

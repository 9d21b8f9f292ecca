"""
Remote resource-listing API.

ResourceAPI is the surface the collectors depend on. Listing calls return a
Page of plain records so collectors never touch provider protobufs.
YandexCloudAPI implements it over the yandexcloud SDK's gRPC services.
"""
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Optional

from .models import Account, Disk
from .pagination import Page

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProjectRef:
    """A project as the listing reports it."""
    id: str
    name: str


@dataclass(frozen=True)
class InstanceRef:
    """
    An instance as the listing reports it.

    Disk sizes are not part of the listing; only the disk ids are.
    """
    name: str
    cores: int = 0
    memory: int = 0
    core_fraction: int = 100
    boot_disk_id: str = ""
    secondary_disk_ids: List[str] = field(default_factory=list)


class ResourceAPI(ABC):
    """Paginated listing operations plus single-item lookups."""

    @abstractmethod
    def list_accounts(self, page_token: str = "", page_size: Optional[int] = None) -> Page:
        """Page of Account."""

    @abstractmethod
    def list_projects(self, account_id: str, page_token: str = "",
                      page_size: Optional[int] = None) -> Page:
        """Page of ProjectRef."""

    @abstractmethod
    def list_instances(self, project_id: str, page_token: str = "",
                       page_size: Optional[int] = None) -> Page:
        """Page of InstanceRef."""

    @abstractmethod
    def get_disk(self, disk_id: str) -> Disk:
        """Single disk lookup."""

    @abstractmethod
    def list_buckets(self, project_id: str, page_token: str = "",
                     page_size: Optional[int] = None) -> Page:
        """Page of bucket names."""

    @abstractmethod
    def get_bucket_stats(self, bucket_name: str) -> int:
        """Used size of a bucket in bytes."""

    @abstractmethod
    def list_addresses(self, project_id: str, page_token: str = "",
                       page_size: Optional[int] = None) -> Page:
        """Page of address ids."""


def build_sdk(credentials) -> Any:
    """Build an authenticated yandexcloud SDK from resolved credentials."""
    import yandexcloud  # type: ignore[import-untyped]

    return yandexcloud.SDK(token=credentials.token)


def _page_kwargs(page_token: str, page_size: Optional[int]) -> dict:
    kwargs: dict = {}
    if page_token:
        kwargs['page_token'] = page_token
    if page_size:
        kwargs['page_size'] = page_size
    return kwargs


class YandexCloudAPI(ResourceAPI):
    """ResourceAPI over Yandex Cloud (clouds -> folders -> resources)."""

    def __init__(self, sdk):
        self.sdk = sdk
        self._stubs: dict = {}
        self._stubs_lock = threading.Lock()

    def _client(self, stub_class):
        # gRPC stubs are shared between worker threads
        name = stub_class.__name__
        with self._stubs_lock:
            if name not in self._stubs:
                self._stubs[name] = self.sdk.client(stub_class)
            return self._stubs[name]

    def list_accounts(self, page_token: str = "", page_size: Optional[int] = None) -> Page:
        from yandex.cloud.resourcemanager.v1.cloud_service_pb2 import ListCloudsRequest
        from yandex.cloud.resourcemanager.v1.cloud_service_pb2_grpc import CloudServiceStub

        response = self._client(CloudServiceStub).List(
            ListCloudsRequest(**_page_kwargs(page_token, page_size))
        )
        accounts = [Account(id=cloud.id, name=cloud.name) for cloud in response.clouds]
        return Page(accounts, response.next_page_token)

    def list_projects(self, account_id: str, page_token: str = "",
                      page_size: Optional[int] = None) -> Page:
        from yandex.cloud.resourcemanager.v1.folder_service_pb2 import ListFoldersRequest
        from yandex.cloud.resourcemanager.v1.folder_service_pb2_grpc import FolderServiceStub

        response = self._client(FolderServiceStub).List(
            ListFoldersRequest(cloud_id=account_id, **_page_kwargs(page_token, page_size))
        )
        folders = [ProjectRef(id=folder.id, name=folder.name) for folder in response.folders]
        return Page(folders, response.next_page_token)

    def list_instances(self, project_id: str, page_token: str = "",
                       page_size: Optional[int] = None) -> Page:
        from yandex.cloud.compute.v1.instance_service_pb2 import ListInstancesRequest
        from yandex.cloud.compute.v1.instance_service_pb2_grpc import InstanceServiceStub

        response = self._client(InstanceServiceStub).List(
            ListInstancesRequest(folder_id=project_id, **_page_kwargs(page_token, page_size))
        )
        instances = []
        for instance in response.instances:
            instances.append(InstanceRef(
                name=instance.name,
                cores=int(instance.resources.cores),
                memory=int(instance.resources.memory),
                core_fraction=int(instance.resources.core_fraction),
                boot_disk_id=instance.boot_disk.disk_id,
                secondary_disk_ids=[d.disk_id for d in instance.secondary_disks],
            ))
        return Page(instances, response.next_page_token)

    def get_disk(self, disk_id: str) -> Disk:
        from yandex.cloud.compute.v1.disk_service_pb2 import GetDiskRequest
        from yandex.cloud.compute.v1.disk_service_pb2_grpc import DiskServiceStub

        disk = self._client(DiskServiceStub).Get(GetDiskRequest(disk_id=disk_id))
        return Disk(name=disk.name, size=int(disk.size))

    def list_buckets(self, project_id: str, page_token: str = "",
                     page_size: Optional[int] = None) -> Page:
        from yandex.cloud.storage.v1.bucket_service_pb2 import ListBucketsRequest
        from yandex.cloud.storage.v1.bucket_service_pb2_grpc import BucketServiceStub

        # Bucket listing is not paginated upstream; it always fits one page
        response = self._client(BucketServiceStub).List(ListBucketsRequest(folder_id=project_id))
        names = [bucket.name for bucket in response.buckets]
        return Page(names, getattr(response, 'next_page_token', ''))

    def get_bucket_stats(self, bucket_name: str) -> int:
        from yandex.cloud.storage.v1.bucket_service_pb2 import GetBucketStatsRequest
        from yandex.cloud.storage.v1.bucket_service_pb2_grpc import BucketServiceStub

        stats = self._client(BucketServiceStub).GetStats(GetBucketStatsRequest(name=bucket_name))
        return int(stats.used_size)

    def list_addresses(self, project_id: str, page_token: str = "",
                       page_size: Optional[int] = None) -> Page:
        from yandex.cloud.vpc.v1.address_service_pb2 import ListAddressesRequest
        from yandex.cloud.vpc.v1.address_service_pb2_grpc import AddressServiceStub

        response = self._client(AddressServiceStub).List(
            ListAddressesRequest(folder_id=project_id, **_page_kwargs(page_token, page_size))
        )
        return Page([address.id for address in response.addresses], response.next_page_token)

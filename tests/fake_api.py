"""
In-memory ResourceAPI used by the collector, pool and end-to-end tests.

Pages are served from plain lists; the page size is either the caller's hint
or a forced size, so the same data can be listed one item per page or all at
once. Failures are injected per (method, key) or per (method, key, token).
"""
import os
import sys
import threading
from typing import Dict, List, Optional, Tuple

import grpc

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ycinv.api import InstanceRef, ProjectRef, ResourceAPI
from ycinv.constants import BYTES_PER_GB
from ycinv.models import Account, Disk
from ycinv.pagination import Page

GB = BYTES_PER_GB


class FakeRpcError(grpc.RpcError):
    """RpcError carrying a status code, like the ones the SDK raises."""

    def __init__(self, code: grpc.StatusCode = grpc.StatusCode.INTERNAL, details: str = "boom"):
        super().__init__(details)
        self._code = code
        self._details = details

    def code(self):
        return self._code

    def details(self):
        return self._details


class FakeAPI(ResourceAPI):
    """Fake remote API backed by dicts."""

    def __init__(self, page_size: Optional[int] = None):
        self.forced_page_size = page_size
        self.accounts: List[Account] = []
        self.projects: Dict[str, List[ProjectRef]] = {}
        self.instances: Dict[str, List[InstanceRef]] = {}
        self.disks: Dict[str, Disk] = {}
        self.buckets: Dict[str, List[str]] = {}
        self.bucket_usage: Dict[str, int] = {}
        self.addresses: Dict[str, List[str]] = {}

        self.failures: Dict[Tuple, Exception] = {}
        self.calls: List[Tuple] = []
        self._calls_lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Builders
    # -------------------------------------------------------------------------

    def add_account(self, account_id: str, name: str) -> Account:
        account = Account(id=account_id, name=name)
        self.accounts.append(account)
        self.projects.setdefault(account_id, [])
        return account

    def add_project(self, account_id: str, project_id: str, name: str) -> ProjectRef:
        ref = ProjectRef(id=project_id, name=name)
        self.projects.setdefault(account_id, []).append(ref)
        return ref

    def add_instance(self, project_id: str, name: str, cores: int = 2, memory_gb: int = 4,
                     core_fraction: int = 100, boot_gb: Optional[int] = 10,
                     secondary_gb: Optional[List[int]] = None) -> InstanceRef:
        boot_id = ""
        if boot_gb is not None:
            boot_id = f"{name}-boot"
            self.disks[boot_id] = Disk(name=boot_id, size=boot_gb * GB)
        secondary_ids = []
        for i, size_gb in enumerate(secondary_gb or []):
            disk_id = f"{name}-data-{i}"
            self.disks[disk_id] = Disk(name=disk_id, size=size_gb * GB)
            secondary_ids.append(disk_id)

        ref = InstanceRef(
            name=name,
            cores=cores,
            memory=memory_gb * GB,
            core_fraction=core_fraction,
            boot_disk_id=boot_id,
            secondary_disk_ids=secondary_ids,
        )
        self.instances.setdefault(project_id, []).append(ref)
        return ref

    def add_bucket(self, project_id: str, name: str, used_bytes: int) -> None:
        self.buckets.setdefault(project_id, []).append(name)
        self.bucket_usage[name] = used_bytes

    def add_addresses(self, project_id: str, count: int) -> None:
        self.addresses.setdefault(project_id, []).extend(
            f"{project_id}-addr-{i}" for i in range(count)
        )

    def fail(self, method: str, key=None, exc: Optional[Exception] = None,
             page_token: Optional[str] = None) -> None:
        """Make method(key) raise exc, optionally only for one page token."""
        failure_key = (method, key) if page_token is None else (method, key, page_token)
        self.failures[failure_key] = exc or FakeRpcError()

    def calls_to(self, method: str) -> List[Tuple]:
        with self._calls_lock:
            return [c for c in self.calls if c[0] == method]

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _record(self, method: str, key, page_token: str = "", page_size: Optional[int] = None) -> None:
        with self._calls_lock:
            self.calls.append((method, key, page_token, page_size))
        exc = self.failures.get((method, key, page_token)) or self.failures.get((method, key))
        if exc is not None:
            raise exc

    def _page(self, items: List, page_token: str, page_size: Optional[int]) -> Page:
        size = self.forced_page_size or page_size or len(items) or 1
        start = int(page_token) if page_token else 0
        end = start + size
        next_token = str(end) if end < len(items) else ""
        return Page(list(items[start:end]), next_token)

    # -------------------------------------------------------------------------
    # ResourceAPI
    # -------------------------------------------------------------------------

    def list_accounts(self, page_token: str = "", page_size: Optional[int] = None) -> Page:
        self._record('list_accounts', None, page_token, page_size)
        return self._page(self.accounts, page_token, page_size)

    def list_projects(self, account_id: str, page_token: str = "",
                      page_size: Optional[int] = None) -> Page:
        self._record('list_projects', account_id, page_token, page_size)
        return self._page(self.projects.get(account_id, []), page_token, page_size)

    def list_instances(self, project_id: str, page_token: str = "",
                       page_size: Optional[int] = None) -> Page:
        self._record('list_instances', project_id, page_token, page_size)
        return self._page(self.instances.get(project_id, []), page_token, page_size)

    def get_disk(self, disk_id: str) -> Disk:
        self._record('get_disk', disk_id)
        if disk_id not in self.disks:
            raise FakeRpcError(grpc.StatusCode.NOT_FOUND, f"disk {disk_id} not found")
        return self.disks[disk_id]

    def list_buckets(self, project_id: str, page_token: str = "",
                     page_size: Optional[int] = None) -> Page:
        self._record('list_buckets', project_id, page_token, page_size)
        return self._page(self.buckets.get(project_id, []), page_token, page_size)

    def get_bucket_stats(self, bucket_name: str) -> int:
        self._record('get_bucket_stats', bucket_name)
        return self.bucket_usage[bucket_name]

    def list_addresses(self, project_id: str, page_token: str = "",
                       page_size: Optional[int] = None) -> Page:
        self._record('list_addresses', project_id, page_token, page_size)
        return self._page(self.addresses.get(project_id, []), page_token, page_size)

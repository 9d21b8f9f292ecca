"""
Data models for YC Inventory collectors.
"""
from dataclasses import asdict, dataclass, field
from typing import Dict, List

from .constants import billed_cores, bytes_to_whole_gb


@dataclass(frozen=True)
class Account:
    """Top-level organizational unit (a cloud)."""
    id: str
    name: str

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


@dataclass
class Disk:
    """A disk attached to an instance. Size is in bytes."""
    name: str
    size: int = 0

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


@dataclass
class Instance:
    """
    Compute instance inside a project.

    Disks are ordered boot disk first, then secondary disks in the order
    the API reported them.
    """
    name: str
    cores: int = 0
    memory: int = 0  # bytes
    core_fraction: int = 100  # percent of a full core
    disks: List[Disk] = field(default_factory=list)

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


@dataclass
class Project:
    """
    Unit of work for collection (a folder).

    Identity fields are set once at enumeration; the metrics below them are
    filled in place by the collectors.
    """
    account_name: str
    name: str
    id: str

    # Metrics
    instances: List[Instance] = field(default_factory=list)
    s3_size: int = 0  # whole GB
    ip_count: int = 0
    internet_egress: int = 0

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


@dataclass
class ProjectSummary:
    """One report row."""
    account_name: str
    project_name: str
    cpu_cores: int = 0
    memory_gb: int = 0
    disk_gb: int = 0
    s3_gb: int = 0
    ip_count: int = 0

    def to_dict(self) -> Dict:
        """Convert to dictionary for serialization."""
        return asdict(self)


def summarize_project(project: Project) -> ProjectSummary:
    """
    Reduce a project's raw metrics into report counters.

    Every conversion truncates per item before summing: billed cores per
    instance, memory per instance, disk size per disk.
    """
    summary = ProjectSummary(
        account_name=project.account_name,
        project_name=project.name,
        s3_gb=project.s3_size,
        ip_count=project.ip_count,
    )

    for instance in project.instances:
        summary.cpu_cores += billed_cores(instance.cores, instance.core_fraction)
        summary.memory_gb += bytes_to_whole_gb(instance.memory)
        for disk in instance.disks:
            summary.disk_gb += bytes_to_whole_gb(disk.size)

    return summary


def summarize_projects(projects: List[Project]) -> List[ProjectSummary]:
    """Summarize every project, preserving input order."""
    return [summarize_project(project) for project in projects]


def total_summary(summaries: List[ProjectSummary]) -> Dict[str, int]:
    """Totals across all report rows."""
    totals = {
        'project_count': len(summaries),
        'cpu_cores': 0,
        'memory_gb': 0,
        'disk_gb': 0,
        's3_gb': 0,
        'ip_count': 0,
    }
    for s in summaries:
        totals['cpu_cores'] += s.cpu_cores
        totals['memory_gb'] += s.memory_gb
        totals['disk_gb'] += s.disk_gb
        totals['s3_gb'] += s.s3_gb
        totals['ip_count'] += s.ip_count
    return totals

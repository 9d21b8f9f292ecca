"""
YC Inventory shared library.
"""
# Import constants module for easy access
from . import constants
from .api import InstanceRef, ProjectRef, ResourceAPI, YandexCloudAPI, build_sdk
from .config import Credentials, CredentialsError, load_config, resolve_credentials
from .constants import (
    ALL_PHASES,
    # Byte conversion
    BYTES_PER_GB,
    # Default values
    DEFAULT_PAGE_SIZE,
    DEFAULT_PARALLEL_WORKERS,
    PHASE_COMPUTE,
    PHASE_NETWORK,
    PHASE_STORAGE,
    # Providers
    PROVIDER_YANDEX,
    billed_cores,
    bytes_to_whole_gb,
)
from .models import (
    Account,
    Disk,
    Instance,
    Project,
    ProjectSummary,
    summarize_project,
    summarize_projects,
    total_summary,
)
from .pagination import Page, iter_pages, paginate
from .pool import TaskState, WorkerPool
from .utils import (
    AuthError,
    ProgressTracker,
    check_and_raise_auth_error,
    generate_run_id,
    get_timestamp,
    is_auth_error,
    setup_logging,
    write_csv,
    write_json,
    write_report_csv,
)

__all__ = [
    # Constants
    'constants',
    'ALL_PHASES',
    'BYTES_PER_GB',
    'DEFAULT_PAGE_SIZE',
    'DEFAULT_PARALLEL_WORKERS',
    'PHASE_COMPUTE',
    'PHASE_NETWORK',
    'PHASE_STORAGE',
    'PROVIDER_YANDEX',
    'billed_cores',
    'bytes_to_whole_gb',
    # Models
    'Account',
    'Disk',
    'Instance',
    'Project',
    'ProjectSummary',
    'summarize_project',
    'summarize_projects',
    'total_summary',
    # API
    'InstanceRef',
    'ProjectRef',
    'ResourceAPI',
    'YandexCloudAPI',
    'build_sdk',
    # Pagination
    'Page',
    'iter_pages',
    'paginate',
    # Pool
    'TaskState',
    'WorkerPool',
    # Config
    'Credentials',
    'CredentialsError',
    'load_config',
    'resolve_credentials',
    # Utils
    'AuthError',
    'ProgressTracker',
    'check_and_raise_auth_error',
    'generate_run_id',
    'get_timestamp',
    'is_auth_error',
    'setup_logging',
    'write_csv',
    'write_json',
    'write_report_csv',
]

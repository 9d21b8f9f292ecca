"""
Constants for YC Inventory collectors.

This module defines all magic strings and numbers used across the codebase
to prevent typos, ensure consistency, and make maintenance easier.
"""

# =============================================================================
# Byte/Size Conversion Constants
# =============================================================================

BYTES_PER_GB = 1024 ** 3

# core_fraction is a percentage of a full core
CORE_FRACTION_FULL = 100

# =============================================================================
# Default Configuration Values
# =============================================================================

DEFAULT_PARALLEL_WORKERS = 10
DEFAULT_PAGE_SIZE = 1000
DEFAULT_OUTPUT_DIR = "."
DEFAULT_LOG_LEVEL = "INFO"

# =============================================================================
# Provider
# =============================================================================

PROVIDER_YANDEX = "yandex"

# =============================================================================
# Collection Phases
# =============================================================================

PHASE_COMPUTE = "compute"
PHASE_STORAGE = "storage"
PHASE_NETWORK = "network"

ALL_PHASES = (PHASE_COMPUTE, PHASE_STORAGE, PHASE_NETWORK)

# =============================================================================
# Credentials
# =============================================================================

TOKEN_ENV_VAR = "YANDEX_CLOUD_TOKEN"
YC_CLI_CONFIG_PATH = "~/.config/yandex-cloud/config.yaml"
YC_CLI_DEFAULT_PROFILE = "default"

# =============================================================================
# Report
# =============================================================================

REPORT_CSV_FILENAME = "instances.csv"

# Column headers as the report has always printed them
REPORT_COLUMNS = {
    'account_name': 'Cloud',
    'project_name': 'Folder',
    'cpu_cores': 'CPU (cores)',
    'memory_gb': 'Memory (Gb)',
    'disk_gb': 'Disc (Gb)',
    's3_gb': 'S3 (Gb)',
    'ip_count': 'IPs',
}


# =============================================================================
# Helper Functions
# =============================================================================

def bytes_to_whole_gb(bytes_value: int) -> int:
    """Convert bytes to whole gigabytes, truncating any remainder."""
    if not bytes_value:
        return 0
    return int(bytes_value) // BYTES_PER_GB


def billed_cores(cores: int, core_fraction: int) -> int:
    """
    Number of whole cores billed for an instance.

    Multiplies before dividing so that a partial core_fraction still counts:
    4 cores at 50% -> 2. The result is truncated toward zero, so 1 core at
    20% -> 0.
    """
    if not cores or not core_fraction:
        return 0
    return (int(cores) * int(core_fraction)) // CORE_FRACTION_FULL

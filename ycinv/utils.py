"""
Utility functions for YC Inventory collectors.

Logging Level Standards:
------------------------
- ERROR: A collection task that failed as a whole
         "[compute] Failed to collect folder prod (b1g...): {e}"
- WARNING: Per-item lookups skipped inside a task
           "Failed to get disk {id} for instance {name}: {e}"
- INFO: Progress messages, resource counts
        "Found 42 folders in 3 clouds"
- DEBUG: Per-page and per-item details
"""
import csv
import json
import logging
import os
import re
import sys
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import grpc
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from .constants import REPORT_COLUMNS

if TYPE_CHECKING:
    from rich.progress import TaskID

logger = logging.getLogger(__name__)


# =============================================================================
# Progress Tracking
# =============================================================================

class ProgressTracker:
    """
    Progress display for collection phases.

    Falls back to simple print statements if stdout is not a TTY (e.g., when
    piping output). advance() is driven by the worker pool's progress
    callback, which the pool already serializes.

    Usage:
        with ProgressTracker("Yandex Cloud", total_projects=len(projects)) as tracker:
            tracker.start_phase("compute")
            pool = WorkerPool(workers, on_progress=tracker.advance)
            pool.run(projects, collect_fn, phase="compute")
            tracker.complete_phase(failed=len(pool.failed))
    """

    def __init__(self, provider: str, total_projects: int = 0, show_progress: bool = True):
        self.provider = provider
        self.total_projects = total_projects
        self.show_progress = show_progress and sys.stdout.isatty()

        self.current_phase = ""
        self.completed = 0
        self.phases_completed: List[str] = []
        self.failures: Dict[str, int] = {}

        self._console: Optional[Console] = None
        self._progress: Optional[Progress] = None
        self._task: Optional["TaskID"] = None

    def __enter__(self):
        if self.show_progress:
            self._console = Console()
            self._progress = Progress(
                SpinnerColumn(),
                TextColumn("[bold blue]{task.description}"),
                BarColumn(),
                MofNCompleteColumn(),
                TimeElapsedColumn(),
                console=self._console,
                transient=False,
            )
            self._progress.start()
        else:
            print(f"\n{'='*60}")
            print(f"{self.provider} Collection Starting")
            print(f"{'='*60}")
            print(f"Folders: {self.total_projects}")
            print()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._progress is not None:
            self._progress.stop()
            assert self._console is not None
            self._console.print()
            self._print_summary_rich()
        else:
            self._print_summary_plain()
        return False

    def start_phase(self, phase: str):
        """Start a new progress bar for one collection phase."""
        self.current_phase = phase
        self.completed = 0
        if self._progress is not None:
            self._task = self._progress.add_task(
                f"{self.provider} [{phase}]", total=self.total_projects or 1
            )
        else:
            print(f"  [{phase}] Collecting from {self.total_projects} folders...")

    def advance(self, completed: int, total: int):
        """Record that `completed` of `total` tasks have finished."""
        self.completed = completed
        if self._progress is not None and self._task is not None:
            self._progress.update(self._task, completed=completed, total=total)

    def complete_phase(self, failed: int = 0):
        """Mark the current phase as complete."""
        self.phases_completed.append(self.current_phase)
        self.failures[self.current_phase] = failed
        if self._progress is None:
            print(f"  [{self.current_phase}] Complete - {self.completed} folders, {failed} failed")

    def _print_summary_rich(self):
        """Print a formatted summary using rich."""
        table = Table(title=f"{self.provider} Collection Summary", show_header=False)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green")

        table.add_row("Folders", f"{self.total_projects:,}")
        for phase in self.phases_completed:
            table.add_row(f"Failed ({phase})", str(self.failures.get(phase, 0)))

        assert self._console is not None
        self._console.print(Panel(table))

    def _print_summary_plain(self):
        """Print a plain text summary."""
        print(f"\n{'='*60}")
        print(f"{self.provider} Collection Complete")
        print(f"{'='*60}")
        print(f"  Folders:         {self.total_projects:,}")
        for phase in self.phases_completed:
            print(f"  Failed ({phase}): {self.failures.get(phase, 0)}")
        print()


def generate_run_id() -> str:
    """Generate a unique run ID."""
    return f"{datetime.now(timezone.utc).strftime('%Y%m%d-%H%M%S')}-{str(uuid.uuid4())[:8]}"


def get_timestamp() -> str:
    """Get current UTC timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')


# =============================================================================
# Errors
# =============================================================================

class AuthError(Exception):
    """Custom exception for authentication failures.

    Raised when the cloud API rejects the credentials; collection cannot
    produce anything useful past this point.
    """
    def __init__(self, message: str, provider: str, original_error: Optional[Exception] = None):
        self.provider = provider
        self.original_error = original_error
        super().__init__(message)


# gRPC status codes that mean the credentials themselves were rejected
AUTH_STATUS_CODES = {grpc.StatusCode.UNAUTHENTICATED}


def is_auth_error(exc: Exception) -> bool:
    """
    Check if an exception represents an authentication error.

    The SDK surfaces failures as grpc.RpcError; the call's status code tells
    an expired or invalid token apart from ordinary failures. PERMISSION_DENIED
    is not included: it is routinely scoped to a single folder.
    """
    if isinstance(exc, AuthError):
        return True
    if isinstance(exc, grpc.RpcError):
        code = getattr(exc, 'code', None)
        if callable(code):
            return code() in AUTH_STATUS_CODES
    return False


def check_and_raise_auth_error(exc: Exception, context: str, provider: str) -> None:
    """
    Check if exception is an auth error and raise AuthError if so.

    Call this in exception handlers before re-raising or logging. If the
    exception is an auth error, raises AuthError to fail early. Otherwise,
    returns normally.

    Raises:
        AuthError: If exc is an authentication error
    """
    if isinstance(exc, AuthError):
        raise exc
    if is_auth_error(exc):
        raise AuthError(
            f"Authentication error while trying to {context}: {exc}",
            provider=provider,
            original_error=exc
        ) from exc


def describe_error(exc: Exception) -> str:
    """Short description of an exception for log lines."""
    if isinstance(exc, grpc.RpcError):
        code = getattr(exc, 'code', None)
        details = getattr(exc, 'details', None)
        if callable(code) and callable(details):
            return f"{code().name}: {details()}"
    return str(exc) or type(exc).__name__


# =============================================================================
# Logging
# =============================================================================

# OAuth tokens (y0_..., legacy AQAA...) and IAM tokens (t1....)
_TOKEN_PATTERNS = [
    re.compile(r'\b(y[0-3]_[A-Za-z0-9_-]{20,})'),
    re.compile(r'\b(AQAA[A-Za-z0-9_-]{20,})'),
    re.compile(r'\b(t1\.[A-Za-z0-9_.-]{20,})'),
]


def redact_log_message(message: str) -> str:
    """Mask credentials in a log message, keeping a short prefix for context."""
    if not message:
        return message
    for pattern in _TOKEN_PATTERNS:
        message = pattern.sub(lambda m: f"{m.group(1)[:4]}***", message)
    return message


class RedactingFilter(logging.Filter):
    """
    Logging filter that redacts credentials from log messages.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        """Redact tokens from the log record message."""
        if record.msg:
            record.msg = redact_log_message(str(record.msg))
        if record.args:
            record.args = tuple(
                redact_log_message(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )
        return True


def setup_logging(level: str = "INFO", output_dir: Optional[str] = None) -> logging.Logger:
    """
    Setup logging configuration with console and optional file output.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        output_dir: If provided, also write logs to a file in this directory

    Returns:
        Logger instance
    """
    numeric_level = getattr(logging, str(level).upper(), logging.INFO)

    formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - [%(threadName)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Clear existing handlers to avoid duplicates
    root_logger.handlers.clear()

    # Console handler (stderr)
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(RedactingFilter())
    root_logger.addHandler(console_handler)

    if output_dir:
        os.makedirs(output_dir, exist_ok=True)
        timestamp = datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')
        log_file = os.path.join(output_dir, f"yci_log_{timestamp}.log")

        file_handler = logging.FileHandler(log_file, mode='w')
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(RedactingFilter())
        root_logger.addHandler(file_handler)

        root_logger.info(f"Logging to: {log_file}")

    return logging.getLogger(__name__)


# =============================================================================
# Output
# =============================================================================

def write_json(data: Any, filepath: str) -> None:
    """Write data to JSON file with secure permissions."""
    # Owner read/write only: the inventory names every folder and instance
    fd = os.open(filepath, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    try:
        f = os.fdopen(fd, 'w')
    except Exception:
        os.close(fd)
        raise
    with f:
        json.dump(data, f, indent=2, default=str)
    print(f"Wrote {filepath}")


def write_csv(data: List[Dict], filepath: str, fieldnames: Optional[List[str]] = None,
              headers: Optional[Dict[str, str]] = None) -> None:
    """
    Write data to CSV file.

    Args:
        data: Rows as dicts
        filepath: Destination path
        fieldnames: Keys to write, in order (default: keys of the first row)
        headers: Optional display name per key for the header row
    """
    if not fieldnames:
        if not data:
            return
        fieldnames = list(data[0].keys())

    with open(filepath, 'w', newline='') as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames, extrasaction='ignore')
        if headers:
            writer.writerow({name: headers.get(name, name) for name in fieldnames})
        else:
            writer.writeheader()
        writer.writerows(data)
    print(f"Wrote {filepath}")


def write_report_csv(rows: List[Dict], filepath: str) -> None:
    """Write per-folder report rows with the report's column headers."""
    write_csv(rows, filepath, fieldnames=list(REPORT_COLUMNS.keys()), headers=REPORT_COLUMNS)


def print_summary_table(rows: List[Dict]) -> None:
    """Print the per-folder report to console."""
    if not rows:
        print("No folders found.")
        return

    keys = list(REPORT_COLUMNS.keys())
    headers = [REPORT_COLUMNS[k] for k in keys]
    table_rows = [[str(row.get(k, "")) for k in keys] for row in rows]

    widths = [len(h) for h in headers]
    for row in table_rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))

    header_line = " | ".join(h.ljust(widths[i]) for i, h in enumerate(headers))
    separator = "-+-".join("-" * w for w in widths)

    print("\n" + header_line)
    print(separator)

    for row in table_rows:
        print(" | ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)))

    # Totals over the numeric columns
    totals = ["TOTAL", ""]
    for k in keys[2:]:
        totals.append(str(sum(int(row.get(k, 0) or 0) for row in rows)))
    print(separator)
    print(" | ".join(cell.ljust(widths[i]) for i, cell in enumerate(totals)))
    print()

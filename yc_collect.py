#!/usr/bin/env python3
"""
YC Inventory - Yandex Cloud Resource Collector

Inventories every folder of every cloud the token can see: compute instances
with their disks, object storage usage and reserved addresses. Writes a
per-folder CSV report plus JSON inventory and summary files.

Usage:
    python3 yc_collect.py
    python3 yc_collect.py --token y0_... --output ./inventory
    python3 yc_collect.py --cloud-id b1gxxxxxxxxxxxxxxxxx --workers 4
    python3 yc_collect.py --skip-storage --log-level DEBUG
"""
import argparse
import logging
import os
import sys
from functools import partial
from typing import Dict, List, Optional, Sequence

import yaml

from ycinv.api import ResourceAPI, YandexCloudAPI, build_sdk
from ycinv.config import (
    CredentialsError,
    generate_sample_config,
    load_config,
    resolve_credentials,
)
from ycinv.constants import (
    ALL_PHASES,
    DEFAULT_PAGE_SIZE,
    DEFAULT_PARALLEL_WORKERS,
    PHASE_COMPUTE,
    PHASE_NETWORK,
    PHASE_STORAGE,
    PROVIDER_YANDEX,
    REPORT_CSV_FILENAME,
    bytes_to_whole_gb,
)
from ycinv.models import Instance, Project, summarize_projects, total_summary
from ycinv.pagination import paginate
from ycinv.pool import WorkerPool
from ycinv.utils import (
    AuthError,
    ProgressTracker,
    check_and_raise_auth_error,
    describe_error,
    generate_run_id,
    get_timestamp,
    print_summary_table,
    setup_logging,
    write_json,
    write_report_csv,
)

logger = logging.getLogger(__name__)

EXIT_FAILURE = 1
EXIT_AUTH_FAILURE = 2


# =============================================================================
# Authentication & Folders
# =============================================================================

def get_api(credentials) -> ResourceAPI:
    """Build the API client from resolved credentials."""
    return YandexCloudAPI(build_sdk(credentials))


def get_projects(api: ResourceAPI, page_size: Optional[int] = DEFAULT_PAGE_SIZE,
                 account_ids: Optional[Sequence[str]] = None) -> List[Project]:
    """
    Enumerate every folder of every cloud visible to the caller.

    Order follows the API listing order, clouds first then their folders.
    Nothing is sorted or deduplicated. Any listing failure aborts the whole
    enumeration, since collection needs a complete roster.

    Args:
        api: Remote API
        page_size: Page-size hint for the listing calls
        account_ids: If given, only clouds with these ids are enumerated

    Raises:
        AuthError: If the token was rejected
    """
    try:
        accounts = paginate(api.list_accounts, page_size)
    except Exception as e:
        check_and_raise_auth_error(e, "list clouds", PROVIDER_YANDEX)
        raise

    if account_ids:
        wanted = set(account_ids)
        missing = wanted - {a.id for a in accounts}
        if missing:
            logger.warning(f"Clouds not visible to this token: {', '.join(sorted(missing))}")
        accounts = [a for a in accounts if a.id in wanted]

    projects: List[Project] = []
    for account in accounts:
        try:
            refs = paginate(partial(api.list_projects, account.id), page_size)
        except Exception as e:
            check_and_raise_auth_error(e, f"list folders of cloud {account.name}", PROVIDER_YANDEX)
            raise
        logger.debug(f"Cloud {account.name} ({account.id}): {len(refs)} folders")
        for ref in refs:
            projects.append(Project(account_name=account.name, name=ref.name, id=ref.id))

    logger.info(f"Found {len(projects)} folders in {len(accounts)} clouds")
    return projects


# =============================================================================
# Per-Folder Collectors
# =============================================================================

def collect_compute(api: ResourceAPI, project: Project, page_size: Optional[int] = DEFAULT_PAGE_SIZE) -> None:
    """
    Collect instances and their disks into project.instances.

    Disk sizes need one lookup per disk: the boot disk first, then secondary
    disks in listing order. A failed lookup drops that disk only; the
    instance is kept with the disks that did resolve. A failed instance
    listing raises and fails the whole task.
    """
    refs = paginate(partial(api.list_instances, project.id), page_size)

    for ref in refs:
        instance = Instance(
            name=ref.name,
            cores=ref.cores,
            memory=ref.memory,
            core_fraction=ref.core_fraction,
        )

        disk_ids = [ref.boot_disk_id] if ref.boot_disk_id else []
        disk_ids.extend(ref.secondary_disk_ids)

        for disk_id in disk_ids:
            try:
                instance.disks.append(api.get_disk(disk_id))
            except Exception as e:
                logger.warning(
                    f"Failed to get disk {disk_id} of instance {ref.name} "
                    f"in folder {project.name}: {describe_error(e)}"
                )

        project.instances.append(instance)

    logger.debug(f"Folder {project.name}: {len(refs)} instances")


def collect_storage(api: ResourceAPI, project: Project, page_size: Optional[int] = DEFAULT_PAGE_SIZE) -> None:
    """
    Sum bucket usage into project.s3_size, in whole GB per bucket.

    A bucket whose stats cannot be read is skipped.
    """
    buckets = paginate(partial(api.list_buckets, project.id), page_size)

    for bucket_name in buckets:
        try:
            used_bytes = api.get_bucket_stats(bucket_name)
        except Exception as e:
            logger.warning(
                f"Failed to get stats of bucket {bucket_name} "
                f"in folder {project.name}: {describe_error(e)}"
            )
            continue
        project.s3_size += bytes_to_whole_gb(used_bytes)

    logger.debug(f"Folder {project.name}: {len(buckets)} buckets, {project.s3_size} GB")


def collect_network(api: ResourceAPI, project: Project, page_size: Optional[int] = DEFAULT_PAGE_SIZE) -> None:
    """Count reserved addresses into project.ip_count."""
    addresses = paginate(partial(api.list_addresses, project.id), page_size)
    project.ip_count = len(addresses)
    logger.debug(f"Folder {project.name}: {project.ip_count} addresses")


COLLECTORS = {
    PHASE_COMPUTE: collect_compute,
    PHASE_STORAGE: collect_storage,
    PHASE_NETWORK: collect_network,
}


def collect_all(
    api: ResourceAPI,
    projects: List[Project],
    phases: Sequence[str] = ALL_PHASES,
    workers: int = DEFAULT_PARALLEL_WORKERS,
    page_size: Optional[int] = DEFAULT_PAGE_SIZE,
    tracker: Optional[ProgressTracker] = None,
) -> Dict[str, List[str]]:
    """
    Run each collection phase over all folders, one pool pass per phase.

    Per-folder failures are logged by the pool and never raised here.

    Returns:
        Ids of the folders that failed, keyed by phase
    """
    failures: Dict[str, List[str]] = {}

    for phase in phases:
        collect_fn = partial(COLLECTORS[phase], api, page_size=page_size)

        if tracker:
            tracker.start_phase(phase)

        pool = WorkerPool(workers, on_progress=tracker.advance if tracker else None)
        pool.run(projects, collect_fn, phase=phase)
        failures[phase] = [p.id for p in pool.failed]

        if tracker:
            tracker.complete_phase(failed=len(pool.failed))

    return failures


# =============================================================================
# Output
# =============================================================================

def write_outputs(
    projects: List[Project],
    failures: Dict[str, List[str]],
    output_dir: str,
    run_id: str,
    timestamp: str,
) -> Dict[str, str]:
    """
    Write the CSV report plus JSON inventory and summary.

    Returns:
        Paths written, keyed by kind
    """
    summaries = summarize_projects(projects)
    rows = [s.to_dict() for s in summaries]

    inventory_data = {
        'run_id': run_id,
        'timestamp': timestamp,
        'provider': PROVIDER_YANDEX,
        'phases': list(failures.keys()),
        'failures': failures,
        'projects': [p.to_dict() for p in projects],
    }

    summary_data = {
        'run_id': run_id,
        'timestamp': timestamp,
        'provider': PROVIDER_YANDEX,
        'totals': total_summary(summaries),
        'projects': rows,
    }

    output_dir = output_dir.rstrip('/') or '.'
    os.makedirs(output_dir, exist_ok=True)

    # Short timestamp for filenames (HHMMSS)
    file_ts = timestamp[11:19].replace(":", "")
    paths = {
        'report': os.path.join(output_dir, REPORT_CSV_FILENAME),
        'inventory': os.path.join(output_dir, f"yci_inv_{file_ts}.json"),
        'summary': os.path.join(output_dir, f"yci_sum_{file_ts}.json"),
    }

    write_report_csv(rows, paths['report'])
    write_json(inventory_data, paths['inventory'])
    write_json(summary_data, paths['summary'])

    print_summary_table(rows)
    return paths


# =============================================================================
# CLI
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='YC Inventory - Yandex Cloud Resource Collector')
    parser.add_argument('--token', help='OAuth token (default: $YANDEX_CLOUD_TOKEN, then yc CLI profile)')
    parser.add_argument('--config', help='YAML config file')
    parser.add_argument('--output', help='Output directory (default: .)')
    parser.add_argument('--workers', type=int,
                        help=f'Concurrent workers per phase (default: {DEFAULT_PARALLEL_WORKERS})')
    parser.add_argument('--page-size', dest='page_size', type=int,
                        help=f'Page-size hint for listing calls (default: {DEFAULT_PAGE_SIZE})')
    parser.add_argument('--cloud-id', dest='cloud_ids',
                        help='Comma-separated cloud ids to collect (default: all visible clouds)')
    parser.add_argument('--skip-compute', action='store_true', help='Skip instances and disks')
    parser.add_argument('--skip-storage', action='store_true', help='Skip bucket usage')
    parser.add_argument('--skip-network', action='store_true', help='Skip reserved addresses')
    parser.add_argument('--log-level', dest='log_level', help='Logging level (default: INFO)')
    parser.add_argument('--log-file', action='store_true', help='Also write a log file to the output directory')
    parser.add_argument('--generate-config', action='store_true', help='Print a sample config file and exit')
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.generate_config:
        print(generate_sample_config())
        return

    try:
        config = load_config(args)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(EXIT_FAILURE)

    setup_logging(config['log_level'], config['output'] if args.log_file else None)

    phases = [phase for phase in ALL_PHASES if not getattr(args, f"skip_{phase}", False)]
    if not phases:
        logger.error("All collection phases skipped, nothing to do")
        sys.exit(EXIT_FAILURE)

    try:
        credentials = resolve_credentials(args.token)
    except CredentialsError as e:
        logger.error(str(e))
        sys.exit(EXIT_AUTH_FAILURE)
    logger.info(f"Using token from {credentials.source}")

    try:
        api = get_api(credentials)
        projects = get_projects(api, page_size=config['page_size'], account_ids=config['cloud_ids'])

        run_id = generate_run_id()
        timestamp = get_timestamp()

        with ProgressTracker("Yandex Cloud", total_projects=len(projects)) as tracker:
            failures = collect_all(
                api,
                projects,
                phases=phases,
                workers=config['workers'],
                page_size=config['page_size'],
                tracker=tracker,
            )

        failed = {pid for ids in failures.values() for pid in ids}
        if failed:
            logger.warning(f"{len(failed)} folder(s) have incomplete data; see 'failures' in the inventory")

        paths = write_outputs(projects, failures, config['output'], run_id, timestamp)

        print("\nOutput files:")
        print(f"  Report: {paths['report']}")
        print(f"  Inventory: {paths['inventory']}")
        print(f"  Summary: {paths['summary']}")

    except AuthError as e:
        logger.error(f"Authentication failed: {e}")
        sys.exit(EXIT_AUTH_FAILURE)
    except Exception as e:
        logger.error(f"Collection failed: {describe_error(e)}", exc_info=True)
        sys.exit(EXIT_FAILURE)


if __name__ == '__main__':
    main()

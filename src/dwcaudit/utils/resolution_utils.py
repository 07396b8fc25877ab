"""Reports on whether reference identifiers resolve (HTTP status checks)."""

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, Iterator, List, Tuple

from tqdm import tqdm

from dwcaudit.utils.archive_utils import (
    dataset_name,
    get_dataset_dirs,
    get_identifier_column,
    get_unique_identifiers,
)
from dwcaudit.utils.identifier_utils import (
    DEFAULT_TIMEOUT,
    SUMMARY_BUCKETS,
    ResolutionResult,
    check_url,
    get_domain,
    summary_bucket,
)
from dwcaudit.utils.tsv_utils import append_tsv_row, init_tsv, write_tsv

RESULT_COLUMNS = ["identifier", "http_code", "final_url", "status"]
DOMAIN_COLUMNS = ["domain", "total", "ok", "redirect", "not_found", "error"]

logger = logging.getLogger(__name__)


def _result_row(result: ResolutionResult, with_datasets: bool = False) -> dict:
    row = {
        "identifier": result.identifier,
        "http_code": result.http_code,
        "final_url": result.final_url,
        "status": result.status,
    }
    if with_datasets:
        row["datasets"] = ", ".join(result.datasets)
    return row


def _print_summary(counts: Dict[str, int], total: int) -> None:
    print("\n=== Summary ===")
    print(f"OK (200, direct):       {counts['ok']}")
    print(f"Redirected:             {counts['redirect']}")
    print(f"Not found (404):        {counts['not_found']}")
    print(f"Other errors:           {counts['error']}")
    print(f"Total checked:          {total}")


def check_identifiers(
    identifiers: List[str], outpath: str = ".", timeout: float = DEFAULT_TIMEOUT
) -> Tuple[str, Dict[str, int]]:
    """Check the resolution of every identifier of a single dataset.

    Results are streamed to check_identifiers.tsv as they are received.

    Args:
        identifiers: Unique identifiers of the dataset
        outpath: Directory to write the output file
        timeout: Per-request timeout in seconds

    Returns:
        Tuple of the results file path and the summary bucket counts
    """
    results_path = os.path.join(outpath, "check_identifiers.tsv")
    init_tsv(results_path, RESULT_COLUMNS)

    counts = {bucket: 0 for bucket in SUMMARY_BUCKETS}
    for identifier in tqdm(identifiers, desc="Checking identifiers", unit="id"):
        result = check_url(identifier, timeout=timeout)
        counts[summary_bucket(result.status)] += 1
        append_tsv_row(results_path, _result_row(result))

    _print_summary(counts, len(identifiers))
    return results_path, counts


def collect_global_identifiers(dataset_dirs: Iterable[str]) -> Tuple[Dict[str, List[str]], int, int]:
    """Deduplicate identifiers across datasets.

    Returns:
        Tuple of (identifier -> names of the datasets it appears in,
        number of datasets with identifiers, number without)
    """
    global_identifiers = {}
    with_ids = 0
    without_ids = 0

    for dataset_dir in dataset_dirs:
        name = dataset_name(dataset_dir)
        column_index = get_identifier_column(dataset_dir)
        if column_index is None:
            without_ids += 1
            continue

        identifiers = get_unique_identifiers(dataset_dir, column_index)
        if not identifiers:
            without_ids += 1
            continue

        with_ids += 1
        for identifier in identifiers:
            global_identifiers.setdefault(identifier, []).append(name)

    return global_identifiers, with_ids, without_ids


def _resolve_all(identifiers: List[str], timeout: float, workers: int) -> Iterator[ResolutionResult]:
    """Yield check results in input order, optionally from a bounded thread pool."""
    if workers <= 1:
        for identifier in identifiers:
            yield check_url(identifier, timeout=timeout)
        return

    with ThreadPoolExecutor(max_workers=workers) as executor:
        yield from executor.map(lambda i: check_url(i, timeout=timeout), identifiers)


def check_all(
    base_dir: str = ".", outpath: str = ".", timeout: float = DEFAULT_TIMEOUT, workers: int = 1
) -> Tuple[str, str, Dict[str, int]]:
    """Check URL resolution for identifiers across all datasets.

    Identifiers are deduplicated globally first, so each one is checked
    exactly once. Per-identifier results are streamed to
    check_all_results.tsv; a per-domain summary goes to check_all_domains.tsv.

    Args:
        base_dir: Directory containing the dataset directories
        outpath: Directory to write output files
        timeout: Per-request timeout in seconds
        workers: Number of identifiers checked in parallel

    Returns:
        Tuple of the results path, the domains path and the overall counts
    """
    dataset_dirs = get_dataset_dirs(base_dir)
    global_identifiers, with_ids, without_ids = collect_global_identifiers(dataset_dirs)
    identifiers = list(global_identifiers)
    total_unique = len(identifiers)

    results_path = os.path.join(outpath, "check_all_results.tsv")
    domains_path = os.path.join(outpath, "check_all_domains.tsv")

    print("=============================================================")
    print("  IDENTIFIER URL RESOLUTION CHECK ACROSS ALL DATASETS")
    print("=============================================================\n")
    print(f"Datasets scanned:              {len(dataset_dirs)}")
    print(f"Datasets with identifiers:     {with_ids}")
    print(f"Datasets without identifiers:  {without_ids}")
    print(f"Total unique identifiers:      {total_unique}\n")

    init_tsv(results_path, RESULT_COLUMNS + ["datasets"])

    counts = {bucket: 0 for bucket in SUMMARY_BUCKETS}
    domain_results = {}

    results = _resolve_all(identifiers, timeout, workers)
    for result in tqdm(results, total=total_unique, desc="Checking URLs", unit="id"):
        result.datasets = global_identifiers[result.identifier]
        bucket = summary_bucket(result.status)
        counts[bucket] += 1

        host = get_domain(result.url)
        if host not in domain_results:
            domain_results[host] = {"total": 0, "ok": 0, "redirect": 0, "not_found": 0, "error": 0}
        domain_results[host]["total"] += 1
        domain_results[host][bucket] += 1

        append_tsv_row(results_path, _result_row(result, with_datasets=True))

    _print_summary(counts, total_unique)

    ordered = sorted(domain_results.items(), key=lambda item: item[1]["total"], reverse=True)
    write_tsv(
        domains_path,
        DOMAIN_COLUMNS,
        [[domain] + [r[key] for key in DOMAIN_COLUMNS[1:]] for domain, r in ordered],
    )

    print("\n=== Results by domain ===\n")
    print(f"{'Domain':<45}{'Total':<8}{'OK':<8}{'Redir':<8}{'404':<8}Error")
    print("-" * 85)
    for domain, r in ordered:
        print(f"{domain:<45}{r['total']:<8}{r['ok']:<8}{r['redirect']:<8}{r['not_found']:<8}{r['error']}")

    logger.info(f"Results written to {results_path}")
    logger.info(f"Domain summary written to {domains_path}")

    return results_path, domains_path, counts

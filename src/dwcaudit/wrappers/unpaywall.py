"""API wrapper for Unpaywall open access lookups."""

# See https://unpaywall.org/products/api

import logging
import os
import time
from typing import Dict, Iterable, List, Optional, Tuple

import requests
from tqdm import tqdm

from dwcaudit.utils.archive_utils import (
    dataset_name,
    get_dataset_dirs,
    get_identifier_column,
    get_unique_identifiers,
)
from dwcaudit.utils.identifier_utils import USER_HEADERS, extract_doi
from dwcaudit.utils.tsv_utils import append_tsv_row, init_tsv, write_tsv

BASE_URL = "https://api.oadoi.org/v2"

DEFAULT_EMAIL = "unpaywall@impactstory.org"
DEFAULT_TIMEOUT = 15

# Pause between queries, as asked by the API usage policy
REQUEST_DELAY = 0.1

RESULT_COLUMNS = ["doi", "is_oa", "oa_status", "journal", "publisher", "datasets"]

# Unpaywall asks callers to identify themselves with an email address
UNPAYWALL_EMAIL = os.getenv("UNPAYWALL_EMAIL", DEFAULT_EMAIL)

logger = logging.getLogger(__name__)


def query_unpaywall(doi: str, email: str = UNPAYWALL_EMAIL, timeout: float = DEFAULT_TIMEOUT) -> Optional[dict]:
    """Query the Unpaywall API for a DOI.

    Args:
        doi: The DOI, without a doi.org prefix
        email: Contact email sent with the request
        timeout: Request timeout in seconds

    Returns:
        Dict with is_oa, oa_status, journal and publisher, or None if the
        request failed or the response lacks is_oa
    """
    url = f"{BASE_URL}/{doi.lower()}"
    try:
        response = requests.get(url, params={"email": email}, headers=USER_HEADERS, timeout=timeout)
    except requests.exceptions.RequestException as e:
        logger.debug(f"Unpaywall request for {doi} failed: {e}")
        return None

    if response.status_code != 200 or not response.content:
        logger.debug(f"Unpaywall returned status {response.status_code} for {doi}")
        return None

    try:
        data = response.json()
    except ValueError:
        logger.debug(f"Unpaywall returned invalid JSON for {doi}")
        return None

    if not isinstance(data, dict) or data.get("is_oa") is None:
        return None

    return {
        "is_oa": bool(data["is_oa"]),
        "oa_status": data.get("oa_status") or "",
        "journal": data.get("journal_name") or "",
        "publisher": data.get("publisher") or "",
    }


def collect_global_dois(dataset_dirs: Iterable[str]) -> Dict[str, List[str]]:
    """Map every DOI found in reference identifiers to the datasets citing it."""
    global_dois = {}
    for dataset_dir in dataset_dirs:
        name = dataset_name(dataset_dir)
        column_index = get_identifier_column(dataset_dir)
        if column_index is None:
            continue

        for identifier in get_unique_identifiers(dataset_dir, column_index):
            doi = extract_doi(identifier)
            if doi is None:
                continue
            global_dois.setdefault(doi, []).append(name)
    return global_dois


def check_oa(
    base_dir: str = ".",
    outpath: str = ".",
    email: str = UNPAYWALL_EMAIL,
    timeout: float = DEFAULT_TIMEOUT,
    delay: float = REQUEST_DELAY,
) -> Optional[Tuple[str, str, dict]]:
    """Check the open access status of every DOI cited across all datasets.

    Per-DOI results are streamed to check_oa_results.tsv as they are
    received. Failed lookups are written with oa_status "error" and are
    counted separately from closed access. check_oa_summary.tsv holds the
    count per OA status, with errors on the last row.

    Args:
        base_dir: Directory containing the dataset directories
        outpath: Directory to write output files
        email: Contact email sent to Unpaywall
        timeout: Request timeout in seconds
        delay: Pause between requests in seconds

    Returns:
        Tuple of the results path, the summary path and the counts, or
        None if no DOIs were found
    """
    global_dois = collect_global_dois(get_dataset_dirs(base_dir))
    total_dois = len(global_dois)

    print("=============================================================")
    print("  OPEN ACCESS CHECK VIA UNPAYWALL")
    print("=============================================================\n")
    print(f"Total unique DOIs found: {total_dois}\n")

    if total_dois == 0:
        logger.info("No DOIs to check.")
        return None

    results_path = os.path.join(outpath, "check_oa_results.tsv")
    summary_path = os.path.join(outpath, "check_oa_summary.tsv")
    init_tsv(results_path, RESULT_COLUMNS)

    counts = {"open": 0, "closed": 0, "error": 0}
    oa_status_counts = {}

    for doi, datasets in tqdm(global_dois.items(), total=total_dois, desc="Checking DOIs", unit="doi"):
        result = query_unpaywall(doi, email=email, timeout=timeout)
        datasets_str = ", ".join(datasets)

        if result is None:
            counts["error"] += 1
            append_tsv_row(results_path, {
                "doi": doi,
                "is_oa": "",
                "oa_status": "error",
                "journal": "",
                "publisher": "",
                "datasets": datasets_str,
            })
        else:
            counts["open" if result["is_oa"] else "closed"] += 1
            oa_status_counts[result["oa_status"]] = oa_status_counts.get(result["oa_status"], 0) + 1
            append_tsv_row(results_path, {
                "doi": doi,
                "is_oa": "true" if result["is_oa"] else "false",
                "oa_status": result["oa_status"],
                "journal": result["journal"],
                "publisher": result["publisher"],
                "datasets": datasets_str,
            })

        time.sleep(delay)

    oa_status_counts = dict(sorted(oa_status_counts.items(), key=lambda item: item[1], reverse=True))
    summary_rows = [[status, count] for status, count in oa_status_counts.items()]
    if counts["error"] > 0:
        summary_rows.append(["error", counts["error"]])
    write_tsv(summary_path, ["oa_status", "count"], summary_rows)

    oa_pct = round(100 * counts["open"] / total_dois, 1)
    print("\n=== Summary ===")
    print(f"Total DOIs checked:    {total_dois}")
    print(f"Open access:           {counts['open']} ({oa_pct}%)")
    print(f"Closed:                {counts['closed']}")
    print(f"Errors:                {counts['error']}")

    print("\n=== By OA status ===")
    print(f"{'Status':<20} Count")
    print("-" * 30)
    for status, count in summary_rows:
        print(f"{status:<20} {count}")

    logger.info(f"Results written to {results_path}")
    logger.info(f"Summary written to {summary_path}")

    counts["by_status"] = oa_status_counts
    return results_path, summary_path, counts

"""Classify reference identifiers by the domain they point to."""

import logging
import os
from typing import Dict, List, Tuple

from dwcaudit.utils.archive_utils import (
    dataset_name,
    get_dataset_dirs,
    get_identifier_column,
    get_unique_identifiers,
)
from dwcaudit.utils.identifier_utils import ensure_scheme, get_domain
from dwcaudit.utils.tsv_utils import write_tsv

logger = logging.getLogger(__name__)


def identifier_domain(identifier: str) -> str:
    return get_domain(ensure_scheme(identifier))


def group_by_domain(identifiers: List[str]) -> Dict[str, List[str]]:
    """Group identifiers by domain, largest group first.

    Groups of equal size keep the order in which their domain was first seen.
    """
    by_domain = {}
    for identifier in identifiers:
        by_domain.setdefault(identifier_domain(identifier), []).append(identifier)
    return dict(sorted(by_domain.items(), key=lambda item: len(item[1]), reverse=True))


def classify_identifiers(identifiers: List[str], dataset: str, outpath: str = ".") -> Tuple[str, Dict[str, List[str]]]:
    """Classify the identifiers of a single dataset by domain.

    Prints a summary by domain and the identifiers of each domain, and
    writes classify_identifiers.tsv (identifier, domain).

    Returns:
        Tuple of the output path and the domain -> identifiers mapping
    """
    by_domain = group_by_domain(identifiers)

    print(f"Dataset: {dataset}")
    print(f"Unique identifiers: {len(identifiers)}\n")

    print("=== Summary by domain ===")
    print(f"{'Domain':<50}Count")
    print("-" * 60)
    for domain, ids in by_domain.items():
        print(f"{domain:<50}{len(ids)}")

    print("\n=== Identifiers by domain ===")
    rows = []
    for domain, ids in by_domain.items():
        print(f"\n[{domain}] ({len(ids)})")
        for identifier in sorted(ids):
            print(f"  {identifier}")
            rows.append([identifier, domain])

    output_path = os.path.join(outpath, "classify_identifiers.tsv")
    write_tsv(output_path, ["identifier", "domain"], rows)
    logger.info(f"Classification written to {output_path}")

    return output_path, by_domain


def classify_all(base_dir: str = ".", outpath: str = ".") -> Tuple[str, str, Dict[str, int]]:
    """Classify identifiers by domain across all datasets.

    Domain counts add up the unique identifiers of each dataset, so an
    identifier cited by two datasets counts twice.

    Writes classify_all_identifiers.tsv (identifier, domain, dataset) and
    classify_all_domains.tsv (domain, count).

    Returns:
        Tuple of both output paths and the global domain counts
    """
    dataset_dirs = get_dataset_dirs(base_dir)

    global_domains = {}
    global_total = 0
    with_ids = 0
    without_ids = 0
    per_dataset = []
    identifier_rows = []

    for dataset_dir in dataset_dirs:
        name = dataset_name(dataset_dir)

        column_index = get_identifier_column(dataset_dir)
        if column_index is None:
            without_ids += 1
            per_dataset.append({"name": name, "count": 0, "has_identifiers": False, "domains": {}})
            continue

        identifiers = get_unique_identifiers(dataset_dir, column_index)
        if not identifiers:
            without_ids += 1
            per_dataset.append({"name": name, "count": 0, "has_identifiers": True, "domains": {}})
            continue

        with_ids += 1
        global_total += len(identifiers)

        local_domains = {}
        for identifier in identifiers:
            host = identifier_domain(identifier)
            global_domains[host] = global_domains.get(host, 0) + 1
            local_domains[host] = local_domains.get(host, 0) + 1
            identifier_rows.append([identifier, host, name])

        per_dataset.append({
            "name": name,
            "count": len(identifiers),
            "has_identifiers": True,
            "domains": local_domains,
        })

    global_domains = dict(sorted(global_domains.items(), key=lambda item: item[1], reverse=True))

    identifiers_path = os.path.join(outpath, "classify_all_identifiers.tsv")
    domains_path = os.path.join(outpath, "classify_all_domains.tsv")
    write_tsv(identifiers_path, ["identifier", "domain", "dataset"], identifier_rows)
    write_tsv(domains_path, ["domain", "count"], [[d, c] for d, c in global_domains.items()])

    print("=============================================================")
    print("  IDENTIFIER CLASSIFICATION ACROSS ALL DATASETS")
    print("=============================================================\n")
    print(f"Datasets scanned:              {len(dataset_dirs)}")
    print(f"Datasets with identifiers:     {with_ids}")
    print(f"Datasets without identifiers:  {without_ids}")
    print(f"Total unique identifiers:      {global_total}\n")

    print("=== Global domain summary ===\n")
    print(f"{'Domain':<50}Count")
    print("-" * 60)
    for domain, count in global_domains.items():
        print(f"{domain:<50}{count}")
    print("-" * 60)
    print(f"{'TOTAL':<50}{global_total}\n")

    print("=== Per-dataset breakdown ===\n")
    for ds in per_dataset:
        if not ds["has_identifiers"]:
            print(f"{ds['name']}: no identifier field")
            continue
        if ds["count"] == 0:
            print(f"{ds['name']}: 0 identifiers")
            continue
        print(f"{ds['name']} ({ds['count']} identifiers)")
        for domain, count in sorted(ds["domains"].items(), key=lambda item: item[1], reverse=True):
            print(f"  {domain:<48}{count}")

    logger.info(f"Results written to {identifiers_path} and {domains_path}")

    return identifiers_path, domains_path, global_domains

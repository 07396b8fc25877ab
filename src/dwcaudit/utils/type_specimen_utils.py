"""Analyse type specimen data: holding institutions and taxa without types."""

import logging
import os
from typing import Dict, List, Tuple

from dwcaudit.utils.archive_utils import (
    INSTITUTION_CODE_TERM,
    TAXON_FILE,
    TYPES_AND_SPECIMEN,
    TYPES_FILE,
    dataset_name,
    get_dataset_dirs,
    load_descriptor,
    read_rows,
)
from dwcaudit.utils.string_utils import extract_acronym
from dwcaudit.utils.taxa_utils import percentage, read_taxa
from dwcaudit.utils.tsv_utils import write_tsv

logger = logging.getLogger(__name__)


def _by_count(counts: Dict[str, int]) -> Dict[str, int]:
    return dict(sorted(counts.items(), key=lambda item: item[1], reverse=True))


def count_institutions(dataset_dirs: List[str]) -> dict:
    """Count type specimen rows per raw institution string and per acronym.

    Also collects, per dataset, the taxon ids (coreid, column 0) that have
    at least one type specimen row.
    """
    stats = {
        "institutions": {},
        "normalised": {},
        "variants": {},
        "empty": 0,
        "total_rows": 0,
        "with_types": 0,
        "without_types": 0,
        "taxa_with_types": {},
    }

    for dataset_dir in dataset_dirs:
        name = dataset_name(dataset_dir)
        types_file = os.path.join(dataset_dir, TYPES_FILE)
        descriptor = load_descriptor(dataset_dir)

        if descriptor is None or not descriptor.has_extension(TYPES_AND_SPECIMEN) or not os.path.isfile(types_file):
            stats["without_types"] += 1
            continue

        stats["with_types"] += 1
        institution_col = descriptor.column_index(INSTITUTION_CODE_TERM, TYPES_AND_SPECIMEN)
        coreids = stats["taxa_with_types"].setdefault(name, set())

        for fields in read_rows(types_file):
            stats["total_rows"] += 1

            coreid = fields[0].strip()
            if coreid:
                coreids.add(coreid)

            institution = ""
            if institution_col is not None and institution_col < len(fields):
                institution = fields[institution_col].strip()
            if institution == "":
                stats["empty"] += 1
                continue

            stats["institutions"][institution] = stats["institutions"].get(institution, 0) + 1

            acronym = extract_acronym(institution)
            stats["normalised"][acronym] = stats["normalised"].get(acronym, 0) + 1
            variants = stats["variants"].setdefault(acronym, [])
            if institution not in variants:
                variants.append(institution)

    stats["institutions"] = _by_count(stats["institutions"])
    stats["normalised"] = _by_count(stats["normalised"])
    return stats


def find_taxa_without_types(dataset_dirs: List[str], taxa_with_types: Dict[str, set]) -> Tuple[List[list], List[dict]]:
    """List the taxa that have no type specimen row.

    Returns:
        Tuple of the TSV rows and the per-dataset statistics
    """
    rows = []
    per_dataset = []

    for dataset_dir in dataset_dirs:
        if not os.path.isfile(os.path.join(dataset_dir, TAXON_FILE)):
            continue

        name = dataset_name(dataset_dir)
        descriptor = load_descriptor(dataset_dir)
        has_extension = descriptor is not None and descriptor.has_extension(TYPES_AND_SPECIMEN)
        typed = taxa_with_types.get(name, set()) if has_extension else set()

        total = 0
        without = 0
        for taxon in read_taxa(dataset_dir):
            total += 1
            if taxon["id"] in typed:
                continue
            without += 1
            rows.append([name, taxon["id"], taxon["scientificName"], taxon["taxonRank"],
                         "yes" if has_extension else "no"])

        per_dataset.append({
            "name": name,
            "total": total,
            "without": without,
            "has_extension": has_extension,
        })

    return rows, per_dataset


def type_specimens(base_dir: str = ".", outpath: str = ".") -> Tuple[List[str], dict]:
    """Analyse type specimens across all datasets.

    Writes:
        type_specimens_institutions.tsv (institutionCode, count)
        type_specimens_normalised.tsv (acronym, count, variants)
        taxa_without_types.tsv (dataset, taxon_id, scientificName, taxonRank, has_types_extension)

    Returns:
        Tuple of the output paths and the institution statistics
    """
    dataset_dirs = get_dataset_dirs(base_dir)

    logger.info("Analysing type specimens across all datasets...")
    stats = count_institutions(dataset_dirs)
    taxa_rows, per_dataset = find_taxa_without_types(dataset_dirs, stats["taxa_with_types"])

    institutions_path = os.path.join(outpath, "type_specimens_institutions.tsv")
    normalised_path = os.path.join(outpath, "type_specimens_normalised.tsv")
    taxa_path = os.path.join(outpath, "taxa_without_types.tsv")

    write_tsv(institutions_path, ["institutionCode", "count"],
              [[inst, count] for inst, count in stats["institutions"].items()])
    write_tsv(normalised_path, ["acronym", "count", "variants"],
              [[acronym, count, " | ".join(stats["variants"][acronym])]
               for acronym, count in stats["normalised"].items()])
    write_tsv(taxa_path, ["dataset", "taxon_id", "scientificName", "taxonRank", "has_types_extension"],
              taxa_rows)

    print("--- Normalised institution summary (by acronym) ---")
    print(f"{'Acronym':<20} {'Types':>6}  Variants")
    print("-" * 90)
    for acronym, count in stats["normalised"].items():
        num_variants = len(stats["variants"][acronym])
        note = f"({num_variants} variants)" if num_variants > 1 else ""
        print(f"{acronym:<20} {count:>6}  {note}")
    if stats["empty"] > 0:
        print(f"{'(empty/missing)':<20} {stats['empty']:>6}")

    print("\n--- Type specimen overview ---")
    print(f"Total datasets:                    {len(dataset_dirs)}")
    print(f"  With TypesAndSpecimen extension: {stats['with_types']}")
    print(f"  Without:                         {stats['without_types']}")
    print(f"Total type specimen rows:          {stats['total_rows']}")
    print(f"Distinct raw institution strings:  {len(stats['institutions'])}")
    print(f"Distinct acronyms (normalised):    {len(stats['normalised'])}")

    total_taxa = sum(ds["total"] for ds in per_dataset)
    total_without = len(taxa_rows)
    total_with = total_taxa - total_without
    stats["total_taxa"] = total_taxa
    stats["taxa_without_types"] = total_without

    print("\n--- Taxa with/without type information ---")
    print(f"Total taxa:                        {total_taxa}")
    print(f"  With type info:                  {total_with} ({percentage(total_with, total_taxa)}%)")
    print(f"  Without type info:               {total_without} ({percentage(total_without, total_taxa)}%)")

    print("\n--- Per-dataset breakdown ---")
    print(f"{'Dataset':<40} {'Total':>7} {'With':>7} {'Without':>7} Has ext?")
    print("-" * 80)
    for ds in per_dataset:
        ext = "yes" if ds["has_extension"] else "no"
        print(f"{ds['name']:<40} {ds['total']:>7} {ds['total'] - ds['without']:>7} {ds['without']:>7} {ext}")

    paths = [institutions_path, normalised_path, taxa_path]
    logger.info(f"TSV files written to: {', '.join(paths)}")
    return paths, stats

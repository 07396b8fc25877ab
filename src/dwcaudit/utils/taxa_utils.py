"""Reports on taxa and references: name listings and missing-reference checks."""

import logging
import os
from typing import List, Optional, Tuple

from dwcaudit.utils.archive_utils import (
    REFERENCE_FILE,
    SCIENTIFIC_NAME_TERM,
    TAXON_FILE,
    TAXON_RANK_TERM,
    dataset_name,
    get_dataset_dirs,
    get_identifier_column,
    load_descriptor,
    read_header,
    read_rows,
)
from dwcaudit.utils.tsv_utils import write_tsv

logger = logging.getLogger(__name__)


def percentage(part: int, total: int) -> float:
    """Share of part in total as a percentage rounded to one decimal, 0 for an empty total."""
    if total <= 0:
        return 0
    return round(100 * part / total, 1)


def _field(fields: List[str], index: Optional[int]) -> str:
    if index is None or index >= len(fields):
        return ""
    return fields[index].strip()


def core_columns(dataset_dir: str) -> Tuple[Optional[int], Optional[int]]:
    """Column indices of scientificName and taxonRank in the core table, from meta.xml."""
    descriptor = load_descriptor(dataset_dir)
    if descriptor is None:
        return None, None
    return (
        descriptor.column_index(SCIENTIFIC_NAME_TERM),
        descriptor.column_index(TAXON_RANK_TERM),
    )


def read_taxa(dataset_dir: str) -> List[dict]:
    """Read the taxon records of one dataset.

    The taxon id is column 0; scientificName and taxonRank columns come
    from the core table of meta.xml.

    Rows with an empty id are kept, so all-taxa and type-specimens count
    every data row. find_taxa_without_references skips them instead,
    since they cannot be matched against a reference coreid.
    """
    name = dataset_name(dataset_dir)
    name_col, rank_col = core_columns(dataset_dir)

    taxa = []
    for fields in read_rows(os.path.join(dataset_dir, TAXON_FILE)):
        taxa.append({
            "id": _field(fields, 0),
            "scientificName": _field(fields, name_col),
            "taxonRank": _field(fields, rank_col),
            "dataset": name,
        })
    return taxa


def all_taxa(base_dir: str = ".", outpath: str = ".") -> Tuple[str, int]:
    """List every taxon of every dataset, sorted by scientificName.

    Writes all_taxa.tsv (id, scientificName, taxonRank, dataset).

    Returns:
        Tuple of the output path and the number of taxa
    """
    taxa = []
    for dataset_dir in get_dataset_dirs(base_dir):
        if not os.path.isfile(os.path.join(dataset_dir, TAXON_FILE)):
            continue
        taxa.extend(read_taxa(dataset_dir))

    taxa.sort(key=lambda t: t["scientificName"])

    output_path = os.path.join(outpath, "all_taxa.tsv")
    write_tsv(
        output_path,
        ["id", "scientificName", "taxonRank", "dataset"],
        [[t["id"], t["scientificName"], t["taxonRank"], t["dataset"]] for t in taxa],
    )

    print(f"Total taxa: {len(taxa)}")
    logger.info(f"TSV written to: {output_path}")
    return output_path, len(taxa)


def reference_coreids(dataset_dir: str) -> set:
    """The set of taxon ids (column 0) that have at least one row in reference.txt."""
    coreids = set()
    for fields in read_rows(os.path.join(dataset_dir, REFERENCE_FILE)):
        coreid = fields[0].strip()
        if coreid:
            coreids.add(coreid)
    return coreids


def _header_index(headers: List[str], column: str) -> Optional[int]:
    try:
        return headers.index(column)
    except ValueError:
        return None


def find_taxa_without_references(dataset_dir: str) -> dict:
    """Find the taxa of one dataset that have no row in reference.txt.

    Taxa link to references through column 0 (taxon id == reference coreid).
    The scientificName and taxonRank columns are located by the header of
    taxon.txt, falling back to meta.xml.

    Returns:
        Dict with the dataset name, total, with_refs, without_refs and
        the list of missing taxa
    """
    taxon_file = os.path.join(dataset_dir, TAXON_FILE)
    coreids = reference_coreids(dataset_dir)

    headers = read_header(taxon_file)
    name_col = _header_index(headers, "scientificName")
    rank_col = _header_index(headers, "taxonRank")
    if name_col is None or rank_col is None:
        meta_name_col, meta_rank_col = core_columns(dataset_dir)
        name_col = meta_name_col if name_col is None else name_col
        rank_col = meta_rank_col if rank_col is None else rank_col

    total = 0
    missing = []
    for fields in read_rows(taxon_file):
        taxon_id = fields[0].strip()
        if taxon_id == "":
            continue
        total += 1
        if taxon_id not in coreids:
            missing.append({
                "id": taxon_id,
                "scientificName": _field(fields, name_col),
                "taxonRank": _field(fields, rank_col),
            })

    return {
        "name": dataset_name(dataset_dir),
        "total": total,
        "with_refs": total - len(missing),
        "without_refs": len(missing),
        "missing": missing,
    }


def taxa_without_references(dataset_dirs: List[str], outpath: str = ".") -> Tuple[str, List[dict]]:
    """Report taxa that have no corresponding reference rows.

    Writes taxa_without_references.tsv (dataset, taxon_id, scientificName,
    taxonRank) and prints totals plus a per-dataset breakdown.

    Args:
        dataset_dirs: Dataset directories to check
        outpath: Directory to write the output file

    Returns:
        Tuple of the output path and the per-dataset statistics
    """
    per_dataset = []
    for dataset_dir in dataset_dirs:
        if not os.path.isfile(os.path.join(dataset_dir, TAXON_FILE)):
            continue
        per_dataset.append(find_taxa_without_references(dataset_dir))

    rows = [
        [ds["name"], t["id"], t["scientificName"], t["taxonRank"]]
        for ds in per_dataset
        for t in ds["missing"]
    ]
    output_path = os.path.join(outpath, "taxa_without_references.tsv")
    write_tsv(output_path, ["dataset", "taxon_id", "scientificName", "taxonRank"], rows)

    total_taxa = sum(ds["total"] for ds in per_dataset)
    total_with = sum(ds["with_refs"] for ds in per_dataset)
    total_without = sum(ds["without_refs"] for ds in per_dataset)

    print("=============================================================")
    print("  TAXA WITHOUT REFERENCES")
    print("=============================================================\n")
    print(f"Datasets scanned:         {len(dataset_dirs)}")
    print(f"Total taxa:               {total_taxa}")
    print(f"Taxa with references:     {total_with}")
    print(f"Taxa without references:  {total_without}")
    if total_taxa > 0:
        print(f"Percentage missing:       {percentage(total_without, total_taxa)}%")

    print("\n=== Per-dataset breakdown ===\n")
    print(f"{'Dataset':<40}{'Total':<8}{'With':<8}{'Without':<8}%")
    print("-" * 72)
    for ds in per_dataset:
        ds["percentage"] = percentage(ds["without_refs"], ds["total"])
        print(f"{ds['name']:<40}{ds['total']:<8}{ds['with_refs']:<8}{ds['without_refs']:<8}{ds['percentage']}%")

    datasets_missing = [ds for ds in per_dataset if ds["without_refs"] > 0]
    if datasets_missing:
        print("\n=== Taxa without references (details) ===")
        for ds in datasets_missing:
            print(f"\n{ds['name']} ({ds['without_refs']} taxa without references):")
            for t in ds["missing"]:
                rank = f" [{t['taxonRank']}]" if t["taxonRank"] else ""
                print(f"  {t['scientificName']}{rank}")
    else:
        print("\nAll taxa have at least one reference.")

    logger.info(f"Detailed results saved to: {output_path}")
    return output_path, per_dataset


def references_without_identifiers(base_dir: str = ".", outpath: str = ".") -> Tuple[str, dict]:
    """Check whether every reference row carries an identifier.

    A dataset without an identifier column counts all of its reference
    rows as lacking an identifier.

    Writes references_without_identifiers.tsv (dataset, total_references,
    with_identifier, without_identifier, has_identifier_column).

    Returns:
        Tuple of the output path and the overall totals
    """
    dataset_dirs = get_dataset_dirs(base_dir)
    totals = {
        "total": 0,
        "with": 0,
        "without": 0,
        "no_column": 0,
        "all_have": 0,
        "some_missing": 0,
    }
    rows = []

    print("Checking whether all references have identifiers...\n")

    for dataset_dir in dataset_dirs:
        name = dataset_name(dataset_dir)
        reference_file = os.path.join(dataset_dir, REFERENCE_FILE)
        if not os.path.isfile(reference_file):
            continue

        column_index = get_identifier_column(dataset_dir)
        total_rows = 0
        with_id = 0
        for fields in read_rows(reference_file):
            total_rows += 1
            if column_index is not None and _field(fields, column_index):
                with_id += 1
        without_id = total_rows - with_id

        has_column = "yes" if column_index is not None else "no"
        rows.append([name, total_rows, with_id, without_id, has_column])

        totals["total"] += total_rows
        totals["with"] += with_id
        totals["without"] += without_id

        if column_index is None:
            totals["no_column"] += 1
            print(f"  {name}: NO identifier column ({total_rows} references)")
        elif without_id > 0:
            totals["some_missing"] += 1
            print(f"  {name}: {without_id}/{total_rows} references lack identifiers")
        else:
            totals["all_have"] += 1

    output_path = os.path.join(outpath, "references_without_identifiers.tsv")
    write_tsv(
        output_path,
        ["dataset", "total_references", "with_identifier", "without_identifier", "has_identifier_column"],
        rows,
    )

    print("\n--- Summary ---")
    print(f"Total datasets:                    {len(dataset_dirs)}")
    print(f"  With identifier column:          {totals['all_have'] + totals['some_missing']}")
    print(f"    All references have id:        {totals['all_have']}")
    print(f"    Some references missing id:    {totals['some_missing']}")
    print(f"  Without identifier column:       {totals['no_column']}")
    print()
    print(f"Total reference rows:              {totals['total']}")
    print(f"  With identifier:                 {totals['with']} ({percentage(totals['with'], totals['total'])}%)")
    print(f"  Without identifier:              {totals['without']} ({percentage(totals['without'], totals['total'])}%)")

    logger.info(f"TSV written to: {output_path}")
    return output_path, totals

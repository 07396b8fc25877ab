"""CLI for dwcaudit"""

import logging
import os
import sys

import click
from dwcaudit.utils.archive_utils import (
    REFERENCE_FILE,
    dataset_name,
    get_dataset_dirs,
    get_identifier_column,
    get_unique_identifiers,
)
from dwcaudit.utils.classification_utils import classify_all as run_classify_all
from dwcaudit.utils.classification_utils import classify_identifiers as run_classify_identifiers
from dwcaudit.utils.identifier_utils import DEFAULT_TIMEOUT
from dwcaudit.utils.resolution_utils import check_all as run_check_all
from dwcaudit.utils.resolution_utils import check_identifiers as run_check_identifiers
from dwcaudit.utils.taxa_utils import all_taxa as run_all_taxa
from dwcaudit.utils.taxa_utils import references_without_identifiers as run_references_without_identifiers
from dwcaudit.utils.taxa_utils import taxa_without_references as run_taxa_without_references
from dwcaudit.utils.type_specimen_utils import type_specimens as run_type_specimens
from dwcaudit.wrappers.unpaywall import DEFAULT_TIMEOUT as OA_TIMEOUT
from dwcaudit.wrappers.unpaywall import UNPAYWALL_EMAIL
from dwcaudit.wrappers.unpaywall import check_oa as run_check_oa

__all__ = [
    "main",
]

# Configure logging to suppress DEBUG messages from urllib3 and other chatty libraries
logging.getLogger("urllib3").setLevel(logging.WARNING)
logging.getLogger("requests").setLevel(logging.WARNING)
logging.getLogger("connectionpool").setLevel(logging.WARNING)

base_dir_option = click.option(
    "-b", "--base-dir", help="Directory containing the dataset directories.", required=False, default=".")
outpath_option = click.option(
    "-o", "--outpath", help="Directory where output files should be written.", required=False, default=".")
timeout_option = click.option(
    "-t", "--timeout", help="Per-request timeout in seconds.", type=float, default=DEFAULT_TIMEOUT)
dataset_argument = click.argument("dataset", required=False)


def _check_outpath(outpath):
    if not os.path.exists(outpath):
        logging.error(
            f"The specified output directory '{outpath}' does not exist.")
        sys.exit(1)


def _resolve_dataset(command, dataset, base_dir):
    """Return the directory of a required dataset argument, exiting on failure."""
    if not dataset:
        logging.error(f"Usage: dwcaudit {command} <dataset_directory>")
        sys.exit(1)

    dataset_dir = os.path.join(base_dir, dataset)
    if not os.path.isdir(dataset_dir):
        logging.error(f"Directory '{dataset_dir}' not found.")
        sys.exit(1)
    return dataset_dir


def _dataset_identifiers(dataset_dir):
    """Unique identifiers of a dataset, or None after logging why there are none."""
    name = dataset_name(dataset_dir)
    column_index = get_identifier_column(dataset_dir)
    if column_index is None:
        logging.info(
            f"Dataset '{name}' does not have an identifier field in its Reference extension.")
        return None

    identifiers = get_unique_identifiers(dataset_dir, column_index)
    if not identifiers:
        logging.info(f"No identifiers found in '{name}/{REFERENCE_FILE}'.")
        return None
    return identifiers


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Show debug messages.")
@click.option("-q", "--quiet", is_flag=True, help="Only show warnings and errors.")
def main(verbose, quiet):
    """
    CLI for dwcaudit.

    Analyses directories of Darwin Core Archive datasets: taxon listings,
    reference identifier checks, open access status and type specimens.

    :param verbose: Verbosity while running.
    :param quiet: Boolean to be quiet or verbose.
    """

    # Configure the root logger
    logger = logging.getLogger()
    if verbose:
        logger.setLevel(level=logging.DEBUG)
    elif quiet:
        logger.setLevel(level=logging.WARNING)
    else:
        logger.setLevel(level=logging.INFO)

    # Set up console handler with a cleaner format
    ch = logging.StreamHandler()
    formatter = logging.Formatter('%(levelname)s: %(message)s')
    ch.setFormatter(formatter)
    logger.addHandler(ch)


@main.command()
@base_dir_option
@outpath_option
def all_taxa(base_dir, outpath):
    """Extract all taxon names across all datasets, sorted by scientificName.

    Output: all_taxa.tsv

    Example:
        dwcaudit all-taxa -b datasets/
    """
    _check_outpath(outpath)
    output_path, _ = run_all_taxa(base_dir, outpath)
    logging.info(f"TSV written to: {output_path}")


@main.command()
@dataset_argument
@base_dir_option
@outpath_option
@timeout_option
def check_identifiers(dataset, base_dir, outpath, timeout):
    """Check whether the reference identifiers of one dataset resolve.

    Output: check_identifiers.tsv

    Example:
        dwcaudit check-identifiers brentidae_colombia
    """
    dataset_dir = _resolve_dataset("check-identifiers", dataset, base_dir)
    _check_outpath(outpath)

    identifiers = _dataset_identifiers(dataset_dir)
    if identifiers is None:
        return

    print(f"Dataset: {dataset}")
    print(f"Checking {len(identifiers)} unique identifiers...\n")

    results_path, _ = run_check_identifiers(identifiers, outpath, timeout=timeout)
    logging.info(f"Results written to {results_path}")


@main.command()
@base_dir_option
@outpath_option
@timeout_option
@click.option('-w', '--workers', help='Number of identifiers to check in parallel.', type=int, default=1)
def check_all(base_dir, outpath, timeout, workers):
    """Check URL resolution of identifiers across all datasets.

    Identifiers are deduplicated across datasets and each one is checked
    once, so this may take a while.

    Outputs: check_all_results.tsv, check_all_domains.tsv
    """
    _check_outpath(outpath)
    if workers < 1:
        logging.error("The number of workers must be at least 1.")
        sys.exit(1)

    run_check_all(base_dir, outpath, timeout=timeout, workers=workers)


@main.command()
@base_dir_option
@outpath_option
@click.option('-e', '--email', help='Contact email sent to the Unpaywall API.', default=UNPAYWALL_EMAIL)
@click.option('-t', '--timeout', help='Request timeout in seconds.', type=float, default=OA_TIMEOUT)
def check_oa(base_dir, outpath, email, timeout):
    """Check whether DOI identifiers are open access, using Unpaywall.

    The contact email defaults to the UNPAYWALL_EMAIL environment variable.

    Outputs: check_oa_results.tsv, check_oa_summary.tsv
    """
    _check_outpath(outpath)
    run_check_oa(base_dir, outpath, email=email, timeout=timeout)


@main.command()
@dataset_argument
@base_dir_option
@outpath_option
def classify_identifiers(dataset, base_dir, outpath):
    """Classify the reference identifiers of one dataset by domain.

    Output: classify_identifiers.tsv

    Example:
        dwcaudit classify-identifiers brentidae_colombia
    """
    dataset_dir = _resolve_dataset("classify-identifiers", dataset, base_dir)
    _check_outpath(outpath)

    identifiers = _dataset_identifiers(dataset_dir)
    if identifiers is None:
        return

    run_classify_identifiers(identifiers, dataset, outpath)


@main.command()
@base_dir_option
@outpath_option
def classify_all(base_dir, outpath):
    """Classify identifiers by domain across all datasets.

    Outputs: classify_all_identifiers.tsv, classify_all_domains.tsv
    """
    _check_outpath(outpath)
    run_classify_all(base_dir, outpath)


@main.command()
@dataset_argument
@base_dir_option
@outpath_option
def taxa_without_references(dataset, base_dir, outpath):
    """Find taxa that have no rows in reference.txt.

    Runs across all datasets unless a dataset directory is given.

    Output: taxa_without_references.tsv
    """
    if dataset:
        dataset_dirs = [_resolve_dataset("taxa-without-references", dataset, base_dir)]
    else:
        dataset_dirs = get_dataset_dirs(base_dir)
    _check_outpath(outpath)

    run_taxa_without_references(dataset_dirs, outpath)


@main.command()
@base_dir_option
@outpath_option
def references_without_identifiers(base_dir, outpath):
    """Check whether all references across all datasets have identifiers.

    Output: references_without_identifiers.tsv
    """
    _check_outpath(outpath)
    run_references_without_identifiers(base_dir, outpath)


@main.command()
@base_dir_option
@outpath_option
def type_specimens(base_dir, outpath):
    """Analyse type specimen institutions and taxa lacking type specimens.

    Outputs: type_specimens_institutions.tsv, type_specimens_normalised.tsv,
    taxa_without_types.tsv
    """
    _check_outpath(outpath)
    run_type_specimens(base_dir, outpath)


if __name__ == "__main__":
    main()

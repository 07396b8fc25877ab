"""Utility functions for reading Darwin Core Archive dataset directories.

A dataset directory holds a ``meta.xml`` descriptor plus tab-separated
data files (``taxon.txt``, ``reference.txt``, ``typesandspecimen.txt``).
The descriptor declares, for the core table and each extension, which
column carries which Darwin Core term.
"""

import logging
import os
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple

from dwcaudit.utils.string_utils import clean_unicode_chars

META_FILE = "meta.xml"
TAXON_FILE = "taxon.txt"
REFERENCE_FILE = "reference.txt"
TYPES_FILE = "typesandspecimen.txt"

# Row type markers. CORE selects the core table, anything else is matched
# as a substring of an extension's rowType.
CORE = "core"
REFERENCE = "Reference"
TYPES_AND_SPECIMEN = "TypesAndSpecimen"

IDENTIFIER_TERM = "http://purl.org/dc/terms/identifier"
SCIENTIFIC_NAME_TERM = "http://rs.tdwg.org/dwc/terms/scientificName"
TAXON_RANK_TERM = "http://rs.tdwg.org/dwc/terms/taxonRank"
INSTITUTION_CODE_TERM = "http://rs.tdwg.org/dwc/terms/institutionCode"

logger = logging.getLogger(__name__)


@dataclass
class TableDescriptor:
    """One table (core or extension) declared in meta.xml."""

    row_type: str
    fields: List[Tuple[str, int]] = field(default_factory=list)

    def column_for(self, term: str) -> Optional[int]:
        for field_term, index in self.fields:
            if field_term == term:
                return index
        return None


@dataclass
class ArchiveDescriptor:
    """Parsed meta.xml: the core table plus its extensions in declaration order."""

    core: Optional[TableDescriptor] = None
    extensions: List[TableDescriptor] = field(default_factory=list)

    def find_table(self, row_type: str = CORE) -> Optional[TableDescriptor]:
        """Return the core table, or the first extension whose rowType contains row_type."""
        if row_type == CORE:
            return self.core
        for extension in self.extensions:
            if row_type in extension.row_type:
                return extension
        return None

    def column_index(self, term: str, row_type: str = CORE) -> Optional[int]:
        """Return the column index of term in the selected table, or None.

        Only the first matching extension is consulted. If it does not
        declare the term, the answer is None even when a later extension
        of the same kind would.
        """
        table = self.find_table(row_type)
        if table is None:
            return None
        return table.column_for(term)

    def has_extension(self, row_type: str) -> bool:
        return any(row_type in extension.row_type for extension in self.extensions)


def _local_name(tag: str) -> str:
    """Strip an ElementTree namespace prefix such as {http://rs.tdwg.org/dwc/text/}."""
    return tag.rsplit("}", 1)[-1]


def _parse_table(element) -> TableDescriptor:
    table = TableDescriptor(row_type=element.get("rowType", ""))
    for child in element:
        if _local_name(child.tag) != "field":
            continue
        term = child.get("term")
        try:
            index = int(child.get("index"))
        except (TypeError, ValueError):
            # Constant-valued fields carry a default instead of an index
            continue
        if term:
            table.fields.append((term, index))
    return table


def parse_meta_xml(content) -> Optional[ArchiveDescriptor]:
    """Parse meta.xml content into an ArchiveDescriptor.

    Args:
        content: The meta.xml document as a string or bytes

    Returns:
        The descriptor, or None if the content is not valid XML
    """
    try:
        root = ET.fromstring(content)
    except ET.ParseError as e:
        logger.debug(f"Error parsing meta.xml: {e}")
        return None

    descriptor = ArchiveDescriptor()
    for element in root:
        name = _local_name(element.tag)
        if name == "core" and descriptor.core is None:
            descriptor.core = _parse_table(element)
        elif name == "extension":
            descriptor.extensions.append(_parse_table(element))
    return descriptor


def load_descriptor(dataset_dir: str) -> Optional[ArchiveDescriptor]:
    """Read and parse the meta.xml of a dataset directory.

    Returns None when the file is missing or unparseable.
    """
    meta_path = os.path.join(dataset_dir, META_FILE)
    if not os.path.isfile(meta_path):
        return None
    try:
        with open(meta_path, "rb") as f:
            content = f.read()
    except OSError as e:
        logger.debug(f"Could not read {meta_path}: {e}")
        return None
    return parse_meta_xml(content)


def get_column_index(dataset_dir: str, term: str, row_type: str = CORE) -> Optional[int]:
    """Find the column index of a term for the core table or an extension."""
    descriptor = load_descriptor(dataset_dir)
    if descriptor is None:
        return None
    return descriptor.column_index(term, row_type)


def get_identifier_column(dataset_dir: str) -> Optional[int]:
    """Column index of dc:identifier in the Reference extension, or None."""
    return get_column_index(dataset_dir, IDENTIFIER_TERM, REFERENCE)


def get_dataset_dirs(base_dir: str) -> List[str]:
    """Return the sorted subdirectories of base_dir that contain a meta.xml file."""
    if not os.path.isdir(base_dir):
        logger.debug(f"Base directory {base_dir} does not exist")
        return []

    dirs = []
    for entry in sorted(os.listdir(base_dir)):
        if entry.startswith("."):
            continue
        path = os.path.join(base_dir, entry)
        if os.path.isdir(path) and os.path.isfile(os.path.join(path, META_FILE)):
            dirs.append(path)
    return dirs


def dataset_name(dataset_dir: str) -> str:
    return os.path.basename(os.path.normpath(dataset_dir))


def read_header(file_path: str) -> List[str]:
    """Return the header row of a TSV file as a list of column names."""
    if not os.path.isfile(file_path):
        return []
    with open(file_path, "r", encoding="utf-8", errors="replace") as f:
        line = f.readline()
    return [clean_unicode_chars(name).strip() for name in line.rstrip("\r\n").split("\t")]


def read_rows(file_path: str) -> Iterator[List[str]]:
    """Yield the data rows of a TSV file, split on tabs.

    The header line and blank lines are skipped. A missing file yields
    nothing.
    """
    if not os.path.isfile(file_path):
        return
    with open(file_path, "r", encoding="utf-8", errors="replace", newline="") as f:
        next(f, None)
        for line in f:
            line = line.rstrip("\r\n")
            if line == "":
                continue
            yield line.split("\t")


def get_unique_values(file_path: str, column_index: int) -> List[str]:
    """Collect the distinct, trimmed, non-empty values of one column.

    Values keep the order in which they were first seen. Rows too short
    to have the column are skipped.
    """
    values = {}
    for fields in read_rows(file_path):
        if column_index >= len(fields):
            continue
        value = fields[column_index].strip()
        if value:
            values[value] = True
    return list(values)


def get_unique_identifiers(dataset_dir: str, column_index: int) -> List[str]:
    """Distinct identifiers from the given column of a dataset's reference.txt."""
    return get_unique_values(os.path.join(dataset_dir, REFERENCE_FILE), column_index)

"""Pytest configuration and shared fixtures."""

import os
import tempfile

import pytest

DWC_TEXT_NS = "http://rs.tdwg.org/dwc/text/"

TAXON_FIELDS = [
    ("http://rs.tdwg.org/dwc/terms/scientificName", 1),
    ("http://rs.tdwg.org/dwc/terms/taxonRank", 2),
]
REFERENCE_FIELDS = [
    ("http://purl.org/dc/terms/bibliographicCitation", 1),
    ("http://purl.org/dc/terms/identifier", 2),
]
TYPES_FIELDS = [
    ("http://rs.tdwg.org/dwc/terms/institutionCode", 1),
    ("http://rs.gbif.org/terms/1.0/typeStatus", 2),
]

REFERENCE_ROW_TYPE = "http://rs.gbif.org/terms/1.0/Reference"
TYPES_ROW_TYPE = "http://rs.gbif.org/terms/1.0/TypesAndSpecimen"


def _fields_xml(fields):
    return "\n".join(
        f'    <field index="{index}" term="{term}"/>' for term, index in fields
    )


def build_meta_xml(core_fields=TAXON_FIELDS, extensions=()):
    """Build a meta.xml document.

    extensions is a sequence of (rowType, location, fields) tuples.
    """
    parts = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        f'<archive xmlns="{DWC_TEXT_NS}" metadata="eml.xml">',
        '  <core encoding="UTF-8" fieldsTerminatedBy="\\t" linesTerminatedBy="\\n" '
        'ignoreHeaderLines="1" rowType="http://rs.tdwg.org/dwc/terms/Taxon">',
        '    <files><location>taxon.txt</location></files>',
        '    <id index="0"/>',
        _fields_xml(core_fields),
        '  </core>',
    ]
    for row_type, location, fields in extensions:
        parts.extend([
            f'  <extension encoding="UTF-8" ignoreHeaderLines="1" rowType="{row_type}">',
            f'    <files><location>{location}</location></files>',
            '    <coreid index="0"/>',
            _fields_xml(fields),
            '  </extension>',
        ])
    parts.append('</archive>')
    return "\n".join(parts)


def write_table(path, header, rows):
    with open(path, "w", encoding="utf-8") as f:
        f.write("\t".join(header) + "\n")
        for row in rows:
            f.write("\t".join(row) + "\n")


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def make_dataset(temp_dir):
    """Factory creating a dataset directory under temp_dir.

    Tables are given as lists of row lists; a header row is written
    automatically.
    """

    def _make(name, meta=None, taxa=None, references=None, types=None):
        dataset_dir = os.path.join(temp_dir, name)
        os.makedirs(dataset_dir)

        if meta is None:
            extensions = []
            if references is not None:
                extensions.append((REFERENCE_ROW_TYPE, "reference.txt", REFERENCE_FIELDS))
            if types is not None:
                extensions.append((TYPES_ROW_TYPE, "typesandspecimen.txt", TYPES_FIELDS))
            meta = build_meta_xml(extensions=extensions)
        with open(os.path.join(dataset_dir, "meta.xml"), "w", encoding="utf-8") as f:
            f.write(meta)

        if taxa is not None:
            write_table(os.path.join(dataset_dir, "taxon.txt"),
                        ["id", "scientificName", "taxonRank"], taxa)
        if references is not None:
            write_table(os.path.join(dataset_dir, "reference.txt"),
                        ["coreid", "bibliographicCitation", "identifier"], references)
        if types is not None:
            write_table(os.path.join(dataset_dir, "typesandspecimen.txt"),
                        ["coreid", "institutionCode", "typeStatus"], types)
        return dataset_dir

    return _make


@pytest.fixture
def output_dir(temp_dir):
    """A separate directory for report files, outside the dataset tree."""
    path = os.path.join(temp_dir, ".reports")
    os.makedirs(path)
    return path


@pytest.fixture(autouse=True)
def reset_environment():
    """Reset environment variables before and after each test."""
    original_env = os.environ.copy()
    yield
    os.environ.clear()
    os.environ.update(original_env)

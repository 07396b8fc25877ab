"""Tests for dataset discovery, meta.xml resolution and identifier extraction."""

import os

from conftest import (
    REFERENCE_FIELDS,
    REFERENCE_ROW_TYPE,
    TYPES_FIELDS,
    TYPES_ROW_TYPE,
    build_meta_xml,
)
from dwcaudit.utils.archive_utils import (
    CORE,
    IDENTIFIER_TERM,
    INSTITUTION_CODE_TERM,
    REFERENCE,
    SCIENTIFIC_NAME_TERM,
    TAXON_RANK_TERM,
    TYPES_AND_SPECIMEN,
    get_column_index,
    get_dataset_dirs,
    get_identifier_column,
    get_unique_identifiers,
    get_unique_values,
    load_descriptor,
    parse_meta_xml,
    read_rows,
)


class TestGetDatasetDirs:
    """Tests for get_dataset_dirs."""

    def test_returns_sorted_dirs_with_meta(self, temp_dir, make_dataset):
        make_dataset("zeta", taxa=[])
        make_dataset("alpha", taxa=[])
        os.makedirs(os.path.join(temp_dir, "no_meta"))
        with open(os.path.join(temp_dir, "notes.txt"), "w") as f:
            f.write("not a dataset")

        dirs = get_dataset_dirs(temp_dir)

        assert [os.path.basename(d) for d in dirs] == ["alpha", "zeta"]

    def test_skips_dotted_entries(self, temp_dir, make_dataset):
        make_dataset(".hidden", taxa=[])
        make_dataset("visible", taxa=[])

        assert [os.path.basename(d) for d in get_dataset_dirs(temp_dir)] == ["visible"]

    def test_empty_base_dir(self, temp_dir):
        assert get_dataset_dirs(temp_dir) == []

    def test_missing_base_dir(self, temp_dir):
        assert get_dataset_dirs(os.path.join(temp_dir, "missing")) == []


class TestMetaXml:
    """Tests for the meta.xml descriptor and column lookup."""

    def test_core_columns(self, make_dataset):
        dataset_dir = make_dataset("ds", taxa=[])

        assert get_column_index(dataset_dir, SCIENTIFIC_NAME_TERM) == 1
        assert get_column_index(dataset_dir, TAXON_RANK_TERM, CORE) == 2

    def test_extension_columns(self, make_dataset):
        dataset_dir = make_dataset("ds", taxa=[], references=[], types=[])

        assert get_identifier_column(dataset_dir) == 2
        assert get_column_index(dataset_dir, INSTITUTION_CODE_TERM, TYPES_AND_SPECIMEN) == 1

    def test_missing_term_in_extension(self, make_dataset):
        meta = build_meta_xml(extensions=[
            (REFERENCE_ROW_TYPE, "reference.txt", [("http://purl.org/dc/terms/bibliographicCitation", 1)]),
        ])
        dataset_dir = make_dataset("ds", meta=meta, taxa=[])

        assert get_identifier_column(dataset_dir) is None

    def test_first_matching_extension_wins(self, make_dataset):
        # The second Reference extension has the identifier, but only the
        # first one is consulted.
        meta = build_meta_xml(extensions=[
            (REFERENCE_ROW_TYPE, "reference.txt", [("http://purl.org/dc/terms/bibliographicCitation", 1)]),
            (REFERENCE_ROW_TYPE, "reference2.txt", REFERENCE_FIELDS),
        ])
        dataset_dir = make_dataset("ds", meta=meta, taxa=[])

        assert get_identifier_column(dataset_dir) is None

    def test_no_extension(self, make_dataset):
        dataset_dir = make_dataset("ds", taxa=[])

        assert get_identifier_column(dataset_dir) is None
        descriptor = load_descriptor(dataset_dir)
        assert not descriptor.has_extension(TYPES_AND_SPECIMEN)

    def test_has_extension(self):
        descriptor = parse_meta_xml(build_meta_xml(extensions=[
            (TYPES_ROW_TYPE, "typesandspecimen.txt", TYPES_FIELDS),
        ]))

        assert descriptor.has_extension(TYPES_AND_SPECIMEN)
        assert not descriptor.has_extension(REFERENCE)

    def test_missing_meta_file(self, temp_dir):
        assert load_descriptor(temp_dir) is None
        assert get_identifier_column(temp_dir) is None

    def test_unparseable_meta_file(self, make_dataset):
        dataset_dir = make_dataset("ds", meta="<archive><core>", taxa=[])

        assert load_descriptor(dataset_dir) is None
        assert get_column_index(dataset_dir, SCIENTIFIC_NAME_TERM) is None

    def test_without_namespace(self):
        content = """<archive>
            <core rowType="http://rs.tdwg.org/dwc/terms/Taxon">
                <id index="0"/>
                <field index="3" term="http://rs.tdwg.org/dwc/terms/scientificName"/>
                <field default="species" term="http://rs.tdwg.org/dwc/terms/taxonRank"/>
            </core>
        </archive>"""
        descriptor = parse_meta_xml(content)

        assert descriptor.column_index(SCIENTIFIC_NAME_TERM) == 3
        # Default-valued fields have no column
        assert descriptor.column_index(TAXON_RANK_TERM) is None
        assert descriptor.column_index(IDENTIFIER_TERM, REFERENCE) is None


class TestUniqueValues:
    """Tests for read_rows and the unique identifier extractor."""

    def test_deduplicates_and_skips_header(self, make_dataset):
        dataset_dir = make_dataset("ds", taxa=[], references=[
            ["1", "Ref A", "doi.org/10.1/abc"],
            ["2", "Ref A again", "doi.org/10.1/abc"],
        ])

        identifiers = get_unique_identifiers(dataset_dir, 2)

        assert identifiers == ["doi.org/10.1/abc"]

    def test_first_seen_order_and_trimming(self, make_dataset):
        dataset_dir = make_dataset("ds", taxa=[], references=[
            ["1", "A", " https://b.org/x "],
            ["2", "B", "https://a.org/y"],
            ["3", "C", "https://b.org/x"],
            ["4", "D", ""],
        ])

        assert get_unique_identifiers(dataset_dir, 2) == ["https://b.org/x", "https://a.org/y"]

    def test_short_rows_skipped(self, temp_dir):
        path = os.path.join(temp_dir, "reference.txt")
        with open(path, "w") as f:
            f.write("coreid\tcitation\tidentifier\n")
            f.write("1\tonly two\n")
            f.write("2\tfull\thttps://example.org\n")

        assert get_unique_values(path, 2) == ["https://example.org"]

    def test_missing_file(self, temp_dir):
        assert get_unique_values(os.path.join(temp_dir, "reference.txt"), 0) == []
        assert list(read_rows(os.path.join(temp_dir, "reference.txt"))) == []

    def test_read_rows_skips_blank_lines(self, temp_dir):
        path = os.path.join(temp_dir, "taxon.txt")
        with open(path, "w") as f:
            f.write("id\tscientificName\r\n1\tA\r\n\r\n2\tB\n")

        assert list(read_rows(path)) == [["1", "A"], ["2", "B"]]

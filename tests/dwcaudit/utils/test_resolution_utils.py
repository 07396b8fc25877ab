"""Tests for the identifier resolution reports."""

import os
from unittest.mock import patch

import polars as pl

from dwcaudit.utils.identifier_utils import ResolutionResult, ensure_scheme
from dwcaudit.utils.resolution_utils import (
    check_all,
    check_identifiers,
    collect_global_identifiers,
)
from dwcaudit.utils.archive_utils import get_dataset_dirs

STATUSES = {
    "https://doi.org/10.1234/shared": (200, "https://doi.org/10.1234/shared", "ok"),
    "biodiversitylibrary.org/page/1": (200, "https://www.biodiversitylibrary.org/page/1", "redirect_ok"),
    "https://doi.org/10.1234/gone": (404, "https://doi.org/10.1234/gone", "not_found"),
    "http://dead.example/x": (0, "http://dead.example/x", "error"),
}


def fake_check_url(identifier, timeout=10):
    http_code, final_url, status = STATUSES[identifier]
    return ResolutionResult(
        identifier=identifier,
        url=ensure_scheme(identifier),
        http_code=http_code,
        final_url=final_url,
        status=status,
    )


def _read(path):
    return pl.read_csv(path, separator="\t", infer_schema_length=0)


class TestCollectGlobalIdentifiers:
    """Tests for global deduplication."""

    def test_shared_identifier_lists_both_datasets(self, temp_dir, make_dataset):
        make_dataset("alpha", taxa=[], references=[
            ["1", "A", "https://doi.org/10.1234/shared"],
            ["2", "B", "https://doi.org/10.1234/gone"],
        ])
        make_dataset("beta", taxa=[], references=[
            ["7", "C", "https://doi.org/10.1234/shared"],
        ])
        make_dataset("gamma", taxa=[])

        identifiers, with_ids, without_ids = collect_global_identifiers(get_dataset_dirs(temp_dir))

        assert identifiers == {
            "https://doi.org/10.1234/shared": ["alpha", "beta"],
            "https://doi.org/10.1234/gone": ["alpha"],
        }
        assert with_ids == 2
        assert without_ids == 1


@patch("dwcaudit.utils.resolution_utils.check_url", side_effect=fake_check_url)
class TestCheckAll:
    """Tests for check_all."""

    def _datasets(self, make_dataset):
        make_dataset("alpha", taxa=[], references=[
            ["1", "A", "https://doi.org/10.1234/shared"],
            ["2", "B", "biodiversitylibrary.org/page/1"],
            ["3", "C", "https://doi.org/10.1234/gone"],
        ])
        make_dataset("beta", taxa=[], references=[
            ["1", "A", "https://doi.org/10.1234/shared"],
            ["2", "D", "http://dead.example/x"],
        ])

    def test_each_identifier_checked_once(self, mock_check, temp_dir, make_dataset, output_dir):
        self._datasets(make_dataset)

        results_path, domains_path, counts = check_all(temp_dir, output_dir)

        checked = [c[0][0] for c in mock_check.call_args_list]
        assert sorted(checked) == sorted(STATUSES)
        assert counts == {"ok": 1, "redirect": 1, "not_found": 1, "error": 1}

        results = _read(results_path)
        assert results.columns == ["identifier", "http_code", "final_url", "status", "datasets"]
        assert len(results) == 4
        shared = results.filter(pl.col("identifier") == "https://doi.org/10.1234/shared")
        assert shared["datasets"][0] == "alpha, beta"
        assert shared["status"][0] == "ok"
        dead = results.filter(pl.col("identifier") == "http://dead.example/x")
        assert dead["http_code"][0] == "0"
        assert dead["status"][0] == "error"

    def test_domain_summary(self, mock_check, temp_dir, make_dataset, output_dir):
        self._datasets(make_dataset)

        _, domains_path, _ = check_all(temp_dir, output_dir)

        domains = _read(domains_path)
        assert domains.columns == ["domain", "total", "ok", "redirect", "not_found", "error"]
        # doi.org has the most identifiers, so it comes first
        assert domains["domain"].to_list() == ["doi.org", "biodiversitylibrary.org", "dead.example"]
        doi_row = domains.row(0, named=True)
        assert doi_row["total"] == "2"
        assert doi_row["ok"] == "1"
        assert doi_row["not_found"] == "1"

    def test_parallel_workers_keep_order(self, mock_check, temp_dir, make_dataset, output_dir):
        self._datasets(make_dataset)

        sequential_path, _, _ = check_all(temp_dir, output_dir)
        sequential = _read(sequential_path)
        parallel_path, _, _ = check_all(temp_dir, output_dir, workers=3)

        assert _read(parallel_path).equals(sequential)

    def test_no_datasets(self, mock_check, temp_dir, output_dir):
        results_path, domains_path, counts = check_all(temp_dir, output_dir)

        mock_check.assert_not_called()
        assert sum(counts.values()) == 0
        with open(results_path) as f:
            assert f.read().strip() == "identifier\thttp_code\tfinal_url\tstatus\tdatasets"


@patch("dwcaudit.utils.resolution_utils.check_url", side_effect=fake_check_url)
def test_check_identifiers(mock_check, output_dir, capsys):
    identifiers = ["https://doi.org/10.1234/shared", "https://doi.org/10.1234/gone"]

    results_path, counts = check_identifiers(identifiers, output_dir)

    assert os.path.basename(results_path) == "check_identifiers.tsv"
    results = _read(results_path)
    assert results.columns == ["identifier", "http_code", "final_url", "status"]
    assert results["status"].to_list() == ["ok", "not_found"]
    assert counts["ok"] == 1
    assert counts["not_found"] == 1
    assert "Total checked:          2" in capsys.readouterr().out

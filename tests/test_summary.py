import json

import pytest
from bs4 import BeautifulSoup

from axe_reporter.errors import SummaryError
from axe_reporter.workflows.summary import build_summary, collect_summary, resolve_run_path

from conftest import critical_violation


def _write_result(json_dir, name, url, impacts):
    violations = []
    for impact in impacts:
        violation = critical_violation()
        violation["nodes"][0]["impact"] = impact
        violations.append(violation)
    (json_dir / f"{name}.json").write_text(json.dumps({"url": url, "violations": violations}), encoding="utf-8")


@pytest.fixture
def run_dir(tmp_path):
    run = tmp_path / "results" / "2024-05-01_09-30-00"
    (run / "json").mkdir(parents=True)
    return run


def test_resolve_run_path_rejects_traversal(tmp_path):
    with pytest.raises(SummaryError):
        resolve_run_path("../outside", tmp_path)
    with pytest.raises(SummaryError):
        resolve_run_path("/etc", tmp_path)
    assert resolve_run_path("results", tmp_path) == (tmp_path / "results").resolve()


def test_collect_summary_skips_bad_files(run_dir, caplog):
    json_dir = run_dir / "json"
    _write_result(json_dir, "a", "https://a.example/", ["critical", "minor"])
    _write_result(json_dir, "b", "https://b.example/", [])
    (json_dir / "broken.json").write_text("{not json", encoding="utf-8")
    (json_dir / "shape.json").write_text(json.dumps({"url": "x", "violations": "no"}), encoding="utf-8")
    (json_dir / "big.json").write_text(json.dumps({"url": "https://big.example/", "violations": [], "pad": "x" * 5000}))

    data = collect_summary(json_dir, max_file_bytes=4000)

    assert [page.url for page in data.pages] == ["https://a.example/", "https://b.example/"]
    assert sorted(data.skipped) == ["big.json", "broken.json", "shape.json"]
    assert "Skipping broken.json" in caplog.text

    totals = data.severity_totals()
    assert totals["critical"] == {"count": 1, "pages": 1, "percent": 50.0}
    assert totals["minor"]["count"] == 1
    assert totals["serious"] == {"count": 0, "pages": 0, "percent": 0.0}


def test_collect_summary_caps_file_count(run_dir, caplog):
    json_dir = run_dir / "json"
    for index in range(4):
        _write_result(json_dir, f"page{index}", f"https://example.com/{index}", ["serious"])
    data = collect_summary(json_dir, max_files=2)
    assert len(data.pages) == 2
    assert "only the first 2" in caplog.text


def test_build_summary_writes_sortable_table(tmp_path, run_dir):
    json_dir = run_dir / "json"
    _write_result(json_dir, "example.com_a", "https://example.com/a", ["critical", "critical", "moderate"])
    _write_result(json_dir, "example.com_b", "https://example.com/<b>", [])

    output = build_summary("results/2024-05-01_09-30-00", locale="ja", cwd=tmp_path)

    assert output == (run_dir / "summary" / "index.html").resolve()
    soup = BeautifulSoup(output.read_text(encoding="utf-8"), "html.parser")
    assert soup.html["lang"] == "ja"
    rows = soup.select("#summary-table tbody tr")
    assert len(rows) == 2
    first = rows[0]
    assert first["data-critical"] == "2"
    assert first["data-moderate"] == "1"
    assert first.select_one("a")["href"] == "../html/example.com_a.html"
    assert rows[1]["data-url"] == "https://example.com/<b>"
    assert [th["data-sort"] for th in soup.select("th[data-sort]")] == ["url", "minor", "moderate", "serious", "critical"]
    assert soup.select_one('.summary-card[data-impact="critical"] .value').get_text() == "2"


def test_build_summary_requires_json_dir(tmp_path):
    (tmp_path / "empty").mkdir()
    with pytest.raises(SummaryError):
        build_summary("empty", cwd=tmp_path)

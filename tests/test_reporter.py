"""Markdown report rendering, row ordering and final status reporting."""

import json

from conftest import AGAINST_SHA, REPORT_URL_BASE, FakeRunner, make_submission

from benchqueue.jobs.base import JobContext
from benchqueue.jobs.benchmark import BenchmarkJob, Comparison
from benchqueue.models.benchmark import JobResults, Measurement
from benchqueue.models.build import BuildRef
from benchqueue.services.judge import judge
from benchqueue.services.reporter import (
    prettymemory,
    prettypercent,
    prettytime,
    render_report,
    report,
    result_row,
    result_sort_key,
)


def m(time, memory=2048):
    return Measurement(time=time, memory=memory, time_tolerance=0.05, memory_tolerance=0.01, allocs=3)


def _ctx(config, github):
    return JobContext(config=config, node=config.nodes[0], runner=FakeRunner(config.nodes[0]), github=github)


def _comparison_job(config):
    return BenchmarkJob(make_submission(config), "ALL", Comparison(BuildRef(repo="org/proj", sha=AGAINST_SHA)))


def test_tuple_keys_sort_before_non_tuple_keys():
    keys = ["z", ("a", "b"), ("a",)]
    assert sorted(keys, key=result_sort_key) == [("a",), ("a", "b"), "z"]


def test_sort_is_elementwise_lexicographic():
    keys = [("b",), ("a", "c"), ("a", ("x", "1")), ("a", "b", "z"), ("a", "b")]
    assert sorted(keys, key=result_sort_key) == [
        ("a", ("x", "1")),
        ("a", "b"),
        ("a", "b", "z"),
        ("a", "c"),
        ("b",),
    ]


def test_mixed_scalar_types_sort_by_type_then_value():
    keys = [("sort", "issorted"), ("sort", 1000), ("sort", 2.5), ("sort", None)]
    assert sorted(keys, key=result_sort_key) == [
        ("sort", None),
        ("sort", 2.5),
        ("sort", 1000),
        ("sort", "issorted"),
    ]


def test_pretty_formatting():
    assert prettytime(512) == "512.000 ns"
    assert prettytime(1.5e6) == "1.500 ms"
    assert prettytime(2e9) == "2.000 s"
    assert prettymemory(100) == "100 bytes"
    assert prettymemory(2048) == "2.00 KiB"
    assert prettymemory(3 * 1024**2) == "3.00 MiB"
    assert prettypercent(0.05) == "5.00%"


def test_measurement_row():
    row = result_row(("array", "sum"), m(1500))
    assert row == '| `["array", "sum"]` | 1.500 μs (5.00%) | 0.000 ns | 2.00 KiB (1.00%) | 3 |'


def test_judgement_row_marks_regression():
    judged = judge({("a",): m(110)}, {("a",): m(100)})
    row = result_row(("a",), judged[("a",)])
    assert row == '| `["a"]` | 1.10 (5.00%) :x: | 1.00 (1.00%) |'


def test_single_build_report_lists_all_rows(config):
    job = BenchmarkJob(make_submission(config), "ALL")
    job.submission.build.vinfo = "Version 1.2.3"
    results = JobResults(primary={("b", "y"): m(20), ("a", "x"): m(10)})
    text = render_report(job, results)

    assert text.startswith("# Benchmark Report")
    assert "| ID | time | GC time | memory | allocations |" in text
    assert text.index('`["a", "x"]`') < text.index('`["b", "y"]`')
    assert '- `["a"]`' in text and '- `["b"]`' in text
    assert "Version 1.2.3" in text
    assert "Comparison Build" not in text


def test_comparison_report_hides_invariant_rows(config):
    job = _comparison_job(config)
    primary = {("a", "slow"): m(200), ("a", "same"): m(100), ("a", "fast"): m(50)}
    against = {("a", "slow"): m(100), ("a", "same"): m(100), ("a", "fast"): m(100)}
    results = JobResults(primary=primary, against=against, judged=judge(primary, against))
    text = render_report(job, results)

    assert "| ID | time ratio | memory ratio |" in text
    assert '`["a", "slow"]`' in text
    assert '`["a", "fast"]`' in text
    assert '`["a", "same"]`' not in text
    assert "0.50 (5.00%) :white_check_mark:" in text
    assert "Comparison Build" in text


def test_report_single_build_success(config, github):
    job = BenchmarkJob(make_submission(config), "ALL")
    report(job, JobResults(primary={("a",): m(1)}), _ctx(config, github))

    assert set(github.uploads) == {"aaaaaaa/aaaaaaa.json", "aaaaaaa/aaaaaaa.md"}
    data = json.loads(github.uploads["aaaaaaa/aaaaaaa.json"])
    assert data["primary"][0]["id"] == ["a"]
    assert github.statuses[-1] == (
        "success",
        "successfully executed benchmarks",
        f"{REPORT_URL_BASE}/aaaaaaa/aaaaaaa.md",
    )
    assert f"{REPORT_URL_BASE}/aaaaaaa/aaaaaaa.md" in github.comments[-1]
    assert "cc @admin" in github.comments[-1]


def test_report_comparison_with_regression_fails(config, github):
    job = _comparison_job(config)
    primary, against = {("a",): m(200)}, {("a",): m(100)}
    report(job, JobResults(primary, against, judge(primary, against)), _ctx(config, github))

    state, description, url = github.statuses[-1]
    assert state == "failure"
    assert description == "possible performance regressions were detected"
    assert url.endswith("aaaaaaa_vs_bbbbbbb.md")


def test_report_with_no_benchmarks(config, github):
    job = BenchmarkJob(make_submission(config), '"misspelled"')
    report(job, JobResults(primary={}), _ctx(config, github))

    assert github.statuses == [("error", "no benchmarks were executed", "")]
    assert "misspelled tags" in github.comments[-1]
    assert github.uploads == {}


def test_report_upload_failure_still_reaches_terminal_status(config, github):
    github.fail_uploads = True
    job = BenchmarkJob(make_submission(config), "ALL")
    report(job, JobResults(primary={("a",): m(1)}), _ctx(config, github))

    assert github.statuses[-1] == ("success", "successfully executed benchmarks", "")
    assert "something went wrong when trying to upload the result data" in github.comments[-1]


def test_report_with_mixed_id_types_succeeds(config, github):
    job = BenchmarkJob(make_submission(config), "ALL")
    results = JobResults(primary={("sort", 1000): m(5), ("sort", "issorted"): m(7)})
    report(job, results, _ctx(config, github))

    assert github.statuses[-1][0] == "success"
    text = github.uploads["aaaaaaa/aaaaaaa.md"]
    assert text.index('`["sort", 1000]`') < text.index('`["sort", "issorted"]`')

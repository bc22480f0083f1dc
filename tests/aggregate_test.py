import importlib
import pathlib
import sys

repo_root = pathlib.Path(__file__).resolve().parents[1]
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))
generate_stats = importlib.import_module("generate_stats")

RepoRecord = generate_stats.RepoRecord
TopLanguage = generate_stats.TopLanguage


def repo(name, langs, commits=0, archived=False):
    return RepoRecord(name, archived, commits, tuple(langs))


def test_percentages_and_tie_order():
    repos = [repo("a", [("Go", 300)]), repo("b", [("Rust", 100)]), repo("c", [("TS", 100)])]
    assert generate_stats.aggregate(repos).top_languages == (
        TopLanguage("Go", 60), TopLanguage("Rust", 20), TopLanguage("TS", 20),
    )


def test_ties_keep_first_encountered_order():
    tally = {"TS": 100, "Rust": 100, "Go": 300}
    names = [t.name for t in generate_stats.compute_top_languages(tally)]
    assert names == ["Go", "TS", "Rust"]


def test_sizes_accumulate_across_repos():
    repos = [repo("a", [("Python", 10), ("C", 5)]), repo("b", [("C", 20)])]
    assert generate_stats.tally_languages(repos) == {"Python": 10, "C": 25}
    assert [t.name for t in generate_stats.aggregate(repos).top_languages] == ["C", "Python"]


def test_top_six_only_and_percent_of_top_set():
    tally = {f"L{i}": 100 for i in range(7)}
    tally["Tiny"] = 1
    top = generate_stats.compute_top_languages(tally)
    assert len(top) == 6
    assert [t.name for t in top] == [f"L{i}" for i in range(6)]
    assert all(t.percent == 17 for t in top)  # 100/600, not 100/701


def test_length_is_min_of_six_and_distinct_languages():
    for n in range(0, 9):
        tally = {f"L{i}": i + 1 for i in range(n)}
        assert len(generate_stats.compute_top_languages(tally)) == min(6, n)


def test_rounds_half_up_without_renormalizing():
    top = generate_stats.compute_top_languages({"A": 7, "B": 1})
    assert top == [TopLanguage("A", 88), TopLanguage("B", 13)]
    assert sum(t.percent for t in top) == 101


def test_percentages_within_bounds():
    top = generate_stats.compute_top_languages({"A": 10 ** 9, "B": 1, "C": 0})
    assert [t.percent for t in top] == [100, 0, 0]


def test_empty_tally_gives_empty_list():
    assert generate_stats.compute_top_languages({}) == []


def test_archived_and_missing_repos_contribute_nothing():
    repos = [
        repo("live", [("Go", 50)], commits=7),
        repo("frozen", [("Go", 10 ** 6), ("COBOL", 99)], commits=10 ** 5, archived=True),
        None,
    ]
    summary = generate_stats.aggregate(repos)
    assert summary.total_commits == 7
    assert summary.top_languages == (TopLanguage("Go", 100),)


def test_no_live_repos():
    summary = generate_stats.aggregate([repo("x", [("Go", 1)], commits=3, archived=True)])
    assert summary == generate_stats.StatsSummary(total_commits=0, top_languages=())

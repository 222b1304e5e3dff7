"""
Tests for evaluation/benchmark.py and evaluation/cases.py

Covers: retrieval metrics, strategy case checks, the labelled case
        tables, and both benchmark runners against in-memory fakes.
"""

import pytest

from conftest import (
    CIVIL_184,
    CIVIL_185,
    CIVIL_186,
    FakeArticleStore,
    FakeEmbeddingService,
    FakeVectorDB,
    make_article,
)
from core.citation import CitationParser
from core.retriever import LawSearchEngine
from evaluation.benchmark import (
    FUSION_POLICIES,
    SearchBenchmark,
    check_case,
    evaluate_hits,
    law_matches,
    law_precision,
    recall_at_k,
    reciprocal_rank,
    render_report,
)
from evaluation.cases import (
    FUSION_EXPERIMENTS,
    STRATEGY_CASES,
    FusionExperiment,
    StrategyCase,
)
from models.schema import SearchResult


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------

class TestMetrics:

    def test_law_matches_prefixed_names(self):
        assert law_matches("中華民國刑法", "刑法")
        assert law_matches("刑法", "刑法")
        assert not law_matches("民法", "刑法")
        assert not law_matches(None, "刑法")

    def test_recall(self):
        assert recall_at_k(["a", "b", "c"], ["a", "x"]) == 0.5
        assert recall_at_k(["a"], []) == 0.0

    def test_recall_only_counts_top_k(self):
        assert recall_at_k(["x", "y", "a"], ["a"], k=2) == 0.0

    def test_reciprocal_rank(self):
        assert reciprocal_rank(["x", "a", "b"], ["a", "b"]) == 0.5
        assert reciprocal_rank(["x"], ["a"]) == 0.0

    def test_law_precision(self):
        assert law_precision(["民法", "刑法", "民法", None], "民法") == 0.5
        assert law_precision([], "民法") == 0.0

    def test_mrr_falls_back_to_statute_rank(self):
        hits = [SearchResult.from_article(a, 1.0) for a in (
            make_article("C0000001-1", "刑法", "第 1 條"),
            CIVIL_184,
        )]
        experiment = FusionExperiment(query="漏水", expected_law="民法")
        metrics = evaluate_hits(hits, experiment)
        assert metrics.mrr == 0.5
        assert metrics.law_precision == 0.5
        assert metrics.recall == 0.0


# ---------------------------------------------------------------------------
# Case tables
# ---------------------------------------------------------------------------

class TestCaseTables:

    @pytest.mark.parametrize("case", [c for c in STRATEGY_CASES if c.expect == "S0"], ids=lambda c: c.query)
    def test_direct_cases_resolve_to_record_ids(self, case):
        citation = CitationParser.parse(case.query)
        assert citation is not None
        assert citation.article_label == case.expect_article
        assert CitationParser.build_record_id(citation.resolved_law_name, citation.article_label)

    @pytest.mark.parametrize("case", [c for c in STRATEGY_CASES if c.expect == "S2"], ids=lambda c: c.query)
    def test_concept_cases_are_not_citations(self, case):
        assert CitationParser.parse(case.query) is None

    def test_experiments_are_labelled(self):
        for experiment in FUSION_EXPERIMENTS:
            assert experiment.expected_ids or experiment.expected_law, experiment.query


# ---------------------------------------------------------------------------
# Strategy case checks
# ---------------------------------------------------------------------------

class TestCheckCase:

    def test_passing_case(self):
        case = StrategyCase(query="民法第184條", expect="S0", expect_article="第 184 條")
        results = [SearchResult.from_article(CIVIL_184, 1.0)]
        assert check_case(case, "direct_id_lookup", results) == []

    def test_strategy_mismatch(self):
        case = StrategyCase(query="民法第184條", expect="S0")
        results = [SearchResult.from_article(CIVIL_184, 1.0)]
        failures = check_case(case, "regex_fallback", results)
        assert failures == ["Strategy mismatch: got regex_fallback, expected S0"]

    def test_no_results(self):
        case = StrategyCase(query="民法 侵權行為", expect="S2", must_contain_law="民法")
        assert "No results returned" in check_case(case, "hybrid_law_concept", [])

    def test_wrong_law(self):
        case = StrategyCase(query="刑法 詐欺", expect="S2", must_contain_law="刑法")
        results = [SearchResult.from_article(CIVIL_184, 1.0)]
        assert check_case(case, "keyword_fallback_law_concept", results) == ["Wrong law: expected 刑法"]


# ---------------------------------------------------------------------------
# Runners
# ---------------------------------------------------------------------------

@pytest.fixture
def benchmark():
    store = FakeArticleStore(
        [CIVIL_184, CIVIL_185],
        search_results=[[CIVIL_184, CIVIL_185]] * 4,
    )
    engine = LawSearchEngine(
        article_store=store,
        vector_db=FakeVectorDB([CIVIL_185, CIVIL_186]),
        embedding_service=FakeEmbeddingService(),
    )
    return SearchBenchmark(engine)


class TestSearchBenchmark:

    async def test_strategy_cases(self, benchmark):
        cases = [
            StrategyCase(query="民法第184條", expect="S0", expect_article="第 184 條"),
            StrategyCase(query="民法 侵權行為", expect="S2", must_contain_law="民法"),
            StrategyCase(query="刑法第284條", expect="S0", expect_article="第 284 條"),
        ]
        report = await benchmark.run_strategy_cases(cases)

        assert report.total_cases == 3
        assert report.passed == 2
        assert [r.passed for r in report.results] == [True, True, False]
        assert report.results[0].top_result == "民法 第 184 條"

    async def test_fusion_comparison(self, benchmark):
        experiment = FusionExperiment(
            query="民法 侵權行為",
            law_name="民法",
            expected_ids=["B0000001-184", "B0000001-185", "B0000001-186"],
        )
        report = await benchmark.run_fusion_comparison([experiment])

        assert report.total_queries == 1
        assert {p.name for p in report.policies} == set(FUSION_POLICIES)
        scores = report.experiments[0].scores
        assert scores["keyword-only"].mrr == 1.0
        assert scores["vector-first"].recall == 1.0
        assert report.experiments[0].law_name == "民法"
        assert report.experiments[0].concept == "侵權行為"

    async def test_report_renders_both_sections(self, benchmark):
        strategy_report = await benchmark.run_strategy_cases(
            [StrategyCase(query="民法第184條", expect="S0", expect_article="第 184 條")]
        )
        fusion_report = await benchmark.run_fusion_comparison(
            [FusionExperiment(query="民法 侵權行為", law_name="民法", expected_ids=["B0000001-184"])]
        )

        markdown = render_report(strategy_report, fusion_report)

        assert "Strategy Regression" in markdown
        assert "Fusion Comparison" in markdown
        assert "| ✅ | 民法第184條 |" in markdown
        for name in FUSION_POLICIES:
            assert f"| {name} |" in markdown

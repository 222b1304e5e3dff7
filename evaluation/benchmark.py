"""
Law Search Evaluation Benchmark.

Two offline benchmarks against a live article store and vector index:
1. Strategy regression: does each labelled query take the expected
   strategy and return the expected article first?
2. Fusion comparison: keyword-only, vector-only and several merge policies
   scored with Recall@5, MRR and statute precision.
"""

import asyncio
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Protocol, Sequence

from pydantic import BaseModel, Field

from core.concepts import ConceptExtractor
from core.logger import LoggerMixin, get_logger
from core.ranking import (
    keyword_first_merge,
    reciprocal_rank_merge,
    vector_first_merge,
)
from core.reference import lookup_pcode
from core.retriever import LawSearchEngine
from evaluation.cases import (
    FUSION_EXPERIMENTS,
    STRATEGY_CASES,
    STRATEGY_FAMILIES,
    FusionExperiment,
    StrategyCase,
)
from models.schema import LawArticle, SearchResult

logger = get_logger(__name__)

# Evaluation directory
EVAL_DIR = Path(__file__).parent
REPORT_PATH = EVAL_DIR / "report.md"

TOP_K = 5

FUSION_POLICIES: tuple[str, ...] = (
    "keyword-only",
    "vector-only",
    "vector-only-filtered",
    "rrf-k60",
    "rrf-k10",
    "keyword-first",
    "vector-first",
)


class Hit(Protocol):
    """Anything ranked with a record id and a statute name."""

    id: str
    law_name: str


# ============================================================
# Metrics
# ============================================================

def law_matches(law_name: Optional[str], expected_law: str) -> bool:
    """Stored names may carry a prefix (中華民國刑法 for 刑法)."""
    return bool(law_name) and (law_name == expected_law or expected_law in law_name)


def recall_at_k(hit_ids: Sequence[str], expected_ids: Sequence[str], k: int = TOP_K) -> float:
    """Share of expected ids present in the top k."""
    if not expected_ids:
        return 0.0
    top = set(hit_ids[:k])
    return sum(1 for rid in expected_ids if rid in top) / len(expected_ids)


def reciprocal_rank(hit_ids: Sequence[str], expected_ids: Sequence[str], k: int = TOP_K) -> float:
    """1 / rank of the first expected id in the top k, 0 when absent."""
    for rank, rid in enumerate(hit_ids[:k], start=1):
        if rid in expected_ids:
            return 1.0 / rank
    return 0.0


def law_precision(hit_laws: Sequence[Optional[str]], expected_law: str, k: int = TOP_K) -> float:
    """Share of the top k belonging to the expected statute."""
    top = list(hit_laws[:k])
    if not top:
        return 0.0
    return sum(1 for law in top if law_matches(law, expected_law)) / len(top)


class HitMetrics(BaseModel):
    """Scores of one ranked list against one experiment."""

    recall: float = 0.0
    mrr: float = 0.0
    law_precision: float = 0.0


def evaluate_hits(hits: Sequence[Hit], experiment: FusionExperiment, k: int = TOP_K) -> HitMetrics:
    """
    Score a ranked list.

    Without expected ids, MRR falls back to the rank of the first result
    from the expected statute.
    """
    ids = [h.id for h in hits]
    laws = [h.law_name for h in hits]
    metrics = HitMetrics()

    if experiment.expected_ids:
        metrics.recall = recall_at_k(ids, experiment.expected_ids, k)
        metrics.mrr = reciprocal_rank(ids, experiment.expected_ids, k)

    if experiment.expected_law:
        metrics.law_precision = law_precision(laws, experiment.expected_law, k)
        if not experiment.expected_ids:
            for rank, law in enumerate(laws[:k], start=1):
                if law_matches(law, experiment.expected_law):
                    metrics.mrr = 1.0 / rank
                    break

    return metrics


# ============================================================
# Pydantic Models for Reports
# ============================================================

class StrategyCaseResult(BaseModel):
    """Outcome of one strategy regression case."""

    query: str
    desc: str
    expected: str
    strategy: str
    top_result: Optional[str] = None
    results_count: int = 0
    elapsed_ms: int = 0
    failures: list[str] = Field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.failures


class StrategyReport(BaseModel):
    """Strategy regression summary."""

    timestamp: str
    total_cases: int
    passed: int
    mean_elapsed_ms: float
    results: list[StrategyCaseResult]


class PolicyScore(BaseModel):
    """Aggregate scores of one retrieval policy."""

    name: str
    mean_mrr: float = 0.0
    mean_recall: float = 0.0
    mean_law_precision: float = 0.0
    mean_time_ms: float = 0.0
    n: int = 0


class ExperimentResult(BaseModel):
    """Per-query scores across policies."""

    query: str
    desc: str
    law_name: Optional[str] = None
    concept: str
    scores: dict[str, HitMetrics]
    top3: dict[str, list[str]]


class FusionReport(BaseModel):
    """Fusion comparison summary, policies sorted by mean MRR."""

    timestamp: str
    total_queries: int
    policies: list[PolicyScore]
    experiments: list[ExperimentResult]


# ============================================================
# Strategy regression
# ============================================================

def check_case(case: StrategyCase, strategy: str, results: Sequence[SearchResult]) -> list[str]:
    """Failure messages for a case; empty when it passes."""
    failures: list[str] = []
    family = STRATEGY_FAMILIES[case.expect]
    if strategy not in {tag.value for tag in family}:
        failures.append(f"Strategy mismatch: got {strategy}, expected {case.expect}")
    if not results:
        failures.append("No results returned")
        return failures
    if case.expect_article and results[0].article_no != case.expect_article:
        failures.append(
            f"Article mismatch: got {results[0].article_no}, expected {case.expect_article}"
        )
    if case.must_contain_law and not any(law_matches(r.law_name, case.must_contain_law) for r in results):
        failures.append(f"Wrong law: expected {case.must_contain_law}")
    return failures


class SearchBenchmark(LoggerMixin):
    """Runs the strategy regression and fusion comparison against an engine."""

    def __init__(self, engine: Optional[LawSearchEngine] = None) -> None:
        self.engine = engine or LawSearchEngine()

    async def run_strategy_cases(
        self,
        cases: Sequence[StrategyCase] = STRATEGY_CASES,
    ) -> StrategyReport:
        """Search every case and check strategy, top article and statute."""
        results: list[StrategyCaseResult] = []

        for case in cases:
            response = await self.engine.search(case.query, limit=TOP_K)
            top = response.results[0] if response.results else None
            result = StrategyCaseResult(
                query=case.query,
                desc=case.desc,
                expected=case.expect,
                strategy=response.strategy.value,
                top_result=f"{top.law_name} {top.article_no}" if top else None,
                results_count=len(response.results),
                elapsed_ms=response.elapsed_ms,
                failures=check_case(case, response.strategy.value, response.results),
            )
            results.append(result)
            self.logger.info(
                "Strategy case evaluated",
                query=case.query,
                strategy=result.strategy,
                passed=result.passed,
            )

        total_ms = sum(r.elapsed_ms for r in results)
        return StrategyReport(
            timestamp=datetime.now().isoformat(),
            total_cases=len(results),
            passed=sum(1 for r in results if r.passed),
            mean_elapsed_ms=round(total_ms / len(results), 1) if results else 0.0,
            results=results,
        )

    # ========================================================
    # Fusion comparison
    # ========================================================

    async def _run_policies(
        self,
        experiment: FusionExperiment,
    ) -> tuple[Optional[str], str, dict[str, tuple[list[Hit], int]]]:
        concept_query = ConceptExtractor.classify(
            experiment.query,
            experiment.law_name if experiment.explicit_law_name else None,
        )
        law_name = concept_query.law_name
        pcode = lookup_pcode(law_name) if law_name else None

        started = time.perf_counter()
        keyword = await self.engine.keyword.search_concept(concept_query.concept, law_name, TOP_K)
        keyword_ms = _ms_since(started)

        started = time.perf_counter()
        vector_query = await self.engine.embedding_service.embed_query(experiment.query)
        vector = await self.engine.vector_db.search(vector_query, limit=TOP_K)
        vector_ms = _ms_since(started)

        started = time.perf_counter()
        if pcode:
            filtered = await self.engine.vector_db.search(vector_query, limit=TOP_K, filters={"pcode": pcode})
        else:
            filtered = vector
        filtered_ms = _ms_since(started)

        merges: dict[str, Callable[[Sequence[LawArticle], Sequence[LawArticle], int], list[SearchResult]]] = {
            "rrf-k60": lambda kw, vec, n: reciprocal_rank_merge(kw, vec, n, k=60),
            "rrf-k10": lambda kw, vec, n: reciprocal_rank_merge(kw, vec, n, k=10),
            "keyword-first": keyword_first_merge,
            "vector-first": vector_first_merge,
        }

        ranked: dict[str, tuple[list[Hit], int]] = {
            "keyword-only": (list(keyword), keyword_ms),
            "vector-only": (list(vector), vector_ms),
            "vector-only-filtered": (list(filtered), filtered_ms),
        }
        for name, merge in merges.items():
            ranked[name] = (list(merge(keyword, filtered, TOP_K)), keyword_ms + filtered_ms)

        return law_name, concept_query.concept, ranked

    async def run_fusion_comparison(
        self,
        experiments: Sequence[FusionExperiment] = FUSION_EXPERIMENTS,
    ) -> FusionReport:
        """Score every policy on every experiment and aggregate."""
        totals = {name: PolicyScore(name=name) for name in FUSION_POLICIES}
        experiment_results: list[ExperimentResult] = []

        for experiment in experiments:
            law_name, concept, ranked = await self._run_policies(experiment)
            scores: dict[str, HitMetrics] = {}
            top3: dict[str, list[str]] = {}

            for name, (hits, elapsed_ms) in ranked.items():
                metrics = evaluate_hits(hits, experiment)
                scores[name] = metrics
                top3[name] = [f"{h.law_name} {getattr(h, 'article_no', '')}".strip() for h in hits[:3]]

                agg = totals[name]
                agg.mean_mrr += metrics.mrr
                agg.mean_recall += metrics.recall
                agg.mean_law_precision += metrics.law_precision
                agg.mean_time_ms += elapsed_ms
                agg.n += 1

            experiment_results.append(ExperimentResult(
                query=experiment.query,
                desc=experiment.desc,
                law_name=law_name,
                concept=concept,
                scores=scores,
                top3=top3,
            ))
            self.logger.info(
                "Fusion experiment evaluated",
                query=experiment.query,
                vector_first_mrr=scores["vector-first"].mrr,
            )

        for agg in totals.values():
            if agg.n:
                agg.mean_mrr = round(agg.mean_mrr / agg.n, 3)
                agg.mean_recall = round(agg.mean_recall / agg.n, 3)
                agg.mean_law_precision = round(agg.mean_law_precision / agg.n, 3)
                agg.mean_time_ms = round(agg.mean_time_ms / agg.n, 1)

        return FusionReport(
            timestamp=datetime.now().isoformat(),
            total_queries=len(experiment_results),
            policies=sorted(totals.values(), key=lambda p: p.mean_mrr, reverse=True),
            experiments=experiment_results,
        )


def _ms_since(started: float) -> int:
    return int(round((time.perf_counter() - started) * 1000))


# ============================================================
# Markdown report
# ============================================================

def render_report(
    strategy_report: Optional[StrategyReport] = None,
    fusion_report: Optional[FusionReport] = None,
) -> str:
    """Render one markdown document from whichever reports were produced."""
    md = f"# 📊 Law Search Evaluation Report\n\n**Generated:** {datetime.now().isoformat()}\n\n---\n\n"

    if strategy_report is not None:
        md += f"""## 🧭 Strategy Regression

| Metric | Value |
|--------|-------|
| **Passed** | {strategy_report.passed} / {strategy_report.total_cases} |
| **Mean Latency** | {strategy_report.mean_elapsed_ms} ms |

| | Query | Expected | Strategy | Top Result | ms |
|---|-------|----------|----------|------------|----|
"""
        for r in strategy_report.results:
            status = "✅" if r.passed else "❌"
            md += (
                f"| {status} | {r.query} | {r.expected} | {r.strategy} "
                f"| {r.top_result or '(no results)'} | {r.elapsed_ms} |\n"
            )
        failed = [r for r in strategy_report.results if not r.passed]
        if failed:
            md += "\n### Failures\n\n"
            for r in failed:
                md += f"- **{r.query}** ({r.desc}): {'; '.join(r.failures)}\n"
        md += "\n---\n\n"

    if fusion_report is not None:
        md += f"""## 🔀 Fusion Comparison ({fusion_report.total_queries} queries, top {TOP_K})

| Policy | Avg MRR | Avg Recall | Avg LawPrec | Avg Time |
|--------|---------|------------|-------------|----------|
"""
        for p in fusion_report.policies:
            md += (
                f"| {p.name} | {p.mean_mrr:.3f} | {p.mean_recall:.3f} "
                f"| {p.mean_law_precision:.3f} | {p.mean_time_ms:.0f} ms |\n"
            )
        md += "\n### Per Query\n\n"
        for e in fusion_report.experiments:
            md += f"#### {e.desc}\n\n`{e.query}` → law={e.law_name or '(none)'} concept=`{e.concept}`\n\n"
            md += "| Policy | MRR | Recall | LawPrec | Top 3 |\n|--------|-----|--------|---------|-------|\n"
            for name in FUSION_POLICIES:
                s = e.scores[name]
                md += (
                    f"| {name} | {s.mrr:.2f} | {s.recall:.2f} | {s.law_precision:.2f} "
                    f"| {' / '.join(e.top3[name])} |\n"
                )
            md += "\n"

    return md


# ============================================================
# CLI Entrypoint
# ============================================================

async def main():
    """Run the evaluation pipeline."""
    import argparse

    parser = argparse.ArgumentParser(description="Law Search Evaluation Benchmark")
    parser.add_argument(
        "--strategies",
        action="store_true",
        help="Run the strategy regression cases",
    )
    parser.add_argument(
        "--fusion",
        action="store_true",
        help="Run the fusion policy comparison (needs the embedding endpoint)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=REPORT_PATH,
        help=f"Markdown report path (default: {REPORT_PATH})",
    )
    args = parser.parse_args()

    if not args.strategies and not args.fusion:
        parser.print_help()
        return

    benchmark = SearchBenchmark()
    strategy_report: Optional[StrategyReport] = None
    fusion_report: Optional[FusionReport] = None

    try:
        if args.strategies:
            print(f"\n{'='*60}")
            print("🧭 STRATEGY REGRESSION")
            print(f"{'='*60}\n")
            strategy_report = await benchmark.run_strategy_cases()
            for r in strategy_report.results:
                status = "PASS" if r.passed else "FAIL"
                print(f"  [{status}] [{r.elapsed_ms:>4}ms] {r.desc}: \"{r.query}\" -> {r.strategy}")
                for failure in r.failures:
                    print(f"         {failure}")
            print(f"\n  Passed: {strategy_report.passed}/{strategy_report.total_cases}")

        if args.fusion:
            print(f"\n{'='*60}")
            print("🔀 FUSION COMPARISON")
            print(f"{'='*60}\n")
            fusion_report = await benchmark.run_fusion_comparison()
            print(f"  {'Policy':<24}{'Avg MRR':>10}{'Avg Recall':>12}{'Avg LawPrec':>13}")
            for p in fusion_report.policies:
                print(f"  {p.name:<24}{p.mean_mrr:>10.3f}{p.mean_recall:>12.3f}{p.mean_law_precision:>13.3f}")
    finally:
        await benchmark.engine.close()

    args.output.write_text(render_report(strategy_report, fusion_report), encoding="utf-8")
    print(f"\n📄 Full report: {args.output}\n")


if __name__ == "__main__":
    asyncio.run(main())

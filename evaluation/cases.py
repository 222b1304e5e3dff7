"""
Labelled queries for the search benchmarks.

STRATEGY_CASES check which strategy answers a query and what comes back
first. FUSION_EXPERIMENTS carry hand-labelled relevant record ids and/or
the statute the results should come from, for comparing merge policies.
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field

from models.schema import StrategyTag

StrategyFamily = Literal["S0", "S1", "S2"]

STRATEGY_FAMILIES: dict[str, frozenset[StrategyTag]] = {
    "S0": frozenset({StrategyTag.DIRECT_ID_LOOKUP}),
    "S1": frozenset({StrategyTag.REGEX_FALLBACK}),
    "S2": frozenset({
        StrategyTag.ATLAS_ARTICLE,
        StrategyTag.HYBRID_LAW_CONCEPT,
        StrategyTag.HYBRID_PURE_CONCEPT,
        StrategyTag.KEYWORD_FALLBACK_LAW_CONCEPT,
        StrategyTag.KEYWORD_FALLBACK_PURE_CONCEPT,
    }),
}


class StrategyCase(BaseModel):
    """A query with the strategy family expected to answer it."""

    query: str
    expect: StrategyFamily
    expect_article: Optional[str] = Field(default=None, description="Expected top-1 article label")
    must_contain_law: Optional[str] = Field(default=None, description="Statute some result must belong to")
    desc: str = ""


class FusionExperiment(BaseModel):
    """A query with labelled relevant articles."""

    query: str
    law_name: Optional[str] = None
    explicit_law_name: bool = Field(
        default=False,
        description="Pass law_name to the engine instead of inferring it from the query",
    )
    expected_ids: list[str] = Field(default_factory=list)
    expected_law: Optional[str] = None
    desc: str = ""


def _s0(query: str, article: str, desc: str) -> StrategyCase:
    return StrategyCase(query=query, expect="S0", expect_article=article, desc=desc)


def _s2(query: str, desc: str, law: Optional[str] = None) -> StrategyCase:
    return StrategyCase(query=query, expect="S2", must_contain_law=law, desc=desc)


STRATEGY_CASES: list[StrategyCase] = [
    # Full statute names with article numbers
    _s0("民法第184條", "第 184 條", "基本條號"),
    _s0("民法第191條之2", "第 191-2 條", "條之X格式"),
    _s0("民法第195條", "第 195 條", "慰撫金條文"),
    _s0("民法第217條", "第 217 條", "與有過失"),
    _s0("民法第213條", "第 213 條", "回復原狀"),
    _s0("刑法第284條", "第 284 條", "過失傷害"),
    _s0("刑事訴訟法第487條", "第 487 條", "附帶民訴"),
    _s0("道路交通管理處罰條例第61條", "第 61 條", "道交條例"),
    _s0("勞動基準法第59條", "第 59 條", "職災補償"),
    _s0("消費者保護法第7條", "第 7 條", "商品責任"),
    _s0("醫療法第82條", "第 82 條", "醫療過失"),
    # Abbreviated statute names
    _s0("消保法第7條", "第 7 條", "縮寫消保法"),
    _s0("勞基法第59條", "第 59 條", "縮寫勞基法"),
    _s0("道交條例第61條", "第 61 條", "縮寫道交條例"),
    _s0("國賠法第2條", "第 2 條", "縮寫國賠法"),
    _s0("個資法第29條", "第 29 條", "縮寫個資法"),
    _s0("民訴法第277條", "第 277 條", "縮寫民訴法"),
    # Statute + concept
    _s2("民法 侵權行為", "侵權核心概念", "民法"),
    _s2("民法 損害賠償", "損害賠償", "民法"),
    _s2("民法 慰撫金", "慰撫金", "民法"),
    _s2("民法 與有過失", "與有過失", "民法"),
    _s2("民法 不當得利", "不當得利", "民法"),
    _s2("民法 時效", "消滅時效", "民法"),
    _s2("勞動基準法 資遣", "勞基法資遣", "勞動基準法"),
    _s2("勞動事件法 舉證", "勞事法舉證", "勞動事件法"),
    _s2("民事訴訟法 舉證", "舉證責任", "民事訴訟法"),
    _s2("刑法 詐欺", "詐欺", "刑法"),
    _s2("消費者保護法 定型化契約", "消保定型化契約", "消費者保護法"),
    _s2("個人資料保護法 損害賠償", "個資法賠償", "個人資料保護法"),
    # Concept only
    _s2("侵權行為", "純概念-侵權"),
    _s2("損害賠償", "純概念-損害賠償"),
    _s2("善意取得", "純概念-善意取得"),
    # Edge cases
    _s0("民法總則施行法第1條", "第 1 條", "施行法"),
    _s0("公寓大廈管理條例第10條", "第 10 條", "公大條例"),
    _s0("民法第483條之1", "第 483-1 條", "條之1格式"),
    _s2("民法 物之瑕疵", "物之瑕疵", "民法"),
]


FUSION_EXPERIMENTS: list[FusionExperiment] = [
    # Statute + concept with known answers
    FusionExperiment(
        query="民法 損害賠償",
        law_name="民法",
        expected_ids=["B0000001-184", "B0000001-213", "B0000001-216"],
        desc="損害賠償核心三條",
    ),
    FusionExperiment(
        query="民法 侵權行為",
        law_name="民法",
        expected_ids=["B0000001-184", "B0000001-185", "B0000001-186"],
        desc="侵權行為核心",
    ),
    FusionExperiment(
        query="民法 慰撫金",
        law_name="民法",
        expected_ids=["B0000001-195", "B0000001-194"],
        desc="慰撫金",
    ),
    FusionExperiment(
        query="民法 與有過失",
        law_name="民法",
        expected_ids=["B0000001-217"],
        desc="與有過失",
    ),
    FusionExperiment(
        query="勞動基準法 資遣",
        law_name="勞動基準法",
        expected_ids=["N0030001-11", "N0030001-17"],
        desc="資遣",
    ),
    FusionExperiment(
        query="民事訴訟法 舉證",
        law_name="民事訴訟法",
        expected_ids=["B0010001-277"],
        desc="舉證責任分配",
    ),
    # Colloquial terms the statute text does not use
    FusionExperiment(
        query="民法 精神慰撫金",
        law_name="民法",
        expected_ids=["B0000001-195", "B0000001-194"],
        desc="精神慰撫金（法條用「慰撫金」）",
    ),
    FusionExperiment(
        query="民法 不能工作損失",
        law_name="民法",
        expected_ids=["B0000001-193"],
        desc="不能工作（法條用「勞動能力」）",
    ),
    FusionExperiment(
        query="勞基法 加班費",
        law_name="勞動基準法",
        expected_ids=["N0030001-24", "N0030001-32"],
        desc="加班費（法條用「延長工時」）",
    ),
    # Concept table rewrites
    FusionExperiment(
        query="損害賠償",
        expected_law="民法",
        expected_ids=["B0000001-184", "B0000001-213", "B0000001-216"],
        desc="純概念-損害賠償",
    ),
    FusionExperiment(
        query="過失傷害",
        expected_law="刑法",
        expected_ids=["C0000001-284"],
        desc="純概念-過失傷害",
    ),
    FusionExperiment(
        query="假扣押",
        expected_law="民事訴訟法",
        expected_ids=["B0010001-522", "B0010001-523", "B0010001-526"],
        desc="純概念-假扣押",
    ),
    FusionExperiment(
        query="定型化契約",
        expected_law="消費者保護法",
        expected_ids=["J0170001-11", "J0170001-12", "J0170001-17"],
        desc="純概念-定型化契約",
    ),
    # Colloquial questions
    FusionExperiment(
        query="車禍受傷可以跟對方求償嗎",
        expected_law="民法",
        expected_ids=["B0000001-184", "B0000001-191-2", "B0000001-193"],
        desc="口語-車禍賠償",
    ),
    FusionExperiment(
        query="公司欠薪水怎麼辦",
        expected_law="勞動基準法",
        expected_ids=["N0030001-22", "N0030001-27"],
        desc="口語-欠薪",
    ),
    FusionExperiment(
        query="網路上被人罵可以告嗎",
        expected_law="刑法",
        expected_ids=["C0000001-309", "C0000001-310"],
        desc="口語-公然侮辱/誹謗",
    ),
    FusionExperiment(
        query="離婚後小孩監護權歸誰",
        expected_law="民法",
        expected_ids=["B0000001-1055", "B0000001-1055-1"],
        desc="口語-監護權",
    ),
    # Explicit law_name parameter
    FusionExperiment(
        query="漏水",
        law_name="民法",
        explicit_law_name=True,
        expected_law="民法",
        desc="law_name 過濾-漏水",
    ),
    FusionExperiment(
        query="加班費",
        law_name="勞動基準法",
        explicit_law_name=True,
        expected_ids=["N0030001-24"],
        desc="law_name 過濾-加班費",
    ),
]

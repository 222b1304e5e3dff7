"""
Static reference tables for Taiwanese statutes.

- PCODE_MAP: canonical statute name -> PCode (statute code)
- ALIAS_MAP: common abbreviation -> canonical statute name
- CONCEPT_TO_LAW: legal concept -> statute (+ optional canonical concept term)

All tables are read-only mapping proxies built once at import.
"""

from types import MappingProxyType
from typing import Mapping, NamedTuple, Optional


class ConceptRule(NamedTuple):
    """Statute a concept belongs to, and the term the statute text actually uses."""

    law_name: str
    concept: Optional[str] = None


PCODE_MAP: Mapping[str, str] = MappingProxyType({
    # 民事
    "民法": "B0000001",
    "民法總則施行法": "B0000002",
    "民法債編施行法": "B0000003",
    "民法親屬編施行法": "B0000005",
    "民法繼承編施行法": "B0000006",
    "民事訴訟法": "B0010001",
    "強制執行法": "B0010004",
    "非訟事件法": "B0010008",
    "家事事件法": "B0010048",
    "消費者保護法": "J0170001",
    "公寓大廈管理條例": "D0070118",
    # 刑事
    "刑法": "C0000001",
    "刑事訴訟法": "C0010001",
    "少年事件處理法": "C0010011",
    "刑事補償法": "C0010009",
    "國民法官法": "A0030320",
    "犯罪被害人權益保障法": "I0050005",
    # 商事
    "公司法": "J0080001",
    "證券交易法": "G0400001",
    "票據法": "G0380028",
    "海商法": "K0070002",
    "保險法": "G0390002",
    "商業會計法": "J0080009",
    "企業併購法": "J0080041",
    # 勞動
    "勞動基準法": "N0030001",
    "勞工保險條例": "N0050001",
    "勞動事件法": "B0010064",
    "職業安全衛生法": "N0060001",
    "職業災害勞工保護法": "N0060041",
    "就業服務法": "N0090001",
    "性別平等工作法": "N0030014",
    "勞資爭議處理法": "N0020007",
    # 智慧財產
    "著作權法": "J0070017",
    "專利法": "J0070007",
    "商標法": "J0070001",
    "營業秘密法": "J0080028",
    # 行政
    "行政程序法": "A0030055",
    "行政訴訟法": "A0030154",
    "訴願法": "A0030020",
    "行政執行法": "A0030023",
    "行政罰法": "A0030210",
    "國家賠償法": "I0020004",
    "政府採購法": "A0030057",
    # 稅務
    "稅捐稽徵法": "G0340001",
    "所得稅法": "G0340003",
    "加值型及非加值型營業稅法": "G0340080",
    "遺產及贈與稅法": "G0340072",
    "房屋稅條例": "G0340102",
    "土地稅法": "G0340096",
    # 土地與營建
    "土地法": "D0060001",
    "土地登記規則": "D0060003",
    "耕地三七五減租條例": "D0060008",
    "平均地權條例": "D0060009",
    "都市計畫法": "D0070001",
    "建築法": "D0070109",
    "區域計畫法": "D0070030",
    # 交通
    "道路交通管理處罰條例": "K0040012",
    "道路交通安全規則": "K0040013",
    # 其他
    "個人資料保護法": "I0050021",
    "電子簽章法": "J0080037",
    "銀行法": "G0380001",
    "金融消費者保護法": "G0380226",
    "信託法": "I0020024",
    "洗錢防制法": "G0380131",
    "醫療法": "L0020021",
    "藥事法": "L0030001",
    "全民健康保險法": "L0060001",
    "環境基本法": "O0100001",
    "廢棄物清理法": "O0050001",
    "水污染防治法": "O0040001",
    "空氣污染防制法": "O0020001",
    "社會秩序維護法": "D0080067",
    "通訊保障及監察法": "K0060044",
    "仲裁法": "I0020001",
    "法律扶助法": "A0030157",
    "鄉鎮市調解條例": "I0020003",
    "公職人員選舉罷免法": "D0020010",
    "憲法訴訟法": "A0030159",
})

ALIAS_MAP: Mapping[str, str] = MappingProxyType({
    "民訴法": "民事訴訟法",
    "民訴": "民事訴訟法",
    "強執法": "強制執行法",
    "家事法": "家事事件法",
    "消保法": "消費者保護法",
    "公大條例": "公寓大廈管理條例",
    "中華民國刑法": "刑法",
    "刑訴法": "刑事訴訟法",
    "刑訴": "刑事訴訟法",
    "證交法": "證券交易法",
    "勞基法": "勞動基準法",
    "勞保條例": "勞工保險條例",
    "勞事法": "勞動事件法",
    "職安法": "職業安全衛生法",
    "性平法": "性別平等工作法",
    "性工法": "性別平等工作法",
    "勞爭法": "勞資爭議處理法",
    "著作權": "著作權法",
    "營秘法": "營業秘密法",
    "行程法": "行政程序法",
    "行政訴訟": "行政訴訟法",
    "國賠法": "國家賠償法",
    "行罰法": "行政罰法",
    "政採法": "政府採購法",
    "稅捐法": "稅捐稽徵法",
    "所得稅": "所得稅法",
    "營業稅": "加值型及非加值型營業稅法",
    "營業稅法": "加值型及非加值型營業稅法",
    "遺贈稅法": "遺產及贈與稅法",
    "道交條例": "道路交通管理處罰條例",
    "道交處罰條例": "道路交通管理處罰條例",
    "道交管理條例": "道路交通管理處罰條例",
    "道安規則": "道路交通安全規則",
    "交通安全規則": "道路交通安全規則",
    "個資法": "個人資料保護法",
    "金保法": "金融消費者保護法",
    "洗防法": "洗錢防制法",
    "健保法": "全民健康保險法",
    "仲裁": "仲裁法",
    "都計法": "都市計畫法",
})

CONCEPT_TO_LAW: Mapping[str, ConceptRule] = MappingProxyType({
    "損害賠償": ConceptRule("民法"),
    "精神慰撫金": ConceptRule("民法", "慰撫金"),
    "慰撫金": ConceptRule("民法"),
    "勞動能力減損": ConceptRule("民法", "勞動能力"),
    "過失傷害": ConceptRule("刑法"),
    "過失致死": ConceptRule("刑法"),
    "侵權行為": ConceptRule("民法"),
    "假扣押": ConceptRule("民事訴訟法"),
    "強制執行": ConceptRule("強制執行法"),
    "定型化契約": ConceptRule("消費者保護法"),
    "職業災害": ConceptRule("勞動基準法"),
    "解僱": ConceptRule("勞動基準法", "終止契約"),
    "加班": ConceptRule("勞動基準法", "延長工時"),
    "車禍賠償": ConceptRule("民法", "損害賠償"),
    "公然侮辱": ConceptRule("刑法"),
    "國家賠償": ConceptRule("國家賠償法"),
})

# Longest first so a specific name or concept is never shadowed by a shorter one
SORTED_LAW_NAMES: tuple[str, ...] = tuple(
    sorted(set(PCODE_MAP) | set(ALIAS_MAP), key=len, reverse=True)
)
SORTED_CONCEPTS: tuple[str, ...] = tuple(sorted(CONCEPT_TO_LAW, key=len, reverse=True))


def resolve_alias(name: str) -> str:
    """Resolve an abbreviation to its canonical statute name; unknown names pass through."""
    return ALIAS_MAP.get(name, name)


def lookup_pcode(law_name: str) -> Optional[str]:
    """PCode for a canonical statute name, or None if the statute is not tabled."""
    return PCODE_MAP.get(law_name)

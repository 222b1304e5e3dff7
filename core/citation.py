"""
Statute article citation parsing and normalization.

Recognizes citations such as 民法第184條, 消保法 第 7 條, 民法第191條之2 or
民法§213, normalizes the article part into the label format used by the
article store (第 184 條, 第 191-2 條) and builds the composite record id
{pcode}-{article number} the store is keyed by.
"""

import re
from typing import NamedTuple, Optional

from core.reference import SORTED_LAW_NAMES, lookup_pcode, resolve_alias
from models.schema import ArticleCitation


class LawReference(NamedTuple):
    """A resolved reference to one stored article."""

    record_id: str
    law_name: str
    article_label: str


class CitationParser:
    """
    Regex engine for statute article citations.

    Label formats:
        - 184, §184        -> 第 184 條
        - 第184條          -> 第 184 條
        - 第191條之2       -> 第 191-2 條
        - 191-2, 第191-2條 -> 第 191-2 條
    """

    PATTERNS = {
        # "<statute><article>"; prefix must be non-empty
        "citation": re.compile(r"^(.+?)\s*(第\s*\S+?\s*條.*)$"),
        "section_sign": re.compile(r"^(.+?)\s*(§\s*\d+(?:\s*-\s*\d+)?)$"),
        # "<statute> <number>" without 第..條, used for loose reference strings
        "bare": re.compile(r"^(.+?)\s*(\d[\d-]*)$"),
        "digits": re.compile(r"^(\d+)(?:\s*-\s*(\d+))?$"),
        "clause_suffix": re.compile(r"^第\s*(\d+)\s*條\s*之\s*(\d+)$"),
        "canonical": re.compile(r"^第\s*(\d+)(?:\s*-\s*(\d+))?\s*條$"),
        "article_num": re.compile(r"第\s*(\d+(?:-\d+)?)\s*條"),
        # Article number with optional 之M / -M clause number, from a raw article reference
        "raw_number": re.compile(r"第\s*(\d+)\s*(?:條\s*之\s*(\d+)|-\s*(\d+)\s*條|條)"),
        # Mentions inside running text, e.g. 道路交通安全規則第102條第1項
        "mention": re.compile(
            r"([\u4e00-\u9fff]+(?:法|規則|條例|辦法|細則))\s*第\s*(\d+\s*條(?:\s*之\s*\d+)?)"
        ),
    }

    @staticmethod
    def _label(number: str, clause: Optional[str] = None) -> str:
        return f"第 {number}-{clause} 條" if clause else f"第 {number} 條"

    @classmethod
    def normalize_article_no(cls, raw: str) -> str:
        """
        Normalize an article reference into the stored label format.

        Unrecognized formats are returned trimmed but otherwise unchanged;
        callers must tolerate a non-canonical label.

        Args:
            raw: Article reference as written (e.g. '第191條之2', '§213', '184').

        Returns:
            str: Canonical label such as '第 191-2 條', or the trimmed input.
        """
        s = raw.strip()

        if s.startswith("§"):
            s = s[1:].strip()

        match = cls.PATTERNS["digits"].match(s)
        if match:
            return cls._label(match.group(1), match.group(2))

        match = cls.PATTERNS["clause_suffix"].match(s)
        if match:
            return cls._label(match.group(1), match.group(2))

        match = cls.PATTERNS["canonical"].match(s)
        if match:
            return cls._label(match.group(1), match.group(2))

        return s

    @classmethod
    def extract_article_num(cls, article_label: str) -> Optional[str]:
        """Digit/hyphen portion of a label ('第 191-2 條' -> '191-2'), or None."""
        match = cls.PATTERNS["article_num"].search(article_label)
        return match.group(1) if match else None

    @classmethod
    def build_record_id(cls, law_name: str, article_label: str) -> Optional[str]:
        """
        Compose the article store primary key.

        Args:
            law_name: Canonical statute name.
            article_label: Normalized article label.

        Returns:
            Optional[str]: '{pcode}-{number}', or None when the statute has no
            known code or the label carries no article number.
        """
        pcode = lookup_pcode(law_name)
        if not pcode:
            return None
        number = cls.extract_article_num(article_label)
        if not number:
            return None
        return f"{pcode}-{number}"

    @classmethod
    def parse(cls, query: str) -> Optional[ArticleCitation]:
        """
        Parse '<statute><article>' out of a query.

        Returns:
            Optional[ArticleCitation]: None when the query has no citation shape.
        """
        text = query.strip()
        match = cls.PATTERNS["citation"].match(text) or cls.PATTERNS["section_sign"].match(text)
        if not match:
            return None

        law_name = match.group(1).strip()
        if not law_name:
            return None
        raw_article = match.group(2).strip()

        return ArticleCitation(
            law_name=law_name,
            resolved_law_name=resolve_alias(law_name),
            raw_article=raw_article,
            article_label=cls.normalize_article_no(raw_article),
        )

    @classmethod
    def build_article_pattern(cls, raw_article: str) -> Optional[str]:
        """
        Tolerant regex over the article label field.

        '第191條之2' and '第191-2條' both produce a pattern accepting either
        spelling of article 191 clause 2. A plain '第184條' refuses clause
        variants such as '第 184-1 條' or '第184條之1'. A leading '§' reference is
        treated like the bare number.

        Returns:
            Optional[str]: Pattern source, or None without an Arabic article number.
        """
        text = raw_article.strip()
        if text.startswith("§"):
            text = cls.normalize_article_no(text)

        match = cls.PATTERNS["raw_number"].search(text)
        if not match:
            return None

        number = match.group(1)
        clause = match.group(2) or match.group(3)
        if clause:
            return rf"第\s*{number}\s*(?:-|條\s*之)\s*{clause}(?!\d)"
        return rf"第\s*{number}\s*條(?!\s*之)"

    @classmethod
    def parse_reference(cls, raw: str) -> Optional[LawReference]:
        """
        Resolve a loose reference string ('民法第184條', '勞基法59') to a record id.

        Returns:
            Optional[LawReference]: None when unparseable or the statute is unknown.
        """
        text = raw.strip()
        if not text:
            return None

        for pattern_name in ("citation", "section_sign", "bare"):
            match = cls.PATTERNS[pattern_name].match(text)
            if not match:
                continue
            law_name = resolve_alias(match.group(1).strip())
            label = cls.normalize_article_no(match.group(2).strip())
            record_id = cls.build_record_id(law_name, label)
            if record_id:
                return LawReference(record_id, law_name, label)

        return None

    @staticmethod
    def _trailing_law_name(captured: str) -> Optional[str]:
        # Running text glues words onto the name ("依民法"); take the longest tabled suffix
        if lookup_pcode(resolve_alias(captured)):
            return resolve_alias(captured)
        for name in SORTED_LAW_NAMES:
            if captured.endswith(name):
                return resolve_alias(name)
        return None

    @classmethod
    def find_mentions(cls, text: str) -> list[LawReference]:
        """
        Find statute article mentions inside running text.

        Mentions of untabled statutes are skipped; duplicates keep first position.
        """
        references: list[LawReference] = []
        seen: set[str] = set()

        for match in cls.PATTERNS["mention"].finditer(text):
            law_name = cls._trailing_law_name(match.group(1))
            if law_name is None:
                continue
            label = cls.normalize_article_no(f"第{match.group(2)}")
            record_id = cls.build_record_id(law_name, label)
            if record_id and record_id not in seen:
                seen.add(record_id)
                references.append(LawReference(record_id, law_name, label))

        return references


# Module-level shortcuts
normalize_article_no = CitationParser.normalize_article_no
build_article_pattern = CitationParser.build_article_pattern

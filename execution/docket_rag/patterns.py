"""
Pattern Definitions for Docket RAG

All boilerplate regexes, prompt templates, and summary vocabularies used by
the pipeline. Modules import from here instead of defining patterns inline.

Boilerplate detection is a flat list of independent rules: each rule is a
compiled pattern plus an optional length ceiling above which it no longer
applies. Adding a rule never requires touching control flow.
"""

import re
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class BoilerplateRule:
    """A single boilerplate pattern with an optional length ceiling."""
    name: str
    pattern: re.Pattern
    # Rule only applies to texts shorter than this (None = any length)
    max_length: Optional[int] = None

    def applies_to(self, text: str) -> bool:
        if self.max_length is not None and len(text) >= self.max_length:
            return False
        return self.pattern.search(text) is not None


# =============================================================================
# Text Normalization (removed from raw extracted text)
# =============================================================================

# Case-sensitive and single-line: court filings print these blocks in caps.
NORMALIZER_STRIP_RULES = [
    BoilerplateRule(
        "doj_letterhead",
        re.compile(r"UNITED STATES DEPARTMENT OF JUSTICE.*?WILMINGTON, DE \d{5}"),
    ),
    BoilerplateRule(
        "attention_line",
        re.compile(r"ATTN:.*?NEW YORK, NY \d{5}"),
    ),
    BoilerplateRule(
        "po_box_address",
        re.compile(r"P\.O\.\sBOX\s\d+.*?WASHINGTON,\sDC\s\d{5}"),
    ),
    BoilerplateRule("case_number_line", re.compile(r"CASE NO\.:.*?\n")),
    BoilerplateRule("filed_line", re.compile(r"FILED:.*?\n")),
    BoilerplateRule("page_footer", re.compile(r"Page \d+ of \d+")),
]

EXCESS_LINE_BREAKS = re.compile(r"\n{3,}")

# =============================================================================
# Chunking
# =============================================================================

PARAGRAPH_BREAK = re.compile(r"\n\s*\n")

SENTENCE_BREAK = re.compile(r"[.!?]+")

# Paragraphs that are pure address blocks or firm/attention lines
PARAGRAPH_SKIP_RULES = [
    BoilerplateRule(
        "street_address",
        re.compile(r"^\d+ [A-Z\s]+(STREET|AVENUE|BOULEVARD|LANE|ROAD)", re.IGNORECASE),
    ),
    BoilerplateRule(
        "firm_or_attention",
        re.compile(r"^[A-Z\s]+LLP|ATTN:|C/O|P\.O\.\sBOX", re.IGNORECASE),
    ),
]

# Counted per word to judge whether a finished chunk is mostly noise
CHUNK_NOISE_MARKERS = re.compile(
    r"(ATTN:|P\.O\.|LLC|LLP|STREET|AVENUE|BOULEVARD)",
    re.IGNORECASE,
)

# =============================================================================
# Search Result Filtering
# =============================================================================

RESULT_BOILERPLATE_LENGTH = 200

RESULT_BOILERPLATE_RULES = [
    BoilerplateRule(name, re.compile(pattern, re.IGNORECASE), RESULT_BOILERPLATE_LENGTH)
    for name, pattern in [
        ("doj_letterhead", r"united states department of justice"),
        ("attention_line", r"attn:"),
        ("po_box_address", r"p\.o\.\sbox"),
        ("street_address", r"^\d+ [a-z\s]+(street|avenue|boulevard|lane|road)"),
        ("law_firm", r"[a-z\s]+llp"),
        ("case_number_line", r"case no\.:"),
        ("filed_line", r"filed:"),
        ("page_footer", r"page \d+ of \d+"),
    ]
]

# =============================================================================
# LLM Prompt Templates
# =============================================================================

LLM_PROMPTS = {
    "default_system": "You are a helpful AI assistant specializing in legal document analysis.",

    "legal_analysis": """You are an expert legal AI assistant analyzing bankruptcy court documents.

IMPORTANT INSTRUCTIONS:
- Focus ONLY on substantive legal content, rulings, decisions, and case developments
- Ignore boilerplate text, addresses, headers, footers, and procedural information
- If the provided context contains mostly addresses, headers, or procedural text, say so and ask for a more specific question
- Prioritize content that discusses legal arguments, court decisions, financial details, or case developments
- Provide clear, concise answers based on the most relevant legal content available

Context from court documents:
{context}

Question: {question}

Please provide a detailed answer based on the substantive legal content from the court documents. If the context appears to be mostly procedural or boilerplate text, please note this limitation.""",

    "no_context": (
        "No relevant excerpts were found in the indexed court documents. "
        "Tell the user that the documents available do not address this question "
        "and do not cite or invent any sources."
    ),
}

# =============================================================================
# Chat Session Titles
# =============================================================================

SUMMARY_STOP_WORDS = frozenset([
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "is", "was", "are", "were", "been", "be",
    "have", "has", "had", "do", "does", "did", "will", "would", "could",
    "should", "may", "might", "must", "can", "what", "when", "where",
    "who", "why", "how", "which", "this", "that", "these", "those",
    "i", "you", "we", "they", "he", "she", "it", "me", "us", "them",
    "about", "tell", "explain", "show", "find", "help", "please",
])

SUMMARY_TOPIC_KEYWORDS = {
    "ftx": "FTX",
    "bankruptcy": "Bankruptcy",
    "creditor": "Creditor",
    "creditors": "Creditors",
    "claim": "Claim",
    "claims": "Claims",
    "sbf": "SBF",
    "sam": "Sam",
    "bankman": "Bankman",
    "fried": "Fried",
    "alameda": "Alameda",
    "customer": "Customer",
    "customers": "Customers",
    "fund": "Fund",
    "funds": "Funds",
    "asset": "Asset",
    "assets": "Assets",
    "recovery": "Recovery",
    "distribution": "Distribution",
    "court": "Court",
    "case": "Case",
    "legal": "Legal",
    "document": "Document",
    "documents": "Documents",
    "filing": "Filing",
    "filings": "Filings",
    "fraud": "Fraud",
    "collapse": "Collapse",
    "exchange": "Exchange",
    "crypto": "Crypto",
    "cryptocurrency": "Crypto",
    "bitcoin": "Bitcoin",
    "token": "Token",
    "tokens": "Tokens",
    "trading": "Trading",
    "lawsuit": "Lawsuit",
    "settlement": "Settlement",
}

"""Industry sales strategies used to ground prompts and fallback reports."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

from dealpulse.core.models import Entity, ResearchRecord


@dataclass(frozen=True)
class IndustryStrategy:
    name: str
    topics: Tuple[str, ...]
    objections: Tuple[str, ...]
    technical_terms: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "industry": self.name,
            "topics": list(self.topics),
            "objections": list(self.objections),
            "technicalTerms": list(self.technical_terms),
        }


DEFAULT_INDUSTRY = "default"

_STRATEGY_DATA: Dict[str, Dict[str, Tuple[str, ...]]] = {
    "financial services": {
        "topics": (
            "Regulatory compliance",
            "Risk management",
            "Digital transformation",
            "Customer experience",
            "Data security",
            "Cost reduction",
        ),
        "objections": (
            "Regulatory approval",
            "Security concerns",
            "Integration with legacy systems",
            "Implementation timeline",
            "Cost justification",
            "Staff training",
        ),
        "technical_terms": (
            "KYC",
            "AML",
            "Core banking",
            "Open banking API",
            "SOC 2",
            "Data residency",
        ),
    },
    "mortgage": {
        "topics": (
            "Loan origination efficiency",
            "Compliance automation",
            "Borrower experience",
            "Pipeline visibility",
            "Rate lock management",
            "Secondary market",
        ),
        "objections": (
            "Integration with LOS",
            "Compliance risk",
            "Rate environment",
            "Implementation effort",
            "Cost per loan",
            "Staff adoption",
        ),
        "technical_terms": ("LOS", "TRID", "HMDA", "Encompass", "Pricing engine", "eClosing"),
    },
    "banking": {
        "topics": (
            "Digital banking",
            "Customer onboarding",
            "Fraud prevention",
            "Regulatory reporting",
            "Operational efficiency",
            "Branch transformation",
        ),
        "objections": (
            "Core system compatibility",
            "Regulatory scrutiny",
            "Security review",
            "Vendor risk management",
            "Budget cycles",
            "Change management",
        ),
        "technical_terms": (
            "Core banking",
            "KYC",
            "AML",
            "FFIEC",
            "API gateway",
            "Real-time payments",
        ),
    },
    "healthcare": {
        "topics": (
            "Patient outcomes",
            "HIPAA compliance",
            "Interoperability",
            "Clinical workflow",
            "Revenue cycle",
            "Telehealth",
        ),
        "objections": (
            "Data privacy",
            "EHR integration",
            "Clinician adoption",
            "Budget constraints",
            "Regulatory approval",
            "Implementation disruption",
        ),
        "technical_terms": ("HIPAA", "HL7", "FHIR", "EHR", "PHI", "Interoperability"),
    },
    "technology": {
        "topics": (
            "Scalability",
            "Developer productivity",
            "Time to market",
            "Security posture",
            "Integration ecosystem",
            "Total cost of ownership",
        ),
        "objections": (
            "Build vs buy",
            "Integration complexity",
            "Vendor lock-in",
            "Security review",
            "Pricing model",
            "Roadmap alignment",
        ),
        "technical_terms": ("API", "SDK", "SSO", "SOC 2", "Cloud native", "Webhooks"),
    },
    "retail": {
        "topics": (
            "Customer experience",
            "Omnichannel",
            "Inventory optimization",
            "Personalization",
            "Store operations",
            "Margin improvement",
        ),
        "objections": (
            "Seasonal timing",
            "Store rollout effort",
            "Integration with POS",
            "Staff training",
            "ROI timeline",
            "Budget approval",
        ),
        "technical_terms": (
            "POS",
            "ERP",
            "Omnichannel",
            "Inventory management",
            "Loyalty program",
            "eCommerce platform",
        ),
    },
    DEFAULT_INDUSTRY: {
        "topics": ("ROI", "Implementation", "Integration", "Training", "Support", "Customization"),
        "objections": (
            "Budget",
            "Timeline",
            "Adoption",
            "Integration",
            "ROI validation",
            "Support",
        ),
        "technical_terms": (
            "API",
            "Integration",
            "Implementation",
            "Configuration",
            "Customization",
            "Training",
        ),
    },
}

INDUSTRY_STRATEGIES: Dict[str, IndustryStrategy] = {
    name: IndustryStrategy(name=name, **fields) for name, fields in _STRATEGY_DATA.items()
}


def normalize_industry(name: Optional[str]) -> str:
    return " ".join((name or "").strip().lower().replace("_", " ").split())


def get_industry_strategy(
    industry: Optional[str], table: Optional[Mapping[str, IndustryStrategy]] = None
) -> IndustryStrategy:
    """
    Resolve an industry name to a strategy.

    Exact normalized match first, then a substring match in either direction,
    else the default strategy.
    """
    table = table if table is not None else INDUSTRY_STRATEGIES
    key = normalize_industry(industry)
    if key and key in table:
        return table[key]
    if key:
        for name, strategy in table.items():
            if name == DEFAULT_INDUSTRY:
                continue
            if name in key or key in name:
                return strategy
    return table[DEFAULT_INDUSTRY]


def resolve_industry(entity: Entity, research: Optional[ResearchRecord]) -> Optional[str]:
    """Industry from enrichment data when available, else the roster value."""
    if research is not None:
        enrichment = research.data.get("enrichment") or {}
        company = enrichment.get("companyData") if isinstance(enrichment, dict) else None
        if isinstance(company, dict) and company.get("industry"):
            return str(company["industry"])
    return entity.industry

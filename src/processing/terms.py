"""Term data for RFQ relevance scoring.

All terms are lowercase; matching is plain substring search over lowercased
text, so "quote" also matches inside "quoted" or "quotes".
"""

from src.processing.types import BonusRule, BonusScope, Category, CategoryRule, TermModel

# Phrases that only ever appear in an explicit request for a quotation.
AUTO_ACCEPT_PHRASES: tuple[str, ...] = (
    "rfq",
    "request for quotation",
    "urgent rfq",
    "quotation request",
    "need quotation",
    "require quotation",
    "please provide quotation",
    "need quote",
    "require quote",
    "please provide quote",
)

STRONG_INDICATORS: tuple[str, ...] = (
    "quotation",
    "quote",
    "tender",
    "proposal request",
    "bid request",
    "estimate request",
    "price estimate",
    "cost estimate",
    "please provide",
    "looking for",
    "need by",
    "quotes by",
    "deadline",
    "asap",
    "urgent",
    "budget",
    "around €",
    "approximately €",
    "facilities manager",
    "facility manager",
    "project manager",
)

DOMAIN_TERMS: tuple[str, ...] = (
    "hvac",
    "air conditioning",
    "heating",
    "cooling",
    "ventilation",
    "mechanical systems",
    "electrical systems",
    "plumbing",
    "mep",
    "refrigeration",
    "fan coil",
    "air handling",
    "air handler",
    "chiller",
    "boiler",
    "heat pump",
    "ductwork",
    "building services",
    "mechanical equipment",
    "cassette unit",
    "server room cooling",
    "precision cooling",
    "zone control",
    "temperature control",
    "humidity control",
    "fresh air",
    "energy efficient",
)

CONTEXT_TERMS: tuple[str, ...] = (
    "facility",
    "facilities",
    "building",
    "office building",
    "commercial building",
    "plant",
    "factory",
    "manufacturing",
    "industrial",
    "warehouse",
    "office",
    "commercial",
    "business district",
    "project",
    "installation",
    "construction",
    "renovation",
    "retrofit",
    "upgrade",
    "replacement",
    "new system",
    "modern system",
)

DEFAULT_TERM_MODEL = TermModel(
    auto_accept=AUTO_ACCEPT_PHRASES,
    categories={
        Category.STRONG: CategoryRule(terms=STRONG_INDICATORS, tiers=((2, 3), (1, 2))),
        Category.DOMAIN: CategoryRule(terms=DOMAIN_TERMS, tiers=((2, 2), (1, 1))),
        Category.CONTEXT: CategoryRule(terms=CONTEXT_TERMS, tiers=((2, 2), (1, 1))),
    },
    bonuses=(
        BonusRule("RFQ in subject", ("rfq", "quotation", "quote"), 2, BonusScope.SUBJECT),
        BonusRule("Request language", ("please provide", "need quote", "looking for"), 1),
        BonusRule("Budget mentioned", ("budget", "€", "$"), 1),
        BonusRule("Urgency indicators", ("deadline", "asap", "urgent"), 1),
    ),
    threshold=3,
)

"""
Prompt templates for the two extraction phases.

TAXONOMY_PROMPT    — classifies the whole corpus into bid-qualification
                     requirement categories (phase 1).
CATEGORY_PROMPTS   — curated focus instructions per well-known category
                     (phase 2). Anything not listed falls back to
                     DEFAULT_CATEGORY_FOCUS.

Experience and Personnel are disjoint: Experience is the organization's
track record, Personnel is individual / team qualifications. A requirement
belongs to exactly one of them. Both templates state the rule so the model
never fills one category with the other's requirements.
"""

from __future__ import annotations

EXPERIENCE_PERSONNEL_RULE = (
    "Experience means the ORGANIZATION's track record (years in business, "
    "completed similar projects, project values, client references). "
    "Personnel means INDIVIDUAL or TEAM qualifications (key roles, years of "
    "experience of a named role, staff certifications, headcount). "
    "Never put an individual's experience under Experience and never put "
    "the company's track record under Personnel."
)

TAXONOMY_PROMPT = """You are a senior BD (Business Development) manager reviewing a tender before a GO/NO-GO decision.

Identify the categories of BID-QUALIFICATION requirements present in the documents below.

A bid-qualification requirement is something the BIDDING ORGANIZATION must have, prove or provide in order to be eligible to bid or to win: turnover, bid security, past experience, key staff, certifications, licences, insurance cover, legal standing and similar.

Do NOT return project-deliverable categories — the work, goods or services the winning contractor will deliver after award (scope of work, technical specifications of the deliverables, project schedule, milestones). Those are not qualification requirements.

Rules:
- Return short category labels, one or two words each, in Title Case (e.g. "Financial", "Experience", "Personnel", "Compliance", "Technical", "Legal", "Insurance").
- Only return a category if the documents contain at least one qualifying requirement for it.
- Do not return duplicates or synonyms of a category already listed.
- {experience_personnel_rule}

Documents to analyze:
{corpus}"""

_CATEGORY_HEADER = """You are a senior BD (Business Development) manager preparing a GO/NO-GO qualification checklist.

Extract ONLY the "{category}" bid-qualification requirements from the documents below — things the bidding organization must have or provide to be eligible. Ignore project deliverables and every other category.

Focus on:
{focus}

For each requirement:
- type: exactly "{category}"
- title: short, clear requirement name
- priority: Critical (mandatory / disqualifying), High (strongly weighted), Medium (scored or preferred), Low (minor)
- description: one or two lines with the specific numbers, thresholds and document references

If the documents contain no "{category}" requirements, return an empty list.

Documents to analyze:
{corpus}"""

CATEGORY_PROMPTS: dict[str, str] = {
    "Financial": """- Minimum annual turnover and the years it is averaged over
- Net worth, solvency and liquidity ratios
- Bid security / EMD amount and form
- Performance bank guarantee and retention requirements
- Audited financial statements to be submitted""",
    "Experience": f"""- Years in business required
- Number and value of similar completed projects
- Sector or client-type experience (government, utilities, ...)
- Completion certificates and client references
- {EXPERIENCE_PERSONNEL_RULE}""",
    "Personnel": f"""- Key roles that must be filled (e.g. Project Manager, Site Engineer)
- Minimum qualifications and years of experience per role
- Professional certifications required for staff
- Minimum team size or technical headcount
- {EXPERIENCE_PERSONNEL_RULE}""",
    "Technical": """- Core technical competencies the bidder must demonstrate
- Mandatory equipment, plant or tooling owned or leased
- Proprietary methods, technologies or OEM authorizations
- Technical proposal content the bidder must submit""",
    "Compliance": """- ISO and other management-system certifications
- Industry licences and regulatory registrations
- Tax clearance, GST / VAT registration
- Declarations, affidavits and blacklisting undertakings""",
    "Legal": """- Legal form and company registration
- Power of attorney and authorized signatory documents
- Joint venture or consortium agreements
- Litigation history and conflict of interest declarations""",
    "Operational": """- Operational capacity (production, service or maintenance capacity)
- Local offices, service centres or warehouses required
- Response and mobilization times the bidder must commit to""",
    "Quality": """- Quality management system requirements
- Quality assurance plans to be submitted with the bid
- Testing, inspection and third-party audit obligations""",
    "Environmental": """- Environmental management certifications (e.g. ISO 14001)
- Environmental clearances and permits the bidder must hold
- Environmental policy or impact documents to be submitted""",
    "Safety": """- Occupational health and safety certifications (e.g. ISO 45001)
- Safety record thresholds (incident rates, past violations)
- Safety plans and safety officers required at bid stage""",
    "Insurance": """- Professional indemnity, public liability and workmen's compensation cover
- Minimum insured amounts and validity periods
- Proof of insurance to be submitted with the bid""",
    "Geographic": """- Registration or presence in a specific country, state or region
- Local office or local partner requirements
- Restrictions on the bidder's country of origin""",
    "Partnership": """- Joint venture and consortium eligibility rules
- Lead partner share and responsibilities
- Subcontracting limits and approved subcontractor requirements""",
    "Security": """- Security clearances for the organization or its staff
- Information security certifications (e.g. ISO 27001)
- Data protection and confidentiality undertakings""",
    "Infrastructure": """- Facilities, plant or premises the bidder must own or lease
- IT infrastructure or data centre requirements
- Testing laboratories or workshops""",
    "Training": """- Training capability the bidder must demonstrate
- Certified trainers or training facilities
- Training plans to be submitted with the bid""",
    "Communication": """- Reporting and communication obligations at bid stage
- Language requirements for documents and staff
- Single point of contact and escalation structure""",
    "Sustainability": """- Sustainability, ESG or CSR policies and ratings
- Local content or local employment commitments
- Energy efficiency or carbon reporting requirements""",
}

DEFAULT_CATEGORY_FOCUS = """- Extract everything related to {category} that the bidder must have, prove or provide
- Include thresholds, certificates, documents and declarations for {category}"""

_LOOKUP = {name.lower(): name for name in CATEGORY_PROMPTS}


def curated_category(category: str) -> str | None:
    """Registry key for a category label, matched case-insensitively."""
    return _LOOKUP.get(category.strip().lower())


def build_taxonomy_prompt(corpus: str) -> str:
    return TAXONOMY_PROMPT.format(
        experience_personnel_rule=EXPERIENCE_PERSONNEL_RULE,
        corpus=corpus,
    )


def build_category_prompt(category: str, corpus: str) -> str:
    """Category-specific extraction prompt; unknown categories use the default focus."""
    key = curated_category(category)
    if key is not None:
        focus = CATEGORY_PROMPTS[key]
    else:
        focus = DEFAULT_CATEGORY_FOCUS.format(category=category)
    return _CATEGORY_HEADER.format(category=category, focus=focus, corpus=corpus)

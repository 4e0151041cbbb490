"""Built-in tier-1 intent signals and the default capability routing map."""

from __future__ import annotations

from cadence.types import CapabilityTag, IntentSignal

CONFIDENCE_THRESHOLD = 0.75
KEYWORD_CONFIDENCE_BOOST = 0.05
FALLBACK_CONFIDENCE = 0.5
DEFAULT_AGENT_ID = "default"

DEFAULT_CAPABILITY_MAP: dict[CapabilityTag, str] = {
    CapabilityTag.CODE_REVIEW: "senior-engineer",
    CapabilityTag.DEBUG: "debugger",
    CapabilityTag.REFACTOR: "senior-engineer",
    CapabilityTag.ARCHITECTURE_ANALYSIS: "architect",
    CapabilityTag.IMPLEMENTATION: "senior-engineer",
    CapabilityTag.TEST_STRATEGY: "qe-lead",
    CapabilityTag.TEST_SCENARIOS: "qe-lead",
    CapabilityTag.TEST_EXECUTION: "test-runner",
    CapabilityTag.ORCHESTRATE: "crew-lead",
    CapabilityTag.PHASE_ROUTING: "crew-lead",
    CapabilityTag.PROGRESS_REPORT: "delivery-manager",
    CapabilityTag.MEMORY_STORE: "memory-keeper",
    CapabilityTag.MEMORY_RECALL: "memory-keeper",
    CapabilityTag.CONTEXT_ASSEMBLY: "memory-keeper",
    CapabilityTag.SECURITY_SCAN: "security-engineer",
    CapabilityTag.COMPLIANCE_CHECK: "compliance-officer",
    CapabilityTag.CICD_PIPELINE: "platform-engineer",
    CapabilityTag.REQUIREMENTS: "product-manager",
    CapabilityTag.BRAINSTORM: "facilitator",
    CapabilityTag.UX_REVIEW: "ux-designer",
    CapabilityTag.ACCEPTANCE_CRITERIA: "product-manager",
    CapabilityTag.DATA_ANALYSIS: "data-analyst",
    CapabilityTag.PIPELINE_DESIGN: "data-engineer",
    CapabilityTag.ML_GUIDANCE: "ml-engineer",
    CapabilityTag.CODE_PATCH: "senior-engineer",
    CapabilityTag.CROSS_LANGUAGE_PROPAGATION: "senior-engineer",
    CapabilityTag.GENERAL: DEFAULT_AGENT_ID,
}


def _signal(pattern: str, capability: CapabilityTag, confidence: float, *keywords: str) -> IntentSignal:
    return IntentSignal(pattern=pattern, capability=capability, confidence=confidence, keywords=keywords)


BUILTIN_SIGNALS: tuple[IntentSignal, ...] = (
    _signal(
        r"review|code.review|look.at.*code|check.*code",
        CapabilityTag.CODE_REVIEW,
        0.85,
        "review",
        "code review",
        "look at my code",
        "check my code",
    ),
    _signal(
        r"debug|fix.*bug|why.*broken|error.*trace|stack.?trace",
        CapabilityTag.DEBUG,
        0.85,
        "debug",
        "fix bug",
        "broken",
        "error",
        "traceback",
    ),
    _signal(
        r"refactor|clean.?up|restructure|reorganize.*code",
        CapabilityTag.REFACTOR,
        0.80,
        "refactor",
        "clean up",
        "restructure",
        "reorganize",
    ),
    _signal(
        r"architect|design.*system|system.*design|high.*level.*design",
        CapabilityTag.ARCHITECTURE_ANALYSIS,
        0.82,
        "architecture",
        "system design",
        "high level design",
    ),
    _signal(
        r"implement|build|create|write.*code|add.*feature",
        CapabilityTag.IMPLEMENTATION,
        0.75,
        "implement",
        "build",
        "create feature",
        "write code",
    ),
    _signal(
        r"test.*strateg|testing.*plan|qa.*plan|test.*approach",
        CapabilityTag.TEST_STRATEGY,
        0.85,
        "test strategy",
        "testing plan",
        "qa plan",
        "test approach",
    ),
    _signal(
        r"test.*scenario|scenario.*generate|acceptance.*test|test.*case",
        CapabilityTag.TEST_SCENARIOS,
        0.85,
        "test scenarios",
        "acceptance tests",
        "test cases",
    ),
    _signal(
        r"run.*test|execute.*test|test.*run",
        CapabilityTag.TEST_EXECUTION,
        0.85,
        "run tests",
        "execute tests",
        "run test suite",
    ),
    _signal(
        r"orchestrat|coordinate.*agent|multi.*agent|crew",
        CapabilityTag.ORCHESTRATE,
        0.80,
        "orchestrate",
        "coordinate agents",
        "multi-agent",
        "crew",
    ),
    _signal(
        r"phase.*rout|next.*phase|which.*phase|advance.*phase",
        CapabilityTag.PHASE_ROUTING,
        0.80,
        "phase routing",
        "next phase",
        "advance phase",
    ),
    _signal(
        r"progress|status.*report|delivery.*status|how.*far",
        CapabilityTag.PROGRESS_REPORT,
        0.78,
        "progress",
        "status report",
        "delivery status",
    ),
    _signal(
        r"remember|store.*memory|save.*context|memorize",
        CapabilityTag.MEMORY_STORE,
        0.85,
        "remember",
        "store memory",
        "save context",
        "memorize",
    ),
    _signal(
        r"recall|what.*remember|retrieve.*memory|look.*up.*memory",
        CapabilityTag.MEMORY_RECALL,
        0.85,
        "recall",
        "what do you remember",
        "retrieve memory",
    ),
    _signal(
        r"security|vulnerability|pentest|audit.*security",
        CapabilityTag.SECURITY_SCAN,
        0.82,
        "security",
        "vulnerability",
        "pentest",
        "security audit",
    ),
    _signal(
        r"compliance|regulation|gdpr|sox|hipaa|pci",
        CapabilityTag.COMPLIANCE_CHECK,
        0.85,
        "compliance",
        "regulation",
        "gdpr",
        "sox",
        "hipaa",
    ),
    _signal(
        r"cicd|pipeline|ci.*cd|github.*action|jenkins|deploy",
        CapabilityTag.CICD_PIPELINE,
        0.82,
        "cicd",
        "pipeline",
        "github actions",
        "jenkins",
        "deployment",
    ),
    _signal(
        r"require|specification|user.*stor|elicit|gather.*requirement",
        CapabilityTag.REQUIREMENTS,
        0.80,
        "requirements",
        "specification",
        "user story",
        "elicit",
    ),
    _signal(
        r"brainstorm|ideate|ideas|jam.*session|creative",
        CapabilityTag.BRAINSTORM,
        0.80,
        "brainstorm",
        "ideate",
        "ideas",
        "jam session",
    ),
    _signal(
        r"ux|user.*experience|design.*review|ui.*review|usability",
        CapabilityTag.UX_REVIEW,
        0.80,
        "ux",
        "user experience",
        "ui review",
        "usability",
    ),
    _signal(
        r"acceptance.*criteria|done.*condition|definition.*of.*done",
        CapabilityTag.ACCEPTANCE_CRITERIA,
        0.85,
        "acceptance criteria",
        "done condition",
        "definition of done",
    ),
    _signal(
        r"data.*analysis|analyze.*data|insights|dashboard|metrics",
        CapabilityTag.DATA_ANALYSIS,
        0.80,
        "data analysis",
        "analyze data",
        "insights",
        "metrics",
    ),
    _signal(
        r"data.*pipeline|etl|data.*engineering|data.*flow",
        CapabilityTag.PIPELINE_DESIGN,
        0.82,
        "data pipeline",
        "etl",
        "data engineering",
    ),
    _signal(
        r"machine.*learning|ml|model.*train|neural|ai.*model",
        CapabilityTag.ML_GUIDANCE,
        0.82,
        "machine learning",
        "ml model",
        "training",
        "neural network",
    ),
    _signal(
        r"patch|hotfix|quick.*fix|apply.*fix",
        CapabilityTag.CODE_PATCH,
        0.78,
        "patch",
        "hotfix",
        "quick fix",
    ),
    _signal(
        r"propagate|cross.*language|port.*code|translate.*code",
        CapabilityTag.CROSS_LANGUAGE_PROPAGATION,
        0.80,
        "propagate",
        "cross language",
        "port code",
        "translate code",
    ),
)

"""Fixed constants that are not worth exposing as settings."""

STOPWORDS = frozenset(
    {
        "this", "that", "these", "those", "with", "from", "have", "been",
        "will", "would", "could", "should", "must", "shall", "can", "may",
        "the", "and", "for", "are", "but", "not", "you", "all",
        "about", "also", "into", "than", "them", "then", "there", "when",
        "where", "which", "while", "your",
    }
)

MIN_KEYWORD_LENGTH = 4

TIKTOKEN_ENCODING = "cl100k_base"

JSON_ONLY_SUFFIX = (
    "\n\nIMPORTANT: You must respond with valid JSON only. Be extremely precise "
    "and follow the exact format specified. Do not add any explanatory text "
    "outside the JSON structure."
)

# Terms that never count as "new concepts" in a generated scenario
ALLOWED_TESTING_TERMS = frozenset(
    {
        "login", "navigate", "click", "enter", "submit", "verify", "check",
        "open", "close", "select", "input", "output", "error", "message",
        "button", "field", "form", "page", "screen", "display", "show",
        "valid", "invalid", "success", "fail", "test", "user", "system",
    }
)

PLACEHOLDER_PATTERNS = ("todo", "tbd", "[insert", "...", "xxx")

VALID_TEST_TYPES = ("functional", "regression", "smoke")
VALID_CLASSIFICATIONS = ("happy_path", "negative", "edge_case")
VALID_PRIORITIES = ("critical", "high", "medium", "low")

SCENARIO_TAG_GENERATED = "ai-generated"
SCENARIO_TAG_MODULE = "module-level"
SCENARIO_TAG_PROJECT = "project-level"

# A test step without any of these is flagged as not actionable
ACTION_VERBS = (
    "click", "enter", "select", "open", "close", "navigate", "verify", "check",
    "submit", "input", "fill", "choose", "press", "tap", "type", "view",
    "delete", "create", "update", "search", "filter", "sort", "download",
    "upload", "save", "cancel", "confirm", "login", "logout", "sign",
    "validate", "test", "ensure", "wait", "scroll", "hover", "drag", "drop",
)

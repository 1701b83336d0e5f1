# --- Pagination ---

DEFAULT_SEARCH_LIMIT = 20
HYBRID_OVERFETCH_FACTOR = 2  # each backend asks for 2x limit so fusion has room before truncation


# --- Fusion defaults ---

FUSION_BASIC_WEIGHT = 0.6
FUSION_SEMANTIC_WEIGHT = 0.4
FUSION_DUPLICATE_THRESHOLD = 0.8
FUSION_MAX_RESULTS = 50

HYBRID_SOURCE_BONUS = 1.1  # multiplier on the mean weight for corroborated entries

# Person boosts: up to +20% for recent contact, linear decay to zero over a year
RECENCY_MAX_BOOST = 0.2
RECENCY_WINDOW_DAYS = 365
CURRENT_ROLE_BOOST = 1.1


# --- Full-scan fallback scoring ---

FULL_SCAN_NAME_SCORE = 0.5
FULL_SCAN_ORGANIZATION_SCORE = 0.3
FULL_SCAN_TITLE_SCORE = 0.2


# --- Classification confidences ---

HYBRID_CONFIDENCE = 0.75
SEMANTIC_FALLBACK_CONFIDENCE = 0.7
COMPOUND_DEFAULT_CONFIDENCE = 0.85


# --- Vector search ---

MIN_SIMILARITY = 0.01
SIMILAR_INTERACTION_THRESHOLD = 0.6
SIMILAR_INTERACTION_LIMIT = 5
EMBEDDING_TEXT_LIMIT = 8000
SNIPPET_DISPLAY_LIMIT = 500

# Embedding models (litellm ids): model -> dimension
EMBEDDING_MODELS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    "ollama/nomic-embed-text": 768,
}


# --- Backends ---

BACKEND_TIMEOUT = 10.0  # seconds per repository / vector call

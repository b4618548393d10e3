"""Configuration constants for design-context."""

import os
from pathlib import Path

# Figma personal access token. The FIGMA_TOKEN environment variable wins,
# otherwise the first file found is used.
FIGMA_TOKEN_ENV = "FIGMA_TOKEN"
FIGMA_TOKEN_FILES: list[Path] = [
    Path("~/.config/figma-token.txt").expanduser(),
    Path("~/.config/secret/figma-token.txt").expanduser(),
    Path(f"/run/user/{os.getuid()}/figma-token"),
]

FIGMA_API_BASE = "https://api.figma.com/v1"

# Cache directory for raw API responses, used only when --cache is passed.
API_CACHE_PREFIX: str = "/tmp/design-context-cache/cache-"

# Directory holding the context database. DESIGN_CONTEXT_DIR overrides it.
DATA_DIR_ENV = "DESIGN_CONTEXT_DIR"
DEFAULT_DATA_DIR = Path("~/.local/share/design-context").expanduser()
DATABASE_NAME = "contexts.db"

# Tree walking.
MAX_DEPTH = 20

# Local cache lifetime in front of the backing store.
CACHE_TTL_SECONDS = 5 * 60

# Documents older than this are re-extracted by get_enriched_context.
STALE_AFTER_SECONDS = 60 * 60

# Per-call timeout for document source, backing store and screenshot calls.
IO_TIMEOUT_SECONDS = 30.0

# Batch ingestion.
DEFAULT_MAX_CONCURRENT = 3

# Confidence assigned to node-scoped documents written during a walk.
NODE_CONTEXT_CONFIDENCE = 0.8

# Confidence assigned to screenshot descriptors.
SCREENSHOT_CONFIDENCE = 0.7


def resolve_data_dir() -> Path:
    """Return the directory holding the context database."""
    env_dir = os.environ.get(DATA_DIR_ENV)
    return Path(env_dir).expanduser() if env_dir else DEFAULT_DATA_DIR


def resolve_db_path(data_dir: Path | None = None) -> Path:
    """Return the path to the context database inside data_dir."""
    return (data_dir or resolve_data_dir()) / DATABASE_NAME

import logging
from pathlib import Path
from typing import List, Optional

from pydantic import TypeAdapter

from site_search.schemas.search import SearchableItem

logger = logging.getLogger(__name__)

DEFAULT_CORPUS_PATH = Path(__file__).resolve().parent.parent / "data" / "corpus.json"

_corpus_adapter = TypeAdapter(List[SearchableItem])


def load_corpus(path: Optional[str] = None) -> List[SearchableItem]:
    """Parse a JSON array of searchable items, falling back to the bundled corpus."""
    corpus_path = Path(path) if path else DEFAULT_CORPUS_PATH
    items = _corpus_adapter.validate_json(corpus_path.read_bytes())
    logger.info("Loaded corpus: path=%s, items=%d", corpus_path, len(items))
    return items

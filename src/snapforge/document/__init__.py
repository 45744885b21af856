"""Document indexing and exploration tools."""

from snapforge.document.index import DocumentIndex
from snapforge.document.tools import ExplorationToolProvider

__all__ = ["DocumentIndex", "ExplorationToolProvider"]

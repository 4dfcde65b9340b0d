"""
Banking Knowledge Base

Document store the handlers consult for regulatory and policy context.
Handlers depend only on the KnowledgeBase interface; the shipped store ranks
documents by keyword overlap.
"""

import re
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from importlib import resources
from typing import Dict, Any, List, Optional

import yaml

logger = logging.getLogger(__name__)

_WORD = re.compile(r"[a-z0-9$]+")

# Words that carry no signal for ranking
_STOPWORDS = frozenset({
    "a", "an", "and", "are", "as", "at", "be", "by", "for", "from", "in", "is",
    "it", "of", "on", "or", "that", "the", "to", "with", "what", "how", "my",
})


@dataclass
class KnowledgeDocument:
    document_id: str
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SearchHit:
    document: KnowledgeDocument
    score: float
    snippet: str


def _terms(text: str) -> set:
    return {w for w in _WORD.findall(text.lower()) if w not in _STOPWORDS}


def term_similarity(first: str, second: str) -> float:
    """Jaccard overlap of the two texts' terms, 0.0 when either has none."""
    a, b = _terms(first), _terms(second)
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def extract_snippet(content: str, query: str, radius: int = 100) -> str:
    """Cut a window of ``content`` around the first occurrence of ``query``."""
    if not content:
        return ""

    index = content.lower().find(query.lower())
    if index == -1:
        return content[:200] + "..." if len(content) > 200 else content

    start = max(0, index - radius)
    end = min(len(content), index + len(query) + radius)
    snippet = content[start:end]

    if start > 0:
        snippet = "..." + snippet
    if end < len(content):
        snippet = snippet + "..."
    return snippet


class KnowledgeBase(ABC):
    """Fixed contract every document store must satisfy."""

    @abstractmethod
    def add(self, document_id: str, content: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        """Index or replace a document."""

    @abstractmethod
    def delete(self, document_id: str) -> bool:
        """Remove a document; False if it did not exist."""

    @abstractmethod
    def search(
        self,
        query: str,
        top_k: int = 5,
        threshold: float = 0.0,
        document_type: Optional[str] = None,
    ) -> List[SearchHit]:
        """Best matches first, at most ``top_k``, each scoring at least ``threshold``."""

    def context_for(self, query: str, top_k: int = 3) -> str:
        """Render the best matches as prompt context."""
        hits = self.search(query, top_k=top_k)
        if not hits:
            return "No relevant banking knowledge found."

        sections = [hit.document.content.strip() for hit in hits]
        return "Relevant Banking Knowledge:\n\n" + "\n\n".join(sections)


class InMemoryKnowledgeBase(KnowledgeBase):
    """Thread-safe in-process store ranked by query term overlap."""

    def __init__(self):
        self._documents: Dict[str, KnowledgeDocument] = {}
        self._terms: Dict[str, set] = {}
        self._lock = threading.Lock()

    def add(self, document_id: str, content: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        document = KnowledgeDocument(document_id, content, dict(metadata or {}))
        terms = _terms(content)
        with self._lock:
            self._documents[document_id] = document
            self._terms[document_id] = terms
        logger.debug(f"Indexed document {document_id} ({len(terms)} terms)")

    def delete(self, document_id: str) -> bool:
        with self._lock:
            self._terms.pop(document_id, None)
            return self._documents.pop(document_id, None) is not None

    def get(self, document_id: str) -> Optional[KnowledgeDocument]:
        with self._lock:
            return self._documents.get(document_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._documents)

    def search(
        self,
        query: str,
        top_k: int = 5,
        threshold: float = 0.0,
        document_type: Optional[str] = None,
    ) -> List[SearchHit]:
        query_terms = _terms(query)
        if not query_terms:
            return []

        with self._lock:
            candidates = [(self._documents[doc_id], terms) for doc_id, terms in self._terms.items()]

        hits = []
        for document, terms in candidates:
            if document_type and str(document.metadata.get("type", "")).lower() != document_type.lower():
                continue
            score = len(query_terms & terms) / len(query_terms)
            if score > 0 and score >= threshold:
                hits.append(SearchHit(document, round(score, 4), extract_snippet(document.content, query)))

        hits.sort(key=lambda hit: (-hit.score, hit.document.document_id))
        return hits[:top_k]

    def load_defaults(self) -> int:
        """Load the bundled banking policy documents. Returns the number loaded."""
        raw = resources.files("banking_gateway.services").joinpath("banking_knowledge.yaml").read_text(encoding="utf-8")
        entries = yaml.safe_load(raw) or []

        for entry in entries:
            self.add(entry["id"], entry["content"], entry.get("metadata"))

        logger.info(f"Loaded {len(entries)} banking knowledge documents")
        return len(entries)

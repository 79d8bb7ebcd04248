"""
Pre-processing of user messages before they reach the agent.

Three optional steps, applied in this order:

1. Directive rules: keyword-triggered instructions prepended to the message.
2. Retrieval context: relevant document excerpts prepended from a retriever.
3. Inline document: a client-supplied document, used only when retrieval
   added nothing.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)


@dataclass
class DirectiveRule:
    """Prepend ``directive`` when every keyword occurs in the message."""

    keywords: tuple[str, ...]
    directive: str

    def matches(self, lowered_message: str) -> bool:
        return bool(self.keywords) and all(k in lowered_message for k in self.keywords)


class DirectivePreprocessor:
    """Text in, text out: prepends the directives of every matching rule."""

    def __init__(self, rules: list[DirectiveRule] | None = None):
        self.rules = rules or []

    @classmethod
    def from_file(cls, path: Path | None) -> "DirectivePreprocessor":
        """
        Load rules from YAML::

            rules:
              - keywords: ["google chat"]
                directive: "You MUST use the google-chat-poster skill..."
        """
        if path is None or not path.exists():
            return cls()
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        rules = []
        for entry in data.get("rules", []):
            keywords = entry.get("keywords") or []
            if isinstance(keywords, str):
                keywords = [keywords]
            directive = str(entry.get("directive", "")).strip()
            if not directive:
                continue
            rules.append(
                DirectiveRule(
                    keywords=tuple(str(k).lower() for k in keywords),
                    directive=directive,
                )
            )
        return cls(rules)

    def __call__(self, message: str) -> str:
        lowered = message.lower()
        directives = [rule.directive for rule in self.rules if rule.matches(lowered)]
        if not directives:
            return message
        prefix = "".join(f"{d}\n\n" for d in directives)
        logger.info("Directives prepended for message (%d chars added)", len(prefix))
        return prefix + message


@dataclass
class Excerpt:
    """A ranked text excerpt from the document store."""

    content: str
    filename: str | None = None
    score: float = 0.0


class DocumentRetriever(ABC):
    """Source of context excerpts. Purely advisory."""

    @abstractmethod
    def is_available(self) -> bool:
        ...

    @abstractmethod
    def has_documents(self) -> bool:
        ...

    @abstractmethod
    def retrieve(self, query: str, limit: int) -> list[Excerpt]:
        ...


class NullRetriever(DocumentRetriever):
    """Retriever used when no document store is configured."""

    def is_available(self) -> bool:
        return False

    def has_documents(self) -> bool:
        return False

    def retrieve(self, query: str, limit: int) -> list[Excerpt]:
        return []


def format_excerpts(excerpts: list[Excerpt], question: str) -> str:
    parts = [
        "Use the following document excerpts to help answer the question. "
        "If the excerpts do not contain relevant information, say so.\n\n"
    ]
    for i, excerpt in enumerate(excerpts, 1):
        source = f" (from {excerpt.filename})" if excerpt.filename else ""
        parts.append(f"--- Excerpt {i}{source} ---\n{excerpt.content}\n\n")
    parts.append(f"---\n\nUser question: {question}")
    return "".join(parts)


def prepend_retrieval_context(
    retriever: DocumentRetriever, message: str, limit: int = 5
) -> str:
    """Prepend relevant excerpts, or return the message unchanged."""
    if not retriever.is_available() or not retriever.has_documents():
        return message
    try:
        excerpts = retriever.retrieve(message, limit)
    except Exception as e:
        logger.warning("Retrieval failed, falling back to plain message: %s", e)
        return message
    if not excerpts:
        return message
    result = format_excerpts(excerpts, message)
    logger.info("Retrieval: prepended %d excerpts as context (%d chars)", len(excerpts), len(result))
    return result


def wrap_inline_document(document: str, question: str) -> str:
    return (
        "The user has provided the following document. "
        "Use it to answer the question that follows.\n\n"
        f"--- DOCUMENT START ---\n{document.strip()}\n--- DOCUMENT END ---\n\n"
        f"User question: {question}"
    )


class MessagePreparer:
    """Builds the effective message sent to the agent."""

    def __init__(
        self,
        directives: DirectivePreprocessor | None = None,
        retriever: DocumentRetriever | None = None,
        retrieval_limit: int = 5,
    ):
        self.directives = directives or DirectivePreprocessor()
        self.retriever = retriever or NullRetriever()
        self.retrieval_limit = retrieval_limit

    def prepare(self, message: str, document_context: str | None = None) -> str:
        effective = self.directives(message)
        before_retrieval = effective
        effective = prepend_retrieval_context(self.retriever, effective, self.retrieval_limit)

        if effective == before_retrieval and document_context and document_context.strip():
            logger.info(
                "Using inline document context (%d chars) for session message",
                len(document_context),
            )
            effective = wrap_inline_document(document_context, message)
        return effective

"""Document and search models."""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

import numpy as np
from pydantic import BaseModel, Field, field_validator


class Difficulty(str, Enum):
    """Closed set of document difficulty levels."""
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class CodeCategory(str, Enum):
    """Category assigned to an extracted code block."""
    STATE_MANAGEMENT = "state_management"
    EFFECTS = "effects"
    COMPONENTS = "components"
    EVENTS = "events"
    ROUTING = "routing"
    SECURITY = "security"
    GENERAL = "general"


@dataclass
class CodeExample:
    """A fenced code block extracted from a document."""
    language: str
    code: str
    description: str = ""
    category: CodeCategory = CodeCategory.GENERAL
    runes: List[str] = field(default_factory=list)
    functions: List[str] = field(default_factory=list)
    components: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "language": self.language,
            "code": self.code,
            "description": self.description,
            "category": self.category.value,
            "runes": list(self.runes),
            "functions": list(self.functions),
            "components": list(self.components),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CodeExample":
        return cls(
            language=data.get("language") or "",
            code=data.get("code") or "",
            description=data.get("description") or "",
            category=CodeCategory(data.get("category") or CodeCategory.GENERAL.value),
            runes=list(data.get("runes") or []),
            functions=list(data.get("functions") or []),
            components=list(data.get("components") or []),
        )


@dataclass
class Document:
    """A documentation entry as stored and returned by the search engine."""
    id: str
    content: str
    concept: str = ""
    related_concepts: List[str] = field(default_factory=list)
    code_examples: List[CodeExample] = field(default_factory=list)
    difficulty: Difficulty = Difficulty.INTERMEDIATE
    tags: List[str] = field(default_factory=list)
    embedding: Optional[np.ndarray] = None
    last_updated: Optional[datetime] = None

    def to_dict(self, include_embedding: bool = False) -> Dict[str, Any]:
        """Convert to a JSON-safe dictionary."""
        data = {
            "id": self.id,
            "content": self.content,
            "concept": self.concept,
            "related_concepts": list(self.related_concepts),
            "code_examples": [ex.to_dict() for ex in self.code_examples],
            "difficulty": self.difficulty.value,
            "tags": list(self.tags),
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
        }
        if include_embedding:
            data["embedding"] = self.embedding.tolist() if self.embedding is not None else None
        return data


@dataclass
class SearchResult:
    """A document paired with its relevance; higher similarity is more relevant."""
    doc: Document
    similarity: float

    def to_dict(self) -> Dict[str, Any]:
        return {"doc": self.doc.to_dict(), "similarity": self.similarity}


class SearchFilters(BaseModel):
    """Structured filters; every set field must hold (AND), values within a field are OR-ed."""
    difficulty: Optional[Difficulty] = None
    tags: Optional[List[str]] = None
    concepts: Optional[List[str]] = None
    category: Optional[List[CodeCategory]] = None
    has_runes: Optional[List[str]] = None
    has_functions: Optional[List[str]] = None
    has_components: Optional[List[str]] = None

    @field_validator('category', mode='before')
    @classmethod
    def single_category_to_list(cls, v: Union[str, List[str], None]):
        if isinstance(v, (str, CodeCategory)):
            return [v]
        return v

    def is_empty(self) -> bool:
        return not any([
            self.difficulty,
            self.tags,
            self.concepts,
            self.category,
            self.has_runes,
            self.has_functions,
            self.has_components,
        ])


class SearchOptions(BaseModel):
    """Per-call search options."""
    limit: Optional[int] = Field(default=None, description="Maximum results; engine default when unset")
    filters: Optional[SearchFilters] = None

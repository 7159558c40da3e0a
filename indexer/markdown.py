"""Markdown processing for documentation files.

Extracts the metadata the search filters rely on: code blocks with their
Svelte runes, functions, components and category, a difficulty level,
tags and related concepts. YAML frontmatter, when present, overrides the
derived concept, tags, related concepts and difficulty.
"""

from __future__ import annotations
import hashlib
import logging
import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import yaml

from search.models import CodeCategory, CodeExample, Difficulty, Document

logger = logging.getLogger(__name__)

# The description lookahead does not consume, so an adjacent fence still matches
CODE_BLOCK = re.compile(r"```([\w-]+)?[^\n]*\n(.*?)```(?=\n*([^\n]*))", re.DOTALL)
HEADER = re.compile(r"^#+\s+(.+)$", re.MULTILINE)
RELATED_SECTION = re.compile(r"(?:See also|Related).*?(?=\n#|\Z)", re.IGNORECASE | re.DOTALL)
LINK_TEXT = re.compile(r"\[([^\]]*)\]")
INLINE_REF = re.compile(r"(?:see|using|with)\s+`([^`]+)`", re.IGNORECASE)
FUNCTION_DECL = re.compile(r"(?:export\s+)?(?:async\s+)?function\s+([A-Za-z_$][\w$]*)")
ARROW_FUNCTION = re.compile(r"const\s+([A-Za-z_$][\w$]*)\s*=\s*(?:async\s*)?\(")
COMPONENT_IMPORT = re.compile(r"import\s+([A-Z][\w$]*)")
COMPONENT_USAGE = re.compile(r"<([A-Z][\w$]*)")

RUNE_PATTERNS = {
    'state': re.compile(r"\$state\b"),
    'derived': re.compile(r"\$derived\b"),
    'effect': re.compile(r"\$effect\b"),
    'props': re.compile(r"\$props\b"),
    'bindable': re.compile(r"\$bindable\b"),
    'inspect': re.compile(r"\$inspect\b"),
    'host': re.compile(r"\$host\b"),
    'signal': re.compile(r"\$signal\b"),
}

# First matching category wins; order matters
CODE_CATEGORIES = {
    CodeCategory.STATE_MANAGEMENT: ['$state', '$derived', 'store', 'writable'],
    CodeCategory.EFFECTS: ['$effect', 'onmount', 'ondestroy', 'afterupdate'],
    CodeCategory.COMPONENTS: ['export function', 'export default function', '<script>', 'props'],
    CodeCategory.EVENTS: ['on:click', 'onclick', 'on:input', 'dispatch', 'createeventdispatcher'],
    CodeCategory.ROUTING: ['@sveltejs/kit', 'page', 'params', 'load'],
    CodeCategory.SECURITY: ['@sveltejs/kit/server', 'handle', 'csrf', 'headers'],
}

COMMON_CONCEPTS = ['runes', 'state', 'props', 'effects', 'snippets', 'components']
COMPLEX_MARKERS = ['recursive', 'optimization', 'advanced patterns']
PACKAGE_FILES = {'llms.txt', 'llms-full.txt', 'llms-small.txt'}


@dataclass
class ProcessedDocument:
    """Output of markdown processing for one source path."""
    path: str
    content: str
    concept: str
    code_examples: List[CodeExample] = field(default_factory=list)
    difficulty: Difficulty = Difficulty.INTERMEDIATE
    tags: List[str] = field(default_factory=list)
    related_concepts: List[str] = field(default_factory=list)

    def to_document(self, embedding: Optional[np.ndarray] = None) -> Document:
        return Document(
            id=document_id(self.path),
            content=self.content,
            concept=self.concept,
            related_concepts=list(self.related_concepts),
            code_examples=list(self.code_examples),
            difficulty=self.difficulty,
            tags=list(self.tags),
            embedding=embedding,
        )


def document_id(path: str) -> str:
    """Stable id for a source path."""
    return hashlib.sha256(path.encode()).hexdigest()[:16]


def _unique(items) -> List[str]:
    return list(dict.fromkeys(items))


def split_frontmatter(content: str) -> Tuple[Dict[str, Any], str]:
    """Split a leading YAML frontmatter block from the body.

    Unparsable frontmatter is logged and left in the body.
    """
    if not content.startswith('---'):
        return {}, content
    end = content.find('\n---', 3)
    if end == -1:
        return {}, content
    try:
        data = yaml.safe_load(content[3:end]) or {}
    except yaml.YAMLError as e:
        logger.warning(f"Ignoring invalid frontmatter: {e}")
        return {}, content
    if not isinstance(data, dict):
        return {}, content
    body = content[end + 4:].lstrip('\n')
    return data, body


def detect_runes(code: str) -> List[str]:
    return [rune for rune, pattern in RUNE_PATTERNS.items() if pattern.search(code)]


def detect_category(code: str, description: str = "") -> CodeCategory:
    combined = f"{code} {description}".lower()
    for category, markers in CODE_CATEGORIES.items():
        if any(marker in combined for marker in markers):
            return category
    return CodeCategory.GENERAL


def extract_functions(code: str) -> List[str]:
    return _unique(FUNCTION_DECL.findall(code) + ARROW_FUNCTION.findall(code))


def extract_components(code: str) -> List[str]:
    return _unique(COMPONENT_IMPORT.findall(code) + COMPONENT_USAGE.findall(code))


def extract_code_blocks(content: str) -> List[CodeExample]:
    """Extract fenced code blocks; the first non-empty line after a block is its description."""
    examples = []
    for match in CODE_BLOCK.finditer(content):
        language = (match.group(1) or "").strip()
        code = match.group(2).strip()
        description = (match.group(3) or "").strip()
        if description.startswith('```'):
            description = ""
        examples.append(CodeExample(
            language=language,
            code=code,
            description=description,
            category=detect_category(code, description),
            runes=detect_runes(code),
            functions=extract_functions(code),
            components=extract_components(code),
        ))
    return examples


def determine_difficulty(content: str, code_examples: Optional[List[CodeExample]] = None) -> Difficulty:
    lower = content.lower()
    if 'advanced' in lower or 'complex' in lower:
        return Difficulty.ADVANCED
    if 'beginner' in lower or 'basic' in lower:
        return Difficulty.BEGINNER

    if code_examples is None:
        code_examples = extract_code_blocks(content)
    if any(marker in lower for marker in COMPLEX_MARKERS) or len(code_examples) > 3:
        return Difficulty.ADVANCED
    return Difficulty.INTERMEDIATE


def extract_tags(content: str, code_examples: Optional[List[CodeExample]] = None) -> List[str]:
    tags = []

    for header in HEADER.findall(content):
        tags.extend(word for word in re.split(r"\W+", header.lower()) if len(word) > 3)

    if code_examples is None:
        code_examples = extract_code_blocks(content)
    for example in code_examples:
        if example.language:
            tags.append(example.language)
        tags.extend(example.runes)
        tags.append(example.category.value)
        tags.extend(f"component:{name}" for name in example.components)

    lower = content.lower()
    tags.extend(concept for concept in COMMON_CONCEPTS if concept in lower)
    return _unique(tags)


def extract_related_concepts(content: str) -> List[str]:
    concepts = []
    section = RELATED_SECTION.search(content)
    if section:
        concepts.extend(text.lower() for text in LINK_TEXT.findall(section.group(0)) if text)
    concepts.extend(ref.lower() for ref in INLINE_REF.findall(content))
    return _unique(concepts)


def derive_concept(path: str) -> str:
    """Concept from the path: the package directory for llms files, else the file stem."""
    posix = PurePosixPath(path)
    if posix.name in PACKAGE_FILES:
        parent = posix.parent.name
        return parent if parent and parent != 'docs' else posix.stem
    stem = re.sub(r"^\d+-", "", posix.stem)
    return stem.replace('-', ' ')


def _string_list(value: Any) -> Optional[List[str]]:
    if value is None:
        return None
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value]
    return None


def process_markdown(path: str, content: str) -> ProcessedDocument:
    """Process one documentation file.

    Args:
        path: Source path, used for the concept and the document id
        content: Raw file text, optionally starting with YAML frontmatter

    Returns:
        ProcessedDocument with the body text and extracted metadata
    """
    frontmatter, body = split_frontmatter(content)
    code_examples = extract_code_blocks(body)

    concept = frontmatter.get('concept') or derive_concept(path)
    tags = _string_list(frontmatter.get('tags')) or extract_tags(body, code_examples)
    related = _string_list(frontmatter.get('related')) or extract_related_concepts(body)

    difficulty = determine_difficulty(body, code_examples)
    if frontmatter.get('difficulty'):
        try:
            difficulty = Difficulty(str(frontmatter['difficulty']).lower())
        except ValueError:
            logger.warning(f"{path}: unknown difficulty {frontmatter['difficulty']!r}, using {difficulty.value}")

    return ProcessedDocument(
        path=path,
        content=body,
        concept=str(concept),
        code_examples=code_examples,
        difficulty=difficulty,
        tags=tags,
        related_concepts=related,
    )

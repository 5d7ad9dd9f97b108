"""
Project Inference for CodeShelf

Groups saved code by the project it appears to belong to, using indicators
found in the code itself:
- Import-source heads ('react' from "import x from 'react/dom'")
- Scoped package names ('@acme/ui')
- Package declarations (package.json "name", Java/Go/Kotlin `package`)

Zero-cost: local pattern matching only.

Usage:
    from context.project_inference import ProjectInferrer

    inferrer = ProjectInferrer()
    projects = inferrer.infer_projects(items)

    for project in projects:
        print(f"{project.name}: {len(project.item_ids)} items")
"""

import re
from dataclasses import dataclass, field
from typing import List, Dict, Optional, Set
from collections import defaultdict

from core.models import ContentItem


@dataclass
class Project:
    """Represents an inferred project grouping."""
    name: str
    item_ids: List[str] = field(default_factory=list)
    indicators: Set[str] = field(default_factory=set)
    technologies: Set[str] = field(default_factory=set)
    confidence: float = 0.0

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'item_ids': self.item_ids,
            'indicators': sorted(self.indicators),
            'technologies': sorted(self.technologies),
            'confidence': self.confidence,
        }


class ProjectInferrer:
    """
    Infer project groupings from code items.

    Signals, strongest first:
    1. Package declarations (package.json name, `package com.acme.app`)
    2. Scoped package names (@scope/name)
    3. Import-source heads
    """

    IMPORT_SOURCE_PATTERNS = [
        re.compile(r'from\s+[\'"]([^\'"]+)[\'"]'),
        re.compile(r'require\(\s*[\'"]([^\'"]+)[\'"]\s*\)'),
        re.compile(r'^\s*from\s+([A-Za-z_][\w.]*)\s+import\b', re.MULTILINE),
        re.compile(r'^\s*import\s+([A-Za-z_][\w.]*)\s*$', re.MULTILINE),
    ]

    PACKAGE_NAME_PATTERN = re.compile(r'"name":\s*"([^"]+)"')
    PACKAGE_DECLARATION_PATTERN = re.compile(r'^\s*package\s+([\w.]+)\s*;?\s*$', re.MULTILINE)
    SCOPED_PACKAGE_PATTERN = re.compile(r'(@[\w-]+/[\w.-]+)')

    # Technology stacks that suggest related projects
    TECH_STACKS = {
        'react_frontend': {'react', 'react-dom', 'next', 'vite', 'redux'},
        'vue_frontend': {'vue', 'vuex', 'nuxt', 'pinia'},
        'angular_frontend': {'@angular/core', '@angular/common', 'rxjs'},
        'python_backend': {'flask', 'django', 'fastapi', 'sqlalchemy', 'celery'},
        'node_backend': {'express', '@nestjs/common', 'koa', 'prisma'},
        'data_science': {'pandas', 'numpy', 'sklearn', 'tensorflow', 'torch'},
        'mobile': {'react-native', 'expo', '@react-navigation/native'},
    }

    def __init__(self, min_items: int = 2):
        """
        Initialize the project inferrer.

        Args:
            min_items: Minimum items sharing an indicator to form a project
        """
        self.min_items = min_items

    def extract_indicators(self, text: str) -> List[str]:
        """
        Project-name indicators in a block of code, in discovery order.

        Relative imports ('./x', '../x', '.models') are never indicators.
        """
        indicators: List[str] = []

        def add(value: str):
            value = value.strip()
            if value and value not in indicators:
                indicators.append(value)

        for match in self.PACKAGE_NAME_PATTERN.finditer(text):
            add(match.group(1))

        for match in self.PACKAGE_DECLARATION_PATTERN.finditer(text):
            add(match.group(1))

        for match in self.SCOPED_PACKAGE_PATTERN.finditer(text):
            add(match.group(1))

        for pattern in self.IMPORT_SOURCE_PATTERNS:
            for source in pattern.findall(text):
                head = self._source_head(source)
                if head:
                    add(head)

        return indicators

    def _source_head(self, source: str) -> str:
        """
        Reduce an import source to its package.

        Examples:
            react/jsx-runtime -> react
            @acme/ui/button -> @acme/ui
            app.models.user -> app
        """
        if not source or source.startswith(('.', '/')):
            return ''

        if source.startswith('@'):
            parts = source.split('/')
            return '/'.join(parts[:2]) if len(parts) >= 2 else ''

        return re.split(r'[/.]', source)[0]

    def infer_projects(self, items: List[ContentItem]) -> List[Project]:
        """
        Infer project groupings from a list of items.

        Args:
            items: Files and snippets

        Returns:
            List of Project objects, sorted by number of items
        """
        indicator_to_items: Dict[str, List[str]] = defaultdict(list)

        for item in items:
            for indicator in self.extract_indicators(item.content):
                if item.id not in indicator_to_items[indicator]:
                    indicator_to_items[indicator].append(item.id)

        shared = {k: v for k, v in indicator_to_items.items() if len(v) >= self.min_items}
        projects = self._merge_projects(shared)

        filtered = [p for p in projects if len(p.item_ids) >= self.min_items]

        return sorted(filtered, key=lambda p: len(p.item_ids), reverse=True)

    def _merge_projects(self, indicator_to_items: Dict[str, List[str]]) -> List[Project]:
        """Merge indicators whose item sets overlap by at least half."""
        indicators = list(indicator_to_items.keys())
        merged = []
        used = set()

        for indicator in indicators:
            if indicator in used:
                continue

            cluster = [indicator]
            cluster_items = list(indicator_to_items[indicator])

            changed = True
            while changed:
                changed = False
                for other in indicators:
                    if other in cluster or other in used:
                        continue

                    other_items = indicator_to_items[other]
                    overlap = len(set(cluster_items) & set(other_items))
                    if overlap > 0 and overlap >= min(len(cluster_items), len(other_items)) * 0.5:
                        cluster.append(other)
                        cluster_items.extend(i for i in other_items if i not in cluster_items)
                        changed = True

            used.update(cluster)
            merged.append(self._create_project(cluster, cluster_items, indicator_to_items))

        return merged

    def _create_project(
        self,
        cluster: List[str],
        item_ids: List[str],
        indicator_to_items: Dict[str, List[str]]
    ) -> Project:
        # Most widely shared indicator names the project; discovery order breaks ties
        name = max(cluster, key=lambda i: len(indicator_to_items[i]))

        technologies = self.detect_technologies(cluster)

        return Project(
            name=name,
            item_ids=list(item_ids),
            indicators=set(cluster),
            technologies=technologies,
            confidence=self._calculate_confidence(cluster, item_ids, technologies),
        )

    def _calculate_confidence(self, cluster: List[str], item_ids: List[str], technologies: Set[str]) -> float:
        """Calculate confidence score for a project grouping."""
        score = 0.0

        n_items = len(item_ids)
        if n_items >= 5:
            score += 0.3
        elif n_items >= 3:
            score += 0.2
        elif n_items >= 2:
            score += 0.1

        # Scoped or declared package names are deliberate project markers
        if any(i.startswith('@') or '.' in i for i in cluster):
            score += 0.3

        if len(cluster) >= 2:
            score += 0.2

        for stack_techs in self.TECH_STACKS.values():
            if len(technologies & stack_techs) >= 2:
                score += 0.2
                break

        return min(score, 1.0)

    def detect_technologies(self, indicators) -> Set[str]:
        """Indicators that belong to a known technology stack."""
        found = set()
        for stack in self.TECH_STACKS.values():
            found.update(stack & set(indicators))
        return found

    def primary_stack(self, technologies: Set[str]) -> Optional[str]:
        """Stack sharing the most technologies; ties go to table order."""
        best, best_count = None, 0
        for name, stack in self.TECH_STACKS.items():
            count = len(technologies & stack)
            if count > best_count:
                best, best_count = name, count
        return best

"""
Page definition shared by the dispatcher.

A page bundles everything the dispatcher needs for one dashboard view:
the cache namespace, the KPI formulae, the fast-mode sections, the
collections to fetch, and the prompt ingredients for its insights.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from brandops.insights.prompts import render_prompt
from brandops.insights.validation import namespace_root
from brandops.upstream.client import ALL_COLLECTIONS
from brandops.upstream.models import Dataset

KpiFunction = Callable[[Dataset], Dict[str, Any]]
SectionFunction = Callable[[Dataset, Mapping[str, Any]], Dict[str, Any]]
ContextFunction = Callable[[Dataset, Mapping[str, Any]], Dict[str, str]]


def _no_sections(dataset: Dataset, kpis: Mapping[str, Any]) -> Dict[str, Any]:
    return {}


def _flatten(section: Mapping[str, Any]) -> Dict[str, Any]:
    """Collapse nested rows to ``a: 1, b: 2`` lines for the prompt."""
    flat: Dict[str, Any] = {}
    for label, value in section.items():
        if isinstance(value, Mapping):
            flat[label] = ", ".join(
                f"{k.replace('_', ' ')}: {v}" for k, v in value.items()
            )
        elif isinstance(value, list):
            flat[label] = "; ".join(str(v) for v in value) or "none"
        else:
            flat[label] = value
    return flat


@dataclass(frozen=True)
class Page:
    """Static description of one dashboard page.

    Attributes:
        name: URL segment (``orders``).
        namespace: Cache namespace (``orders-insights``).
        persona: Role paragraph opening the insight prompt.
        focus: What the model should analyse.
        compute_kpis: KPI formulae over the brand-filtered dataset.
            KPI names double as fingerprint feature names.
        kpi_labels: Human-readable label per KPI, in display order.
        build_sections: Derived fast-mode sections.
        describe_kpis: Optional per-KPI context sentences.
        max_insights: Upper bound on cached insights.
        collections: Collections fetched for fast mode.
        insight_collections: Reduced projection fetched for insights.
    """

    name: str
    namespace: str
    persona: str
    focus: str
    compute_kpis: KpiFunction
    kpi_labels: Dict[str, str]
    build_sections: SectionFunction = _no_sections
    describe_kpis: Optional[ContextFunction] = None
    max_insights: int = 5
    collections: Tuple[str, ...] = ALL_COLLECTIONS
    insight_collections: Tuple[str, ...] = field(default=ALL_COLLECTIONS)

    @property
    def root(self) -> str:
        return namespace_root(self.namespace)

    def fingerprint_projection(self, dataset: Dataset) -> Dict[str, Any]:
        return dataset.projection_summary()

    def prompt_sections(
        self, dataset: Dataset, kpis: Mapping[str, Any]
    ) -> List[Tuple[str, Dict[str, Any]]]:
        metrics = {
            label: kpis[name] for name, label in self.kpi_labels.items() if name in kpis
        }
        sections: List[Tuple[str, Dict[str, Any]]] = [("Key metrics", metrics)]
        for heading, value in self.build_sections(dataset, kpis).items():
            if isinstance(value, Mapping) and value:
                sections.append((heading.replace("_", " "), _flatten(value)))
        return sections

    def build_prompt(self, dataset: Dataset, kpis: Mapping[str, Any]) -> str:
        return render_prompt(
            self.persona,
            self.focus,
            dataset.brand,
            self.prompt_sections(dataset, kpis),
            self.max_insights,
        )

    def kpi_context(
        self, dataset: Dataset, kpis: Mapping[str, Any]
    ) -> Dict[str, Dict[str, Any]]:
        """Deterministic ``{value, label, context}`` per labelled KPI."""
        notes = self.describe_kpis(dataset, kpis) if self.describe_kpis else {}
        context: Dict[str, Dict[str, Any]] = {}
        for name, label in self.kpi_labels.items():
            if name not in kpis:
                continue
            context[name] = {
                "value": kpis[name],
                "label": label,
                "context": notes.get(name, f"{label} for {dataset.brand}"),
            }
        return context

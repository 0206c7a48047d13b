"""
Insight record model.

An insight has three required fields (``title``, ``description``,
``severity``) plus a handful of optional ones.  Any other key the LLM
returns is kept as an extension field so it survives caching without
the cache knowing about it.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Severity = Literal["critical", "warning", "info"]
SEVERITIES = ("critical", "warning", "info")
DEFAULT_SEVERITY: Severity = "warning"


class Insight(BaseModel):
    """A validated, normalised insight ready to cache and serve.

    Attributes:
        id: Deterministic ``<namespace-root>-insight-<index>`` identifier.
        title: Short headline.
        description: Explanation of the finding.
        severity: ``critical``, ``warning`` or ``info``.
        dollar_impact: Non-negative estimated impact, if given.
        suggested_actions: Ordered short follow-up actions.
        source: Producer identifier (namespace root by default).
        created_at: UTC instant the insight was produced.
    """

    model_config = ConfigDict(extra="allow")

    id: str
    title: str
    description: str
    severity: Severity
    dollar_impact: Optional[float] = Field(default=None, ge=0.0)
    suggested_actions: List[str] = Field(default_factory=list)
    source: str
    created_at: datetime

    @property
    def extensions(self) -> Dict[str, Any]:
        """Fields outside the known schema."""
        return dict(self.model_extra or {})

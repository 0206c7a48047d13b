"""Prompt assembly shared by every dashboard page."""

from typing import Iterable, Mapping, Tuple

_FORMAT_BLOCK = """\
Provide between 1 and {max_insights} insights. Each insight MUST include 3-5 specific, actionable suggestedActions.

Respond with a JSON array only, no prose:
[
  {{
    "title": "Short headline",
    "description": "What is happening, why it matters, and the expected outcome",
    "severity": "critical|warning|info",
    "dollarImpact": 0,
    "suggestedActions": ["First action", "Second action", "Third action"]
  }}
]"""


def _format_value(value: object) -> str:
    if isinstance(value, float):
        return f"{value:,.2f}"
    if isinstance(value, int) and not isinstance(value, bool):
        return f"{value:,}"
    return str(value)


def render_prompt(
    persona: str,
    focus: str,
    brand: str,
    sections: Iterable[Tuple[str, Mapping[str, object]]],
    max_insights: int,
) -> str:
    """Build an insight prompt from titled metric sections.

    Args:
        persona: One-paragraph role description for the model.
        focus: What the model should look for.
        brand: Brand the data was filtered to.
        sections: ``(heading, {label: value})`` pairs rendered in order.
        max_insights: Upper bound communicated to the model.
    """
    lines = [persona.strip(), "", f"Brand: {brand}", focus.strip(), ""]
    for heading, metrics in sections:
        lines.append(f"{heading.upper()}:")
        for label, value in metrics.items():
            lines.append(f"- {label}: {_format_value(value)}")
        lines.append("")
    lines.append(_FORMAT_BLOCK.format(max_insights=max_insights))
    return "\n".join(lines)

"""
Theme definitions for PlantFlow board snapshots.

Provides dark and light palettes for the snapshot renderer.
Each theme defines colors for:
- Board background and text
- Zone and group frames
- Station cards, one accent per status
- Route traces per weight
"""

from __future__ import annotations
from dataclasses import dataclass

from .models import NodeStatus
from .routing import RouteWeight


@dataclass
class ThemePalette:
    """Color palette for a theme."""

    # Board
    background: str

    # Text
    title_color: str
    label_color: str
    muted_text_color: str

    # Zone / group frames
    frame_fill: str
    frame_fill_alpha: int
    frame_border: str
    frame_label: str

    # Station cards
    card_fill: str
    card_border: str
    card_selected_border: str

    # Status accents
    status_normal: str
    status_warning: str
    status_critical: str
    status_inactive: str

    # Route traces
    trace_base: str
    trace_default: str
    trace_bright: str
    trace_dimmed: str

    def status_color(self, status: NodeStatus) -> str:
        return {
            NodeStatus.NORMAL: self.status_normal,
            NodeStatus.WARNING: self.status_warning,
            NodeStatus.CRITICAL: self.status_critical,
            NodeStatus.INACTIVE: self.status_inactive,
        }[NodeStatus(status)]

    def trace_color(self, weight: RouteWeight) -> str:
        return {
            RouteWeight.DEFAULT: self.trace_default,
            RouteWeight.BRIGHT: self.trace_bright,
            RouteWeight.DIMMED: self.trace_dimmed,
        }[weight]


# Industrial dark (default)
DARK_THEME = ThemePalette(
    background="#0b0f14",
    title_color="#e5e7eb",
    label_color="#d1d5db",
    muted_text_color="#6b7280",
    frame_fill="#111827",
    frame_fill_alpha=140,
    frame_border="#374151",
    frame_label="#9ca3af",
    card_fill="#1f2937",
    card_border="#374151",
    card_selected_border="#00f0ff",
    status_normal="#0aff00",
    status_warning="#fcee0a",
    status_critical="#ff2a2a",
    status_inactive="#4b5563",
    trace_base="#1f2937",
    trace_default="#00a8b5",
    trace_bright="#00f0ff",
    trace_dimmed="#164e55",
)


# Light theme - clean white background with darker accents
LIGHT_THEME = ThemePalette(
    background="#ffffff",
    title_color="#111827",
    label_color="#1f2937",
    muted_text_color="#6b7280",
    frame_fill="#f3f4f6",
    frame_fill_alpha=180,
    frame_border="#d1d5db",
    frame_label="#4b5563",
    card_fill="#f9fafb",
    card_border="#d1d5db",
    card_selected_border="#0284c7",
    status_normal="#16a34a",
    status_warning="#ca8a04",
    status_critical="#dc2626",
    status_inactive="#9ca3af",
    trace_base="#e5e7eb",
    trace_default="#0891b2",
    trace_bright="#0284c7",
    trace_dimmed="#a5d8e2",
)


# Theme registry
THEMES: dict[str, ThemePalette] = {
    "dark": DARK_THEME,
    "light": LIGHT_THEME,
}


def get_theme(name: str) -> ThemePalette:
    """Get a theme palette by name.

    Args:
        name: Theme name ("dark" or "light")

    Returns:
        ThemePalette for the requested theme

    Raises:
        ValueError: If theme name is not recognized
    """
    if name not in THEMES:
        valid = ", ".join(THEMES.keys())
        raise ValueError(f"Unknown theme '{name}'. Valid themes: {valid}")
    return THEMES[name]

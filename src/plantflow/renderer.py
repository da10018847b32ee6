"""Board snapshot renderer using Pillow — draws a workshop's station board and routes to PNG."""

from __future__ import annotations

import logging
from io import BytesIO
from pathlib import Path
from typing import Optional, Sequence

from PIL import Image, ImageDraw, ImageFont

from .geometry import Box, bounds_of
from .layout import BOARD_WIDTH, GridLayout, GridOptions, is_frame
from .models import NodeStatus, ProcessNode, RoutingPolicy, Workshop
from .routing import Route, RouteClass, RouteWeight, compute_routes
from .themes import ThemePalette, get_theme
from .tree import aggregate_status_counts, owning_station

logger = logging.getLogger(__name__)


# --- Font handling ---

def _load_font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    """Load a font, falling back to default if none available."""
    font_paths = [
        "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
        "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
        "/usr/share/fonts/truetype/freefont/FreeSans.ttf",
        "/usr/share/fonts/TTF/DejaVuSans.ttf",
    ]
    for fp in font_paths:
        if Path(fp).exists():
            return ImageFont.truetype(fp, size)
    return ImageFont.load_default()


def _load_bold_font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    """Load a bold font, falling back to regular."""
    font_paths = [
        "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
        "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
        "/usr/share/fonts/truetype/freefont/FreeSansBold.ttf",
        "/usr/share/fonts/TTF/DejaVuSans-Bold.ttf",
    ]
    for fp in font_paths:
        if Path(fp).exists():
            return ImageFont.truetype(fp, size)
    return _load_font(size)


# --- Color helpers ---

def _hex_to_rgb(hex_color: str) -> tuple[int, int, int]:
    """Convert hex color to RGB tuple. Supports both 3-char and 6-char hex."""
    hex_color = hex_color.lstrip("#")
    if len(hex_color) == 3:
        hex_color = hex_color[0]*2 + hex_color[1]*2 + hex_color[2]*2
    return tuple(int(hex_color[i:i+2], 16) for i in (0, 2, 4))


def _hex_to_rgba(hex_color: str, alpha: int = 255) -> tuple[int, int, int, int]:
    """Convert hex color to RGBA tuple."""
    r, g, b = _hex_to_rgb(hex_color)
    return (r, g, b, alpha)


def _darken(hex_color: str, factor: float = 0.6) -> str:
    """Darken a hex color."""
    r, g, b = _hex_to_rgb(hex_color)
    return f"#{int(r * factor):02x}{int(g * factor):02x}{int(b * factor):02x}"


# --- Text helpers ---

def _text_width(font, text: str) -> float:
    bbox = font.getbbox(text)
    return bbox[2] - bbox[0]


def _fit_text(text: str, font, max_width: float) -> str:
    """Truncate ``text`` with an ellipsis so it fits in ``max_width`` pixels."""
    if _text_width(font, text) <= max_width:
        return text
    while text and _text_width(font, text + "...") > max_width:
        text = text[:-1]
    return text + "..." if text else ""


# --- Main renderer ---

class BoardRenderer:
    """Renders a workshop board (frames, station cards, routes) to PNG."""

    # Layout constants
    PADDING = 40
    TITLE_HEIGHT = 56
    CARD_RADIUS = 8
    FRAME_RADIUS = 12
    CARD_INSET = 10
    STATUS_BAR = 3
    TRACE_BASE_WIDTH = 3
    TRACE_WIDTH = 2
    ARROW_SIZE = 6

    def __init__(self, scale: float = 1.0, theme: str = "dark"):
        self.scale = scale
        self.theme: ThemePalette = get_theme(theme)
        self.font_title = _load_bold_font(int(22 * scale))
        self.font_label = _load_bold_font(int(13 * scale))
        self.font_frame = _load_bold_font(int(13 * scale))
        self.font_small = _load_font(int(10 * scale))

    def render(
        self,
        workshop: Workshop,
        boxes: dict[str, Box],
        routes: Sequence[Route],
        selected_id: Optional[str] = None,
        output_path: Optional[str] = None,
    ) -> bytes:
        """Render one workshop board to PNG bytes. Optionally save to file.

        Args:
            workshop: The workshop being shown.
            boxes: Geometry for its nodes, in board coordinates.
            routes: Routes computed over the same boxes.
            selected_id: Selected station or inspection, outlined.
            output_path: Optional path to save the PNG.
        """
        bounds = bounds_of(list(boxes.values())) or Box(0, 0, 400, 200)
        s = self.scale
        img_width = int((bounds.right + self.PADDING) * s)
        img_height = int((bounds.bottom + self.PADDING + self.TITLE_HEIGHT) * s)

        img = Image.new("RGBA", (max(1, img_width), max(1, img_height)),
                        _hex_to_rgba(self.theme.background))
        draw = ImageDraw.Draw(img, "RGBA")

        # Board coordinates shift down below the title band
        ox, oy = 0.0, float(self.TITLE_HEIGHT)

        self._draw_title(draw, workshop)

        nodes = _nodes_by_id(workshop)
        for node_id, box in boxes.items():
            node = nodes.get(node_id)
            if node is not None and is_frame(node):
                self._draw_frame(draw, node, box, ox, oy)

        for route in routes:
            self._draw_route(draw, route, ox, oy)

        selected_station = owning_station(workshop, selected_id) if selected_id else None
        for node_id, box in boxes.items():
            node = nodes.get(node_id)
            if node is None or is_frame(node):
                continue
            selected = selected_station is not None and selected_station.id == node_id
            self._draw_card(draw, node, box, ox, oy, selected)

        buf = BytesIO()
        img.save(buf, format="PNG", optimize=True)
        png_bytes = buf.getvalue()

        if output_path:
            Path(output_path).write_bytes(png_bytes)

        logger.debug(
            f"Rendered {workshop.id}: {len(boxes)} boxes, {len(routes)} routes, "
            f"{len(png_bytes)} bytes"
        )
        return png_bytes

    def _scaled(self, box: Box, ox: float, oy: float) -> tuple[float, float, float, float]:
        s = self.scale
        return (
            (box.left + ox) * s,
            (box.top + oy) * s,
            (box.right + ox) * s,
            (box.bottom + oy) * s,
        )

    def _draw_title(self, draw: ImageDraw.ImageDraw, workshop: Workshop):
        """Draw the workshop title and its header stats in the top band."""
        counts = aggregate_status_counts(workshop)
        s = self.scale
        draw.text(
            (self.PADDING * s, 14 * s),
            workshop.get_label().upper(),
            fill=self.theme.title_color,
            font=self.font_title,
        )
        stats = (
            f"{counts.total} stations  |  {counts.normal} normal  "
            f"{counts.warning} warning  {counts.critical} critical  "
            f"{counts.inactive} inactive"
        )
        title_w = _text_width(self.font_title, workshop.get_label().upper())
        draw.text(
            ((self.PADDING + 16) * s + title_w, 22 * s),
            stats,
            fill=self.theme.muted_text_color,
            font=self.font_small,
        )

    def _draw_frame(self, draw: ImageDraw.ImageDraw, node: ProcessNode, box: Box, ox: float, oy: float):
        """Draw a zone or group frame with its label."""
        x1, y1, x2, y2 = self._scaled(box, ox, oy)
        draw.rounded_rectangle(
            [x1, y1, x2, y2],
            radius=int(self.FRAME_RADIUS * self.scale),
            fill=_hex_to_rgba(self.theme.frame_fill, self.theme.frame_fill_alpha),
            outline=self.theme.frame_border,
            width=1,
        )
        draw.text(
            (x1 + 14 * self.scale, y1 + 8 * self.scale),
            _fit_text(node.get_label(), self.font_frame, x2 - x1 - 28 * self.scale),
            fill=self.theme.frame_label,
            font=self.font_frame,
        )

    def _draw_route(self, draw: ImageDraw.ImageDraw, route: Route, ox: float, oy: float):
        """Draw one route: a dark base trace under a colored trace, arrow at the end."""
        s = self.scale
        points = [((p.x + ox) * s, (p.y + oy) * s) for p in route.path]
        if len(points) < 2:
            return
        color = self.theme.trace_color(route.weight)
        width = self.TRACE_WIDTH + (1 if route.weight == RouteWeight.BRIGHT else 0)

        draw.line(points, fill=self.theme.trace_base, width=int(self.TRACE_BASE_WIDTH * s) + 2,
                  joint="curve")
        draw.line(points, fill=color, width=max(1, int(width * s)), joint="curve")

        # Arrowhead on the last segment; stepped routes always end horizontally or vertically
        (px, py), (ex, ey) = points[-2], points[-1]
        size = self.ARROW_SIZE * s
        if route.kind == RouteClass.STEPPED and abs(ex - px) < abs(ey - py):
            direction = 1 if ey >= py else -1
            head = [(ex, ey), (ex - size / 2, ey - direction * size), (ex + size / 2, ey - direction * size)]
        else:
            direction = 1 if ex >= px else -1
            head = [(ex, ey), (ex - direction * size, ey - size / 2), (ex - direction * size, ey + size / 2)]
        draw.polygon(head, fill=color)

    def _draw_card(
        self,
        draw: ImageDraw.ImageDraw,
        node: ProcessNode,
        box: Box,
        ox: float,
        oy: float,
        selected: bool,
    ):
        """Draw a station card: body, id suffix, label and status bar."""
        s = self.scale
        x1, y1, x2, y2 = self._scaled(box, ox, oy)
        radius = int(self.CARD_RADIUS * s)

        if node.is_placeholder:
            draw.rounded_rectangle(
                [x1, y1, x2, y2], radius=radius,
                outline=_hex_to_rgba(self.theme.card_border, 90), width=1,
            )
            return

        status = NodeStatus(node.status)
        accent = self.theme.status_color(status)
        alpha = 110 if status == NodeStatus.INACTIVE else 255
        border = self.theme.card_selected_border if selected else self.theme.card_border

        draw.rounded_rectangle(
            [x1, y1, x2, y2], radius=radius,
            fill=_hex_to_rgba(self.theme.card_fill, alpha),
            outline=border,
            width=2 if selected else 1,
        )

        inset = self.CARD_INSET * s
        inner_w = x2 - x1 - 2 * inset

        suffix = node.id.split("-")[-1].upper()
        draw.text((x1 + inset, y1 + inset), suffix,
                  fill=self.theme.muted_text_color, font=self.font_small)

        # Status chip, top-right
        chip = 8 * s
        draw.rectangle([x2 - inset - chip, y1 + inset, x2 - inset, y1 + inset + chip], fill=accent)

        label_color = self.theme.label_color if status != NodeStatus.INACTIVE else self.theme.muted_text_color
        draw.text(
            (x1 + inset, (y1 + y2) / 2 - 8 * s),
            _fit_text(node.get_label(), self.font_label, inner_w),
            fill=label_color,
            font=self.font_label,
        )

        bar_y = y2 - inset - self.STATUS_BAR * s
        draw.rectangle([x1 + inset, bar_y, x2 - inset, bar_y + self.STATUS_BAR * s],
                       fill=_hex_to_rgba(_darken(accent, 0.9), alpha))

        # Ports on the card's left and right edges
        port = 4 * s
        for px in (x1, x2):
            cy = (y1 + y2) / 2
            draw.ellipse([px - port, cy - port, px + port, cy + port],
                         fill=self.theme.background, outline=border)


def _nodes_by_id(workshop: Workshop) -> dict[str, ProcessNode]:
    nodes: dict[str, ProcessNode] = {}
    stack: list[ProcessNode] = [workshop]
    while stack:
        node = stack.pop()
        nodes[node.id] = node
        stack.extend(node.children)
    return nodes


def render_snapshot(
    workshop: Workshop,
    policy: Optional[RoutingPolicy] = None,
    selected_id: Optional[str] = None,
    width: float = BOARD_WIDTH,
    scale: float = 1.0,
    theme: str = "dark",
    output_path: Optional[str] = None,
) -> tuple[bytes, list[Route]]:
    """Lay out, route and render a workshop in one go.

    Uses the reference ``GridLayout`` for geometry.  Returns the PNG bytes
    and the routes drawn.
    """
    boxes = GridLayout(GridOptions(width=width)).compute(workshop)
    routes = compute_routes(workshop, boxes.get, policy=policy, selected_id=selected_id)
    renderer = BoardRenderer(scale=scale, theme=theme)
    png = renderer.render(workshop, boxes, routes, selected_id=selected_id, output_path=output_path)
    return png, routes

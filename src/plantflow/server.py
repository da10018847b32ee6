"""PlantFlow MCP server — tools for inspecting, routing and rendering plant boards."""

from __future__ import annotations

import base64
import json
import logging
import os
from typing import Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, ImageContent, Tool

from .layout import BOARD_WIDTH, GridLayout, GridOptions
from .models import Plant, Workshop
from .parser import parse_yaml
from .renderer import render_snapshot
from .routing import compute_routes
from .tree import aggregate_status_counts, count_effective_stations

logger = logging.getLogger(__name__)


# --- Configuration ---
BOARD_WIDTH_DEFAULT = float(os.environ.get("PLANTFLOW_BOARD_WIDTH", BOARD_WIDTH))
THEME_DEFAULT = os.environ.get("PLANTFLOW_THEME", "dark")
SCALE_DEFAULT = float(os.environ.get("PLANTFLOW_SCALE", 2.0))

server = Server("plantflow")


_PLANT_YAML_HELP = (
    "YAML (or JSON) plant document. Simplified format example:\n"
    "title: Body Shop\n"
    "workshops:\n"
    "  - id: ws-welding\n"
    "    label: Welding\n"
    "    zones:\n"
    "      - id: z-underbody\n"
    "        flow: true\n"
    "        stations:\n"
    "          - id: st-floor\n"
    "          - id: st-rails\n"
    "    stations:\n"
    "      - id: st-respot\n"
    "        status: warning\n"
    "\n"
    "Statuses: normal, warning, critical, inactive. "
    "The full format uses a 'plant:' root with tagged 'children'."
)


# --- Tool definitions ---

@server.list_tools()
async def list_tools() -> list[Tool]:
    return [
        Tool(
            name="describe_plant",
            description=(
                "Summarize a plant document: every workshop with its effective "
                "station count and per-status counts. Counting only includes "
                "true work units (no placeholders, no group stations)."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "yaml_plant": {"type": "string", "description": _PLANT_YAML_HELP},
                },
                "required": ["yaml_plant"],
            },
        ),
        Tool(
            name="route_workshop",
            description=(
                "Lay out one workshop as a station board and compute its "
                "production-flow routes. Returns the routes as JSON polylines."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "yaml_plant": {"type": "string", "description": _PLANT_YAML_HELP},
                    "workshop_id": {
                        "type": "string",
                        "description": "Workshop to route. Default: the first workshop.",
                    },
                    "selected_id": {
                        "type": "string",
                        "description": (
                            "Selected station or inspection. Routes touching it "
                            "(or its zone/group) are bright, the rest dimmed."
                        ),
                    },
                    "width": {
                        "type": "number",
                        "description": f"Board width in layout units (default {BOARD_WIDTH_DEFAULT:g}).",
                    },
                },
                "required": ["yaml_plant"],
            },
        ),
        Tool(
            name="render_workshop",
            description=(
                "Render one workshop board (zone frames, station cards with "
                "status, flow routes) to a PNG image."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "yaml_plant": {"type": "string", "description": _PLANT_YAML_HELP},
                    "workshop_id": {
                        "type": "string",
                        "description": "Workshop to render. Default: the first workshop.",
                    },
                    "selected_id": {
                        "type": "string",
                        "description": "Selected station or inspection to highlight.",
                    },
                    "width": {
                        "type": "number",
                        "description": f"Board width in layout units (default {BOARD_WIDTH_DEFAULT:g}).",
                    },
                    "scale": {
                        "type": "number",
                        "description": f"Render scale factor (default {SCALE_DEFAULT:g})",
                    },
                    "theme": {
                        "type": "string",
                        "enum": ["dark", "light"],
                        "description": f"Color theme (default '{THEME_DEFAULT}').",
                    },
                },
                "required": ["yaml_plant"],
            },
        ),
    ]


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent | ImageContent]:
    if name == "describe_plant":
        return await _describe_plant(arguments)
    elif name == "route_workshop":
        return await _route_workshop(arguments)
    elif name == "render_workshop":
        return await _render_workshop(arguments)
    else:
        return [TextContent(type="text", text=f"Unknown tool: {name}")]


def _pick_workshop(plant: Plant, workshop_id: Optional[str]) -> Workshop:
    if workshop_id is None:
        if not plant.workshops:
            raise ValueError("Plant has no workshops")
        return plant.workshops[0]
    workshop = plant.get_workshop(workshop_id)
    if workshop is None:
        raise ValueError(f"Unknown workshop: {workshop_id}")
    return workshop


def _counts_dict(workshop: Workshop) -> dict:
    counts = aggregate_status_counts(workshop)
    return {
        "total": counts.total,
        "normal": counts.normal,
        "warning": counts.warning,
        "critical": counts.critical,
        "inactive": counts.inactive,
    }


async def _describe_plant(args: dict) -> list[TextContent]:
    """Summarize workshops and their station counts."""
    try:
        plant = parse_yaml(args["yaml_plant"])
    except Exception as e:
        return [TextContent(type="text", text=f"Failed to parse plant document: {e}")]

    workshops = [
        {
            "id": ws.id,
            "label": ws.get_label(),
            "status": ws.status.value,
            "effective_stations": count_effective_stations(ws),
            "counts": _counts_dict(ws),
        }
        for ws in plant.workshops
    ]
    return [TextContent(
        type="text",
        text=json.dumps({
            "title": plant.title,
            "version": plant.version,
            "workshops": workshops,
        }),
    )]


async def _route_workshop(args: dict) -> list[TextContent]:
    """Lay out a workshop and return its routes."""
    try:
        plant = parse_yaml(args["yaml_plant"])
        workshop = _pick_workshop(plant, args.get("workshop_id"))
    except Exception as e:
        return [TextContent(type="text", text=f"Failed to load workshop: {e}")]

    width = args.get("width", BOARD_WIDTH_DEFAULT)
    selected_id = args.get("selected_id")

    try:
        boxes = GridLayout(GridOptions(width=width)).compute(workshop)
        routes = compute_routes(workshop, boxes.get, policy=plant.policy, selected_id=selected_id)
    except Exception as e:
        logger.exception(f"Routing {workshop.id} failed")
        return [TextContent(type="text", text=f"Routing failed: {e}")]
    logger.info(f"route_workshop {workshop.id}: {len(routes)} routes")

    return [TextContent(
        type="text",
        text=json.dumps({
            "workshop": workshop.id,
            "selected_id": selected_id,
            "boxes": {
                node_id: [box.left, box.top, box.width, box.height]
                for node_id, box in boxes.items()
            },
            "routes": [route.to_dict() for route in routes],
        }),
    )]


async def _render_workshop(args: dict) -> list[TextContent | ImageContent]:
    """Render a workshop board to PNG and return it inline."""
    try:
        plant = parse_yaml(args["yaml_plant"])
        workshop = _pick_workshop(plant, args.get("workshop_id"))
    except Exception as e:
        return [TextContent(type="text", text=f"Failed to load workshop: {e}")]

    selected_id = args.get("selected_id")
    try:
        png, routes = render_snapshot(
            workshop,
            policy=plant.policy,
            selected_id=selected_id,
            width=args.get("width", BOARD_WIDTH_DEFAULT),
            scale=args.get("scale", SCALE_DEFAULT),
            theme=args.get("theme", THEME_DEFAULT),
        )
    except Exception as e:
        logger.exception(f"Rendering {workshop.id} failed")
        return [TextContent(type="text", text=f"Rendering failed: {e}")]

    return [
        ImageContent(
            type="image",
            data=base64.b64encode(png).decode("ascii"),
            mimeType="image/png",
        ),
        TextContent(
            type="text",
            text=json.dumps({
                "status": "success",
                "workshop": workshop.id,
                "routes": len(routes),
                "counts": _counts_dict(workshop),
                "bytes": len(png),
            }),
        ),
    ]


def main():
    """Entry point for the MCP server."""
    import asyncio
    logging.basicConfig(
        level=os.environ.get("PLANTFLOW_LOG_LEVEL", "INFO"),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    asyncio.run(_run())


async def _run():
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


if __name__ == "__main__":
    main()

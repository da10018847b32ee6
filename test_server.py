"""Tests for the MCP tool handlers (called directly, no stdio transport)."""

import asyncio
import base64
import json

from plantflow import server

PLANT_YAML = """
title: Paint Plant
workshops:
  - id: ws-paint
    stations:
      - id: st-primer
      - id: st-base
        status: warning
      - id: st-spare
        is_placeholder: true
  - id: ws-final
    zones:
      - id: z-trim
        stations:
          - id: st-doors
            status: inactive
"""


def run(coro):
    return asyncio.run(coro)


def test_list_tools_names():
    tools = run(server.list_tools())
    assert [t.name for t in tools] == ["describe_plant", "route_workshop", "render_workshop"]
    assert all(t.inputSchema["required"] == ["yaml_plant"] for t in tools)


def test_describe_plant():
    (result,) = run(server._describe_plant({"yaml_plant": PLANT_YAML}))
    data = json.loads(result.text)

    assert data["title"] == "Paint Plant"
    paint, final = data["workshops"]
    assert paint["effective_stations"] == 2
    assert paint["counts"] == {"total": 2, "normal": 1, "warning": 1, "critical": 0, "inactive": 0}
    assert final["counts"]["inactive"] == 1


def test_route_workshop_defaults_to_first_workshop():
    (result,) = run(server._route_workshop({"yaml_plant": PLANT_YAML, "selected_id": "st-base"}))
    data = json.loads(result.text)

    assert data["workshop"] == "ws-paint"
    assert [(r["source"], r["target"], r["weight"]) for r in data["routes"]] == [
        ("st-primer", "st-base", "bright"),
    ]
    assert "st-spare" in data["boxes"]


def test_route_workshop_unknown_workshop_is_a_text_error():
    (result,) = run(server._route_workshop({"yaml_plant": PLANT_YAML, "workshop_id": "ws-nope"}))
    assert result.text.startswith("Failed to load workshop")


def test_route_workshop_bad_width_is_a_text_error():
    (result,) = run(server._route_workshop({"yaml_plant": PLANT_YAML, "width": "wide"}))
    assert result.text.startswith("Routing failed")


def test_render_workshop_returns_inline_png():
    image, summary = run(server._render_workshop({
        "yaml_plant": PLANT_YAML,
        "workshop_id": "ws-final",
        "scale": 1.0,
        "theme": "light",
    }))

    assert image.mimeType == "image/png"
    assert base64.b64decode(image.data).startswith(b"\x89PNG")
    assert json.loads(summary.text)["workshop"] == "ws-final"


def test_render_workshop_bad_theme_is_a_text_error():
    (result,) = run(server._render_workshop({"yaml_plant": PLANT_YAML, "theme": "neon"}))
    assert result.text.startswith("Rendering failed")


def test_parse_failure_is_a_text_error():
    (result,) = run(server._describe_plant({"yaml_plant": ""}))
    assert result.text.startswith("Failed to parse plant document")

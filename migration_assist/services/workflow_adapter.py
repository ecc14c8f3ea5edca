"""
Workflow adapter — convert between the diagram editor's canvas shape and
the stored workflow schema.

The canvas (React Flow) carries presentation-only keys such as
``draggable``, ``selected``, ``width`` and ``markerEnd``. They are added on
the way out and stripped on the way in, so stored workflows only hold the
schema fields.
"""

from __future__ import annotations

from typing import Any

from migration_assist.models.schemas import WorkflowEdge, WorkflowNode

ARROW_MARKER = {"type": "arrowclosed"}


def to_canvas_nodes(nodes: list[WorkflowNode]) -> list[dict[str, Any]]:
    return [
        {
            "id": node.id,
            "type": node.type,
            "position": node.position.model_dump(),
            "data": node.data.model_dump(by_alias=True, exclude_none=True),
            "draggable": True,
            "selectable": True,
            "connectable": True,
        }
        for node in nodes
    ]


def to_canvas_edges(edges: list[WorkflowEdge]) -> list[dict[str, Any]]:
    canvas = []
    for edge in edges:
        item = edge.model_dump(by_alias=True, exclude_none=True)
        item["markerEnd"] = dict(ARROW_MARKER)
        canvas.append(item)
    return canvas


def from_canvas_nodes(canvas_nodes: list[dict[str, Any]]) -> list[WorkflowNode]:
    nodes = []
    for node in canvas_nodes:
        data = node.get("data") or {}
        nodes.append(
            WorkflowNode.model_validate({
                "id": str(node["id"]),
                "type": node.get("type") or "task",
                "position": node.get("position") or {},
                "data": {
                    "label": data.get("label") or "Unnamed",
                    "description": data.get("description"),
                    "requirementId": data.get("requirementId"),
                    "taskId": data.get("taskId"),
                    "properties": data.get("properties") or {},
                },
            })
        )
    return nodes


def from_canvas_edges(canvas_edges: list[dict[str, Any]]) -> list[WorkflowEdge]:
    edges = []
    for edge in canvas_edges:
        label = edge.get("label")
        edges.append(
            WorkflowEdge(
                id=str(edge["id"]),
                source=str(edge["source"]),
                target=str(edge["target"]),
                label=str(label) if label not in (None, "") else None,
                type=edge.get("type"),
                animated=bool(edge.get("animated", False)),
            )
        )
    return edges

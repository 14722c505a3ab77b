"""MCP server — exposes the descriptor engine as tools.

Implements the Model Context Protocol (MCP) over stdio transport, so an
assistant can call normalize_descriptor("PIX ...") during a conversation.
"""

from __future__ import annotations

import json
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from descriptor_engine.lib.classifier import ClassificationInput, classify
from descriptor_engine.lib.fingerprint import fingerprint
from descriptor_engine.lib.logging_setup import get_logger
from descriptor_engine.lib.normalizer import extract_merchant_name, normalize, similar
from descriptor_engine.lib.recurrence import TransactionHistoryEntry

logger = get_logger(__name__)

server = Server("descriptor-engine")

_DESCRIPTOR_SCHEMA = {
    "type": "object",
    "properties": {
        "descriptor": {
            "type": "string",
            "description": "Raw bank/card statement line (e.g. 'PAG*IFOOD 01/12 SAO PAULO')",
        },
    },
    "required": ["descriptor"],
}


@server.list_tools()
async def list_tools() -> list[Tool]:
    """Register all available engine tools."""
    return [
        Tool(
            name="normalize_descriptor",
            description=(
                "Normalize a raw statement descriptor into a stable matching key "
                "and a display merchant name."
            ),
            inputSchema=_DESCRIPTOR_SCHEMA,
        ),
        Tool(
            name="fingerprint_descriptor",
            description=(
                "Generate merchant fingerprints for a descriptor: strong (known merchant) "
                "and weak (normalized key)."
            ),
            inputSchema=_DESCRIPTOR_SCHEMA,
        ),
        Tool(
            name="similar_descriptors",
            description="Check whether two descriptors refer to the same kind of transaction.",
            inputSchema={
                "type": "object",
                "properties": {
                    "a": {"type": "string"},
                    "b": {"type": "string"},
                },
                "required": ["a", "b"],
            },
        ),
        Tool(
            name="classify_expense_nature",
            description=(
                "Classify an expense as FIXED, VARIABLE, EVENTUAL or UNKNOWN from its "
                "category/subcategory, optional user overrides and transaction history."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "category_id": {"type": "string"},
                    "subcategory_id": {"type": "string"},
                    "merchant_key": {"type": "string"},
                    "overrides": {
                        "type": "object",
                        "description": "Map of 'category[::subcategory][::merchant]' to nature",
                    },
                    "history": {
                        "type": "array",
                        "description": "Past transactions: category_id, subcategory_id, amount, date",
                        "items": {"type": "object"},
                    },
                },
                "required": ["category_id"],
            },
        ),
    ]


def _classify(arguments: dict[str, Any]) -> str:
    history = arguments.get("history")
    result = classify(
        ClassificationInput.from_dict(arguments),
        overrides=arguments.get("overrides") or None,
        history=(
            [TransactionHistoryEntry.from_dict(h) for h in history] if history is not None else None
        ),
    )
    return result.to_json()


def handle_tool(name: str, arguments: dict[str, Any]) -> str | None:
    """Run one tool and return its JSON result, or None for an unknown tool."""
    descriptor = arguments.get("descriptor", "")
    handlers = {
        "normalize_descriptor": lambda: json.dumps(
            {"key": normalize(descriptor), "merchant_name": extract_merchant_name(descriptor)},
            ensure_ascii=False,
        ),
        "fingerprint_descriptor": lambda: fingerprint(descriptor).to_json(),
        "similar_descriptors": lambda: json.dumps(
            {"similar": similar(arguments.get("a", ""), arguments.get("b", ""))}
        ),
        "classify_expense_nature": lambda: _classify(arguments),
    }

    handler = handlers.get(name)
    if not handler:
        return None
    return handler()


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    """Route MCP tool calls to the engine."""
    try:
        text = handle_tool(name, arguments or {})
    except (KeyError, TypeError, ValueError, ArithmeticError) as exc:
        logger.warning("Tool %s rejected arguments: %r", name, exc)
        return [TextContent(type="text", text=f"Error: invalid arguments ({exc!r})")]
    if text is None:
        return [TextContent(type="text", text=f"Unknown tool: {name}")]
    return [TextContent(type="text", text=text)]


async def run_server() -> None:
    """Run the MCP server over stdio."""
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())

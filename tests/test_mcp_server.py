"""Tests for the MCP tool handlers."""

import asyncio
import json

from descriptor_engine.lib.mcp_server import call_tool, handle_tool, list_tools
from descriptor_engine.lib.normalizer import extract_merchant_name


def test_tools_registered():
    names = {tool.name for tool in asyncio.run(list_tools())}
    assert names == {
        "normalize_descriptor",
        "fingerprint_descriptor",
        "similar_descriptors",
        "classify_expense_nature",
    }


def test_normalize_descriptor():
    descriptor = "PIX RECEBIDO JOAO SILVA 01/12/2024"
    data = json.loads(handle_tool("normalize_descriptor", {"descriptor": descriptor}))
    assert data == {
        "key": "pix_recebido_joao_silva",
        "merchant_name": extract_merchant_name(descriptor),
    }


def test_fingerprint_descriptor():
    data = json.loads(handle_tool("fingerprint_descriptor", {"descriptor": "MP*IFOOD SAO PAULO SP"}))
    assert data["strong"] == "F:IFOOD"
    assert data["merchant_canon"] == "IFOOD"


def test_similar_descriptors():
    data = json.loads(
        handle_tool("similar_descriptors", {"a": "POSTO SHELL CENTRO", "b": "POSTO SHELL BAIRRO"})
    )
    assert data == {"similar": True}


def test_classify_expense_nature_with_history():
    history = [
        {
            "category_id": "vida-saude",
            "subcategory_id": "vida-saude-academia",
            "amount": 100,
            "date": f"2024-0{m}-01",
        }
        for m in (1, 2, 3)
    ]
    data = json.loads(
        handle_tool(
            "classify_expense_nature",
            {
                "category_id": "vida-saude",
                "subcategory_id": "vida-saude-academia",
                "history": history,
            },
        )
    )
    assert data["nature"] == "FIXED"
    assert data["source"] == "AI_INFERENCE"


def test_classify_expense_nature_override():
    data = json.loads(
        handle_tool(
            "classify_expense_nature",
            {"category_id": "alimentacao", "overrides": {"alimentacao": "FIXED"}},
        )
    )
    assert data["source"] == "USER"


def test_unknown_tool():
    assert handle_tool("nope", {}) is None
    content = asyncio.run(call_tool("nope", {}))
    assert content[0].text == "Unknown tool: nope"


def test_invalid_arguments_reported():
    content = asyncio.run(
        call_tool("classify_expense_nature", {"category_id": "casa", "history": [{"amount": 1}]})
    )
    assert content[0].text.startswith("Error: invalid arguments")

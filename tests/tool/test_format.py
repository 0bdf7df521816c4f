"""Tests for the format library."""

import io
import json

from eks_deploy.tool.format import (
    JsonFormatter,
    PrintFormatter,
    YamlFormatter,
    format_columns,
)


def test_format_columns_empty() -> None:
    """Tests with no rows."""
    assert list(format_columns([], [])) == []


def test_format_columns_empty_rows() -> None:
    """Tests with no rows."""
    assert list(format_columns(["a", "b", "c"], [])) == ["a    b    c"]


def test_format_columns_rows() -> None:
    """Tests format with normal rows"""
    assert list(
        format_columns(
            ["stage", "status"], [["terraform init", "ok"], ["verify", "FAILED"]]
        )
    ) == [
        "stage             status",
        "terraform init    ok",
        "verify            FAILED",
    ]


def test_print_formatter() -> None:
    """Print formatting with empty data."""
    formatter = PrintFormatter()
    assert list(formatter.format([])) == []


def test_print_formatter_keys() -> None:
    """Print formatting with column names and missing values."""
    formatter = PrintFormatter(keys=["name", "passed", "detail"])
    assert list(
        formatter.format(
            [
                {"name": "api-gateway", "passed": True, "detail": "UP"},
                {"name": "load-balancer", "passed": False, "url": None},
            ],
        )
    ) == [
        "NAME             PASSED    DETAIL",
        "api-gateway      pass      UP",
        "load-balancer    FAIL      -",
    ]


def test_yaml_formatter() -> None:
    """Test a single document is printed in key order."""
    out = io.StringIO()
    YamlFormatter().print({"public_subnets": ["a"], "cluster_name": "webapp"}, file=out)
    assert out.getvalue() == "---\npublic_subnets:\n- a\ncluster_name: webapp\n"


def test_json_formatter() -> None:
    out = io.StringIO()
    JsonFormatter().print({"cluster_name": "webapp"}, file=out)
    assert json.loads(out.getvalue()) == {"cluster_name": "webapp"}
    assert out.getvalue().endswith("}\n")

import pytest

from metabase_mcp._exceptions import ErrorCode, InvalidParamsError
from metabase_mcp.mcp_server._tools.registry import (
    TOOL_DEFINITIONS,
    ExecuteCardArguments,
    PostgresDiagnosticsArguments,
    get_tool_definition,
    validate_arguments,
)

EXPECTED_TOOLS = [
    "list_dashboards",
    "list_cards",
    "list_databases",
    "execute_card",
    "get_dashboard_cards",
    "execute_query",
    "get_database_schema",
    "get_postgres_performance_diagnostics",
]

PRIMITIVE_TYPES = {"number", "string", "object", "array", "boolean", "integer"}


def test_catalog_order_and_names():
    assert [t.name for t in TOOL_DEFINITIONS] == EXPECTED_TOOLS


@pytest.mark.parametrize("definition", TOOL_DEFINITIONS, ids=lambda d: d.name)
def test_schema_self_check(definition):
    """Every advertised schema is well formed and agrees with its argument model."""
    assert definition.description.strip()
    schema = definition.input_schema
    assert schema["type"] == "object"
    properties = schema["properties"]
    for name, prop in properties.items():
        assert prop["type"] in PRIMITIVE_TYPES
        assert prop["description"].strip()
    required = schema.get("required", [])
    assert set(required) <= set(properties)

    model_fields = definition.args_model.model_fields
    assert set(properties) == set(model_fields)
    for name, field in model_fields.items():
        assert field.is_required() == (name in required)


def test_database_schema_tool_contract():
    schema = get_tool_definition("get_database_schema").input_schema
    assert schema["properties"]["database_id"]["type"] == "number"
    assert schema["required"] == ["database_id"]


def test_diagnostics_tool_contract():
    props = get_tool_definition("get_postgres_performance_diagnostics").input_schema["properties"]
    assert props["database_id"]["type"] == "number"
    assert props["num_slow_queries"]["type"] == "number"
    assert props["target_table_name"]["type"] == "string"


def test_execute_query_native_parameters_schema():
    prop = get_tool_definition("execute_query").input_schema["properties"]["native_parameters"]
    assert prop == {
        "type": "array",
        "description": "Optional parameters for the query",
        "items": {"type": "object"},
    }


def test_get_tool_definition_unknown():
    assert get_tool_definition("drop_database") is None


def test_validate_arguments_typed_model():
    args = validate_arguments(
        get_tool_definition("execute_card"), {"card_id": 5, "parameters": {"a": 1}}
    )
    assert isinstance(args, ExecuteCardArguments)
    assert args.card_id == 5
    assert args.parameters == {"a": 1}


def test_validate_arguments_none_means_empty():
    args = validate_arguments(get_tool_definition("list_cards"), None)
    assert args.model_dump() == {}


def test_validate_arguments_ignores_unknown_keys():
    args = validate_arguments(
        get_tool_definition("get_dashboard_cards"), {"dashboard_id": 1, "extra": True}
    )
    assert args.dashboard_id == 1


def test_missing_required_field_is_named():
    with pytest.raises(InvalidParamsError) as exc_info:
        validate_arguments(get_tool_definition("execute_card"), {})
    assert exc_info.value.code is ErrorCode.INVALID_PARAMS
    assert "card_id: Field required" in str(exc_info.value)
    assert "execute_card" in str(exc_info.value)


def test_every_failing_field_is_listed():
    with pytest.raises(InvalidParamsError) as exc_info:
        validate_arguments(get_tool_definition("execute_query"), {"database_id": "abc"})
    message = str(exc_info.value)
    assert "database_id:" in message
    assert "query: Field required" in message


def test_diagnostics_optional_fields_accept_any_json():
    args = validate_arguments(
        get_tool_definition("get_postgres_performance_diagnostics"),
        {"database_id": 2, "num_slow_queries": "abc", "target_table_name": 7},
    )
    assert isinstance(args, PostgresDiagnosticsArguments)
    assert args.num_slow_queries == "abc"
    assert args.target_table_name == 7


@pytest.mark.parametrize("value", [True, False, "2", 2.5, None, [2]])
def test_id_rejects_non_whole_numbers(value):
    with pytest.raises(InvalidParamsError) as exc_info:
        validate_arguments(get_tool_definition("get_database_schema"), {"database_id": value})
    assert "database_id:" in str(exc_info.value)


def test_id_accepts_integral_float():
    args = validate_arguments(get_tool_definition("get_dashboard_cards"), {"dashboard_id": 7.0})
    assert args.dashboard_id == 7
    assert isinstance(args.dashboard_id, int)

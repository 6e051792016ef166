"""
Tests for valuation configuration loading and validation.

Covers:
- YAML parsing into ValuationRule / ValuationConfig
- Deterministic checksums
- Validation errors and warnings
- get_active_config tracing and failure behavior
"""

import textwrap

import pytest
import yaml

from valuation_config import (
    DEFAULT_CURRENCY,
    ValuationRule,
    build_config,
    compute_checksum,
    get_active_config,
    validate_valuation_config,
)
from valuation_config.loader import load_config_file, parse_config, parse_rule
from valuation_kernel.exceptions import ValuationConfigError

VALID_YAML = """\
default_currency: INR
custom_valuations:
  - name: P2P Monthly Interest
    account: "Assets:p2p:*"
    note_contains: live
    formula: amount + simple_interest(amount, parse_note_float(note, "Int:"), days_held)
  - name: Fixed Deposit
    account: Assets:Bank:FD
    formula: |
      if_else(days_held > 365,
        compound_interest(amount, 7.5, days_held, 4),
        amount)
"""


def write_config(tmp_path, text, name="valuations.yaml"):
    path = tmp_path / name
    path.write_text(textwrap.dedent(text), encoding="utf-8")
    return path


class TestLoader:
    """YAML documents become typed snapshots."""

    def test_parse_valid_file(self, tmp_path):
        path = write_config(tmp_path, VALID_YAML)
        config = load_config_file(path)
        assert config.default_currency == "INR"
        assert config.rule_count == 2
        first, second = config.rules
        assert first == ValuationRule(
            name="P2P Monthly Interest",
            account="Assets:p2p:*",
            formula='amount + simple_interest(amount, parse_note_float(note, "Int:"), days_held)',
            note_contains="live",
        )
        assert second.note_contains == ""
        assert second.formula.startswith("if_else(")
        assert not second.formula.endswith("\n")
        assert config.source == str(path)

    def test_default_currency_when_absent(self):
        config = parse_config({"custom_valuations": []})
        assert config.default_currency == DEFAULT_CURRENCY
        assert config.rules == ()

    def test_empty_document(self, tmp_path):
        config = load_config_file(write_config(tmp_path, ""))
        assert config.rule_count == 0

    def test_top_level_must_be_mapping(self, tmp_path):
        with pytest.raises(ValueError, match="top level must be a mapping"):
            load_config_file(write_config(tmp_path, "- a\n- b\n"))

    def test_rules_must_be_a_list(self):
        with pytest.raises(ValueError, match="must be a list"):
            parse_config({"custom_valuations": {"name": "x"}})

    def test_missing_formula(self):
        with pytest.raises(KeyError):
            parse_rule({"name": "x", "account": "Assets:X"})

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config_file(tmp_path / "absent.yaml")

    def test_malformed_yaml(self, tmp_path):
        with pytest.raises(yaml.YAMLError):
            load_config_file(write_config(tmp_path, "custom_valuations: [\n"))


class TestChecksum:
    """Same rules, same checksum."""

    def test_deterministic(self):
        rules = [ValuationRule("a", "Assets:A", "amount")]
        assert build_config(rules).checksum == build_config(list(rules)).checksum

    def test_source_not_part_of_checksum(self):
        rules = [ValuationRule("a", "Assets:A", "amount")]
        assert build_config(rules, source="x").checksum == build_config(rules, source="y").checksum

    def test_changes_with_rules(self):
        a = build_config([ValuationRule("a", "Assets:A", "amount")])
        b = build_config([ValuationRule("a", "Assets:A", "amount * 2")])
        assert a.checksum != b.checksum

    def test_key_order_irrelevant(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})


class TestValidator:
    """Errors block loading; warnings do not."""

    def test_valid_config(self, tmp_path):
        result = validate_valuation_config(load_config_file(write_config(tmp_path, VALID_YAML)))
        assert result.is_valid
        assert result.warnings == []

    def test_formula_syntax_error_reported(self):
        config = build_config([ValuationRule("broken", "Assets:A", "amount +")])
        result = validate_valuation_config(config)
        assert not result.is_valid
        assert result.errors[0].startswith("rule 1 ('broken'): syntax error:")

    def test_non_numeric_formula_reported(self):
        config = build_config([ValuationRule("text", "Assets:A", '"string result"')])
        result = validate_valuation_config(config)
        assert result.errors == ["rule 1 ('text'): formula must return a number, got string"]

    def test_empty_fields(self):
        config = build_config([ValuationRule("", "", "")])
        result = validate_valuation_config(config)
        assert result.errors == [
            "rule 1: name must not be empty",
            "rule 1: account pattern must not be empty",
            "rule 1: formula must not be empty",
        ]

    def test_empty_currency(self):
        result = validate_valuation_config(build_config([], default_currency=""))
        assert "default_currency must not be empty" in result.errors

    def test_duplicate_names_warn(self):
        config = build_config([
            ValuationRule("same", "Assets:A", "amount"),
            ValuationRule("same", "Assets:B", "amount"),
        ])
        result = validate_valuation_config(config)
        assert result.is_valid
        assert result.warnings == ["rule name 'same' is used 2 times"]

    def test_shadowed_rule_warns(self):
        config = build_config([
            ValuationRule("first", "Assets:p2p:*", "amount"),
            ValuationRule("second", "Assets:p2p:*", "amount * 2"),
        ])
        result = validate_valuation_config(config)
        assert result.is_valid
        assert len(result.warnings) == 1
        assert "only the first one is ever applied" in result.warnings[0]

    def test_same_pattern_different_note_filter_ok(self):
        config = build_config([
            ValuationRule("live", "Assets:p2p:*", "amount", note_contains="live"),
            ValuationRule("rest", "Assets:p2p:*", "amount"),
        ])
        assert validate_valuation_config(config).warnings == []


class TestGetActiveConfig:
    """Single entrypoint: load, validate, trace."""

    def test_trace_emitted(self, tmp_path, captured_logs):
        path = write_config(tmp_path, VALID_YAML)
        config = get_active_config(path)
        traces = [r for r in captured_logs() if r["message"] == "VALUATION_CONFIG_TRACE"]
        assert len(traces) == 1
        assert traces[0]["checksum"] == config.checksum
        assert traces[0]["rule_count"] == 2
        assert traces[0]["default_currency"] == "INR"
        assert traces[0]["source"] == str(path)

    def test_invalid_config_raises(self, tmp_path):
        path = write_config(tmp_path, """\
            custom_valuations:
              - name: broken
                account: Assets:A
                formula: amount +
        """)
        with pytest.raises(ValuationConfigError) as exc_info:
            get_active_config(path)
        assert exc_info.value.source == str(path)
        assert exc_info.value.code == "VALUATION_CONFIG_INVALID"
        assert len(exc_info.value.errors) == 1

    def test_warnings_logged(self, tmp_path, captured_logs):
        path = write_config(tmp_path, """\
            custom_valuations:
              - name: dup
                account: Assets:A
                formula: amount
              - name: dup
                account: Assets:B
                formula: amount
        """)
        get_active_config(path)
        warnings = [r for r in captured_logs() if r["message"] == "valuation_config_warning"]
        assert [w["warning"] for w in warnings] == ["rule name 'dup' is used 2 times"]
        assert warnings[0]["level"] == "WARNING"

"""Tests for jeff type descriptors."""

import pytest

from hugr_jeff._types import BIT, QUBIT, JeffType, TypeKind, is_bit_type, is_linear_type, parse_type


class TestParseType:
    """Tests for parse_type."""

    @pytest.mark.parametrize(
        ("descriptor", "expected"),
        [
            ("qubit", QUBIT),
            ("qureg", JeffType(TypeKind.QUREG)),
            ("int", JeffType(TypeKind.INT, 64)),
            ("int8", JeffType(TypeKind.INT, 8)),
            ("int1", BIT),
            ("bool", BIT),
            ("float", JeffType(TypeKind.FLOAT, 64)),
            ("float32", JeffType(TypeKind.FLOAT, 32)),
            ("int16[]", JeffType(TypeKind.INT_ARRAY, 16)),
            ("float[]", JeffType(TypeKind.FLOAT_ARRAY, 64)),
            (" int32 ", JeffType(TypeKind.INT, 32)),
        ],
    )
    def test_known(self, descriptor: str, expected: JeffType) -> None:
        assert parse_type(descriptor) == expected

    @pytest.mark.parametrize("descriptor", ["", "tensor", "int0", "int65", "float16", "qubit[]", "Int8"])
    def test_unknown(self, descriptor: str) -> None:
        assert parse_type(descriptor) is None

    @pytest.mark.parametrize("descriptor", ["qubit", "qureg", "int1", "int64", "float32", "int8[]", "float64[]"])
    def test_str_is_canonical(self, descriptor: str) -> None:
        parsed = parse_type(descriptor)
        assert parsed is not None
        assert str(parsed) == descriptor


class TestTypePredicates:
    """Tests for linearity and bit predicates."""

    def test_quantum_types_are_linear(self) -> None:
        assert is_linear_type("qubit")
        assert is_linear_type("qureg")

    def test_classical_types_are_copyable(self) -> None:
        assert not is_linear_type("int")
        assert not is_linear_type("float64[]")

    def test_unknown_types_are_copyable(self) -> None:
        assert not is_linear_type("tensor")

    def test_bit_types(self) -> None:
        assert is_bit_type("int1")
        assert is_bit_type("bool")
        assert not is_bit_type("int2")
        assert not is_bit_type("int1[]")

"""TOG Gradual Type Checker Tests.

Tests for:
- Type consistency (~) and the precision lattice
- Let / argument / return / operand / field mismatches
- Unannotated code staying silent
- check_source folding front-end errors into diagnostics
"""

import pytest

from tog.errors import ErrorKind
from tog.parser import parse
from tog.type_checker import (
    DYNAMIC, FLOAT, INT, STRING, BOOL,
    GradualType, assignable, check_source, check_types, consistent,
    precision_join, precision_meet,
)


def diagnostics(source):
    return check_types(parse(source))


# ---------------------------------------------------------------------------
# Lattice
# ---------------------------------------------------------------------------

class TestConsistency:
    """The ~ relation: reflexive, symmetric, not transitive."""

    def test_dynamic_consistent_with_all(self):
        for t in (INT, FLOAT, STRING, BOOL, GradualType.array(INT)):
            assert consistent(DYNAMIC, t)
            assert consistent(t, DYNAMIC)

    def test_reflexive(self):
        assert consistent(INT, INT)

    def test_distinct_concrete_types_inconsistent(self):
        assert not consistent(INT, STRING)

    def test_not_transitive(self):
        assert consistent(INT, DYNAMIC) and consistent(DYNAMIC, STRING)
        assert not consistent(INT, STRING)

    def test_array_elements(self):
        assert consistent(GradualType.array(INT), GradualType.array(DYNAMIC))
        assert not consistent(GradualType.array(INT), GradualType.array(STRING))

    def test_int_assignable_to_float_only(self):
        assert assignable(INT, FLOAT)
        assert not assignable(FLOAT, INT)
        assert assignable(GradualType.array(INT), GradualType.array(FLOAT))


class TestPrecision:

    def test_meet_prefers_known(self):
        assert precision_meet(DYNAMIC, INT) == INT
        assert precision_meet(STRING, DYNAMIC) == STRING

    def test_meet_of_inconsistent_is_none(self):
        assert precision_meet(INT, STRING) is None

    def test_meet_of_arrays(self):
        assert precision_meet(GradualType.array(DYNAMIC), GradualType.array(INT)) == GradualType.array(INT)

    def test_join(self):
        assert precision_join(INT, FLOAT) == FLOAT
        assert precision_join(INT, STRING) == DYNAMIC
        assert precision_join(INT, INT) == INT

    def test_str(self):
        assert str(GradualType.array(INT)) == "array[int]"
        assert str(DYNAMIC) == "?"


# ---------------------------------------------------------------------------
# Checker
# ---------------------------------------------------------------------------

class TestCleanPrograms:

    def test_annotated_program(self):
        assert diagnostics("""
struct Point { x: float, y: float }
fn dist2(p: Point) -> float { p.x * p.x + p.y * p.y }
fn main() {
    let p: Point = Point { x: 3.0, y: 4 }
    let d: float = dist2(p)
    print("d=" + d)
}
""") == []

    def test_unannotated_code_is_silent(self):
        assert diagnostics("""
fn f(a, b) { a + b }
fn main() { f(1, "x"); f([1], [2]) }
""") == []

    def test_int_flows_into_float(self):
        assert diagnostics("fn main() { let x: float = 3 }") == []

    def test_empty_array_fits_any_array(self):
        assert diagnostics("fn main() { let xs: array[string] = [] }") == []

    def test_string_concatenation(self):
        assert diagnostics('fn main() { "n=" + 1 + true }') == []

    def test_any_annotation_is_dynamic(self):
        assert diagnostics('fn id(x: any) -> any { x }\nfn main() { id(1); id("s") }') == []


class TestMismatches:

    def test_let_binding(self):
        diags = diagnostics('fn main() { let x: int = "hello" }')
        assert len(diags) == 1
        assert diags[0].kind == ErrorKind.TYPE_ERROR
        assert diags[0].details["expected"] == "int"
        assert diags[0].details["actual"] == "string"
        assert diags[0].location is not None

    def test_array_element_type(self):
        diags = diagnostics('fn main() { let xs: array[int] = ["a"] }')
        assert len(diags) == 1

    def test_argument(self):
        diags = diagnostics('fn sq(n: int) -> int { n * n }\nfn main() { sq("x") }')
        assert len(diags) == 1
        assert diags[0].details["position"] == 1

    def test_arity(self):
        diags = diagnostics("fn one(n) { n }\nfn main() { one(1, 2) }")
        assert [d.kind for d in diags] == [ErrorKind.ARITY_ERROR]

    def test_return_statement(self):
        diags = diagnostics('fn f() -> int { return "s" }')
        assert len(diags) == 1

    def test_trailing_value(self):
        diags = diagnostics("fn f() -> string { 42 }")
        assert len(diags) == 1
        assert diags[0].details["function"] == "f"

    def test_operands(self):
        diags = diagnostics('fn main() { let a = 1; let b = "x"; a - b }')
        assert len(diags) == 1
        assert diags[0].details["operator"] == "-"

    def test_concatenating_array(self):
        assert len(diagnostics('fn main() { "s" + [1] }')) == 1

    def test_comparison(self):
        assert len(diagnostics('fn main() { 1 < "a" }')) == 1

    def test_struct_field(self):
        diags = diagnostics('struct P { x: int }\nfn main() { P { x: "no" } }')
        assert len(diags) == 1
        assert diags[0].details["field"] == "x"

    def test_reassignment_changes_type(self):
        assert len(diagnostics('fn main() { let x = 1; x = "s" }')) == 1

    def test_method_bodies_checked(self):
        diags = diagnostics("""
struct C { n: int }
impl C { fn get(self) -> string { self.n } }
""")
        assert len(diags) == 1

    def test_shadowed_function_name_not_checked(self):
        assert diagnostics("fn one(n) { n }\nfn main() { let one = fn(a, b) { a }; one(1, 2) }") == []


class TestCheckSource:

    def test_clean(self):
        assert check_source("fn main() { 1 }") == []

    def test_parse_error_is_single_diagnostic(self):
        diags = check_source("fn main( {")
        assert len(diags) == 1
        assert diags[0].kind == ErrorKind.PARSE_ERROR

    def test_lex_error(self):
        assert [d.kind for d in check_source("let a = @")] == [ErrorKind.LEX_ERROR]

    def test_definition_error(self):
        diags = check_source("trait T { fn a(self) }\nstruct S { x: int }\nimpl T for S { }")
        assert [d.kind for d in diags] == [ErrorKind.TRAIT_CONFORMANCE_ERROR]

    @pytest.mark.parametrize("source", [
        'fn main() { let x: int = "s" }',
        "fn f() -> int { true }",
    ])
    def test_type_findings(self, source):
        diags = check_source(source, filename="prog.tog")
        assert len(diags) == 1
        assert diags[0].location.file == "prog.tog"

"""TOG Pattern Matching and Method Dispatch Tests.

Covers:
- Enum construction and first-match-wins arm selection
- Payload binding and variant shape checks at load time
- Inherent versus trait method resolution
- Trait conformance errors
"""

import io

import pytest

from tog.errors import (
    ArityError, DispatchError, ErrorKind, MatchError, MethodNotFoundError,
    TogNameError, TogTypeError, TraitConformanceError,
)
from tog.interpreter import match_pattern, run_source
from tog.ast_nodes import IdentPattern, LiteralPattern, VariantPattern, WildcardPattern
from tog.values import UNIT, EnumValue


def run(source):
    out = io.StringIO()
    return run_source(source, output=out), out.getvalue()


SHAPES = """
trait Area {
    fn area(self) -> float
}

struct Circle { radius: float }
struct Rect { w: float, h: float }

impl Area for Circle {
    fn area(self) -> float { 3.0 * self.radius * self.radius }
}

impl Area for Rect {
    fn area(self) -> float { self.w * self.h }
}
"""


# ---------------------------------------------------------------------------
# Pattern matching
# ---------------------------------------------------------------------------

class TestEnumMatching:

    def test_option_round_trip(self):
        value, _ = run("""
fn main() {
    match Option::Some(5) {
        Option::Some(x) => x,
        Option::None => 0
    }
}
""")
        assert value == 5

    def test_none_variant_selects_unit_arm(self):
        value, _ = run("""
fn main() {
    let o = Option::None
    match o { Option::Some(x) => x, Option::None => -1 }
}
""")
        assert value == -1

    def test_none_falls_through_to_wildcard(self):
        value, _ = run('fn main() { match Option::None { Option::Some(v) => v, _ => "fallback" } }')
        assert value == "fallback"

    def test_none_without_fallback_arm(self):
        with pytest.raises(MatchError) as exc:
            run("fn main() { match Option::None { Option::Some(v) => v } }")
        assert exc.value.details["value"] == "Option::None"

    def test_user_enum_with_payloads(self):
        value, out = run("""
enum Shape { Circle(float), Square(float), Empty }

fn describe(s) {
    match s {
        Shape::Circle(r) => "circle " + r,
        Shape::Square(side) => "square " + side,
        Shape::Empty => "empty"
    }
}

fn main() {
    for s in [Shape::Circle(1.5), Shape::Square(2.0), Shape::Empty] {
        print(describe(s))
    }
}
""")
        assert out == "circle 1.5\nsquare 2\nempty\n"

    def test_first_matching_arm_wins(self):
        first, _ = run("fn main() { match 3 { x => \"bind\", 3 => \"three\" } }")
        second, _ = run("fn main() { match 3 { 3 => \"three\", x => \"bind\" } }")
        assert first == "bind"
        assert second == "three"

    def test_binding_scoped_to_arm(self):
        with pytest.raises(TogNameError):
            run("fn main() { match 1 { n => n }\n n }")

    def test_no_arm_matches(self):
        with pytest.raises(MatchError) as exc:
            run("fn main() { match 7 { 1 => \"one\", 2 => \"two\" } }")
        assert exc.value.diagnostic.kind == ErrorKind.MATCH_ERROR
        assert exc.value.details["value"] == "7"

    def test_wildcard_payload_does_not_bind(self):
        value, _ = run("""
fn main() {
    match Result::Err("boom") { Result::Ok(v) => v, Result::Err(_) => "failed" }
}
""")
        assert value == "failed"

    def test_match_on_strings_and_bools(self):
        value, _ = run("""
fn main() {
    let a = match "hi" { "hello" => 1, "hi" => 2, _ => 3 }
    let b = match false { true => 10, false => 20 }
    a + b
}
""")
        assert value == 22

    def test_match_arm_can_return_early(self):
        value, _ = run("""
fn check(o) {
    let v = match o { Option::Some(x) => x, Option::None => { return "missing" } }
    "got " + v
}
fn main() { check(Option::None) + "/" + check(Option::Some(1)) }
""")
        assert value == "missing/got 1"

    def test_enum_equality(self):
        value, _ = run("fn main() { Option::Some([1]) == Option::Some([1]) && Option::None != Option::Some(1) }")
        assert value is True


class TestMatchPatternFunction:
    """match_pattern on runtime values directly."""

    def test_wildcard_and_ident(self):
        assert match_pattern(WildcardPattern(), 5) == {}
        assert match_pattern(IdentPattern(name="n"), 5) == {"n": 5}

    def test_literal_uses_numeric_equality(self):
        assert match_pattern(LiteralPattern(value=2), 2.0) == {}
        assert match_pattern(LiteralPattern(value=True), 1) is None

    def test_none_literal_matches_unit(self):
        assert match_pattern(LiteralPattern(value=None), UNIT) == {}

    def test_variant_payload_presence_must_agree(self):
        pattern = VariantPattern(enum_name="Pair", variant_name="One", binder=None, has_payload=False)
        assert match_pattern(pattern, EnumValue("Pair", "One", 1)) is None
        assert match_pattern(pattern, EnumValue("Pair", "One")) == {}

    def test_variant_of_other_enum(self):
        pattern = VariantPattern(enum_name="Option", variant_name="Some", binder="x", has_payload=True)
        assert match_pattern(pattern, EnumValue("Result", "Some", 1)) is None


class TestEnumShapeChecks:
    """Variant arity and existence are checked when the program loads."""

    def test_payload_given_to_unit_variant(self):
        with pytest.raises(ArityError):
            run("enum E { A, B(int) }\nfn main() { E::A(1) }")

    def test_payload_missing(self):
        with pytest.raises(ArityError):
            run("enum E { A, B(int) }\nfn main() { E::B }")

    def test_pattern_arity_checked(self):
        with pytest.raises(ArityError):
            run("enum E { A, B(int) }\nfn main() { match E::A { E::A(x) => x, _ => 0 } }")

    def test_checked_even_in_uncalled_function(self):
        with pytest.raises(ArityError):
            run("fn never() { Option::Some }\nfn main() { 1 }")

    def test_unknown_variant(self):
        with pytest.raises(TogNameError) as exc:
            run("fn main() { Option::Maybe(1) }")
        assert exc.value.details == {"enum": "Option", "variant": "Maybe"}

    def test_duplicate_variant(self):
        with pytest.raises(TogTypeError):
            run("enum E { A, A }\nfn main() { 1 }")

    def test_user_enum_replaces_prelude(self):
        value, _ = run("""
enum Option { Some(int), Nothing }
fn main() { match Option::Nothing { Option::Nothing => "custom", _ => "prelude" } }
""")
        assert value == "custom"


# ---------------------------------------------------------------------------
# Method dispatch
# ---------------------------------------------------------------------------

class TestTraitDispatch:

    def test_trait_methods_by_receiver_type(self):
        value, _ = run(SHAPES + """
fn main() {
    let shapes = [Circle { radius: 1.0 }, Rect { w: 2.0, h: 3.0 }]
    let total = 0.0
    for s in shapes { total = total + s.area() }
    total
}
""")
        assert value == pytest.approx(9.0)

    def test_inherent_method_in_struct_body(self):
        value, _ = run("""
struct Point {
    x: int,
    y: int
    fn sum(self) -> int { self.x + self.y }
}
fn main() { Point { x: 2, y: 5 }.sum() }
""")
        assert value == 7

    def test_inherent_wins_over_trait(self):
        value, _ = run("""
trait Named { fn name(self) -> string }
struct Dog { age: int }
impl Named for Dog { fn name(self) -> string { "trait" } }
impl Dog { fn name(self) -> string { "inherent" } }
fn main() { Dog { age: 1 }.name() }
""")
        assert value == "inherent"

    def test_method_arguments_and_self_mutation(self):
        value, _ = run("""
struct Counter { n: int }
impl Counter {
    fn add(self, k) { self.n = self.n + k }
}
fn main() {
    let c = Counter { n: 1 }
    c.add(4)
    c.add(5)
    c.n
}
""")
        assert value == 10

    def test_method_arity_checked(self):
        with pytest.raises(ArityError):
            run("struct C { n: int }\nimpl C { fn get(self) { self.n } }\nfn main() { C { n: 1 }.get(2) }")

    def test_methods_on_enum_types(self):
        value, _ = run("""
enum Light { Red, Green }
impl Light {
    fn next(self) { match self { Light::Red => Light::Green, Light::Green => Light::Red } }
}
fn main() { to_string(Light::Red.next()) }
""")
        assert value == "Light::Green"

    def test_ambiguous_trait_methods(self):
        with pytest.raises(DispatchError) as exc:
            run("""
trait A { fn go(self) }
trait B { fn go(self) }
struct S { v: int }
impl A for S { fn go(self) { 1 } }
impl B for S { fn go(self) { 2 } }
fn main() { S { v: 0 }.go() }
""")
        assert exc.value.details["traits"] == ["A", "B"]

    def test_unknown_method(self):
        with pytest.raises(MethodNotFoundError) as exc:
            run(SHAPES + "fn main() { Circle { radius: 1.0 }.perimeter() }")
        assert exc.value.details == {"type": "Circle", "method": "perimeter"}

    def test_method_on_primitive_without_impl(self):
        with pytest.raises(MethodNotFoundError):
            run("fn main() { 5.double() }")

    def test_method_on_primitive_with_impl(self):
        value, _ = run("impl int { fn double(self) { self * 2 } }\nfn main() { 5.double() }")
        assert value == 10


class TestTraitConformance:

    def test_missing_method(self):
        with pytest.raises(TraitConformanceError) as exc:
            run("""
trait Shape { fn area(self) -> float  fn name(self) -> string }
struct Sq { s: float }
impl Shape for Sq { fn area(self) -> float { self.s } }
fn main() { 1 }
""")
        assert exc.value.details["method"] == "name"

    def test_parameter_count_mismatch(self):
        with pytest.raises(TraitConformanceError):
            run("""
trait Scale { fn scale(self, k) }
struct V { x: int }
impl Scale for V { fn scale(self) { self.x } }
fn main() { 1 }
""")

    def test_extra_method(self):
        with pytest.raises(TraitConformanceError):
            run("""
trait T { fn a(self) }
struct S { x: int }
impl T for S { fn a(self) { 1 } fn b(self) { 2 } }
fn main() { 1 }
""")

    def test_unknown_trait(self):
        with pytest.raises(TraitConformanceError):
            run("struct S { x: int }\nimpl Missing for S { fn a(self) { 1 } }\nfn main() { 1 }")

    def test_duplicate_impl(self):
        with pytest.raises(TraitConformanceError):
            run("""
trait T { fn a(self) }
struct S { x: int }
impl T for S { fn a(self) { 1 } }
impl T for S { fn a(self) { 2 } }
fn main() { 1 }
""")

    def test_errors_reported_before_running(self):
        out = io.StringIO()
        with pytest.raises(TraitConformanceError):
            run_source('print("side effect")\ntrait T { fn a(self) }\nimpl T for int { }', output=out)
        assert out.getvalue() == ""

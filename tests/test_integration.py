"""End-to-end integration tests: source text in, printed output out."""

import io

import pytest

from tube_core import BuildError, EvalConfig, run_source


def output(source):
    out = io.StringIO()
    run_source(source, EvalConfig(stdout=out))
    return out.getvalue()


def lines(source):
    return output(source).splitlines()


# ---------------------------------------------------------------------------
# Scoping
# ---------------------------------------------------------------------------

def test_shadowing_and_restore():
    src = """
    var x = 1;
    if (true) {
        var x = 2;
        print(x);
    }
    print(x);
    """
    assert lines(src) == ["2", "1"]

def test_inner_assignment_reaches_outer():
    src = """
    var x = 1;
    if (true) { x = 5; }
    print(x);
    """
    assert lines(src) == ["5"]

def test_for_variable_scoped_to_loop():
    src = """
    var i = 'outer';
    for (var i = 0; i < 2; i++) { }
    print(i);
    """
    assert lines(src) == ["outer"]

def test_declaration_with_absent_value_binds_name():
    src = """
    var a = [];
    var v = a.pop();
    v = 1;
    print(v);
    """
    assert lines(src) == ["1"]

def test_declaration_with_absent_value_shadows():
    src = """
    var a = [];
    var x = 1;
    if (true) {
        var x = a.pop();
        x = 9;
    }
    print(x);
    """
    assert lines(src) == ["1"]


# ---------------------------------------------------------------------------
# Values and aliasing
# ---------------------------------------------------------------------------

def test_object_aliasing():
    src = """
    var a = {};
    var b = a;
    b.k = 5;
    print(a.k);
    """
    assert lines(src) == ["5"]

def test_array_aliasing():
    src = """
    var a = [1, 2];
    var b = a;
    b.push(3);
    print(a.join());
    """
    assert lines(src) == ["1,2,3"]

def test_primitives_copied():
    src = """
    var a = 'x';
    var b = a;
    b = b + 'y';
    print(a, ' ', b);
    """
    assert lines(src) == ["x xy"]

def test_nested_objects():
    src = """
    var o = {inner: {n: 1}};
    o.inner.n = o.inner.n + 1;
    print(o.inner.n);
    """
    assert lines(src) == ["2"]

def test_self_reference():
    src = """
    var o = {};
    o.self = o;
    o.self.v = 3;
    print(o.v);
    """
    assert lines(src) == ["3"]

def test_object_literal_keeps_absent_keys():
    src = """
    var src = {};
    var o = {k: src.zz, j: 1};
    var n = 0;
    for (var key in o) { n++; }
    print(n, ' ', typeof o.k);
    """
    assert lines(src) == ["2 void"]


# ---------------------------------------------------------------------------
# Operators
# ---------------------------------------------------------------------------

def test_number_string_concat():
    assert lines('print(1 + "x");') == ["1x"]

def test_literal_radixes():
    assert lines("print(0x10, ' ', 010, ' ', 10, ' ', 0x1F);") == ["16 8 10 31"]

def test_leading_zero_reads_octal_prefix():
    assert lines("print(08, ' ', 019, ' ', 0.25);") == ["0 1 0.25"]

def test_array_index_needs_plain_digits():
    src = """
    var a = [1, 2, 3, 4];
    print(a['3'], a[' 3'], a['1_0']);
    """
    assert lines(src) == ["4undefinedundefined"]

def test_increment_from_five():
    src = """
    var x = 5;
    print(x++, ' ', x);
    x = 5;
    print(++x, ' ', x);
    """
    assert lines(src) == ["5 6", "6 6"]

def test_abstract_equality_with_bool():
    assert lines("print(1 == true, ' ', 1 === 1, ' ', 1 === '1');") == ["true true false"]

def test_number_formatting():
    assert lines("print(1000000, ' ', 1 / 3, ' ', 0.5);") == ["1e+06 0.333333 0.5"]

def test_division_by_zero():
    assert lines("print(1 / 0, ' ', -1 / 0, ' ', 0 / 0);") == ["inf -inf nan"]

def test_postfix_and_prefix():
    src = """
    var x = 1;
    print(x++);
    print(x);
    print(++x);
    """
    assert lines(src) == ["1", "2", "3"]

def test_equality():
    src = """
    print(1 == '1');
    print(1 === '1');
    print(null == undefinedName);
    print(0 / 0 == 0 / 0);
    """
    assert lines(src) == ["true", "false", "true", "false"]

def test_short_circuit():
    src = """
    var n = 0;
    false && n++;
    true || n++;
    print(n);
    """
    assert lines(src) == ["0"]

def test_bitwise():
    assert lines("print(5 & 3, ' ', 5 | 3, ' ', ~5, ' ', -1 >>> 28);") == ["1 7 -6 15"]

def test_casts():
    src = """
    print(Number('42') + 1);
    print(String(12) + 3);
    print(Boolean(''));
    """
    assert lines(src) == ["43", "123", "false"]

def test_typeof():
    src = """
    var o = {};
    print(typeof 1, ' ', typeof 'a', ' ', typeof o, ' ', typeof null);
    """
    assert lines(src) == ["number string object null"]


# ---------------------------------------------------------------------------
# Control flow
# ---------------------------------------------------------------------------

def test_while_loop():
    src = """
    var i = 0;
    var s = '';
    while (i < 3) { s = s + i; i++; }
    print(s);
    """
    assert lines(src) == ["012"]

def test_for_in_order():
    src = """
    var o = {z: 1, a: 2};
    o.m = 3;
    for (var k in o) { print(k, '=', o[k]); }
    """
    assert lines(src) == ["z=1", "a=2", "m=3"]

def test_else_if():
    src = """
    var n = 5;
    if (n < 3) { print('small'); }
    else if (n < 10) { print('medium'); }
    else { print('large'); }
    """
    assert lines(src) == ["medium"]

def test_break_is_noop():
    src = """
    var i = 0;
    while (i < 3) { i++; break; }
    print(i);
    """
    assert lines(src) == ["3"]


# ---------------------------------------------------------------------------
# Arrays and delete
# ---------------------------------------------------------------------------

def test_push_pop():
    src = """
    var a = [];
    a.push('x');
    a.push('y');
    print(a.pop(), a.pop(), a.pop());
    """
    assert lines(src) == ["yxundefined"]

def test_join_separator():
    assert lines("var a = [1, 2, 3]; print(a.join(' | '));") == ["1 | 2 | 3"]

def test_delete_property():
    src = """
    var o = {a: 1, b: 2};
    delete o.a;
    for (var k in o) { print(k); }
    """
    assert lines(src) == ["b"]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

def test_build_error_stops_before_running():
    out = io.StringIO()
    with pytest.raises(BuildError):
        run_source("print('never');\nvar x = {} * 2;", EvalConfig(stdout=out))
    assert out.getvalue() == ""

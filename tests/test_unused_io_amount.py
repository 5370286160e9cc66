"""Unit tests for the unused_io_amount rule."""

from pathlib import Path

from iocheck.config import Config
from iocheck.context import FileContext, create_context
from iocheck.findings.sink import DiagnosticSink
from iocheck.hir import Call, Match, MatchSource, MethodCall, Other, Span, block_statements
from iocheck.hir import Path as HirPath
from iocheck.paths import IO_READ, IO_WRITE, TRY_INTO_RESULT
from iocheck.parser import create_parser, parse_bytes
from iocheck.resolver import ScopeResolver, TraitResolver
from iocheck.rules.unused_io_amount import (
    READ_EXACT_MSG,
    READ_MSG,
    WRITE_ALL_MSG,
    WRITE_MSG,
    UnusedIoAmountRule,
    check_stmt,
    classify,
    classify_and_emit,
    match_shape,
)


def _context(source: bytes, path: Path | None = None) -> FileContext:
    if path is None:
        path = Path("test.rs")
    parser = create_parser()
    tree = parse_bytes(source, parser=parser)
    return FileContext(path=path, source=source, tree=tree)


def _run_rule(source: bytes, config: Config | None = None) -> list:
    """Parse source, build context, run UnusedIoAmountRule, return findings."""
    ctx = _context(source)
    rule = UnusedIoAmountRule()
    return rule.run(ctx, config)


def test_write_propagated_with_question_mark():
    """`w.write(data)?;` on a Write bound reports the write_all message."""
    source = b"""
use std::io::{self, Write};

fn send<W: Write>(w: &mut W, data: &[u8]) -> io::Result<()> {
    w.write(data)?;
    Ok(())
}
"""
    findings = _run_rule(source)
    assert len(findings) == 1
    assert findings[0].rule_id == "unused-io-amount"
    assert findings[0].message == WRITE_ALL_MSG
    assert findings[0].message == (
        "written amount is not handled. Use the exact-fill write operation instead"
    )


def test_finding_attached_to_outer_expression():
    """The location is the whole `w.write(data)?` expression, not the inner call."""
    source = b"""use std::io::Write;
fn send<W: Write>(w: &mut W, data: &[u8]) -> std::io::Result<()> {
    w.write(data)?;
    Ok(())
}
"""
    findings = _run_rule(source)
    assert len(findings) == 1
    loc = findings[0].location
    assert loc.line == 3
    assert loc.column == 5
    assert loc.snippet == "w.write(data)?"
    assert findings[0].severity == "error"
    assert findings[0].category == "correctness"


def test_read_unwrapped():
    """`r.read(buf).unwrap();` on a Read implementor reports the read_exact message."""
    source = b"""
use std::io::Read;

fn fill<R: Read>(r: &mut R, buf: &mut [u8]) {
    r.read(buf).unwrap();
}
"""
    findings = _run_rule(source)
    assert len(findings) == 1
    assert findings[0].message == READ_EXACT_MSG
    assert findings[0].location.snippet == "r.read(buf).unwrap()"


def test_read_vectored_has_no_suggestion():
    """`socket.read_vectored(&mut bufs)?;` reports the short read message."""
    source = b"""
use std::io::{self, IoSliceMut, Read};
use std::net::TcpStream;

fn pull(socket: &mut TcpStream, bufs: &mut [IoSliceMut<'_>]) -> io::Result<()> {
    socket.read_vectored(bufs)?;
    Ok(())
}
"""
    findings = _run_rule(source)
    assert len(findings) == 1
    assert findings[0].message == READ_MSG
    assert findings[0].message == "read amount is not handled"


def test_write_vectored_has_no_suggestion():
    source = b"""
use std::io::{IoSlice, Write};
use std::fs::File;

fn push(file: &mut File, bufs: &[IoSlice<'_>]) {
    file.write_vectored(bufs).expect("write failed");
}
"""
    findings = _run_rule(source)
    assert len(findings) == 1
    assert findings[0].message == WRITE_MSG


def test_unwrap_family_variants_detected():
    """expect, unwrap, unwrap_or and unwrap_or_else all discard the count."""
    source = b"""
use std::io::Write;

fn log<W: Write>(w: &mut W) {
    w.write(b"a").unwrap();
    w.write(b"b").expect("write");
    w.write(b"c").unwrap_or(0);
    w.write(b"d").unwrap_or_else(|_| 0);
}
"""
    findings = _run_rule(source)
    assert len(findings) == 4
    assert all(f.message == WRITE_ALL_MSG for f in findings)
    assert [f.location.line for f in findings] == [5, 6, 7, 8]


def test_other_unwrap_like_methods_ignored():
    """Only the four unwrap-family names are discard shapes."""
    source = b"""
use std::io::Write;

fn log<W: Write>(w: &mut W) {
    w.write(b"a").ok();
    w.write(b"b").unwrap_or_default();
    w.write(b"c").is_ok();
}
"""
    assert _run_rule(source) == []


def test_bound_result_not_flagged():
    """A count bound to a name is out of reach, even if never used."""
    source = b"""
use std::io::{self, Read, Write};

fn copy<R: Read, W: Write>(r: &mut R, w: &mut W, buf: &mut [u8]) -> io::Result<()> {
    let n = r.read(buf)?;
    let _unused = w.write(&buf[..n])?;
    let _ = w.write(buf);
    Ok(())
}
"""
    assert _run_rule(source) == []


def test_handled_amount_not_flagged():
    source = b"""
use std::io::{self, Read};

fn fill<R: Read>(r: &mut R, buf: &mut [u8]) -> io::Result<usize> {
    let mut total = 0;
    while total < buf.len() {
        total += r.read(&mut buf[total..])?;
    }
    r.read_exact(buf)?;
    Ok(total)
}
"""
    assert _run_rule(source) == []


def test_exact_fill_operations_not_flagged():
    source = b"""
use std::io::{self, Read, Write};

fn roundtrip<S: Read + Write>(s: &mut S, buf: &mut [u8]) -> io::Result<()> {
    s.write_all(buf)?;
    s.read_exact(buf)?;
    s.flush()?;
    Ok(())
}
"""
    assert _run_rule(source) == []


def test_unrelated_read_method_not_flagged():
    """RwLock::read is an inherent method, not Read::read."""
    source = b"""
use std::sync::RwLock;

fn peek(lock: &RwLock<u32>) {
    lock.read().unwrap();
}

fn local() {
    let lock = RwLock::new(5);
    lock.read().unwrap();
    lock.write().unwrap();
}
"""
    assert _run_rule(source) == []


def test_same_name_on_other_trait_not_flagged():
    """A crate-local trait named Write does not count as std::io::Write."""
    source = b"""
trait Write {
    fn write(&mut self, data: &[u8]) -> Result<usize, ()>;
}

fn emit<W: Write>(w: &mut W) -> Result<(), ()> {
    w.write(b"frame")?;
    w.write(b"frame").unwrap();
    Ok(())
}
"""
    assert _run_rule(source) == []


def test_fmt_write_not_flagged():
    source = b"""
use std::fmt::Write;

fn render<W: Write>(w: &mut W) {
    w.write_str("x").unwrap();
}
"""
    assert _run_rule(source) == []


def test_ufcs_call_not_flagged():
    """`Write::write(&mut w, b)?` is a plain call, not a method call."""
    source = b"""
use std::io::{self, Write};

fn send<W: Write>(w: &mut W) -> io::Result<()> {
    Write::write(w, b"x")?;
    Ok(())
}
"""
    assert _run_rule(source) == []


def test_explicit_match_not_flagged():
    """An ordinary match over the result is not try-desugaring."""
    source = b"""
use std::io::Write;

fn send<W: Write>(w: &mut W) {
    match w.write(b"x") {
        Ok(_) => {}
        Err(e) => eprintln!("{e}"),
    }
    let done = true;
}
"""
    assert _run_rule(source) == []


def test_trailing_block_value_not_flagged():
    """The block's value expression is returned, not discarded."""
    source = b"""
use std::io::{self, Write};

fn send<W: Write>(w: &mut W) -> io::Result<usize> {
    w.write(b"x")
}
"""
    assert _run_rule(source) == []


def test_concrete_std_types_detected():
    source = b"""
use std::fs::File;
use std::io::{self, Read, Write};

fn run() -> io::Result<()> {
    let mut f = File::open("in.bin")?;
    let mut buf = [0u8; 16];
    f.read(&mut buf)?;
    let mut out = io::stdout();
    out.write(&buf)?;
    io::stderr().write(b"done").unwrap();
    let mut v = Vec::new();
    v.write(b"x").unwrap();
    Ok(())
}
"""
    findings = _run_rule(source)
    messages = [f.message for f in findings]
    assert messages == [READ_EXACT_MSG, WRITE_ALL_MSG, WRITE_ALL_MSG, WRITE_ALL_MSG]


def test_dyn_and_impl_trait_receivers():
    source = b"""
use std::io::{Read, Write};

fn a(w: &mut dyn Write) {
    w.write(b"a").unwrap();
}

fn b(mut r: impl Read) {
    let mut buf = [0u8; 4];
    r.read(&mut buf).unwrap();
}

fn c(w: Box<dyn Write + Send>) {
    let mut w = w;
    w.write(b"c").unwrap();
}
"""
    findings = _run_rule(source)
    assert [f.message for f in findings] == [WRITE_ALL_MSG, READ_EXACT_MSG, WRITE_ALL_MSG]


def test_where_clause_and_struct_field():
    source = b"""
use std::io::{self, Write};

struct Tee<W> {
    inner: W,
}

impl<W: Write> Tee<W> {
    fn emit(&mut self, data: &[u8]) -> io::Result<()> {
        self.inner.write(data)?;
        Ok(())
    }
}

fn flush_all<W>(w: &mut W) -> io::Result<()>
where
    W: Write,
{
    w.write(b"\\n")?;
    Ok(())
}
"""
    findings = _run_rule(source)
    assert len(findings) == 2
    assert [f.location.snippet for f in findings] == ["self.inner.write(data)?", 'w.write(b"\\n")?']


def test_local_impl_and_trait_default_method():
    source = b"""
use std::io::{self, Write};

struct Logger;

impl Write for Logger {
    fn write(&mut self, buf: &[u8]) -> io::Result<usize> {
        Ok(buf.len())
    }
    fn flush(&mut self) -> io::Result<()> {
        Ok(())
    }
}

trait Beacon: Write {
    fn ping(&mut self) {
        self.write(b"ping").unwrap();
    }
}

fn main() {
    let mut log = Logger;
    log.write(b"hello").unwrap();
}
"""
    findings = _run_rule(source)
    assert [f.location.line for f in findings] == [17, 23]


def test_nested_blocks_and_closures():
    source = b"""
use std::io::Write;
use std::fs::File;

fn main() {
    let mut f = File::create("out").unwrap();
    if true {
        f.write(b"nested").unwrap();
    }
    let emit = |w: &mut File| {
        w.write(b"closure").unwrap();
    };
    emit(&mut f);
}
"""
    findings = _run_rule(source)
    assert len(findings) == 2


def test_allow_attribute_suppresses():
    source = b"""
use std::io::Write;

#[allow(clippy::unused_io_amount)]
fn quiet<W: Write>(w: &mut W) {
    w.write(b"a").unwrap();
}

fn loud<W: Write>(w: &mut W) {
    #[allow(unused_io_amount)]
    w.write(b"b").unwrap();
    w.write(b"c").unwrap();
}
"""
    findings = _run_rule(source)
    assert len(findings) == 1
    assert findings[0].location.snippet == 'w.write(b"c").unwrap()'


def test_inner_allow_attribute_suppresses_file():
    source = b"""#![allow(clippy::unused_io_amount)]
use std::io::Write;

fn quiet<W: Write>(w: &mut W) {
    w.write(b"a").unwrap();
}
"""
    assert _run_rule(source) == []


def test_allow_attributes_ignored_when_disabled():
    source = b"""
use std::io::Write;

#[allow(clippy::unused_io_amount)]
fn quiet<W: Write>(w: &mut W) {
    w.write(b"a").unwrap();
}
"""
    config = Config(rules=[UnusedIoAmountRule()], respect_allow_attributes=False)
    assert len(_run_rule(source, config)) == 1


def test_severity_override_from_config():
    source = b"""
use std::io::Write;

fn send<W: Write>(w: &mut W) {
    w.write(b"a").unwrap();
}
"""
    config = Config(rules=[UnusedIoAmountRule()], severity_overrides={"unused-io-amount": "warning"})
    findings = _run_rule(source, config)
    assert len(findings) == 1
    assert findings[0].severity == "warning"


def test_pipeline_is_idempotent():
    """Running the pipeline twice on the same statement yields the same output."""
    source = b"""
use std::io::Write;

fn send<W: Write>(w: &mut W) {
    w.write(b"a").unwrap();
}
"""
    ctx = _context(source)
    resolver = ScopeResolver(ctx)
    block = next(n for n in _walk(ctx.root_node) if n.type == "block")
    stmt = list(block_statements(ctx, block))[0]

    first = DiagnosticSink(ctx, "unused-io-amount")
    second = DiagnosticSink(ctx, "unused-io-amount")
    check_stmt(stmt, resolver, first)
    check_stmt(stmt, resolver, second)
    assert len(first.findings) == 1
    assert first.findings == second.findings


def test_no_findings_in_file_without_io():
    source = b"""
fn add(a: u32, b: u32) -> u32 {
    let c = a + b;
    c
}
"""
    assert _run_rule(source) == []


def test_finding_has_location(tmp_path):
    """Findings have path, line, column, and snippet."""
    rs_file = tmp_path / "main.rs"
    rs_file.write_bytes(
        b"use std::io::Write;\nfn main() { std::io::stdout().write(b\"hi\").unwrap(); }\n"
    )
    ctx = create_context(rs_file)
    assert ctx is not None
    findings = UnusedIoAmountRule().run(ctx, None)
    assert len(findings) == 1
    loc = findings[0].location
    assert loc.path == rs_file
    assert loc.line == 2
    assert loc.column == 13
    assert loc.snippet == 'std::io::stdout().write(b"hi").unwrap()'


def _walk(node):
    yield node
    for child in node.children:
        yield from _walk(child)


def test_if_let_rebinding_shadows_receiver():
    """`if let Ok(mut r) = m.lock()` rebinds r; its inherent read is not Read::read."""
    source = b"""
use std::io::Read;
use std::sync::Mutex;

struct Foo;

impl Foo {
    fn read(&mut self, buf: &mut [u8]) -> Result<usize, ()> {
        Ok(buf.len())
    }
}

fn f<R: Read>(r: &mut R, m: &Mutex<Foo>, b: &mut [u8]) {
    if let Ok(mut r) = m.lock() {
        r.read(b).unwrap();
    }
}
"""
    assert _run_rule(source) == []


def test_while_let_rebinding_shadows_receiver():
    source = b"""
use std::io::Write;
use std::vec::IntoIter;

fn f<W: Write>(w: &mut W, mut it: IntoIter<Sender>) {
    while let Some(w) = it.next() {
        w.write(1).unwrap();
    }
}
"""
    assert _run_rule(source) == []


def test_if_let_binding_other_name_keeps_outer_receiver():
    source = b"""
use std::io::Write;

fn f<W: Write>(w: &mut W, next: Option<u8>) {
    if let Some(byte) = next {
        w.write(&[byte]).unwrap();
    }
}
"""
    findings = _run_rule(source)
    assert len(findings) == 1
    assert findings[0].message == WRITE_ALL_MSG


def test_allow_attribute_requires_exact_lint_name():
    source = b"""
use std::io::Write;

#[allow(unused_io_amount_other)]
fn a<W: Write>(w: &mut W) {
    w.write(b"a").unwrap();
}

#[allow(dead_code, clippy::unused_io_amount)]
fn b<W: Write>(w: &mut W) {
    w.write(b"b").unwrap();
}

#[allow(clippy::unused_io_amount_extra)]
fn c<W: Write>(w: &mut W) {
    w.write(b"c").unwrap();
}
"""
    findings = _run_rule(source)
    assert [f.location.snippet for f in findings] == ['w.write(b"a").unwrap()', 'w.write(b"c").unwrap()']


# --- stages on hand-built lowered nodes --------------------------------------


class _FixedResolver(TraitResolver):
    """Answers from a fixed set of traits, ignoring the receiver."""

    def __init__(self, *traits):
        self.traits = set(traits)

    def method_dispatches_through(self, call, trait_path):
        return tuple(trait_path) in self.traits


_SPAN = Span(start_byte=0, end_byte=10, line=1, column=1, end_line=1, end_column=11)


def _method(name: str, receiver=None) -> MethodCall:
    if receiver is None:
        receiver = HirPath(segments=("w",), span=_SPAN)
    return MethodCall(name=name, receiver=receiver, args=(), span=_SPAN)


def _try(scrutinee) -> Match:
    return Match(scrutinee=scrutinee, source=MatchSource.TRY_DESUGAR, span=_SPAN)


def _into_result(*args) -> Call:
    return Call(callee=HirPath(segments=TRY_INTO_RESULT, span=_SPAN), args=args, span=_SPAN)


def _sink() -> DiagnosticSink:
    return DiagnosticSink(_context(b"w.write(b);\n"), "unused-io-amount")


class TestShapeMatcher:
    def test_try_over_conversion_returns_its_argument(self):
        call = _method("write")
        assert match_shape(_try(_into_result(call))) is call

    def test_try_over_non_call_returns_scrutinee(self):
        scrutinee = Other(kind="await_expression", span=_SPAN)
        assert match_shape(_try(scrutinee)) is scrutinee

    def test_try_over_other_call_is_no_match(self):
        other = Call(callee=HirPath(segments=("std", "convert", "identity"), span=_SPAN), args=(_method("write"),), span=_SPAN)
        assert match_shape(_try(other)) is None

    def test_try_over_conversion_with_two_args_is_no_match(self):
        assert match_shape(_try(_into_result(_method("write"), _method("read")))) is None

    def test_normal_match_is_no_match(self):
        expr = Match(scrutinee=_method("write"), source=MatchSource.NORMAL, span=_SPAN)
        assert match_shape(expr) is None

    def test_unwrap_family_returns_receiver(self):
        inner = _method("read")
        for name in ("expect", "unwrap", "unwrap_or", "unwrap_or_else"):
            assert match_shape(_method(name, receiver=inner)) is inner

    def test_other_method_is_no_match(self):
        assert match_shape(_method("ok", receiver=_method("read"))) is None
        assert match_shape(_method("write")) is None


class TestClassifier:
    def test_decision_table(self):
        reader = _FixedResolver(IO_READ)
        writer = _FixedResolver(IO_WRITE)
        assert classify(_method("read"), reader) == READ_EXACT_MSG
        assert classify(_method("read_vectored"), reader) == READ_MSG
        assert classify(_method("write"), writer) == WRITE_ALL_MSG
        assert classify(_method("write_vectored"), writer) == WRITE_MSG

    def test_method_without_matching_trait(self):
        assert classify(_method("write"), _FixedResolver(IO_READ)) is None
        assert classify(_method("read"), _FixedResolver()) is None
        assert classify(_method("write_all"), _FixedResolver(IO_WRITE)) is None

    def test_non_method_call_is_ignored(self):
        sink = _sink()
        scrutinee = Other(kind="await_expression", span=_SPAN)
        expr = _try(scrutinee)
        assert classify_and_emit(match_shape(expr), expr, _FixedResolver(IO_READ, IO_WRITE), sink) is None
        assert sink.findings == []

    def test_emits_once_at_outer_expression(self):
        sink = _sink()
        outer = Match(
            scrutinee=_into_result(_method("write")),
            source=MatchSource.TRY_DESUGAR,
            span=Span(start_byte=0, end_byte=11, line=1, column=1, end_line=1, end_column=12),
        )
        finding = classify_and_emit(match_shape(outer), outer, _FixedResolver(IO_WRITE), sink)
        assert finding is not None
        assert sink.findings == [finding]
        assert finding.message == WRITE_ALL_MSG
        assert finding.location.snippet == "w.write(b);"
        assert finding.severity == "error"

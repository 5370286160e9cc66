# Trait resolution: decide whether a method call dispatches through a trait.
#
# The resolver infers the static type of a method call's receiver from the
# enclosing scope (bindings, parameters, generic bounds, `impl` blocks) and
# then checks whether that type implements the trait. It never decides on
# the method name alone: `lock.read()` on an RwLock is not `Read::read`.

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Sequence

from tree_sitter import Node as TSNode

from iocheck.context import FileContext
from iocheck.hir import MethodCall, path_segments
from iocheck.paths import IO_READ, IO_WRITE

logger = logging.getLogger(__name__)

TraitPath = tuple[str, ...]

_MAX_DEPTH = 16

IO_BUF_READ: TraitPath = ("std", "io", "BufRead")

# Methods each trait declares; a call is only resolved against traits that own its name.
TRAIT_METHODS: Dict[TraitPath, frozenset[str]] = {
    IO_READ: frozenset(
        {
            "read",
            "read_vectored",
            "read_to_end",
            "read_to_string",
            "read_exact",
            "bytes",
            "chain",
            "take",
            "by_ref",
        }
    ),
    IO_WRITE: frozenset(
        {"write", "write_vectored", "write_all", "write_fmt", "flush", "by_ref"}
    ),
}

SUPERTRAITS: Dict[TraitPath, frozenset[TraitPath]] = {
    IO_BUF_READ: frozenset({IO_READ}),
}

_SLICE: TraitPath = ("[]",)
_BOX: TraitPath = ("std", "boxed", "Box")
_VEC: TraitPath = ("std", "vec", "Vec")
_VEC_DEQUE: TraitPath = ("std", "collections", "VecDeque")
_FILE: TraitPath = ("std", "fs", "File")
_OPEN_OPTIONS: TraitPath = ("std", "fs", "OpenOptions")
_TCP_STREAM: TraitPath = ("std", "net", "TcpStream")
_UNIX_STREAM: TraitPath = ("std", "os", "unix", "net", "UnixStream")


def _io(name: str) -> TraitPath:
    return ("std", "io", name)


def _process(name: str) -> TraitPath:
    return ("std", "process", name)


# std types with a Read/Write impl. References and Box delegate to their target.
KNOWN_IMPLS: Dict[TraitPath, frozenset[TraitPath]] = {
    IO_READ: frozenset(
        {
            _FILE,
            _TCP_STREAM,
            _UNIX_STREAM,
            _io("Stdin"),
            _io("StdinLock"),
            _io("Cursor"),
            _io("BufReader"),
            _io("Empty"),
            _io("Repeat"),
            _io("Chain"),
            _io("Take"),
            _process("ChildStdout"),
            _process("ChildStderr"),
            _VEC_DEQUE,
            _SLICE,
        }
    ),
    IO_WRITE: frozenset(
        {
            _FILE,
            _TCP_STREAM,
            _UNIX_STREAM,
            _io("Stdout"),
            _io("StdoutLock"),
            _io("Stderr"),
            _io("StderrLock"),
            _io("Cursor"),
            _io("BufWriter"),
            _io("LineWriter"),
            _io("Sink"),
            _process("ChildStdin"),
            _VEC,
            _VEC_DEQUE,
            _SLICE,
        }
    ),
}

PRELUDE: Dict[str, TraitPath] = {
    "Box": _BOX,
    "Vec": _VEC,
    "String": ("std", "string", "String"),
    "Option": ("std", "option", "Option"),
    "Result": ("std", "result", "Result"),
}

# Names reachable through `use <module>::*`.
MODULE_EXPORTS: Dict[TraitPath, frozenset[str]] = {
    ("std", "io"): frozenset(
        {
            "Read", "Write", "BufRead", "Seek", "Result", "Error",
            "Stdin", "Stdout", "Stderr", "StdinLock", "StdoutLock", "StderrLock",
            "Cursor", "BufReader", "BufWriter", "LineWriter",
            "Sink", "Empty", "Repeat", "Chain", "Take",
            "stdin", "stdout", "stderr", "sink", "empty", "repeat",
        }
    ),
    ("std", "io", "prelude"): frozenset({"Read", "Write", "BufRead", "Seek"}),
    ("std", "fs"): frozenset({"File", "OpenOptions"}),
    ("std", "net"): frozenset({"TcpStream"}),
    ("std", "os", "unix", "net"): frozenset({"UnixStream"}),
    ("std", "process"): frozenset({"ChildStdin", "ChildStdout", "ChildStderr"}),
    ("std", "collections"): frozenset({"VecDeque"}),
}

# Re-exports that live under a different canonical path.
_CANONICAL: Dict[TraitPath, TraitPath] = {
    ("std", "io", "prelude", "Read"): IO_READ,
    ("std", "io", "prelude", "Write"): IO_WRITE,
    ("std", "io", "prelude", "BufRead"): IO_BUF_READ,
}

RESULT_LIKE = frozenset(
    {("std", "result", "Result"), ("std", "option", "Option"), _io("Result")}
)

KNOWN_FUNCTIONS: Dict[TraitPath, TraitPath] = {
    _io("stdin"): _io("Stdin"),
    _io("stdout"): _io("Stdout"),
    _io("stderr"): _io("Stderr"),
    _io("sink"): _io("Sink"),
    _io("empty"): _io("Empty"),
    _io("repeat"): _io("Repeat"),
}

KNOWN_METHODS: Dict[tuple[TraitPath, str], TraitPath] = {
    (_io("Stdin"), "lock"): _io("StdinLock"),
    (_io("Stdout"), "lock"): _io("StdoutLock"),
    (_io("Stderr"), "lock"): _io("StderrLock"),
    (_OPEN_OPTIONS, "open"): _FILE,
}

# Methods returning the receiver's own type (or a reference to it).
SAME_TYPE_METHODS = frozenset({"by_ref", "try_clone", "clone", "as_mut"})
_OPEN_OPTIONS_BUILDERS = frozenset(
    {"read", "write", "append", "truncate", "create", "create_new", "mode", "custom_flags"}
)

_UNWRAP_METHODS = frozenset({"unwrap", "expect", "unwrap_or_else", "unwrap_or_default"})

CONSTRUCTORS = frozenset(
    {"new", "open", "create", "connect", "with_capacity", "from", "default", "create_new"}
)


@dataclass(frozen=True)
class RustType:
    """
    Static type of an expression as far as trait resolution needs it.

    `path` is the resolved nominal path (empty for generic parameters and
    `impl`/`dyn` types). `bounds` are the traits the type is known to
    implement through bounds. `args` are generic arguments, in order.
    """

    path: TraitPath = ()
    bounds: frozenset[TraitPath] = frozenset()
    args: tuple["RustType", ...] = ()


class TraitResolver(ABC):
    """Answers whether a method call is statically dispatched through a trait."""

    @abstractmethod
    def method_dispatches_through(self, call: MethodCall, trait_path: Sequence[str]) -> bool:
        ...


@dataclass
class FileIndex:
    """Per-file declarations the resolver consults."""

    imports: Dict[str, TraitPath] = field(default_factory=dict)
    globs: list[TraitPath] = field(default_factory=list)
    local_types: Dict[str, TSNode] = field(default_factory=dict)
    local_traits: Dict[str, TSNode] = field(default_factory=dict)
    local_impls: Dict[str, set[TraitPath]] = field(default_factory=dict)
    local_functions: Dict[str, TSNode] = field(default_factory=dict)


def _walk(node: TSNode):
    """Yield every descendant of node in document order (DFS)."""
    yield node
    for child in node.children:
        yield from _walk(child)


def _named(node: TSNode) -> list[TSNode]:
    return [c for c in node.named_children if c.type not in ("line_comment", "block_comment")]


def _field(node: TSNode, *names: str) -> Optional[TSNode]:
    """First of the named fields present on node."""
    for name in names:
        child = node.child_by_field_name(name)
        if child is not None:
            return child
    return None


def _find_child(node: TSNode, node_type: str) -> Optional[TSNode]:
    for child in node.named_children:
        if child.type == node_type:
            return child
    return None


class ScopeResolver(TraitResolver):
    """
    Resolve trait dispatch from declarations visible in one Rust file.

    Build one per FileContext. The file index is computed on first use;
    every answer is a pure function of the file contents.
    """

    def __init__(self, context: FileContext) -> None:
        self.context = context
        self._index: Optional[FileIndex] = None

    # --- public API --------------------------------------------------------

    def method_dispatches_through(self, call: MethodCall, trait_path: Sequence[str]) -> bool:
        trait = tuple(trait_path)
        if call.name not in TRAIT_METHODS.get(trait, frozenset()):
            return False
        receiver = call.receiver.node
        if receiver is None:
            return False
        ty = self.infer_type(receiver)
        if ty is None:
            logger.debug(
                "Unresolved receiver for .%s() at %s:%d",
                call.name,
                self.context.path,
                call.span.line,
            )
            return False
        return self.implements(ty, trait)

    @property
    def index(self) -> FileIndex:
        if self._index is None:
            self._index = self._build_index()
        return self._index

    def implements(self, ty: RustType, trait: TraitPath, depth: int = 0) -> bool:
        """True if ty implements trait (directly, via bounds, or via Box)."""
        if depth > _MAX_DEPTH:
            return False
        if trait in self._expand_traits(ty.bounds):
            return True
        if ty.path == _BOX and ty.args:
            return self.implements(ty.args[0], trait, depth + 1)
        if ty.path in KNOWN_IMPLS.get(trait, frozenset()):
            return True
        if ty.path and ty.path[0] == "crate":
            impls = self.index.local_impls.get(ty.path[-1], set())
            return trait in self._expand_traits(impls)
        return False

    # --- paths -------------------------------------------------------------

    def resolve_path(self, segments: Sequence[str], depth: int = 0) -> TraitPath:
        """Resolve a written path to its fully-qualified form."""
        segs = tuple(s for s in segments if s)
        if not segs:
            return ()
        head = segs[0]
        if head in ("std", "core", "alloc"):
            return _CANONICAL.get(("std",) + segs[1:], ("std",) + segs[1:])
        if head == "crate":
            return segs
        if head in ("self", "super"):
            return ("crate",) + segs[1:]

        index = self.index
        if head in index.imports and depth < _MAX_DEPTH:
            target = index.imports[head]
            if target and target[0] in ("std", "core", "alloc", "crate"):
                return self.resolve_path(target + segs[1:], depth + 1)
            if target and target[0] != head:
                return self.resolve_path(target + segs[1:], depth + 1)
        if head in index.local_types or head in index.local_traits:
            return ("crate",) + segs
        if len(segs) == 1:
            for module in index.globs:
                resolved = self.resolve_path(module, depth + 1) if depth < _MAX_DEPTH else module
                if head in MODULE_EXPORTS.get(resolved, frozenset()):
                    full = resolved + (head,)
                    return _CANONICAL.get(full, full)
            if head in PRELUDE:
                return PRELUDE[head]
        return ("crate",) + segs

    def _expand_traits(self, traits: Iterable[TraitPath]) -> frozenset[TraitPath]:
        """Close a trait set over known and locally declared supertraits."""
        seen: set[TraitPath] = set()
        pending = list(traits)
        while pending:
            trait = pending.pop()
            if trait in seen:
                continue
            seen.add(trait)
            pending.extend(SUPERTRAITS.get(trait, ()))
            if trait[:1] == ("crate",):
                decl = self.index.local_traits.get(trait[-1])
                if decl is not None:
                    bounds = decl.child_by_field_name("bounds")
                    if bounds is not None:
                        pending.extend(self._bound_paths(bounds))
        return frozenset(seen)

    # --- index -------------------------------------------------------------

    def _build_index(self) -> FileIndex:
        index = FileIndex()
        ctx = self.context
        for node in _walk(ctx.root_node):
            if node.type == "use_declaration":
                argument = node.child_by_field_name("argument")
                if argument is not None:
                    self._collect_use(argument, (), index)
            elif node.type in ("struct_item", "enum_item", "union_item"):
                name = node.child_by_field_name("name")
                if name is not None:
                    index.local_types[ctx.text(name)] = node
            elif node.type == "trait_item":
                name = node.child_by_field_name("name")
                if name is not None:
                    index.local_traits[ctx.text(name)] = node
            elif node.type == "function_item" and node.parent is not None and node.parent.type in (
                "source_file",
                "declaration_list",
                "block",
            ):
                if node.parent.type == "declaration_list" and node.parent.parent is not None and (
                    node.parent.parent.type in ("impl_item", "trait_item")
                ):
                    continue
                name = node.child_by_field_name("name")
                if name is not None:
                    index.local_functions[ctx.text(name)] = node

        # impls need the imports and local types collected above
        self._index = index
        for node in _walk(ctx.root_node):
            if node.type != "impl_item":
                continue
            trait = node.child_by_field_name("trait")
            self_type = node.child_by_field_name("type")
            if trait is None or self_type is None:
                continue
            trait_segs = path_segments(ctx, trait)
            type_segs = path_segments(ctx, self_type)
            if trait_segs is None or type_segs is None:
                continue
            index.local_impls.setdefault(type_segs[-1], set()).add(self.resolve_path(trait_segs))
        logger.debug(
            "Indexed %s: %d import(s), %d local type(s), %d local impl target(s)",
            ctx.path,
            len(index.imports),
            len(index.local_types),
            len(index.local_impls),
        )
        return index

    def _collect_use(self, node: TSNode, prefix: TraitPath, index: FileIndex) -> None:
        ctx = self.context
        kind = node.type
        if kind in ("identifier", "scoped_identifier", "crate", "super"):
            segs = path_segments(ctx, node)
            if segs:
                index.imports[segs[-1]] = prefix + segs
        elif kind == "self" and prefix:
            index.imports[prefix[-1]] = prefix
        elif kind == "use_as_clause":
            path = node.child_by_field_name("path")
            alias = node.child_by_field_name("alias")
            segs = path_segments(ctx, path) if path is not None else None
            if segs and alias is not None and ctx.text(alias) != "_":
                if segs[-1] == "self":
                    segs = segs[:-1]
                index.imports[ctx.text(alias)] = prefix + segs
        elif kind == "use_wildcard":
            inner = _named(node)
            segs = path_segments(ctx, inner[0]) if inner else ()
            index.globs.append(prefix + (segs or ()))
        elif kind == "scoped_use_list":
            path = node.child_by_field_name("path")
            items = node.child_by_field_name("list")
            segs = path_segments(ctx, path) if path is not None else ()
            if items is not None:
                self._collect_use(items, prefix + (segs or ()), index)
        elif kind == "use_list":
            for child in _named(node):
                self._collect_use(child, prefix, index)

    # --- generics ----------------------------------------------------------

    def _bound_paths(self, node: TSNode) -> list[TraitPath]:
        """Trait paths named by a bound, a `+` list of bounds, or trait_bounds."""
        ctx = self.context
        kind = node.type
        if kind in ("trait_bounds", "bounded_type"):
            out: list[TraitPath] = []
            for child in _named(node):
                out.extend(self._bound_paths(child))
            return out
        if kind == "higher_ranked_trait_bound":
            inner = node.child_by_field_name("type")
            return self._bound_paths(inner) if inner is not None else []
        if kind in ("type_identifier", "scoped_type_identifier", "generic_type"):
            segs = path_segments(ctx, node)
            return [self.resolve_path(segs)] if segs else []
        return []

    def _generic_params(self, owner: TSNode) -> Dict[str, set[TraitPath]]:
        """Bounds declared by an item's type parameters and where clause."""
        ctx = self.context
        params: Dict[str, set[TraitPath]] = {}
        type_params = owner.child_by_field_name("type_parameters")
        if type_params is not None:
            for param in _named(type_params):
                if param.type == "type_identifier":
                    params.setdefault(ctx.text(param), set())
                    continue
                if param.type not in ("type_parameter", "constrained_type_parameter", "optional_type_parameter"):
                    continue
                name = _field(param, "name", "left")
                if name is None:
                    continue
                if name.type == "constrained_type_parameter":
                    # `T: Bound = Default`
                    params.update(self._generic_params_from(name))
                    continue
                bounds = param.child_by_field_name("bounds")
                entry = params.setdefault(ctx.text(name), set())
                if bounds is not None:
                    entry.update(self._bound_paths(bounds))

        where = _find_child(owner, "where_clause")
        if where is not None:
            for predicate in _named(where):
                if predicate.type != "where_predicate":
                    continue
                left = predicate.child_by_field_name("left")
                bounds = predicate.child_by_field_name("bounds")
                if left is None or bounds is None:
                    continue
                params.setdefault(ctx.text(left), set()).update(self._bound_paths(bounds))
        return params

    def _generic_params_from(self, param: TSNode) -> Dict[str, set[TraitPath]]:
        name = param.child_by_field_name("left")
        bounds = param.child_by_field_name("bounds")
        if name is None:
            return {}
        return {self.context.text(name): set(self._bound_paths(bounds)) if bounds is not None else set()}

    def _generic_env(self, node: TSNode) -> Dict[str, set[TraitPath]]:
        """Generic parameters visible at node, innermost declaration wins."""
        env: Dict[str, set[TraitPath]] = {}
        cur: Optional[TSNode] = node
        while cur is not None:
            if cur.type in ("function_item", "impl_item", "trait_item", "struct_item", "enum_item"):
                for name, bounds in self._generic_params(cur).items():
                    env.setdefault(name, bounds)
            cur = cur.parent
        return env

    def _self_type(self, node: TSNode) -> Optional[RustType]:
        """Type of `Self` for the impl or trait enclosing node."""
        cur: Optional[TSNode] = node
        while cur is not None:
            if cur.type == "impl_item":
                self_type = cur.child_by_field_name("type")
                if self_type is None:
                    return None
                ty = self.type_from_node(self_type)
                trait = cur.child_by_field_name("trait")
                if ty is not None and trait is not None:
                    segs = path_segments(self.context, trait)
                    if segs:
                        ty = RustType(path=ty.path, bounds=ty.bounds | {self.resolve_path(segs)}, args=ty.args)
                return ty
            if cur.type == "trait_item":
                name = cur.child_by_field_name("name")
                bounds = cur.child_by_field_name("bounds")
                traits: set[TraitPath] = set()
                if name is not None:
                    traits.add(self.resolve_path((self.context.text(name),)))
                if bounds is not None:
                    traits.update(self._bound_paths(bounds))
                return RustType(bounds=frozenset(traits))
            cur = cur.parent
        return None

    # --- types -------------------------------------------------------------

    def type_from_node(
        self,
        node: TSNode,
        subst: Optional[Dict[str, RustType]] = None,
    ) -> Optional[RustType]:
        """Interpret a type node in the scope where it is written."""
        ctx = self.context
        kind = node.type
        if kind in ("reference_type", "pointer_type"):
            inner = node.child_by_field_name("type")
            return self.type_from_node(inner, subst) if inner is not None else None
        if kind in ("abstract_type", "dynamic_type"):
            trait = node.child_by_field_name("trait")
            if trait is None:
                return None
            return RustType(bounds=frozenset(self._bound_paths(trait)))
        if kind == "bounded_type":
            bounds: set[TraitPath] = set()
            for child in _named(node):
                if child.type == "dynamic_type":
                    trait = child.child_by_field_name("trait")
                    if trait is not None:
                        bounds.update(self._bound_paths(trait))
                else:
                    bounds.update(self._bound_paths(child))
            return RustType(bounds=frozenset(bounds))
        if kind == "array_type":
            return RustType(path=_SLICE)
        if kind == "generic_type":
            base = node.child_by_field_name("type")
            args_node = node.child_by_field_name("type_arguments")
            segs = path_segments(ctx, base) if base is not None else None
            if not segs:
                return None
            args: list[RustType] = []
            if args_node is not None:
                for arg in _named(args_node):
                    if arg.type in ("lifetime", "type_binding"):
                        continue
                    args.append(self.type_from_node(arg, subst) or RustType())
            return RustType(path=self.resolve_path(segs), args=tuple(args))
        if kind == "type_identifier":
            name = ctx.text(node)
            if subst and name in subst:
                return subst[name]
            if name == "Self":
                return self._self_type(node)
            env = self._generic_env(node)
            if name in env:
                return RustType(bounds=frozenset(env[name]))
            return RustType(path=self.resolve_path((name,)))
        if kind == "scoped_type_identifier":
            segs = path_segments(ctx, node)
            return RustType(path=self.resolve_path(segs)) if segs else None
        return None

    # --- expressions -------------------------------------------------------

    def infer_type(self, node: TSNode, depth: int = 0) -> Optional[RustType]:
        """Best-effort static type of an expression node, or None."""
        if depth > _MAX_DEPTH:
            return None
        ctx = self.context
        kind = node.type

        if kind in ("parenthesized_expression", "reference_expression", "unary_expression"):
            inner = _field(node, "value")
            if inner is None:
                operands = _named(node)
                inner = operands[-1] if operands else None
            return self.infer_type(inner, depth + 1) if inner is not None else None
        if kind == "try_expression":
            inner = _named(node)
            return self._unwrap_result(self.infer_type(inner[0], depth + 1)) if inner else None
        if kind == "identifier":
            name = ctx.text(node)
            ty = self._binding_type(node, name, depth)
            if ty is None and name[:1].isupper() and name in self.index.local_types:
                # unit struct value, e.g. `let mut log = Logger;`
                return RustType(path=("crate", name))
            return ty
        if kind == "self":
            return self._self_type(node)
        if kind == "field_expression":
            return self._field_type(node, depth)
        if kind == "call_expression":
            return self._call_type(node, depth)
        if kind == "macro_invocation":
            macro = node.child_by_field_name("macro")
            if macro is not None and ctx.text(macro) == "vec":
                return RustType(path=_VEC)
            return None
        if kind == "struct_expression":
            name = node.child_by_field_name("name")
            segs = path_segments(ctx, name) if name is not None else None
            return RustType(path=self.resolve_path(segs)) if segs else None
        return None

    @staticmethod
    def _unwrap_result(ty: Optional[RustType]) -> Optional[RustType]:
        if ty is not None and ty.path in RESULT_LIKE:
            return ty.args[0] if ty.args else None
        return ty

    def _call_type(self, node: TSNode, depth: int) -> Optional[RustType]:
        ctx = self.context
        function = node.child_by_field_name("function")
        if function is None:
            return None
        if function.type == "generic_function":
            target = _field(function, "function")
            if target is not None:
                function = target
        args_node = node.child_by_field_name("arguments")
        args = _named(args_node) if args_node is not None else []

        if function.type == "field_expression":
            value = function.child_by_field_name("value")
            name_node = function.child_by_field_name("field")
            if value is None or name_node is None:
                return None
            name = ctx.text(name_node)
            recv = self.infer_type(value, depth + 1)
            if name in _UNWRAP_METHODS:
                return self._unwrap_result(recv)
            if recv is None:
                return None
            if name in SAME_TYPE_METHODS:
                return recv
            if recv.path == _OPEN_OPTIONS and name in _OPEN_OPTIONS_BUILDERS:
                return recv
            known = KNOWN_METHODS.get((recv.path, name))
            return RustType(path=known) if known is not None else None

        segs = path_segments(ctx, function)
        if not segs:
            return None
        if len(segs) == 1 and segs[0] in self.index.local_functions:
            fn = self.index.local_functions[segs[0]]
            ret = fn.child_by_field_name("return_type")
            return self.type_from_node(ret) if ret is not None else None
        resolved = self.resolve_path(segs)
        if resolved in KNOWN_FUNCTIONS:
            return RustType(path=KNOWN_FUNCTIONS[resolved])
        if len(segs) >= 2 and segs[-1] in CONSTRUCTORS and segs[-2][:1].isupper():
            owner = self.resolve_path(segs[:-1])
            inner = self.infer_type(args[0], depth + 1) if args else None
            return RustType(path=owner, args=(inner,) if inner is not None else ())
        return None

    def _field_type(self, node: TSNode, depth: int) -> Optional[RustType]:
        """Type of `value.field` when value is a struct declared in this file."""
        ctx = self.context
        value = node.child_by_field_name("value")
        field_node = node.child_by_field_name("field")
        if value is None or field_node is None:
            return None
        owner = self.infer_type(value, depth + 1)
        if owner is None or not owner.path or owner.path[0] != "crate":
            return None
        decl = self.index.local_types.get(owner.path[-1])
        if decl is None or decl.type != "struct_item":
            return None
        body = decl.child_by_field_name("body")
        if body is None:
            return None

        # map the struct's own type parameters onto the owner's arguments
        names: list[str] = []
        type_params = decl.child_by_field_name("type_parameters")
        if type_params is not None:
            for param in _named(type_params):
                if param.type == "type_identifier":
                    names.append(ctx.text(param))
                elif param.type in ("type_parameter", "constrained_type_parameter", "optional_type_parameter"):
                    name = _field(param, "name", "left")
                    if name is not None:
                        names.append(ctx.text(name))
        subst = dict(zip(names, owner.args))

        wanted = ctx.text(field_node)
        if body.type == "ordered_field_declaration_list":
            if not wanted.isdigit():
                return None
            types = [c for c in _named(body) if c.type not in ("visibility_modifier", "attribute_item")]
            position = int(wanted)
            return self.type_from_node(types[position], subst) if position < len(types) else None

        for decl_field in _named(body):
            if decl_field.type != "field_declaration":
                continue
            name = decl_field.child_by_field_name("name")
            if name is None or ctx.text(name) != wanted:
                continue
            field_type = decl_field.child_by_field_name("type")
            return self.type_from_node(field_type, subst) if field_type is not None else None
        return None

    # --- bindings ----------------------------------------------------------

    def _binding_type(self, node: TSNode, name: str, depth: int) -> Optional[RustType]:
        """Type of the binding `name` visible at node (let, parameter, closure parameter)."""
        cur = node
        while cur.parent is not None:
            parent = cur.parent
            if parent.type == "block":
                for sibling in reversed(parent.named_children):
                    if sibling.start_byte >= cur.start_byte or sibling.type != "let_declaration":
                        continue
                    pattern = sibling.child_by_field_name("pattern")
                    if pattern is None or not self._binds(pattern, name):
                        continue
                    if not self._is_simple_binding(pattern):
                        return None
                    annotation = sibling.child_by_field_name("type")
                    if annotation is not None:
                        return self.type_from_node(annotation)
                    value = sibling.child_by_field_name("value")
                    return self.infer_type(value, depth + 1) if value is not None else None
            elif parent.type == "function_item":
                # items do not capture: the search ends at the function boundary
                return self._parameter_type(parent, name)[1]
            elif parent.type == "closure_expression":
                found, ty = self._parameter_type(parent, name)
                if found:
                    return ty
            elif parent.type == "match_arm":
                pattern = parent.child_by_field_name("pattern")
                if pattern is not None and cur != pattern and self._binds(pattern, name):
                    return None
            elif parent.type in ("for_expression", "if_let_expression", "while_let_expression"):
                # the iterable / scrutinee still sees the outer binding
                pattern = parent.child_by_field_name("pattern")
                body = _field(parent, "body", "consequence")
                if pattern is not None and cur == body and self._binds(pattern, name):
                    return None
            elif parent.type in ("if_expression", "while_expression"):
                # `if let` / `while let` bindings are only in scope in the body
                condition = parent.child_by_field_name("condition")
                body = _field(parent, "consequence", "body")
                if condition is not None and cur == body and self._condition_binds(condition, name):
                    return None
            cur = parent
        return None

    def _condition_binds(self, condition: TSNode, name: str) -> bool:
        """True if a `let` in condition (possibly inside an `&&` chain) binds name."""
        for node in _walk(condition):
            if node.type != "let_condition":
                continue
            pattern = node.child_by_field_name("pattern")
            if pattern is not None and self._binds(pattern, name):
                return True
        return False

    def _binds(self, pattern: TSNode, name: str) -> bool:
        ctx = self.context
        if pattern.type == "identifier":
            return ctx.text(pattern) == name
        return any(n.type == "identifier" and ctx.text(n) == name for n in _walk(pattern))

    @staticmethod
    def _is_simple_binding(pattern: TSNode) -> bool:
        """`x` or `mut x`, the only patterns whose type is the whole annotation."""
        if pattern.type == "identifier":
            return True
        if pattern.type == "mut_pattern":
            inner = _named(pattern)
            return bool(inner) and inner[-1].type == "identifier"
        return False

    def _parameter_type(self, owner: TSNode, name: str) -> tuple[bool, Optional[RustType]]:
        """(whether a parameter of owner binds name, its declared type)."""
        params = owner.child_by_field_name("parameters")
        if params is None:
            return False, None
        for param in _named(params):
            if param.type == "self_parameter":
                if name == "self":
                    return True, self._self_type(owner)
                continue
            if param.type == "identifier":
                # untyped closure parameter
                if self.context.text(param) == name:
                    return True, None
                continue
            if param.type != "parameter":
                if self._binds(param, name):
                    return True, None
                continue
            pattern = param.child_by_field_name("pattern")
            if pattern is None or not self._binds(pattern, name):
                continue
            annotation = param.child_by_field_name("type")
            if annotation is None or not self._is_simple_binding(pattern):
                return True, None
            return True, self.type_from_node(annotation)
        return False, None

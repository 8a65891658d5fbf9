"""Source parsing shared by the default analyzers.

Python units are parsed with tree-sitter. JavaScript and TypeScript units are
scanned with regular expressions, which is enough for import, export and
control-flow heuristics.

Analyzers run in worker threads and share one parser, so parsed units are
cached by path and content hash and must be treated as read-only.
"""

import math
import re
import threading
from collections import OrderedDict
from dataclasses import dataclass, field

import structlog

from codeweave.models import SourceBundle, fingerprint_source

logger = structlog.get_logger()

PYTHON_SUFFIXES = {".py", ".pyi"}
TYPESCRIPT_SUFFIXES = {".ts", ".tsx", ".mts", ".cts"}
JAVASCRIPT_SUFFIXES = {".js", ".jsx", ".mjs", ".cjs"}
MARKUP_SUFFIXES = {".jsx", ".tsx", ".html", ".htm", ".vue", ".svelte"}

PARSE_CACHE_SIZE = 512

# Python nodes that add a path through the code
PY_DECISION_NODES = {
    "if_statement",
    "elif_clause",
    "for_statement",
    "while_statement",
    "except_clause",
    "conditional_expression",
    "boolean_operator",
    "for_in_clause",
    "if_clause",
    "case_clause",
}
# Python nodes that increase nesting for cognitive complexity
PY_NESTING_NODES = {
    "if_statement",
    "for_statement",
    "while_statement",
    "try_statement",
    "with_statement",
    "match_statement",
}
PY_LOOP_NODES = {"for_statement", "while_statement", "for_in_clause"}
PY_OPERAND_NODES = {"identifier", "integer", "float", "string", "true", "false", "none"}

_PY_HINTS = re.compile(
    r"^\s*(def\s+\w+\s*\(|class\s+\w+.*:\s*$|from\s+[\w.]+\s+import\s|import\s+[\w.]+\s*$)",
    re.MULTILINE,
)
_JS_HINTS = re.compile(
    r"(\bfunction\b|=>|\b(const|let|var)\s+\w+\s*=|\bimport\s.+\sfrom\s+['\"]|\brequire\()",
)

_JS_STATIC_IMPORT = re.compile(
    r"\bimport\s+(?:type\s+)?([\w*$\s{},]+?)\s+from\s+['\"]([^'\"]+)['\"]"
)
_JS_SIDE_EFFECT_IMPORT = re.compile(r"\bimport\s+['\"]([^'\"]+)['\"]")
_JS_REEXPORT = re.compile(r"\bexport\s+(?:\*(?:\s+as\s+\w+)?|\{[^}]*\})\s+from\s+['\"]([^'\"]+)['\"]")
_JS_REQUIRE = re.compile(r"\brequire\(\s*['\"]([^'\"]+)['\"]\s*\)")
_JS_DYNAMIC_IMPORT = re.compile(r"\bimport\(\s*['\"]([^'\"]+)['\"]\s*\)")
_JS_FUNCTION = re.compile(r"\bfunction\s*\*?\s+([A-Za-z_$][\w$]*)")
_JS_ARROW = re.compile(
    r"\b(?:const|let|var)\s+([A-Za-z_$][\w$]*)\s*(?::[^=]+)?=\s*(?:async\s+)?(?:\([^)]*\)|[A-Za-z_$][\w$]*)\s*(?::[^=]+)?=>"
)
_JS_CLASS = re.compile(r"\bclass\s+([A-Za-z_$][\w$]*)")
_JS_EXPORT_DECL = re.compile(
    r"\bexport\s+(?:default\s+)?(?:declare\s+)?(?:async\s+)?"
    r"(function|class|const|let|var|interface|type|enum)\s*\*?\s+([A-Za-z_$][\w$]*)"
)
_JS_EXPORT_DEFAULT = re.compile(r"\bexport\s+default\s+([A-Za-z_$][\w$]*)\s*;?\s*$", re.MULTILINE)
_JS_EXPORT_LIST = re.compile(r"\bexport\s*\{([^}]*)\}(?!\s*from)")
_JS_DOCUMENTED = re.compile(
    r"/\*\*[\s\S]*?\*/\s*(?:export\s+)?(?:default\s+)?(?:async\s+)?"
    r"(?:function\s*\*?\s+([A-Za-z_$][\w$]*)|class\s+([A-Za-z_$][\w$]*)|(?:const|let|var)\s+([A-Za-z_$][\w$]*))"
)
_JS_TOKENS = re.compile(
    r"(?P<loop>\b(?:for|while)\b|\.(?:map|forEach|filter|reduce|some|every|find)\()"
    r"|(?P<branch>\b(?:if|switch|catch)\b)"
    r"|(?P<case>\bcase\b)"
    r"|(?P<logic>&&|\|\||(?<!\?)\?(?![.?:]))"
    r"|(?P<open>\{)"
    r"|(?P<close>\})"
)
_JS_COMMENT = re.compile(r"//[^\n]*|/\*[\s\S]*?\*/")
_JS_STRING = re.compile(r"`(?:\\.|[^`\\])*`|'(?:\\.|[^'\\\n])*'|\"(?:\\.|[^\"\\\n])*\"")
_JS_CALL = re.compile(r"(?<![\w$.])([A-Za-z_$][\w$]*(?:\.[A-Za-z_$][\w$]*)*)\s*\(")
_JS_WORD = re.compile(r"[A-Za-z_$][\w$]*|\d+(?:\.\d+)?")
_JS_OPERATOR = re.compile(r"[-+*/%=<>!&|^~?:]+|[.,;(){}\[\]]")


@dataclass
class ImportRef:
    """One import as written in a source unit."""

    module: str
    names: list[str] = field(default_factory=list)
    lazy: bool = False
    level: int = 0  # Python relative import depth
    line: int = 1


@dataclass
class FunctionInfo:
    """A function or method definition."""

    name: str
    line: int
    documented: bool = False
    parameters: int = 0
    max_loop_depth: int = 0
    recursive: bool = False


@dataclass
class ParsedUnit:
    """Everything the default analyzers need to know about one source unit."""

    path: str
    language: str
    text: str
    imports: list[ImportRef] = field(default_factory=list)
    classes: list[str] = field(default_factory=list)
    methods: dict[str, list[str]] = field(default_factory=dict)
    functions: list[FunctionInfo] = field(default_factory=list)
    exports: list[tuple[str, str]] = field(default_factory=list)
    calls: list[tuple[str, int]] = field(default_factory=list)
    decision_points: int = 0
    cognitive_complexity: int = 0
    max_loop_depth: int = 0
    module_documented: bool = False
    documented_classes: int = 0
    broad_excepts: int = 0
    has_errors: bool = False
    operators: list[str] = field(default_factory=list)
    operands: list[str] = field(default_factory=list)

    @property
    def loc(self) -> int:
        """Non-blank, non-comment lines."""
        count = 0
        for line in self.text.splitlines():
            stripped = line.strip()
            if stripped and not stripped.startswith(("#", "//", "/*", "*")):
                count += 1
        return count

    @property
    def halstead_volume(self) -> float:
        length = len(self.operators) + len(self.operands)
        vocabulary = len(set(self.operators)) + len(set(self.operands))
        if length == 0:
            return 0.0
        return length * math.log2(max(vocabulary, 2))

    @property
    def documentable(self) -> int:
        return len(self.functions) + len(self.classes)

    @property
    def documented(self) -> int:
        return sum(1 for f in self.functions if f.documented) + self.documented_classes


def unit_language(path: str, text: str = "") -> str:
    """Language of a source unit, from its extension or, failing that, its text."""
    suffix = SourceBundle.suffix(path)
    if suffix in PYTHON_SUFFIXES:
        return "python"
    if suffix in TYPESCRIPT_SUFFIXES:
        return "typescript"
    if suffix in JAVASCRIPT_SUFFIXES:
        return "javascript"
    if suffix:
        return "other"
    if _PY_HINTS.search(text):
        return "python"
    if _JS_HINTS.search(text):
        return "javascript"
    return "other"


def line_of(text: str, offset: int) -> int:
    return text.count("\n", 0, offset) + 1


class SourceParser:
    """Parses source units into ``ParsedUnit`` records.

    Safe to share between threads. The last ``cache_size`` parsed units are
    kept, so analyzers sharing a parser parse each unit once.
    """

    def __init__(self, cache_size: int = PARSE_CACHE_SIZE):
        self._logger = logger.bind(component="SourceParser")
        self._parser = None
        self._language = None
        self._initialized = False
        self._parser_lock = threading.Lock()
        self._cache_lock = threading.Lock()
        self._cache: OrderedDict[tuple[str, str], ParsedUnit] = OrderedDict()
        self.cache_size = cache_size

    def _ensure_initialized(self) -> None:
        """Lazy initialization of tree-sitter. Caller holds the parser lock."""
        if self._initialized:
            return

        try:
            import tree_sitter_python as tspython
            from tree_sitter import Language, Parser

            self._language = Language(tspython.language())
            self._parser = Parser(self._language)
            self._initialized = True
            self._logger.debug("Tree-sitter initialized")
        except Exception as e:
            self._logger.error("Failed to initialize tree-sitter", error=str(e))
            raise RuntimeError(f"tree-sitter initialization failed: {e}") from e

    def parse_bundle(self, source: SourceBundle) -> list[ParsedUnit]:
        return [self.parse(path, text) for path, text in source.units()]

    def parse(self, path: str, text: str) -> ParsedUnit:
        key = (path, fingerprint_source(text))
        with self._cache_lock:
            unit = self._cache.get(key)
            if unit is not None:
                self._cache.move_to_end(key)
                return unit

        unit = self._parse_unit(path, text)

        with self._cache_lock:
            self._cache[key] = unit
            while len(self._cache) > self.cache_size:
                self._cache.popitem(last=False)
        return unit

    def _parse_unit(self, path: str, text: str) -> ParsedUnit:
        language = unit_language(path, text)
        if language == "python":
            return self._parse_python(path, text)
        if language in ("javascript", "typescript"):
            return self._parse_script(path, text, language)
        return ParsedUnit(path=path, language=language, text=text)

    # Python

    def _parse_python(self, path: str, text: str) -> ParsedUnit:
        code = bytes(text, "utf-8")
        with self._parser_lock:
            self._ensure_initialized()
            tree = self._parser.parse(code)
        root = tree.root_node

        unit = ParsedUnit(path=path, language="python", text=text)
        unit.has_errors = root.has_error
        unit.module_documented = self._has_docstring(root)

        self._walk_python(root, code, unit)
        return unit

    def _walk_python(self, root, code: bytes, unit: ParsedUnit) -> None:
        """Pre-order walk over the syntax tree with an explicit stack.

        Each entry carries the nesting level, loop depth, enclosing function
        and whether imports below it are deferred.
        """
        stack: list[tuple[object, int, int, FunctionInfo | None, bool]] = [(root, 0, 0, None, False)]

        while stack:
            node, nesting, loop_depth, function, lazy = stack.pop()
            node_type = node.type

            if node_type == "comment":
                continue

            if node_type in PY_DECISION_NODES:
                unit.decision_points += 1
                if node_type in ("boolean_operator", "elif_clause"):
                    unit.cognitive_complexity += 1
                else:
                    unit.cognitive_complexity += 1 + nesting

            if node_type in PY_LOOP_NODES:
                loop_depth += 1
                unit.max_loop_depth = max(unit.max_loop_depth, loop_depth)
                if function:
                    function.max_loop_depth = max(function.max_loop_depth, loop_depth)

            if node_type == "import_statement":
                for name_node in node.children_by_field_name("name"):
                    module = self._import_name(name_node, code)
                    unit.imports.append(ImportRef(
                        module=module,
                        lazy=lazy or function is not None,
                        line=node.start_point[0] + 1,
                    ))
                continue

            if node_type == "import_from_statement":
                unit.imports.append(self._from_import(node, code, lazy or function is not None))
                continue

            if node_type == "if_statement":
                condition = node.child_by_field_name("condition")
                if condition is not None and "TYPE_CHECKING" in self._node_text(condition, code):
                    consequence = node.child_by_field_name("consequence")
                    stack.extend(
                        (child, nesting + 1, loop_depth, function, lazy or child == consequence)
                        for child in reversed(node.children)
                    )
                    continue

            if node_type == "class_definition":
                self._record_class(node, code, unit, function)

            if node_type == "function_definition":
                function = self._record_function(node, code, unit, function)

            if node_type == "call":
                func_node = node.child_by_field_name("function")
                callee = self._node_text(func_node, code)
                unit.calls.append((callee, node.start_point[0] + 1))
                if function and callee in (function.name, f"self.{function.name}"):
                    function.recursive = True

            if node_type == "except_clause" and self._is_broad_except(node, code):
                unit.broad_excepts += 1

            if node_type in PY_OPERAND_NODES:
                unit.operands.append(self._node_text(node, code))
                continue
            if node.child_count == 0:
                unit.operators.append(node_type)
                continue

            child_nesting = nesting + 1 if node_type in PY_NESTING_NODES else nesting
            stack.extend(
                (child, child_nesting, loop_depth, function, lazy)
                for child in reversed(node.children)
            )

    def _record_class(self, node, code: bytes, unit: ParsedUnit, function: FunctionInfo | None) -> None:
        name = self._node_text(node.child_by_field_name("name"), code)
        unit.classes.append(name)
        unit.methods[name] = [
            self._node_text(child.child_by_field_name("name"), code)
            for child in self._class_members(node)
        ]
        if function is None and self._is_top_level(node) and not name.startswith("_"):
            unit.exports.append((name, "class"))
        if self._has_docstring(node.child_by_field_name("body")):
            unit.documented_classes += 1

    def _record_function(
        self,
        node,
        code: bytes,
        unit: ParsedUnit,
        enclosing: FunctionInfo | None,
    ) -> FunctionInfo:
        name = self._node_text(node.child_by_field_name("name"), code)
        params = node.child_by_field_name("parameters")
        parameters = [
            child for child in (params.children if params is not None else [])
            if child.is_named and self._node_text(child, code) not in ("self", "cls")
        ]
        info = FunctionInfo(
            name=name,
            line=node.start_point[0] + 1,
            documented=self._has_docstring(node.child_by_field_name("body")),
            parameters=len(parameters),
        )
        unit.functions.append(info)
        if enclosing is None and self._is_top_level(node) and not name.startswith("_"):
            unit.exports.append((name, "function"))
        return info

    def _from_import(self, node, code: bytes, lazy: bool) -> ImportRef:
        module_node = node.child_by_field_name("module_name")
        level = 0
        module = ""
        if module_node is not None and module_node.type == "relative_import":
            for child in module_node.children:
                if child.type == "import_prefix":
                    level = len(self._node_text(child, code))
                elif child.type == "dotted_name":
                    module = self._node_text(child, code)
        elif module_node is not None:
            module = self._node_text(module_node, code)

        names = [
            self._import_name(name_node, code)
            for name_node in node.children_by_field_name("name")
        ]
        if any(child.type == "wildcard_import" for child in node.children):
            names.append("*")

        return ImportRef(
            module=module,
            names=names,
            lazy=lazy,
            level=level,
            line=node.start_point[0] + 1,
        )

    def _import_name(self, node, code: bytes) -> str:
        if node.type == "aliased_import":
            return self._node_text(node.child_by_field_name("name"), code)
        return self._node_text(node, code)

    def _class_members(self, class_node):
        body = class_node.child_by_field_name("body")
        for child in (body.children if body is not None else []):
            if child.type == "decorated_definition":
                child = child.child_by_field_name("definition")
            if child is not None and child.type == "function_definition":
                yield child

    def _is_top_level(self, node) -> bool:
        parent = node.parent
        if parent is not None and parent.type == "decorated_definition":
            parent = parent.parent
        return parent is not None and parent.type == "module"

    def _is_broad_except(self, node, code: bytes) -> bool:
        caught = [
            child for child in node.children
            if child.is_named and child.type not in ("block", "comment")
        ]
        if not caught:
            return True
        target = caught[0]
        if target.type == "as_pattern" and target.named_children:
            target = target.named_children[0]
        return self._node_text(target, code) in ("Exception", "BaseException")

    def _has_docstring(self, body) -> bool:
        if body is None:
            return False
        for child in body.children:
            if child.type == "comment":
                continue
            if child.type != "expression_statement":
                return False
            return bool(child.named_children) and child.named_children[0].type == "string"
        return False

    def _node_text(self, node, code: bytes) -> str:
        """Get the text of a node."""
        if node is None:
            return ""
        return code[node.start_byte:node.end_byte].decode("utf-8", errors="replace")

    # JavaScript / TypeScript

    def _parse_script(self, path: str, text: str, language: str) -> ParsedUnit:
        unit = ParsedUnit(path=path, language=language, text=text)
        unit.module_documented = text.lstrip().startswith("/**")

        for match in _JS_STATIC_IMPORT.finditer(text):
            unit.imports.append(ImportRef(
                module=match.group(2),
                names=self._script_specifiers(match.group(1)),
                line=line_of(text, match.start()),
            ))
        for pattern in (_JS_SIDE_EFFECT_IMPORT, _JS_REEXPORT, _JS_REQUIRE):
            for match in pattern.finditer(text):
                unit.imports.append(ImportRef(module=match.group(1), line=line_of(text, match.start())))
        for match in _JS_DYNAMIC_IMPORT.finditer(text):
            unit.imports.append(ImportRef(module=match.group(1), lazy=True, line=line_of(text, match.start())))

        documented = set()
        for match in _JS_DOCUMENTED.finditer(text):
            documented.update(name for name in match.groups() if name)

        for pattern in (_JS_FUNCTION, _JS_ARROW):
            for match in pattern.finditer(text):
                name = match.group(1)
                unit.functions.append(FunctionInfo(
                    name=name,
                    line=line_of(text, match.start()),
                    documented=name in documented,
                ))
        unit.functions.sort(key=lambda f: f.line)

        for match in _JS_CLASS.finditer(text):
            unit.classes.append(match.group(1))
        unit.documented_classes = sum(1 for name in unit.classes if name in documented)

        function_names = {f.name for f in unit.functions}
        for match in _JS_EXPORT_DECL.finditer(text):
            keyword, name = match.groups()
            if keyword in ("const", "let", "var"):
                keyword = "function" if name in function_names else "variable"
            unit.exports.append((name, keyword))
        for match in _JS_EXPORT_DEFAULT.finditer(text):
            unit.exports.append((match.group(1), "default"))
        for match in _JS_EXPORT_LIST.finditer(text):
            for name in self._script_specifiers(match.group(1)):
                unit.exports.append((name, "named"))

        keywords = {"if", "for", "while", "switch", "catch", "function", "return", "typeof", "import", "require"}
        for match in _JS_CALL.finditer(text):
            callee = match.group(1)
            if callee not in keywords:
                unit.calls.append((callee, line_of(text, match.start())))

        self._scan_script_blocks(unit, text)
        return unit

    def _script_specifiers(self, clause: str) -> list[str]:
        names = []
        for part in re.split(r"[{},]", clause):
            part = part.strip()
            if not part or part == "type":
                continue
            part = part.removeprefix("type ").strip()
            if " as " in part:
                original, alias = (p.strip() for p in part.split(" as ", 1))
                names.append(alias if original == "*" else original)
            else:
                names.append(part)
        return names

    def _scan_script_blocks(self, unit: ParsedUnit, text: str) -> None:
        """Decision points, nesting and loop depth from a token scan."""
        code = _JS_STRING.sub('""', _JS_COMMENT.sub("", text))

        # Each open block records whether it is a loop and/or a nesting construct
        stack: list[tuple[bool, bool]] = []
        pending_loop = False
        pending_nesting = False

        for match in _JS_TOKENS.finditer(code):
            kind = match.lastgroup
            nesting = sum(1 for _, nests in stack if nests)
            if kind == "loop":
                unit.decision_points += 1
                unit.cognitive_complexity += 1 + nesting
                pending_loop = pending_nesting = True
            elif kind == "branch":
                unit.decision_points += 1
                unit.cognitive_complexity += 1 + nesting
                pending_nesting = True
            elif kind == "case":
                unit.decision_points += 1
            elif kind == "logic":
                unit.decision_points += 1
                unit.cognitive_complexity += 1
            elif kind == "open":
                stack.append((pending_loop, pending_nesting))
                pending_loop = pending_nesting = False
                depth = sum(1 for is_loop, _ in stack if is_loop)
                unit.max_loop_depth = max(unit.max_loop_depth, depth)
            elif kind == "close" and stack:
                stack.pop()

        # Single-statement loop bodies never open a block
        if pending_loop:
            unit.max_loop_depth = max(unit.max_loop_depth, sum(1 for is_loop, _ in stack if is_loop) + 1)

        for word in _JS_WORD.findall(code):
            unit.operands.append(word)
        unit.operators.extend(_JS_OPERATOR.findall(code))

        for function in unit.functions:
            function.max_loop_depth = unit.max_loop_depth

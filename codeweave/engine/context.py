"""Project Context Tracker - folds completed modules into the ProjectContext.

Responsible for:
- Classifying produced paths into the project structure
- Resolving declared imports to earlier modules (internal) or packages (external)
- Registering exports, shared state keys and API endpoints
- Estimating per-module test coverage
"""

import posixpath
from collections.abc import Mapping
from pathlib import PurePosixPath

import structlog

from codeweave.models import FileType, ModuleDefinition, ProjectContext

logger = structlog.get_logger()

# Import prefixes that always point inside the project
LOCAL_PREFIXES = ("./", "../", "/", "@/", "~/")

SOURCE_ROOTS = ("src/", "lib/", "app/")

STRUCTURE_FIELDS = {
    FileType.COMPONENT: "components",
    FileType.HOOK: "hooks",
    FileType.UTIL: "utils",
    FileType.TYPE: "types",
    FileType.TEST: "tests",
}


def path_keys(path: str) -> set[str]:
    """Lookup keys under which a produced path can be imported."""
    normalized = posixpath.normpath(path.lstrip("/"))
    if not PurePosixPath(normalized).name or normalized.endswith(".."):
        return set()
    stem = str(PurePosixPath(normalized).with_suffix(""))
    # Strip compound suffixes such as ".d.ts" or ".test.tsx"
    while PurePosixPath(stem).suffix in (".d", ".test", ".spec"):
        stem = str(PurePosixPath(stem).with_suffix(""))

    keys = {normalized, stem}
    for suffix in ("/index", "/__init__"):
        if stem.endswith(suffix):
            keys.add(stem[: -len(suffix)])
    for root in SOURCE_ROOTS:
        keys |= {key[len(root):] for key in list(keys) if key.startswith(root)}
    return {key for key in keys if key and key != "."}


def classify_path(path: str) -> FileType:
    """Guess the file type of a path the module did not declare."""
    original_name = PurePosixPath(path).name
    lowered = path.lower()
    name = original_name.lower()
    if (
        "/tests/" in f"/{lowered}"
        or "/__tests__/" in f"/{lowered}"
        or name.startswith("test_")
        or ".test." in name
        or ".spec." in name
    ):
        return FileType.TEST
    if name.endswith(".d.ts") or "/types/" in f"/{lowered}" or name.startswith("types."):
        return FileType.TYPE
    if "/hooks/" in f"/{lowered}" or (original_name.startswith("use") and original_name[3:4].isupper()):
        return FileType.HOOK
    if "/utils/" in f"/{lowered}" or "/lib/" in f"/{lowered}" or name.startswith("utils"):
        return FileType.UTIL
    return FileType.COMPONENT


def external_package(import_name: str) -> str | None:
    """Package name of a bare import, or None for project-local imports."""
    if not import_name or import_name.startswith(LOCAL_PREFIXES) or import_name.startswith("."):
        return None
    if import_name.startswith("@"):
        parts = import_name.split("/")
        return "/".join(parts[:2]) if len(parts) > 1 else None
    return import_name.split("/")[0].split(".")[0] or None


class ProjectContextTracker:
    """Single writer of a ``ProjectContext``.

    The generation state machine owns one tracker per run; collaborators and
    analyzers only ever see ``snapshot()`` copies.
    """

    def __init__(self, context: ProjectContext | None = None):
        self.context = context or ProjectContext()
        self._path_owners: dict[str, str] = {}
        self._logger = logger.bind(component="ProjectContextTracker")

    def snapshot(self) -> ProjectContext:
        return self.context.snapshot()

    def commit(self, module: ModuleDefinition, files: Mapping[str, str]) -> None:
        """Merge a successfully generated module into the context.

        Args:
            module: The completed module
            files: Paths and contents the module produced
        """
        declared_types = {f.path: f.type for f in module.files}

        produced_types: dict[str, FileType] = {}
        for path in files:
            file_type = declared_types.get(path) or classify_path(path)
            produced_types[path] = file_type
            bucket = getattr(self.context.structure, STRUCTURE_FIELDS[file_type])
            if path not in bucket:
                bucket.append(path)

        own_keys = {key for path in files for key in path_keys(path)}
        used_modules = self._record_imports(module, own_keys)
        self.context.dependencies.internal[module.id] = sorted(used_modules)

        for key in own_keys:
            self._path_owners.setdefault(key, module.id)
        for symbol in module.declared_exports:
            self._register(self.context.exports, symbol, module.id, "export")

        if module.context:
            for key in module.context.state_management:
                self._register(self.context.shared_state, key, {"owner": module.id}, "shared state")
            for endpoint in module.context.api_endpoints:
                self._register(self.context.api_schema, endpoint, {"owner": module.id}, "api endpoint")
            for util in module.context.shared_utils:
                self._register(self.context.exports, util, module.id, "shared util")

        self.context.test_coverage[module.id] = self._estimate_coverage(produced_types)

        self._logger.debug(
            "Module committed to context",
            module_id=module.id,
            files=len(files),
            internal=self.context.dependencies.internal[module.id],
        )

    def _record_imports(self, module: ModuleDefinition, own_keys: set[str]) -> set[str]:
        used: set[str] = set()
        for file in module.files:
            for import_name in file.requires.imports:
                if self._import_keys(file.path, import_name) & own_keys:
                    continue
                owner = self._resolve_import(file.path, import_name)
                if owner == module.id:
                    continue
                if owner:
                    used.add(owner)
                    continue

                package = external_package(import_name)
                if package:
                    self.context.dependencies.external.add(package)
                else:
                    self._logger.warning(
                        "Unresolved local import",
                        module_id=module.id,
                        path=file.path,
                        import_name=import_name,
                    )

        undeclared = used - set(module.dependencies)
        if undeclared:
            self._logger.warning(
                "Module uses modules it does not declare",
                module_id=module.id,
                undeclared=sorted(undeclared),
            )
        return used

    def _resolve_import(self, importer_path: str, import_name: str) -> str | None:
        if import_name in self.context.exports:
            return self.context.exports[import_name]

        for key in sorted(self._import_keys(importer_path, import_name)):
            if key in self._path_owners:
                return self._path_owners[key]
        return None

    def _import_keys(self, importer_path: str, import_name: str) -> set[str]:
        """Path keys an import name may refer to."""
        candidates = []
        if import_name.startswith(("./", "../")):
            base = posixpath.dirname(importer_path)
            candidates.append(posixpath.normpath(posixpath.join(base, import_name)))
        elif import_name.startswith(("@/", "~/")):
            candidates.append(import_name[2:])
        else:
            candidates.append(import_name.lstrip("/"))
            if "/" not in import_name and "." in import_name:
                candidates.append(import_name.replace(".", "/"))

        return {key for candidate in candidates for key in path_keys(candidate)}

    def _register(self, registry: dict, key: str, value, kind: str) -> None:
        if key in registry and registry[key] != value:
            self._logger.warning(
                "Duplicate registration ignored",
                kind=kind,
                key=key,
                existing=registry[key],
            )
            return
        registry[key] = value

    def _estimate_coverage(self, produced_types: Mapping[str, FileType]) -> float:
        """Share of non-test files with a test whose name mentions them."""
        tests = [
            PurePosixPath(path).name.lower()
            for path, file_type in produced_types.items()
            if file_type == FileType.TEST
        ]
        sources = [
            PurePosixPath(path).name.lower().split(".")[0]
            for path, file_type in produced_types.items()
            if file_type != FileType.TEST
        ]
        if not sources:
            return 1.0 if tests else 0.0

        covered = sum(1 for stem in sources if any(stem in test for test in tests))
        return round(covered / len(sources), 4)

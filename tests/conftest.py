"""Pytest configuration and fixtures."""

import asyncio
from collections.abc import Callable

import pytest

from codeweave.analysis.ports import (
    AccessibilityAnalyzer,
    CodeAnalyzer,
    ContextAnalyzer,
    DependencyGraphBuilder,
    PerformanceAnalyzer,
    SecurityScanner,
)
from codeweave.core.config import Settings
from codeweave.core.errors import ModuleGenerationError
from codeweave.models import (
    AccessibilityReport,
    AnalysisSection,
    CodeAnalysisReport,
    ContextAnalysisResult,
    DependencyGraphResult,
    FileDefinition,
    FileRequirements,
    FileType,
    ModuleContextHints,
    ModuleDefinition,
    PerformanceMetricsResult,
    ProjectContext,
    SecurityReport,
)


class FakeClock:
    """Manually advanced clock in seconds."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingCollaborator:
    """Collaborator that writes a stub for every requested file."""

    def __init__(
        self,
        fail_on: str | None = None,
        error: Exception | None = None,
        on_generate: Callable[[ModuleDefinition], None] | None = None,
    ):
        self.fail_on = fail_on
        self.error = error
        self.on_generate = on_generate
        self.calls: list[tuple[str, ProjectContext]] = []

    async def generate(self, module: ModuleDefinition, context: ProjectContext) -> dict[str, str]:
        self.calls.append((module.id, context))
        if self.on_generate:
            self.on_generate(module)
        if module.id == self.fail_on:
            raise self.error or ModuleGenerationError(module.id, "model refused")
        return {
            f.path: f"// {module.id}: {f.path}\n"
            for f in module.files
            if f.content is None
        }

    @property
    def generated(self) -> list[str]:
        return [module_id for module_id, _ in self.calls]


class FakePort:
    """Analyzer port returning a fixed result."""

    default_result: type

    def __init__(self, result=None, *, delay: float = 0.0, error: Exception | None = None):
        self.result = result
        self.delay = delay
        self.error = error
        self.calls = 0

    async def analyze(self, source):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result if self.result is not None else self.default_result()


class FakeCodeAnalyzer(FakePort, CodeAnalyzer):
    default_result = CodeAnalysisReport


class FakeContextAnalyzer(FakePort, ContextAnalyzer):
    default_result = ContextAnalysisResult


class FakeGraphBuilder(FakePort, DependencyGraphBuilder):
    default_result = DependencyGraphResult


class FakePerformanceAnalyzer(FakePort, PerformanceAnalyzer):
    default_result = PerformanceMetricsResult


class FakeSecurityScanner(FakePort, SecurityScanner):
    default_result = SecurityReport


class FakeAccessibilityAnalyzer(FakePort, AccessibilityAnalyzer):
    default_result = AccessibilityReport


FAKE_PORTS = {
    AnalysisSection.SEMANTIC: FakeCodeAnalyzer,
    AnalysisSection.CONTEXT: FakeContextAnalyzer,
    AnalysisSection.DEPENDENCY_GRAPH: FakeGraphBuilder,
    AnalysisSection.PERFORMANCE: FakePerformanceAnalyzer,
    AnalysisSection.SECURITY: FakeSecurityScanner,
    AnalysisSection.ACCESSIBILITY: FakeAccessibilityAnalyzer,
}


@pytest.fixture
def settings():
    """Settings independent of the environment."""
    return Settings(
        cache_ttl_seconds=60.0,
        analyzer_timeout_seconds=0.5,
        cycle_high_min_nodes=3,
        architecture_boundaries=[],
    )


@pytest.fixture
def clock():
    """A fake clock starting at t=0."""
    return FakeClock()


@pytest.fixture
def make_ports():
    """Factory for one fake port per section.

    Keyword arguments per section override the port's result, delay or error;
    ``exclude`` drops sections entirely.
    """
    def _make(overrides=None, exclude=()):
        overrides = overrides or {}
        return [
            port_type(**overrides.get(section, {}))
            for section, port_type in FAKE_PORTS.items()
            if section not in exclude
        ]
    return _make


@pytest.fixture
def collaborator():
    """A collaborator that always succeeds."""
    return RecordingCollaborator()


@pytest.fixture
def make_collaborator():
    """Factory for recording collaborators with custom behavior."""
    return RecordingCollaborator


@pytest.fixture
def failing_collaborator():
    """A collaborator that fails on module B."""
    return RecordingCollaborator(fail_on="B")


@pytest.fixture
def chain_modules():
    """A, B depends on A, C depends on A and B."""
    return {
        "A": ModuleDefinition(id="A", name="A"),
        "B": ModuleDefinition(id="B", name="B", dependencies={"A"}),
        "C": ModuleDefinition(id="C", name="C", dependencies={"A", "B"}),
    }


@pytest.fixture
def sample_modules():
    """A small auth feature split into three modules."""
    return {
        "utils": ModuleDefinition(
            id="utils",
            name="Formatting utilities",
            files=[
                FileDefinition(
                    path="src/utils/format.ts",
                    type=FileType.UTIL,
                    description="Date formatting",
                    requires=FileRequirements(exports=["formatDate"]),
                ),
            ],
        ),
        "auth": ModuleDefinition(
            id="auth",
            name="Auth hook",
            dependencies={"utils"},
            files=[
                FileDefinition(
                    path="src/hooks/useAuth.ts",
                    type=FileType.HOOK,
                    requires=FileRequirements(
                        imports=["@/utils/format", "axios"],
                        exports=["useAuth"],
                    ),
                ),
                FileDefinition(
                    path="src/types/auth.d.ts",
                    type=FileType.TYPE,
                    content="export interface User { id: string }\n",
                    requires=FileRequirements(types=["User"]),
                ),
            ],
            context=ModuleContextHints(
                state_management=["auth"],
                api_endpoints=["/api/login"],
            ),
        ),
        "login": ModuleDefinition(
            id="login",
            name="Login form",
            dependencies={"utils", "auth"},
            files=[
                FileDefinition(
                    path="src/components/LoginForm.tsx",
                    type=FileType.COMPONENT,
                    requires=FileRequirements(
                        imports=["../hooks/useAuth", "react"],
                        exports=["LoginForm"],
                    ),
                ),
                FileDefinition(
                    path="src/components/LoginForm.test.tsx",
                    type=FileType.TEST,
                    requires=FileRequirements(imports=["./LoginForm"]),
                ),
            ],
        ),
    }


@pytest.fixture
def sample_python_code():
    """Sample Python code for analysis."""
    return '''"""User service."""

import os
from typing import Optional

from .models import User


class UserService:
    """Loads users."""

    def __init__(self, repository):
        self.repository = repository

    def get_instance(self):
        return self

    def find(self, user_id: int) -> Optional[User]:
        """Find a user by id."""
        if user_id <= 0:
            return None
        for user in self.repository.all():
            if user.id == user_id and user.active:
                return user
        return None


def load_config(path):
    try:
        with open(path) as f:
            return f.read()
    except Exception:
        return os.environ.get("CONFIG", "")
'''


@pytest.fixture
def sample_typescript_code():
    """Sample TypeScript hook for analysis."""
    return '''import { useState, useEffect } from 'react';
import axios from 'axios';
import { formatDate } from '../utils/format';

/** Loads the current user. */
export function useUser(id: string) {
  const [user, setUser] = useState(null);
  useEffect(() => {
    if (id) {
      axios.get(`/api/users/${id}`).then((res) => setUser(res.data));
    }
  }, [id]);
  return user;
}

export const label = (user) => (user ? formatDate(user.createdAt) : '');
'''


@pytest.fixture
def vulnerable_code():
    """Code with known security issues."""
    return '''import hashlib
import pickle
import subprocess

API_KEY = "sk-live-123456"


def run(cmd, payload, cursor, name):
    eval(cmd)
    subprocess.run(cmd, shell=True)
    data = pickle.loads(payload)
    cursor.execute(f"SELECT * FROM users WHERE name = '{name}'")
    return hashlib.md5(data).hexdigest()
'''

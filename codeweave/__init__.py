"""CodeWeave - Dependency-ordered code generation and analysis orchestration.

Resolves generation modules into a deterministic order, drives generation
module by module while accumulating a shared project context, and fans out
independent analyzers over the produced sources into one cached report.
"""

__version__ = "0.1.0"

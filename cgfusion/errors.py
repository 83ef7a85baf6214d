"""Exception hierarchy for cgfusion.

Every error raised by the pipeline derives from :class:`CgFusionError`, so a
driver can catch one type and print the chain (``__cause__``) of what went
wrong.
"""

from pathlib import Path


class CgFusionError(Exception):
    """Base exception for all cgfusion failures."""
    pass


# ── Parsing ───────────────────────────────────────────────────────────


class ParsingError(CgFusionError):
    """Raised when a source file holds syntax the parser did not understand."""
    def __init__(self, path: Path | str, reason: str,
                 line: int | None = None, column: int | None = None):
        self.path = Path(path)
        self.reason = reason
        self.line = line
        self.column = column
        location = f"{self.path}"
        if line is not None:
            location += f":{line}"
            if column is not None:
                location += f":{column}"
        super().__init__(f"Could not parse {location}: {reason}")


# ── Metadata ──────────────────────────────────────────────────────────


class MetadataError(CgFusionError):
    """Raised when a Cargo manifest is missing, invalid, or lacks a target."""
    pass


# ── Policy violations ─────────────────────────────────────────────────


class PolicyViolationError(CgFusionError):
    """Base for dependencies the target platform would reject."""
    def __init__(self, dependency: str, package: str, message: str):
        self.dependency = dependency
        self.package = package
        super().__init__(message)


class UnsupportedDependencyError(PolicyViolationError):
    """Raised when a package depends on a crate the platform does not support."""
    def __init__(self, dependency: str, package: str, platform: str):
        self.platform = platform
        super().__init__(
            dependency, package,
            f"{platform} does not support '{dependency}' (dependency of "
            f"'{package}'), use '--force' to ignore.",
        )


class UndeclaredDependencyError(PolicyViolationError):
    """Raised when a local library uses a crate the challenge does not declare."""
    def __init__(self, dependency: str, package: str):
        super().__init__(
            dependency, package,
            f"Dependency '{dependency}' of local library '{package}' is not in "
            f"dependencies of challenge, use '--force' to ignore or add "
            f"'{dependency}' as dependency to challenge.",
        )


# ── Processing ────────────────────────────────────────────────────────


class ProcessingError(CgFusionError):
    """Base for failures of the processing stages."""
    pass


class MaxAttemptsExpandingUseStatementError(ProcessingError):
    """Raised when a use glob could not be expanded within the attempt budget."""
    def __init__(self, statement: str, module: str):
        self.statement = statement
        self.module = module
        super().__init__(
            f"Maximum number of attempts to expand use statement "
            f"'{statement}' in module '{module}'."
        )


class UseStatementsCouldNotBeParsedError(ProcessingError):
    """Raised when use statements still do not resolve after expansion."""
    def __init__(self, statements: list[str]):
        self.statements = statements
        listing = "\n".join(f"  {s}" for s in statements)
        super().__init__(f"Some use statements could not be parsed:\n{listing}")


class EntryPointError(ProcessingError):
    """Raised when the challenge binary does not define ``main``."""
    pass


class PendingDecisionsError(ProcessingError):
    """Raised when fusion is requested while impl decisions are still open."""
    def __init__(self, pending: list[str]):
        self.pending = pending
        super().__init__(
            f"{len(pending)} impl item decision(s) still pending: "
            + ", ".join(pending)
        )


class UserCanceledDialogError(ProcessingError):
    """Raised when the impl item dialog is aborted."""
    def __init__(self):
        super().__init__("Dialog canceled by user.")


class StageConsumedError(CgFusionError):
    """Raised when a pipeline stage is used after it handed its data on."""
    def __init__(self, stage: str):
        self.stage = stage
        super().__init__(
            f"{stage} was already consumed by a later stage and cannot be reused."
        )


# ── Challenge tree ────────────────────────────────────────────────────


class ChallengeTreeError(CgFusionError):
    """Base for violated invariants of the challenge tree."""
    pass


class NodeIndexError(ChallengeTreeError):
    """Raised when a node index is not in the tree."""
    def __init__(self, index: int):
        self.index = index
        super().__init__(f"Node not found: {index}")


class UnexpectedNodeTypeError(ChallengeTreeError):
    """Raised when a node is not of the type an operation requires."""
    def __init__(self, index: int, expected: str, found: str):
        self.index = index
        self.expected = expected
        self.found = found
        super().__init__(
            f"Expected {expected} at node {index}, found {found}."
        )


class UnresolvedPathError(ChallengeTreeError):
    """Raised by strict resolution when a path does not resolve."""
    def __init__(self, path: str, scope: str):
        self.path = path
        self.scope = scope
        super().__init__(f"Could not resolve '{path}' from {scope}.")

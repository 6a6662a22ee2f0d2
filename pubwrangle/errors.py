"""Exceptions raised by the table engine, reshaper and loader."""


class PubwrangleError(Exception):
    """Base class for every error raised by pubwrangle."""


class UnknownColumn(PubwrangleError, KeyError):
    """An operation referenced a column the table does not have."""

    def __init__(self, names, available=()):
        if isinstance(names, str):
            names = [names]
        self.names = list(names)
        self.available = list(available)
        super().__init__(
            f"Unknown column(s) {self.names}; available: {self.available}"
        )

    def __str__(self):
        return self.args[0]


class DuplicateKey(PubwrangleError, ValueError):
    """More than one source row maps to the same cell of a widened table."""


class TypeMismatch(PubwrangleError, TypeError):
    """An aggregate, arithmetic or conversion hit an incompatible column type."""


class NameCollision(PubwrangleError, ValueError):
    """A renamed or produced column name clashes with an existing one."""


class SchemaError(PubwrangleError, ValueError):
    """The input file does not satisfy the declared schema."""


class PipelineError(PubwrangleError):
    """A pipeline step failed; the original error is kept as ``cause``."""

    def __init__(self, step, cause):
        self.step = step
        self.cause = cause
        super().__init__(f"Pipeline step '{step}' failed: {cause}")

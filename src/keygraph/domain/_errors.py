"""
Usage and shape errors raised by keygraph.

Every failure in the core is a programming or usage error surfaced at the
point of misuse: there are no retries and no recoverable states. Absence of
a gradient is *not* an error (ops return `None` for such inputs), and
delegate results from `Op.compute` are an aliasing signal, not a failure.

The exceptions subclass the closest built-in category so callers can catch
either the specific type or the generic one (e.g. `ValueError`).
"""


class NotPlaceholderError(TypeError):
    """
    Raised when a value is fed to a node that is not a placeholder.

    Attributes
    ----------
    op_name : str
        Name of the op of the offending node.
    """

    def __init__(self, op_name: str) -> None:
        super().__init__(f"Only placeholders can be fed; got a '{op_name}' node.")
        self.op_name = op_name


class PlaceholderNotFedError(RuntimeError):
    """
    Raised when evaluation reaches a placeholder that has no fed value.

    Attributes
    ----------
    node_id : int
        Arena index of the unfed placeholder.
    """

    def __init__(self, node_id: int) -> None:
        super().__init__(
            f"Placeholder (id={node_id}) must be fed before evaluating a node "
            "that depends on it."
        )
        self.node_id = node_id


class PlaceholderShapeError(ValueError):
    """
    Raised when a fed value does not match the placeholder's declared shape.

    Attributes
    ----------
    expected : tuple[int, ...]
        Declared shape (``-1`` marks a dimension of unknown size).
    got : tuple[int, ...]
        Shape of the fed value.
    """

    def __init__(self, expected: tuple, got: tuple) -> None:
        super().__init__(
            f"Fed value shape mismatch: placeholder expects {expected}, got {got}."
        )
        self.expected = expected
        self.got = got


class VariableNotFoundError(RuntimeError):
    """
    Raised when a variable or constant has no storage in the given context.

    This happens when a graph built against one `Context` is evaluated with
    another one.
    """

    def __init__(self, node_id: int, op_name: str) -> None:
        super().__init__(
            f"{op_name} (id={node_id}) was not declared in this context."
        )
        self.node_id = node_id
        self.op_name = op_name


class BroadcastError(ValueError):
    """
    Raised when operand shapes cannot be reconciled by broadcasting.

    Attributes
    ----------
    op_name : str
        Op that attempted the broadcast.
    shapes : tuple[tuple[int, ...], ...]
        Operand shapes involved.
    """

    def __init__(self, op_name: str, *shapes: tuple) -> None:
        joined = " vs ".join(str(tuple(s)) for s in shapes)
        super().__init__(f"{op_name}: shapes cannot be broadcast: {joined}.")
        self.op_name = op_name
        self.shapes = tuple(tuple(s) for s in shapes)

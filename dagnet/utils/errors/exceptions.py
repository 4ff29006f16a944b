"""Custom exception hierarchy for dagnet."""


class DagNetError(Exception):
    """Base class for all dagnet-specific exceptions."""


class GraphConfigurationError(DagNetError):
    """
    Raised when a declarative graph description cannot be turned into a graph.

    Covers missing or malformed fields, dangling or cyclic node references,
    duplicate node names, and structurally incomplete graphs.

    Attributes:
        node_name (str | None): Name of the offending node, when known.

    """

    def __init__(self, message: str | None = None, *, node_name: str | None = None):
        """
        Initialize configuration error with node context.

        Args:
            message (str | None, optional): Custom message override.
            node_name (str | None, optional): Name of the offending node.

        """
        if message is None:
            message = (
                "Invalid graph configuration."
                if node_name is None
                else f"Invalid graph configuration at node '{node_name}'."
            )
        super().__init__(message)
        self.node_name = node_name


class GraphInitializationError(DagNetError):
    """
    Raised when a node rejects its resolved inputs during initialization.

    Attributes:
        node_name (str | None): Name of the node that failed to initialize.

    """

    def __init__(self, message: str | None = None, *, node_name: str | None = None):
        """
        Initialize initialization error with node context.

        Args:
            message (str | None, optional): Custom message override.
            node_name (str | None, optional): Name of the failing node.

        """
        if message is None:
            message = (
                "Graph initialization failed."
                if node_name is None
                else f"Graph initialization failed at node '{node_name}'."
            )
        super().__init__(message)
        self.node_name = node_name


class GraphStateError(DagNetError, RuntimeError):
    """Raised when a graph operation is called in a state that does not allow it."""

    def __init__(self, method: str | None = None, message: str | None = None):
        """
        Initialize state error.

        Args:
            method (str | None, optional): Method that was called out of order.
            message (str | None, optional): Custom message override.

        """
        if message is None:
            message = (
                "ComputeGraph is not in a valid state for this operation."
                if method is None
                else f"ComputeGraph must be initialized before calling `{method}`."
            )
        super().__init__(message)


class UnitError(DagNetError):
    """Raised when error occurs within a ProcessingUnit."""

    def __init__(self, message: str | None = None):
        if message is None:
            message = "Error with ProcessingUnit."
        super().__init__(message)


class UnitInputError(UnitError):
    """Raised when a ProcessingUnit receives inputs it cannot work with."""

    def __init__(self, message: str | None = None):
        if message is None:
            message = "Error with ProcessingUnit input."
        super().__init__(message)


class ParameterStreamError(DagNetError):
    """Raised when parameters cannot be read from or written to a stream."""

    def __init__(self, message: str | None = None):
        if message is None:
            message = "Failed to (de)serialize parameters."
        super().__init__(message)


class DatasetError(DagNetError):
    """Base exception for Dataset-related issues."""

    def __init__(self, message: str | None = None):
        if message is None:
            message = "Error with Dataset."
        super().__init__(message)


class SampleLoadError(DatasetError):
    """Raised when Dataset samples cannot be loaded."""

    def __init__(self, message: str | None = None):
        if message is None:
            message = "Failed to load Samples."
        super().__init__(message)

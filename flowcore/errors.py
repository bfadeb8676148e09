"""Exceptions raised by flowcore.

Business conditions (rejected connections, missing records, unsalvageable run
documents) are reported through result objects instead. These exceptions mark
caller mistakes.
"""


class FlowcoreError(Exception):
    """Base class for flowcore errors."""


class NodeNotFoundError(FlowcoreError):
    """Raised when an operation names a node that is not in the workflow."""

    def __init__(self, node_id: str) -> None:
        super().__init__(f"Node not found: {node_id}")
        self.node_id = node_id


class AgentNodeNotFoundError(NodeNotFoundError):
    """Raised when a context is requested for a node that is not an agent."""

    def __init__(self, node_id: str) -> None:
        FlowcoreError.__init__(self, f"Agent node not found: {node_id}")
        self.node_id = node_id


class WorkflowValidationError(FlowcoreError):
    """Raised when a whole workflow fails structural validation."""

    def __init__(self, problems: list[str]) -> None:
        super().__init__("; ".join(problems) or "invalid workflow")
        self.problems = problems


class ConnectionNotFoundError(FlowcoreError):
    """Raised when an operation names a connection that is not in the workflow."""

    def __init__(self, connection_id: str) -> None:
        super().__init__(f"Connection not found: {connection_id}")
        self.connection_id = connection_id

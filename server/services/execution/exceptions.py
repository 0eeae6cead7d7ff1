"""Execution engine exception hierarchy."""


class WorkflowEngineError(Exception):
    """Base exception for all engine errors."""


class NodeConfigError(WorkflowEngineError):
    """Node configuration is missing or malformed (fails the node, not the run)."""


class ConnectorError(WorkflowEngineError):
    """External side effect failed: timeout, non-2xx response, remote error."""

    def __init__(self, connector: str, message: str):
        self.connector = connector
        super().__init__(message)


class StorageError(WorkflowEngineError):
    """Run or workflow records could not be read or written."""


class WorkflowNotFoundError(WorkflowEngineError):
    """No workflow with the requested id exists."""

    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(f"Workflow not found: {workflow_id}")

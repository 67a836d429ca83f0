"""Exception hierarchy for discovery, routing and tool execution failures."""


class WarehouseAIError(Exception):
    """Base exception for all routing-layer errors."""

    pass


class DiscoveryError(WarehouseAIError):
    """Raised when an agent manifest is missing or malformed."""

    def __init__(self, agent_id: str, message: str):
        super().__init__(f"{agent_id}: {message}")
        self.agent_id = agent_id


class HealthProbeError(WarehouseAIError):
    """Raised when a health probe cannot reach an agent."""

    def __init__(self, agent_id: str, message: str):
        super().__init__(f"{agent_id}: {message}")
        self.agent_id = agent_id


class ClassificationError(WarehouseAIError):
    """Raised when the LLM classifier returns something unusable."""

    pass


class ClassificationTimeout(ClassificationError):
    """Raised when the LLM classifier does not answer within its timeout."""

    pass


class RoutingError(WarehouseAIError):
    """Raised when a classification cannot be routed to a healthy agent."""

    def __init__(self, message: str, agent_id: str = ""):
        super().__init__(message)
        self.agent_id = agent_id


class DispatchError(WarehouseAIError):
    """Raised when sending a message to an agent fails in transport."""

    def __init__(self, message: str, agent_id: str = ""):
        super().__init__(message)
        self.agent_id = agent_id


class ToolExecutionError(WarehouseAIError):
    """Raised when a tool call fails inside an agent."""

    def __init__(self, tool: str, message: str):
        super().__init__(f"{tool} failed: {message}")
        self.tool = tool


class InputValidationError(WarehouseAIError):
    """Raised when required input is missing or malformed."""

    pass

# Services package
# Registry, validation, dispatch and session handling for tool calls

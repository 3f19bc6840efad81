"""
Resource naming
Every resource name is "acp-<stack>-<suffix>"
"""

NAME_PREFIX = "acp"


def name_prefix(stack: str) -> str:
    """Prefix shared by all resources of one stack"""
    return f"{NAME_PREFIX}-{stack}"


def resource_name(prefix: str, suffix: str) -> str:
    return f"{prefix}-{suffix}"

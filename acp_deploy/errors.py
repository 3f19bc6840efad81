"""
Errors raised while describing the deployment graph
"""


class ConfigurationError(Exception):
    """Fatal: the stack configuration can't produce a valid graph"""


class DashboardError(Exception):
    """The prebuilt Grafana dashboards could not be fetched or read"""

"""
Akka Cloud Platform - Pulumi program
Kubernetes cluster, Akka Platform Operator and its backing services on AWS or GCP
"""
import pulumi

from acp_deploy.config import get_config
from acp_deploy.stack import deploy

config = get_config()
outputs = deploy(config)

# Exports
for key, value in outputs.items():
    if key == "jdbcPassword" and value is not None:
        value = pulumi.Output.secret(value)
    pulumi.export(key, value)

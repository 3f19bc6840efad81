"""
Cloud abstraction
Handles to cloud resources, and the operations every cloud provides
"""

import abc
from dataclasses import dataclass, field
from typing import Any, List, Optional, Union

import pulumi
import pulumi_kubernetes as k8s


@dataclass
class EksCluster:
    kubeconfig: pulumi.Output
    name: pulumi.Output
    # every Kubernetes resource is created through this provider, so it orders them after the cluster
    k8s_provider: k8s.Provider
    vpc: Any
    public_subnet_ids: List[pulumi.Output]
    private_subnet_ids: List[pulumi.Output]
    cluster: Any
    node_groups: List[Any]
    worker_security_group_ids: List[pulumi.Output]
    oidc_provider: Optional[Any] = None


@dataclass
class GkeCluster:
    kubeconfig: pulumi.Output
    name: pulumi.Output
    k8s_provider: k8s.Provider
    cluster: Any
    node_pool: Any
    network: str


KubernetesCluster = Union[EksCluster, GkeCluster]


@dataclass
class KafkaCluster:
    zookeeper_connect_string: pulumi.Output
    bootstrap_brokers: pulumi.Output
    bootstrap_brokers_tls: pulumi.Output


@dataclass
class JdbcDatabase:
    cluster_id: pulumi.Output
    username: pulumi.Output
    password: pulumi.Output
    endpoint: pulumi.Output
    reader_endpoint: pulumi.Output
    port: int = 5432
    connection_name: Optional[pulumi.Output] = None
    resources: List[Any] = field(default_factory=list)


class Cloud(abc.ABC):
    """
    Operations implemented once per cloud provider.
    A cloud is only ever handed back the cluster it created itself.
    """

    name: str

    def __init__(self, config):
        self.config = config

    @abc.abstractmethod
    def create_kubernetes_cluster(self) -> KubernetesCluster:
        """Network, control plane and at least one worker node pool"""

    @abc.abstractmethod
    def operator_service_account(self, cluster: KubernetesCluster, service_account_name: str,
                                 namespace: k8s.core.v1.Namespace) -> k8s.core.v1.ServiceAccount:
        """Service account the operator runs as, bound to the cloud's billing API where needed"""

    @abc.abstractmethod
    def create_kafka_cluster(self, cluster: KubernetesCluster) -> KafkaCluster:
        pass

    @abc.abstractmethod
    def create_jdbc_database(self, cluster: KubernetesCluster) -> JdbcDatabase:
        pass

    def install_prerequisites(self, cluster: KubernetesCluster,
                              namespace: k8s.core.v1.Namespace) -> List[pulumi.Resource]:
        """Cloud specific resources the operator chart needs before it is installed"""
        return []

    def operator_chart_values(self, service_account_name: str) -> dict:
        # chart values don't support shorthand assignment i.e. `serviceAccount.name: "foo"`
        return {
            "serviceAccount": {
                "name": service_account_name,
            },
        }

"""
GKE cluster
VPC-native cluster on the default network with a separately managed node pool
"""

import pulumi
import pulumi_gcp as gcp
import pulumi_kubernetes as k8s

from .kubeconfig import gke_kubeconfig
from .model import GkeCluster

DEFAULT_NETWORK = "default"
NODE_OAUTH_SCOPES = ["https://www.googleapis.com/auth/cloud-platform"]


def network_id(project: str, network: str = DEFAULT_NETWORK) -> str:
    return f"projects/{project}/global/networks/{network}"


def create_kubernetes_cluster(config) -> GkeCluster:
    """
    Create a GKE cluster and its autoscaling node pool

    Args:
        config: Stack configuration

    Returns:
        GkeCluster handle; its Kubernetes provider is ordered after the node pool
    """
    settings = config.gke
    network = network_id(settings.project)
    engine_version = gcp.container.get_engine_versions(
        project=settings.project,
        location=settings.zone).latest_master_version

    cluster = gcp.container.Cluster(
        config.name("gke"),
        name=settings.cluster_name,
        project=settings.project,
        location=settings.zone,
        network=network,
        min_master_version=engine_version,
        node_version=engine_version,
        # https://cloud.google.com/kubernetes-engine/docs/concepts/release-channels
        release_channel=gcp.container.ClusterReleaseChannelArgs(channel="REGULAR"),
        resource_labels={
            "pulumi-stack": config.stack,
            "pulumi-project": pulumi.get_project(),
        },
        networking_mode="VPC_NATIVE",
        # empty blocks let GKE pick the ranges
        ip_allocation_policy=gcp.container.ClusterIpAllocationPolicyArgs(
            cluster_ipv4_cidr_block="",
            services_ipv4_cidr_block="",
        ),
        # a cluster can't be created without a node pool, so create the smallest
        # default pool and drop it in favour of the managed one below
        initial_node_count=1,
        remove_default_node_pool=True,
        deletion_protection=False)

    # node pool names are short on GCP, keep the suffix short
    node_pool = gcp.container.NodePool(
        config.name("primary"),
        project=settings.project,
        cluster=cluster.name,
        location=settings.zone,
        version=engine_version,
        initial_node_count=settings.initial_node_count,
        autoscaling=gcp.container.NodePoolAutoscalingArgs(
            min_node_count=settings.min_node_count,
            max_node_count=settings.max_node_count,
        ),
        node_config=gcp.container.NodePoolNodeConfigArgs(
            machine_type=settings.node_machine_type,
            oauth_scopes=NODE_OAUTH_SCOPES,
        ),
        management=gcp.container.NodePoolManagementArgs(
            auto_repair=True,
            # must be true on the REGULAR release channel
            auto_upgrade=True,
        ),
        opts=pulumi.ResourceOptions(depends_on=[cluster]))

    kubeconfig = gke_kubeconfig(cluster, settings.project, settings.zone)
    k8s_provider = k8s.Provider(
        config.name("gcp-k8s"),
        kubeconfig=kubeconfig,
        namespace=config.operator.namespace,
        opts=pulumi.ResourceOptions(depends_on=[node_pool]))

    return GkeCluster(
        kubeconfig=kubeconfig,
        name=cluster.id,
        k8s_provider=k8s_provider,
        cluster=cluster,
        node_pool=node_pool,
        network=network,
    )


def create_operator_service_account(cluster: GkeCluster, service_account_name: str,
                                    namespace: k8s.core.v1.Namespace) -> k8s.core.v1.ServiceAccount:
    return k8s.core.v1.ServiceAccount(
        service_account_name,
        metadata=k8s.meta.v1.ObjectMetaArgs(
            name=service_account_name,
            namespace=namespace.metadata.name,
        ),
        opts=pulumi.ResourceOptions(provider=cluster.k8s_provider, depends_on=[namespace]))

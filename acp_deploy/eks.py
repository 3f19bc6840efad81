"""
EKS cluster
IAM roles, control plane, managed node group, OIDC provider and the operator service account
"""

import json
from typing import List

import pulumi
import pulumi_aws as aws
import pulumi_kubernetes as k8s

from .errors import ConfigurationError
from .kubeconfig import eks_kubeconfig
from .model import EksCluster
from .network import create_network

WORKER_POLICY_ARNS = [
    "arn:aws:iam::aws:policy/AmazonEKSWorkerNodePolicy",
    "arn:aws:iam::aws:policy/AmazonEKS_CNI_Policy",
    "arn:aws:iam::aws:policy/AmazonEC2ContainerRegistryReadOnly",
]

# AWS EKS root CA thumbprint, the same in every region
EKS_OIDC_THUMBPRINT = "9e99a48a9960b14926bb7f3b02e22da2b0ab7280"

# Lets the operator bill customers through the AWS Marketplace
METER_USAGE_POLICY = json.dumps({
    "Version": "2012-10-17",
    "Statement": [{
        "Effect": "Allow",
        "Action": ["aws-marketplace:MeterUsage"],
        "Resource": "*"
    }]
})


def assume_role_policy(service: str) -> str:
    return json.dumps({
        "Version": "2012-10-17",
        "Statement": [{
            "Action": "sts:AssumeRole",
            "Effect": "Allow",
            "Principal": {"Service": service}
        }]
    })


def service_account_trust_policy(oidc_url: str, oidc_arn: str, namespace: str, service_account_name: str) -> str:
    """Trust policy letting one Kubernetes service account assume a role through the cluster's OIDC provider"""
    issuer = oidc_url.replace("https://", "")
    return json.dumps({
        "Version": "2012-10-17",
        "Statement": [{
            "Effect": "Allow",
            "Principal": {"Federated": oidc_arn},
            "Action": "sts:AssumeRoleWithWebIdentity",
            "Condition": {
                "StringEquals": {
                    f"{issuer}:sub": f"system:serviceaccount:{namespace}:{service_account_name}"
                }
            }
        }]
    })


def create_cluster_role(name: str) -> aws.iam.Role:
    role = aws.iam.Role(name, assume_role_policy=assume_role_policy("eks.amazonaws.com"))
    aws.iam.RolePolicyAttachment(
        f"{name}-policy",
        policy_arn="arn:aws:iam::aws:policy/AmazonEKSClusterPolicy",
        role=role.name)
    return role


def create_worker_role(name: str) -> dict:
    """Worker node role with the EKS managed policies attached"""
    role = aws.iam.Role(name, assume_role_policy=assume_role_policy("ec2.amazonaws.com"))

    attachments = []
    for counter, policy_arn in enumerate(WORKER_POLICY_ARNS):
        attachments.append(aws.iam.RolePolicyAttachment(
            f"{name}-policy-{counter}",
            policy_arn=policy_arn,
            role=role.name))

    return {
        "role": role,
        "attachments": attachments,
    }


def create_oidc_provider(name: str, cluster: aws.eks.Cluster) -> aws.iam.OpenIdConnectProvider:
    # EKS publishes an OIDC issuer but doesn't register it in IAM
    return aws.iam.OpenIdConnectProvider(
        name,
        client_id_lists=["sts.amazonaws.com"],
        thumbprint_lists=[EKS_OIDC_THUMBPRINT],
        url=cluster.identities[0].oidcs[0].issuer)


def create_node_group(name: str, config, cluster: aws.eks.Cluster, worker: dict,
                      subnet_ids: List[pulumi.Output]) -> aws.eks.NodeGroup:
    settings = config.eks
    return aws.eks.NodeGroup(
        name,
        cluster_name=cluster.name,
        node_role_arn=worker["role"].arn,
        subnet_ids=subnet_ids,
        instance_types=[settings.node_instance_type],
        capacity_type="ON_DEMAND",
        scaling_config=aws.eks.NodeGroupScalingConfigArgs(
            desired_size=settings.node_desired_capacity,
            min_size=settings.node_min_size,
            max_size=settings.node_max_size,
        ),
        labels={"ondemand": "true"},
        tags={"Name": name},
        opts=pulumi.ResourceOptions(depends_on=worker["attachments"]))


def create_kubernetes_cluster(config) -> EksCluster:
    """
    Create the VPC, the EKS control plane and its worker node group

    Args:
        config: Stack configuration

    Returns:
        EksCluster handle; its Kubernetes provider is ordered after the node group
    """
    settings = config.eks
    network = create_network(config)

    cluster_role = create_cluster_role(config.name("cluster-role"))
    worker = create_worker_role(config.name("workers-role"))

    cluster = aws.eks.Cluster(
        config.name("eks"),
        role_arn=cluster_role.arn,
        version=settings.kubernetes_version,
        vpc_config=aws.eks.ClusterVpcConfigArgs(
            subnet_ids=network["public_subnet_ids"] + network["private_subnet_ids"],
            endpoint_public_access=True,
            endpoint_private_access=True,
        ),
        access_config=aws.eks.ClusterAccessConfigArgs(
            authentication_mode="API_AND_CONFIG_MAP"
        ),
        enabled_cluster_log_types=["api", "audit", "authenticator"])

    node_group = create_node_group(config.name("workers-ng"), config, cluster, worker,
                                   network["public_subnet_ids"])

    oidc_provider = None
    if settings.create_oidc_provider:
        oidc_provider = create_oidc_provider(config.name("oidc"), cluster)

    kubeconfig = eks_kubeconfig(cluster)
    k8s_provider = k8s.Provider(
        config.name("eks-k8s"),
        kubeconfig=kubeconfig,
        opts=pulumi.ResourceOptions(depends_on=[cluster, node_group]))

    return EksCluster(
        kubeconfig=kubeconfig,
        name=cluster.id,
        k8s_provider=k8s_provider,
        vpc=network["vpc"],
        public_subnet_ids=network["public_subnet_ids"],
        private_subnet_ids=network["private_subnet_ids"],
        cluster=cluster,
        node_groups=[node_group],
        # managed node groups run with the EKS-managed cluster security group
        worker_security_group_ids=[cluster.vpc_config.cluster_security_group_id],
        oidc_provider=oidc_provider,
    )


def create_operator_service_account(config, cluster: EksCluster, service_account_name: str,
                                    namespace: k8s.core.v1.Namespace) -> k8s.core.v1.ServiceAccount:
    """
    Service account for the operator, bound to an IAM role allowed to call MeterUsage

    Raises:
        ConfigurationError: the cluster was created without an OIDC provider
    """
    oidc_provider = cluster.oidc_provider
    if oidc_provider is None:
        raise ConfigurationError(
            "Operator service account needs the cluster OIDC provider, set 'eks.createOidcProvider' to true")

    trust_policy = pulumi.Output.all(
        oidc_provider.url,
        oidc_provider.arn,
        namespace.metadata.name
    ).apply(lambda args: service_account_trust_policy(args[0], args[1], args[2], service_account_name))

    role = aws.iam.Role(config.name("sa-role"), assume_role_policy=trust_policy)
    policy = aws.iam.Policy(config.name("billing-rp"), policy=METER_USAGE_POLICY)
    aws.iam.RolePolicyAttachment(
        config.name("sa-rpa"),
        policy_arn=policy.arn,
        role=role.name)

    return k8s.core.v1.ServiceAccount(
        service_account_name,
        metadata=k8s.meta.v1.ObjectMetaArgs(
            name=service_account_name,
            namespace=namespace.metadata.name,
            annotations={"eks.amazonaws.com/role-arn": role.arn},
        ),
        opts=pulumi.ResourceOptions(provider=cluster.k8s_provider, depends_on=[namespace]))

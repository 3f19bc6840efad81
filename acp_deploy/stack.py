"""
Akka Cloud Platform stack
One pass: cluster, operator, telemetry, then the optional Kafka, JDBC and collector branches
"""

from typing import Any, Dict, Optional

import pulumi
import pulumi_kubernetes as k8s

from . import addons, otel, telemetry
from .clouds import select_cloud
from .model import Cloud, JdbcDatabase, KafkaCluster, KubernetesCluster

OUTPUT_KEYS = (
    "kubeconfig",
    "clusterName",
    "operatorNamespace",
    "kafkaZookeeperConnectString",
    "kafkaBootstrapBrokersTls",
    "kafkaBootstrapBrokers",
    "kafkaBootstrapServerSecret",
    "jdbcClusterId",
    "jdbcUsername",
    "jdbcPassword",
    "jdbcEndpoint",
    "jdbcReaderEndpoint",
    "jdbcConnectionName",
    "jdbcSecret",
    "awsOTelCollectorServiceEndpoint",
)


def jdbc_connection_url(endpoint: Any, port: int = 5432) -> pulumi.Output:
    return pulumi.Output.concat("jdbc:postgresql://", endpoint, f":{port}/")


def create_operator_namespace(config, cluster: KubernetesCluster) -> k8s.core.v1.Namespace:
    name = config.operator.namespace
    return k8s.core.v1.Namespace(
        name,
        metadata=k8s.meta.v1.ObjectMetaArgs(name=name),
        opts=pulumi.ResourceOptions(provider=cluster.k8s_provider))


def create_kafka_secret(config, cluster: KubernetesCluster, namespace: k8s.core.v1.Namespace,
                        kafka: KafkaCluster) -> k8s.core.v1.Secret:
    """Bootstrap servers for Akka services using Kafka"""
    name = config.name("kafka-secret")
    return k8s.core.v1.Secret(
        name,
        metadata=k8s.meta.v1.ObjectMetaArgs(name=name, namespace=config.operator.namespace),
        string_data={"bootstrapServers": kafka.bootstrap_brokers},
        opts=pulumi.ResourceOptions(provider=cluster.k8s_provider, depends_on=[namespace]))


def create_jdbc_secret(config, cluster: KubernetesCluster, namespace: k8s.core.v1.Namespace,
                       database: JdbcDatabase) -> k8s.core.v1.Secret:
    """Credentials and connection URL for Akka services using JDBC"""
    name = config.name("jdbc-secret")
    return k8s.core.v1.Secret(
        name,
        metadata=k8s.meta.v1.ObjectMetaArgs(name=name, namespace=config.operator.namespace),
        string_data={
            "username": database.username,
            "password": database.password,
            "connectionUrl": jdbc_connection_url(database.endpoint, database.port),
        },
        opts=pulumi.ResourceOptions(provider=cluster.k8s_provider, depends_on=[namespace] + database.resources))


def deploy(config, cloud: Optional[Cloud] = None) -> Dict[str, Any]:
    """
    Build the whole resource graph for the selected cloud

    Args:
        config: Stack configuration
        cloud: Cloud implementation, selected from the configuration when omitted

    Returns:
        Dict of stack outputs, None for every branch that is disabled
    """
    cloud = cloud or select_cloud(config)
    outputs: Dict[str, Any] = dict.fromkeys(OUTPUT_KEYS)
    pulumi.log.info(f"Deploying Akka Cloud Platform on {cloud.name} as {config.prefix}")

    # 1. Kubernetes cluster
    cluster = cloud.create_kubernetes_cluster()
    outputs["kubeconfig"] = cluster.kubeconfig
    outputs["clusterName"] = cluster.name

    if config.install_metrics_server:
        addons.install_metrics_server(cluster)

    # 2. Operator
    namespace = create_operator_namespace(config, cluster)
    outputs["operatorNamespace"] = namespace.metadata.name

    service_account_name = config.name("sa")
    service_account = cloud.operator_service_account(cluster, service_account_name, namespace)
    prerequisites = cloud.install_prerequisites(cluster, namespace)

    if config.operator.install:
        addons.install_operator(
            config, cloud, cluster, namespace, service_account_name,
            depends_on=[service_account] + prerequisites)
    else:
        pulumi.log.info("Skipping the Akka Platform Operator chart")

    # 3. Telemetry
    if config.telemetry.install_backends:
        telemetry.install_backends(config, cluster)

    # 4. Kafka
    if config.deploy_kafka_cluster:
        kafka = cloud.create_kafka_cluster(cluster)
        secret = create_kafka_secret(config, cluster, namespace, kafka)
        outputs["kafkaZookeeperConnectString"] = kafka.zookeeper_connect_string
        outputs["kafkaBootstrapBrokersTls"] = kafka.bootstrap_brokers_tls
        outputs["kafkaBootstrapBrokers"] = kafka.bootstrap_brokers
        outputs["kafkaBootstrapServerSecret"] = secret.metadata.name
    else:
        pulumi.log.info("Skipping the Kafka cluster")

    # 5. JDBC database
    if config.deploy_jdbc_database:
        database = cloud.create_jdbc_database(cluster)
        secret = create_jdbc_secret(config, cluster, namespace, database)
        outputs["jdbcClusterId"] = database.cluster_id
        outputs["jdbcUsername"] = database.username
        outputs["jdbcPassword"] = database.password
        outputs["jdbcEndpoint"] = database.endpoint
        outputs["jdbcReaderEndpoint"] = database.reader_endpoint
        outputs["jdbcConnectionName"] = database.connection_name
        outputs["jdbcSecret"] = secret.metadata.name
    else:
        pulumi.log.info("Skipping the JDBC database")

    # 6. Tracing
    if config.otel.install:
        collector = otel.install_collector(config, cluster)
        outputs["awsOTelCollectorServiceEndpoint"] = collector["endpoint"]

    return outputs

"""
Cloud SQL for PostgreSQL
Private IP only. GKE reaches it directly because the cluster is VPC-native,
otherwise the Cloud SQL proxy would be required.
"""

import pulumi
import pulumi_gcp as gcp

from .model import GkeCluster, JdbcDatabase
from .passwords import create_database_password

DB_USERNAME = "postgres"
POSTGRES_PORT = 5432


def create_private_connection(config, network: str) -> gcp.servicenetworking.Connection:
    """Peering between the cluster network and the Google services network"""
    settings = config.gke
    private_ip_address = gcp.compute.GlobalAddress(
        config.name("akka-private-ip-address"),
        project=settings.project,
        purpose="VPC_PEERING",
        address_type="INTERNAL",
        prefix_length=16,
        network=network)

    return gcp.servicenetworking.Connection(
        config.name("akka-private-vpc-connection"),
        network=network,
        service="servicenetworking.googleapis.com",
        reserved_peering_ranges=[private_ip_address.name])


def create_jdbc_database(config, cluster: GkeCluster) -> JdbcDatabase:
    """
    Create a Cloud SQL instance peered with the cluster network, and its postgres user

    Args:
        config: Stack configuration
        cluster: The GKE cluster sharing the network

    Returns:
        JdbcDatabase handle; the reader endpoint is the primary, there are no replicas
    """
    settings = config.cloudsql
    connection = create_private_connection(config, cluster.network)

    instance = gcp.sql.DatabaseInstance(
        config.name("instance"),
        project=config.gke.project,
        region=config.gke.region,
        database_version=settings.database_version,
        settings=gcp.sql.DatabaseInstanceSettingsArgs(
            tier=settings.tier,
            ip_configuration=gcp.sql.DatabaseInstanceSettingsIpConfigurationArgs(
                ipv4_enabled=False,
                private_network=cluster.network,
            ),
        ),
        # the instance goes away with the stack, data included
        deletion_protection=False,
        opts=pulumi.ResourceOptions(depends_on=[connection]))

    password = create_database_password(config.name("sql-password"), config.db_password_length)
    user = gcp.sql.User(
        config.name("sql-user"),
        project=config.gke.project,
        instance=instance.name,
        name=DB_USERNAME,
        password=password.result)

    return JdbcDatabase(
        cluster_id=instance.name,
        username=user.name,
        password=password.result,
        endpoint=instance.private_ip_address,
        reader_endpoint=instance.private_ip_address,
        port=POSTGRES_PORT,
        connection_name=instance.connection_name,
        resources=[instance, user],
    )

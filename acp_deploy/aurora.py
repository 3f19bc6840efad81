"""
Aurora PostgreSQL cluster
Private subnets of the EKS VPC, reachable from the worker nodes
"""

import pulumi
import pulumi_aws as aws

from .model import EksCluster, JdbcDatabase
from .passwords import create_database_password

AURORA_ENGINE = "aurora-postgresql"
MASTER_USERNAME = "postgres"
POSTGRES_PORT = 5432


def create_jdbc_database(config, cluster: EksCluster) -> JdbcDatabase:
    """
    Create an Aurora PostgreSQL cluster with its writer and reader instances

    Args:
        config: Stack configuration
        cluster: The EKS cluster whose workers connect to the database

    Returns:
        JdbcDatabase handle with the generated credentials and endpoints
    """
    settings = config.rds
    rds_name = config.name("rds")

    password = create_database_password(config.name("rds-password"), config.db_password_length)

    # a db subnet group is a prerequisite for an RDS cluster in an existing VPC
    subnet_group = aws.rds.SubnetGroup(
        config.name("rds-subnet-group"),
        subnet_ids=cluster.private_subnet_ids)

    aurora = aws.rds.Cluster(
        rds_name,
        cluster_identifier=rds_name,
        engine=AURORA_ENGINE,
        master_username=MASTER_USERNAME,
        master_password=password.result,
        backup_retention_period=5,
        preferred_backup_window="07:00-09:00",
        db_subnet_group_name=subnet_group.name,
        # no final snapshot on `pulumi destroy`, the data is lost with the stack
        skip_final_snapshot=True,
        vpc_security_group_ids=cluster.worker_security_group_ids,
        opts=pulumi.ResourceOptions(depends_on=cluster.node_groups))

    instance_name = config.name("rds-inst")
    instances = []
    for index in range(settings.number_of_instances):
        instances.append(aws.rds.ClusterInstance(
            f"{instance_name}-{index}",
            identifier=f"{instance_name}-{index}",
            cluster_identifier=aurora.id,
            instance_class=settings.instance_class,
            engine=AURORA_ENGINE,
            engine_version=aurora.engine_version))

    return JdbcDatabase(
        cluster_id=aurora.cluster_resource_id,
        username=aurora.master_username,
        password=password.result,
        endpoint=aurora.endpoint,
        reader_endpoint=aurora.reader_endpoint,
        port=POSTGRES_PORT,
        resources=[aurora, *instances],
    )

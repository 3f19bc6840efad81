"""
AWS network for the EKS cluster
VPC with one public and one private subnet per availability zone
"""

import ipaddress
import itertools
from typing import Any, Dict, List

import pulumi
import pulumi_aws as aws

from .errors import ConfigurationError

# a /16 VPC is split into /20 subnets
SUBNET_BITS = 4
# smallest subnet AWS accepts
MAX_SUBNET_PREFIX = 28


def subnet_cidrs(vpc_cidr: str, count: int) -> Dict[str, List[str]]:
    """
    Split the VPC into equal subnets: the first `count` public, the next `count` private.
    A /16 gives /20 subnets; a smaller VPC gives proportionally smaller ones.

    Args:
        vpc_cidr: VPC CIDR block, e.g. 10.0.0.0/16
        count: Number of availability zones

    Returns:
        Dict with "public" and "private" CIDR lists

    Raises:
        ConfigurationError: invalid CIDR, or not enough room for the subnets
    """
    try:
        network = ipaddress.IPv4Network(vpc_cidr)
    except ValueError as e:
        raise ConfigurationError(f"Invalid 'vpc.cidr' value '{vpc_cidr}': {e}") from e

    bits = max(SUBNET_BITS, (count * 2 - 1).bit_length())
    new_prefix = network.prefixlen + bits
    if new_prefix > MAX_SUBNET_PREFIX:
        raise ConfigurationError(
            f"'vpc.cidr' {vpc_cidr} is too small for {count * 2} subnets of at least /{MAX_SUBNET_PREFIX}")

    blocks = [str(subnet) for subnet in itertools.islice(network.subnets(new_prefix=new_prefix), count * 2)]
    return {
        "public": blocks[:count],
        "private": blocks[count:],
    }


def create_vpc(name: str, cidr: str) -> aws.ec2.Vpc:
    return aws.ec2.Vpc(
        name,
        cidr_block=cidr,
        enable_dns_hostnames=True,
        enable_dns_support=True,
        tags={"Name": name}
    )


def create_subnets(name: str, vpc_id: pulumi.Output, cidrs: List[str], availability_zones: List[str],
                   public: bool) -> List[aws.ec2.Subnet]:
    kind = "public" if public else "private"
    role_tag = "kubernetes.io/role/elb" if public else "kubernetes.io/role/internal-elb"

    subnets = []
    for i, cidr in enumerate(cidrs):
        subnet = aws.ec2.Subnet(
            f"{name}-{kind}-{i + 1}",
            vpc_id=vpc_id,
            cidr_block=cidr,
            availability_zone=availability_zones[i],
            map_public_ip_on_launch=public,
            tags={
                "Name": f"{name}-{kind}-{i + 1}",
                role_tag: "1",
            }
        )
        subnets.append(subnet)
    return subnets


def create_public_route_table(name: str, vpc_id: pulumi.Output, igw_id: pulumi.Output,
                              subnets: List[aws.ec2.Subnet]) -> aws.ec2.RouteTable:
    route_table = aws.ec2.RouteTable(
        f"{name}-public-rt",
        vpc_id=vpc_id,
        routes=[aws.ec2.RouteTableRouteArgs(
            cidr_block="0.0.0.0/0",
            gateway_id=igw_id)],
        tags={"Name": f"{name}-public-rt"}
    )

    for i, subnet in enumerate(subnets):
        aws.ec2.RouteTableAssociation(
            f"{name}-public-rta-{i + 1}",
            subnet_id=subnet.id,
            route_table_id=route_table.id
        )

    return route_table


def create_network(config) -> Dict[str, Any]:
    """
    Create the VPC the cluster, brokers and database share

    Returns:
        Dict with the vpc and the public/private subnet ids
    """
    settings = config.eks
    name = config.name("vpc")
    count = settings.number_of_availability_zones

    azs = aws.get_availability_zones(state="available")
    if len(azs.names) < count:
        pulumi.log.warn(
            f"Only {len(azs.names)} availability zones available, {count} requested")
        count = len(azs.names)
    zones = azs.names[:count]
    cidrs = subnet_cidrs(settings.vpc_cidr, count)

    vpc = create_vpc(name, settings.vpc_cidr)
    igw = aws.ec2.InternetGateway(f"{name}-igw", vpc_id=vpc.id, tags={"Name": f"{name}-igw"})

    public_subnets = create_subnets(name, vpc.id, cidrs["public"], zones, public=True)
    private_subnets = create_subnets(name, vpc.id, cidrs["private"], zones, public=False)
    create_public_route_table(name, vpc.id, igw.id, public_subnets)

    return {
        "vpc": vpc,
        "public_subnet_ids": [subnet.id for subnet in public_subnets],
        "private_subnet_ids": [subnet.id for subnet in private_subnets],
    }

from typing import List, Optional

import pulumi
import pulumi_aws as aws

from awsclassic import AWSResourceBuilder
from config import NetworkConfig

def available_zones(builder: AWSResourceBuilder, config: NetworkConfig) -> pulumi.Output[List[str]]:
    """Configured zones, or the zones the account can use in the stack region."""
    if config.availability_zones:
        return pulumi.Output.from_input(list(config.availability_zones))
    zones = aws.get_availability_zones_output(
        state="available",
        opts=pulumi.InvokeOptions(provider=builder.provider),
    )
    return zones.names

def pick_zone(zones: pulumi.Output[List[str]], index: int) -> pulumi.Output[str]:
    return zones.apply(lambda names: names[index % len(names)])

class Network(pulumi.ComponentResource):
    def __init__(self, builder: AWSResourceBuilder, config: NetworkConfig, opts: Optional[pulumi.ResourceOptions] = None):
        super().__init__("infra:modules:Network", builder.generate_resource_name("network"), None, opts)

        zones = available_zones(builder, config)
        child_opts = pulumi.ResourceOptions(parent=self, provider=builder.provider)

        self.vpc = builder.register("vpc", aws.ec2.Vpc(
            builder.generate_resource_name("vpc"),
            cidr_block=config.vpc_cidr,
            enable_dns_support=True,
            enable_dns_hostnames=True,
            tags=builder.tags("vpc"),
            opts=child_opts,
        ))

        self.internet_gateway = builder.register("igw", aws.ec2.InternetGateway(
            builder.generate_resource_name("igw"),
            vpc_id=self.vpc.id,
            tags=builder.tags("igw"),
            opts=child_opts,
        ))

        self.public_route_table = builder.register("public_rt", aws.ec2.RouteTable(
            builder.generate_resource_name("public-rt"),
            vpc_id=self.vpc.id,
            routes=[aws.ec2.RouteTableRouteArgs(
                cidr_block="0.0.0.0/0",
                gateway_id=self.internet_gateway.id,
            )],
            tags=builder.tags("public-rt"),
            opts=child_opts,
        ))

        self.public_subnets: List[aws.ec2.Subnet] = []
        for index, cidr in enumerate(config.public_subnet_cidrs):
            base_name = f"public-{index + 1}"
            subnet = builder.register(f"public_subnet_{index + 1}", aws.ec2.Subnet(
                builder.generate_resource_name(base_name),
                vpc_id=self.vpc.id,
                cidr_block=cidr,
                availability_zone=pick_zone(zones, index),
                map_public_ip_on_launch=True,
                tags={**builder.tags(base_name), "Tier": "public"},
                opts=child_opts,
            ))
            aws.ec2.RouteTableAssociation(
                builder.generate_resource_name(f"{base_name}-rta"),
                subnet_id=subnet.id,
                route_table_id=self.public_route_table.id,
                opts=child_opts,
            )
            self.public_subnets.append(subnet)

        self.private_subnets: List[aws.ec2.Subnet] = []
        for index, cidr in enumerate(config.private_subnet_cidrs):
            base_name = f"private-{index + 1}"
            subnet = builder.register(f"private_subnet_{index + 1}", aws.ec2.Subnet(
                builder.generate_resource_name(base_name),
                vpc_id=self.vpc.id,
                cidr_block=cidr,
                availability_zone=pick_zone(zones, index),
                map_public_ip_on_launch=False,
                tags={**builder.tags(base_name), "Tier": "private"},
                opts=child_opts,
            ))
            self.private_subnets.append(subnet)

        self.vpc_id = self.vpc.id
        self.public_subnet_ids = pulumi.Output.all(*[s.id for s in self.public_subnets])
        self.private_subnet_ids = pulumi.Output.all(*[s.id for s in self.private_subnets])

        pulumi.log.info(f"Declared network {config.vpc_cidr} with {len(self.public_subnets)} public "
                        f"and {len(self.private_subnets)} private subnets")
        self.register_outputs({
            "vpc_id": self.vpc_id,
            "public_subnet_ids": self.public_subnet_ids,
            "private_subnet_ids": self.private_subnet_ids,
        })

from typing import List, Optional

import pulumi
import pulumi_aws as aws

from awsclassic import AWSResourceBuilder
from config import ComputeConfig

AMAZON_LINUX_FILTER = "al2023-ami-2023.*-x86_64"

def compute_ingress_rules(config: ComputeConfig) -> List[aws.ec2.SecurityGroupIngressArgs]:
    """SSH from the operator ranges, web ports from anywhere."""
    rules = []
    if config.ssh_cidrs:
        rules.append(aws.ec2.SecurityGroupIngressArgs(
            description="SSH",
            protocol="tcp",
            from_port=22,
            to_port=22,
            cidr_blocks=list(config.ssh_cidrs),
        ))
    for port in config.http_ports:
        rules.append(aws.ec2.SecurityGroupIngressArgs(
            description=f"HTTP {port}",
            protocol="tcp",
            from_port=int(port),
            to_port=int(port),
            cidr_blocks=["0.0.0.0/0"],
        ))
    return rules

def lookup_ami(builder: AWSResourceBuilder) -> pulumi.Output[str]:
    ami = aws.ec2.get_ami_output(
        most_recent=True,
        owners=["amazon"],
        filters=[aws.ec2.GetAmiFilterArgs(name="name", values=[AMAZON_LINUX_FILTER])],
        opts=pulumi.InvokeOptions(provider=builder.provider),
    )
    return ami.id

class Compute(pulumi.ComponentResource):
    def __init__(self, builder: AWSResourceBuilder, config: ComputeConfig, vpc_id: pulumi.Input[str],
                 subnet_id: pulumi.Input[str], opts: Optional[pulumi.ResourceOptions] = None):
        super().__init__("infra:modules:Compute", builder.generate_resource_name("compute"), None, opts)
        child_opts = pulumi.ResourceOptions(parent=self, provider=builder.provider)

        self.security_group = builder.register("instance_sg", aws.ec2.SecurityGroup(
            builder.generate_resource_name("instance-sg"),
            description="Instance access",
            vpc_id=vpc_id,
            ingress=compute_ingress_rules(config),
            egress=[aws.ec2.SecurityGroupEgressArgs(
                protocol="-1",
                from_port=0,
                to_port=0,
                cidr_blocks=["0.0.0.0/0"],
            )],
            tags=builder.tags("instance-sg"),
            opts=child_opts,
        ))

        if config.ami:
            ami = config.ami
        else:
            pulumi.log.info(f"No AMI configured, using the latest image matching '{AMAZON_LINUX_FILTER}'")
            ami = lookup_ami(builder)

        self.instance = builder.register("instance", aws.ec2.Instance(
            builder.generate_resource_name("instance"),
            ami=ami,
            instance_type=config.instance_type,
            subnet_id=subnet_id,
            vpc_security_group_ids=[self.security_group.id],
            associate_public_ip_address=True,
            key_name=config.key_name,
            user_data=config.user_data,
            root_block_device=aws.ec2.InstanceRootBlockDeviceArgs(
                volume_size=config.root_volume_size,
                volume_type="gp3",
                encrypted=True,
            ),
            metadata_options=aws.ec2.InstanceMetadataOptionsArgs(http_tokens="required"),
            tags=builder.tags("instance"),
            opts=child_opts,
        ))

        self.instance_id = self.instance.id
        self.public_ip = self.instance.public_ip
        self.public_dns = self.instance.public_dns
        self.security_group_id = self.security_group.id

        self.register_outputs({
            "instance_id": self.instance_id,
            "public_ip": self.public_ip,
            "public_dns": self.public_dns,
            "security_group_id": self.security_group_id,
        })

from typing import List, Optional

import pulumi
import pulumi_aws as aws

from awsclassic import AWSResourceBuilder, resolve_value
from config import DatabaseConfig, validate_db_identifier

def database_ingress_rules(port: int, source_security_group_id: pulumi.Input[str]) -> List[aws.ec2.SecurityGroupIngressArgs]:
    """The database port, reachable from the compute security group and nothing else."""
    return [aws.ec2.SecurityGroupIngressArgs(
        description="Database access from compute",
        protocol="tcp",
        from_port=port,
        to_port=port,
        security_groups=[source_security_group_id],
    )]

def resolve_password(builder: AWSResourceBuilder, password: str) -> pulumi.Input[str]:
    if password.startswith("secret:"):
        return resolve_value(password, builder.resources)
    pulumi.log.warn("Database password is set in plain text; use 'secret:<config-key>' instead")
    return pulumi.Output.secret(password)

class Database(pulumi.ComponentResource):
    def __init__(self, builder: AWSResourceBuilder, config: DatabaseConfig, vpc_id: pulumi.Input[str],
                 subnet_ids: List[pulumi.Input[str]], source_security_group_id: pulumi.Input[str],
                 opts: Optional[pulumi.ResourceOptions] = None):
        identifier = validate_db_identifier(builder.generate_resource_name("db"))
        super().__init__("infra:modules:Database", builder.generate_resource_name("database"), None, opts)
        child_opts = pulumi.ResourceOptions(parent=self, provider=builder.provider)

        self.subnet_group = builder.register("db_subnet_group", aws.rds.SubnetGroup(
            builder.generate_resource_name("db-subnets"),
            name=builder.generate_resource_name("db-subnets"),
            subnet_ids=subnet_ids,
            tags=builder.tags("db-subnets"),
            opts=child_opts,
        ))

        self.security_group = builder.register("db_sg", aws.ec2.SecurityGroup(
            builder.generate_resource_name("db-sg"),
            description="Database access from the instance security group only",
            vpc_id=vpc_id,
            ingress=database_ingress_rules(config.port, source_security_group_id),
            tags=builder.tags("db-sg"),
            opts=child_opts,
        ))

        self.instance = builder.register("db", aws.rds.Instance(
            identifier,
            identifier=identifier,
            engine=config.engine,
            engine_version=config.engine_version,
            instance_class=config.instance_class,
            allocated_storage=config.allocated_storage,
            storage_type=config.storage_type,
            storage_encrypted=True,
            db_name=config.db_name,
            port=config.port,
            username=config.username,
            password=resolve_password(builder, config.password),
            db_subnet_group_name=self.subnet_group.name,
            vpc_security_group_ids=[self.security_group.id],
            publicly_accessible=False,
            multi_az=config.multi_az,
            backup_retention_period=config.backup_retention_period,
            skip_final_snapshot=config.skip_final_snapshot,
            final_snapshot_identifier=None if config.skip_final_snapshot else f"{identifier}-final",
            deletion_protection=config.deletion_protection,
            tags=builder.tags("db"),
            opts=child_opts,
        ))

        self.endpoint = self.instance.endpoint
        self.address = self.instance.address
        self.port = self.instance.port

        self.register_outputs({
            "endpoint": self.endpoint,
            "address": self.address,
            "port": self.port,
        })

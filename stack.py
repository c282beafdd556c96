"""Root composition: wires the modules together and collects the stack outputs."""

from typing import Any, Dict

from awsclassic import AWSResourceBuilder
from config import Config, validate_bucket_name, validate_db_identifier
from modules import Compute, Database, Network, StateBackend, Storage

def build_stack(builder: AWSResourceBuilder) -> Dict[str, Any]:
    config: Config = builder.config

    # names derived from team/service/environment must be valid before anything is registered
    validate_db_identifier(builder.generate_resource_name("db"))
    validate_bucket_name(builder.generate_resource_name(config.storage.bucket_suffix))

    network = Network(builder, config.network)
    compute = Compute(
        builder,
        config.compute,
        vpc_id=network.vpc_id,
        subnet_id=network.public_subnets[0].id,
    )
    database = Database(
        builder,
        config.database,
        vpc_id=network.vpc_id,
        subnet_ids=[s.id for s in network.private_subnets],
        source_security_group_id=compute.security_group_id,
    )
    storage = Storage(builder, config.storage)
    backend = StateBackend(builder, config.backend)

    # Free-form extras may reference anything registered above.
    builder.build()

    return {
        "instance_public_ip": compute.public_ip,
        "instance_public_dns": compute.public_dns,
        "security_group_id": compute.security_group_id,
        "db_endpoint": database.endpoint,
        "bucket_name": storage.bucket_name,
        "vpc_id": network.vpc_id,
        "public_subnet_ids": network.public_subnet_ids,
        "private_subnet_ids": network.private_subnet_ids,
        "state_backend_url": backend.url,
        "state_lock_table": backend.lock_table_name,
    }

import pulumi
import pytest

from awsclassic import AWSResourceBuilder
from conftest import MOCK_ZONES, MOCKS, example_config
from modules.database import resolve_password
from stack import build_stack

def build(**overrides):
    builder = AWSResourceBuilder(example_config(**overrides))
    return builder, build_stack(builder)

@pulumi.runtime.test
def test_example_inputs_resolve_outputs():
    _, outputs = build()

    def check(args):
        ip, dns, endpoint, bucket, backend_url = args
        assert ip == "203.0.113.10"
        assert dns.endswith(".compute.amazonaws.com")
        assert endpoint == "platform-app-dev-usw2-db.c1a2b3c4d5e6.us-west-2.rds.amazonaws.com:5432"
        assert bucket == "platform-app-dev-usw2-data"
        assert backend_url == "s3://platform-app-dev-usw2-state/state?region=us-west-2"

    return pulumi.Output.all(
        outputs["instance_public_ip"],
        outputs["instance_public_dns"],
        outputs["db_endpoint"],
        outputs["bucket_name"],
        outputs["state_backend_url"],
    ).apply(check)

@pulumi.runtime.test
def test_network_outputs():
    _, outputs = build()

    def check(args):
        vpc_id, public_ids, private_ids = args
        assert vpc_id == "platform-app-dev-usw2-vpc_id"
        assert public_ids == ["platform-app-dev-usw2-public-1_id", "platform-app-dev-usw2-public-2_id"]
        assert private_ids == ["platform-app-dev-usw2-private-1_id", "platform-app-dev-usw2-private-2_id"]

    return pulumi.Output.all(outputs["vpc_id"], outputs["public_subnet_ids"], outputs["private_subnet_ids"]).apply(check)

@pulumi.runtime.test
def test_instance_lands_in_first_public_subnet():
    builder, _ = build()
    instance = builder.resources["instance"]

    def check(args):
        subnet_id, instance_type, sg_ids = args
        assert subnet_id == "platform-app-dev-usw2-public-1_id"
        assert instance_type == "t3.micro"
        assert sg_ids == ["platform-app-dev-usw2-instance-sg_id"]

    return pulumi.Output.all(
        instance.subnet_id, instance.instance_type, instance.vpc_security_group_ids,
    ).apply(check)

@pulumi.runtime.test
def test_database_is_private_and_encrypted():
    builder, _ = build()
    db = builder.resources["db"]

    def check(args):
        public, encrypted, instance_class, storage, sg_ids, subnet_group = args
        assert public is False
        assert encrypted is True
        assert instance_class == "db.t3.micro"
        assert storage == 20
        assert sg_ids == ["platform-app-dev-usw2-db-sg_id"]
        assert subnet_group == "platform-app-dev-usw2-db-subnets"

    return pulumi.Output.all(
        db.publicly_accessible,
        db.storage_encrypted,
        db.instance_class,
        db.allocated_storage,
        db.vpc_security_group_ids,
        db.db_subnet_group_name,
    ).apply(check)

@pulumi.runtime.test
def test_rebuilding_declares_the_same_resources():
    first, _ = build()
    second, _ = build()
    assert set(first.resources) == set(second.resources)

    def check(urns):
        half = len(urns) // 2
        assert urns[:half] == urns[half:]

    names = sorted(first.resources)
    return pulumi.Output.all(
        *[first.resources[n].urn for n in names],
        *[second.resources[n].urn for n in names],
    ).apply(check)

@pulumi.runtime.test
def test_extras_can_reference_module_resources():
    builder, _ = build(aws_resources=[
        {"name": "web_ip", "type": "ec2.Eip", "args": {"instance": "ref:instance", "domain": "vpc"}},
    ])
    eip = builder.resources["web_ip"]

    def check(instance_id):
        assert instance_id == "platform-app-dev-usw2-instance_id"

    return eip.instance.apply(check)

@pulumi.runtime.test
def test_bootstrap_declares_state_storage():
    builder, _ = build(backend={"bootstrap": True, "bucket": "platform-tfstate", "lock_table": "platform-locks"})
    assert "state_bucket" in builder.resources
    table = builder.resources["state_lock_table"]

    def check(args):
        name, hash_key, billing = args
        assert name == "platform-locks"
        assert hash_key == "LockID"
        assert billing == "PAY_PER_REQUEST"

    return pulumi.Output.all(table.name, table.hash_key, table.billing_mode).apply(check)

@pulumi.runtime.test
def test_state_storage_is_declared_in_the_backend_region():
    builder, outputs = build(backend={
        "bootstrap": True,
        "bucket": "platform-tfstate-euw1",
        "lock_table": "platform-state-locks-euw1",
        "region": "eu-west-1",
    })
    state_bucket = builder.resources["state_bucket"]
    lock_table = builder.resources["state_lock_table"]
    data_bucket = builder.resources["bucket"]

    def check(args):
        url = args[0]
        assert url == "s3://platform-tfstate-euw1/state?region=eu-west-1"

        backend_provider = "platform-app-dev-usw2-provider-euw1"
        typ, inputs, _ = MOCKS.registered[backend_provider]
        assert typ == "pulumi:providers:aws"
        assert inputs["region"] == "eu-west-1"
        for name in ("platform-tfstate-euw1", "platform-state-locks-euw1"):
            assert f"::{backend_provider}::" in MOCKS.registered[name][2]
        assert "::platform-app-dev-usw2-provider::" in MOCKS.registered["platform-app-dev-usw2-data"][2]

    return pulumi.Output.all(
        outputs["state_backend_url"], state_bucket.urn, lock_table.urn, data_bucket.urn,
    ).apply(check)

@pulumi.runtime.test
def test_default_zones_come_from_the_account_lookup():
    builder, _ = build(network={
        "public_subnet_cidrs": ["10.0.1.0/24", "10.0.2.0/24", "10.0.3.0/24"],
        "private_subnet_cidrs": ["10.0.101.0/24", "10.0.102.0/24"],
    })
    public = [builder.resources[f"public_subnet_{i}"] for i in (1, 2, 3)]

    def check(zones):
        assert zones == MOCK_ZONES
        lookups = [c for c in MOCKS.calls if c[0] == "aws:index/getAvailabilityZones:getAvailabilityZones"]
        assert lookups
        assert lookups[-1][1]["state"] == "available"
        assert "::platform-app-dev-usw2-provider::" in lookups[-1][2]

    return pulumi.Output.all(*[s.availability_zone for s in public]).apply(check)

@pulumi.runtime.test
def test_configured_zones_are_used_as_given():
    builder, _ = build(network={"availability_zones": ["us-west-2c", "us-west-2d"]})
    subnets = [builder.resources[k] for k in ("public_subnet_1", "public_subnet_2", "private_subnet_1", "private_subnet_2")]

    def check(zones):
        assert zones == ["us-west-2c", "us-west-2d", "us-west-2c", "us-west-2d"]

    return pulumi.Output.all(*[s.availability_zone for s in subnets]).apply(check)

@pulumi.runtime.test
def test_bucket_blocks_public_access_and_encrypts_by_default():
    builder, _ = build()
    public_access = builder.resources["bucket_public_access"]
    encryption = builder.resources["bucket_encryption"]

    def check(_):
        _, access_inputs, _ = MOCKS.registered["platform-app-dev-usw2-data-public-access"]
        for flag in ("blockPublicAcls", "blockPublicPolicy", "ignorePublicAcls", "restrictPublicBuckets"):
            assert access_inputs[flag] is True

        typ, sse_inputs, _ = MOCKS.registered["platform-app-dev-usw2-data-encryption"]
        assert typ.endswith(":BucketServerSideEncryptionConfigurationV2")
        assert sse_inputs["rules"][0]["applyServerSideEncryptionByDefault"]["sseAlgorithm"] == "AES256"

    return pulumi.Output.all(public_access.urn, encryption.urn).apply(check)

@pulumi.runtime.test
def test_unencrypted_override_declares_no_encryption():
    builder, outputs = build(storage={"encryption": None, "allow_unencrypted": True})
    assert "bucket_encryption" not in builder.resources
    assert "bucket_public_access" in builder.resources

    def check(name):
        assert name == "platform-app-dev-usw2-data"

    return outputs["bucket_name"].apply(check)

@pulumi.runtime.test
def test_secret_password_is_read_from_stack_config():
    pulumi.runtime.set_config("aws-infra:db_admin_password", "from-stack-config")
    builder = AWSResourceBuilder(example_config())
    password = resolve_password(builder, "secret:db_admin_password")

    def check(value):
        assert value == "from-stack-config"

    return password.apply(check)

def test_missing_secret_password_fails():
    builder = AWSResourceBuilder(example_config())
    with pytest.raises(pulumi.ConfigMissingError):
        resolve_password(builder, "secret:no_such_password")

@pytest.mark.parametrize("overrides", [{"team": "1ops"}, {"service": "web_app"}])
def test_invalid_db_identifier_fails_before_registration(overrides):
    builder = AWSResourceBuilder(example_config(**overrides))
    with pytest.raises(ValueError, match="Invalid RDS instance identifier"):
        build_stack(builder)
    assert builder.resources == {}

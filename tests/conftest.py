"""
Shared pytest configuration.

Resources are registered against Pulumi's mock monitor, so nothing here
reaches AWS. Mocks must be installed before any resource is constructed.
"""

import copy
from typing import Any, Dict, List, Tuple

import pulumi
import pytest

from config import Config

EXAMPLE_CONFIG: Dict[str, Any] = {
    "team": "platform",
    "service": "app",
    "environment": "dev",
    "region": "us-west-2",
    "tags": {"CostCenter": "engineering"},
    "compute": {
        "instance_type": "t3.micro",
        "ami": "ami-0123456789abcdef0",
        "ssh_cidrs": ["203.0.113.0/24"],
    },
    "database": {
        "instance_class": "db.t3.micro",
        "allocated_storage": 20,
        "username": "dbadmin",
        "password": "not-a-real-password",
    },
}

MOCK_ZONES = ["us-west-2a", "us-west-2b", "us-west-2d"]

class InfraMocks(pulumi.runtime.Mocks):
    def __init__(self):
        # resource name -> (type, inputs, provider reference)
        self.registered: Dict[str, Tuple[str, Dict[str, Any], str]] = {}
        self.calls: List[Tuple[str, Dict[str, Any], str]] = []

    def new_resource(self, args: pulumi.runtime.MockResourceArgs):
        self.registered[args.name] = (args.typ, dict(args.inputs), args.provider or "")
        outputs = dict(args.inputs)
        if args.typ == "aws:ec2/instance:Instance":
            outputs["publicIp"] = "203.0.113.10"
            outputs["publicDns"] = "ec2-203-0-113-10.us-west-2.compute.amazonaws.com"
        elif args.typ == "aws:rds/instance:Instance":
            address = f"{args.inputs['identifier']}.c1a2b3c4d5e6.us-west-2.rds.amazonaws.com"
            outputs["address"] = address
            outputs["endpoint"] = f"{address}:{int(args.inputs.get('port', 5432))}"
        elif args.typ == "aws:s3/bucketV2:BucketV2":
            outputs["arn"] = f"arn:aws:s3:::{args.inputs['bucket']}"
        return [f"{args.name}_id", outputs]

    def call(self, args: pulumi.runtime.MockCallArgs):
        self.calls.append((args.token, dict(args.args), args.provider or ""))
        if args.token == "aws:index/getAvailabilityZones:getAvailabilityZones":
            return {"names": list(MOCK_ZONES), "zoneIds": ["usw2-az1", "usw2-az2", "usw2-az4"]}
        if "id" in args.args:
            return {"id": args.args["id"]}
        return {}

MOCKS = InfraMocks()
pulumi.runtime.set_mocks(MOCKS, project="aws-infra", stack="dev", preview=False)

def example_data(**overrides) -> Dict[str, Any]:
    data = copy.deepcopy(EXAMPLE_CONFIG)
    data.update(overrides)
    return data

def example_config(**overrides) -> Config:
    return Config.from_dict(example_data(**overrides)).validate()

@pytest.fixture
def config_data() -> Dict[str, Any]:
    return example_data()

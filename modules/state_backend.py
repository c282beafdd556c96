"""
Remote state pointer.

Names the bucket, object key, region and lock-record table where the engine
persists and locks its state. Point the CLI at it with
``pulumi login $(pulumi stack output state_backend_url)``. With
``backend.bootstrap: true`` the stack also declares the bucket and the lock
table itself; that is meant for a dedicated bootstrap stack whose own state
lives elsewhere.
"""

from typing import Optional
from urllib.parse import quote

import pulumi
import pulumi_aws as aws

from awsclassic import AWSResourceBuilder
from config import BackendConfig, validate_bucket_name
from modules.storage import private_bucket

LOCK_HASH_KEY = "LockID"

def backend_url(bucket: str, key: str, region: str) -> str:
    path = quote(key.strip("/"))
    url = f"s3://{bucket}/{path}" if path else f"s3://{bucket}"
    return f"{url}?region={region}"

class StateBackend(pulumi.ComponentResource):
    def __init__(self, builder: AWSResourceBuilder, config: BackendConfig, opts: Optional[pulumi.ResourceOptions] = None):
        super().__init__("infra:modules:StateBackend", builder.generate_resource_name("state-backend"), None, opts)

        self.bucket_name = validate_bucket_name(config.bucket or builder.generate_resource_name("state"))
        self.lock_table_name = config.lock_table or builder.generate_resource_name("state-lock")
        self.region = config.region or builder.config.region
        self.key = config.key
        self.url = backend_url(self.bucket_name, self.key, self.region)

        self.bucket: Optional[aws.s3.BucketV2] = None
        self.lock_table: Optional[aws.dynamodb.Table] = None
        if config.bootstrap:
            # the bucket must live where the backend URL says it does
            provider = builder.provider_for(self.region)
            child_opts = pulumi.ResourceOptions(parent=self, provider=provider, protect=True)
            self.bucket = private_bucket(builder, "state_bucket", self.bucket_name, opts=child_opts)
            self.lock_table = builder.register("state_lock_table", aws.dynamodb.Table(
                self.lock_table_name,
                name=self.lock_table_name,
                billing_mode="PAY_PER_REQUEST",
                hash_key=LOCK_HASH_KEY,
                attributes=[aws.dynamodb.TableAttributeArgs(name=LOCK_HASH_KEY, type="S")],
                server_side_encryption=aws.dynamodb.TableServerSideEncryptionArgs(enabled=True),
                point_in_time_recovery=aws.dynamodb.TablePointInTimeRecoveryArgs(enabled=True),
                tags={**builder.common_tags, "Name": self.lock_table_name},
                opts=child_opts,
            ))
            pulumi.log.info(f"Bootstrapping remote state bucket '{self.bucket_name}' and lock table '{self.lock_table_name}'")

        self.register_outputs({
            "url": self.url,
            "bucket": self.bucket_name,
            "lock_table": self.lock_table_name,
        })

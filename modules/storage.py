from typing import List, Optional

import pulumi
import pulumi_aws as aws

from awsclassic import AWSResourceBuilder
from config import LifecycleConfig, StorageConfig, validate_bucket_name

def lifecycle_rules(lifecycle: LifecycleConfig) -> List[aws.s3.BucketLifecycleConfigurationV2RuleArgs]:
    transitions = []
    if lifecycle.transition_ia_days is not None:
        transitions.append(aws.s3.BucketLifecycleConfigurationV2RuleTransitionArgs(
            days=lifecycle.transition_ia_days,
            storage_class="STANDARD_IA",
        ))
    if lifecycle.transition_glacier_days is not None:
        transitions.append(aws.s3.BucketLifecycleConfigurationV2RuleTransitionArgs(
            days=lifecycle.transition_glacier_days,
            storage_class="GLACIER",
        ))

    expiration = None
    if lifecycle.expiration_days is not None:
        expiration = aws.s3.BucketLifecycleConfigurationV2RuleExpirationArgs(days=lifecycle.expiration_days)

    noncurrent = None
    if lifecycle.noncurrent_expiration_days is not None:
        noncurrent = aws.s3.BucketLifecycleConfigurationV2RuleNoncurrentVersionExpirationArgs(
            noncurrent_days=lifecycle.noncurrent_expiration_days,
        )

    if not (transitions or expiration or noncurrent):
        return []

    return [aws.s3.BucketLifecycleConfigurationV2RuleArgs(
        id="retention",
        status="Enabled",
        filter=aws.s3.BucketLifecycleConfigurationV2RuleFilterArgs(prefix=""),
        transitions=transitions or None,
        expiration=expiration,
        noncurrent_version_expiration=noncurrent,
    )]

def encryption_rule(algorithm: str, kms_key_id: Optional[str] = None) -> aws.s3.BucketServerSideEncryptionConfigurationV2RuleArgs:
    return aws.s3.BucketServerSideEncryptionConfigurationV2RuleArgs(
        apply_server_side_encryption_by_default=aws.s3.BucketServerSideEncryptionConfigurationV2RuleApplyServerSideEncryptionByDefaultArgs(
            sse_algorithm=algorithm,
            kms_master_key_id=kms_key_id,
        ),
        bucket_key_enabled=algorithm == "aws:kms",
    )

def private_bucket(builder: AWSResourceBuilder, key: str, bucket_name: str, *, versioning: bool = True,
                   encryption: Optional[str] = "AES256", kms_key_id: Optional[str] = None,
                   block_public_access: bool = True, force_destroy: bool = False,
                   opts: Optional[pulumi.ResourceOptions] = None) -> aws.s3.BucketV2:
    """Declare a bucket plus its public access block, encryption and versioning resources."""
    validate_bucket_name(bucket_name)

    bucket = builder.register(key, aws.s3.BucketV2(
        bucket_name,
        bucket=bucket_name,
        force_destroy=force_destroy,
        tags={**builder.common_tags, "Name": bucket_name},
        opts=opts,
    ))

    builder.register(f"{key}_public_access", aws.s3.BucketPublicAccessBlock(
        f"{bucket_name}-public-access",
        bucket=bucket.id,
        block_public_acls=block_public_access,
        block_public_policy=block_public_access,
        ignore_public_acls=block_public_access,
        restrict_public_buckets=block_public_access,
        opts=opts,
    ))

    if encryption is not None:
        builder.register(f"{key}_encryption", aws.s3.BucketServerSideEncryptionConfigurationV2(
            f"{bucket_name}-encryption",
            bucket=bucket.id,
            rules=[encryption_rule(encryption, kms_key_id)],
            opts=opts,
        ))

    if versioning:
        builder.register(f"{key}_versioning", aws.s3.BucketVersioningV2(
            f"{bucket_name}-versioning",
            bucket=bucket.id,
            versioning_configuration=aws.s3.BucketVersioningV2VersioningConfigurationArgs(status="Enabled"),
            opts=opts,
        ))
    return bucket

class Storage(pulumi.ComponentResource):
    def __init__(self, builder: AWSResourceBuilder, config: StorageConfig, opts: Optional[pulumi.ResourceOptions] = None):
        super().__init__("infra:modules:Storage", builder.generate_resource_name("storage"), None, opts)
        child_opts = pulumi.ResourceOptions(parent=self, provider=builder.provider)

        name = builder.generate_resource_name(config.bucket_suffix)
        self.bucket = private_bucket(
            builder,
            "bucket",
            name,
            versioning=config.versioning,
            encryption=config.encryption,
            kms_key_id=config.kms_key_id,
            block_public_access=config.block_public_access,
            force_destroy=config.force_destroy,
            opts=child_opts,
        )

        rules = lifecycle_rules(config.lifecycle)
        if rules:
            builder.register("bucket_lifecycle", aws.s3.BucketLifecycleConfigurationV2(
                f"{name}-lifecycle",
                bucket=self.bucket.id,
                rules=rules,
                opts=child_opts,
            ))
        else:
            pulumi.log.info(f"No lifecycle rules configured for bucket '{name}'")

        self.bucket_name = self.bucket.bucket
        self.bucket_arn = self.bucket.arn

        self.register_outputs({
            "bucket_name": self.bucket_name,
            "bucket_arn": self.bucket_arn,
        })

import pulumi
from awsclassic import AWSResourceBuilder
from config import load_config
from stack import build_stack

def main():
    # Load YAML configuration.
    config_file = pulumi.Config().get("config_file") or "config.yaml"
    config = load_config(config_file)

    try:
        builder = AWSResourceBuilder(config)
    except Exception as e:
        pulumi.log.error(f"Failed to initialize AWSResourceBuilder: {e}")
        raise

    try:
        outputs = build_stack(builder)
    except Exception as e:
        pulumi.log.error(f"Failed during resource build: {e}")
        raise

    for name, value in outputs.items():
        pulumi.export(name, value)

    # Export ids of the free-form extras.
    for cfg in config.aws_resources:
        resource = builder.resources.get(cfg.name)
        try:
            pulumi.export(f"{cfg.name}_id", resource.id)
        except Exception as e:
            pulumi.log.warn(f"Failed to export resource '{cfg.name}': {e}")

if __name__ == "__main__":
    main()

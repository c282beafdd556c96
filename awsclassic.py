import pulumi
import inspect
import pulumi_aws as aws
import re
from typing import Any, Dict

from config import Config

# Consolidated list of common AWS region abbreviations
AWS_REGION_ABBREVIATIONS = {
    "af-south-1": "afs1",
    "ap-east-1": "ape1",
    "ap-northeast-1": "apne1",
    "ap-northeast-2": "apne2",
    "ap-northeast-3": "apne3",
    "ap-south-1": "aps1",
    "ap-southeast-1": "apse1",
    "ap-southeast-2": "apse2",
    "ca-central-1": "cac1",
    "eu-central-1": "euc1",
    "eu-north-1": "eun1",
    "eu-south-1": "eus1",
    "eu-west-1": "euw1",
    "eu-west-2": "euw2",
    "eu-west-3": "euw3",
    "me-south-1": "mes1",
    "sa-east-1": "sae1",
    "us-east-1": "use1",
    "us-east-2": "use2",
    "us-west-1": "usw1",
    "us-west-2": "usw2",
}

def to_snake_case(name: str) -> str:
    return re.sub(r'(?<!^)(?=[A-Z])', '_', name).lower()

def resolve_value(value: Any, resources: Dict[str, Any]) -> Any:
    if isinstance(value, dict):
        return {k: resolve_value(v, resources) for k, v in value.items()}
    elif isinstance(value, list):
        return [resolve_value(item, resources) for item in value]
    elif isinstance(value, str):
        if value.startswith("secret:"):
            # Fetch secret from Pulumi config
            secret_key = value[len("secret:"):]
            config = pulumi.Config()
            return config.require_secret(secret_key)
        elif value.startswith("ref:"):
            ref_text = value[4:]
            if "." in ref_text:
                ref_res, ref_attr = ref_text.split(".", 1)
            else:
                ref_res, ref_attr = ref_text, "id"
            if ref_res not in resources:
                raise ValueError(f"Referenced resource '{ref_res}' not found.")
            attr_val = getattr(resources[ref_res], ref_attr, None)
            if attr_val is None:
                raise ValueError(f"Attribute '{ref_attr}' not found on resource '{ref_res}'")
            return attr_val
        else:
            return value
    else:
        return value

def get_lookup_params(required_params: set, resolved_args: dict) -> dict:
    lookup_params = {}
    for param in required_params:
        snake_key = to_snake_case(param)
        if snake_key in resolved_args:
            lookup_params[param] = resolved_args[snake_key]
        elif param in resolved_args:
            lookup_params[param] = resolved_args[param]
    return lookup_params

def resource_signature(resource_class: type) -> inspect.Signature:
    # Generated resources hide their arguments behind overloaded __init__s.
    return inspect.signature(getattr(resource_class, "_internal_init", resource_class.__init__))

class AWSResourceBuilder:
    def __init__(self, config: Config):
        self.config = config
        self.resources: Dict[str, Any] = {}
        self._providers: Dict[str, aws.Provider] = {}

    def get_abbreviation(self, region: str) -> str:
        region = region.lower()
        if region in AWS_REGION_ABBREVIATIONS:
            return AWS_REGION_ABBREVIATIONS[region]
        parts = region.split("-")
        if len(parts) < 3:
            return parts[0]
        # il-central-1 -> ilc1
        return parts[0] + "".join(p[0] for p in parts[1:-1]) + parts[-1]

    def generate_resource_name(self, base_name: str) -> str:
        team = self.config.team.strip().lower()
        service = self.config.service.strip().lower()
        env = self.config.environment.strip().lower()
        reg_abbr = self.get_abbreviation(self.config.region)
        return f"{team}-{service}-{env}-{reg_abbr}-{base_name}".lower()

    @property
    def common_tags(self) -> Dict[str, str]:
        tags = {
            "Team": self.config.team,
            "Service": self.config.service,
            "Environment": self.config.environment,
            "ManagedBy": "pulumi",
        }
        tags.update(self.config.tags)
        return tags

    def tags(self, base_name: str) -> Dict[str, str]:
        return {**self.common_tags, "Name": self.generate_resource_name(base_name)}

    @property
    def provider(self) -> aws.Provider:
        return self.provider_for(self.config.region)

    def provider_for(self, region: str) -> aws.Provider:
        if region not in self._providers:
            base_name = "provider"
            if region != self.config.region:
                base_name = f"provider-{self.get_abbreviation(region)}"
            self._providers[region] = aws.Provider(self.generate_resource_name(base_name), region=region)
        return self._providers[region]

    def opts(self, **kwargs) -> pulumi.ResourceOptions:
        return pulumi.ResourceOptions(provider=self.provider, **kwargs)

    def register(self, name: str, resource: Any) -> Any:
        if name in self.resources:
            raise ValueError(f"Duplicate resource name '{name}'")
        self.resources[name] = resource
        return resource

    def resolve_args(self, args: dict) -> dict:
        return {key: resolve_value(value, self.resources) for key, value in args.items()}

    def _apply_common_parameters(self, name: str, resolved_args: dict, init_sig: inspect.Signature) -> dict:
        if "tags" in init_sig.parameters:
            base_tags = self.tags(name)
            # extra tags may be a literal mapping or a ref: to another resource's tags
            extra_tags = pulumi.Output.from_input(resolved_args.get("tags") or {})
            resolved_args["tags"] = extra_tags.apply(lambda extra: {**base_tags, **(extra or {})})
        else:
            resolved_args.pop("tags", None)
        return resolved_args

    def build(self):
        """Instantiate the free-form aws_resources entries from config.yaml."""
        for resource_cfg in self.config.aws_resources:
            name = resource_cfg.name
            resource_type = resource_cfg.type
            args = dict(resource_cfg.args)
            is_existing = args.pop("existing", False)
            resolved_args = self.resolve_args(args)
            if "." not in resource_type:
                pulumi.log.warn(f"Resource type '{resource_type}' is not of the form '<module>.<Class>'. Skipping '{name}'.")
                continue
            module_name, class_name = resource_type.rsplit(".", 1)
            module = getattr(aws, module_name, None)
            if not module:
                pulumi.log.warn(f"AWS module '{module_name}' not found. Skipping '{name}'.")
                continue
            try:
                ResourceClass = getattr(module, class_name)
            except AttributeError:
                pulumi.log.warn(f"Resource class '{class_name}' not found in module '{module_name}'. Skipping '{name}'.")
                continue
            if is_existing:
                get_func_name = f"get_{to_snake_case(class_name)}"
                try:
                    get_func = getattr(module, f"{get_func_name}_output", None) or getattr(module, get_func_name)
                    sig = inspect.signature(get_func)
                    accepted = {k for k in sig.parameters if k != "opts"}
                    get_required = {k for k in accepted if sig.parameters[k].default == inspect.Parameter.empty}
                    get_params = get_lookup_params(accepted, resolved_args)
                    missing = get_required - set(get_params.keys())
                    if missing:
                        pulumi.log.warn(f"Missing required params {missing} for existing resource '{name}'. Skipping the lookup attempt.")
                    else:
                        invoke_opts = pulumi.InvokeOptions(provider=self.provider)
                        self.register(name, get_func(**get_params, opts=invoke_opts))
                        pulumi.log.info(f"Fetched existing resource '{name}' via '{get_func_name}' with {sorted(get_params)}")
                        continue
                except AttributeError:
                    pulumi.log.warn(f"Function '{get_func_name}' not found for '{resource_type}'. Proceeding to create new resource '{name}'.")
            init_sig = resource_signature(ResourceClass)
            resolved_args = self._apply_common_parameters(name, resolved_args, init_sig)
            pulumi_name = resource_cfg.custom_name or self.generate_resource_name(name)
            pulumi.log.debug(f"Resolved args for '{name}': {resolved_args}")
            self.register(name, ResourceClass(pulumi_name, opts=self.opts(), **resolved_args))
            pulumi.log.info(f"Created resource: {pulumi_name} ({resource_type})")

"""Input validation for K8s MCP Tools.

Every value that reaches a command line or an HTTP request originates from an
LLM, so tool handlers run it through one of the validators below first. Each
validator returns ``None`` on success and raises ``ValidationError`` naming the
offending field otherwise. Validation never spawns a process.
"""

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit

import yaml

from k8s_mcp_tools.config import K8sMcpToolsConfig
from k8s_mcp_tools.errors import ValidationError
from k8s_mcp_tools.logging_utils import get_logger

logger = get_logger("security")

ALLOWED_BINARIES = ["kubectl", "helm", "istioctl", "linkerd", "cilium"]

SHELL_METACHARACTERS = frozenset(";&|$`<>")

# Separators that would chain a second command after a query.
QUERY_SEPARATORS = [";", "`", "$(", "&&", "||"]

DEFAULT_MUTATING_VERBS = frozenset(
    {
        "annotate",
        "apply",
        "create",
        "delete",
        "edit",
        "install",
        "label",
        "patch",
        "replace",
        "rollout",
        "run",
        "scale",
        "uninstall",
        "upgrade",
    }
)

# Verbs that mutate only with one of these subcommands; `rollout status` and
# `rollout history` are reads.
MUTATING_SUBCOMMANDS = {
    "rollout": frozenset({"pause", "restart", "resume", "undo"}),
}

# Verbs that only print manifests for the given binary.
RENDER_ONLY_VERBS = {
    "linkerd": frozenset({"install"}),
}

DEFAULT_MAX_INPUT_LENGTH = 1024
DEFAULT_MAX_QUERY_LENGTH = 4096
MAX_RESOURCE_NAME_LENGTH = 63
MAX_URL_LENGTH = 2048

DNS1123_LABEL = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
CONTROL_CHARACTERS = re.compile(r"[\x00-\x1f\x7f]")

VALIDATOR_KINDS = ["command_input", "resource_name", "namespace", "url", "promql"]


@dataclass
class ValidationRule:
    pattern: str
    description: str
    error_message: str


@dataclass
class ValidationPolicy:
    max_input_length: int = DEFAULT_MAX_INPUT_LENGTH
    max_query_length: int = DEFAULT_MAX_QUERY_LENGTH
    mutating_verbs: frozenset[str] = DEFAULT_MUTATING_VERBS
    regex_rules: dict[str, list[ValidationRule]] = field(default_factory=dict)


DEFAULT_POLICY = ValidationPolicy()


def load_validation_policy(
    config_path_str: Optional[str],
    *,
    max_input_length: int = DEFAULT_MAX_INPUT_LENGTH,
    max_query_length: int = DEFAULT_MAX_QUERY_LENGTH,
) -> ValidationPolicy:
    """Load a validation policy, layering an optional YAML file over defaults.

    The file may set ``max_input_length``, ``max_query_length``, extra
    ``mutating_verbs`` and per-validator ``regex_rules``. A missing or broken
    file is logged and the defaults are used.
    """
    mutating_verbs = set(DEFAULT_MUTATING_VERBS)
    regex_rules: dict[str, list[ValidationRule]] = {}

    if config_path_str:
        config_path = Path(config_path_str)
        if config_path.exists():
            try:
                with open(config_path) as f:
                    config_data = yaml.safe_load(f)
                if config_data and isinstance(config_data, dict):
                    max_input_length = int(config_data.get("max_input_length", max_input_length))
                    max_query_length = int(config_data.get("max_query_length", max_query_length))
                    mutating_verbs.update(config_data.get("mutating_verbs") or [])
                    for kind, rules in (config_data.get("regex_rules") or {}).items():
                        if kind in VALIDATOR_KINDS:
                            regex_rules[kind] = [ValidationRule(**rule) for rule in rules]
                        else:
                            logger.warning(f"Ignoring regex rules for unknown validator '{kind}'")
                logger.info(f"Loaded security configuration from {config_path}")
            except (OSError, yaml.YAMLError, TypeError, ValueError) as e:
                logger.error(f"Error loading security configuration: {str(e)}, using defaults.")
                return ValidationPolicy(max_input_length=max_input_length, max_query_length=max_query_length)
        else:
            logger.warning(f"Security configuration {config_path} not found, using defaults.")

    return ValidationPolicy(
        max_input_length=max_input_length,
        max_query_length=max_query_length,
        mutating_verbs=frozenset(mutating_verbs),
        regex_rules=regex_rules,
    )


def policy_from_config(config: K8sMcpToolsConfig) -> ValidationPolicy:
    return load_validation_policy(
        config.K8S_MCP_SECURITY_CONFIG_PATH,
        max_input_length=config.K8S_MCP_MAX_INPUT_LENGTH,
        max_query_length=config.K8S_MCP_MAX_QUERY_LENGTH,
    )


def _apply_rules(kind: str, value: str, field_name: str, policy: ValidationPolicy) -> None:
    for rule in policy.regex_rules.get(kind, []):
        if re.search(rule.pattern, value):
            raise ValidationError(field_name, rule.error_message)


def validate_command_input(
    value: str, field_name: str = "input", *, policy: Optional[ValidationPolicy] = None
) -> None:
    """Reject a free-form token that could alter how a command is interpreted."""
    policy = policy or DEFAULT_POLICY
    if "\x00" in value:
        raise ValidationError(field_name, "contains a null byte")
    if len(value) > policy.max_input_length:
        raise ValidationError(field_name, f"exceeds maximum length of {policy.max_input_length} characters")
    if CONTROL_CHARACTERS.search(value):
        raise ValidationError(field_name, "contains control characters")
    found = sorted(set(value) & SHELL_METACHARACTERS)
    if found:
        raise ValidationError(field_name, f"contains shell metacharacters: {' '.join(found)}")
    _apply_rules("command_input", value, field_name, policy)


def validate_k8s_resource_name(
    value: str, field_name: str = "resource name", *, policy: Optional[ValidationPolicy] = None
) -> None:
    """Require the DNS-1123 label shape Kubernetes uses for object names."""
    policy = policy or DEFAULT_POLICY
    if not value:
        raise ValidationError(field_name, "must not be empty")
    if len(value) > MAX_RESOURCE_NAME_LENGTH:
        raise ValidationError(field_name, f"exceeds maximum length of {MAX_RESOURCE_NAME_LENGTH} characters")
    if not DNS1123_LABEL.match(value):
        raise ValidationError(
            field_name,
            "must consist of lower case alphanumeric characters or '-', "
            "and must start and end with an alphanumeric character",
        )
    _apply_rules("resource_name", value, field_name, policy)


def validate_namespace(
    value: str, field_name: str = "namespace", *, policy: Optional[ValidationPolicy] = None
) -> None:
    policy = policy or DEFAULT_POLICY
    if ".." in value or "/" in value or "\\" in value:
        raise ValidationError(field_name, "must not contain path traversal sequences")
    validate_k8s_resource_name(value, field_name, policy=policy)
    _apply_rules("namespace", value, field_name, policy)


def validate_url(value: str, field_name: str = "url", *, policy: Optional[ValidationPolicy] = None) -> None:
    """Accept only absolute http(s) URLs without embedded credentials."""
    policy = policy or DEFAULT_POLICY
    if not value:
        raise ValidationError(field_name, "must not be empty")
    if len(value) > MAX_URL_LENGTH:
        raise ValidationError(field_name, f"exceeds maximum length of {MAX_URL_LENGTH} characters")
    if CONTROL_CHARACTERS.search(value) or " " in value:
        raise ValidationError(field_name, "contains whitespace or control characters")
    try:
        parts = urlsplit(value)
        hostname, _port = parts.hostname, parts.port
    except ValueError as e:
        raise ValidationError(field_name, f"is not a valid URL: {e}") from e
    if parts.scheme not in ("http", "https"):
        raise ValidationError(field_name, f"scheme '{parts.scheme}' is not allowed, use http or https")
    if not hostname:
        raise ValidationError(field_name, "must include a host")
    if parts.username is not None or parts.password is not None:
        raise ValidationError(field_name, "must not contain embedded credentials")
    _apply_rules("url", value, field_name, policy)


def validate_promql_query(
    value: str, field_name: str = "query", *, policy: Optional[ValidationPolicy] = None
) -> None:
    """Accept PromQL expressions while refusing anything that chains commands."""
    policy = policy or DEFAULT_POLICY
    if not value.strip():
        raise ValidationError(field_name, "must not be empty")
    if len(value) > policy.max_query_length:
        raise ValidationError(field_name, f"exceeds maximum length of {policy.max_query_length} characters")
    if CONTROL_CHARACTERS.search(value.replace("\t", " ")):
        raise ValidationError(field_name, "contains control characters")
    for separator in QUERY_SEPARATORS:
        if separator in value:
            raise ValidationError(field_name, f"contains forbidden sequence '{separator}'")
    _apply_rules("promql", value, field_name, policy)


def is_allowed_binary(binary: str) -> bool:
    return binary in ALLOWED_BINARIES


def _positional_args(args: Sequence[str]) -> list[str]:
    positional = []
    skip_next = False
    for arg in args:
        if skip_next:
            skip_next = False
            continue
        if arg in ("--kubeconfig", "--context", "-n", "--namespace"):
            skip_next = True
            continue
        if arg.startswith("-"):
            continue
        positional.append(arg)
    return positional


def is_mutating_command(
    args: Sequence[str],
    *,
    policy: Optional[ValidationPolicy] = None,
    binary: Optional[str] = None,
) -> bool:
    """Return True if the command changes cluster state.

    The first non-flag argument is checked against the policy's mutating verbs.
    Verbs listed in ``MUTATING_SUBCOMMANDS`` also need a mutating subcommand,
    and verbs the given binary only uses to render manifests are reads.
    """
    policy = policy or DEFAULT_POLICY
    positional = _positional_args(args)
    if not positional:
        return False
    verb = positional[0]
    if verb not in policy.mutating_verbs:
        return False
    if binary is not None and verb in RENDER_ONLY_VERBS.get(binary, ()):
        return False
    if verb in MUTATING_SUBCOMMANDS:
        return len(positional) > 1 and positional[1] in MUTATING_SUBCOMMANDS[verb]
    return True

"""Linkerd service mesh tools."""

import json
from typing import Optional

from k8s_mcp_tools.commands import CaptureMode
from k8s_mcp_tools.errors import ToolsError, new_linkerd_error
from k8s_mcp_tools.models import ToolResult, text_result
from k8s_mcp_tools.runtime import ToolRuntime
from k8s_mcp_tools.security import validate_command_input, validate_k8s_resource_name, validate_namespace
from k8s_mcp_tools.tools.common import (
    BoolLike,
    append_csv_args,
    append_flag,
    parse_bool,
    parse_comma_separated,
    temporary_manifest,
)

INJECTION_ANNOTATION_KEY = "linkerd.io/inject"
INJECT_STATES = ("enabled", "disabled", "ingress")

POD_TEMPLATE_ANNOTATIONS = ("spec", "template", "metadata", "annotations")
OBJECT_ANNOTATIONS = ("metadata", "annotations")

# workload type -> (path of its pod annotations, whether it is namespaced)
WORKLOAD_TYPES: dict[str, tuple[tuple[str, ...], bool]] = {
    "namespace": (OBJECT_ANNOTATIONS, False),
    "deployment": (POD_TEMPLATE_ANNOTATIONS, True),
    "statefulset": (POD_TEMPLATE_ANNOTATIONS, True),
    "daemonset": (POD_TEMPLATE_ANNOTATIONS, True),
    "replicaset": (POD_TEMPLATE_ANNOTATIONS, True),
    "replicationcontroller": (POD_TEMPLATE_ANNOTATIONS, True),
    "job": (POD_TEMPLATE_ANNOTATIONS, True),
    "cronjob": (("spec", "jobTemplate", "spec", "template", "metadata", "annotations"), True),
    "pod": (OBJECT_ANNOTATIONS, True),
}


def escape_json_pointer_segment(segment: str) -> str:
    return segment.replace("~", "~0").replace("/", "~1")


def build_annotation_merge_patch(path: tuple[str, ...], key: str, value: str) -> str:
    if not path:
        raise ValueError("annotation path is empty")
    patch: dict = {key: value}
    for segment in reversed(path):
        patch = {segment: patch}
    return json.dumps(patch, separators=(",", ":"))


def build_annotation_remove_patch(path: tuple[str, ...], key: str) -> str:
    pointer = "/" + "/".join(escape_json_pointer_segment(s) for s in (*path, key))
    return json.dumps([{"op": "remove", "path": pointer}], separators=(",", ":"))


async def linkerd_check(
    runtime: ToolRuntime,
    namespace: Optional[str] = None,
    pre_check: BoolLike = None,
    proxy_check: BoolLike = None,
    wait: Optional[str] = None,
    output: Optional[str] = None,
) -> ToolResult:
    """Validate that the Linkerd CLI and control plane are configured correctly."""
    try:
        args = ["check"]
        if parse_bool(pre_check, "pre_check"):
            args.append("--pre")
        if parse_bool(proxy_check, "proxy_check"):
            args.append("--proxy")
        if namespace:
            validate_namespace(namespace, policy=runtime.policy)
            args.extend(["-n", namespace])
        for name, value in (("wait", wait), ("output", output)):
            if value:
                validate_command_input(value, name, policy=runtime.policy)
        append_flag(args, "--wait", wait)
        append_flag(args, "--output", output)

        result = await runtime.command("linkerd").with_args(*args).execute()
    except ToolsError as e:
        error = new_linkerd_error("check", e)
        if namespace:
            error = error.with_context("namespace", namespace)
        return error.to_result()
    return text_result(result)


async def linkerd_version(runtime: ToolRuntime, client_only: BoolLike = None) -> ToolResult:
    try:
        args = ["version"]
        if parse_bool(client_only, "client_only"):
            args.append("--client")
        result = await runtime.command("linkerd").with_args(*args).with_cache().execute()
    except ToolsError as e:
        return new_linkerd_error("version", e).to_result()
    return text_result(result)


async def linkerd_patch_workload_injection(
    runtime: ToolRuntime,
    workload_name: str,
    namespace: Optional[str] = "default",
    workload_type: str = "deployment",
    inject_state: str = "disabled",
    remove_annotation: BoolLike = None,
) -> ToolResult:
    """Set or remove the ``linkerd.io/inject`` annotation on a workload."""
    workload_type = (workload_type or "deployment").lower()
    inject_state = (inject_state or "disabled").lower()
    operation = "patch_workload_injection"
    try:
        validate_k8s_resource_name(workload_name, "workload name", policy=runtime.policy)
        if workload_type not in WORKLOAD_TYPES:
            return new_linkerd_error(
                operation, ValueError(f"workload_type must be one of: {', '.join(sorted(WORKLOAD_TYPES))}")
            ).to_result()
        annotations_path, namespaced = WORKLOAD_TYPES[workload_type]

        args = ["patch", workload_type, workload_name]
        if namespaced:
            namespace = namespace or "default"
            validate_namespace(namespace, policy=runtime.policy)
            args.extend(["-n", namespace])

        if parse_bool(remove_annotation, "remove_annotation"):
            patch = build_annotation_remove_patch(annotations_path, INJECTION_ANNOTATION_KEY)
            args.extend(["--type=json", "-p", patch])
        else:
            if inject_state not in INJECT_STATES:
                return new_linkerd_error(
                    operation, ValueError(f"inject_state must be one of: {', '.join(INJECT_STATES)}")
                ).to_result()
            patch = build_annotation_merge_patch(annotations_path, INJECTION_ANNOTATION_KEY, inject_state)
            args.extend(["-p", patch])

        result = await runtime.command("kubectl").with_args(*args).execute()
    except ToolsError as e:
        error = new_linkerd_error(operation, e).with_context("workload", f"{workload_type}/{workload_name}")
        if namespace:
            error = error.with_context("namespace", namespace)
        return error.to_result()
    return text_result(result)


async def linkerd_install(
    runtime: ToolRuntime,
    ha: BoolLike = None,
    crds_only: BoolLike = None,
    skip_checks: BoolLike = None,
    set_overrides: Optional[str] = None,
) -> ToolResult:
    """Render the Linkerd CRDs and control plane manifests and apply them."""
    try:
        flags: list[str] = []
        if parse_bool(ha, "ha"):
            flags.append("--ha")
        if parse_bool(skip_checks, "skip_checks"):
            flags.append("--skip-checks")
        for override in parse_comma_separated(set_overrides):
            validate_command_input(override, "set_overrides", policy=runtime.policy)
        append_csv_args(flags, "--set", set_overrides)

        steps = [("crds", ["install", *flags, "--crds"])]
        if not parse_bool(crds_only, "crds_only"):
            steps.append(("control-plane", ["install", *flags]))

        outputs = []
        for label, args in steps:
            manifest = await (
                runtime.command("linkerd").with_args(*args).with_capture(CaptureMode.STDOUT).execute()
            )
            with temporary_manifest(manifest, prefix="linkerd-manifest-") as path:
                applied = await runtime.command("kubectl").with_args("apply", "-f", path).execute()
            outputs.append(f"{label}:\n{applied.strip()}")
    except ToolsError as e:
        return new_linkerd_error("install", e).with_context("flags", flags).to_result()
    return text_result("\n\n".join(outputs))


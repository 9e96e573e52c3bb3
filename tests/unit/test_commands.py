"""Tests for the command builder."""

import pytest

from k8s_mcp_tools.commands import TRUNCATION_MARKER, CaptureMode, CommandBuilder
from k8s_mcp_tools.errors import CommandCancelledError, CommandFailedError, ValidationError


def make_builder(binary, scripted, cache=None, **kwargs):
    return CommandBuilder(binary, executor=scripted, cache=cache, **kwargs)


@pytest.mark.unit
def test_kubeconfig_is_prepended(scripted):
    spec = make_builder("kubectl", scripted).with_args("get", "pods", "-n", "default").with_kubeconfig("/tmp/kc").build()

    assert spec.argv == ["--kubeconfig", "/tmp/kc", "get", "pods", "-n", "default"]
    assert spec.command_line == "kubectl --kubeconfig /tmp/kc get pods -n default"


@pytest.mark.unit
def test_empty_kubeconfig_leaves_argv_alone(scripted):
    spec = make_builder("helm", scripted).with_kubeconfig("").with_args("list").build()

    assert spec.argv == ["list"]


@pytest.mark.unit
def test_args_are_kept_verbatim(scripted):
    spec = make_builder("kubectl", scripted).with_args("get", "pods", "-l", "app in (a, b)").build()

    assert spec.argv == ["get", "pods", "-l", "app in (a, b)"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_execute_passes_argv_to_executor(runtime, scripted):
    runtime.kubeconfig.set("/etc/kube/config")
    scripted.expect("kubectl", ["--kubeconfig", "/etc/kube/config", "get", "ns"], stdout="default\n")

    output = await runtime.command("kubectl").with_args("get", "ns").execute()

    assert output == "default\n"
    assert scripted.invocations[0].timeout == runtime.config.K8S_MCP_TIMEOUT


@pytest.mark.unit
@pytest.mark.asyncio
async def test_timeout_and_env_reach_executor(scripted):
    scripted.expect("helm", ["list"])

    await make_builder("helm", scripted).with_args("list").with_timeout(5).with_env("HELM_NAMESPACE", "apps").execute()

    assert scripted.invocations[0].timeout == 5
    assert scripted.invocations[0].env == {"HELM_NAMESPACE": "apps"}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_combined_capture(scripted):
    scripted.expect("istioctl", ["analyze"], stdout="No issues", stderr="Warning: deprecated")

    output = await make_builder("istioctl", scripted).with_args("analyze").execute()

    assert output == "No issues\nWarning: deprecated"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_stdout_capture(scripted):
    scripted.expect("linkerd", ["install", "--crds"], stdout="kind: CustomResourceDefinition\n", stderr="noise")

    output = await make_builder("linkerd", scripted).with_args("install", "--crds").with_capture(CaptureMode.STDOUT).execute()

    assert output == "kind: CustomResourceDefinition\n"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_with_stderr_false_is_stdout_only(scripted):
    scripted.expect("kubectl", ["logs", "web-0"], stdout="line\n", stderr="warning\n")

    output = await make_builder("kubectl", scripted).with_args("logs", "web-0").with_stderr(False).execute()

    assert output == "line\n"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cached_command_runs_once(scripted, cache):
    expectation = scripted.expect("kubectl", ["get", "pods"], stdout="pod-a")

    first = await make_builder("kubectl", scripted, cache).with_args("get", "pods").with_cache().execute()
    second = await make_builder("kubectl", scripted, cache).with_args("get", "pods").with_cache().execute()

    assert first == second == "pod-a"
    assert expectation.calls == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_caching_is_opt_in(scripted, cache):
    expectation = scripted.expect("kubectl", ["get", "pods"], stdout="pod-a")

    await make_builder("kubectl", scripted, cache).with_args("get", "pods").execute()
    await make_builder("kubectl", scripted, cache).with_args("get", "pods").execute()

    assert expectation.calls == 2
    assert cache.size() == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cache_entry_expires(scripted, cache, fake_clock):
    expectation = scripted.expect("cilium", ["status"], stdout="OK")

    await make_builder("cilium", scripted, cache).with_args("status").with_cache(ttl=30).execute()
    fake_clock.advance(31)
    await make_builder("cilium", scripted, cache).with_args("status").with_cache(ttl=30).execute()

    assert expectation.calls == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_kubeconfig_is_part_of_cache_key(scripted, cache):
    scripted.expect_prefix("kubectl", ["--kubeconfig"], stdout="pods")

    for path in ("/a/config", "/b/config"):
        await make_builder("kubectl", scripted, cache).with_kubeconfig(path).with_args("get", "pods").with_cache().execute()

    assert len(scripted.invocations) == 2
    assert cache.size() == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_timeout_is_not_cached(scripted, cache):
    expectation = scripted.expect(
        "kubectl", ["get", "pods"], error=CommandCancelledError(["kubectl", "get", "pods"], 1.0)
    )

    for _ in range(2):
        with pytest.raises(CommandCancelledError):
            await make_builder("kubectl", scripted, cache).with_args("get", "pods").with_cache().execute()

    assert expectation.calls == 2
    assert cache.size() == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_failure_is_not_cached(scripted, cache):
    expectation = scripted.expect("kubectl", ["get", "pods"], stderr="connection refused", exit_code=1)

    for _ in range(2):
        with pytest.raises(CommandFailedError):
            await make_builder("kubectl", scripted, cache).with_args("get", "pods").with_cache().execute()

    assert expectation.calls == 2
    assert cache.size() == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_mutating_command_invalidates_cache(scripted, cache):
    get = scripted.expect("kubectl", ["get", "pods"], stdout="pod-a")
    scripted.expect("kubectl", ["delete", "pod", "pod-a"], stdout="pod deleted")

    await make_builder("kubectl", scripted, cache).with_args("get", "pods").with_cache().execute()
    await make_builder("kubectl", scripted, cache).with_args("delete", "pod", "pod-a").execute()
    await make_builder("kubectl", scripted, cache).with_args("get", "pods").with_cache().execute()

    assert get.calls == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_failed_mutating_command_keeps_cache(scripted, cache):
    scripted.expect("kubectl", ["get", "pods"], stdout="pod-a")
    scripted.expect("kubectl", ["delete", "pod", "pod-a"], stderr="forbidden", exit_code=1)

    await make_builder("kubectl", scripted, cache).with_args("get", "pods").with_cache().execute()
    with pytest.raises(CommandFailedError):
        await make_builder("kubectl", scripted, cache).with_args("delete", "pod", "pod-a").execute()

    assert cache.size() == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_mutating_command_is_never_cached(scripted, cache):
    expectation = scripted.expect("helm", ["uninstall", "web"], stdout="release uninstalled")

    for _ in range(2):
        await make_builder("helm", scripted, cache).with_args("uninstall", "web").with_cache().execute()

    assert expectation.calls == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cache_hit_honours_capture_mode(scripted, cache):
    expectation = scripted.expect(
        "linkerd", ["version"], stdout="client\n", stderr="WARN server unreachable\n"
    )

    combined = await make_builder("linkerd", scripted, cache).with_args("version").with_cache().execute()
    stdout_only = await (
        make_builder("linkerd", scripted, cache)
        .with_args("version")
        .with_capture(CaptureMode.STDOUT)
        .with_cache()
        .execute()
    )
    combined_again = await make_builder("linkerd", scripted, cache).with_args("version").with_cache().execute()

    assert combined == combined_again == "client\nWARN server unreachable\n"
    assert stdout_only == "client\n"
    assert expectation.calls == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cache_hit_is_truncated_per_builder(scripted, cache):
    expectation = scripted.expect("kubectl", ["get", "events"], stdout="abcdefghij")

    full = await make_builder("kubectl", scripted, cache).with_args("get", "events").with_cache().execute()
    short = await (
        make_builder("kubectl", scripted, cache, max_output_size=5).with_args("get", "events").with_cache().execute()
    )

    assert full == "abcdefghij"
    assert short == "abcde" + TRUNCATION_MARKER
    assert expectation.calls == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_read_only_rollout_keeps_cache(scripted, cache):
    get = scripted.expect("kubectl", ["get", "deployments"], stdout="web")
    scripted.expect("kubectl", ["rollout", "status", "deployment/web"], stdout="successfully rolled out")
    scripted.expect("kubectl", ["rollout", "restart", "deployment/web"], stdout="restarted")

    await make_builder("kubectl", scripted, cache).with_args("get", "deployments").with_cache().execute()
    await make_builder("kubectl", scripted, cache).with_args("rollout", "status", "deployment/web").execute()
    await make_builder("kubectl", scripted, cache).with_args("get", "deployments").with_cache().execute()
    assert get.calls == 1

    await make_builder("kubectl", scripted, cache).with_args("rollout", "restart", "deployment/web").execute()
    await make_builder("kubectl", scripted, cache).with_args("get", "deployments").with_cache().execute()
    assert get.calls == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_linkerd_install_render_keeps_cache(scripted, cache):
    get = scripted.expect("kubectl", ["get", "pods"], stdout="pod-a")
    scripted.expect("linkerd", ["install", "--crds"], stdout="kind: CustomResourceDefinition\n")

    await make_builder("kubectl", scripted, cache).with_args("get", "pods").with_cache().execute()
    await (
        make_builder("linkerd", scripted, cache)
        .with_args("install", "--crds")
        .with_capture(CaptureMode.STDOUT)
        .execute()
    )
    await make_builder("kubectl", scripted, cache).with_args("get", "pods").with_cache().execute()

    assert get.calls == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_output_truncation(scripted):
    scripted.expect("kubectl", ["get", "events"], stdout="abcdefghij")

    output = await make_builder("kubectl", scripted, max_output_size=5).with_args("get", "events").execute()

    assert output == "abcde" + TRUNCATION_MARKER


@pytest.mark.unit
@pytest.mark.asyncio
async def test_binary_must_be_allowed(scripted):
    with pytest.raises(ValidationError) as exc_info:
        await make_builder("bash", scripted).with_args("-c", "id").execute()

    assert exc_info.value.field == "binary"
    assert scripted.invocations == []


@pytest.mark.unit
def test_null_byte_is_rejected(scripted):
    with pytest.raises(ValidationError):
        make_builder("kubectl", scripted).with_args("get", "pods\x00").build()


@pytest.mark.unit
def test_non_string_argument_is_rejected(scripted):
    with pytest.raises(ValidationError):
        make_builder("kubectl", scripted).with_args("logs", "--tail", 50).build()

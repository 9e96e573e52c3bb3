"""Tests for the Istio and Cilium tools."""

import pytest

from k8s_mcp_tools.tools.cilium import cilium_status_and_version
from k8s_mcp_tools.tools.istio import istio_analyze, istio_proxy_status


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kwargs,args",
    [
        ({}, ["proxy-status"]),
        ({"pod_name": "web-0"}, ["proxy-status", "web-0"]),
        ({"pod_name": "web-0", "namespace": "apps"}, ["proxy-status", "web-0.apps"]),
        ({"namespace": "apps"}, ["proxy-status", "-n", "apps"]),
    ],
)
async def test_istio_proxy_status(runtime, scripted, kwargs, args):
    scripted.expect("istioctl", args, stdout="NAME  CLUSTER  CDS  LDS\n")

    result = await istio_proxy_status(runtime, **kwargs)

    assert result.text == "NAME  CLUSTER  CDS  LDS\n"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_istio_proxy_status_invalid_pod(runtime, scripted):
    result = await istio_proxy_status(runtime, pod_name="web-0.evil", namespace="apps")

    assert result.is_error is True
    assert "  pod_name: web-0.evil\n  namespace: apps" in result.text
    assert scripted.invocations == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_istio_analyze_is_cached(runtime, scripted):
    expectation = scripted.expect("istioctl", ["analyze", "-A"], stdout="No validation issues found")

    first = await istio_analyze(runtime, all_namespaces=True)
    second = await istio_analyze(runtime, all_namespaces=True)

    assert first.text == second.text == "No validation issues found"
    assert expectation.calls == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_istio_analyze_failure(runtime, scripted):
    scripted.expect("istioctl", ["analyze", "-n", "apps"], stderr="Error [IST0101]", exit_code=79)

    result = await istio_analyze(runtime, namespace="apps")

    assert result.is_error is True
    assert result.text.startswith("Error: istio operation 'analyze' failed: command exited with status 79")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cilium_status_and_version(runtime, scripted):
    scripted.expect("cilium", ["status"], stdout="Cilium: OK\nOperator: OK\n")
    scripted.expect("cilium", ["version"], stdout="cilium-cli: v0.16.0\n")

    result = await cilium_status_and_version(runtime)

    assert result.text == "Cilium status:\nCilium: OK\nOperator: OK\n\nCilium version:\ncilium-cli: v0.16.0"
    assert scripted.commands == [["cilium", "status"], ["cilium", "version"]]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cilium_status_failure_skips_version(runtime, scripted):
    scripted.expect("cilium", ["status"], stderr="unable to connect", exit_code=1)

    result = await cilium_status_and_version(runtime)

    assert result.is_error is True
    assert result.text.startswith("Error: cilium operation 'status' failed")
    assert scripted.commands == [["cilium", "status"]]

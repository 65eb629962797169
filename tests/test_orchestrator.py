"""End-to-end tests for JobOrchestrator against the fake generation service.

Scenarios:
- Happy path: preview then refine, STANDARD result recorded in history
- Missing model locator recovered through the proxy endpoint
- Remote failure, timeout and rejected submission fall back to a DEGRADED result
- Refine is never submitted before preview succeeds
"""

import pytest
from conftest import BASE_URL, failed, running, succeeded

from meshforge.models.generation import ResultQuality, Stage, StageStatus
from meshforge.services.generation.orchestrator import (
    DEFAULT_PLACEHOLDER_MODEL_URL,
    OrchestratorState,
)

MODEL_URL = "https://x/m.glb"


def script_happy_path(fake_service, **refine_fields):
    fields = {
        "model_urls": {"glb": MODEL_URL, "obj": "https://x/m.obj"},
        "texture_urls": [{"base_color": "https://x/t.png"}],
    }
    fields.update(refine_fields)
    fake_service.script("p1", running(30), running(80), succeeded())
    fake_service.script("r1", running(25), succeeded(**fields))


@pytest.mark.asyncio
async def test_happy_path_returns_standard_result(orchestrator, fake_service, results):
    script_happy_path(fake_service)

    result = await orchestrator.run("red ceramic vase")

    assert result.quality is ResultQuality.STANDARD
    assert result.prompt == "red ceramic vase"
    assert result.model_reference == MODEL_URL
    assert result.texture_reference == "https://x/t.png"
    assert result.task_id == "r1"
    assert results.items == [result]
    assert orchestrator.state is OrchestratorState.IDLE
    assert orchestrator.feed.latest.percent == 100


@pytest.mark.asyncio
async def test_stages_are_submitted_in_order(orchestrator, fake_service):
    script_happy_path(fake_service)

    await orchestrator.run("red ceramic vase")

    assert [s["mode"] for s in fake_service.submissions] == ["preview", "refine"]
    assert fake_service.submissions[1]["preview_task_id"] == "p1"
    assert fake_service.polls == ["p1", "p1", "p1", "r1", "r1"]

    job = orchestrator.last_job
    assert job.preview_task_id == "p1"
    assert job.refine_task_id == "r1"
    assert job.stage is Stage.REFINE
    assert job.status is StageStatus.SUCCEEDED


@pytest.mark.asyncio
async def test_progress_is_monotonic_over_a_run(orchestrator, fake_service):
    script_happy_path(fake_service)
    seen: list[float] = []
    orchestrator.feed.subscribe(lambda snapshot: seen.append(snapshot.percent))

    await orchestrator.run("red ceramic vase")

    assert seen == sorted(seen)
    assert seen[0] == 0
    assert seen[-1] == 100
    assert 50 in seen


@pytest.mark.asyncio
async def test_repeated_generation_is_deduplicated(orchestrator, fake_service, results):
    script_happy_path(fake_service)
    first = await orchestrator.run("red ceramic vase")

    fake_service.submissions.clear()
    script_happy_path(fake_service)
    second = await orchestrator.run("red ceramic vase again")

    assert second.id == first.id
    assert len(results) == 1


@pytest.mark.asyncio
async def test_missing_locator_recovered_through_proxy(orchestrator, fake_service):
    script_happy_path(fake_service, model_urls={}, texture_urls=[])
    fake_service.proxy_status = 200

    result = await orchestrator.run("red ceramic vase")

    assert result.quality is ResultQuality.STANDARD
    assert result.model_reference == f"{BASE_URL}/proxy-model/r1"
    assert result.texture_reference is None
    assert fake_service.proxy_probes == ["r1"]


@pytest.mark.asyncio
async def test_missing_locator_without_proxy_degrades(orchestrator, fake_service, results):
    script_happy_path(fake_service, model_urls={"glb": None})
    fake_service.proxy_status = 404

    result = await orchestrator.run("red ceramic vase")

    assert result.quality is ResultQuality.DEGRADED
    assert result.model_reference == DEFAULT_PLACEHOLDER_MODEL_URL
    assert results.items[0].quality is ResultQuality.DEGRADED


@pytest.mark.asyncio
async def test_preview_failure_skips_refine(orchestrator, fake_service):
    fake_service.script("p1", running(), running(), failed("bad prompt"))

    result = await orchestrator.run("red ceramic vase")

    assert result.quality is ResultQuality.DEGRADED
    assert result.model_reference == DEFAULT_PLACEHOLDER_MODEL_URL
    assert [s["mode"] for s in fake_service.submissions] == ["preview"]
    assert fake_service.polls_for("p1") == 3
    assert orchestrator.last_job.status is StageStatus.FAILED
    assert orchestrator.feed.latest.percent == 100


@pytest.mark.asyncio
async def test_refine_timeout_degrades(orchestrator, fake_service, clock):
    fake_service.script("p1", succeeded())
    fake_service.script("r1", running(10))

    result = await orchestrator.run("red ceramic vase")

    assert result.quality is ResultQuality.DEGRADED
    assert fake_service.polls_for("r1") == 60
    assert clock.now == pytest.approx(3.0 + 180.0)
    assert orchestrator.last_job.status is StageStatus.TIMED_OUT


@pytest.mark.asyncio
async def test_rejected_submission_degrades(orchestrator, fake_service):
    fake_service.submit_status = 500

    result = await orchestrator.run("red ceramic vase")

    assert result.quality is ResultQuality.DEGRADED
    assert fake_service.polls == []
    assert orchestrator.last_job.status is StageStatus.FAILED


@pytest.mark.asyncio
async def test_empty_prompt_degrades_without_network(orchestrator, fake_service):
    result = await orchestrator.run("   ")

    assert result.quality is ResultQuality.DEGRADED
    assert fake_service.requests == []


@pytest.mark.asyncio
async def test_commit_failure_still_returns_result(orchestrator, fake_service, kv_store):
    script_happy_path(fake_service)

    async def broken_set(key: str, value: str) -> None:
        raise RuntimeError("disk full")

    kv_store.set = broken_set

    result = await orchestrator.run("red ceramic vase")

    assert result.quality is ResultQuality.STANDARD
    assert result.model_reference == MODEL_URL
    assert len(orchestrator.results) == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "texture_urls",
    [
        [{"base_color": {"url": "https://x/t.png"}}],
        [{"base_color": ""}],
        [42],
        "https://x/t.png",
    ],
)
async def test_unusable_texture_does_not_degrade_result(orchestrator, fake_service, texture_urls):
    script_happy_path(fake_service, texture_urls=texture_urls)

    result = await orchestrator.run("red ceramic vase")

    assert result.quality is ResultQuality.STANDARD
    assert result.model_reference == MODEL_URL
    assert result.texture_reference is None

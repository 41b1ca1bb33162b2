"""
Acknowledgment handler tests.

Tests cover:
  - Notification actions (log, skip) and app opens flag the open cycle
  - Tokens from an older cycle or a routine push leave the state alone
  - Quick log from a notification records the entry and spends the token
"""

from datetime import timedelta

import pytest

from adherence.services.acknowledgment import log_deep_link
from adherence.services.tokens import issue_token

from conftest import DAY_ONE


async def escalation_token(runtime, web_push):
    await runtime.escalation.sweep(DAY_ONE)
    return web_push.payloads[-1]["data"]["token"]


class TestAcknowledge:

    @pytest.mark.asyncio
    async def test_log_action_returns_deep_link(self, runtime, seed, web_push):
        await seed.patient("p1", suggested_value="120/80")
        token = await escalation_token(runtime, web_push)

        result = await runtime.acknowledgments.acknowledge(token, "log", now=DAY_ONE + timedelta(minutes=1))

        assert result.ok
        assert result.redirect_url == f"https://app.example.test/patient?log_token={token}"
        assert result.vital_type == "blood_pressure"
        assert result.value == "120/80"
        state = await seed.state("p1")
        assert state.acknowledged == 1
        assert state.ack_action == "log"

    @pytest.mark.asyncio
    async def test_skip_has_no_redirect(self, runtime, seed, web_push):
        await seed.patient("p1")
        token = await escalation_token(runtime, web_push)

        result = await runtime.acknowledgments.acknowledge(token, "skip", now=DAY_ONE)

        assert result.ok
        assert result.redirect_url is None

    @pytest.mark.asyncio
    async def test_acknowledge_does_not_clear_cycle(self, runtime, seed, web_push):
        await seed.patient("p1")
        token = await escalation_token(runtime, web_push)

        await runtime.acknowledgments.acknowledge(token, "open", now=DAY_ONE)

        state = await seed.state("p1")
        assert state is not None
        assert state.current_day_bucket == 1

    @pytest.mark.asyncio
    async def test_unknown_token(self, runtime):
        result = await runtime.acknowledgments.acknowledge("nope", "open", now=DAY_ONE)
        assert not result.ok
        assert result.reason == "invalid_token"

    @pytest.mark.asyncio
    async def test_expired_token(self, runtime, seed, web_push):
        await seed.patient("p1")
        token = await escalation_token(runtime, web_push)

        result = await runtime.acknowledgments.acknowledge(token, "open", now=DAY_ONE + timedelta(hours=25))

        assert not result.ok
        assert result.reason == "expired"
        assert (await seed.state("p1")).acknowledged == 0

    @pytest.mark.asyncio
    async def test_invalid_action(self, runtime, seed, web_push):
        await seed.patient("p1")
        token = await escalation_token(runtime, web_push)

        result = await runtime.acknowledgments.acknowledge(token, "snooze", now=DAY_ONE)

        assert result.reason == "invalid_action"

    @pytest.mark.asyncio
    async def test_routine_token_leaves_state_alone(self, runtime, seed, web_push):
        await seed.patient("p1")
        await runtime.escalation.sweep(DAY_ONE)
        await runtime.routine.run(DAY_ONE + timedelta(minutes=1))
        routine = web_push.payloads[-1]
        assert routine["tag"] == "routine-blood_pressure"

        result = await runtime.acknowledgments.acknowledge(
            routine["data"]["token"], "skip", now=DAY_ONE + timedelta(minutes=2)
        )

        assert result.ok
        assert result.acknowledged_escalation is False
        assert (await seed.state("p1")).acknowledged == 0

    @pytest.mark.asyncio
    async def test_token_from_previous_cycle(self, runtime, seed):
        await seed.patient("p1")
        await runtime.escalation.sweep(DAY_ONE)

        async with runtime.database.session() as session:
            stale = await issue_token(
                session,
                patient_id="p1",
                kind="escalation",
                vital_type="blood_pressure",
                ttl=timedelta(days=7),
                cycle_start_date=(DAY_ONE - timedelta(days=10)).date(),
                day_bucket=1,
                now=DAY_ONE,
            )
            await session.commit()

        result = await runtime.acknowledgments.acknowledge(stale.token, "open", now=DAY_ONE)

        assert result.ok
        assert result.acknowledged_escalation is False
        assert (await seed.state("p1")).acknowledged == 0


class TestRedeem:

    @pytest.mark.asyncio
    async def test_quick_log_then_sweep_clears(self, runtime, seed, web_push):
        await seed.patient("p1", suggested_value="120/80")
        token = await escalation_token(runtime, web_push)

        result = await runtime.acknowledgments.redeem(token, now=DAY_ONE + timedelta(minutes=3))

        assert result.ok
        assert result.value == "120/80"
        entries = await seed.log_entries("p1")
        assert len(entries) == 1
        assert entries[0].source == "push"
        assert entries[0].kind == "vital"

        sweep = await runtime.escalation.sweep(DAY_ONE + timedelta(hours=1))
        assert sweep.patients["p1"].transition == "cleared"

    @pytest.mark.asyncio
    async def test_value_override(self, runtime, seed, web_push):
        await seed.patient("p1", suggested_value="120/80")
        token = await escalation_token(runtime, web_push)

        result = await runtime.acknowledgments.redeem(token, value="135/90", now=DAY_ONE)

        assert result.value == "135/90"
        assert (await seed.log_entries("p1"))[0].value_text == "135/90"

    @pytest.mark.asyncio
    async def test_token_spent_once(self, runtime, seed, web_push):
        await seed.patient("p1")
        token = await escalation_token(runtime, web_push)

        await runtime.acknowledgments.redeem(token, now=DAY_ONE)
        again = await runtime.acknowledgments.redeem(token, now=DAY_ONE)

        assert not again.ok
        assert again.reason == "already_used"
        assert len(await seed.log_entries("p1")) == 1

    @pytest.mark.asyncio
    async def test_other_patients_token(self, runtime, seed, web_push):
        await seed.patient("p1")
        token = await escalation_token(runtime, web_push)

        result = await runtime.acknowledgments.redeem(token, now=DAY_ONE, patient_id="p2")

        assert result.reason == "invalid_token"
        assert await seed.log_entries("p1") == []

    @pytest.mark.asyncio
    async def test_medication_reminder_logs_medication(self, runtime, seed, web_push):
        await seed.patient("p1", vital_type="medication")
        token = await escalation_token(runtime, web_push)

        await runtime.acknowledgments.redeem(token, now=DAY_ONE)

        assert (await seed.log_entries("p1"))[0].kind == "medication"


def test_deep_link_quotes_token():
    assert log_deep_link("https://app.example.test/", "a b") == "https://app.example.test/patient?log_token=a%20b"

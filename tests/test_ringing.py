import asyncio
from datetime import timedelta

from alarms.models import AlarmDefinition
from alarms.ringing import RingingSession, RingingState

from conftest import MONDAY, FakeSounds


def _alarm(alarm_id: str = "al_1") -> AlarmDefinition:
    return AlarmDefinition(id=alarm_id, time=MONDAY, label="Wake")


def test_start_plays_sound_and_pulses():
    sounds = FakeSounds()
    session = RingingSession(sounds, "alarm.wav", haptic_interval_ms=1500)
    assert asyncio.run(session.start(_alarm())) is True
    assert session.state is RingingState.RINGING
    assert session.alarm.id == "al_1"
    assert sounds.calls == ["load", "play", "pulse:1500"]


def test_second_alarm_while_ringing_is_ignored():
    sounds = FakeSounds()
    session = RingingSession(sounds, "alarm.wav")

    async def scenario():
        await session.start(_alarm("al_1"))
        return await session.start(_alarm("al_2"))

    assert asyncio.run(scenario()) is False
    assert session.alarm.id == "al_1"
    assert sounds.calls.count("play") == 1


def test_dismiss_stops_everything():
    sounds = FakeSounds()
    session = RingingSession(sounds, "alarm.wav")

    async def scenario():
        await session.start(_alarm())
        return await session.dismiss()

    assert asyncio.run(scenario()).id == "al_1"
    assert session.state is RingingState.IDLE
    assert session.alarm is None
    assert "stop" in sounds.calls
    assert sounds.tokens[0].cancelled


def test_dismiss_reaches_idle_when_stops_fail():
    sounds = FakeSounds()
    sounds.fail_stop = True
    sounds.fail_token_cancel = True
    session = RingingSession(sounds, "alarm.wav")

    async def scenario():
        await session.start(_alarm())
        return await session.dismiss()

    assert asyncio.run(scenario()).id == "al_1"
    assert session.state is RingingState.IDLE
    assert "stop" in sounds.calls
    assert sounds.tokens[0].cancelled


def test_startup_failures_do_not_block_dismiss():
    sounds = FakeSounds()
    sounds.fail_load = True
    sounds.fail_pulse = True
    session = RingingSession(sounds, "alarm.wav")

    async def scenario():
        started = await session.start(_alarm())
        dismissed = await session.dismiss()
        return started, dismissed

    started, dismissed = asyncio.run(scenario())
    assert started is True
    assert dismissed.id == "al_1"
    assert session.state is RingingState.IDLE


def test_dismiss_when_idle_is_noop():
    session = RingingSession(FakeSounds(), "alarm.wav")
    assert asyncio.run(session.dismiss()) is None
    assert session.state is RingingState.IDLE


def test_snooze_stops_then_invokes_handler():
    sounds = FakeSounds()
    received = []

    async def on_snooze(alarm, now, minutes):
        received.append((alarm.id, now, minutes, list(sounds.calls)))
        return "snoozed"

    session = RingingSession(sounds, "alarm.wav", on_snooze=on_snooze)
    later = MONDAY + timedelta(minutes=1)

    async def scenario():
        await session.start(_alarm())
        return await session.snooze(later, minutes=10)

    assert asyncio.run(scenario()) == "snoozed"
    alarm_id, now, minutes, calls_at_snooze = received[0]
    assert (alarm_id, now, minutes) == ("al_1", later, 10)
    assert "stop" in calls_at_snooze
    assert session.state is RingingState.IDLE


def test_asset_is_loaded_once_and_unloaded_on_close():
    sounds = FakeSounds()
    session = RingingSession(sounds, "alarm.wav")

    async def scenario():
        await session.start(_alarm("al_1"))
        await session.dismiss()
        await session.start(_alarm("al_2"))
        await session.close()

    asyncio.run(scenario())
    assert sounds.calls.count("load") == 1
    assert sounds.calls[-1] == "unload"
    assert session.state is RingingState.IDLE

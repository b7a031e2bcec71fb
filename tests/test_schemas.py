import pytest

from volume_scheduler.exceptions import ScheduleValidationError
from volume_scheduler.schemas import DEFAULT_BASELINE_VOLUME, parse_schedule
from volume_scheduler.services.schedule_source import parse_schedule_document


def payload(**overrides):
    data = {
        "soundZoneId": "U291bmRab25l",
        "rules": [{"from": "09:00", "to": "10:00", "volume": 10}],
        "timeZone": "Asia/Bangkok",
    }
    data.update(overrides)
    return data


def test_parse_schedule_reads_json_keys():
    schedule = parse_schedule(payload(zoneName="Lobby", baselineVolume=5))
    assert schedule.zone_id == "U291bmRab25l"
    assert schedule.label == "Lobby"
    assert schedule.baseline_volume == 5
    assert schedule.active is True
    assert schedule.rules[0].start == "09:00"
    assert schedule.rules[0].end == "10:00"
    assert schedule.rules[0].model_dump(by_alias=True) == {"from": "09:00", "to": "10:00", "volume": 10}


def test_baseline_defaults_when_missing():
    schedule = parse_schedule(payload())
    assert schedule.baseline_volume == DEFAULT_BASELINE_VOLUME
    assert schedule.label == "U291bmRab25l"


def test_single_digit_hour_is_accepted():
    schedule = parse_schedule(payload(rules=[{"from": "9:00", "to": "17:30", "volume": 4}]))
    assert schedule.rules[0].start == "9:00"


@pytest.mark.parametrize("bad_time", ["24:00", "12:60", "9:7", "noon", "09-00", "", "09:00:00"])
def test_malformed_time_is_rejected(bad_time):
    with pytest.raises(ScheduleValidationError) as excinfo:
        parse_schedule(payload(rules=[{"from": bad_time, "to": "10:00", "volume": 10}]))
    assert "rules.0.from" in str(excinfo.value)


@pytest.mark.parametrize("bad_volume", [-1, 17, 8.5, "8", True, None])
def test_out_of_range_or_non_integer_volume_is_rejected(bad_volume):
    with pytest.raises(ScheduleValidationError):
        parse_schedule(payload(rules=[{"from": "09:00", "to": "10:00", "volume": bad_volume}]))


@pytest.mark.parametrize("bad_baseline", [-1, 17, 3.5])
def test_bad_baseline_is_rejected(bad_baseline):
    with pytest.raises(ScheduleValidationError):
        parse_schedule(payload(baselineVolume=bad_baseline))


def test_unknown_time_zone_is_rejected():
    with pytest.raises(ScheduleValidationError) as excinfo:
        parse_schedule(payload(timeZone="Mars/Olympus_Mons"))
    assert "unknown time zone" in str(excinfo.value)


def test_missing_zone_id_is_rejected():
    with pytest.raises(ScheduleValidationError):
        parse_schedule(payload(soundZoneId=""))


def test_error_message_names_the_zone():
    with pytest.raises(ScheduleValidationError) as excinfo:
        parse_schedule(payload(baselineVolume=40))
    assert "U291bmRab25l" in str(excinfo.value)


def test_document_accepts_single_object_list_and_wrapper():
    single = parse_schedule_document(payload())
    listed = parse_schedule_document([payload(), payload(soundZoneId="other")])
    wrapped = parse_schedule_document({"schedules": [payload()]})
    assert [s.zone_id for s in single] == ["U291bmRab25l"]
    assert [s.zone_id for s in listed] == ["U291bmRab25l", "other"]
    assert len(wrapped) == 1


def test_document_rejects_duplicate_zones():
    with pytest.raises(ScheduleValidationError):
        parse_schedule_document([payload(), payload()])


def test_document_rejects_other_shapes():
    with pytest.raises(ScheduleValidationError):
        parse_schedule_document("not a schedule")

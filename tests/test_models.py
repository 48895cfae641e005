from ski_history.models import LiftItem, TerrainFeed, TrailItem


def test_feed_unwraps_fmr_and_dedupes_lifts():
    payload = {
        "FMR": {
            "GroomingAreas": [
                {"Name": "Village", "Trails": [{"Name": "Riva Ridge"}], "Lifts": [{"Name": "Gondola One"}]},
                {"Name": "Bowls", "Trails": [{"Name": "Sun Down"}, "junk"]},
            ],
            "Lifts": [{"Name": "Gondola One"}, {"Name": "Chair 5", "SortOrder": 5}],
        }
    }

    feed = TerrainFeed.from_payload(payload)

    assert [t.name for t in feed.trails()] == ["Riva Ridge", "Sun Down"]
    assert [l.name for l in feed.all_lifts()] == ["Gondola One", "Chair 5"]
    assert feed.all_lifts()[1].lift_id == "5"
    assert feed.area_for_trail("Sun Down") == "Bowls"
    assert feed.area_for_trail("Nowhere") is None


def test_feed_requires_grooming_areas():
    assert TerrainFeed.from_payload(None) is None
    assert TerrainFeed.from_payload({"Lifts": []}) is None
    assert TerrainFeed.from_payload({"GroomingAreas": "nope"}) is None
    assert TerrainFeed.from_payload({"GroomingAreas": []}).trails() == []


def test_trail_fallbacks():
    flags_only = TrailItem.from_payload({"Name": "A", "IsOpen": True, "IsGroomed": True, "TrailType": "Alpine"})
    assert flags_only.status == "Open"
    assert flags_only.grooming_status == "Groomed"
    assert flags_only.grooming_type == "Alpine"

    bare = TrailItem.from_payload({})
    assert bare.name == "Unknown"
    assert bare.status == "Closed"
    assert bare.grooming_status is None


def test_lift_numbers_are_coerced():
    item = LiftItem.from_payload({"Name": "Chair", "WaitTimeInMinutes": "7", "Capacity": "", "IsOpen": "true"})

    assert item.wait_minutes == 7
    assert item.capacity is None
    assert item.status == "Open"

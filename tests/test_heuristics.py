import json
from pathlib import Path

import pytest

from chlvm.exceptions import ProfileError
from chlvm.vm.heuristics import DEFAULT_PROFILE, HeuristicProfile, load_profile, save_profile


def test_defaults() -> None:
    profile = HeuristicProfile()

    assert profile.is_dispatcher(51)
    assert not profile.is_dispatcher(50)
    assert profile.is_noise_index(195)
    assert profile.is_noise_index(127)
    assert profile.is_noise_index(1001)
    assert not profile.is_noise_index(1000)


def test_dict_round_trip_keeps_tuples() -> None:
    data = DEFAULT_PROFILE.to_dict()

    assert data["noise_indices"] == [195, 127]
    assert data["marker_pair"] == [195, 188]
    restored = HeuristicProfile.from_dict(data)
    assert restored == DEFAULT_PROFILE
    assert isinstance(restored.marker_pair, tuple)


def test_partial_dict_keeps_defaults() -> None:
    profile = HeuristicProfile.from_dict({"version": "next", "dispatcher_min_statements": "80"})

    assert profile.version == "next"
    assert profile.dispatcher_min_statements == 80
    assert profile.key_mask == DEFAULT_PROFILE.key_mask


@pytest.mark.parametrize(
    "raw, message",
    [
        ({"unknown_threshold": 1}, "unknown profile fields"),
        ({"key_mask": "lots"}, "invalid value for key_mask"),
        ({"marker_pair": [1, 2, 3]}, "marker_pair"),
        ({"initial_payload_min": 10, "initial_payload_max": 5}, "band is empty"),
    ],
)
def test_invalid_profiles_are_rejected(raw, message) -> None:
    with pytest.raises(ProfileError, match=message):
        HeuristicProfile.from_dict(raw)


def test_save_and_load(tmp_path: Path) -> None:
    profile = HeuristicProfile(version="custom", noise_indices=(1, 2, 3))
    path = save_profile(profile, tmp_path / "profiles" / "custom.json")

    assert load_profile(path) == profile


def test_load_rejects_bad_json(tmp_path: Path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ProfileError, match="not valid JSON"):
        load_profile(path)

    path.write_text(json.dumps([1, 2]), encoding="utf-8")
    with pytest.raises(ProfileError, match="JSON object"):
        load_profile(path)

"""
Score Model Tests.

============================================================
PURPOSE
============================================================
Unit tests for the bio-token score model.

TEST CATEGORIES:
- Factor tests: order, values, reveal delays
- Value tests: fold, rounding, floor of one token
- Validation tests: malformed recordings
- Parsing tests: Recording.from_dict and the sample catalog

============================================================
"""

import math

import pytest

from core.exceptions import InvalidRecording
from scoring_engine import (
    FACTOR_ORDER,
    REVEAL_DELAYS_MS,
    ConservationStatus,
    Recording,
    compute_factors,
    compute_token_value,
    conservation_multiplier,
    finalize_value,
    get_recording,
    list_recordings,
    round_half_up,
    running_products,
)


def make_recording(**overrides) -> Recording:
    attrs = dict(
        id="r",
        duration_seconds=180,
        location="Chocó Biogeográfico",
        quality_score=0.92,
        metadata_complete=True,
        is_rare_location=True,
        species="Ara macao",
        conservation_status=ConservationStatus.VU,
    )
    attrs.update(overrides)
    return Recording(**attrs)


# ============================================================
# FACTOR TESTS
# ============================================================

class TestComputeFactors:
    """Tests for compute_factors."""

    def test_five_factors_in_fixed_order(self):
        factors = compute_factors(make_recording())

        assert tuple(f.id for f in factors) == FACTOR_ORDER
        assert FACTOR_ORDER == ("duration", "metadata", "location", "conservation", "quality")

    def test_reveal_delays(self):
        factors = compute_factors(make_recording())

        assert tuple(f.reveal_delay_ms for f in factors) == REVEAL_DELAYS_MS
        assert REVEAL_DELAYS_MS == (800, 1600, 2400, 3200, 4000)

    def test_factor_values_for_rich_recording(self):
        factors = compute_factors(make_recording())

        assert [f.multiplier for f in factors] == [6.0, 1.8, 2.5, 2.0, 0.92]

    def test_factor_values_for_plain_recording(self):
        recording = make_recording(
            duration_seconds=45,
            metadata_complete=False,
            is_rare_location=False,
            conservation_status=None,
            quality_score=0.35,
        )

        assert [f.multiplier for f in compute_factors(recording)] == [1.0, 1.0, 1.0, 1.0, 0.35]

    def test_duration_base_uses_whole_segments(self):
        assert compute_factors(make_recording(duration_seconds=29))[0].multiplier == 0.0
        assert compute_factors(make_recording(duration_seconds=30))[0].multiplier == 1.0
        assert compute_factors(make_recording(duration_seconds=89))[0].multiplier == 2.0

    @pytest.mark.parametrize("status,expected", [
        (ConservationStatus.CR, 5.0),
        (ConservationStatus.EN, 3.0),
        (ConservationStatus.VU, 2.0),
        (ConservationStatus.NT, 1.5),
        (ConservationStatus.LC, 1.0),
        (None, 1.0),
    ])
    def test_conservation_multipliers(self, status, expected):
        assert conservation_multiplier(status) == expected
        assert compute_factors(make_recording(conservation_status=status))[3].multiplier == expected

    def test_deterministic(self):
        recording = make_recording()

        assert compute_factors(recording) == compute_factors(recording)


# ============================================================
# VALUE TESTS
# ============================================================

class TestTokenValue:
    """Tests for the folded token value."""

    def test_running_products(self):
        products = running_products(compute_factors(make_recording()))

        assert products[0] == 6.0
        assert products[1] == pytest.approx(10.8)
        assert products[2] == pytest.approx(27.0)
        assert products[3] == pytest.approx(54.0)
        assert products[4] == pytest.approx(49.68)

    def test_rich_recording_value(self):
        assert compute_token_value(make_recording()) == 50

    def test_value_never_below_one(self):
        recording = make_recording(
            duration_seconds=10,
            metadata_complete=False,
            is_rare_location=False,
            conservation_status=None,
            quality_score=0.0,
        )

        assert compute_token_value(recording) == 1

    def test_zero_duration_gives_one_token(self):
        assert compute_token_value(make_recording(duration_seconds=0)) == 1

    def test_quality_can_shrink_value(self):
        full = compute_token_value(make_recording(quality_score=1.0))
        half = compute_token_value(make_recording(quality_score=0.5))

        assert full == 54
        assert half == 27

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(0.49) == 0
        assert round_half_up(10.8) == 11

    def test_finalize_value(self):
        assert finalize_value(None) == 1
        assert finalize_value(0.35) == 1
        assert finalize_value(49.68) == 50


# ============================================================
# VALIDATION TESTS
# ============================================================

class TestValidation:
    """Tests for malformed recordings."""

    def test_negative_duration(self):
        with pytest.raises(InvalidRecording) as exc:
            compute_factors(make_recording(duration_seconds=-1))

        assert exc.value.field_name == "duration_seconds"

    @pytest.mark.parametrize("quality", [-0.01, 1.01, math.nan])
    def test_quality_out_of_range(self, quality):
        with pytest.raises(InvalidRecording):
            compute_factors(make_recording(quality_score=quality))

    def test_non_integer_duration(self):
        with pytest.raises(InvalidRecording):
            compute_factors(make_recording(duration_seconds=12.5))

    def test_boolean_duration_rejected(self):
        with pytest.raises(InvalidRecording):
            compute_factors(make_recording(duration_seconds=True))

    def test_quality_bounds_are_inclusive(self):
        assert len(compute_factors(make_recording(quality_score=0.0))) == 5
        assert len(compute_factors(make_recording(quality_score=1.0))) == 5

    def test_invalid_recording_is_not_retryable(self):
        with pytest.raises(InvalidRecording) as exc:
            compute_factors(make_recording(duration_seconds=-5))

        assert exc.value.is_retryable is False


# ============================================================
# PARSING TESTS
# ============================================================

class TestRecordingParsing:
    """Tests for Recording.from_dict and the catalog."""

    def test_from_camel_case(self):
        recording = Recording.from_dict({
            "id": 7,
            "duration": 75,
            "location": "Sierra Nevada",
            "species": "Atlapetes flaviceps",
            "iucnStatus": "cr",
            "qualityScore": 0.78,
            "metadataComplete": True,
            "isRareLocation": True,
            "coordinates": [10.8, -73.7],
        })

        assert recording.id == "7"
        assert recording.conservation_status == ConservationStatus.CR
        assert recording.coordinates == (10.8, -73.7)
        assert compute_token_value(recording) == 35

    def test_from_snake_case(self):
        recording = Recording.from_dict({
            "id": "a",
            "duration_seconds": 60,
            "location": "x",
            "quality_score": 1.0,
            "conservation_status": "",
        })

        assert recording.conservation_status is None
        assert compute_token_value(recording) == 2

    def test_unknown_status_rejected(self):
        with pytest.raises(InvalidRecording):
            Recording.from_dict({"duration_seconds": 60, "quality_score": 0.5, "iucnStatus": "XX"})

    def test_missing_quality_rejected(self):
        with pytest.raises(InvalidRecording):
            Recording.from_dict({"duration_seconds": 60})

    def test_bad_coordinates_rejected(self):
        with pytest.raises(InvalidRecording):
            Recording.from_dict({
                "duration_seconds": 60,
                "quality_score": 0.5,
                "coordinates": "north",
            })

    def test_to_dict_round_trip(self):
        recording = get_recording("2")

        assert Recording.from_dict(recording.to_dict()) == recording

    def test_catalog_values(self):
        values = {r.id: compute_token_value(r) for r in list_recordings()}

        assert values == {"1": 50, "2": 35, "3": 1}

    def test_catalog_unknown_id(self):
        with pytest.raises(InvalidRecording):
            get_recording("404")

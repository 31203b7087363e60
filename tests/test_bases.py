"""Tests for bases and base selection."""

import pytest
from charmsync.charms.bases import (
    Base,
    bases_contain,
    intersect_bases,
    parse_base,
    resolve_base,
    supported_workload_bases,
)
from charmsync.core.errors import NotSupportedError, NotValidError

FOCAL = Base("ubuntu", "20.04", "stable")
JAMMY = Base("ubuntu", "22.04", "stable")
NOBLE = Base("ubuntu", "24.04", "stable")


def resolve(**overrides):
    kwargs = {
        "input_base": None,
        "suggested_base": None,
        "charm_bases": [JAMMY, FOCAL],
        "supported_bases": [FOCAL, JAMMY, NOBLE],
        "model_config": {},
        "default_lts": None,
    }
    kwargs.update(overrides)
    return resolve_base(**kwargs)


class TestParseBase:
    """Test base parsing and rendering."""

    def test_plain(self):
        base = parse_base("ubuntu@22.04")
        assert base == JAMMY
        assert str(base) == "ubuntu@22.04"

    def test_with_risk(self):
        base = parse_base("ubuntu@22.04/edge")
        assert base.risk == "edge"
        assert str(base) == "ubuntu@22.04/edge"

    def test_empty(self):
        assert parse_base("").empty
        assert str(parse_base("")) == ""

    @pytest.mark.parametrize("value", ["ubuntu", "@22.04", "ubuntu@", "ubuntu@22.04/rolling"])
    def test_invalid(self, value):
        with pytest.raises(NotValidError):
            parse_base(value)

    def test_compatibility_ignores_risk(self):
        assert parse_base("ubuntu@22.04/edge").is_compatible(JAMMY)
        assert not FOCAL.is_compatible(JAMMY)
        assert not Base("centos", "22.04").is_compatible(JAMMY)


class TestBaseSets:
    """Test membership and intersection helpers."""

    def test_empty_base_never_contained(self):
        assert not bases_contain(Base(""), [JAMMY])
        assert not bases_contain(None, [JAMMY])

    def test_intersection_deduplicates(self):
        charm_bases = [JAMMY, parse_base("ubuntu@22.04/candidate"), Base("ubuntu", "18.04")]
        assert intersect_bases(charm_bases, [FOCAL, JAMMY]) == [JAMMY]

    def test_current_controller_bases(self):
        bases = supported_workload_bases(3)
        assert [str(b) for b in bases] == ["ubuntu@20.04", "ubuntu@22.04", "ubuntu@24.04"]

    def test_legacy_controller_bases(self):
        bases = supported_workload_bases(2)
        assert bases_contain(parse_base("ubuntu@18.04"), bases)
        assert bases_contain(parse_base("centos@7"), bases)
        assert not bases_contain(parse_base("ubuntu@18.04"), supported_workload_bases(4))


class TestResolveBase:
    """Test base selection preference order."""

    def test_user_base_in_intersection_returned_exactly(self):
        user = parse_base("ubuntu@20.04/candidate")
        assert resolve(input_base=user, suggested_base=JAMMY) is user

    @pytest.mark.parametrize("user", [None, FOCAL, JAMMY])
    def test_empty_intersection_fails(self, user):
        with pytest.raises(NotSupportedError):
            resolve(
                input_base=user,
                suggested_base=JAMMY,
                charm_bases=[Base("ubuntu", "18.04", "stable")],
                model_config={"default-base": "ubuntu@22.04"},
                default_lts=JAMMY,
            )

    def test_user_base_outside_intersection_fails(self):
        # Suggested and default would work, but no substitution happens
        with pytest.raises(NotSupportedError):
            resolve(
                input_base=NOBLE,
                suggested_base=JAMMY,
                model_config={"default-base": "ubuntu@22.04"},
                default_lts=JAMMY,
            )

    def test_model_default_beats_suggested(self):
        base = resolve(suggested_base=JAMMY, model_config={"default-base": "ubuntu@20.04"})
        assert base == FOCAL

    def test_model_default_outside_intersection_ignored(self):
        base = resolve(suggested_base=JAMMY, model_config={"default-base": "ubuntu@24.04"})
        assert base == JAMMY

    def test_suggested_beats_lts(self):
        assert resolve(suggested_base=FOCAL, default_lts=JAMMY) == FOCAL

    def test_lts_when_nothing_else(self):
        assert resolve(default_lts=JAMMY) == JAMMY

    def test_deterministic_fallback(self):
        base = resolve(charm_bases=[NOBLE, JAMMY, FOCAL])
        assert base == FOCAL

    def test_fallback_orders_tracks_numerically(self):
        centos = [Base("centos", "10", "stable"), Base("centos", "9", "stable")]
        assert resolve(charm_bases=centos, supported_bases=centos) == centos[1]

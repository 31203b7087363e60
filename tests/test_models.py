"""Tests for charm identity types and application input models."""

import pytest
import yaml
from charmsync.api.types import ServerVersion, StorageDirective, parse_storage_directive
from charmsync.applications.models import (
    CharmResource,
    CreateApplicationInput,
    ExposeConfig,
    config_value_to_string,
    constraint_value,
    equal_config_entries,
    resources_as_string_map,
    split_comma_delimited_list,
)
from charmsync.charms.bases import Base
from charmsync.charms.models import (
    SOURCE_CHARMHUB,
    Channel,
    Platform,
    make_origin,
    parse_channel,
    parse_charm_url,
)
from charmsync.core.errors import NotValidError


class TestConfigValueToString:
    """Test canonical config value strings."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (True, "true"),
            (False, "false"),
            (42, "42"),
            (-3, "-3"),
            (3.7, "4"),
            (2.5, "2"),
            (10.0, "10"),
            ("hello", "hello"),
        ],
    )
    def test_conversion(self, value, expected):
        assert config_value_to_string(value) == expected

    def test_unsupported_type(self):
        with pytest.raises(NotValidError):
            config_value_to_string(["a"])

    def test_entries_compare_with_type(self):
        assert equal_config_entries(1, 1)
        assert not equal_config_entries(1, True)
        assert not equal_config_entries("1", 1)


class TestChannel:
    """Test channel parsing."""

    def test_track_and_risk(self):
        assert parse_channel("14/stable") == Channel(track="14", risk="stable")

    def test_risk_only(self):
        assert parse_channel("edge") == Channel(risk="edge")

    def test_track_only_defaults_to_stable(self):
        assert parse_channel("14") == Channel(track="14", risk="stable")

    def test_branch(self):
        channel = parse_channel("14/candidate/hotfix")
        assert channel.branch == "hotfix"
        assert str(channel) == "14/candidate/hotfix"

    def test_empty(self):
        assert parse_channel("").empty

    def test_bad_risk(self):
        with pytest.raises(NotValidError):
            parse_channel("14/unstable")


class TestCharmURL:
    """Test charm URL parsing."""

    def test_bare_name(self):
        url = parse_charm_url("postgresql")
        assert url.name == "postgresql"
        assert url.schema == "ch"
        assert url.revision == -1

    def test_literal_revision(self):
        url = parse_charm_url("ch:amd64/jammy/postgresql-429")
        assert url.name == "postgresql"
        assert url.revision == 429
        assert url.architecture == "amd64"
        assert url.series == "jammy"
        assert str(url) == "ch:amd64/jammy/postgresql-429"

    def test_with_revision(self):
        assert str(parse_charm_url("postgresql").with_revision(7)) == "ch:postgresql-7"

    @pytest.mark.parametrize("value", ["", "cs:postgresql", "Postgres", "a/b/c/d"])
    def test_invalid(self, value):
        with pytest.raises(NotValidError):
            parse_charm_url(value)

    def test_make_origin(self):
        origin = make_origin("ch", -1, parse_channel("14/stable"), Platform("arm64", Base("ubuntu", "22.04")))
        assert origin.source == SOURCE_CHARMHUB
        assert origin.revision is None
        assert origin.track == "14"
        assert origin.risk == "stable"
        assert origin.architecture == "arm64"
        assert str(origin.channel) == "14/stable"


class TestCharmResource:
    """Test resource references."""

    def test_revision(self):
        resource = CharmResource.from_value("5")
        assert resource.revision == "5"
        assert str(resource) == "5"

    def test_int(self):
        assert str(CharmResource.from_value(3)) == "3"

    def test_image(self):
        resource = CharmResource.from_value("registry/path:tag")
        assert resource.oci_image_url == "registry/path:tag"
        assert str(resource) == "registry/path:tag"

    def test_upload_payload(self):
        resource = CharmResource(oci_image_url="registry/path:tag", registry_user="me", registry_password="s3cret")
        payload = yaml.safe_load(resource.upload_payload())
        assert payload == {"registrypath": "registry/path:tag", "username": "me", "password": "s3cret"}

    def test_upload_payload_without_credentials(self):
        payload = yaml.safe_load(CharmResource(oci_image_url="img:1").upload_payload())
        assert payload == {"registrypath": "img:1"}

    def test_string_map(self):
        resources = {"a": CharmResource(revision="5"), "b": CharmResource(oci_image_url="img")}
        assert resources_as_string_map(resources) == {"a": "5", "b": "img"}


class TestCreateApplicationInput:
    """Test create input validation."""

    def test_name_defaults_to_charm(self):
        spec = CreateApplicationInput(model_id="m", charm_name="postgresql").validate_and_transform()
        assert spec.application_name == "postgresql"
        assert spec.charm_base is None

    def test_placement_sorted_then_machines(self):
        spec = CreateApplicationInput(
            model_id="m",
            charm_name="postgresql",
            placement="2,0, 1",
            machines=["5"],
        ).validate_and_transform()
        assert spec.placement == ["0", "1", "2", "5"]

    def test_base_parsed(self):
        spec = CreateApplicationInput(model_id="m", charm_name="pg", charm_base="ubuntu@22.04").validate_and_transform()
        assert spec.charm_base == Base("ubuntu", "22.04", "stable")

    def test_resources_normalised(self):
        spec = CreateApplicationInput(
            model_id="m",
            charm_name="pg",
            resources={"img": "registry/path:tag", "file": "3"},
        ).validate_and_transform()
        assert spec.resources["img"].oci_image_url == "registry/path:tag"
        assert spec.resources["file"].revision == "3"

    def test_revision_with_channel(self):
        spec = CreateApplicationInput(
            model_id="m", charm_name="postgresql", charm_channel="14/stable", charm_revision=42
        ).validate_and_transform()
        assert spec.charm_revision == 42

    def test_literal_revision_requires_channel(self):
        with pytest.raises(NotValidError, match="requires a channel"):
            CreateApplicationInput(
                model_id="m", charm_name="postgresql-5", application_name="pg"
            ).validate_and_transform()

    @pytest.mark.parametrize("name", ["PG", "pg-", "1pg", "pg-1"])
    def test_invalid_name(self, name):
        with pytest.raises(NotValidError):
            CreateApplicationInput(model_id="m", charm_name="pg", application_name=name).validate_and_transform()


class TestHelpers:
    """Test small parsing helpers."""

    def test_split_comma_delimited_list(self):
        assert split_comma_delimited_list(" a, ,b ,") == ["a", "b"]
        assert split_comma_delimited_list(None) == []

    def test_constraint_value(self):
        assert constraint_value("arch=arm64 mem=4G", "arch") == "arm64"
        assert constraint_value("mem=4G", "arch") == ""

    def test_expose_defaults(self):
        assert ExposeConfig() == ExposeConfig(endpoints="", spaces="", cidrs="")

    def test_storage_directive(self):
        directive = parse_storage_directive("ebs,2,10G")
        assert directive == StorageDirective(pool="ebs", size=10240, count=2)
        assert str(directive) == "ebs,2,10240M"

    def test_storage_directive_defaults_count(self):
        assert parse_storage_directive("5G").count == 1

    def test_storage_directive_twice(self):
        with pytest.raises(NotValidError):
            parse_storage_directive("ebs,rootfs")

    def test_server_version(self):
        assert ServerVersion.parse("3.6.1") == ServerVersion(3, 6, 1)
        assert ServerVersion.parse("4.0-beta2") == ServerVersion(4, 0, 0)

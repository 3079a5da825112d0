"""Tests for property access through the AccessController."""

import datetime
import logging

import pytest

from varspace import (
    MISSING,
    ConversionFailedError,
    ConversionResult,
    Descriptor,
    ImmutableMethodError,
    MissingValueError,
    NotWritableError,
    Space,
    TypeMismatchError,
    TypeRegistry,
    UnknownPropertyError,
    UnsupportedConversionError,
    VarSpaceConfig,
)


def _percent(value: float) -> ConversionResult:
    if 0 <= value <= 100:
        return ConversionResult.ok(value)
    return ConversionResult.fail(f"{value} is not a percentage")


def make_space(*, strict: bool = True) -> Space:
    return Space("$app", strict=strict, config=VarSpaceConfig(), registry=TypeRegistry(), scheduler=lambda _: None)


@pytest.fixture
def space() -> Space:
    return make_space()


class TestCountScenario:
    """Leaf "count" (Number, default 0) assigned from strings."""

    def test_numeric_string_is_converted(self, space: Space) -> None:
        space.append_leaf("count", native_kind="Number")

        result = space.runtime.controller.set_property(space, "count", "42")

        assert result.success
        assert result.value == 42
        assert space["count"] == 42
        assert isinstance(space["count"], int)

    def test_invalid_string_is_rejected(self, space: Space, caplog: pytest.LogCaptureFixture) -> None:
        space.append_leaf("count", native_kind="Number")

        with caplog.at_level(logging.WARNING, logger="varspace"):
            result = space.runtime.controller.set_property(space, "count", "abc")

        assert not result
        assert isinstance(result.error, ConversionFailedError)
        assert space["count"] == 0
        assert "Rejected assignment to $app.count" in caplog.text

    def test_item_assignment_goes_through_controller(self, space: Space) -> None:
        space.append_leaf("count", native_kind="Number")

        space["count"] = "42"
        space["count"] = "abc"

        assert space["count"] == 42


class TestGetProperty:
    def test_leaf_returns_value(self, space: Space) -> None:
        space.append_leaf("name", value="Ada")
        assert space.runtime.controller.get_property(space, "name") == "Ada"

    def test_chained_access(self, space: Space) -> None:
        user = space.append_composite("user").node
        user.append_leaf("name", value="Ada")

        assert space["user"]["name"] == "Ada"
        assert "name" in space["user"]
        assert "user" in space

    def test_unknown_returns_missing(self, space: Space) -> None:
        assert space["nope"] is MISSING

    def test_system_method_resolves_to_bound_method(self, space: Space) -> None:
        space.append_leaf("name", value="Ada")

        get_snapshot = space["get_snapshot"]

        assert get_snapshot() == {"name": "Ada"}

    def test_bookkeeping_fields(self, space: Space) -> None:
        assert space["key"] == "$app"
        assert isinstance(space["descriptor"], Descriptor)
        assert space["background_data"] == {}


class TestSetProperty:
    def test_not_writable(self, space: Space) -> None:
        """A write to a non-writable leaf under a composite is rejected and leaves the value unchanged."""
        user = space.append_composite("user").node
        user.append_leaf("id", value=7, writable=False)

        result = space.runtime.controller.set_property(user, "id", 8)

        assert isinstance(result.error, NotWritableError)
        assert user["id"] == 7

    def test_not_writable_by_path(self, space: Space) -> None:
        user = space.append_composite("user").node
        user.append_leaf("id", value=7, writable=False)

        result = space.set_value_by_path("user.id", 8)

        assert not result.success
        assert isinstance(result.error, NotWritableError)
        assert space.get_node_by_path("user.id").value == 7
        assert space.data_host == {"user": {"id": 7}}

    def test_unknown_property(self, space: Space) -> None:
        result = space.runtime.controller.set_property(space, "nope", 1)

        assert isinstance(result.error, UnknownPropertyError)
        assert "nope" not in space.background_data

    @pytest.mark.parametrize("name", ["append_leaf", "bulk_set", "set_value_by_path"])
    def test_system_methods_are_immutable(self, space: Space, name: str) -> None:
        result = space.runtime.controller.set_property(space, name, lambda: None)

        assert isinstance(result.error, ImmutableMethodError)
        assert callable(getattr(space, name))

    @pytest.mark.parametrize("name", ["key", "alias"])
    def test_space_key_and_alias_are_immutable(self, space: Space, name: str) -> None:
        result = space.runtime.controller.set_property(space, name, "$other")

        assert isinstance(result.error, ImmutableMethodError)
        assert space.key == "$app"
        assert str(space.path_index.path_of(space)) == "$app"

    def test_bookkeeping_field_passes_through(self, space: Space) -> None:
        result = space.runtime.controller.set_property(space, "label", "Application")

        assert result.success
        assert space.label == "Application"

    def test_missing_value(self, space: Space) -> None:
        space.append_leaf("name", value="Ada")

        result = space.runtime.controller.set_property(space, "name", None)

        assert isinstance(result.error, MissingValueError)
        assert space["name"] == "Ada"

    def test_unsupported_conversion(self, space: Space) -> None:
        space.append_leaf("flag", value=False)

        result = space.runtime.controller.set_property(space, "flag", {"on": True})

        assert isinstance(result.error, UnsupportedConversionError)
        assert space["flag"] is False

    def test_custom_type_conversion(self, space: Space) -> None:
        space.registry.define_custom_type(
            "Percent",
            default_value=0,
            conversion_rules={"Number": _percent},
        )
        space.append_leaf("ratio", native_kind="Percent")

        ok = space.runtime.controller.set_property(space, "ratio", 42)
        bad = space.runtime.controller.set_property(space, "ratio", 420)

        assert ok.success
        assert not bad.success
        assert space["ratio"] == 42

    def test_object_backed_custom_type_accepts_its_own_shape(self, space: Space) -> None:
        space.registry.define_custom_type(
            "UserType",
            default_value={"id": 0, "name": ""},
            descriptor={"native_kind": "Object"},
        )
        space.append_leaf("owner", native_kind="UserType")

        result = space.runtime.controller.set_property(space, "owner", {"id": 1, "name": "John"})

        assert result.success
        assert space["owner"] == {"id": 1, "name": "John"}
        assert space.get_structure()[0].native_kind == "Object"
        assert space.get_structure()[0].type_name == "UserType"

    def test_unknown_value_is_unsupported(self, space: Space) -> None:
        space.append_leaf("name", value="Ada")

        result = space.runtime.controller.set_property(space, "name", ["A", "d", "a"])

        assert isinstance(result.error, UnsupportedConversionError)
        assert space["name"] == "Ada"

    def test_datetime_is_stored_as_epoch_millis(self, space: Space) -> None:
        space.append_leaf("day", native_kind="Date")
        space.append_leaf("stamp", native_kind="DateTime")
        moment = datetime.datetime(1970, 1, 2, tzinfo=datetime.UTC)

        space["day"] = moment
        space["stamp"] = moment

        assert space.get_snapshot() == {"day": 86_400_000, "stamp": 86_400_000}

    def test_out_of_range_date_is_reported(self, space: Space) -> None:
        space.append_leaf("stamp", native_kind="DateTime", value=0)

        result = space.set_value_by_path("stamp", "9999-12-31T23:00:00-05:00")
        huge = space.set_value_by_path("stamp", 10**400)

        assert isinstance(result.error, ConversionFailedError)
        assert isinstance(huge.error, ConversionFailedError)
        assert space["stamp"] == 0

    def test_unchanged_value_does_not_notify(self, space: Space) -> None:
        space.append_leaf("count", value=1)
        batches = []
        space.subscribe(batches.append)

        space["count"] = 1
        space["count"] = "2"

        assert len(batches) == 1
        assert batches[0][0].path == "$app.count"
        assert (batches[0][0].old_value, batches[0][0].new_value) == (1, 2)


class TestCompositeAssignment:
    @pytest.fixture
    def user_space(self, space: Space) -> Space:
        user = space.append_composite("user").node
        user.append_leaf("name", native_kind="String")
        user.append_leaf("age", native_kind="Number")
        user.append_leaf("id", value=1, writable=False)
        address = user.append_composite("address").node
        address.append_leaf("zip", native_kind="Number")
        return space

    def test_fans_out_to_children(self, user_space: Space) -> None:
        result = user_space.runtime.controller.set_property(
            user_space,
            "user",
            {"name": "Ada", "age": "36", "address": {"zip": "1000"}, "note": "vip"},
        )

        assert result.success
        assert result.child_errors == {}
        assert user_space.get_snapshot() == {
            "user": {"name": "Ada", "age": 36, "id": 1, "note": "vip", "address": {"zip": 1000}},
        }
        assert user_space["user"].background_data == {"note": "vip"}

    def test_partial_failure_keeps_siblings(self, user_space: Space) -> None:
        """Failing children are reported without aborting their siblings."""
        result = user_space.runtime.controller.set_property(
            user_space,
            "user",
            {"name": "Ada", "age": "old", "id": 2, "address": {"zip": "x"}},
        )

        assert result.success
        assert set(result.child_errors) == {"age", "id", "address.zip"}
        assert isinstance(result.child_errors["age"], ConversionFailedError)
        assert isinstance(result.child_errors["id"], NotWritableError)
        assert user_space["user"]["name"] == "Ada"
        assert user_space["user"]["age"] == 0
        assert user_space["user"]["id"] == 1

    def test_non_object_is_type_mismatch(self, user_space: Space) -> None:
        result = user_space.runtime.controller.set_property(user_space, "user", "Ada")

        assert isinstance(result.error, TypeMismatchError)


class TestNonStrict:
    def test_unsupported_pair_is_accepted(self, caplog: pytest.LogCaptureFixture) -> None:
        space = make_space(strict=False)
        space.append_leaf("count", native_kind="Number")

        with caplog.at_level(logging.WARNING, logger="varspace"):
            result = space.runtime.controller.set_property(space, "count", {"n": 1})

        assert result.success
        assert space["count"] == {"n": 1}
        assert "kind mismatch" in caplog.text

    def test_missing_value_is_accepted(self) -> None:
        space = make_space(strict=False)
        space.append_leaf("name", value="Ada")

        space["name"] = None

        assert space["name"] is None

    def test_strict_default_comes_from_config(self) -> None:
        lenient = Space("$app", config=VarSpaceConfig(strict=False), scheduler=lambda _: None)
        strict = Space("$app", config=VarSpaceConfig(strict=False), strict=True, scheduler=lambda _: None)

        assert lenient.strict is False
        assert strict.strict is True

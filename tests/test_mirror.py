"""Tests for MirrorDict and MirrorSynchronizer."""

import pytest

from varspace import MISSING, ChangeEvent, MirrorDict, MirrorSynchronizer, Notifier, Space, VarSpaceConfig


def make_mirror(*, deep: bool = False) -> tuple[MirrorDict, list[list[ChangeEvent]]]:
    batches: list[list[ChangeEvent]] = []
    mirror = MirrorDict(Notifier(), "$app", deep=deep)
    mirror.subscribe(batches.append)
    return mirror, batches


class TestMirrorDict:
    def test_unobserved_keys_are_silent(self) -> None:
        mirror, batches = make_mirror()

        mirror["a"] = 1

        assert mirror == {"a": 1}
        assert batches == []

    def test_observed_key(self) -> None:
        mirror, batches = make_mirror()
        mirror.observe_key("a")

        mirror["a"] = 1
        mirror["a"] = 1
        mirror["b"] = 2

        assert batches == [[ChangeEvent("$app.a", MISSING, 1)]]
        assert mirror.is_observed("a")
        assert not mirror.is_observed("b")

    def test_deep_observes_everything(self) -> None:
        mirror, batches = make_mirror(deep=True)

        mirror.update({"a": 1}, b=2)
        mirror.setdefault("c", 3)
        mirror.setdefault("c", 4)
        assert mirror.pop("a") == 1
        assert mirror.pop("a", None) is None
        del mirror["b"]

        assert [(e.path, e.old_value, e.new_value) for batch in batches for e in batch] == [
            ("$app.a", MISSING, 1),
            ("$app.b", MISSING, 2),
            ("$app.c", MISSING, 3),
            ("$app.a", 1, MISSING),
            ("$app.b", 2, MISSING),
        ]
        assert mirror == {"c": 3}

    def test_pop_missing_key(self) -> None:
        mirror, _ = make_mirror()
        with pytest.raises(KeyError):
            mirror.pop("a")

    def test_nested_inherits_deep(self) -> None:
        mirror, batches = make_mirror(deep=True)

        nested = mirror.nested("user")
        nested["name"] = "Ada"

        assert mirror.nested("user") is nested
        assert nested.path == "$app.user"
        assert nested.deep
        assert batches[-1] == [ChangeEvent("$app.user.name", MISSING, "Ada")]

    def test_make_deep_propagates(self) -> None:
        mirror, _ = make_mirror()
        nested = mirror.nested("user")

        mirror.make_deep()

        assert mirror.deep
        assert nested.deep

    def test_transaction_batches(self) -> None:
        mirror, batches = make_mirror(deep=True)

        with mirror.transaction():
            mirror["a"] = 1
            mirror["b"] = 2

        assert len(batches) == 1
        assert len(batches[0]) == 2

    def test_to_plain(self) -> None:
        mirror, _ = make_mirror()
        mirror.nested("user")["name"] = "Ada"

        plain = mirror.to_plain()

        assert plain == {"user": {"name": "Ada"}}
        assert type(plain["user"]) is dict


class TestMirrorSynchronizer:
    def test_host_must_be_built(self) -> None:
        sync = MirrorSynchronizer()
        with pytest.raises(RuntimeError, match="has not been built"):
            _ = sync.host

    def test_host_is_built_once(self) -> None:
        sync = MirrorSynchronizer()
        host = sync.build_host("$app")

        assert sync.host is host
        with pytest.raises(RuntimeError, match="already built"):
            sync.build_host("$app")

    def test_sync_from_structure(self) -> None:
        """Should project the tree into nested mirrors."""
        space = Space("$app", config=VarSpaceConfig(), scheduler=lambda _: None)
        user = space.append_composite("user", observable=True).node
        user.append_leaf("name", value="Ada")
        space.append_leaf("count", value=1)
        sync = MirrorSynchronizer()
        host = sync.build_host("$app")
        batches = []
        host.subscribe(batches.append)

        sync.sync_from_structure(space)

        assert host == {"user": {"name": "Ada"}, "count": 1}
        assert isinstance(host["user"], MirrorDict)
        assert host["user"].deep
        assert not host.is_observed("count")
        assert batches == [[ChangeEvent("$app.user.name", MISSING, "Ada")]]

    def test_observable_leaves_are_observed(self) -> None:
        space = Space("$app", config=VarSpaceConfig(), scheduler=lambda _: None)
        space.append_leaf("count", value=1, observable=True)
        sync = MirrorSynchronizer()
        host = sync.build_host("$app")

        sync.sync_from_structure(space)

        assert host.is_observed("count")

    def test_unmatched_keys_are_demoted(self) -> None:
        space = Space("$app", config=VarSpaceConfig(), scheduler=lambda _: None)
        user = space.append_composite("user").node
        user.append_leaf("name", value="Ada")
        sync = MirrorSynchronizer()
        host = sync.build_host("$app")
        host["theme"] = "dark"
        host.nested("user")["nickname"] = "A"
        host.nested("legacy")["x"] = 1

        sync.sync_from_structure(space)

        assert host == {"user": {"name": "Ada"}}
        assert space.background_data == {"theme": "dark", "legacy": {"x": 1}}
        assert type(space.background_data["legacy"]) is dict
        assert user.background_data == {"nickname": "A"}

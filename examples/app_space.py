"""An application-level space with nested settings, driven the way a form would drive it."""

import logging

from varspace import Space, VarSpaceConfig

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")


def build_space() -> Space:
    space = Space(
        "$appData",
        alias="$app",
        label="Application Data",
        level="app",
        observable=True,
        config=VarSpaceConfig(),
    )
    space.append_leaf("pageTitle", native_kind="String", label="Page Title", value="Default Title")
    space.append_leaf("counter", native_kind="Number", label="Click Count", value=0)
    space.append_leaf("lastUpdate", native_kind="DateTime", label="Last Update")
    space.append_leaf("readOnlyInfo", value="Cannot change me", label="Read Only Info", writable=False)

    settings = space.append_composite("userSettings", label="User Settings").node
    settings.append_leaf("theme", native_kind="String", label="UI Theme", value="light")
    settings.append_leaf("notificationsEnabled", native_kind="Boolean", label="Enable Notifications", value=True)

    space.bulk_set(
        {
            "pageTitle": "Variable Space Demo",
            "userSettings": {"theme": "dark"},
            "apiEndpoint": "/api/v1/data",
        },
    )
    return space


def main() -> None:
    space = build_space()
    space.data_host.subscribe(lambda events: print("mirror:", [(e.path, e.new_value) for e in events]))  # noqa: T201

    space.set_value_by_path("$app.counter", "1")
    space.set_value_by_path("counter", "one")  # rejected, logged as a warning
    space.set_value_by_path("readOnlyInfo", "changed")  # rejected
    space.set_value_by_path("userSettings.notificationsEnabled", " FALSE ")
    space.set_value_by_path("lastUpdate", "2024-05-01T09:30:00Z")

    print(space.get_space_structure().model_dump_json(indent=2))  # noqa: T201
    print(space.get_snapshot())  # noqa: T201


if __name__ == "__main__":
    main()

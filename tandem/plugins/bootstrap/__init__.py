from tandem.models.plugin import Plugin
from tandem.plugins.bootstrap.choose_option import ChooseOptionAction, match_option
from tandem.plugins.bootstrap.providers import (
    ActionsProvider,
    CharacterProvider,
    ChoiceProvider,
    RecentMessagesProvider,
    RoomProvider,
    TimeProvider,
)


def bootstrap_plugin() -> Plugin:
    return Plugin(
        name="bootstrap",
        description="Baseline providers and the option-choice action",
        actions=[ChooseOptionAction()],
        providers=[
            TimeProvider(),
            CharacterProvider(),
            RoomProvider(),
            RecentMessagesProvider(),
            ActionsProvider(),
            ChoiceProvider(),
        ],
    )


__all__ = [
    "ActionsProvider",
    "CharacterProvider",
    "ChoiceProvider",
    "ChooseOptionAction",
    "RecentMessagesProvider",
    "RoomProvider",
    "TimeProvider",
    "bootstrap_plugin",
    "match_option",
]

from __future__ import annotations

from discord_bot_template.integrations.discord.components import (
    CANCEL_ID,
    CONFIRM_ID,
    DISCORD_BUTTON_STYLE_DANGER,
    DISCORD_BUTTON_STYLE_LINK,
    DISCORD_BUTTON_STYLE_SECONDARY,
    DISCORD_BUTTON_STYLE_SUCCESS,
    build_action_row,
    build_button,
    build_confirmation_buttons,
    build_link_button,
    build_pagination_buttons,
    build_select_menu,
    build_select_option,
    iter_components,
    page_indicator_custom_id,
)


class TestBuildActionRow:
    def test_builds_action_row_with_components(self) -> None:
        button = build_button("Test", "test:click")
        row = build_action_row([button])
        assert row["type"] == 1
        assert row["components"] == [button]


class TestBuildButton:
    def test_builds_button_with_defaults(self) -> None:
        button = build_button("Next", "next")
        assert button["type"] == 2
        assert button["style"] == DISCORD_BUTTON_STYLE_SECONDARY
        assert button["label"] == "Next"
        assert button["custom_id"] == "next"
        assert button["disabled"] is False

    def test_emoji_only_button_has_no_label(self) -> None:
        button = build_button(None, "first", emoji="⏮️")
        assert "label" not in button
        assert button["emoji"] == {"name": "⏮️"}

    def test_truncates_long_labels(self) -> None:
        assert len(build_button("x" * 120, "id")["label"]) == 80

    def test_link_button_has_url_and_no_custom_id(self) -> None:
        button = build_link_button("Docs", "https://example.com")
        assert button["style"] == DISCORD_BUTTON_STYLE_LINK
        assert button["url"] == "https://example.com"
        assert "custom_id" not in button


class TestBuildSelectMenu:
    def test_builds_select_menu(self) -> None:
        options = [
            build_select_option("Red", "red", description="warm"),
            build_select_option("Blue", "blue", default=True),
        ]
        menu = build_select_menu("colour", options, placeholder="Pick one")
        assert menu["type"] == 3
        assert menu["custom_id"] == "colour"
        assert menu["placeholder"] == "Pick one"
        assert menu["options"][0]["description"] == "warm"
        assert menu["options"][1]["default"] is True

    def test_limits_options_to_25(self) -> None:
        options = [build_select_option(f"Opt{i}", f"val{i}") for i in range(30)]
        menu = build_select_menu("test", options, max_values=40)
        assert len(menu["options"]) == 25
        assert menu["max_values"] == 25


class TestPaginationButtons:
    def test_indicator_carries_structured_state(self) -> None:
        row = build_pagination_buttons(2, 5)
        ids = [component["custom_id"] for component in row["components"]]
        assert ids == ["first", "prev", page_indicator_custom_id(2, 5), "next", "last"]
        assert row["components"][2]["label"] == "3/5"

    def test_single_page_disables_everything(self) -> None:
        row = build_pagination_buttons(0, 1)
        assert all(component["disabled"] for component in row["components"])


class TestConfirmationButtons:
    def test_confirm_and_cancel_ids(self) -> None:
        row = build_confirmation_buttons()
        confirm, cancel = row["components"]
        assert (confirm["custom_id"], confirm["style"]) == (CONFIRM_ID, DISCORD_BUTTON_STYLE_SUCCESS)
        assert (cancel["custom_id"], cancel["style"]) == (CANCEL_ID, DISCORD_BUTTON_STYLE_DANGER)
        assert confirm["label"] == "Yes"


def test_iter_components_flattens_rows_and_skips_junk() -> None:
    rows = [
        build_action_row([build_button("A", "a"), "junk"]),
        build_button("B", "b"),
        None,
    ]
    assert [component["custom_id"] for component in iter_components(rows)] == ["a", "b"]
    assert list(iter_components(None)) == []

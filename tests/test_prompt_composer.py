"""Tests for system prompt composition and mode reminders."""

import pytest

from core.models import Message, MessageMetadata, TextPart, user_message
from plugins import LoadedPlugin, NoPlugins, PluginPipeline
from runtime import PromptComposer, insert_mode_reminders
from runtime.prompt_composer import wrap_system_reminder
from runtime.prompts import BUILD_SWITCH_PROMPT, PLAN_PROMPT


def system_plugin(fn) -> PluginPipeline:
    return PluginPipeline([LoadedPlugin(name="system", hooks={"experimental.chat.system.transform": [fn]})])


class TestInsertModeReminders:
    """Reminders go on a copy of the last user message."""

    def test_plan_reminder(self):
        history = [user_message("first"), Message(role="assistant", parts=[TextPart(text="ok")]), user_message("second")]

        updated = insert_mode_reminders(history, "plan")

        assert updated[0] is history[0]
        texts = [part.text for part in updated[2].parts]
        assert texts[0] == "second"
        assert texts[1] == wrap_system_reminder(PLAN_PROMPT)
        assert len(history[2].parts) == 1

    def test_build_switch_after_plan(self):
        planned = Message(role="assistant", parts=[TextPart(text="1. step")], metadata=MessageMetadata(mode="plan"))
        history = [user_message("plan it"), planned, user_message("do it")]

        updated = insert_mode_reminders(history, "build")

        assert BUILD_SWITCH_PROMPT.strip() in updated[2].parts[1].text

    def test_external_paths_reminder(self):
        enabled = insert_mode_reminders([user_message("x")], "build", allow_external_paths=True)
        disabled = insert_mode_reminders([user_message("x")], "build", allow_external_paths=False)

        assert "allowExternalPaths=true" in enabled[0].parts[-1].text
        assert "allowExternalPaths=false" in disabled[0].parts[-1].text

    def test_nothing_to_add(self):
        history = [user_message("x")]

        assert insert_mode_reminders(history, "build") is history
        assert insert_mode_reminders([], "plan") == []


class TestPromptComposer:
    """Base prompt, skills section and the system transform hook."""

    @pytest.mark.asyncio
    async def test_base_prompt_only(self):
        composer = PromptComposer(NoPlugins())

        assert await composer.compose("Be helpful.", session_id="s", mode="build", model_id="m") == ["Be helpful."]

    @pytest.mark.asyncio
    async def test_hook_appends_entries(self):
        def add(input, output):
            output["system"].extend(["Project: demo", "Style: terse"])

        composer = PromptComposer(system_plugin(add))

        system = await composer.compose("Base", session_id="s", mode="build", model_id="m")

        assert system == ["Base", "Project: demo\nStyle: terse"]

    @pytest.mark.asyncio
    async def test_hook_cannot_empty_the_prompt(self):
        composer = PromptComposer(system_plugin(lambda i, o: {"system": []}))

        assert await composer.compose("Base", session_id="s", mode="plan", model_id="m") == ["Base"]

    @pytest.mark.asyncio
    async def test_hook_receives_context(self):
        seen = {}
        composer = PromptComposer(system_plugin(lambda i, o: seen.update(i)))

        await composer.compose("Base", session_id="ses_1", mode="plan", model_id="claude")

        assert seen == {"session_id": "ses_1", "mode": "plan", "model_id": "claude"}

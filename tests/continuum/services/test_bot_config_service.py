"""Tests for BotConfigService."""

from continuum.prompts.system_prompt import DefaultSystemPrompt
from continuum.services.bot_config_service import BotConfigService


def test_default_prompt_when_nothing_stored(db):
    assert BotConfigService(db).get_system_prompt() == DefaultSystemPrompt.CONTENT


def test_stored_prompt_is_used(db, faker):
    content = faker.paragraph()
    svc = BotConfigService(db)
    svc.set_system_prompt(content)
    assert svc.get_system_prompt() == content
    svc.set_system_prompt("   ")
    assert svc.get_system_prompt() == DefaultSystemPrompt.CONTENT

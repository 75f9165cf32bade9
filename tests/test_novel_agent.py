"""Tests for memory/novel_agent.py — cross-chapter translation memory."""

from datetime import datetime

import pytest


def _summary(n: int):
    from models.agent import ChapterSummary
    return ChapterSummary(chapter_number=n, summary=f"Summary of chapter {n}")


class TestCreate:
    def test_create_starts_empty(self, agent):
        assert agent.novel_id == "novel-1"
        assert agent.title == "The Test Novel"
        assert agent.chapter_count == 0
        assert agent.glossary.version == 1
        assert agent.glossary.characters == []
        assert agent.config.target_language == "ru"

    def test_create_applies_config_overrides(self):
        from memory.novel_agent import NovelAgent
        agent = NovelAgent.create("n", "T", config={"max_tokens_per_chunk": 500})
        assert agent.config.max_tokens_per_chunk == 500

    def test_create_rejects_unknown_config_key(self):
        from memory.novel_agent import NovelAgent
        with pytest.raises(ValueError):
            NovelAgent.create("n", "T", config={"nonsense": 1})


class TestContext:
    def test_context_window_keeps_five_most_recent_in_order(self, agent):
        for n in range(1, 8):
            agent.record_chapter_translation(_summary(n))
        context = agent.get_context()
        assert [s.chapter_number for s in context.previous_chapters] == [3, 4, 5, 6, 7]
        assert agent.chapter_count == 7

    def test_context_exposes_glossary_and_style(self, agent_with_john):
        context = agent_with_john.get_context()
        assert context.glossary.characters[0].original_name == "John"
        assert context.style_profile is agent_with_john.style_profile


class TestApplyAnalysisResult:
    def _result(self, **kwargs):
        from models.agent import AnalysisResult, FoundCharacter, FoundLocation
        from models.glossary import CharacterDraft, GlossaryUpdate
        defaults = dict(
            chapter_number=1,
            found_characters=[FoundCharacter("Liam", True, "Лиам"), FoundCharacter("John", False)],
            found_locations=[FoundLocation("Eldoria", True, "Элдория")],
            key_events=[f"event {i}" for i in range(7)],
            mood="tense",
            style_notes="Short sentences.",
            open_plot_threads=["Who sent the letter?"],
            glossary_update=GlossaryUpdate(new_characters=[CharacterDraft("Liam", "Лиам")]),
        )
        defaults.update(kwargs)
        return AnalysisResult(**defaults)

    def test_applies_glossary_update_and_context(self, agent_with_john):
        version = agent_with_john.glossary.version
        agent_with_john.apply_analysis_result(self._result())

        assert agent_with_john.find_character("liam").translated_name == "Лиам"
        assert agent_with_john.glossary.version == version + 1

        current = agent_with_john.state.current_context
        assert current.last_events == ["event 2", "event 3", "event 4", "event 5", "event 6"]
        assert current.active_characters == ["Liam", "John"]
        assert current.current_location == "Eldoria"
        assert current.current_mood == "tense"
        assert current.open_plot_threads == ["Who sent the letter?"]

    def test_style_notes_are_appended(self, agent):
        agent.set_style_profile(writing_style="First person.")
        agent.apply_analysis_result(self._result())
        assert agent.style_profile.writing_style == "First person.\nShort sentences."

    def test_location_and_threads_carry_over_when_missing(self, agent):
        agent.apply_analysis_result(self._result())
        agent.apply_analysis_result(self._result(found_locations=[], open_plot_threads=[], chapter_number=2))
        current = agent.state.current_context
        assert current.current_location == "Eldoria"
        assert current.open_plot_threads == ["Who sent the letter?"]


class TestStyleProfile:
    def test_set_style_profile_sets_and_appends(self, agent):
        agent.set_style_profile(tone="dark", writing_style="Terse.")
        agent.set_style_profile(writing_style="Lots of dialogue.", tone=None)
        assert agent.style_profile.tone == "dark"
        assert agent.style_profile.writing_style == "Terse.\nLots of dialogue."

    def test_unknown_field_raises(self, agent):
        with pytest.raises(ValueError):
            agent.set_style_profile(colour="blue")


class TestSerialization:
    def test_json_round_trip_preserves_context(self, agent_with_john):
        from memory.novel_agent import NovelAgent
        agent_with_john.set_style_profile(tone="dark")
        for n in range(1, 4):
            agent_with_john.record_chapter_translation(_summary(n))

        restored = NovelAgent.from_json(agent_with_john.to_json())

        assert restored.get_context() == agent_with_john.get_context()
        assert isinstance(restored.state.created_at, datetime)
        assert isinstance(restored.glossary.last_updated, datetime)
        assert restored.state == agent_with_john.state

    def test_restored_agent_keeps_working(self, agent_with_john):
        from memory.novel_agent import NovelAgent
        restored = NovelAgent.from_json(agent_with_john.to_json())
        restored.glossary_store.add_character("Emma")
        assert restored.find_character("Emma").translated_name == "Эмма"

    def test_update_glossary(self, agent):
        from models.glossary import GlossaryUpdate, TermDraft
        agent.update_glossary(GlossaryUpdate(new_terms=[TermDraft("Mana", "Мана")]))
        assert agent.find_term("mana").translated_term == "Мана"

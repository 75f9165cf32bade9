"""Tests for the stage agents and BaseAgent utilities."""

import pytest
from unittest.mock import patch, AsyncMock


class TestBaseAgent:
    def test_extract_section_stops_at_next_header(self, mock_provider, settings):
        from agents.analyzer_agent import AnalyzerAgent
        agent = AnalyzerAgent(mock_provider, settings)
        system = agent._extract_section(agent._template, "System Prompt")
        assert system
        assert "Analysis Request" not in system
        assert "{source_text}" not in system

    def test_extract_section_missing_returns_empty(self, mock_provider, settings):
        from agents.analyzer_agent import AnalyzerAgent
        agent = AnalyzerAgent(mock_provider, settings)
        assert agent._extract_section(agent._template, "No Such Section") == ""

    def test_load_prompt_missing_file_raises(self, mock_provider, settings):
        from agents.analyzer_agent import AnalyzerAgent
        agent = AnalyzerAgent(mock_provider, settings)
        with pytest.raises(FileNotFoundError):
            agent._load_prompt("does_not_exist")

    @pytest.mark.asyncio
    async def test_retry_recovers_from_transport_errors(self, mock_provider, settings, make_structured):
        from agents.analyzer_agent import AnalyzerAgent
        from config.exceptions import TransportError
        call = AsyncMock(side_effect=[TransportError("boom"), TransportError("boom"), "ok"])
        agent = AnalyzerAgent(mock_provider, settings)
        assert await agent._with_retry(call, retry_attempts=2) == "ok"
        assert call.await_count == 3

    @pytest.mark.asyncio
    async def test_retry_gives_up_after_budget(self, mock_provider, settings):
        from agents.analyzer_agent import AnalyzerAgent
        from config.exceptions import TransportError
        call = AsyncMock(side_effect=TransportError("down"))
        agent = AnalyzerAgent(mock_provider, settings)
        with pytest.raises(TransportError):
            await agent._with_retry(call, retry_attempts=1)
        assert call.await_count == 2

    @pytest.mark.asyncio
    async def test_parse_errors_are_not_retried(self, mock_provider, settings):
        from agents.analyzer_agent import AnalyzerAgent
        from config.exceptions import ParseError
        call = AsyncMock(side_effect=ParseError("bad"))
        agent = AnalyzerAgent(mock_provider, settings)
        with pytest.raises(ParseError):
            await agent._with_retry(call, retry_attempts=3)
        assert call.await_count == 1

    @pytest.mark.asyncio
    async def test_rate_limit_waits_retry_after(self, mock_provider, settings):
        from agents.analyzer_agent import AnalyzerAgent
        from config.exceptions import LLMRateLimitError
        call = AsyncMock(side_effect=[LLMRateLimitError("429", retry_after=7), "ok"])
        agent = AnalyzerAgent(mock_provider, settings)
        with patch("agents.base_agent.asyncio.sleep", new_callable=AsyncMock) as sleep:
            assert await agent._with_retry(call, retry_attempts=1) == "ok"
        sleep.assert_awaited_once_with(7)

    def test_build_style_guide_skips_empty_axes(self, agent):
        from agents.base_agent import build_style_guide
        agent.set_style_profile(tone="мрачный", dialogue_style="сухие реплики")
        assert build_style_guide(agent.get_context()) == "Тон: мрачный\nДиалоги: сухие реплики"


ANALYSIS_REPLY = {
    "characters": [
        {"name": "Liam", "gender": "male", "role": "protagonist", "suggestedTranslation": "Лиам",
         "description": "a traveller"},
        {"name": "John", "gender": "male", "suggestedTranslation": "Джон"},
        {"name": "liam", "gender": "male"},
    ],
    "locations": [{"name": "Eldoria", "type": "country", "suggestedTranslation": "Элдория"}],
    "terms": [{"term": "Mana", "category": "magic"}],
    "chapterSummary": "Liam meets John.",
    "keyEvents": ["Liam arrives", "John waits"],
    "mood": "quiet",
    "styleNotes": "Short sentences.",
    "openPlotThreads": ["The road to Eldoria"],
}


class TestAnalyzerAgent:
    @pytest.mark.asyncio
    async def test_classifies_new_and_known_names(self, mock_provider, settings, agent_with_john,
                                                  make_structured, sample_chapter):
        from agents.analyzer_agent import AnalyzerAgent
        mock_provider.complete_structured.return_value = make_structured(ANALYSIS_REPLY, tokens=30)
        analyzer = AnalyzerAgent(mock_provider, settings)

        result = await analyzer.analyze(agent_with_john.get_context(), sample_chapter, chapter_number=2)

        assert result.success is True
        assert result.tokens_used == 30
        analysis = result.data
        assert [(c.name, c.is_new) for c in analysis.found_characters] == [("Liam", True), ("John", False)]
        new = analysis.glossary_update.new_characters
        assert [c.original_name for c in new] == ["Liam"]
        assert new[0].translated_name == "Лиам"
        assert new[0].is_main_character is True
        assert new[0].first_appearance == 2
        assert analysis.glossary_update.new_locations[0].translated_name == "Элдория"
        assert analysis.glossary_update.new_terms[0].translated_term == "Mana"
        assert analysis.chapter_summary == "Liam meets John."
        assert analysis.key_events == ["Liam arrives", "John waits"]
        assert analysis.open_plot_threads == ["The road to Eldoria"]

    @pytest.mark.asyncio
    async def test_prompt_carries_glossary_and_clean_text(self, mock_provider, settings, agent_with_john,
                                                          make_structured):
        from agents.analyzer_agent import AnalyzerAgent
        mock_provider.complete_structured.return_value = make_structured({})
        analyzer = AnalyzerAgent(mock_provider, settings)

        await analyzer.analyze(agent_with_john.get_context(), "--para:p1--John waved.", chapter_number=1)

        messages = mock_provider.complete_structured.await_args.args[0]
        assert messages[0].role == "system"
        user = messages[1].content
        assert "John → Джон" in user
        assert "--para:" not in user
        assert "English" in user and "Russian" in user

    @pytest.mark.asyncio
    async def test_transport_failure_is_a_failed_stage(self, mock_provider, settings, agent, sample_chapter):
        from agents.analyzer_agent import AnalyzerAgent
        from config.exceptions import TransportError
        mock_provider.complete_structured.side_effect = TransportError("connection reset")
        analyzer = AnalyzerAgent(mock_provider, settings)

        result = await analyzer.analyze(agent.get_context(), sample_chapter, chapter_number=1)

        assert result.success is False
        assert result.error_type == "TransportError"
        assert "connection reset" in result.error
        assert result.data is None

    def test_missing_fields_give_empty_result(self, mock_provider, settings, agent):
        from agents.analyzer_agent import AnalyzerAgent
        analyzer = AnalyzerAgent(mock_provider, settings)
        result = analyzer.build_result({"characters": ["not a dict"]}, agent.get_context(), 1)
        assert result.found_characters == []
        assert result.glossary_update.is_empty()
        assert result.chapter_summary == ""


def _paragraphs(*pairs):
    return {"paragraphs": [{"id": i, "translated": t} for i, t in pairs]}


class TestTranslatorAgent:
    @pytest.mark.asyncio
    async def test_caller_marker_round_trip(self, mock_provider, settings, agent, make_structured):
        from agents.translator_agent import TranslatorAgent
        mock_provider.complete_structured.return_value = make_structured(_paragraphs(("--para:abc123--", "X")))
        translator = TranslatorAgent(mock_provider, settings)

        result = await translator.translate(agent.get_context(), "--para:abc123--Hello")

        assert result.success is True
        draft = result.data
        assert draft.translated_text == "X"
        assert draft.aligned is True
        assert draft.paragraphs[0].id == "abc123"
        assert draft.paragraphs[0].original == "Hello"
        sent = mock_provider.complete_structured.await_args.args[0][1].content
        assert "--para:abc123--Hello" in sent

    @pytest.mark.asyncio
    async def test_auto_markers_align_by_id(self, mock_provider, settings, agent, make_structured, sample_chapter):
        from agents.translator_agent import TranslatorAgent
        mock_provider.complete_structured.return_value = make_structured(
            _paragraphs(("auto_0_2", "В"), ("auto_0_0", "А"), ("auto_0_1", "Б"))
        )
        result = await TranslatorAgent(mock_provider, settings).translate(agent.get_context(), sample_chapter)

        assert result.data.aligned is True
        assert result.data.translated_text == "А\n\nБ\n\nВ"

    @pytest.mark.asyncio
    async def test_mismatched_ids_with_equal_count_are_positional(self, mock_provider, settings, agent,
                                                                  make_structured, sample_chapter):
        from agents.translator_agent import TranslatorAgent
        mock_provider.complete_structured.return_value = make_structured(
            _paragraphs(("x", "А"), ("y", "Б"), ("z", "В"))
        )
        result = await TranslatorAgent(mock_provider, settings).translate(agent.get_context(), sample_chapter)

        assert result.success is True
        assert result.data.aligned is False
        assert [p.translated for p in result.data.paragraphs] == ["А", "Б", "В"]

    @pytest.mark.asyncio
    async def test_reordered_reply_with_equal_count_keeps_matched_ids(self, mock_provider, settings, agent,
                                                                      make_structured, sample_chapter):
        from agents.translator_agent import TranslatorAgent
        mock_provider.complete_structured.return_value = make_structured(
            _paragraphs(("auto_0_1", "Б"), ("auto_0_0", "А"), ("x", "В"))
        )
        result = await TranslatorAgent(mock_provider, settings).translate(agent.get_context(), sample_chapter)

        assert result.data.aligned is False
        assert [p.translated for p in result.data.paragraphs] == ["А", "Б", "В"]

    @pytest.mark.asyncio
    async def test_split_paragraph_with_repeated_id_keeps_both_halves(self, mock_provider, settings, agent,
                                                                      make_structured):
        from agents.translator_agent import TranslatorAgent
        mock_provider.complete_structured.return_value = make_structured(
            _paragraphs(("--para:abc123--", "Первая половина."), ("--para:abc123--", "Вторая половина."))
        )
        result = await TranslatorAgent(mock_provider, settings).translate(
            agent.get_context(), "--para:abc123--One long paragraph."
        )

        assert result.success is True
        assert result.data.translated_text == "Первая половина.\n\nВторая половина."
        assert result.data.aligned is False
        assert result.data.paragraphs[0].id == "abc123"

    @pytest.mark.asyncio
    async def test_zero_chunk_size_is_rejected(self, mock_provider, settings, agent, sample_chapter):
        from agents.translator_agent import TranslatorAgent
        result = await TranslatorAgent(mock_provider, settings).translate(
            agent.get_context(), sample_chapter, chunk_size=0
        )
        assert result.success is False
        assert result.error_type == "ValidationError"
        mock_provider.complete_structured.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_zero_concurrency_is_rejected(self, mock_provider, settings, agent, sample_chapter):
        from agents.translator_agent import TranslatorAgent
        result = await TranslatorAgent(mock_provider, settings).translate(
            agent.get_context(), sample_chapter, max_concurrent=0
        )
        assert result.success is False
        assert result.error_type == "ValidationError"
        assert "max_concurrent" in result.error
        mock_provider.complete_structured.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_partial_ids_keep_matched_paragraphs_in_place(self, mock_provider, settings, agent,
                                                                make_structured, sample_chapter):
        from agents.translator_agent import TranslatorAgent
        mock_provider.complete_structured.return_value = make_structured(
            _paragraphs(("auto_0_2", "В"), ("auto_0_0", "А"))
        )
        result = await TranslatorAgent(mock_provider, settings).translate(agent.get_context(), sample_chapter)

        assert [p.translated for p in result.data.paragraphs] == ["А", "", "В"]
        assert result.data.translated_text == "А\n\nВ"

    @pytest.mark.asyncio
    async def test_untagged_reply_is_used_as_one_block(self, mock_provider, settings, agent,
                                                       make_structured, sample_chapter):
        from agents.translator_agent import TranslatorAgent
        mock_provider.complete_structured.return_value = make_structured({"translated": "Весь текст главы."})
        result = await TranslatorAgent(mock_provider, settings).translate(agent.get_context(), sample_chapter)

        assert result.success is True
        assert result.data.translated_text == "Весь текст главы."
        assert result.data.paragraphs == []
        assert result.data.aligned is False

    @pytest.mark.asyncio
    async def test_parse_error_falls_back_to_plain_text(self, mock_provider, settings, agent,
                                                        make_completion, sample_chapter):
        from agents.translator_agent import TranslatorAgent
        from config.exceptions import ParseError
        mock_provider.complete_structured.side_effect = ParseError("not json")
        mock_provider.complete.return_value = make_completion(
            "--para:auto_0_0--А\n\n--para:auto_0_1--Б\n\n--para:auto_0_2--В"
        )
        result = await TranslatorAgent(mock_provider, settings).translate(agent.get_context(), sample_chapter)

        assert result.success is True
        assert result.data.aligned is True
        assert result.data.translated_text == "А\n\nБ\n\nВ"
        assert result.tokens_used == 20

    @pytest.mark.asyncio
    async def test_failed_chunk_fails_stage_with_partial_draft(self, mock_provider, settings, agent,
                                                               make_structured, sample_chapter):
        from agents.translator_agent import TranslatorAgent
        from config.exceptions import TransportError

        def reply(messages, options):
            if "John" in messages[1].content:
                raise TransportError("upstream 502", status_code=502)
            return make_structured({"translated": "Т"})

        mock_provider.complete_structured.side_effect = reply
        result = await TranslatorAgent(mock_provider, settings).translate(
            agent.get_context(), sample_chapter, chunk_size=10
        )

        assert result.success is False
        assert result.error_type == "StageError"
        assert "upstream 502" in result.error
        draft = result.data
        assert draft.failed_chunks == [1]
        assert draft.translated_text == "Т\n\nТ"
        assert draft.chunk_results[1].translated == ""
        assert result.tokens_used == 40

    @pytest.mark.asyncio
    async def test_concurrent_chunks_are_reassembled_in_order(self, mock_provider, settings, agent,
                                                              make_structured, sample_chapter):
        from agents.translator_agent import TranslatorAgent

        def reply(messages, options):
            text = messages[1].content
            for word, out in (("Liam", "1"), ("John", "2"), ("Eldoria", "3")):
                if word in text:
                    return make_structured({"translated": out})
            raise AssertionError("unexpected chunk")

        mock_provider.complete_structured.side_effect = reply
        result = await TranslatorAgent(mock_provider, settings).translate(
            agent.get_context(), sample_chapter, chunk_size=10, max_concurrent=3
        )
        assert result.data.translated_text == "1\n\n2\n\n3"

    @pytest.mark.asyncio
    async def test_empty_source_fails(self, mock_provider, settings, agent):
        from agents.translator_agent import TranslatorAgent
        result = await TranslatorAgent(mock_provider, settings).translate(agent.get_context(), "  \n\n")
        assert result.success is False
        assert result.error_type == "ValidationError"
        mock_provider.complete_structured.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_prompt_includes_glossary_and_context(self, mock_provider, settings, agent_with_john,
                                                        make_structured):
        from agents.translator_agent import TranslatorAgent
        from models.agent import ChapterSummary
        agent_with_john.record_chapter_translation(ChapterSummary(1, "Джон нашёл письмо."))
        mock_provider.complete_structured.return_value = make_structured(_paragraphs(("auto_0_0", "Т")))

        await TranslatorAgent(mock_provider, settings).translate(agent_with_john.get_context(), "John sighed.")

        user = mock_provider.complete_structured.await_args.args[0][1].content
        assert "John → Джон" in user
        assert "Глава 1: Джон нашёл письмо." in user


class TestTranslatorHelpers:
    def test_tag_chunk_replaces_duplicate_ids(self):
        from agents.translator_agent import tag_chunk
        from models.pipeline import TextChunk
        chunk = TextChunk("chunk_4", "--para:a--One\n\n--para:a--Two\n\nThree", 4)
        assert tag_chunk(chunk) == [("a", "One"), ("auto_4_1", "Two"), ("auto_4_2", "Three")]

    def test_parse_units_accepts_string_items(self):
        from agents.translator_agent import parse_units
        assert parse_units({"translations": ["А", "Б"]}) == [(None, "А"), (None, "Б")]

    def test_reassemble_surplus_goes_to_last_paragraph(self):
        from agents.translator_agent import reassemble
        expected = [("a", "One"), ("b", "Two")]
        paragraphs, aligned = reassemble(expected, [("a", "А"), (None, "Б"), (None, "В")])
        assert aligned is False
        assert [p.translated for p in paragraphs] == ["А", "Б\n\nВ"]

    def test_reassemble_repeated_id_is_appended_to_its_paragraph(self):
        from agents.translator_agent import reassemble
        expected = [("a", "One"), ("b", "Two")]
        paragraphs, aligned = reassemble(expected, [("a", "А1"), ("b", "Б"), ("a", "А2")])
        assert aligned is False
        assert [p.translated for p in paragraphs] == ["А1\n\nА2", "Б"]

    def test_reassemble_extra_untagged_unit_goes_to_last_paragraph(self):
        from agents.translator_agent import reassemble
        expected = [("a", "One"), ("b", "Two")]
        paragraphs, aligned = reassemble(expected, [("a", "А"), ("b", "Б"), (None, "Хвост.")])
        assert aligned is False
        assert [p.translated for p in paragraphs] == ["А", "Б\n\nХвост."]

    def test_reassemble_exact_ids_are_aligned(self):
        from agents.translator_agent import reassemble
        paragraphs, aligned = reassemble([("a", "One")], [("a", "А"), ("a", "")])
        assert aligned is True
        assert [p.translated for p in paragraphs] == ["А"]


class TestEditorAgent:
    @pytest.mark.asyncio
    async def test_edit_cleans_fence_and_reports_changes(self, mock_provider, settings, agent, make_completion):
        from agents.editor_agent import EditorAgent
        mock_provider.complete.return_value = make_completion("```\nЛиам вошёл в таверну.\n```")

        result = await EditorAgent(mock_provider, settings).edit(
            agent.get_context(), "Лиам зашёл в таверну.", "Liam walked into the tavern."
        )

        assert result.success is True
        assert result.data.final_text == "Лиам вошёл в таверну."
        assert [c.reason for c in result.data.changes] == ["paragraph edited"]
        assert result.data.quality_score is None
        mock_provider.complete_structured.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_quality_check(self, mock_provider, settings, agent, make_completion, make_structured):
        from agents.editor_agent import EditorAgent
        mock_provider.complete.return_value = make_completion("Готово.")
        mock_provider.complete_structured.return_value = make_structured({"score": "8.5", "issues": ["повтор"]})

        result = await EditorAgent(mock_provider, settings).edit(
            agent.get_context(), "Готово", "Done.", check_quality=True
        )

        assert result.data.quality_score == 8.5
        assert result.data.quality_issues == ["повтор"]
        assert result.tokens_used == 40

    @pytest.mark.asyncio
    async def test_quality_check_failure_leaves_score_empty(self, mock_provider, settings, agent, make_completion):
        from agents.editor_agent import EditorAgent
        from config.exceptions import ParseError
        mock_provider.complete.return_value = make_completion("Готово.")
        mock_provider.complete_structured.side_effect = ParseError("bad")

        result = await EditorAgent(mock_provider, settings).edit(
            agent.get_context(), "Готово", "Done.", check_quality=True
        )
        assert result.success is True
        assert result.data.quality_score is None

    @pytest.mark.asyncio
    async def test_chunked_edit_keeps_draft_for_failed_chunk(self, mock_provider, settings, agent, make_completion):
        from agents.editor_agent import EditorAgent
        from config.exceptions import TransportError
        mock_provider.complete.side_effect = [
            make_completion("Первый."),
            TransportError("timeout"),
            make_completion("Третий."),
        ]
        draft = "Первый абзац текста.\n\nВторой абзац текста.\n\nТретий абзац текста."

        result = await EditorAgent(mock_provider, settings).edit(
            agent.get_context(), draft, "One.\n\nTwo.\n\nThree.", chunk_size=5, check_quality=True
        )

        assert result.success is True
        assert result.data.final_text == "Первый.\n\nВторой абзац текста.\n\nТретий."
        assert result.data.quality_score is None
        assert mock_provider.complete.await_count == 3
        mock_provider.complete_structured.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_all_chunks_failing_fails_stage(self, mock_provider, settings, agent):
        from agents.editor_agent import EditorAgent
        from config.exceptions import TransportError
        mock_provider.complete.side_effect = TransportError("down")

        result = await EditorAgent(mock_provider, settings).edit(
            agent.get_context(), "А.\n\nБ.", "A.\n\nB.", chunk_size=1
        )
        assert result.success is False

    @pytest.mark.asyncio
    async def test_zero_chunk_size_is_rejected(self, mock_provider, settings, agent):
        from agents.editor_agent import EditorAgent
        result = await EditorAgent(mock_provider, settings).edit(
            agent.get_context(), "А.\n\nБ.", "A.\n\nB.", chunk_size=0
        )
        assert result.success is False
        assert result.error_type == "ValidationError"
        mock_provider.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_provider_error_fails_stage(self, mock_provider, settings, agent):
        from agents.editor_agent import EditorAgent
        from config.exceptions import TransportError
        mock_provider.complete.side_effect = TransportError("down")

        result = await EditorAgent(mock_provider, settings).edit(agent.get_context(), "Текст.", "Text.")
        assert result.success is False
        assert result.error_type == "TransportError"

    @pytest.mark.asyncio
    async def test_empty_draft_fails_without_calling_provider(self, mock_provider, settings, agent):
        from agents.editor_agent import EditorAgent
        result = await EditorAgent(mock_provider, settings).edit(agent.get_context(), "   ", "Text.")
        assert result.success is False
        mock_provider.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_glossary_warnings(self, mock_provider, settings, agent_with_john, make_completion):
        from agents.editor_agent import EditorAgent
        mock_provider.complete.return_value = make_completion("Он улыбнулся.")

        result = await EditorAgent(mock_provider, settings).edit(
            agent_with_john.get_context(), "Он улыбнулся", "John smiled."
        )
        assert result.data.glossary_warnings == ["John → Джон"]


class TestEditorHelpers:
    def test_detect_changes(self):
        from agents.editor_agent import detect_changes
        changes = detect_changes("А\n\nБ", "А\n\nБб\n\nВ")
        assert [(c.before, c.after, c.reason) for c in changes] == [
            ("Б", "Бб", "paragraph edited"),
            ("", "В", "paragraph added"),
        ]

    def test_declined_form_counts_as_present(self, agent_with_john):
        from agents.editor_agent import find_glossary_warnings
        glossary = agent_with_john.glossary
        assert find_glossary_warnings(glossary, "They thanked John.", "Они поблагодарили Джона.") == []
        assert find_glossary_warnings(glossary, "Nobody came.", "Никто не пришёл.") == []

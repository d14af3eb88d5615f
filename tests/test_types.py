"""Tests for gemini_cli_bridge.types module."""

from gemini_cli_bridge.types import (
    BridgeMode,
    BridgeState,
    GeminiCandidate,
    GeminiCandidateContent,
    GeminiCLIOutput,
    GeminiPart,
)


class TestBridgeMode:
    """Tests for BridgeMode."""

    def test_string_values(self) -> None:
        assert str(BridgeMode.INTERACTIVE) == "interactive"
        assert str(BridgeMode.FALLBACK) == "fallback"


class TestBridgeState:
    """Tests for BridgeState."""

    def test_initial_state(self) -> None:
        state = BridgeState()
        assert state.model == ""
        assert state.mode is BridgeMode.FALLBACK
        assert state.session_id == ""
        assert state.next_request_id == 0

    def test_allocate_request_id_is_monotonic(self) -> None:
        state = BridgeState()
        assert [state.allocate_request_id() for _ in range(3)] == [1, 2, 3]

    def test_reset_starts_new_process_lifetime(self) -> None:
        state = BridgeState(
            model="old",
            mode=BridgeMode.FALLBACK,
            session_id="sess-1",
            next_request_id=41,
        )

        state.reset("new")

        assert state.model == "new"
        assert state.mode is BridgeMode.INTERACTIVE
        assert state.session_id == ""
        assert state.allocate_request_id() == 1


class TestGeminiCLIOutput:
    """Tests for GeminiCLIOutput.response_text."""

    def test_no_fields(self) -> None:
        assert GeminiCLIOutput().response_text() is None

    def test_response_preferred(self) -> None:
        output = GeminiCLIOutput(response="A", text="B", content="C")
        assert output.response_text() == "A"

    def test_empty_strings_skipped(self) -> None:
        output = GeminiCLIOutput(response="", text="", content="C")
        assert output.response_text() == "C"

    def test_first_candidate_first_part(self) -> None:
        output = GeminiCLIOutput(
            candidates=[
                GeminiCandidate(
                    content=GeminiCandidateContent(
                        parts=[GeminiPart(text="first"), GeminiPart(text="second")]
                    )
                ),
                GeminiCandidate(
                    content=GeminiCandidateContent(parts=[GeminiPart(text="other")])
                ),
            ]
        )
        assert output.response_text() == "first"

    def test_candidate_part_without_text(self) -> None:
        output = GeminiCLIOutput(
            candidates=[
                GeminiCandidate(content=GeminiCandidateContent(parts=[GeminiPart()]))
            ]
        )
        assert output.response_text() == ""

    def test_ignores_unknown_fields(self) -> None:
        output = GeminiCLIOutput.model_validate(
            {"response": "ok", "stats": {"models": {}}, "error": None}
        )
        assert output.response_text() == "ok"

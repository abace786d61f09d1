"""
Tests for the parser fuzzer.

A short seeded run doubles as a randomized agreement check between the
two parsers.
"""

import pytest

from fnlang.fuzz_parser import Fuzzer, _outcome, _tokens, main
from fnlang.parser import parse


@pytest.fixture
def fuzzer(tmp_path):
    return Fuzzer(seed=1234, findings_dir=tmp_path / "findings")


class TestGeneration:
    """Random inputs and mutations."""

    def test_seeded_generation_is_reproducible(self, tmp_path):
        a = Fuzzer(seed=7, findings_dir=tmp_path)
        b = Fuzzer(seed=7, findings_dir=tmp_path)
        assert [a.generate_random() for _ in range(10)] == [b.generate_random() for _ in range(10)]

    def test_generated_programs_parse(self, fuzzer):
        # Generated programs are always well formed
        for _ in range(50):
            parse(fuzzer.generate_random())

    def test_mutate_returns_string(self, fuzzer):
        for source in Fuzzer.SEED_CORPUS:
            assert isinstance(fuzzer.mutate(source), str)

    def test_short_inputs_survive_mutators(self, fuzzer):
        assert fuzzer._mutate_delete_chunk("x") == "x"
        assert fuzzer._mutate_swap_chunks("abc") == "abc"
        assert fuzzer._mutate_repeat_chunk("x") == "xx"
        assert fuzzer._mutate_flip_char("") == ""

    def test_swap_chunks(self, fuzzer):
        assert fuzzer._mutate_swap_chunks("abcdef") == "defabc"

    def test_token_split(self):
        assert _tokens("fn f() { a::b /* c */ }") == ["fn", "f", "(", ")", "{", "a::b", "}"]
        assert _tokens("1 $") is None

    def test_token_mutation_changes_one_token(self, fuzzer):
        words = ["fn", "f", "(", ")", "{", "1", "}"]
        for _ in range(20):
            mutated = fuzzer._mutate_tokens(words)
            assert abs(len(mutated) - len(words)) <= 1
        assert words == ["fn", "f", "(", ")", "{", "1", "}"]


class TestChecks:
    """Classification of single inputs."""

    def test_outcome(self):
        assert _outcome(parse, "fn f() { 1 }")[0] == "ok"
        assert _outcome(parse, "fn") == ("error", "UnexpectedEndOfInput", 2)

    @pytest.mark.parametrize("source", Fuzzer.SEED_CORPUS)
    def test_seed_corpus_is_clean(self, fuzzer, source):
        assert fuzzer.test_input(source) is False
        assert fuzzer.findings == 0

    def test_rejection_is_not_a_finding(self, fuzzer):
        assert fuzzer.test_input("fn f() { 1 +") is False
        assert fuzzer.stats["parse_error"] == 1

    def test_crash_is_saved(self, fuzzer, monkeypatch):
        def explode(source):
            raise RuntimeError("boom")

        monkeypatch.setattr("fnlang.fuzz_parser.rd_parse", explode)
        assert fuzzer.test_input("fn f() { 1 }") is True
        assert fuzzer.stats["crashes"] == 1
        saved = list(fuzzer.findings_dir.glob("crash_*.txt"))
        assert len(saved) == 1
        assert "RuntimeError: boom" in saved[0].read_text()

    def test_duplicate_findings_saved_once(self, fuzzer):
        fuzzer.save_finding("x", "first", "mismatch")
        fuzzer.save_finding("x", "second", "mismatch")
        assert len(list(fuzzer.findings_dir.iterdir())) == 1


class TestRun:
    """Seeded runs."""

    def test_short_run_finds_nothing(self, fuzzer):
        fuzzer.run(iterations=300)
        assert fuzzer.stats["iterations"] == 300
        assert fuzzer.findings == 0
        assert not fuzzer.findings_dir.exists()

    def test_main(self, tmp_path, capsys):
        status = main(["--iterations", "50", "--seed", "99", "--findings-dir", str(tmp_path)])
        assert status == 0
        assert "Final Statistics:" in capsys.readouterr().out

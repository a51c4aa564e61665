import pytest

from kitlock.cli.console import Console


class TestConsole:
    def test_error_keeps_brackets(self, capsys: pytest.CaptureFixture[str]):
        Console().error("bad label <ImageMetadata(encoded) [abc]>", hints=["extraction failed [state]"])

        err = capsys.readouterr().err
        assert "[abc]" in err
        assert "[state]" in err

    def test_raw_goes_to_stdout(self, capsys: pytest.CaptureFixture[str]):
        Console().raw("images: []\n")

        out, err = capsys.readouterr()
        assert out == "images: []\n"
        assert err == ""

    def test_quiet_suppresses_info(self, capsys: pytest.CaptureFixture[str]):
        Console(quiet=True).info("hidden")
        assert capsys.readouterr().err == ""

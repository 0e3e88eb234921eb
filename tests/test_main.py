import json

import fitz
from click.testing import CliRunner

from readaloud.main import cli


def write_book(tmp_path, text="Dr. Smith said hello.\nThe U.S. is great.\n"):
    path = tmp_path / "book.txt"
    path.write_text(text, encoding="utf-8")
    return path


def test_segment_table(tmp_path):
    result = CliRunner().invoke(cli, ["segment", str(write_book(tmp_path)), "--validate"])

    assert result.exit_code == 0, result.output
    assert "2 sentences" in result.output
    assert "All sentences match their fragments" in result.output


def test_segment_json(tmp_path):
    result = CliRunner().invoke(cli, ["segment", str(write_book(tmp_path)), "--json"])

    assert result.exit_code == 0, result.output
    sentences = json.loads(result.output)
    assert [s["text"] for s in sentences] == ["Dr. Smith said hello.", "The U.S. is great."]


def test_segment_json_from_pdf(tmp_path):
    path = tmp_path / "doc.pdf"
    doc = fitz.open()
    doc.new_page(width=600, height=800).insert_text((60, 100), "One page only.")
    doc.save(str(path))
    doc.close()

    result = CliRunner().invoke(cli, ["segment", str(path), "--json"])

    assert result.exit_code == 0, result.output
    assert [s["text"] for s in json.loads(result.output)] == ["One page only."]


def test_align(tmp_path):
    book = write_book(tmp_path, "The\ncat\nsat.\n")
    text = tmp_path / "clean.txt"
    text.write_text("The cat sat.", encoding="utf-8")

    result = CliRunner().invoke(cli, ["align", str(book), str(text)])

    assert result.exit_code == 0, result.output
    assert "All sentences aligned" in result.output


def test_timings():
    result = CliRunner().invoke(cli, ["timings", "De kat is op de mat.", "--rate", "2"])

    assert result.exit_code == 0, result.output
    assert "nl-NL" in result.output


def test_timings_rejects_bad_rate():
    result = CliRunner().invoke(cli, ["timings", "Hello.", "--rate", "0"])

    assert result.exit_code == 1


def test_read_with_simulated_engine(tmp_path):
    book = write_book(tmp_path, "Hi.\nBye.\n")

    result = CliRunner().invoke(cli, ["read", str(book), "--engine", "simulated", "--rate", "4"])

    assert result.exit_code == 0, result.output
    assert "Hi." in result.output
    assert "Bye." in result.output
    assert "Finished reading" in result.output


def test_missing_file_is_rejected(tmp_path):
    result = CliRunner().invoke(cli, ["segment", str(tmp_path / "nope.pdf")])

    assert result.exit_code != 0


def test_info():
    result = CliRunner().invoke(cli, ["info"])

    assert result.exit_code == 0, result.output
    assert "Speech Settings" in result.output

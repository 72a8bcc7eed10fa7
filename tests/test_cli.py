"""
End-to-end tests for the command line interface with the encoder replaced
by the in-memory fake from conftest.
"""

import os

import pytest

from gifbudget import cli
from gifbudget.cli import GifBudgetCLI


@pytest.fixture(autouse=True)
def _workdir(tmp_path, monkeypatch):
    # Log files and outputs land in the test's own directory
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_presets_lists_packaged_presets(capsys):
    assert GifBudgetCLI().main(['presets']) == 0

    out = capsys.readouterr().out
    assert '* wechat' in out
    assert 'discord' in out


def test_config_validate_passes_for_packaged_config():
    assert GifBudgetCLI().main(['cfg', 'validate']) == 0


def test_probe_prints_metadata(tmp_path, make_gif, capsys):
    path = tmp_path / 'clip.gif'
    path.write_bytes(make_gif(size=(32, 16), frames=3))

    assert GifBudgetCLI().main(['probe', str(path)]) == 0

    out = capsys.readouterr().out
    assert '32x16' in out
    assert '0.30s' in out
    assert '3 frames' in out


def test_probe_missing_file_fails(tmp_path):
    assert GifBudgetCLI().main(['i', str(tmp_path / 'nope.gif')]) == 1


def test_compress_copies_gif_that_already_fits(tmp_path, make_gif, make_encoder, monkeypatch):
    monkeypatch.setattr(cli, 'FFmpegEncoder', lambda **kw: make_encoder())
    source = make_gif(size=(32, 16), frames=3)
    path = tmp_path / 'small.gif'
    path.write_bytes(source)

    code = GifBudgetCLI().main(['compress', str(path), '-o', str(tmp_path / 'out')])

    assert code == 0
    output = tmp_path / 'out' / 'small_compressed.gif'
    assert output.read_bytes() == source


def test_compress_respects_custom_suffix(tmp_path, make_gif, make_encoder, monkeypatch):
    monkeypatch.setattr(cli, 'FFmpegEncoder', lambda **kw: make_encoder())
    path = tmp_path / 'a.gif'
    path.write_bytes(make_gif())

    assert GifBudgetCLI().main(['c', str(path), '-o', 'o', '--suffix', '_wx', '-p', 'discord']) == 0
    assert os.path.exists(os.path.join('o', 'a_wx.gif'))


def test_compress_reports_missing_encoder(tmp_path, make_gif, make_encoder, monkeypatch):
    monkeypatch.setattr(cli, 'FFmpegEncoder', lambda **kw: make_encoder(fail_load=True))
    path = tmp_path / 'a.gif'
    path.write_bytes(make_gif())

    assert GifBudgetCLI().main(['c', str(path)]) == 1
    assert not os.path.exists(os.path.join('output', 'a_compressed.gif'))


def test_compress_without_matching_inputs_fails(tmp_path):
    assert GifBudgetCLI().main(['c', str(tmp_path / '*.gif')]) == 1


def test_invalid_override_is_reported():
    assert GifBudgetCLI().main(['c', 'whatever.gif', '--max-size', '-1']) == 1


def test_compress_overrides_land_in_preset_config(tmp_path, make_gif, make_encoder, monkeypatch):
    monkeypatch.setattr(cli, 'FFmpegEncoder', lambda **kw: make_encoder(sizes={i: 5 for i in range(17)}))
    path = tmp_path / 'big.gif'
    path.write_bytes(make_gif())
    app = GifBudgetCLI()

    # A 10-byte budget forces the search; the first profile lands within tolerance
    code = app.main(['c', str(path), '-o', 'out', '--max-size', '0.00001', '--suffix', '_tiny'])

    assert code == 0
    assert app.config.get('gif_budget.presets.wechat.max_mb') == 0.00001
    assert app.config.get('gif_budget.output.suffix') == '_tiny'
    assert (tmp_path / 'out' / 'big_tiny.gif').read_bytes() == b'G' * 5


def test_compress_probes_written_output(tmp_path, make_gif, make_encoder, monkeypatch):
    monkeypatch.setattr(cli, 'FFmpegEncoder', lambda **kw: make_encoder())
    probed = []
    original_probe = cli.probe_gif

    def recording_probe(data):
        probed.append(data)
        return original_probe(data)

    monkeypatch.setattr(cli, 'probe_gif', recording_probe)
    source = make_gif()
    path = tmp_path / 'a.gif'
    path.write_bytes(source)

    assert GifBudgetCLI().main(['c', str(path), '-o', 'out']) == 0

    # Source probe for the skip decision, then the saved output for the report
    assert probed == [source, source]


def test_unknown_preset_is_not_created_by_overrides(tmp_path, make_gif):
    path = tmp_path / 'a.gif'
    path.write_bytes(make_gif())

    assert GifBudgetCLI().main(['c', str(path), '-p', 'myspace', '--max-size', '3']) == 1

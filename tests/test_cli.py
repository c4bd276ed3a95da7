"""Tests for the CLI implementation."""

import json
import tempfile

import pytest
from typer.testing import CliRunner

from rangeserve import cli
from rangeserve.cli import app
from rangeserve.core.options import CacheMode, Disposition


class TestRangesCommand:
    """Test the ranges command."""

    @pytest.fixture
    def runner(self):
        """CLI test runner."""
        return CliRunner()

    def test_single_range_json_pretty(self, runner):
        """Test a single satisfiable range."""
        result = runner.invoke(app, ["ranges", "bytes=-5", "--size", "60"])

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["status"] == 206
        assert payload["ranges"] == [{"start": 55, "end": 59, "length": 5}]

    def test_whole_resource(self, runner):
        """Test a range covering everything reports 200."""
        result = runner.invoke(app, ["ranges", "bytes=0-", "--size", "60"])

        assert result.exit_code == 0
        assert json.loads(result.stdout)["status"] == 200

    def test_unknown_unit(self, runner):
        """Test a header in another unit resolves to no ranges."""
        result = runner.invoke(app, ["ranges", "items=0-5", "--size", "60"])

        assert result.exit_code == 0
        assert json.loads(result.stdout) == {"status": 200, "ranges": []}

    def test_jsonl(self, runner):
        """Test JSONL output prints one merged range per line."""
        result = runner.invoke(app, ["ranges", "bytes=20-29,0-9,10-12,40-", "--size", "50", "--jsonl"])

        assert result.exit_code == 0
        lines = [json.loads(line) for line in result.stdout.strip().splitlines()]
        assert lines == [
            {"start": 0, "end": 12, "length": 13},
            {"start": 20, "end": 29, "length": 10},
            {"start": 40, "end": 49, "length": 10},
        ]

    @pytest.mark.parametrize("header", ["bytes=9-3", "bytes=50-70", "bytes=abc"])
    def test_unsatisfiable(self, runner, header):
        """Test invalid or out of bounds headers."""
        result = runner.invoke(app, ["ranges", header, "--size", "60"])

        assert result.exit_code == 1
        payload = json.loads(result.stdout)
        assert payload["status"] == 416
        assert payload["error"]


class FakeServer:
    port = 8123

    def __init__(self):
        self.closed = False

    def serve_forever(self):
        raise KeyboardInterrupt

    def server_close(self):
        self.closed = True


class TestServeCommand:
    """Test the serve command without binding a socket."""

    @pytest.fixture
    def runner(self):
        """CLI test runner."""
        return CliRunner()

    def test_options_are_forwarded(self, runner, monkeypatch):
        """Test flags map onto DownloadOptions."""
        calls = {}
        server = FakeServer()

        def fake_make_server(source, options, host, port, mime):
            calls.update(source=source, options=options, host=host, port=port, mime=mime)
            return server

        monkeypatch.setattr(cli, "make_server", fake_make_server)
        result = runner.invoke(app, [
            "serve", "movie.mp4", "--port", "0", "--inline", "--no-multipart",
            "--cache-mode", "never", "--max-bps", "1024", "--name", "clip.mp4",
            "--mime", "video/mp4",
        ])

        assert result.exit_code == 0
        assert server.closed
        options = calls["options"]
        assert calls["source"] == "movie.mp4"
        assert calls["mime"] == "video/mp4"
        assert options.disposition is Disposition.INLINE
        assert options.cache_mode is CacheMode.NEVER
        assert options.byte_ranges_enabled
        assert not options.multipart_enabled
        assert options.max_bytes_per_second == 1024
        assert options.download_file_name == "clip.mp4"

    def test_missing_file(self, runner):
        """Test a missing file exits with an error."""
        with tempfile.TemporaryDirectory() as d:
            result = runner.invoke(app, ["serve", f"{d}/missing.bin", "--port", "0"])

        assert result.exit_code == 1

    def test_rejects_negative_rate(self, runner):
        """Test option validation."""
        result = runner.invoke(app, ["serve", "movie.mp4", "--max-bps", "-1"])
        assert result.exit_code != 0

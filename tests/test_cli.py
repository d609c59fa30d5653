"""Tests for the headless command line runner."""

import json

from cli import main


class TestCli:
    """Verify the runner end to end."""

    def test_json_output(self, capsys) -> None:
        """--json prints the final stats snapshot."""
        code = main(["--scenario", "light", "--steps", "5", "--seed", "1", "--json"])
        stats = json.loads(capsys.readouterr().out)
        assert code == 0
        assert stats["memory_accesses"] == 5
        assert stats["current_policy"] == "LRU"

    def test_policy_override(self, capsys) -> None:
        """--policy switches the scenario's replacement policy."""
        main(["--scenario", "heavy", "--steps", "20", "--policy", "fifo", "--seed", "3"])
        out = capsys.readouterr().out
        assert "(FIFO)" in out
        assert "total_page_faults" in out

    def test_swap_exhaustion_exit_code(self, tmp_path, capsys) -> None:
        """A run that exhausts swap reports the error and exits non-zero."""
        path = tmp_path / "tiny.json"
        path.write_text(json.dumps({
            "config": {"ramFrames": 1, "swapBlocks": 1},
            "processes": [{"name": "big", "pages": 3, "locality": 0.0}],
        }))
        code = main(["--scenario-file", str(path), "--steps", "50", "--seed", "4"])
        assert code == 1
        assert "Swap space full" in capsys.readouterr().err

"""
Command-line entry point.
"""

import json

import pytest

from wuxing.run import main


class TestCli:

    def test_pillars(self, capsys):
        assert main(["--pillars", "甲子", "乙丑", "丙寅", "丁卯"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["day_master"]["stem"] == "丙"
        assert data["log"][-1]["step"] == "pattern"

    def test_birth_data(self, capsys):
        main(["--birth-date", "1990-03-15", "--birth-time", "10:30",
              "--longitude", "-122.4194", "--utc-offset", "-8"])
        data = json.loads(capsys.readouterr().out)
        assert data["pillars"] == {"year": "庚午", "month": "己卯", "day": "己酉", "hour": "己巳"}
        assert data["birth"]["birth_time_lmt"] == "10:20"

    def test_config_file(self, tmp_path, capsys):
        config = tmp_path / "config.json"
        config.write_text(json.dumps({"max_energy": 3000}))
        main(["--pillars", "甲子", "乙丑", "丙寅", "丁卯", "--config", str(config)])
        data = json.loads(capsys.readouterr().out)
        assert all(node["total"] <= 3000.0001 for node in data["nodes"])

    def test_invalid_pillars_exit(self):
        with pytest.raises(SystemExit) as exc:
            main(["--pillars", "甲子", "乙丑", "丙寅", "丁X"])
        assert exc.value.code == 2

    def test_bad_config_exit(self, tmp_path):
        config = tmp_path / "config.json"
        config.write_text(json.dumps({"bogus": 1}))
        with pytest.raises(SystemExit):
            main(["--pillars", "甲子", "乙丑", "丙寅", "丁卯", "--config", str(config)])

    def test_birth_date_needs_time(self):
        with pytest.raises(SystemExit):
            main(["--birth-date", "1990-03-15"])

import sys
import os
import logging

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from main import main


class TestMain:
    def test_usage_without_arguments(self, capsys):
        assert main([]) == 1

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "Usage:" in captured.err

    def test_usage_with_extra_arguments(self, capsys):
        assert main(["a.csv", "b.csv"]) == 1
        assert "Usage:" in capsys.readouterr().err

    def test_unreadable_file(self, tmp_path, capsys, caplog):
        missing = str(tmp_path / "missing.csv")

        with caplog.at_level(logging.ERROR):
            assert main([missing]) == 1

        assert capsys.readouterr().out == ""
        assert f"Cannot read {missing}" in caplog.text

    def test_summary_on_stdout_diagnostics_on_error_channel(self, tmp_path, capsys, caplog):
        csv_file = tmp_path / "transactions.csv"
        csv_file.write_text('\n'.join([
            "type, client, tx, amount",
            "deposit, 2, 1, 3.5",
            "deposit, 1, 2, 1.0",
            "withdrawal, 1, 3, 5.0",
            "bogus, 1, 4, 1.0",
        ]))

        with caplog.at_level(logging.WARNING):
            assert main([str(csv_file)]) == 0

        assert capsys.readouterr().out.splitlines() == [
            "client,available,held,total,locked",
            "1,1.0000,0.0000,1.0000,false",
            "2,3.5000,0.0000,3.5000,false",
        ]
        assert "insufficient_funds" in caplog.text
        assert "parse_error" in caplog.text

    def test_oversized_amounts_do_not_abort_output(self, tmp_path, capsys):
        csv_file = tmp_path / "transactions.csv"
        csv_file.write_text('\n'.join([
            "type,client,tx,amount",
            "deposit,1,1,999999999999999999999999.9999",
            "deposit,1,2,999999999999999999999999.9999",
            "deposit,2,3,1.0",
        ]))

        assert main([str(csv_file)]) == 0

        assert capsys.readouterr().out.splitlines() == [
            "client,available,held,total,locked",
            "2,1.0000,0.0000,1.0000,false",
        ]

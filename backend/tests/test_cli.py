import gzip

from admin_backup import cli
from admin_backup.services.backup.backup_service import BackupRunResult, TargetFailure


def test_parse_list_trims_and_deduplicates():
    assert cli.parse_list(" EE, LV ,,EE") == ["EE", "LV"]
    assert cli.parse_list(None) == []


def test_parse_int_list_keeps_positive_integers():
    assert cli.parse_int_list("2, 4,x,-1,0,4, 10") == [2, 4, 10]


def test_backup_options_from_arguments():
    args = cli.build_parser().parse_args([
        "backup", "--countries", "ee,lv", "--levels", "2,6,abc", "--out-dir", "/tmp/out",
        "--delay-ms", "50", "--no-raw", "--no-compress", "--fail-fast",
    ])

    options = cli.options_from_args(args)

    assert options.countries == ["ee", "lv"]
    assert options.levels == [2, 6]
    assert not options.all_countries and not options.all_levels
    assert options.out_dir == "/tmp/out"
    assert options.delay_ms == 50
    assert not options.retain_raw
    assert not options.compress
    assert options.fail_fast


def test_all_keyword_enables_full_sweep():
    args = cli.build_parser().parse_args(["backup", "--countries", "all", "--levels", "ALL"])

    options = cli.options_from_args(args)

    assert options.all_countries and options.all_levels
    assert options.incremental


def test_exit_codes(monkeypatch):
    monkeypatch.setattr(cli, "run_backup", lambda options: BackupRunResult(countries=["EE"]))
    assert cli.main(["backup", "--countries", "EE", "--levels", "2"]) == 0

    failed = BackupRunResult(failures=[TargetFailure("EE", 9, None, "boom")])
    monkeypatch.setattr(cli, "run_backup", lambda options: failed)
    assert cli.main(["backup"]) == 1


def test_config_error_exit_code(tmp_path):
    out_dir = tmp_path / "out"
    assert cli.main(["backup", "--countries", " , ", "--out-dir", str(out_dir)]) == 2
    assert cli.main(["backup", "--levels", "x,-3", "--out-dir", str(out_dir)]) == 2
    assert not out_dir.exists()


def test_compress_command(tmp_path):
    (tmp_path / "EE_L2.json").write_text("{}\n", encoding="utf-8")

    assert cli.main(["compress", "--data-dir", str(tmp_path)]) == 0

    assert not (tmp_path / "EE_L2.json").exists()
    assert gzip.decompress((tmp_path / "EE_L2.json.gz").read_bytes()) == b"{}\n"

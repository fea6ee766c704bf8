import json

import pytest

from sitemapper import crawl as cli
from sitemapper.crawler import PageResult, SiteMap


class StubPipeline:
    configs = []

    def __init__(self, config):
        self.config = config
        StubPipeline.configs.append(config)

    def run(self):
        url = self.config.start_url
        return SiteMap(
            start_url=url,
            pages={url: PageResult(url=url, external_links=["https://b.com/"])},
            dead_links=["https://b.com/"],
        )


@pytest.fixture(autouse=True)
def quiet_cli(monkeypatch):
    StubPipeline.configs = []
    monkeypatch.setattr(cli, "setup_logging", lambda verbose, log_file=None: None)
    monkeypatch.setattr(cli, "Pipeline", StubPipeline)


def test_prints_site_map_to_stdout(capsys):
    assert cli.main(["https://a.com/", "--concurrency", "2", "--max_attempts", "0"]) == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload == {
        "pages": {
            "https://a.com/": {"internal_links": [], "external_links": ["https://b.com/"], "assets": []}
        }
    }
    config = StubPipeline.configs[0]
    assert config.concurrency == 2
    assert config.max_attempts is None


def test_include_dead_links_flag(capsys):
    assert cli.main(["https://a.com/", "--include_dead_links", "--no_indent"]) == 0

    out = capsys.readouterr().out
    assert json.loads(out)["dead_links"] == ["https://b.com/"]
    assert out.count("\n") == 1


def test_writes_output_file(tmp_path, capsys):
    target = tmp_path / "site.yaml"

    assert cli.main(["https://a.com/", "--output", str(target)]) == 0

    assert capsys.readouterr().out == ""
    assert "https://a.com/" in target.read_text(encoding="utf-8")


def test_unsupported_output_suffix_fails_before_crawling(tmp_path):
    target = tmp_path / "site.txt"

    assert cli.main(["https://a.com/", "--output", str(target)]) == 2

    assert StubPipeline.configs == []
    assert not target.exists()


def test_invalid_url_exits_with_usage_error(capsys):
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["example.com"])

    assert excinfo.value.code == 2
    assert "Could not validate url" in capsys.readouterr().err
    assert StubPipeline.configs == []


def test_missing_url_is_a_config_error():
    assert cli.main([]) == 2
    assert StubPipeline.configs == []


def test_config_file_with_cli_override(tmp_path):
    config_path = tmp_path / "crawl.yaml"
    config_path.write_text("start_url: https://a.com/\nconcurrency: 4\nmax_depth: 1\n", encoding="utf-8")

    assert cli.main(["--config", str(config_path), "--concurrency", "6", "--skip_nofollow"]) == 0

    config = StubPipeline.configs[0]
    assert config.start_url == "https://a.com/"
    assert config.concurrency == 6
    assert config.max_depth == 1
    assert config.include_nofollow_links is False


def test_crawl_failure_returns_one(monkeypatch):
    class FailingPipeline(StubPipeline):
        def run(self):
            raise RuntimeError("network down")

    monkeypatch.setattr(cli, "Pipeline", FailingPipeline)

    assert cli.main(["https://a.com/"]) == 1

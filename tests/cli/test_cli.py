import io
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest.mock import patch

from src.backend import cli
from src.backend.scraper.gfycat import ResolverContractError


class TestArgs(unittest.TestCase):
    def test_overrides_apply_on_top_of_settings_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            args = cli.parse_args(
                [
                    "blog:cats",
                    "other",
                    "--update",
                    "--ignore-videos",
                    "--download-root",
                    str(Path(tmpdir) / "dl"),
                    "--config",
                    str(Path(tmpdir) / "missing.json"),
                    "--workers",
                    "2",
                    "--min-interval",
                    "3.5",
                ]
            )
            settings = cli.build_settings(args)

        self.assertEqual(args.sources, ["blog:cats", "other"])
        self.assertTrue(args.update)
        self.assertTrue(settings.ignore_videos)
        self.assertFalse(settings.ignore_photos)
        self.assertEqual(settings.download_workers, 2)
        self.assertEqual(settings.get_throttle().min_interval_s, 3.5)
        self.assertTrue(settings.download_root.endswith("dl"))


class TestMain(unittest.TestCase):
    def _argv(self, tmpdir: str, *extra: str) -> list[str]:
        return [
            "--config",
            str(Path(tmpdir) / "config.json"),
            "--cursors",
            str(Path(tmpdir) / "cursors.json"),
            "--download-root",
            str(Path(tmpdir) / "dl"),
            *extra,
        ]

    def test_sources_get_stored_cursor_and_tag(self) -> None:
        seen = []

        async def fake_pipeline(*, source, update_mode, **kwargs):  # noqa: ANN001
            seen.append((source.name, source.tag, source.last_post_id, update_mode))

        with tempfile.TemporaryDirectory() as tmpdir:
            Path(tmpdir, "cursors.json").write_text('{"blog": "77"}', encoding="utf-8")
            out = io.StringIO()
            with patch("src.backend.cli.run_source_pipeline", new=fake_pipeline), redirect_stdout(out):
                code = cli.main(self._argv(tmpdir, "blog:art", "fresh", "--update"))

        self.assertEqual(code, 0)
        self.assertEqual(sorted(seen), [("blog", "art", 77, True), ("fresh", None, 0, True)])
        self.assertIn("Downloaded:", out.getvalue())

    def test_resolver_contract_error_exits_nonzero(self) -> None:
        async def broken_pipeline(**kwargs):  # noqa: ANN001
            raise ResolverContractError("gfycat answered HTML")

        with tempfile.TemporaryDirectory() as tmpdir:
            with patch("src.backend.cli.run_source_pipeline", new=broken_pipeline), redirect_stdout(io.StringIO()):
                with self.assertLogs("src.backend.cli", level="ERROR"):
                    code = cli.main(self._argv(tmpdir, "blog"))

        self.assertEqual(code, 1)

    def test_malformed_cursor_exits_nonzero(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            Path(tmpdir, "cursors.json").write_text('{"blog": "abc"}', encoding="utf-8")
            with self.assertLogs("src.backend.cli", level="ERROR"):
                code = cli.main(self._argv(tmpdir, "blog"))

        self.assertEqual(code, 1)


if __name__ == "__main__":
    unittest.main()

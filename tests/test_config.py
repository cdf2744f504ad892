import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from s4.config import (
    DEFAULT_HOST_BASE,
    DEFAULT_REGION,
    S3Config,
    config_base_dir,
    interactive_setup,
    load_s3_config,
    save_s3_config,
)
from s4.errors import ConfigError


def _write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadConfig(unittest.TestCase):
    def test_reads_default_section(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            path = _write(
                Path(temp_dir) / ".s3cfg",
                "[default]\n"
                "access_key = AK\n"
                "secret_key = SK\n"
                "host_base = localhost:9000\n"
                "use_https = False\n"
                "bucket_location = eu-central-1\n",
            )
            config = load_s3_config(path)
        self.assertEqual(config.access_key, "AK")
        self.assertEqual(config.secret_key, "SK")
        self.assertEqual(config.region, "eu-central-1")
        self.assertFalse(config.signature_v2)
        self.assertEqual(config.endpoint_url, "http://localhost:9000")

    def test_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            path = _write(
                Path(temp_dir) / ".s3cfg",
                "[default]\naccess_key = AK\nsecret_key = SK\n",
            )
            config = load_s3_config(path)
        self.assertEqual(config.host_base, DEFAULT_HOST_BASE)
        self.assertEqual(config.region, DEFAULT_REGION)
        self.assertEqual(config.endpoint_url, "https://s3.amazonaws.com")

    def test_missing_credentials(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            path = _write(Path(temp_dir) / ".s3cfg", "[default]\naccess_key = AK\n")
            with self.assertRaises(ConfigError):
                load_s3_config(path)

    def test_missing_section(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            path = _write(Path(temp_dir) / ".s3cfg", "[other]\naccess_key = AK\n")
            with self.assertRaises(ConfigError):
                load_s3_config(path)

    def test_unreadable_file(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            with self.assertRaises(ConfigError):
                load_s3_config(Path(temp_dir) / "nope")

    def test_saved_config_loads_back(self) -> None:
        config = S3Config(access_key="AK", secret_key="SK", signature_v2=True)
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "nested" / ".s3cfg"
            save_s3_config(config, path)
            self.assertEqual(load_s3_config(path), config)

    def test_config_base_dir_follows_xdg(self) -> None:
        with patch.dict(os.environ, {"XDG_CONFIG_HOME": "/tmp/xdg"}):
            self.assertEqual(config_base_dir(), Path("/tmp/xdg") / "s4")


class TestInteractiveSetup(unittest.TestCase):
    def _answers(self, *answers: str):
        remaining = list(answers)
        return lambda _prompt: remaining.pop(0)

    def test_declined(self) -> None:
        with self.assertRaises(ConfigError):
            interactive_setup(read=self._answers("n"), write=lambda _line: None)

    def test_empty_access_key(self) -> None:
        with self.assertRaises(ConfigError):
            interactive_setup(read=self._answers("y", ""), write=lambda _line: None)

    def test_local_endpoint_saved_to_home(self) -> None:
        lines: list[str] = []
        with tempfile.TemporaryDirectory() as temp_dir:
            with patch("s4.config.Path.home", return_value=Path(temp_dir)):
                config = interactive_setup(
                    read=self._answers("y", "minioadmin", "secret", "localhost:9000", "", "2"),
                    write=lines.append,
                )
                saved = load_s3_config(Path(temp_dir) / ".s3cfg")
        self.assertFalse(config.use_https)
        self.assertEqual(config.host_bucket, "localhost:9000/%(bucket)s")
        self.assertEqual(config.region, DEFAULT_REGION)
        self.assertEqual(saved, config)
        self.assertTrue(any("Configuration saved to" in line for line in lines))

    def test_invalid_choice(self) -> None:
        with self.assertRaises(ConfigError):
            interactive_setup(
                read=self._answers("y", "AK", "SK", "", "", "9"),
                write=lambda _line: None,
            )


if __name__ == "__main__":
    unittest.main()
